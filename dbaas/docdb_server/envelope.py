"""
Document envelope normalization.

Stored documents carry their identity under `_id`; on the wire it is `id`.

Invariants:
    - to_wire never leaves `_id` in its output; a stored `_id` always becomes `id`
    - to_wire is idempotent
    - to_store strips any identity a client submits
"""

from __future__ import annotations

from typing import Any

from .constants import ID_FIELD, PUBLIC_ID_FIELD


def to_wire(document: Any) -> dict[str, Any]:
    """Convert a stored document into its wire envelope.

    Accepts plain mappings and objects exposing `to_dict()` or `model_dump()`.
    """
    if hasattr(document, "model_dump"):
        data = document.model_dump()
    elif hasattr(document, "to_dict"):
        data = document.to_dict()
    else:
        data = dict(document)

    if ID_FIELD in data:
        data[PUBLIC_ID_FIELD] = data.pop(ID_FIELD)
    return data


def to_store(form: dict[str, Any] | None) -> dict[str, Any]:
    """Copy a submitted form without identity fields."""
    return {
        key: value
        for key, value in (form or {}).items()
        if key not in (ID_FIELD, PUBLIC_ID_FIELD)
    }
