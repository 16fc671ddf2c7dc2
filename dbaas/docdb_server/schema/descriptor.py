"""
Schema descriptor parsing.

A schema descriptor is the caller-supplied definition of a logical
collection: its name and the shape of its documents. It travels with every
request as a JSON payload (see api.config.Settings.schema_header).

Invariants:
    - Parsing fails closed: any problem yields None, never an exception
    - A descriptor is immutable once parsed
    - Two descriptors are equal iff their parsed payloads are deep-equal

Example:
    >>> parse_descriptor('{"name": "people", "properties": {"age": {"type": "number"}}}')
    SchemaDescriptor(name='people', ...)
    >>> parse_descriptor("not json") is None
    True
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchemaDescriptor:
    """Parsed schema descriptor.

    Attributes:
        name: Logical collection name
        properties: Field name -> constraint mapping
        raw: Full decoded payload, used for deep-equality checks
    """

    name: str
    properties: dict[str, Any] = field(default_factory=dict)
    raw: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SchemaDescriptor:
        """Create from a decoded payload.

        Raises:
            ValueError: If the payload has no usable name or properties
        """
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ValueError("Descriptor must have a non-empty string 'name'")

        properties = data.get("properties") or {}
        if not isinstance(properties, dict):
            raise ValueError("Descriptor 'properties' must be an object")

        return cls(name=name, properties=properties, raw=data)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return dict(self.raw) or {"name": self.name, "properties": self.properties}


def parse_descriptor(raw: str | bytes | None) -> SchemaDescriptor | None:
    """Decode a raw descriptor payload.

    Args:
        raw: JSON text from the request, or None if absent

    Returns:
        SchemaDescriptor, or None if the payload is absent or unusable
    """
    if not raw:
        return None

    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.debug("Discarding unparseable schema descriptor")
        return None

    if not isinstance(data, dict):
        return None

    try:
        return SchemaDescriptor.from_dict(data)
    except ValueError as e:
        logger.debug(f"Discarding schema descriptor: {e}")
        return None
