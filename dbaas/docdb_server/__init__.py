"""
DocDB Server - Schema-on-request document CRUD service.

This package implements a generic, multi-tenant CRUD interface over a
document store. Each request carries its own schema descriptor that names
the logical collection and describes its document shape:

    ┌─────────────┐     ┌──────────────┐     ┌──────────────────┐
    │   Client    │────▶│  HTTP (API)  │────▶│ Descriptor parser│
    └─────────────┘     └──────────────┘     └────────┬─────────┘
                                                      │
                                                      ▼
                        ┌─────────────────────────────────────────┐
                        │     Collection cache (compiled handles) │
                        └─────────────────────────────────────────┘
                                             │
                        ┌────────────────────┼────────────────────┐
                        ▼                    ▼                    ▼
                   ┌─────────┐         ┌───────────┐        ┌──────────┐
                   │  Query  │         │ Document  │        │ Envelope │
                   │ builder │         │  store    │        │normalizer│
                   └─────────┘         └───────────┘        └──────────┘

Invariants:
    - A request without a parseable descriptor never reaches the store
    - Descriptors must not declare reserved control fields
    - `version` is owned by the server: 0 on create/replace, +1 per patch
    - The public identity field is `id`; `_id` never leaves the server

Version: see _version.py.
"""

from ._version import __version__

__all__ = ["__version__"]
