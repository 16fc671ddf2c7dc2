"""
Document store module for DocDB server.

This module provides:
- DocumentStore protocol (the only way the service touches storage)
- SqliteDocumentStore (production backend, one shared connection)
- InMemoryDocumentStore (tests and local development)
- Filter/sort/update evaluation shared by both backends

Invariants:
    - Single-document find-and-modify operations are atomic
    - Identities are 32-char hex UUIDs assigned by the store
"""

from .base import DocumentStore, Validator, generate_id, parse_hex_id
from .memory import InMemoryDocumentStore
from .sqlite import SqliteDocumentStore

__all__ = [
    "DocumentStore",
    "Validator",
    "generate_id",
    "parse_hex_id",
    "InMemoryDocumentStore",
    "SqliteDocumentStore",
]
