"""
In-memory document store implementation for testing.

This module provides a simple in-memory store for:
- Unit tests
- Local development without a data directory

Invariants:
    - All data is lost on process exit
    - Same filter/sort/update semantics as SqliteDocumentStore
    - Documents are copied on the way in and out; callers never share state

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with DocumentStore protocol
"""

from __future__ import annotations

import copy
import logging
from typing import Any

from ..constants import ID_FIELD
from ..errors import StoreError
from . import matching
from .base import Validator, generate_id, parse_hex_id

logger = logging.getLogger(__name__)


class InMemoryDocumentStore:
    """In-memory implementation of DocumentStore for testing.

    Attributes:
        operations: Names of store calls made, in order (for assertions)

    Example:
        >>> store = InMemoryDocumentStore()
        >>> await store.connect()
        >>> await store.insert_one("people", {"name": "foo"})
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._connected = False
        self.operations: list[str] = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    def parse_id(self, value: Any) -> str:
        return parse_hex_id(value)

    def _documents(self, collection: str, operation: str) -> dict[str, dict[str, Any]]:
        if not self._connected:
            raise StoreError("Document store is not connected", operation)
        self.operations.append(operation)
        return self._collections.setdefault(collection, {})

    def _first_match(self, documents: dict[str, dict[str, Any]], filters: dict[str, Any]) -> dict[str, Any] | None:
        found = matching.select(documents.values(), filters, limit=1)
        return found[0] if found else None

    async def insert_one(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        documents = self._documents(collection, "insert")
        stored = copy.deepcopy(document)
        stored[ID_FIELD] = generate_id()
        documents[stored[ID_FIELD]] = stored
        return copy.deepcopy(stored)

    async def find(
        self,
        collection: str,
        filters: dict[str, Any],
        sort: dict[str, int] | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        documents = self._documents(collection, "find")
        found = matching.select(documents.values(), filters, sort=sort, skip=skip, limit=limit)
        return copy.deepcopy(found)

    async def find_one(
        self,
        collection: str,
        filters: dict[str, Any],
        sort: dict[str, int] | None = None,
    ) -> dict[str, Any] | None:
        documents = self._documents(collection, "find_one")
        found = matching.select(documents.values(), filters, sort=sort, limit=1)
        return copy.deepcopy(found[0]) if found else None

    async def count_documents(self, collection: str, filters: dict[str, Any]) -> int:
        documents = self._documents(collection, "count")
        return sum(1 for doc in documents.values() if matching.matches(doc, filters))

    async def find_one_and_replace(
        self,
        collection: str,
        filters: dict[str, Any],
        replacement: dict[str, Any],
        validate: Validator | None = None,
    ) -> dict[str, Any] | None:
        documents = self._documents(collection, "replace")
        current = self._first_match(documents, filters)
        if current is None:
            return None

        stored = {k: copy.deepcopy(v) for k, v in replacement.items() if k != ID_FIELD}
        stored[ID_FIELD] = current[ID_FIELD]
        if validate is not None:
            stored = validate(stored)
        documents[stored[ID_FIELD]] = stored
        return copy.deepcopy(stored)

    async def find_one_and_update(
        self,
        collection: str,
        filters: dict[str, Any],
        update: dict[str, Any],
        validate: Validator | None = None,
    ) -> dict[str, Any] | None:
        documents = self._documents(collection, "update")
        current = self._first_match(documents, filters)
        if current is None:
            return None

        stored = matching.apply_update(current, update)
        stored[ID_FIELD] = current[ID_FIELD]
        if validate is not None:
            stored = validate(stored)
        documents[stored[ID_FIELD]] = stored
        return copy.deepcopy(stored)

    async def find_one_and_delete(
        self,
        collection: str,
        filters: dict[str, Any],
    ) -> dict[str, Any] | None:
        documents = self._documents(collection, "delete")
        current = self._first_match(documents, filters)
        if current is None:
            return None
        return documents.pop(current[ID_FIELD])

    async def get_stats(self) -> dict[str, int]:
        """Document counts per collection."""
        return {name: len(docs) for name, docs in self._collections.items() if docs}
