"""
Base protocol for document store backends.

This module defines the DocumentStore protocol that all backends must
implement. The service only ever talks to the store through it.

Invariants:
    - Every operation is scoped to one logical collection
    - Single-document find-and-modify operations are atomic
    - Documents go in and come out as plain JSON-compatible dicts
    - Identities are generated by the store and never change

How to change safely:
    - Protocol changes require updating all implementations
    - Add new methods as optional with default implementations
"""

from __future__ import annotations

import uuid
from abc import abstractmethod
from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable

from ..errors import InvalidIdentityError

# Receives the candidate post-image of a write and returns the document to
# persist; raising aborts the write.
Validator = Callable[[dict[str, Any]], dict[str, Any]]


@runtime_checkable
class DocumentStore(Protocol):
    """Protocol for document store backends.

    Example:
        >>> store = SqliteDocumentStore("/var/lib/docdb")
        >>> await store.connect()
        >>> doc = await store.insert_one("people", {"name": "foo"})
        >>> await store.count_documents("people", {"name": "foo"})
        1
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the store connection.

        Must be called before any other operations.

        Raises:
            StoreError: If the connection cannot be opened
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Close the store connection and release resources."""
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the connection is open."""
        ...

    @abstractmethod
    def parse_id(self, value: Any) -> Any:
        """Turn an external identity into the store's native form.

        Raises:
            InvalidIdentityError: If the value is not a valid identity
        """
        ...

    @abstractmethod
    async def insert_one(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        """Insert a document, assigning its identity.

        Returns:
            The stored document including `_id`
        """
        ...

    @abstractmethod
    async def find(
        self,
        collection: str,
        filters: dict[str, Any],
        sort: dict[str, int] | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """Find matching documents.

        Args:
            collection: Collection name
            filters: Filter mapping (see store.matching)
            sort: Field -> 1/-1, applied before skip/limit
            skip: Documents to skip
            limit: Maximum documents, None for all
        """
        ...

    @abstractmethod
    async def find_one(
        self,
        collection: str,
        filters: dict[str, Any],
        sort: dict[str, int] | None = None,
    ) -> dict[str, Any] | None:
        """Find the first matching document, or None."""
        ...

    @abstractmethod
    async def count_documents(self, collection: str, filters: dict[str, Any]) -> int:
        """Count matching documents, ignoring any pagination."""
        ...

    @abstractmethod
    async def find_one_and_replace(
        self,
        collection: str,
        filters: dict[str, Any],
        replacement: dict[str, Any],
        validate: Validator | None = None,
    ) -> dict[str, Any] | None:
        """Atomically replace the first matching document.

        The identity is preserved.

        Returns:
            The post-image, or None if nothing matched
        """
        ...

    @abstractmethod
    async def find_one_and_update(
        self,
        collection: str,
        filters: dict[str, Any],
        update: dict[str, Any],
        validate: Validator | None = None,
    ) -> dict[str, Any] | None:
        """Atomically apply $set/$inc/$unset to the first matching document.

        Returns:
            The post-image, or None if nothing matched
        """
        ...

    @abstractmethod
    async def find_one_and_delete(
        self,
        collection: str,
        filters: dict[str, Any],
    ) -> dict[str, Any] | None:
        """Atomically remove the first matching document.

        Returns:
            The removed document, or None if nothing matched
        """
        ...

    @abstractmethod
    async def get_stats(self) -> dict[str, int]:
        """Document counts per non-empty collection."""
        ...


def generate_id() -> str:
    """New document identity (32 hex chars)."""
    return uuid.uuid4().hex


def parse_hex_id(value: Any) -> str:
    """Parse a UUID identity in hex or dashed form into its hex form.

    Raises:
        InvalidIdentityError: If the value is not a UUID
    """
    try:
        return uuid.UUID(str(value).strip()).hex
    except (ValueError, AttributeError):
        raise InvalidIdentityError(value)
