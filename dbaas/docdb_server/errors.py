"""
Error types for DocDB Server.

This module defines every exception the core raises:
- DocDbError: Base exception
- SchemaConfigurationError: Descriptor declares a reserved control field
- InvalidIdentityError: Identity cannot be parsed by the store
- InvalidQueryError: Malformed sort direction or filter operator
- DocumentValidationError: Write or filter value rejected by the schema
- StoreError: Document store operation failed

Invariants:
    - All errors inherit from DocDbError
    - Every error carries a stable code and a details mapping
    - Client errors and server errors are distinguished by `status`
"""

from __future__ import annotations

from typing import Any


class DocDbError(Exception):
    """Base exception for all DocDB errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
        status: HTTP status the API layer should answer with
    """

    status = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCDB_ERROR"
        self.details = details or {}


class SchemaConfigurationError(DocDbError):
    """Descriptor is unusable as a collection definition.

    Raised when a top-level property collides with a reserved control
    field. This is a bug in the caller's descriptor, not a transient
    failure, and is surfaced as a server error.
    """

    status = 500

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        field_name: str | None = None,
    ) -> None:
        super().__init__(
            message,
            code="SCHEMA_CONFIGURATION_ERROR",
            details={"collection": collection, "field": field_name},
        )
        self.collection = collection
        self.field_name = field_name


class InvalidIdentityError(DocDbError):
    """Document identity is not in the store's native format."""

    status = 400

    def __init__(self, identity: Any) -> None:
        super().__init__(
            f"Invalid document id: {identity!r}",
            code="INVALID_ID",
            details={"id": str(identity)},
        )
        self.identity = identity


class InvalidQueryError(DocDbError):
    """Query parameters cannot be turned into a query.

    Raised when:
    - A sort direction is not ascending/descending
    - A filter uses an operator the store does not understand
    """

    status = 400

    def __init__(self, message: str, parameter: str | None = None) -> None:
        super().__init__(
            message,
            code="INVALID_QUERY",
            details={"parameter": parameter},
        )
        self.parameter = parameter


class DocumentValidationError(DocDbError):
    """Document or filter value rejected by the compiled schema.

    Attributes:
        collection: Collection the document targets
        errors: Individual validation messages
    """

    status = 400

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"collection": collection, "errors": errors or []},
        )
        self.collection = collection
        self.errors = errors or []


class StoreError(DocDbError):
    """Document store operation failed.

    Raised when:
    - The store connection is not open
    - The underlying driver reports a failure
    """

    status = 500

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(
            message,
            code="STORE_ERROR",
            details={"operation": operation},
        )
        self.operation = operation
