"""
Compiled collection handle.

A CollectionHandle binds a compiled schema to a logical collection in the
document store. It owns the insertion semantics of its collection:
- Schema validation, defaults and dropping of undeclared fields
- createdAt/updatedAt timestamps and the initial version
- Casting query-string filter values to declared field types

Invariants:
    - Every stored document passes schema validation
    - Server-maintained fields (_id, version, createdAt, updatedAt) survive validation
    - A handle never changes the collection it was compiled for
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from .constants import (
    CREATED_AT_FIELD,
    ID_FIELD,
    SYSTEM_FIELDS,
    UPDATED_AT_FIELD,
    VERSION_FIELD,
)
from .envelope import to_store
from .errors import DocumentValidationError
from .query import LiteralValue, OperatorExpression, QuerySpec
from .store.matching import compile_pattern

if TYPE_CHECKING:
    from .schema.compiler import CompiledSchema
    from .schema.descriptor import SchemaDescriptor
    from .store import DocumentStore


def utc_now() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds").replace("+00:00", "Z")


class CollectionHandle:
    """Queryable collection compiled from a descriptor.

    Attributes:
        descriptor: Descriptor the handle was compiled from
        schema: Compiled validation capability
        store: Document store the collection lives in
    """

    def __init__(
        self,
        descriptor: SchemaDescriptor,
        schema: CompiledSchema,
        store: DocumentStore,
    ) -> None:
        self.descriptor = descriptor
        self.schema = schema
        self.store = store

    @property
    def name(self) -> str:
        """Store collection name."""
        return self.descriptor.name

    def parse_id(self, value: Any) -> Any:
        return self.store.parse_id(value)

    def validate(self, document: dict[str, Any]) -> dict[str, Any]:
        """Validate a full document, keeping server-maintained fields."""
        normalized = self.schema.validate(document)
        for key in SYSTEM_FIELDS:
            if key in document:
                normalized[key] = document[key]
        return normalized

    def store_filter(self, query: QuerySpec) -> dict[str, Any]:
        """Flatten and cast the query's filters for the store."""
        flat: dict[str, Any] = {}
        for path, operand in query.filters.items():
            if path == ID_FIELD:
                flat[path] = operand.value if isinstance(operand, LiteralValue) else operand.operators
            elif isinstance(operand, OperatorExpression):
                flat[path] = {
                    op: self._cast_operand(path, op, value)
                    for op, value in operand.operators.items()
                }
            else:
                flat[path] = self._cast(path, operand.value)
        return flat

    async def insert(self, form: dict[str, Any]) -> dict[str, Any]:
        document = self.schema.validate(to_store(form))
        now = utc_now()
        document[CREATED_AT_FIELD] = now
        document[UPDATED_AT_FIELD] = now
        document[VERSION_FIELD] = 0
        return await self.store.insert_one(self.name, document)

    async def find(self, query: QuerySpec) -> list[dict[str, Any]]:
        options = query.find_options()
        return await self.store.find(
            self.name,
            self.store_filter(query),
            sort=options["sort"],
            skip=options["skip"],
            limit=options["limit"],
        )

    async def find_one(self, query: QuerySpec) -> dict[str, Any] | None:
        return await self.store.find_one(self.name, self.store_filter(query), sort=dict(query.sort))

    async def count(self, query: QuerySpec) -> int:
        return await self.store.count_documents(self.name, self.store_filter(query))

    async def replace(self, query: QuerySpec, form: dict[str, Any]) -> dict[str, Any] | None:
        replacement = to_store(form)
        now = utc_now()
        replacement.setdefault(CREATED_AT_FIELD, now)
        replacement[UPDATED_AT_FIELD] = now
        return await self.store.find_one_and_replace(
            self.name, self.store_filter(query), replacement, validate=self.validate
        )

    async def update(self, query: QuerySpec, update: dict[str, Any]) -> dict[str, Any] | None:
        return await self.store.find_one_and_update(
            self.name, self.store_filter(query), update, validate=self.validate
        )

    async def delete(self, query: QuerySpec) -> dict[str, Any] | None:
        return await self.store.find_one_and_delete(self.name, self.store_filter(query))

    def _cast(self, path: str, value: Any) -> Any:
        if isinstance(value, dict):
            return value
        if isinstance(value, list):
            return [self._cast(path, item) for item in value]
        if path == VERSION_FIELD:
            try:
                return int(value)
            except (TypeError, ValueError) as e:
                raise DocumentValidationError(
                    f"Cannot use {value!r} as a filter on '{path}'",
                    collection=self.name,
                    errors=[f"{path}: must be an integer"],
                ) from e
        return self.schema.cast_value(path, value)

    def _cast_operand(self, path: str, op: str, value: Any) -> Any:
        if op in ("$in", "$nin"):
            items = value if isinstance(value, list) else [value]
            return [self._cast(path, item) for item in items]
        if op == "$exists":
            if isinstance(value, str):
                return value.strip().lower() not in ("", "0", "false", "no")
            return bool(value)
        if op == "$regex":
            pattern = str(value)
            compile_pattern(pattern, parameter=f"{path}[$regex]")
            return pattern
        return self._cast(path, value)
