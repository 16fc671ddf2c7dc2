"""
Document service: one operation per HTTP verb.

Each operation follows the same sequence:
    compile collection -> build query -> call store -> normalize envelope

The service owns the optimistic versioning convention:
- create and replace set `version` to 0
- every partial update increments `version` by exactly 1
- clients can never set, increment or unset `version`, `_id` or the timestamps

Invariants:
    - Descriptors are compiled (and reserved fields rejected) before the store is touched
    - Operations that find no target return None; the caller decides the status code
    - Every returned document is a wire envelope (`id`, never `_id`)

How to change safely:
    - Keep store calls behind CollectionHandle so validation stays in one place
    - New verbs must go through the same compile/query/normalize sequence
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from .collection import CollectionHandle, utc_now
from .constants import DEFAULT_LIMIT, SYSTEM_FIELDS, UPDATED_AT_FIELD, VERSION_FIELD
from .envelope import to_wire
from .query import QuerySpec, build_query, paginate
from .schema import CollectionCache, SchemaDescriptor

logger = logging.getLogger(__name__)


class DocumentService:
    """CRUD operations over request-described collections.

    Example:
        >>> service = DocumentService(CollectionCache(store))
        >>> created = await service.create(descriptor, {"name": "foo", "age": 3})
        >>> page = await service.read(descriptor, None, {"age": "3"})
        >>> page["meta"]["total"]
        1
    """

    def __init__(self, cache: CollectionCache, default_limit: int = DEFAULT_LIMIT) -> None:
        """Initialize the service.

        Args:
            cache: Compiled collection cache
            default_limit: Page size used when a read has no usable limit
        """
        self.cache = cache
        self.default_limit = default_limit

    def _query(
        self,
        handle: CollectionHandle,
        identity: Any,
        params: Mapping[str, Any] | None,
    ) -> QuerySpec:
        return build_query(identity, params, handle.parse_id, default_limit=self.default_limit)

    async def create(self, descriptor: SchemaDescriptor, form: dict[str, Any]) -> dict[str, Any]:
        """Insert a new document.

        Args:
            descriptor: Request descriptor
            form: Submitted document

        Returns:
            Envelope of the created document

        Raises:
            SchemaConfigurationError: If the descriptor declares a reserved field
            DocumentValidationError: If the form breaks the schema
        """
        handle = self.cache.compile(descriptor)
        document = await handle.insert(form or {})
        envelope = to_wire(document)
        logger.debug(
            f"Created document {envelope['id']}",
            extra={"collection": handle.name, "document_id": envelope["id"]},
        )
        return envelope

    async def read(
        self,
        descriptor: SchemaDescriptor,
        identity: Any,
        params: Mapping[str, Any] | None,
    ) -> dict[str, Any]:
        """Read one document by identity or a filtered, paginated list.

        Args:
            descriptor: Request descriptor
            identity: Identity from the request path, or None
            params: Decoded query parameters

        Returns:
            {"data": [envelopes...], "meta": pagination}

        Raises:
            InvalidIdentityError: If the identity cannot be parsed
            InvalidQueryError: If sort or filter operators are malformed
            DocumentValidationError: If a filter value cannot be cast
        """
        handle = self.cache.compile(descriptor)
        query = self._query(handle, identity, params)

        if query.is_identity_lookup:
            found = await handle.find_one(query)
            documents = [found]
        else:
            documents = await handle.find(query)

        total = await handle.count(query)
        meta = paginate(skip=query.skip, limit=query.limit, page=query.page, total=total)

        return {
            "data": [to_wire(doc) for doc in documents if doc is not None],
            "meta": meta.to_dict(),
        }

    async def replace(
        self,
        descriptor: SchemaDescriptor,
        identity: Any,
        form: dict[str, Any],
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Replace a whole document, resetting its version.

        Returns:
            Envelope of the replacement, or None if nothing matched
        """
        handle = self.cache.compile(descriptor)
        query = self._query(handle, identity, params)

        replacement = dict(form or {})
        replacement[VERSION_FIELD] = 0

        document = await handle.replace(query, replacement)
        if document is None:
            logger.debug(f"Replace matched nothing: {identity}", extra={"collection": handle.name})
            return None
        return to_wire(document)

    async def update(
        self,
        descriptor: SchemaDescriptor,
        identity: Any,
        set_fields: Mapping[str, Any] | None = None,
        inc_fields: Mapping[str, Any] | None = None,
        unset_fields: Mapping[str, Any] | list[str] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Apply a partial update and bump the version.

        Args:
            descriptor: Request descriptor
            identity: Target identity
            set_fields: Field assignments (dotted paths allowed)
            inc_fields: Numeric increments
            unset_fields: Fields to remove, as a mapping or a list of paths
            params: Extra filters narrowing the target

        Returns:
            Envelope of the updated document, or None if nothing matched

        Raises:
            DocumentValidationError: If the updated document breaks the schema
        """
        handle = self.cache.compile(descriptor)
        query = self._query(handle, identity, params)

        to_set = _client_paths(set_fields)
        to_set[UPDATED_AT_FIELD] = utc_now()

        to_inc = _client_paths(inc_fields)
        to_inc[VERSION_FIELD] = 1

        if isinstance(unset_fields, Mapping):
            to_unset = _client_paths(unset_fields)
        else:
            to_unset = _client_paths({path: "" for path in unset_fields or ()})

        update: dict[str, Any] = {"$set": to_set, "$inc": to_inc}
        if to_unset:
            update["$unset"] = to_unset

        document = await handle.update(query, update)
        if document is None:
            logger.debug(f"Update matched nothing: {identity}", extra={"collection": handle.name})
            return None
        return to_wire(document)

    async def delete(
        self,
        descriptor: SchemaDescriptor,
        identity: Any,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Remove a document.

        Returns:
            Envelope of the removed document, or None if nothing matched
        """
        handle = self.cache.compile(descriptor)
        query = self._query(handle, identity, params)

        document = await handle.delete(query)
        if document is None:
            return None
        envelope = to_wire(document)
        logger.debug(
            f"Deleted document {envelope['id']}",
            extra={"collection": handle.name, "document_id": envelope["id"]},
        )
        return envelope


def _client_paths(fields: Mapping[str, Any] | None) -> dict[str, Any]:
    """Copy update paths, dropping any that touch server-maintained fields."""
    return {
        path: value
        for path, value in (fields or {}).items()
        if str(path).split(".", 1)[0] not in SYSTEM_FIELDS
    }
