"""
Collection compiler and cache.

Compiling a descriptor (building validation models, checking reserved
fields) is done once per distinct descriptor. Compiled handles are cached
by collection name and replaced wholesale when a request brings a
descriptor that differs from the cached one.

Invariants:
    - A cache hit requires the cached descriptor to be deep-equal to the incoming one
    - Descriptors declaring a reserved control field never enter the cache
    - Entries are never evicted except by replacement (the cache is unbounded)
    - Read-check-write runs under one lock; concurrent recompiles of the same
      name resolve as last writer wins

How to change safely:
    - Compilation must stay free of side effects beyond the cache slot
    - Handles already handed out keep working after their entry is replaced
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass

from ..collection import CollectionHandle
from ..constants import RESERVED_FIELDS
from ..errors import SchemaConfigurationError
from ..store import DocumentStore
from .compiler import PydanticSchemaCompiler, SchemaCompiler
from .descriptor import SchemaDescriptor

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """Cached compilation result."""

    descriptor: SchemaDescriptor
    handle: CollectionHandle


class CollectionCache:
    """Process-wide cache of compiled collection handles.

    Example:
        >>> cache = CollectionCache(store)
        >>> handle = cache.compile(descriptor)
        >>> cache.compile(descriptor) is handle
        True
    """

    def __init__(
        self,
        store: DocumentStore,
        compiler: SchemaCompiler | None = None,
    ) -> None:
        """Initialize an empty cache.

        Args:
            store: Store every compiled handle is bound to
            compiler: Schema validation engine (pydantic by default)
        """
        self.store = store
        self.compiler = compiler or PydanticSchemaCompiler()
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def get(self, name: str) -> CacheEntry | None:
        """Cached entry for a collection name, if any."""
        return self._entries.get(name)

    def compile(self, descriptor: SchemaDescriptor) -> CollectionHandle:
        """Get the compiled handle for a descriptor, compiling on miss.

        Args:
            descriptor: Parsed request descriptor

        Returns:
            CollectionHandle bound to the descriptor's collection

        Raises:
            SchemaConfigurationError: If a top-level field is reserved
        """
        with self._lock:
            hit = self._entries.get(descriptor.name)
            if hit is not None and hit.descriptor == descriptor:
                logger.debug(f"Collection cache hit: {descriptor.name}")
                return hit.handle

            if hit is not None:
                del self._entries[descriptor.name]
                logger.info(
                    f"Descriptor changed, recompiling collection: {descriptor.name}",
                    extra={"collection": descriptor.name},
                )

            schema = self.compiler.compile(descriptor)

            for name in schema.field_names:
                if name in RESERVED_FIELDS:
                    raise SchemaConfigurationError(
                        f"Schema must not have top property {name}",
                        collection=descriptor.name,
                        field_name=name,
                    )

            handle = CollectionHandle(descriptor, schema, self.store)
            self._entries[descriptor.name] = CacheEntry(descriptor=descriptor, handle=handle)
            logger.info(
                f"Compiled collection: {descriptor.name} ({len(schema.field_names)} fields)",
                extra={"collection": descriptor.name},
            )
            return handle

    def clear(self) -> None:
        """Drop every entry (for testing only)."""
        with self._lock:
            self._entries.clear()


# Global cache instance
_global_cache: CollectionCache | None = None
_cache_lock = threading.Lock()


def get_collection_cache(store: DocumentStore | None = None) -> CollectionCache:
    """Get the process-wide collection cache.

    The first call must provide the store. Passing a different store later
    replaces the cache, since compiled handles are bound to their store.

    Args:
        store: Store to bind compiled handles to

    Returns:
        Global CollectionCache instance

    Raises:
        RuntimeError: If no cache exists yet and no store was given
    """
    global _global_cache
    with _cache_lock:
        if store is not None and (_global_cache is None or _global_cache.store is not store):
            _global_cache = CollectionCache(store)
        if _global_cache is None:
            raise RuntimeError("Collection cache is not initialized")
        return _global_cache


def reset_collection_cache() -> None:
    """Reset the global cache (for testing only)."""
    global _global_cache
    with _cache_lock:
        _global_cache = None
