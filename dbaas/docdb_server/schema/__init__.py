"""
Schema module for DocDB server.

This module turns per-request schema descriptors into compiled collections:
- Descriptor parsing (fails closed, never raises)
- Schema compilation into validation models
- Process-wide cache of compiled collection handles

Invariants:
    - A descriptor is recompiled only when it differs from the cached one
    - Reserved control fields are rejected before any store access

How to change safely:
    - Keep parse_descriptor total: bad input returns None
    - Swap validation engines through the SchemaCompiler protocol only
"""

from .cache import CacheEntry, CollectionCache, get_collection_cache, reset_collection_cache
from .compiler import CompiledSchema, PydanticSchemaCompiler, SchemaCompiler
from .descriptor import SchemaDescriptor, parse_descriptor

__all__ = [
    # Descriptor
    "SchemaDescriptor",
    "parse_descriptor",
    # Compiler
    "CompiledSchema",
    "SchemaCompiler",
    "PydanticSchemaCompiler",
    # Cache
    "CacheEntry",
    "CollectionCache",
    "get_collection_cache",
    "reset_collection_cache",
]
