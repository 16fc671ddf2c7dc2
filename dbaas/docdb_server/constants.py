"""
Shared constants for DocDB Server.

Invariants:
    - RESERVED_FIELDS must never be declared as top-level descriptor properties
    - ID_FIELD is the store-side identity key; PUBLIC_ID_FIELD is its wire name
"""

ID_FIELD = "_id"
PUBLIC_ID_FIELD = "id"

SORT_PARAM = "sort"
SKIP_PARAM = "skip"
LIMIT_PARAM = "limit"
PAGE_PARAM = "page"

# Identity variants plus the pagination/sort control parameters
RESERVED_FIELDS = (ID_FIELD, PUBLIC_ID_FIELD, SORT_PARAM, SKIP_PARAM, LIMIT_PARAM, PAGE_PARAM)

# Fields maintained by the server on every document
VERSION_FIELD = "version"
CREATED_AT_FIELD = "createdAt"
UPDATED_AT_FIELD = "updatedAt"
SYSTEM_FIELDS = (ID_FIELD, VERSION_FIELD, CREATED_AT_FIELD, UPDATED_AT_FIELD)

DEFAULT_LIMIT = 10
