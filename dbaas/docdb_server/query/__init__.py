"""
Query module for DocDB server.

This module turns request identity and raw parameters into a QuerySpec:
- Typed filters (LiteralValue / OperatorExpression)
- Sort directions
- Reconciled skip/limit/page (see pagination)
"""

from .builder import (
    FILTER_OPERATORS,
    FilterValue,
    LiteralValue,
    OperatorExpression,
    QuerySpec,
    build_query,
)
from .pagination import PAGINATION_DISABLED, UNLIMITED, PaginationMeta, paginate, reconcile

__all__ = [
    # Builder
    "FILTER_OPERATORS",
    "FilterValue",
    "LiteralValue",
    "OperatorExpression",
    "QuerySpec",
    "build_query",
    # Pagination
    "PAGINATION_DISABLED",
    "UNLIMITED",
    "PaginationMeta",
    "paginate",
    "reconcile",
]
