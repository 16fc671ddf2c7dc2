"""
Query building from request identity and raw parameters.

Raw parameters arrive already decoded from bracket notation, e.g.
`?age[$lt]=100&sort[createdAt]=-1&limit=5` becomes
`{"age": {"$lt": "100"}, "sort": {"createdAt": "-1"}, "limit": "5"}`.

Filters are a small tagged union so the boundary with the store stays typed:
- LiteralValue: equality against a scalar, list or sub-document
- OperatorExpression: mapping of store operators ($lt, $in, ...) to operands

Invariants:
    - Reserved parameters (identity, sort, skip, limit, page) never become filters
    - An explicit path identity takes precedence over id/_id parameters
    - Sort directions are exactly 1 or -1
    - skip/limit/page in a QuerySpec are already reconciled
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from ..constants import (
    DEFAULT_LIMIT,
    ID_FIELD,
    LIMIT_PARAM,
    PAGE_PARAM,
    PUBLIC_ID_FIELD,
    RESERVED_FIELDS,
    SKIP_PARAM,
    SORT_PARAM,
)
from ..errors import InvalidQueryError
from .pagination import UNLIMITED, reconcile

logger = logging.getLogger(__name__)

FILTER_OPERATORS = frozenset(
    {"$eq", "$ne", "$gt", "$gte", "$lt", "$lte", "$in", "$nin", "$exists", "$regex"}
)

_ASCENDING = {"1", "asc", "ascending"}
_DESCENDING = {"-1", "desc", "descending"}


@dataclass(frozen=True)
class LiteralValue:
    """Equality filter operand."""

    value: Any


@dataclass(frozen=True)
class OperatorExpression:
    """Operator filter, e.g. {"$gte": 18, "$lt": 65}."""

    operators: dict[str, Any]


FilterValue = Union[LiteralValue, OperatorExpression]


@dataclass
class QuerySpec:
    """A fully built query.

    Attributes:
        filters: Field -> filter operand
        sort: Field -> 1 (ascending) or -1 (descending)
        skip: Documents to skip
        limit: Page size (-1 unlimited, 0 pagination disabled)
        page: Reconciled 1-based page (0 when disabled)
        identity: Parsed identity for single-document lookups
    """

    filters: dict[str, FilterValue] = field(default_factory=dict)
    sort: dict[str, int] = field(default_factory=dict)
    skip: int = 0
    limit: int = DEFAULT_LIMIT
    page: int = 1
    identity: Any = None

    @property
    def is_identity_lookup(self) -> bool:
        """Whether the query targets a single document by identity."""
        return self.identity is not None

    def find_options(self) -> dict[str, Any]:
        """Sort/skip/limit to pass to the store's find.

        Only a positive page size windows the result. Unlimited and
        disabled pagination both return every match, and reconcile has
        already zeroed skip for them.
        """
        options: dict[str, Any] = {"sort": dict(self.sort), "skip": 0, "limit": None}
        if self.limit > 0:
            options["skip"] = self.skip
            options["limit"] = self.limit
        return options


def build_query(
    identity: Any,
    params: Mapping[str, Any] | None,
    parse_id: Callable[[Any], Any],
    default_limit: int = DEFAULT_LIMIT,
) -> QuerySpec:
    """Build a query from a path identity and raw parameters.

    Args:
        identity: Identity from the request path, or None
        params: Decoded query parameters
        parse_id: Store function turning an identity into its native form
        default_limit: Page size when the request has no usable limit

    Returns:
        QuerySpec with reconciled pagination

    Raises:
        InvalidIdentityError: If the identity cannot be parsed
        InvalidQueryError: If sort or filter operators are malformed
    """
    params = params or {}
    identity = identity or params.get(PUBLIC_ID_FIELD) or params.get(ID_FIELD)

    filters: dict[str, FilterValue] = {}
    for name, value in params.items():
        if name in RESERVED_FIELDS:
            continue
        filters[name] = _filter_value(name, value)

    parsed_id = None
    if identity:
        parsed_id = parse_id(identity)
        filters[ID_FIELD] = LiteralValue(parsed_id)

    sort = _build_sort(params.get(SORT_PARAM))

    limit = _parse_int(params.get(LIMIT_PARAM))
    if limit is None or limit < UNLIMITED:
        limit = default_limit

    skip = _parse_int(params.get(SKIP_PARAM)) or 0
    page = _parse_int(params.get(PAGE_PARAM))

    meta = reconcile(skip=skip, limit=limit, page=page)

    return QuerySpec(
        filters=filters,
        sort=sort,
        skip=meta.skip,
        limit=meta.limit,
        page=meta.page,
        identity=parsed_id,
    )


def _filter_value(name: str, value: Any) -> FilterValue:
    if isinstance(value, Mapping) and any(str(key).startswith("$") for key in value):
        unknown = [key for key in value if key not in FILTER_OPERATORS]
        if unknown:
            raise InvalidQueryError(
                f"Unsupported filter operator(s) {unknown} on '{name}'", parameter=name
            )
        return OperatorExpression(operators=dict(value))
    return LiteralValue(value=value)


def _build_sort(raw: Any) -> dict[str, int]:
    if raw is None or raw == "":
        return {}

    if isinstance(raw, str):
        # "-createdAt,name" shorthand
        sort = {}
        for part in raw.split(","):
            part = part.strip()
            if not part:
                continue
            if part.startswith("-"):
                sort[part[1:]] = -1
            else:
                sort[part.lstrip("+")] = 1
        return sort

    if not isinstance(raw, Mapping):
        raise InvalidQueryError(f"Invalid sort specification: {raw!r}", parameter=SORT_PARAM)

    return {name: _sort_direction(name, direction) for name, direction in raw.items()}


def _sort_direction(name: str, direction: Any) -> int:
    token = str(direction).strip().lower()
    if token in _ASCENDING:
        return 1
    if token in _DESCENDING:
        return -1
    raise InvalidQueryError(
        f"Sort direction for '{name}' must be 1 or -1, got {direction!r}",
        parameter=f"{SORT_PARAM}[{name}]",
    )


def _parse_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    try:
        return int(str(value).strip())
    except ValueError:
        return None
