"""
Pagination reconciliation.

Resolves skip/limit/page into one consistent triple. The same rule runs
twice per read:
- before querying, to decide how many documents to skip (total unknown)
- after querying, to describe the result against the true total

Limit semantics:
    -1   no limit, every matching document is returned
     0   pagination disabled, one unpaginated batch
    >0   page size

Invariants:
    - For limit > 0, an explicit page that disagrees with skip wins
    - limit == -1 always yields page=1, npage=1 and ignores skip/page
    - limit == 0 always yields page=0, npage=0 and skip=0
    - With a known total, skip never exceeds total, and skip == total
      points at the last page

Example:
    >>> reconcile(skip=1, limit=1, total=3)
    PaginationMeta(skip=1, limit=1, total=3, page=2, npage=3)
    >>> reconcile(skip=0, limit=5, page=3)
    PaginationMeta(skip=10, limit=5, total=None, page=3, npage=None)
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

UNLIMITED = -1
PAGINATION_DISABLED = 0


@dataclass(frozen=True)
class PaginationMeta:
    """Resolved pagination window.

    Attributes:
        skip: Documents skipped before the window
        limit: Page size (-1 unlimited, 0 disabled)
        total: Matching documents, None before querying
        page: 1-based page number (0 when pagination is disabled)
        npage: Number of pages, None before querying
    """

    skip: int
    limit: int
    total: int | None
    page: int
    npage: int | None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return asdict(self)


def reconcile(
    skip: int,
    limit: int,
    page: int | None = None,
    total: int | None = None,
) -> PaginationMeta:
    """Reconcile a pagination request.

    Args:
        skip: Requested skip (negative treated as 0)
        limit: Page size, -1 or 0 for the special modes
        page: Explicit 1-based page, or None if not supplied
        total: Matching document count, or None before querying

    Returns:
        PaginationMeta with consistent skip/page (and npage if total is known)
    """
    skip = max(skip or 0, 0)
    if page is not None and page < 1:
        page = None

    npage: int | None
    if limit == UNLIMITED:
        skip, page, npage = 0, 1, 1
    elif limit == PAGINATION_DISABLED:
        skip, page, npage = 0, 0, 0
    else:
        skip_page = skip // limit + 1
        if page is not None and page != skip_page:
            # page priority
            skip = (page - 1) * limit
        else:
            page = skip_page
        npage = None if total is None else total // limit + (1 if total % limit else 0)

    if total is not None:
        if skip > total:
            skip = total
        if skip == total:
            page = npage

    return PaginationMeta(skip=skip, limit=limit, total=total, page=page, npage=npage)


def paginate(skip: int, limit: int, page: int | None, total: int) -> PaginationMeta:
    """Post-query pass: describe a fetched result against its total."""
    return reconcile(skip=skip, limit=limit, page=page, total=total)
