"""
Unit tests for pagination reconciliation.

Tests cover:
- Page/skip inverses for positive limits
- Unlimited (-1) and disabled (0) limits
- Post-query clamping against the total
"""

import pytest

from dbaas.docdb_server.query.pagination import PaginationMeta, paginate, reconcile


class TestPositiveLimit:
    """Tests for limit > 0."""

    @pytest.mark.parametrize("limit", [1, 5, 10, 25])
    @pytest.mark.parametrize("page", [1, 2, 3, 7])
    def test_page_sets_skip(self, page, limit):
        """An explicit page determines skip."""
        meta = reconcile(skip=0, limit=limit, page=page)
        assert meta.skip == (page - 1) * limit
        assert meta.page == page

    @pytest.mark.parametrize("limit", [1, 3, 10])
    @pytest.mark.parametrize("skip", [0, 1, 9, 10, 31])
    def test_skip_sets_page(self, skip, limit):
        """Without a page, page is derived from skip."""
        meta = reconcile(skip=skip, limit=limit)
        assert meta.page == skip // limit + 1
        assert meta.skip == skip

    def test_page_wins_over_skip(self):
        """A page that disagrees with skip takes priority."""
        meta = reconcile(skip=3, limit=5, page=3)
        assert meta.skip == 10
        assert meta.page == 3

    def test_page_below_one_is_ignored(self):
        """page < 1 counts as not supplied."""
        meta = reconcile(skip=10, limit=5, page=0)
        assert meta.skip == 10
        assert meta.page == 3

    def test_negative_skip_is_zero(self):
        """Negative skip is treated as 0."""
        meta = reconcile(skip=-4, limit=5)
        assert meta.skip == 0
        assert meta.page == 1

    def test_npage_rounds_up(self):
        """npage counts a partial last page."""
        assert reconcile(skip=0, limit=10, total=25).npage == 3
        assert reconcile(skip=0, limit=10, total=30).npage == 3
        assert reconcile(skip=0, limit=10, total=0).npage == 0

    def test_pre_query_has_no_totals(self):
        """Before querying, total and npage are unknown."""
        meta = reconcile(skip=0, limit=5, page=3)
        assert meta == PaginationMeta(skip=10, limit=5, total=None, page=3, npage=None)


class TestSpecialLimits:
    """Tests for limit -1 (unlimited) and 0 (disabled)."""

    @pytest.mark.parametrize("skip,page", [(0, None), (7, None), (0, 4), (30, 2)])
    @pytest.mark.parametrize("total", [0, 1, 50])
    def test_unlimited(self, skip, page, total):
        """limit=-1 is always a single first page."""
        meta = reconcile(skip=skip, limit=-1, page=page, total=total)
        assert meta.page == 1
        assert meta.npage == 1
        assert meta.skip == 0

    @pytest.mark.parametrize("skip,page", [(0, None), (7, None), (0, 4)])
    @pytest.mark.parametrize("total", [0, 1, 50])
    def test_disabled(self, skip, page, total):
        """limit=0 disables pagination entirely."""
        meta = reconcile(skip=skip, limit=0, page=page, total=total)
        assert meta.page == 0
        assert meta.npage == 0
        assert meta.skip == 0


class TestPostQueryClamp:
    """Tests for reconciliation against a known total."""

    def test_skip_beyond_total(self):
        """skip > total is clamped and points at the last page."""
        meta = paginate(skip=50, limit=10, page=None, total=25)
        assert meta.skip == 25
        assert meta.page == 3
        assert meta.npage == 3

    def test_page_beyond_total(self):
        """A page past the end also lands on the last page."""
        meta = paginate(skip=0, limit=10, page=9, total=25)
        assert meta.skip == 25
        assert meta.page == 3

    def test_skip_equal_total(self):
        """skip == total points at the last page."""
        meta = paginate(skip=20, limit=10, page=None, total=20)
        assert meta.skip == 20
        assert meta.page == 2

    def test_within_range(self):
        """A window inside the result is left alone."""
        meta = paginate(skip=1, limit=1, page=None, total=3)
        assert meta == PaginationMeta(skip=1, limit=1, total=3, page=2, npage=3)

    def test_to_dict(self):
        """Meta serializes with every key."""
        meta = paginate(skip=0, limit=10, page=1, total=1)
        assert meta.to_dict() == {"skip": 0, "limit": 10, "total": 1, "page": 1, "npage": 1}
