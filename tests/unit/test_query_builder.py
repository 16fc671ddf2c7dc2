"""
Unit tests for the query builder.

Tests cover:
- Identity resolution and precedence
- Reserved parameters and filter typing
- Sort coercion
- Limit/skip/page parsing and reconciliation
"""

import pytest

from dbaas.docdb_server.errors import InvalidIdentityError, InvalidQueryError
from dbaas.docdb_server.query import (
    PAGINATION_DISABLED,
    UNLIMITED,
    LiteralValue,
    OperatorExpression,
    QuerySpec,
    build_query,
)
from dbaas.docdb_server.store import generate_id, parse_hex_id


class TestIdentity:
    """Tests for identity resolution."""

    def test_path_identity_wins(self):
        """Path identity takes precedence over id/_id parameters."""
        path_id, param_id = generate_id(), generate_id()

        query = build_query(path_id, {"id": param_id, "_id": param_id}, parse_hex_id)

        assert query.identity == path_id
        assert query.filters == {"_id": LiteralValue(path_id)}
        assert query.is_identity_lookup

    def test_id_parameter(self):
        """id parameter is used when there is no path identity."""
        doc_id = generate_id()
        query = build_query(None, {"id": doc_id}, parse_hex_id)
        assert query.identity == doc_id

    def test_underscore_id_parameter(self):
        """_id parameter is the last fallback."""
        doc_id = generate_id()
        query = build_query(None, {"_id": doc_id}, parse_hex_id)
        assert query.identity == doc_id

    def test_dashed_identity_is_normalized(self):
        """Identities are parsed into the store's native form."""
        doc_id = generate_id()
        dashed = f"{doc_id[:8]}-{doc_id[8:12]}-{doc_id[12:16]}-{doc_id[16:20]}-{doc_id[20:]}"
        assert build_query(dashed, {}, parse_hex_id).identity == doc_id

    def test_invalid_identity(self):
        """Unparsable identity is rejected."""
        with pytest.raises(InvalidIdentityError):
            build_query("not-an-id", {}, parse_hex_id)

    def test_no_identity(self):
        """Without identity the query is a list query."""
        query = build_query(None, {}, parse_hex_id)
        assert query.identity is None
        assert not query.is_identity_lookup


class TestFilters:
    """Tests for filter construction."""

    def test_reserved_parameters_are_not_filters(self):
        """Control parameters never become filters."""
        query = build_query(
            None,
            {"sort": {"name": "1"}, "skip": "1", "limit": "2", "page": "1", "name": "x"},
            parse_hex_id,
        )
        assert query.filters == {"name": LiteralValue("x")}

    def test_operator_expression(self):
        """Mappings of $-keys become operator expressions."""
        query = build_query(None, {"age": {"$lt": "100", "$gte": "1"}}, parse_hex_id)
        assert query.filters["age"] == OperatorExpression({"$lt": "100", "$gte": "1"})

    def test_sub_document_literal(self):
        """Mappings without $-keys are literal sub-document matches."""
        query = build_query(None, {"parent": {"foo": "a"}}, parse_hex_id)
        assert query.filters["parent"] == LiteralValue({"foo": "a"})

    def test_unknown_operator(self):
        """Unsupported operators are rejected."""
        with pytest.raises(InvalidQueryError) as exc_info:
            build_query(None, {"age": {"$where": "1"}}, parse_hex_id)
        assert exc_info.value.parameter == "age"


class TestSort:
    """Tests for sort coercion."""

    def test_directions(self):
        """Numeric and named directions are accepted."""
        query = build_query(
            None,
            {"sort": {"createdAt": "-1", "name": "asc", "age": "1", "x": "DESC"}},
            parse_hex_id,
        )
        assert query.sort == {"createdAt": -1, "name": 1, "age": 1, "x": -1}

    def test_sort_order_is_kept(self):
        """Sort keys keep request order."""
        query = build_query(None, {"sort": {"b": "1", "a": "-1"}}, parse_hex_id)
        assert list(query.sort) == ["b", "a"]

    def test_string_shorthand(self):
        """Comma-separated shorthand with - for descending."""
        query = build_query(None, {"sort": "-createdAt,name"}, parse_hex_id)
        assert query.sort == {"createdAt": -1, "name": 1}

    def test_invalid_direction(self):
        """Unknown directions are rejected."""
        with pytest.raises(InvalidQueryError):
            build_query(None, {"sort": {"name": "up"}}, parse_hex_id)


class TestPaginationParams:
    """Tests for skip/limit/page parsing."""

    @pytest.mark.parametrize("raw", [None, "abc", "-5", ""])
    def test_default_limit(self, raw):
        """Missing, non-numeric and negative limits fall back to the default."""
        params = {} if raw is None else {"limit": raw}
        assert build_query(None, params, parse_hex_id).limit == 10

    def test_custom_default_limit(self):
        """The default page size is configurable."""
        assert build_query(None, {}, parse_hex_id, default_limit=25).limit == 25

    def test_unlimited(self):
        """limit=-1 ignores skip and page."""
        query = build_query(None, {"limit": "-1", "skip": "5", "page": "3"}, parse_hex_id)
        assert (query.limit, query.skip, query.page) == (-1, 0, 1)
        assert query.find_options() == {"sort": {}, "skip": 0, "limit": None}

    def test_disabled(self):
        """limit=0 disables pagination."""
        query = build_query(None, {"limit": "0", "skip": "5"}, parse_hex_id)
        assert (query.limit, query.skip, query.page) == (0, 0, 0)
        assert query.find_options() == {"sort": {}, "skip": 0, "limit": None}

    def test_find_options_window_only_for_positive_limit(self):
        """Only a positive limit passes skip and limit to the store."""
        assert QuerySpec(skip=5, limit=UNLIMITED).find_options()["skip"] == 0
        assert QuerySpec(skip=5, limit=PAGINATION_DISABLED).find_options()["skip"] == 0
        assert QuerySpec(skip=5, limit=2).find_options() == {"sort": {}, "skip": 5, "limit": 2}

    def test_skip_derives_page(self):
        """skip=1&limit=1 is page 2."""
        query = build_query(None, {"skip": "1", "limit": "1"}, parse_hex_id)
        assert (query.skip, query.page) == (1, 2)
        assert query.find_options() == {"sort": {}, "skip": 1, "limit": 1}

    def test_page_derives_skip(self):
        """page=3&limit=5 skips 10."""
        query = build_query(None, {"page": "3", "limit": "5"}, parse_hex_id)
        assert (query.skip, query.page) == (10, 3)

    def test_non_numeric_skip(self):
        """Non-numeric skip is 0."""
        assert build_query(None, {"skip": "x"}, parse_hex_id).skip == 0
