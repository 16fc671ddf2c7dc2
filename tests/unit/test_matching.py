"""
Unit tests for filter, sort and update evaluation.

Tests cover:
- Equality on scalars, arrays and dotted paths
- Comparison and set operators
- Multi-key sorting and windowing
- $set / $inc / $unset updates, including array index paths
"""

import pytest

from dbaas.docdb_server.errors import DocumentValidationError, InvalidQueryError
from dbaas.docdb_server.store.matching import apply_update, matches, select


class TestMatches:
    """Tests for matches."""

    def test_equality(self):
        """Scalars compare by value."""
        assert matches({"age": 3}, {"age": 3})
        assert not matches({"age": 3}, {"age": 4})

    def test_empty_filter(self):
        """No filters match everything."""
        assert matches({"age": 3}, {})

    def test_bool_is_not_number(self):
        """True does not equal 1."""
        assert not matches({"flag": True}, {"flag": 1})

    def test_array_contains(self):
        """Equality matches any array element."""
        assert matches({"tags": ["a", "b"]}, {"tags": "b"})
        assert matches({"tags": ["a", "b"]}, {"tags": ["a", "b"]})

    def test_dotted_path(self):
        """Dotted paths traverse sub-documents and arrays of objects."""
        document = {"parent": {"foo": "a"}, "items": [{"n": 1}, {"n": 2}]}
        assert matches(document, {"parent.foo": "a"})
        assert matches(document, {"items.n": 2})
        assert not matches(document, {"items.n": 3})

    def test_null_matches_missing(self):
        """A null filter matches missing fields."""
        assert matches({"name": "x"}, {"age": None})

    def test_comparisons(self):
        """Range operators combine."""
        assert matches({"age": 30}, {"age": {"$gte": 18, "$lt": 65}})
        assert not matches({"age": 70}, {"age": {"$gte": 18, "$lt": 65}})

    def test_comparison_needs_same_kind(self):
        """Numbers never compare with strings."""
        assert not matches({"age": 30}, {"age": {"$lt": "100"}})

    def test_in_nin(self):
        """$in and $nin test membership."""
        assert matches({"kind": "a"}, {"kind": {"$in": ["a", "b"]}})
        assert not matches({"kind": "a"}, {"kind": {"$nin": ["a", "b"]}})

    def test_ne(self):
        """$ne excludes equal values."""
        assert matches({"kind": "a"}, {"kind": {"$ne": "b"}})
        assert not matches({"kind": "a"}, {"kind": {"$ne": "a"}})

    def test_exists(self):
        """$exists tests presence."""
        assert matches({"a": 1}, {"a": {"$exists": True}})
        assert matches({"a": 1}, {"b": {"$exists": False}})

    def test_regex(self):
        """$regex searches strings."""
        assert matches({"name": "foobar"}, {"name": {"$regex": "^foo"}})
        assert not matches({"name": "barfoo"}, {"name": {"$regex": "^foo"}})

    def test_invalid_regex(self):
        """A malformed pattern is a query error, not a crash."""
        with pytest.raises(InvalidQueryError):
            matches({"name": "foo"}, {"name": {"$regex": "("}})

    def test_unknown_operator(self):
        """Unknown operators are rejected."""
        with pytest.raises(InvalidQueryError):
            matches({"a": 1}, {"a": {"$where": "x"}})


class TestSelect:
    """Tests for select."""

    DOCS = [
        {"_id": "1", "name": "b", "age": 2},
        {"_id": "2", "name": "a", "age": 2},
        {"_id": "3", "name": "c", "age": 1},
        {"_id": "4", "name": "d"},
    ]

    def test_sort_multi_key(self):
        """Later keys break ties of earlier ones."""
        found = select(self.DOCS, sort={"age": -1, "name": 1})
        assert [doc["_id"] for doc in found] == ["2", "1", "3", "4"]

    def test_missing_sorts_first(self):
        """Missing values sort before numbers."""
        found = select(self.DOCS, sort={"age": 1})
        assert found[0]["_id"] == "4"

    def test_unsorted_keeps_order(self):
        """Without sort, input order is kept."""
        assert [doc["_id"] for doc in select(self.DOCS)] == ["1", "2", "3", "4"]

    def test_skip_limit(self):
        """skip and limit window the result."""
        found = select(self.DOCS, skip=1, limit=2)
        assert [doc["_id"] for doc in found] == ["2", "3"]

    def test_no_limit(self):
        """limit None returns the rest."""
        assert len(select(self.DOCS, skip=1, limit=None)) == 3


class TestApplyUpdate:
    """Tests for apply_update."""

    def test_set_inc_unset(self):
        """All three operators apply together."""
        document = {"_id": "1", "age": 3, "version": 0, "name": "foo"}
        result = apply_update(
            document,
            {"$set": {"age": 4}, "$inc": {"version": 1}, "$unset": {"name": ""}},
        )
        assert result == {"_id": "1", "age": 4, "version": 1}

    def test_does_not_mutate(self):
        """The input document is left untouched."""
        document = {"a": {"b": 1}}
        apply_update(document, {"$set": {"a.b": 2}})
        assert document == {"a": {"b": 1}}

    def test_dotted_set_creates_path(self):
        """$set creates intermediate objects."""
        assert apply_update({}, {"$set": {"parent.foo": "a"}}) == {"parent": {"foo": "a"}}

    def test_inc_missing(self):
        """$inc on a missing field starts from 0."""
        assert apply_update({}, {"$inc": {"x": 2}}) == {"x": 2}

    def test_set_array_element(self):
        """Numeric segments address existing array elements."""
        document = {"tags": ["a", "b"], "items": [{"n": 1}]}
        result = apply_update(document, {"$set": {"tags.1": "c", "items.0.n": 2}})
        assert result == {"tags": ["a", "c"], "items": [{"n": 2}]}

    def test_set_array_bad_segment(self):
        """Non-numeric or out-of-range array segments are validation errors."""
        with pytest.raises(DocumentValidationError):
            apply_update({"tags": ["a"]}, {"$set": {"tags.foo": "y"}})
        with pytest.raises(DocumentValidationError):
            apply_update({"tags": ["a"]}, {"$set": {"tags.5": "y"}})
        with pytest.raises(DocumentValidationError):
            apply_update({"tags": [{"a": 1}]}, {"$set": {"tags.x.a": 2}})
        with pytest.raises(DocumentValidationError):
            apply_update({"tags": ["a"]}, {"$inc": {"tags.3": 1}})

    def test_inc_non_numeric(self):
        """$inc needs a numeric amount and target."""
        with pytest.raises(DocumentValidationError):
            apply_update({"x": 1}, {"$inc": {"x": "1"}})
        with pytest.raises(DocumentValidationError):
            apply_update({"x": "a"}, {"$inc": {"x": 1}})

    def test_unknown_operator(self):
        """Unknown update operators are rejected."""
        with pytest.raises(InvalidQueryError):
            apply_update({}, {"$push": {"tags": "a"}})
