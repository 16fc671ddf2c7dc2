"""
Filter, sort and update evaluation for JSON documents.

Implements the subset of document-store query semantics the service relies on:

Filters:
    {"age": 3}                       equality (arrays match any element)
    {"parent.foo": "a"}              dotted paths, traversing arrays of objects
    {"age": {"$gte": 1, "$lt": 9}}   $eq $ne $gt $gte $lt $lte $in $nin $exists $regex

Updates:
    {"$set": {...}, "$inc": {...}, "$unset": {...}}   dotted paths allowed

Invariants:
    - Evaluation never mutates its inputs
    - Comparison operators only compare numbers with numbers and strings with strings
    - A null equality filter matches missing fields
"""

from __future__ import annotations

import copy
import re
from collections.abc import Iterable
from typing import Any

from ..errors import DocumentValidationError, InvalidQueryError

_MISSING = object()

UPDATE_OPERATORS = frozenset({"$set", "$inc", "$unset"})


def matches(document: dict[str, Any], filters: dict[str, Any] | None) -> bool:
    """Whether a document satisfies every filter."""
    if not filters:
        return True
    for path, condition in filters.items():
        candidates = _resolve(document, path.split("."))
        if _is_operator_map(condition):
            if not all(
                _apply_operator(op, operand, candidates) for op, operand in condition.items()
            ):
                return False
        elif not _equals_any(candidates, condition):
            return False
    return True


def select(
    documents: Iterable[dict[str, Any]],
    filters: dict[str, Any] | None = None,
    sort: dict[str, int] | None = None,
    skip: int = 0,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """Filter, sort and window a sequence of documents."""
    selected = [doc for doc in documents if matches(doc, filters)]
    if sort:
        selected = sort_documents(selected, sort)
    if skip:
        selected = selected[skip:]
    if limit is not None and limit > 0:
        selected = selected[:limit]
    return selected


def sort_documents(documents: list[dict[str, Any]], sort: dict[str, int]) -> list[dict[str, Any]]:
    """Stable multi-key sort; later keys break ties of earlier ones."""
    ordered = list(documents)
    for path, direction in reversed(list(sort.items())):
        ordered.sort(
            key=lambda doc: _sort_key(_first(_resolve(doc, path.split(".")))),
            reverse=direction < 0,
        )
    return ordered


def compile_pattern(value: Any, parameter: str | None = None) -> re.Pattern[str]:
    """Compile a $regex operand.

    Raises:
        InvalidQueryError: If the operand is not a valid regular expression
    """
    try:
        return re.compile(str(value))
    except re.error as e:
        raise InvalidQueryError(f"Invalid regular expression {value!r}: {e}", parameter=parameter)


def apply_update(document: dict[str, Any], update: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of `document` with $set/$inc/$unset applied.

    Raises:
        InvalidQueryError: If the update uses an unsupported operator
        DocumentValidationError: If $inc targets a non-numeric value
    """
    unknown = [op for op in update if op not in UPDATE_OPERATORS]
    if unknown:
        raise InvalidQueryError(f"Unsupported update operator(s) {unknown}")

    result = copy.deepcopy(document)

    for path, value in (update.get("$set") or {}).items():
        _set_path(result, path, copy.deepcopy(value))

    for path, amount in (update.get("$inc") or {}).items():
        if not _is_number(amount):
            raise DocumentValidationError(
                f"Cannot increment '{path}' by non-numeric value {amount!r}",
                errors=[f"{path}: increment must be a number"],
            )
        current = _get_path(result, path)
        if current is _MISSING or current is None:
            current = 0
        if not _is_number(current):
            raise DocumentValidationError(
                f"Cannot increment non-numeric field '{path}'",
                errors=[f"{path}: current value is not a number"],
            )
        _set_path(result, path, current + amount)

    for path in update.get("$unset") or {}:
        _unset_path(result, path)

    return result


def _is_operator_map(condition: Any) -> bool:
    return isinstance(condition, dict) and bool(condition) and all(
        str(key).startswith("$") for key in condition
    )


def _resolve(value: Any, parts: list[str]) -> list[Any]:
    """All values reachable at a path, expanding arrays of objects."""
    if not parts:
        return [value]

    head, rest = parts[0], parts[1:]
    if isinstance(value, dict):
        if head not in value:
            return [_MISSING]
        return _resolve(value[head], rest)

    if isinstance(value, list):
        if head.isdigit():
            index = int(head)
            return _resolve(value[index], rest) if index < len(value) else [_MISSING]
        found = []
        for item in value:
            if isinstance(item, (dict, list)):
                found.extend(v for v in _resolve(item, parts) if v is not _MISSING)
        return found or [_MISSING]

    return [_MISSING]


def _first(candidates: list[Any]) -> Any:
    return candidates[0] if candidates else _MISSING


def _expand(candidates: list[Any]) -> list[Any]:
    """Candidates plus the elements of array candidates."""
    expanded = []
    for candidate in candidates:
        expanded.append(candidate)
        if isinstance(candidate, list):
            expanded.extend(candidate)
    return expanded


def _equals_any(candidates: list[Any], expected: Any) -> bool:
    for candidate in _expand(candidates):
        if candidate is _MISSING:
            if expected is None:
                return True
            continue
        if _equals(candidate, expected):
            return True
    return False


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        return type(actual) is type(expected) and actual == expected
    return actual == expected


def _apply_operator(op: str, operand: Any, candidates: list[Any]) -> bool:
    if op == "$eq":
        return _equals_any(candidates, operand)
    if op == "$ne":
        return not _equals_any(candidates, operand)
    if op == "$in":
        return any(_equals_any(candidates, item) for item in _as_list(operand))
    if op == "$nin":
        return not any(_equals_any(candidates, item) for item in _as_list(operand))
    if op == "$exists":
        present = any(candidate is not _MISSING for candidate in candidates)
        return present == _truthy(operand)
    if op == "$regex":
        pattern = compile_pattern(operand)
        return any(
            isinstance(candidate, str) and pattern.search(candidate) is not None
            for candidate in _expand(candidates)
        )
    if op in ("$gt", "$gte", "$lt", "$lte"):
        return any(_compare(op, candidate, operand) for candidate in _expand(candidates))
    raise InvalidQueryError(f"Unsupported filter operator {op}")


def _compare(op: str, actual: Any, operand: Any) -> bool:
    if _is_number(actual) and _is_number(operand):
        pass
    elif isinstance(actual, str) and isinstance(operand, str):
        pass
    else:
        return False

    if op == "$gt":
        return actual > operand
    if op == "$gte":
        return actual >= operand
    if op == "$lt":
        return actual < operand
    return actual <= operand


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in ("", "0", "false", "no")
    return bool(value)


def _as_list(value: Any) -> list[Any]:
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _sort_key(value: Any) -> tuple[int, Any]:
    # missing/null < numbers < strings < objects < arrays < booleans
    if value is _MISSING or value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (5, value)
    if _is_number(value):
        return (1, value)
    if isinstance(value, str):
        return (2, value)
    if isinstance(value, dict):
        return (3, str(sorted(value.items())))
    if isinstance(value, list):
        return (4, str(value))
    return (6, str(value))


def _get_path(document: dict[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _MISSING
    return current


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current: Any = document
    for depth, part in enumerate(parts):
        last = depth == len(parts) - 1
        if isinstance(current, list):
            index = _list_index(current, part, path)
            if last:
                current[index] = value
            elif isinstance(current[index], (dict, list)):
                current = current[index]
            else:
                current[index] = {}
                current = current[index]
        elif last:
            current[part] = value
        else:
            nested = current.get(part)
            if not isinstance(nested, (dict, list)):
                nested = {}
                current[part] = nested
            current = nested


def _list_index(items: list[Any], part: str, path: str) -> int:
    """Position addressed by a path segment inside an array."""
    if not part.isdigit():
        raise DocumentValidationError(
            f"Cannot address array element '{part}' in '{path}'",
            errors=[f"{path}: '{part}' is not an array index"],
        )
    index = int(part)
    if index >= len(items):
        raise DocumentValidationError(
            f"Array index {index} out of range in '{path}'",
            errors=[f"{path}: index {index} is past the end of the array"],
        )
    return index


def _unset_path(document: dict[str, Any], path: str) -> None:
    parts = path.split(".")
    parent = _get_path(document, ".".join(parts[:-1])) if len(parts) > 1 else document
    if isinstance(parent, dict):
        parent.pop(parts[-1], None)
