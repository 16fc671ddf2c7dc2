"""
Bracket-notation query string decoding.

    age=3                    {"age": "3"}
    age[$lt]=100             {"age": {"$lt": "100"}}
    sort[createdAt]=-1       {"sort": {"createdAt": "-1"}}
    tags[$in][]=a&tags[$in][]=b
                             {"tags": {"$in": ["a", "b"]}}
    tag=a&tag=b              {"tag": ["a", "b"]}

Values are always strings; casting to field types happens in the
collection handle, where the declared types are known.
"""

from __future__ import annotations

import re
from typing import Any
from urllib.parse import parse_qsl

from ..errors import InvalidQueryError

_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


def decode_query(query: str) -> dict[str, Any]:
    """Decode a raw query string into nested parameters.

    Raises:
        InvalidQueryError: If a key is used both as a value and as an object
    """
    result: dict[str, Any] = {}
    for key, value in parse_qsl(query, keep_blank_values=True):
        path = split_key(key)
        if path:
            _assign(result, key, path, value)
    return result


def split_key(key: str) -> list[str]:
    """Split `a[b][c]` into ["a", "b", "c"].

    Keys that are not well-formed bracket paths are kept whole.
    """
    bracket = key.find("[")
    if bracket <= 0:
        return [key] if key else []

    segments = [key[:bracket]]
    pos = bracket
    for match in _SEGMENT.finditer(key, bracket):
        if match.start() != pos:
            return [key]
        segments.append(match.group(1))
        pos = match.end()
    if pos != len(key):
        return [key]
    return segments


def _assign(target: dict[str, Any], key: str, path: list[str], value: str) -> None:
    append = False
    if len(path) > 1 and path[-1] == "":
        # a[]=x
        path = path[:-1]
        append = True

    *parents, last = path
    node = target
    for name in parents:
        child = node.setdefault(name, {})
        if not isinstance(child, dict):
            raise InvalidQueryError(f"Conflicting query parameter '{key}'", parameter=key)
        node = child

    existing = node.get(last)
    if isinstance(existing, dict):
        raise InvalidQueryError(f"Conflicting query parameter '{key}'", parameter=key)
    if existing is None:
        node[last] = [value] if append else value
    elif isinstance(existing, list):
        existing.append(value)
    else:
        node[last] = [existing, value]
