"""
Descriptor CLI tool for DocDB.

Checks schema descriptor files offline, before clients send them:
- check: Parse and compile a descriptor, report reserved-field collisions
- fields: Print declared top-level fields and their defaults as JSON

Usage:
    python -m dbaas.docdb_server.tools.descriptor_cli check people.json
    python -m dbaas.docdb_server.tools.descriptor_cli fields people.json

Invariants:
    - Unusable descriptors cause non-zero exit code
    - Compilation goes through the same cache path as the server
    - No document store is opened

How to change safely:
    - Keep output format stable for CI parsing
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from ..errors import DocDbError
from ..schema import CollectionCache, parse_descriptor
from ..schema.compiler import CompiledSchema
from ..store import InMemoryDocumentStore

logger = logging.getLogger(__name__)


class DescriptorCLI:
    """CLI tool for descriptor files.

    Example:
        >>> cli = DescriptorCLI()
        >>> ok, issues = cli.check("people.json")
        >>> cli.fields("people.json")
        {'name': 'people', 'fields': ['name', 'age'], 'defaults': {}}
    """

    def __init__(self) -> None:
        # Compiles only; the store is never called
        self.cache = CollectionCache(InMemoryDocumentStore())

    def _compile(self, path: str) -> CompiledSchema:
        with open(path) as f:
            raw = f.read()

        descriptor = parse_descriptor(raw)
        if descriptor is None:
            raise DocDbError(
                f"{path} is not a valid descriptor (need a JSON object with a non-empty name)",
                code="INVALID_DESCRIPTOR",
            )
        return self.cache.compile(descriptor).schema

    def check(self, path: str) -> tuple[bool, list[str]]:
        """Check that a descriptor file compiles.

        Args:
            path: Path to descriptor JSON

        Returns:
            Tuple of (is_valid, list_of_issues)
        """
        try:
            self._compile(path)
        except (OSError, DocDbError) as e:
            return False, [str(e)]
        return True, []

    def fields(self, path: str) -> dict[str, Any]:
        """Describe the declared top-level fields.

        Args:
            path: Path to descriptor JSON

        Returns:
            Dictionary with collection name, field names and defaults

        Raises:
            DocDbError: If the descriptor is unusable
        """
        schema = self._compile(path)
        return {
            "name": schema.name,
            "fields": list(schema.field_names),
            "defaults": schema.defaults,
        }


def main() -> None:
    """CLI entry point for descriptor tool."""
    parser = argparse.ArgumentParser(description="DocDB schema descriptor tool")
    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser("check", help="Check that a descriptor compiles")
    check_parser.add_argument("file", help="Path to descriptor JSON")

    fields_parser = subparsers.add_parser("fields", help="Print declared fields as JSON")
    fields_parser.add_argument("file", help="Path to descriptor JSON")

    args = parser.parse_args()
    cli = DescriptorCLI()

    if args.command == "check":
        is_valid, issues = cli.check(args.file)
        if is_valid:
            print(f"{args.file}: OK")
            sys.exit(0)
        print(f"{args.file}: FAILED")
        for issue in issues:
            print(f"  - {issue}")
        sys.exit(1)

    elif args.command == "fields":
        try:
            output = cli.fields(args.file)
        except (OSError, DocDbError) as e:
            print(f"Error: {e}", file=sys.stderr)
            sys.exit(1)
        print(json.dumps(output, indent=2, sort_keys=True, default=str))


if __name__ == "__main__":
    main()
