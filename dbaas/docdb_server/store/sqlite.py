"""
SQLite-backed document store for DocDB.

All collections share one SQLite database file. Each document is stored as
a JSON body keyed by (collection, doc_id); filter/sort evaluation runs in
Python over the collection's rows (see store.matching), with identity
lookups served by the primary key.

Invariants:
    - One connection is opened at startup and shared by all requests
    - Every find-and-modify runs inside a single BEGIN IMMEDIATE transaction
    - Natural order (no sort) is insertion order
    - Replacing a document keeps its doc_id and its insertion position

How to change safely:
    - Schema migrations must be backward compatible
    - Keep filter semantics in store.matching, not in SQL

Table schema:
    documents:
        - seq INTEGER PRIMARY KEY AUTOINCREMENT (insertion order)
        - collection TEXT
        - doc_id TEXT (32 hex chars)
        - body_json TEXT
        - UNIQUE (collection, doc_id)
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from ..constants import ID_FIELD
from ..errors import StoreError
from . import matching
from .base import Validator, generate_id, parse_hex_id

logger = logging.getLogger(__name__)


class SqliteDocumentStore:
    """DocumentStore implementation on a single SQLite file.

    Example:
        >>> store = SqliteDocumentStore("/var/lib/docdb")
        >>> await store.connect()
        >>> doc = await store.insert_one("people", {"name": "foo"})
        >>> await store.find_one("people", {"_id": doc["_id"]})
        {'name': 'foo', '_id': '...'}
    """

    # SQLite schema version for migrations
    SCHEMA_VERSION = 1

    def __init__(
        self,
        data_dir: str,
        db_filename: str = "documents.db",
        wal_mode: bool = True,
        busy_timeout_ms: int = 5000,
    ) -> None:
        """Initialize the store.

        Args:
            data_dir: Directory for the SQLite database file
            db_filename: Database file name
            wal_mode: Enable SQLite WAL mode
            busy_timeout_ms: SQLite busy timeout
        """
        self.data_dir = Path(data_dir)
        self.db_path = self.data_dir / db_filename
        self.wal_mode = wal_mode
        self.busy_timeout_ms = busy_timeout_ms
        self._conn: sqlite3.Connection | None = None

    @property
    def is_connected(self) -> bool:
        return self._conn is not None

    async def connect(self) -> None:
        if self._conn is not None:
            return

        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute(f"PRAGMA busy_timeout = {self.busy_timeout_ms}")
            if self.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            self._create_schema(conn)
        except (sqlite3.Error, OSError) as e:
            raise StoreError(f"Cannot open document store at {self.db_path}: {e}", "connect") from e

        self._conn = conn
        logger.info(f"Document store connected: {self.db_path}")

    async def close(self) -> None:
        if self._conn is None:
            return
        self._conn.close()
        self._conn = None
        logger.info("Document store closed")

    def parse_id(self, value: Any) -> str:
        return parse_hex_id(value)

    def _create_schema(self, conn: sqlite3.Connection) -> None:
        """Create database schema."""
        conn.executescript("""
            -- Schema version tracking
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY,
                applied_at INTEGER NOT NULL
            );

            CREATE TABLE IF NOT EXISTS documents (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                collection TEXT NOT NULL,
                doc_id TEXT NOT NULL,
                body_json TEXT NOT NULL DEFAULT '{}',
                UNIQUE (collection, doc_id)
            );

            CREATE INDEX IF NOT EXISTS idx_documents_collection
                ON documents(collection, seq);

            -- Record schema version
            INSERT OR IGNORE INTO schema_version (version, applied_at)
            VALUES (1, strftime('%s', 'now') * 1000);
        """)

    @property
    def _connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("Document store is not connected")
        return self._conn

    @contextmanager
    def _transaction(self, operation: str) -> Iterator[sqlite3.Connection]:
        conn = self._connection
        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error as e:
            raise StoreError(f"{operation} failed: {e}", operation) from e
        try:
            yield conn
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            conn.execute("ROLLBACK")
            raise StoreError(f"{operation} failed: {e}", operation) from e
        except Exception:
            conn.execute("ROLLBACK")
            raise

    def _load(self, conn: sqlite3.Connection, collection: str, filters: dict[str, Any]) -> list[dict[str, Any]]:
        """Candidate documents for a filter, in insertion order."""
        doc_id = filters.get(ID_FIELD) if filters else None
        try:
            if isinstance(doc_id, str):
                cursor = conn.execute(
                    "SELECT body_json FROM documents WHERE collection = ? AND doc_id = ?",
                    (collection, doc_id),
                )
            else:
                cursor = conn.execute(
                    "SELECT body_json FROM documents WHERE collection = ? ORDER BY seq",
                    (collection,),
                )
            return [json.loads(row["body_json"]) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise StoreError(f"Query on {collection} failed: {e}", "find") from e

    def _first_match(
        self,
        conn: sqlite3.Connection,
        collection: str,
        filters: dict[str, Any],
    ) -> dict[str, Any] | None:
        found = matching.select(self._load(conn, collection, filters), filters, limit=1)
        return found[0] if found else None

    async def insert_one(self, collection: str, document: dict[str, Any]) -> dict[str, Any]:
        stored = dict(document)
        stored[ID_FIELD] = generate_id()

        with self._transaction("insert") as conn:
            conn.execute(
                "INSERT INTO documents (collection, doc_id, body_json) VALUES (?, ?, ?)",
                (collection, stored[ID_FIELD], json.dumps(stored)),
            )

        logger.debug(
            "Inserted document",
            extra={"collection": collection, "doc_id": stored[ID_FIELD]},
        )
        return stored

    async def find(
        self,
        collection: str,
        filters: dict[str, Any],
        sort: dict[str, int] | None = None,
        skip: int = 0,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        documents = self._load(self._connection, collection, filters)
        return matching.select(documents, filters, sort=sort, skip=skip, limit=limit)

    async def find_one(
        self,
        collection: str,
        filters: dict[str, Any],
        sort: dict[str, int] | None = None,
    ) -> dict[str, Any] | None:
        found = await self.find(collection, filters, sort=sort, limit=1)
        return found[0] if found else None

    async def count_documents(self, collection: str, filters: dict[str, Any]) -> int:
        documents = self._load(self._connection, collection, filters)
        return sum(1 for doc in documents if matching.matches(doc, filters))

    async def find_one_and_replace(
        self,
        collection: str,
        filters: dict[str, Any],
        replacement: dict[str, Any],
        validate: Validator | None = None,
    ) -> dict[str, Any] | None:
        with self._transaction("replace") as conn:
            current = self._first_match(conn, collection, filters)
            if current is None:
                return None

            stored = {key: value for key, value in replacement.items() if key != ID_FIELD}
            stored[ID_FIELD] = current[ID_FIELD]
            if validate is not None:
                stored = validate(stored)
            self._write(conn, collection, stored)

        logger.debug(
            "Replaced document",
            extra={"collection": collection, "doc_id": stored[ID_FIELD]},
        )
        return stored

    async def find_one_and_update(
        self,
        collection: str,
        filters: dict[str, Any],
        update: dict[str, Any],
        validate: Validator | None = None,
    ) -> dict[str, Any] | None:
        with self._transaction("update") as conn:
            current = self._first_match(conn, collection, filters)
            if current is None:
                return None

            stored = matching.apply_update(current, update)
            stored[ID_FIELD] = current[ID_FIELD]
            if validate is not None:
                stored = validate(stored)
            self._write(conn, collection, stored)

        logger.debug(
            "Updated document",
            extra={"collection": collection, "doc_id": stored[ID_FIELD]},
        )
        return stored

    async def find_one_and_delete(
        self,
        collection: str,
        filters: dict[str, Any],
    ) -> dict[str, Any] | None:
        with self._transaction("delete") as conn:
            current = self._first_match(conn, collection, filters)
            if current is None:
                return None
            conn.execute(
                "DELETE FROM documents WHERE collection = ? AND doc_id = ?",
                (collection, current[ID_FIELD]),
            )

        logger.debug(
            "Deleted document",
            extra={"collection": collection, "doc_id": current[ID_FIELD]},
        )
        return current

    def _write(self, conn: sqlite3.Connection, collection: str, document: dict[str, Any]) -> None:
        conn.execute(
            "UPDATE documents SET body_json = ? WHERE collection = ? AND doc_id = ?",
            (json.dumps(document), collection, document[ID_FIELD]),
        )

    async def get_stats(self) -> dict[str, int]:
        """Document counts per collection."""
        cursor = self._connection.execute(
            "SELECT collection, COUNT(*) AS n FROM documents GROUP BY collection"
        )
        return {row["collection"]: row["n"] for row in cursor.fetchall()}
