"""
local_store.py - Durable key/value store.

One SQLite file holds every collection, watermark and the outbox.
Each key maps to exactly one current value; a write is a single
autocommitted statement, so it is atomic per key and durable (WAL,
synchronous=FULL) before the call returns.
"""

import logging
import sqlite3
from typing import Any

from shop_sync.db.connection import create_connection
from shop_sync.db.migrations import initialize_store_tables
from shop_sync.errors import DatabaseError
from shop_sync.utils.clock import now_iso
from shop_sync.utils.msgpack_codec import pack_document, unpack_document

logger = logging.getLogger(__name__)


class LocalStore:
    """
    Persistent key/value store backed by SQLite.

    get() never raises for a missing key; it returns the supplied
    default. I/O failures surface as DatabaseError.
    """

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: sqlite3.Connection | None = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    @property
    def db_path(self) -> str:
        return self._db_path

    @property
    def connection(self) -> sqlite3.Connection:
        if self._conn is None:
            conn = create_connection(self._db_path)
            initialize_store_tables(conn)
            self._conn = conn
        return self._conn

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def get(self, key: str, default: Any = None) -> Any:
        try:
            row = self.connection.execute(
                "SELECT value FROM keyval WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read key {key!r}: {e}", operation="get") from e
        if row is None:
            return default
        return unpack_document(row[0])

    def set(self, key: str, value: Any) -> None:
        blob = pack_document(value)
        try:
            self.connection.execute(
                """
                INSERT INTO keyval (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, blob, now_iso()),
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to write key {key!r}: {e}", operation="set") from e

    def delete(self, key: str) -> None:
        try:
            self.connection.execute("DELETE FROM keyval WHERE key = ?", (key,))
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to delete key {key!r}: {e}", operation="delete") from e

    def clear(self) -> None:
        """Remove every key. The outbox is left untouched."""
        try:
            self.connection.execute("DELETE FROM keyval")
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to clear store: {e}", operation="clear") from e
        logger.info("Cleared local store %s", self._db_path)

    def contains(self, key: str) -> bool:
        row = self.connection.execute(
            "SELECT 1 FROM keyval WHERE key = ?", (key,)
        ).fetchone()
        return row is not None

    def keys(self, prefix: str | None = None) -> list[str]:
        if prefix is None:
            rows = self.connection.execute("SELECT key FROM keyval ORDER BY key").fetchall()
        else:
            rows = self.connection.execute(
                "SELECT key FROM keyval WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ).fetchall()
        return [r[0] for r in rows]
