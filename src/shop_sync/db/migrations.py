"""
migrations.py - Local store initialization.

Creates the keyval, change_queue and metadata tables.
"""

import sqlite3

from shop_sync.config import STORE_SCHEMA_VERSION
from shop_sync.db.schema import ALL_SCHEMA_STATEMENTS
from shop_sync.errors import DatabaseError, SchemaVersionError

METADATA_KEY_SCHEMA_VERSION = "schema_version"


def initialize_store_tables(conn: sqlite3.Connection) -> int:
    """
    Create all store tables and record the schema version.

    This is idempotent: can be called multiple times safely.

    Returns:
        The schema version of the store

    Raises:
        DatabaseError: If schema creation fails
        SchemaVersionError: If the file was created by a newer version
    """
    try:
        for statement in ALL_SCHEMA_STATEMENTS:
            # Split multi-statement strings
            for sql in statement.strip().split(";"):
                sql = sql.strip()
                if sql:
                    conn.execute(sql)
    except sqlite3.Error as e:
        raise DatabaseError(
            f"Failed to create store tables: {e}",
            operation="create_tables",
        ) from e

    version = get_schema_version(conn)
    if version is None:
        conn.execute(
            "INSERT INTO store_metadata (key, value) VALUES (?, ?)",
            (METADATA_KEY_SCHEMA_VERSION, str(STORE_SCHEMA_VERSION)),
        )
        return STORE_SCHEMA_VERSION

    if version > STORE_SCHEMA_VERSION:
        raise SchemaVersionError(
            "Local store was created by a newer version of shop_sync",
            expected=STORE_SCHEMA_VERSION,
            actual=version,
        )
    return version


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    row = conn.execute(
        "SELECT value FROM store_metadata WHERE key = ?",
        (METADATA_KEY_SCHEMA_VERSION,),
    ).fetchone()
    return int(row[0]) if row else None
