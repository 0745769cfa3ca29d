"""
connection.py - SQLite database connection management.

Handles connection creation and PRAGMA configuration.
All connections use WAL mode with full synchronous commits.
"""

import logging
import sqlite3
from typing import Any, Callable

from shop_sync.config import SQLITE_PRAGMAS
from shop_sync.errors import DatabaseError

logger = logging.getLogger("shop_sync.db")


def create_connection(db_path: str) -> sqlite3.Connection:
    """
    Create a new SQLite connection with proper configuration.

    Args:
        db_path: Path to SQLite database file

    Returns:
        Configured sqlite3.Connection in autocommit mode

    Raises:
        DatabaseError: If connection fails
    """
    try:
        conn = sqlite3.connect(
            db_path,
            isolation_level=None,  # Autocommit; explicit BEGIN for multi-statement work
            check_same_thread=False,
        )
    except sqlite3.Error as e:
        raise DatabaseError(
            f"Failed to connect to database: {e}",
            operation="connect",
        ) from e

    _apply_pragmas(conn)
    logger.debug("Opened local store at %s", db_path)
    return conn


def _apply_pragmas(conn: sqlite3.Connection) -> None:
    for pragma, value in SQLITE_PRAGMAS.items():
        try:
            conn.execute(f"PRAGMA {pragma} = {value}")
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to set PRAGMA {pragma}: {e}",
                operation="pragma",
                sql=f"PRAGMA {pragma} = {value}",
            ) from e


def execute_in_transaction(
    conn: sqlite3.Connection,
    operation: Callable[[sqlite3.Connection], Any],
) -> Any:
    """
    Execute an operation within an IMMEDIATE transaction.

    Ensures atomicity: all changes commit or all rollback.

    Args:
        conn: SQLite connection
        operation: Callable that performs database operations

    Returns:
        Result of operation

    Raises:
        DatabaseError: If transaction fails
    """
    try:
        conn.execute("BEGIN IMMEDIATE")
        try:
            result = operation(conn)
            conn.execute("COMMIT")
            return result
        except Exception:
            conn.execute("ROLLBACK")
            raise
    except sqlite3.Error as e:
        raise DatabaseError(
            f"Transaction failed: {e}",
            operation="transaction",
        ) from e
