"""
db - SQLite connection management and local store schema.
"""

from shop_sync.db.connection import create_connection, execute_in_transaction
from shop_sync.db.migrations import initialize_store_tables, get_schema_version

__all__ = [
    "create_connection",
    "execute_in_transaction",
    "initialize_store_tables",
    "get_schema_version",
]
