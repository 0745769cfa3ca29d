"""
schema.py - Local store table schema definitions.

The keyval table holds every collection, watermark and metadata value.
The change_queue table is the durable outbox.
"""

from typing import Final

# keyval table - one current value per key
KEYVAL_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS keyval (
    key TEXT PRIMARY KEY,
    value BLOB NOT NULL,
    updated_at TEXT NOT NULL
);
"""

# change_queue table - pending remote mutations
CHANGE_QUEUE_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS change_queue (
    -- Insertion order breaks ties between entries created in the same instant
    seq INTEGER PRIMARY KEY AUTOINCREMENT,

    -- Identity (unique, time-ordered)
    id TEXT NOT NULL UNIQUE,

    -- What to do remotely
    table_name TEXT NOT NULL,
    action TEXT NOT NULL CHECK(action IN ('upsert', 'delete')),
    payload BLOB,

    -- Lifecycle
    created_at TEXT NOT NULL,
    attempts INTEGER NOT NULL DEFAULT 0,
    last_error TEXT,
    status TEXT NOT NULL DEFAULT 'pending' CHECK(status IN ('pending', 'dead'))
);
"""

CHANGE_QUEUE_INDICES: Final[str] = """
CREATE INDEX IF NOT EXISTS idx_change_queue_created
ON change_queue(status, created_at, seq);

CREATE INDEX IF NOT EXISTS idx_change_queue_table
ON change_queue(table_name);
"""

# store_metadata table - schema version and similar bookkeeping
STORE_METADATA_SCHEMA: Final[str] = """
CREATE TABLE IF NOT EXISTS store_metadata (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

ALL_SCHEMA_STATEMENTS: Final[tuple[str, ...]] = (
    KEYVAL_SCHEMA,
    CHANGE_QUEUE_SCHEMA,
    CHANGE_QUEUE_INDICES,
    STORE_METADATA_SCHEMA,
)
