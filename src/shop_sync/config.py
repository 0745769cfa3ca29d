"""
config.py - Configuration constants for shop_sync.

Module-level values are immutable. Remote connection settings are read
from the environment on demand through RemoteSettings.from_env().
"""

import os
from dataclasses import dataclass
from typing import Final

from shop_sync.errors import ConfigurationError

# Schema version for the local store tables
STORE_SCHEMA_VERSION: Final[int] = 1

# SQLite PRAGMA settings for the local store
# synchronous=FULL makes every committed write durable before set() returns
SQLITE_PRAGMAS: Final[dict[str, str]] = {
    "journal_mode": "WAL",
    "synchronous": "FULL",
    "busy_timeout": "5000",
}

DEFAULT_DB_PATH: Final[str] = "shop_sync.db"
ENV_DB_PATH: Final[str] = "SHOP_SYNC_DB_PATH"

# Watermarks live in the key/value store under "sync:last_<table>"
WATERMARK_PREFIX: Final[str] = "sync:last_"
EPOCH: Final[str] = "1970-01-01T00:00:00Z"

# Outbox actions and lifecycle states
OUTBOX_ACTIONS: Final[frozenset[str]] = frozenset({"upsert", "delete"})
OUTBOX_STATUS_PENDING: Final[str] = "pending"
OUTBOX_STATUS_DEAD: Final[str] = "dead"

# Permanent push failures before an outbox entry is dead-lettered
DEFAULT_MAX_ATTEMPTS: Final[int] = 5

# Rows requested per page when pulling; servers may cap pages lower
DEFAULT_PAGE_SIZE: Final[int] = 1000

# Remote error messages that mean "table not provisioned yet"
MISSING_TABLE_MARKERS: Final[tuple[str, ...]] = ("schema cache", "does not exist")

# Collections the seed step guarantees to be non-empty
REQUIRED_COLLECTIONS: Final[tuple[str, ...]] = (
    "jewelry_items",
    "gold_items",
    "stones_items",
    "craftsmen",
    "staff_employees",
    "customers",
    "pos_recentInvoices",
)

# The POS screen only keeps the most recent invoices locally
RECENT_INVOICE_LIMIT: Final[int] = 5


@dataclass(frozen=True)
class RemoteSettings:
    """Connection settings for the remote row store."""
    url: str
    api_key: str
    schema: str = "public"
    timeout: float = 30.0

    @classmethod
    def from_env(cls) -> "RemoteSettings":
        url = os.environ.get("SHOP_SYNC_REMOTE_URL")
        # Support both key names used by hosted backends
        api_key = os.environ.get("SHOP_SYNC_REMOTE_KEY") or os.environ.get(
            "SHOP_SYNC_PUBLISHABLE_KEY"
        )
        if not url or not api_key:
            raise ConfigurationError(
                "Missing remote settings. Set SHOP_SYNC_REMOTE_URL and "
                "SHOP_SYNC_REMOTE_KEY (or SHOP_SYNC_PUBLISHABLE_KEY).",
                setting="SHOP_SYNC_REMOTE_URL" if not url else "SHOP_SYNC_REMOTE_KEY",
            )
        return cls(
            url=url,
            api_key=api_key,
            schema=os.environ.get("SHOP_SYNC_REMOTE_SCHEMA") or "public",
            timeout=float(os.environ.get("SHOP_SYNC_TIMEOUT", "30")),
        )


def db_path_from_env() -> str:
    return os.environ.get(ENV_DB_PATH, DEFAULT_DB_PATH)
