"""
watermark.py - Per-table pull watermarks.

A watermark is the start time of the last successful pull of a table,
stored under "sync:last_<table>". It only ever moves forward.
"""

import logging

from shop_sync.config import EPOCH, WATERMARK_PREFIX
from shop_sync.store.local_store import LocalStore
from shop_sync.utils.clock import parse_iso

logger = logging.getLogger(__name__)


def watermark_key(table: str) -> str:
    return f"{WATERMARK_PREFIX}{table}"


def get_watermark(store: LocalStore, table: str) -> str:
    """The stored watermark, or the epoch for a table never pulled."""
    return store.get(watermark_key(table)) or EPOCH


def set_watermark(store: LocalStore, table: str, value: str) -> str:
    """
    Advance the watermark to value.

    An older value is ignored and the current watermark is returned.
    """
    key = watermark_key(table)
    current = store.get(key)
    if current is not None and parse_iso(value) < parse_iso(current):
        logger.warning(
            "Refusing to move watermark for %s backwards (%s < %s)", table, value, current
        )
        return current
    store.set(key, value)
    return value


def all_watermarks(store: LocalStore) -> dict[str, str]:
    return {
        key[len(WATERMARK_PREFIX):]: store.get(key)
        for key in store.keys(prefix=WATERMARK_PREFIX)
    }
