"""
handle.py - Process-wide store handle.

Exactly one LocalStore is created per handle, on first use. Call sites
receive the store by injection; the module-level default handle is
only used by the CLI and the API server.
"""

import logging
import threading

from shop_sync.config import db_path_from_env
from shop_sync.store.local_store import LocalStore

logger = logging.getLogger(__name__)


class StoreHandle:
    """Lazily creates a single LocalStore, guarded by a lock."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path
        self._store: LocalStore | None = None
        self._lock = threading.Lock()

    def get(self) -> LocalStore:
        store = self._store
        if store is not None:
            return store
        with self._lock:
            if self._store is None:
                path = self._db_path or db_path_from_env()
                store = LocalStore(path)
                # Open eagerly so schema errors surface here, once
                store.connection
                self._store = store
                logger.info("Local store ready at %s", path)
            return self._store

    def reset(self) -> None:
        with self._lock:
            if self._store is not None:
                self._store.close()
            self._store = None


_default_handle = StoreHandle()


def get_store() -> LocalStore:
    return _default_handle.get()


def reset_store(db_path: str | None = None) -> None:
    """Close the default store and optionally point it at another file."""
    global _default_handle
    _default_handle.reset()
    _default_handle = StoreHandle(db_path)
