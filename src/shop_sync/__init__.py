"""
shop_sync - Offline-first data synchronization for the shop manager.

A durable local store is the source of truth for the UI. Local edits
are queued in an outbox and pushed to a remote row store; remote
changes are pulled back per table using last-write-wins timestamps
and soft deletes.
"""

from shop_sync.store.local_store import LocalStore
from shop_sync.store.handle import StoreHandle, get_store, reset_store
from shop_sync.store.collections import CollectionView, ChangeRecorder
from shop_sync.outbox.queue import Outbox, ChangeOp, DrainResult
from shop_sync.remote.base import RemoteStore
from shop_sync.remote.rest import PostgRESTRemote
from shop_sync.sync.coordinator import SyncCoordinator, SyncReport, BackfillReport
from shop_sync.sync.tables import default_registry
from shop_sync.seed import seed_missing
from shop_sync.errors import (
    SyncError,
    DatabaseError,
    ValidationError,
    ConfigurationError,
    RemoteError,
    MissingTableError,
)

__version__ = "0.3.0"
__all__ = [
    # Local store
    "LocalStore",
    "StoreHandle",
    "get_store",
    "reset_store",
    "CollectionView",
    "ChangeRecorder",
    # Outbox
    "Outbox",
    "ChangeOp",
    "DrainResult",
    # Remote
    "RemoteStore",
    "PostgRESTRemote",
    # Sync
    "SyncCoordinator",
    "SyncReport",
    "BackfillReport",
    "default_registry",
    "seed_missing",
    # Errors
    "SyncError",
    "DatabaseError",
    "ValidationError",
    "ConfigurationError",
    "RemoteError",
    "MissingTableError",
]
