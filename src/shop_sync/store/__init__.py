"""
store - Durable local key/value store and collection views.
"""

from shop_sync.store.local_store import LocalStore
from shop_sync.store.handle import StoreHandle, get_store, reset_store
from shop_sync.store.collections import (
    CollectionView,
    ChangeRecorder,
    upsert_record,
    remove_record,
)

__all__ = [
    "LocalStore",
    "StoreHandle",
    "get_store",
    "reset_store",
    "CollectionView",
    "ChangeRecorder",
    "upsert_record",
    "remove_record",
]
