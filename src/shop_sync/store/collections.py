"""
collections.py - Collection views over the local store.

A collection is a named list of records stored as one value.
CollectionView holds the working copy for a caller and persists every
update before returning. There is no locking: two views of the same
key race and the last set() wins.
"""

import logging
from typing import Any, Callable

from shop_sync.outbox.queue import Outbox
from shop_sync.store.local_store import LocalStore

logger = logging.getLogger(__name__)


class CollectionView:
    """Typed working copy of one key in the local store."""

    def __init__(self, store: LocalStore, name: str, initial: Any = None):
        self._store = store
        self._name = name
        self._initial = [] if initial is None else initial
        self._data: Any = self._initial
        self._loaded = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def data(self) -> Any:
        return self._data

    @property
    def loaded(self) -> bool:
        return self._loaded

    def load(self) -> Any:
        """
        Read the current value, adopting the initial value when absent.

        Read failures here are not fatal: they are logged and the view
        falls back to its initial value.
        """
        try:
            value = self._store.get(self._name)
            self._data = self._initial if value is None else value
        except Exception as e:
            logger.warning("Failed to load collection %s, using initial value: %s", self._name, e)
            self._data = self._initial
        finally:
            self._loaded = True
        return self._data

    def update(self, value: Any | Callable[[Any], Any]) -> Any:
        """
        Replace the value, or apply a function of the previous value.

        The in-memory copy changes first; the call returns only after
        the new value has been persisted.
        """
        new_value = value(self._data) if callable(value) else value
        self._data = new_value
        self._store.set(self._name, new_value)
        return new_value


def upsert_record(
    store: LocalStore,
    key: str,
    record: dict[str, Any],
    *,
    merge: bool = False,
    prepend: bool = False,
    limit: int | None = None,
) -> list[dict[str, Any]]:
    """
    Find-or-append a record by id in the collection stored under key.

    Args:
        merge: Shallow-merge into the existing record instead of replacing it
        prepend: Insert new records at the front of the list
        limit: Keep only the first N records after the write
    """
    records = list(store.get(key) or [])
    idx = next((i for i, r in enumerate(records) if r.get("id") == record.get("id")), -1)
    if idx >= 0:
        records[idx] = {**records[idx], **record} if merge else dict(record)
    elif prepend:
        records.insert(0, dict(record))
    else:
        records.append(dict(record))
    if limit is not None:
        records = records[:limit]
    store.set(key, records)
    return records


def remove_record(store: LocalStore, key: str, record_id: Any) -> bool:
    """Remove the record with record_id. Returns True if one was removed."""
    records = store.get(key)
    if not records:
        return False
    kept = [r for r in records if r.get("id") != record_id]
    if len(kept) == len(records):
        return False
    store.set(key, kept)
    return True


class ChangeRecorder:
    """
    Local mutation path: apply to a collection view and queue the
    matching remote change.

    The outbox entry is written before the view. If the process dies
    in between, the queued change still reaches the remote and the next
    pull brings the record back into the collection.
    """

    def __init__(self, outbox: Outbox):
        self._outbox = outbox

    def save(
        self,
        view: CollectionView,
        record: dict[str, Any],
        table: str,
        payload: dict[str, Any] | None = None,
    ) -> None:
        record_id = record.get("id")

        def _apply(records):
            records = list(records or [])
            for i, existing in enumerate(records):
                if existing.get("id") == record_id:
                    records[i] = record
                    return records
            records.append(record)
            return records

        self._outbox.enqueue(table, "upsert", payload if payload is not None else record)
        view.update(_apply)

    def delete(self, view: CollectionView, record_id: Any, table: str) -> None:
        self._outbox.enqueue(table, "delete", {"id": record_id})
        view.update(lambda records: [r for r in (records or []) if r.get("id") != record_id])
