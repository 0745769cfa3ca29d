"""
mapping.py - Declarative table to collection mapping.

A remote table fans out into one or more local collections through
Projections. Adding a collection is a new Projection entry, not new
control flow. BackfillSpecs describe the reverse direction, from local
collections to remote rows.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from shop_sync.store.collections import remove_record, upsert_record
from shop_sync.store.local_store import LocalStore

logger = logging.getLogger(__name__)

Row = dict[str, Any]


def identity(row: Row) -> Row:
    return dict(row)


@dataclass(frozen=True)
class Projection:
    """
    One local collection fed by a remote table.

    Attributes:
        collection: Local store key of the collection
        to_record: Maps a remote row to the collection's record shape
        when: Optional discriminator; rows failing it are not projected
        prepend: New records go to the front of the list
        limit: Keep at most this many records
    """
    collection: str
    to_record: Callable[[Row], Row] = identity
    when: Callable[[Row], bool] | None = None
    prepend: bool = False
    limit: int | None = None

    def applies_to(self, row: Row) -> bool:
        return self.when is None or self.when(row)

    def apply(self, store: LocalStore, row: Row) -> bool:
        if not self.applies_to(row):
            return False
        upsert_record(
            store,
            self.collection,
            self.to_record(row),
            prepend=self.prepend,
            limit=self.limit,
        )
        return True


@dataclass(frozen=True)
class TableSyncSpec:
    """
    How one remote table is reconciled into local collections.

    Deletes remove the id from every projected collection plus any
    listed in also_delete_from.
    """
    table: str
    projections: tuple[Projection, ...]
    also_delete_from: tuple[str, ...] = ()

    @property
    def collections(self) -> tuple[str, ...]:
        seen: dict[str, None] = {}
        for p in self.projections:
            seen.setdefault(p.collection, None)
        for key in self.also_delete_from:
            seen.setdefault(key, None)
        return tuple(seen)

    def upsert(self, store: LocalStore, row: Row) -> int:
        """Apply a remote row; returns how many collections were written."""
        return sum(1 for p in self.projections if p.apply(store, row))

    def delete(self, store: LocalStore, record_id: Any) -> int:
        """Remove record_id everywhere; returns how many collections held it."""
        return sum(1 for key in self.collections if remove_record(store, key, record_id))


@dataclass(frozen=True)
class BackfillSource:
    """A local collection and how its records become remote rows."""
    collection: str
    to_row: Callable[[Row], Row] = identity


@dataclass(frozen=True)
class BackfillSpec:
    """Every local source that backfills one remote table."""
    table: str
    sources: tuple[BackfillSource, ...]

    def rows(self, store: LocalStore, stamp: str) -> list[Row]:
        rows: list[Row] = []
        for source in self.sources:
            for record in store.get(source.collection) or []:
                if not isinstance(record, dict) or record.get("id") is None:
                    logger.warning(
                        "Skipping record without id in %s during backfill", source.collection
                    )
                    continue
                row = source.to_row(record)
                row["updated_at"] = stamp
                rows.append(row)
        return rows


@dataclass
class SyncRegistry:
    """Ordered registry of table specs and backfill specs."""
    _tables: dict[str, TableSyncSpec] = field(default_factory=dict)
    _backfills: dict[str, BackfillSpec] = field(default_factory=dict)

    def register(self, spec: TableSyncSpec) -> None:
        self._tables[spec.table] = spec

    def register_backfill(self, spec: BackfillSpec) -> None:
        self._backfills[spec.table] = spec

    def get(self, table: str) -> TableSyncSpec:
        try:
            return self._tables[table]
        except KeyError:
            raise KeyError(f"No sync spec registered for table {table!r}") from None

    def tables(self) -> list[str]:
        return list(self._tables)

    def specs(self) -> Iterable[TableSyncSpec]:
        return self._tables.values()

    def backfill_specs(self) -> Iterable[BackfillSpec]:
        return self._backfills.values()
