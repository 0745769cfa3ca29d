"""
coordinator.py - Sync coordinator.

The SyncCoordinator reconciles the local store with the remote row store:
- Push: drain the outbox
- Pull: per table, apply rows changed since the watermark, then tombstones
- Backfill: one-shot upload of every local collection

A table's watermark advances only after its pull completes, to the
time captured before the first query.
"""

import inspect
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from shop_sync.errors import is_missing_table_error
from shop_sync.logging_config import SyncLogger
from shop_sync.outbox.queue import DrainResult, Outbox
from shop_sync.remote.base import RemoteStore
from shop_sync.store.local_store import LocalStore
from shop_sync.sync.mapping import Row, SyncRegistry
from shop_sync.sync.tables import default_registry
from shop_sync.sync.watermark import get_watermark, set_watermark
from shop_sync.utils.clock import now_iso

logger = logging.getLogger(__name__)

Upserter = Callable[[Row], Awaitable[Any] | Any]
Deleter = Callable[[Any], Awaitable[Any] | Any]


@dataclass(frozen=True)
class TableSyncResult:
    """Outcome of pulling one table."""
    table: str
    since: str
    watermark: str
    upserted: int
    deleted: int


@dataclass
class SyncReport:
    """Outcome of a full push-then-pull cycle."""
    drain: DrainResult
    tables: list[TableSyncResult] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def upserted(self) -> int:
        return sum(t.upserted for t in self.tables)

    @property
    def deleted(self) -> int:
        return sum(t.deleted for t in self.tables)


@dataclass
class BackfillReport:
    """Rows uploaded per table by a backfill."""
    rows_by_table: dict[str, int] = field(default_factory=dict)
    duration_ms: float = 0.0

    @property
    def total(self) -> int:
        return sum(self.rows_by_table.values())


async def _maybe_await(result: Any) -> Any:
    if inspect.isawaitable(result):
        return await result
    return result


class SyncCoordinator:
    """
    Orchestrates push and pull for every registered table.

    Args:
        store: Local store holding collections and watermarks
        remote: Remote row store
        outbox: Change outbox; defaults to one on the same store
        registry: Table mappings; defaults to the shop's tables
        clock: Returns the current time as an ISO-8601 string
    """

    def __init__(
        self,
        store: LocalStore,
        remote: RemoteStore,
        outbox: Outbox | None = None,
        registry: SyncRegistry | None = None,
        clock: Callable[[], str] = now_iso,
    ):
        self._store = store
        self._remote = remote
        self._outbox = outbox or Outbox(store)
        self._registry = registry or default_registry()
        self._clock = clock
        self._log = SyncLogger()

    @property
    def store(self) -> LocalStore:
        return self._store

    @property
    def outbox(self) -> Outbox:
        return self._outbox

    @property
    def registry(self) -> SyncRegistry:
        return self._registry

    async def sync_table(
        self,
        table: str,
        upsert: Upserter | None = None,
        delete: Deleter | None = None,
    ) -> TableSyncResult:
        """
        Pull one table into the local collections.

        upsert/delete default to the registered TableSyncSpec; passing
        them overrides the mapping for this call.
        """
        if upsert is None or delete is None:
            spec = self._registry.get(table)
            upsert = upsert or (lambda row: spec.upsert(self._store, row))
            delete = delete or (lambda record_id: spec.delete(self._store, record_id))

        since = get_watermark(self._store, table)
        # Captured before querying so rows updated mid-pull are fetched next time
        started_at = self._clock()

        rows = await self._remote.select_changed(table, since)
        upserted = 0
        for row in rows:
            if row.get("id") is None:
                logger.warning("Ignoring %s row without id", table)
                continue
            await _maybe_await(upsert(row))
            upserted += 1

        tombstones = await self._remote.select_deleted(table, since)
        deleted = 0
        for row in tombstones:
            if row.get("id") is None:
                continue
            await _maybe_await(delete(row["id"]))
            deleted += 1

        watermark = set_watermark(self._store, table, started_at)
        logger.info(
            "Pulled %s: %d upserted, %d deleted (since %s)", table, upserted, deleted, since
        )
        return TableSyncResult(table, since, watermark, upserted, deleted)

    async def sync_all(self) -> SyncReport:
        """
        Push the outbox, then pull every registered table in order.

        A table that is not provisioned remotely is logged and skipped;
        any other error aborts the cycle and propagates.
        """
        start = time.monotonic()
        tables = self._registry.tables()
        self._log.sync_started(self._remote.name, tables)

        drain = await self._outbox.drain(self._remote)
        if drain.failed is not None:
            self._log.drain_stopped(
                drain.failed.table, drain.failed.id, drain.error or "", drain.remaining
            )
        if drain.dead_lettered is not None:
            self._log.change_dead_lettered(
                drain.dead_lettered.table,
                drain.dead_lettered.id,
                drain.dead_lettered.attempts + 1,
            )

        report = SyncReport(drain=drain)
        for table in tables:
            try:
                report.tables.append(await self.sync_table(table))
            except Exception as e:
                if is_missing_table_error(e):
                    self._log.table_skipped(table, str(e))
                    report.skipped.append(table)
                    continue
                self._log.sync_failed(str(e), table=table)
                raise

        report.duration_ms = (time.monotonic() - start) * 1000
        self._log.sync_completed(
            drain.pushed, report.upserted, report.deleted, report.skipped, report.duration_ms
        )
        return report

    async def backfill_all(self) -> BackfillReport:
        """
        Upload every local collection with upsert-by-id.

        Does not pull, and leaves the outbox and watermarks alone.
        """
        start = time.monotonic()
        report = BackfillReport()
        for spec in self._registry.backfill_specs():
            rows = spec.rows(self._store, self._clock())
            if not rows:
                continue
            await self._remote.upsert(spec.table, rows, on_conflict="id")
            report.rows_by_table[spec.table] = len(rows)

        report.duration_ms = (time.monotonic() - start) * 1000
        self._log.backfill_completed(report.rows_by_table, report.duration_ms)
        return report
