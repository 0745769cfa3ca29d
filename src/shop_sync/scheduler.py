import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from shop_sync.sync.coordinator import SyncCoordinator, SyncReport

logger = logging.getLogger(__name__)


class SyncStatus(Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"
    STOPPED = "stopped"


class SyncScheduler:
    """
    Periodic sync_all() runner.

    Handles:
    - Periodic sync intervals
    - Exponential backoff on failure
    - Manual sync_now() between ticks

    An in-flight cycle is never cancelled; stop() waits for it to finish.
    """

    def __init__(
        self,
        coordinator: SyncCoordinator,
        interval_seconds: float = 60.0,
        max_backoff_seconds: float = 300.0,
        on_status_change: Optional[Callable[[SyncStatus], None]] = None,
        on_sync_complete: Optional[Callable[[SyncReport], None]] = None,
    ):
        self.coordinator = coordinator
        self.interval = interval_seconds
        self.max_backoff = max_backoff_seconds
        self.on_status_change = on_status_change
        self.on_sync_complete = on_sync_complete

        self._status = SyncStatus.STOPPED
        self._failures = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None
        self._lock: Optional[asyncio.Lock] = None
        self.last_report: Optional[SyncReport] = None
        self.last_error: Optional[BaseException] = None

    @property
    def status(self) -> SyncStatus:
        return self._status

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the background loop on the running event loop."""
        if self.running:
            return
        self._stop_event = asyncio.Event()
        self._set_status(SyncStatus.IDLE)
        self._task = asyncio.create_task(self._run_loop())
        logger.info(f"SyncScheduler started (interval={self.interval}s)")

    async def stop(self) -> None:
        """Stop after the current cycle, if any, completes."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None
        self._set_status(SyncStatus.STOPPED)

    async def sync_now(self) -> SyncReport:
        """Run one cycle immediately. Overlapping calls run one after another."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        async with self._lock:
            self._set_status(SyncStatus.SYNCING)
            try:
                report = await self.coordinator.sync_all()
            except Exception as e:
                self.last_error = e
                self._set_status(SyncStatus.ERROR)
                raise
            self.last_report = report
            self.last_error = None
            self._set_status(SyncStatus.IDLE)
            if self.on_sync_complete:
                self.on_sync_complete(report)
            return report

    def next_delay(self) -> float:
        """Interval after success, exponential backoff after failures."""
        if self._failures == 0:
            return self.interval
        return min(self.max_backoff, 2.0 ** (self._failures - 1))

    async def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.sync_now()
                self._failures = 0
            except Exception as e:
                self._failures += 1
                logger.error(f"Sync cycle failed: {e}")
                logger.info(f"Retrying in {self.next_delay()}s...")

            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.next_delay())
            except asyncio.TimeoutError:
                continue

        logger.info("SyncScheduler stopped")

    def _set_status(self, status: SyncStatus) -> None:
        self._status = status
        if self.on_status_change:
            self.on_status_change(status)
