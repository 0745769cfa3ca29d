"""
test_scheduler.py - Tests for the periodic sync runner.
"""

import asyncio

import pytest

from shop_sync.errors import RemoteError
from shop_sync.scheduler import SyncScheduler, SyncStatus
from shop_sync.sync.coordinator import SyncCoordinator


class TestSyncScheduler:
    """Tests for sync_now, status and backoff."""

    def test_sync_now_reports_and_returns_to_idle(self, store, remote):
        statuses = []
        reports = []
        scheduler = SyncScheduler(
            SyncCoordinator(store, remote),
            on_status_change=statuses.append,
            on_sync_complete=reports.append,
        )

        report = asyncio.run(scheduler.sync_now())

        assert statuses == [SyncStatus.SYNCING, SyncStatus.IDLE]
        assert reports == [report]
        assert scheduler.last_report is report
        assert scheduler.last_error is None

    def test_sync_now_failure_sets_error(self, store, remote):
        remote.failing_selects["employees"] = RemoteError("connection reset", table="employees")
        scheduler = SyncScheduler(SyncCoordinator(store, remote))

        with pytest.raises(RemoteError):
            asyncio.run(scheduler.sync_now())

        assert scheduler.status == SyncStatus.ERROR
        assert isinstance(scheduler.last_error, RemoteError)

    def test_backoff_delays(self, store, remote):
        scheduler = SyncScheduler(
            SyncCoordinator(store, remote), interval_seconds=30, max_backoff_seconds=10
        )
        assert scheduler.next_delay() == 30

        delays = []
        for failures in range(1, 7):
            scheduler._failures = failures
            delays.append(scheduler.next_delay())
        assert delays == [1, 2, 4, 8, 10, 10]

    def test_start_and_stop(self, store, remote):
        scheduler = SyncScheduler(SyncCoordinator(store, remote), interval_seconds=60)

        async def run():
            await scheduler.start()
            assert scheduler.running
            # Let the first cycle run
            for _ in range(50):
                if scheduler.last_report is not None:
                    break
                await asyncio.sleep(0.01)
            await scheduler.stop()

        asyncio.run(run())

        assert scheduler.last_report is not None
        assert not scheduler.running
        assert scheduler.status == SyncStatus.STOPPED
