"""
test_sync.py - Tests for the sync coordinator.

These tests drive push and pull against an in-memory remote and check
that local collections converge on the remote state.
"""

import asyncio
import logging

import pytest

from conftest import FixedClock
from shop_sync.config import EPOCH
from shop_sync.errors import RemoteError
from shop_sync.outbox.queue import Outbox
from shop_sync.sync.coordinator import SyncCoordinator
from shop_sync.sync.mapping import Projection, SyncRegistry, TableSyncSpec
from shop_sync.sync.watermark import all_watermarks, get_watermark, set_watermark

T0 = "2024-01-01T00:00:00.000Z"
T1 = "2024-01-01T10:00:00.000Z"
T2 = "2024-01-01T11:00:00.000Z"
T3 = "2024-01-01T12:00:00.000Z"
T4 = "2024-01-01T13:00:00.000Z"


class TestWatermark:
    """Tests for per-table watermarks."""

    def test_defaults_to_epoch(self, store):
        assert get_watermark(store, "customers") == EPOCH

    def test_moves_forward(self, store):
        set_watermark(store, "customers", T1)
        assert set_watermark(store, "customers", T2) == T2
        assert get_watermark(store, "customers") == T2

    def test_never_moves_backwards(self, store):
        set_watermark(store, "customers", T2)
        assert set_watermark(store, "customers", T1) == T2
        assert get_watermark(store, "customers") == T2

    def test_all_watermarks(self, store):
        set_watermark(store, "customers", T1)
        set_watermark(store, "employees", T2)
        assert all_watermarks(store) == {"customers": T1, "employees": T2}


class TestSyncTable:
    """Tests for pulling a single table."""

    def test_pull_applies_rows_and_advances_watermark(self, store, remote):
        remote.add_row("customers", {"id": "c1", "name": "A", "updated_at": T1})
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))

        result = asyncio.run(coordinator.sync_table("customers"))

        assert result.since == EPOCH
        assert result.upserted == 1
        assert store.get("customers") == [{"id": "c1", "name": "A", "updated_at": T1}]
        assert get_watermark(store, "customers") == T2

    def test_watermark_is_time_captured_before_query(self, store, remote):
        clock = FixedClock(T2)
        coordinator = SyncCoordinator(store, remote, clock=clock)

        asyncio.run(coordinator.sync_table("customers"))

        # A row written remotely during the pull is newer than the watermark
        remote.add_row("customers", {"id": "late", "updated_at": T3})
        clock.now = T4
        result = asyncio.run(coordinator.sync_table("customers"))

        assert result.since == T2
        assert result.upserted == 1
        assert get_watermark(store, "customers") == T4

    def test_failed_pull_keeps_watermark(self, store, remote):
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))
        asyncio.run(coordinator.sync_table("customers"))

        remote.failing_selects["customers"] = RemoteError("connection reset", table="customers")
        with pytest.raises(RemoteError):
            asyncio.run(coordinator.sync_table("customers"))

        assert get_watermark(store, "customers") == T1

    def test_later_version_wins(self, store, remote):
        remote.add_row("customers", {"id": "c1", "name": "old", "updated_at": T1})
        remote.add_row("customers", {"id": "c1", "name": "new", "updated_at": T2})
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T3))

        asyncio.run(coordinator.sync_table("customers"))

        records = store.get("customers")
        assert len(records) == 1
        assert records[0]["name"] == "new"

    def test_rows_without_id_are_ignored(self, store, remote):
        remote.add_row("customers", {"id": None, "updated_at": T1})
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))

        result = asyncio.run(coordinator.sync_table("customers"))

        assert result.upserted == 0
        assert store.get("customers") is None

    def test_custom_handlers(self, store, remote):
        remote.add_row("customers", {"id": "c1", "updated_at": T1, "deleted_at": T1})
        upserted, deleted = [], []

        async def on_upsert(row):
            upserted.append(row["id"])

        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))
        asyncio.run(coordinator.sync_table("customers", upsert=on_upsert, delete=deleted.append))

        assert upserted == ["c1"]
        assert deleted == ["c1"]

    def test_unregistered_table(self, store, remote):
        coordinator = SyncCoordinator(store, remote)
        with pytest.raises(KeyError):
            asyncio.run(coordinator.sync_table("nope"))


class TestInventoryProjections:
    """Tests for the inventory fan-out into typed collections."""

    def test_gold_row_lands_in_gold_view(self, store, remote):
        remote.add_row("inventory_items", {
            "id": "g1", "item_type": "gold", "name": "Bar",
            "attributes": {"weight": "10g", "purity": "24K"},
            "price": 100, "updated_at": T1,
        })
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))

        asyncio.run(coordinator.sync_table("inventory_items"))

        assert [r["id"] for r in store.get("inventory_items")] == ["g1"]
        assert store.get("gold_items") == [{
            "id": "g1", "name": "Bar", "weight": "10g", "purity": "24K",
            "price": 100, "image": "",
        }]
        assert store.get("jewelry_items") is None
        assert store.get("stones_items") is None

    def test_tombstone_removes_from_every_view(self, store, remote):
        for key in ("inventory_items", "gold_items", "jewelry_items", "stones_items"):
            store.set(key, [{"id": "x1"}, {"id": "keep"}])
        set_watermark(store, "inventory_items", T2)
        # updated before the watermark, deleted after it
        remote.add_row("inventory_items", {
            "id": "x1", "item_type": "gold", "updated_at": T1, "deleted_at": T3,
        })
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T4))

        result = asyncio.run(coordinator.sync_table("inventory_items"))

        assert result.upserted == 0
        assert result.deleted == 1
        for key in ("inventory_items", "gold_items", "jewelry_items", "stones_items"):
            assert store.get(key) == [{"id": "keep"}]

    def test_invoices_keep_five_most_recent(self, store, remote):
        for i in range(7):
            remote.add_row("pos_invoices", {
                "id": f"INV-{i}", "total": i, "customer_name": "A",
                "updated_at": f"2024-01-01T00:0{i}:00.000Z",
            })
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        asyncio.run(coordinator.sync_table("pos_invoices"))

        invoices = store.get("pos_recentInvoices")
        assert [r["id"] for r in invoices] == ["INV-6", "INV-5", "INV-4", "INV-3", "INV-2"]
        assert invoices[0]["customerName"] == "A"


class TestSyncAll:
    """Tests for the full push-then-pull cycle."""

    def test_pushes_before_pulling(self, store, remote):
        Outbox(store).enqueue("customers", "upsert", {"id": "c1", "updated_at": T1})
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))

        report = asyncio.run(coordinator.sync_all())

        assert remote.calls[0][0] == "upsert"
        assert report.drain.pushed == 1
        # The pushed row comes back in the same cycle's pull
        assert store.get("customers") == [{"id": "c1", "updated_at": T1}]

    def test_visits_tables_in_order(self, store, remote):
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        report = asyncio.run(coordinator.sync_all())

        pulled = [call[1] for call in remote.calls if call[0] == "select_changed"]
        assert pulled == [
            "employees", "craftsmen", "inventory_items",
            "pos_invoices", "customers", "customer_transactions",
        ]
        assert [t.table for t in report.tables] == pulled

    def test_customer_upsert_then_remote_update(self, store, remote):
        """Local c1 "A" is pushed; a later remote edit to "B" is pulled."""
        store.set("customers", [{"id": "c1", "name": "A"}])
        Outbox(store).enqueue("customers", "upsert", {"id": "c1", "name": "A", "updated_at": T1})
        clock = FixedClock(T2)
        coordinator = SyncCoordinator(store, remote, clock=clock)

        asyncio.run(coordinator.sync_all())
        assert remote.current("customers")["c1"]["name"] == "A"

        remote.add_row("customers", {"id": "c1", "name": "B", "updated_at": T3})
        clock.now = T4
        asyncio.run(coordinator.sync_all())

        assert [r["name"] for r in store.get("customers")] == ["B"]

    def test_missing_table_is_skipped(self, store, remote):
        remote.missing_tables.add("craftsmen")
        remote.add_row("customers", {"id": "c1", "updated_at": T1})
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))

        report = asyncio.run(coordinator.sync_all())

        assert report.skipped == ["craftsmen"]
        assert "craftsmen" not in all_watermarks(store)
        assert get_watermark(store, "customers") == T2
        assert store.get("customers") == [{"id": "c1", "updated_at": T1}]

    def test_missing_table_detected_by_message(self, store, remote):
        remote.failing_selects["craftsmen"] = RemoteError(
            'relation "public.craftsmen" does not exist', table="craftsmen"
        )
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        report = asyncio.run(coordinator.sync_all())

        assert report.skipped == ["craftsmen"]

    def test_other_errors_abort_the_cycle(self, store, remote):
        remote.failing_selects["inventory_items"] = RemoteError(
            "connection reset", table="inventory_items"
        )
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        with pytest.raises(RemoteError):
            asyncio.run(coordinator.sync_all())

        marks = all_watermarks(store)
        assert set(marks) == {"employees", "craftsmen"}
        pulled = [call[1] for call in remote.calls if call[0] == "select_changed"]
        assert "customers" not in pulled

    def test_drain_failure_does_not_block_pull(self, store, remote):
        Outbox(store).enqueue("customers", "upsert", {"id": "bad"})
        remote.failing_ids.add("bad")
        remote.add_row("employees", {"id": "e1", "updated_at": T1})
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))

        report = asyncio.run(coordinator.sync_all())

        assert report.drain.stopped
        assert report.drain.remaining == 1
        assert store.get("staff_employees") == [{"id": "e1", "updated_at": T1}]

    def test_push_failure_leaves_watermarks_advancing(self, store, remote):
        set_watermark(store, "customers", T1)
        Outbox(store).enqueue("customers", "upsert", {"id": "c1", "name": "local"})
        remote.failing_ids.add("c1")
        remote.add_row("customers", {"id": "c2", "updated_at": T2})
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T3))

        report = asyncio.run(coordinator.sync_all())

        assert report.drain.failed is not None
        marks = all_watermarks(store)
        assert set(marks) == set(coordinator.registry.tables())
        assert all(value == T3 for value in marks.values())
        assert [r["id"] for r in store.get("customers")] == ["c2"]

    def test_drain_stop_logged_once(self, store, remote, caplog):
        Outbox(store).enqueue("customers", "upsert", {"id": "bad"})
        remote.failing_ids.add("bad")
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T2))

        with caplog.at_level(logging.WARNING, logger="shop_sync"):
            asyncio.run(coordinator.sync_all())

        stops = [r for r in caplog.records if "drain stopped" in r.getMessage()]
        assert len(stops) == 1
        assert stops[0].name == "shop_sync.sync"
        assert stops[0].event == "drain_stopped"
        assert not [r for r in caplog.records if r.name == "shop_sync.outbox.queue"]

    def test_custom_registry(self, store, remote):
        registry = SyncRegistry()
        registry.register(TableSyncSpec("notes", (Projection("notes"), Projection("notes_copy"))))
        remote.add_row("notes", {"id": "n1", "updated_at": T1})
        coordinator = SyncCoordinator(store, remote, registry=registry, clock=FixedClock(T2))

        report = asyncio.run(coordinator.sync_all())

        assert [t.table for t in report.tables] == ["notes"]
        assert store.get("notes") == store.get("notes_copy") == [{"id": "n1", "updated_at": T1}]


class TestBackfill:
    """Tests for the one-shot upload of local collections."""

    def test_single_gold_item(self, store, remote):
        store.set("gold_items", [{"id": "g1", "name": "Bar", "weight": "10g", "purity": "24K", "price": 5}])
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        report = asyncio.run(coordinator.backfill_all())

        assert remote.calls == [(
            "upsert",
            "inventory_items",
            [{
                "id": "g1", "item_type": "gold", "name": "Bar",
                "attributes": {"weight": "10g", "purity": "24K"},
                "price": 5, "image": None, "updated_at": T1,
            }],
            "id",
        )]
        assert report.rows_by_table == {"inventory_items": 1}
        assert all_watermarks(store) == {}

    def test_backfill_leaves_outbox_alone(self, store, remote):
        box = Outbox(store)
        box.enqueue("customers", "upsert", {"id": "c1"})
        store.set("customers", [{"id": "c1", "name": "A", "creditLimit": 10}])
        coordinator = SyncCoordinator(store, remote, outbox=box, clock=FixedClock(T1))

        report = asyncio.run(coordinator.backfill_all())

        assert box.count() == 1
        assert report.total == 1
        row = remote.calls[0][2][0]
        assert row["credit_limit"] == 10
        assert row["status"] == "active"

    def test_remote_error_propagates(self, store, remote):
        store.set("customers", [{"id": "c1", "name": "A"}])
        remote.failing_ids.add("c1")
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        with pytest.raises(RemoteError):
            asyncio.run(coordinator.backfill_all())

        assert all_watermarks(store) == {}

    def test_records_without_id_are_skipped(self, store, remote):
        store.set("stones_items", [{"name": "Opal"}, {"id": "s1", "name": "Ruby"}])
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        report = asyncio.run(coordinator.backfill_all())

        assert report.rows_by_table == {"inventory_items": 1}
        assert remote.calls[0][2][0]["id"] == "s1"

    def test_empty_store_uploads_nothing(self, store, remote):
        report = asyncio.run(SyncCoordinator(store, remote).backfill_all())
        assert remote.calls == []
        assert report.total == 0

    def test_inventory_collects_every_kind(self, store, remote):
        store.set("gold_items", [{"id": "g1"}])
        store.set("jewelry_items", [{"id": "j1"}])
        store.set("stones_items", [{"id": "s1"}])
        coordinator = SyncCoordinator(store, remote, clock=FixedClock(T1))

        asyncio.run(coordinator.backfill_all())

        (_, table, rows, _), = remote.calls
        assert table == "inventory_items"
        assert [(r["id"], r["item_type"]) for r in rows] == [
            ("g1", "gold"), ("j1", "jewelry"), ("s1", "stone"),
        ]
