"""
conftest.py - pytest fixtures for shop_sync tests.
"""

import os
import tempfile
from typing import Any

import pytest

from shop_sync.errors import MissingTableError, RemoteError
from shop_sync.outbox.queue import Outbox
from shop_sync.remote.base import RemoteStore
from shop_sync.store.local_store import LocalStore
from shop_sync.utils.clock import parse_iso


class FakeRemote(RemoteStore):
    """
    In-memory row store recording every call.

    rows[table] is the write history; select_changed returns every
    version newer than the watermark, like a table that was updated
    several times between pulls. Writes for failing_ids fail like a
    network outage; writes for rejected_ids get a 400 response.
    """

    def __init__(self):
        self.rows: dict[str, list[dict[str, Any]]] = {}
        self.calls: list[tuple] = []
        self.missing_tables: set[str] = set()
        self.failing_ids: set[Any] = set()
        self.rejected_ids: set[Any] = set()
        self.failing_selects: dict[str, Exception] = {}

    @property
    def name(self) -> str:
        return "fake"

    def add_row(self, table: str, row: dict[str, Any]) -> None:
        self.rows.setdefault(table, []).append(dict(row))

    def current(self, table: str) -> dict[Any, dict[str, Any]]:
        latest: dict[Any, dict[str, Any]] = {}
        for row in self.rows.get(table, []):
            latest[row["id"]] = {**latest.get(row["id"], {}), **row}
        return latest

    def _check_table(self, table: str) -> None:
        if table in self.missing_tables:
            raise MissingTableError(
                f"Could not find the table 'public.{table}' in the schema cache",
                table=table,
                status_code=404,
                code="PGRST205",
            )
        if table in self.failing_selects:
            raise self.failing_selects[table]

    async def select_changed(self, table, since):
        self.calls.append(("select_changed", table, since))
        self._check_table(table)
        since_at = parse_iso(since)
        rows = [r for r in self.rows.get(table, []) if parse_iso(r["updated_at"]) > since_at]
        return sorted(rows, key=lambda r: parse_iso(r["updated_at"]))

    async def select_deleted(self, table, since):
        self.calls.append(("select_deleted", table, since))
        self._check_table(table)
        since_at = parse_iso(since)
        return [
            {"id": r["id"], "deleted_at": r["deleted_at"]}
            for r in self.rows.get(table, [])
            if r.get("deleted_at") and parse_iso(r["deleted_at"]) > since_at
        ]

    def _check_write(self, table: str, record_id: Any) -> None:
        if record_id in self.failing_ids:
            raise RemoteError("network unreachable", table=table)
        if record_id in self.rejected_ids:
            raise RemoteError(
                "new row violates check constraint",
                table=table,
                status_code=400,
                code="23514",
            )

    async def upsert(self, table, rows, on_conflict="id"):
        self.calls.append(("upsert", table, [dict(r) for r in rows], on_conflict))
        for row in rows:
            self._check_write(table, row.get("id"))
        for row in rows:
            self.add_row(table, row)

    async def delete(self, table, record_id):
        self.calls.append(("delete", table, record_id))
        self._check_write(table, record_id)
        self.rows[table] = [r for r in self.rows.get(table, []) if r["id"] != record_id]


class FixedClock:
    """Clock returning whatever now is set to."""

    def __init__(self, now: str):
        self.now = now

    def __call__(self) -> str:
        return self.now


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test databases."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    return os.path.join(temp_dir, "shop.db")


@pytest.fixture
def store(db_path):
    """A fresh LocalStore in a temp directory."""
    store = LocalStore(db_path)
    yield store
    store.close()


@pytest.fixture
def outbox(store):
    return Outbox(store)


@pytest.fixture
def remote():
    return FakeRemote()
