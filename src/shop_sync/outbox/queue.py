"""
queue.py - The change outbox.

Every local edit that must reach the remote store is recorded here
first. Entries are drained in creation order; draining stops at the
first failure so that later edits never overtake an earlier one.
Delivery is at-least-once, so remote upsert/delete must be idempotent.
"""

import logging
import sqlite3
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from shop_sync.config import (
    DEFAULT_MAX_ATTEMPTS,
    OUTBOX_ACTIONS,
    OUTBOX_STATUS_DEAD,
    OUTBOX_STATUS_PENDING,
)
from shop_sync.errors import DatabaseError, ValidationError, is_permanent_failure
from shop_sync.utils.clock import now_iso
from shop_sync.utils.msgpack_codec import pack_document, unpack_document
from shop_sync.utils.uuid7 import new_change_id

if TYPE_CHECKING:
    from shop_sync.remote.base import RemoteStore
    from shop_sync.store.local_store import LocalStore

logger = logging.getLogger(__name__)

_SELECT_COLUMNS = "id, table_name, action, payload, created_at, attempts, last_error, status"


@dataclass(frozen=True, slots=True)
class ChangeOp:
    """
    Immutable representation of a queued change.

    Mirrors a change_queue row. created_at is an ISO-8601 string.
    """
    id: str
    table: str
    action: str
    payload: dict[str, Any] | None
    created_at: str
    attempts: int = 0
    last_error: str | None = None
    status: str = OUTBOX_STATUS_PENDING

    def __post_init__(self) -> None:
        if self.action not in OUTBOX_ACTIONS:
            raise ValidationError(
                f"action must be one of {sorted(OUTBOX_ACTIONS)}, got {self.action}",
                field="action",
                value=self.action,
            )
        if not self.table:
            raise ValidationError("table must not be empty", field="table")
        if not (self.payload and self.payload.get("id") is not None):
            raise ValidationError(
                f"{self.action} change must carry an id in its payload",
                field="payload",
                value=self.payload,
            )

    @property
    def record_id(self) -> Any:
        return self.payload.get("id") if self.payload else None

    def to_item(self) -> dict[str, Any]:
        """The persisted queue item shape."""
        item: dict[str, Any] = {
            "id": self.id,
            "table": self.table,
            "action": self.action,
            "createdAt": self.created_at,
        }
        if self.payload is not None:
            item["payload"] = self.payload
        return item


def _change_from_row(row: tuple) -> ChangeOp:
    return ChangeOp(
        id=row[0],
        table=row[1],
        action=row[2],
        payload=unpack_document(row[3]) if row[3] is not None else None,
        created_at=row[4],
        attempts=row[5],
        last_error=row[6],
        status=row[7],
    )


@dataclass
class DrainResult:
    """Outcome of one drain pass."""
    pushed: int = 0
    remaining: int = 0
    failed: ChangeOp | None = None
    dead_lettered: ChangeOp | None = None
    error: str | None = None

    @property
    def stopped(self) -> bool:
        return self.failed is not None


class Outbox:
    """
    Change outbox stored in the local store's change_queue table.

    Args:
        store: The local store sharing the same SQLite file
        max_attempts: Permanent failures (rejections, not outages) before
            an entry is dead-lettered; None keeps retrying forever
    """

    def __init__(self, store: "LocalStore", max_attempts: int | None = DEFAULT_MAX_ATTEMPTS):
        self._store = store
        self._max_attempts = max_attempts

    @property
    def _conn(self) -> sqlite3.Connection:
        return self._store.connection

    def enqueue(self, table: str, action: str, payload: dict[str, Any] | None = None) -> ChangeOp:
        """
        Append a change. Once this returns the entry is on disk.
        """
        change = ChangeOp(
            id=new_change_id(),
            table=table,
            action=action,
            payload=payload,
            created_at=now_iso(),
        )
        try:
            self._conn.execute(
                """
                INSERT INTO change_queue (id, table_name, action, payload, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    change.id,
                    change.table,
                    change.action,
                    pack_document(payload) if payload is not None else None,
                    change.created_at,
                ),
            )
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to enqueue change: {e}", operation="enqueue") from e
        logger.debug("Queued %s on %s (%s)", action, table, change.id)
        return change

    def pending(self, table: str | None = None) -> list[ChangeOp]:
        """Pending entries in creation order."""
        sql = f"SELECT {_SELECT_COLUMNS} FROM change_queue WHERE status = ?"
        params: list[Any] = [OUTBOX_STATUS_PENDING]
        if table is not None:
            sql += " AND table_name = ?"
            params.append(table)
        sql += " ORDER BY created_at ASC, seq ASC"
        return [_change_from_row(r) for r in self._conn.execute(sql, params).fetchall()]

    def dead_letters(self) -> list[ChangeOp]:
        rows = self._conn.execute(
            f"SELECT {_SELECT_COLUMNS} FROM change_queue WHERE status = ? "
            "ORDER BY created_at ASC, seq ASC",
            (OUTBOX_STATUS_DEAD,),
        ).fetchall()
        return [_change_from_row(r) for r in rows]

    def count(self, status: str = OUTBOX_STATUS_PENDING) -> int:
        row = self._conn.execute(
            "SELECT COUNT(*) FROM change_queue WHERE status = ?", (status,)
        ).fetchone()
        return row[0]

    def remove(self, change_id: str) -> None:
        try:
            self._conn.execute("DELETE FROM change_queue WHERE id = ?", (change_id,))
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to remove change: {e}", operation="remove") from e

    def requeue_dead_letters(self, change_ids: list[str] | None = None) -> int:
        """Move dead entries back to pending with a fresh attempt count."""
        if change_ids is None:
            cursor = self._conn.execute(
                "UPDATE change_queue SET status = ?, attempts = 0, last_error = NULL "
                "WHERE status = ?",
                (OUTBOX_STATUS_PENDING, OUTBOX_STATUS_DEAD),
            )
        else:
            placeholders = ",".join("?" for _ in change_ids)
            cursor = self._conn.execute(
                "UPDATE change_queue SET status = ?, attempts = 0, last_error = NULL "
                f"WHERE status = ? AND id IN ({placeholders})",
                (OUTBOX_STATUS_PENDING, OUTBOX_STATUS_DEAD, *change_ids),
            )
        return cursor.rowcount

    def _record_failure(self, change: ChangeOp, error: Exception) -> ChangeOp | None:
        """
        Count a permanent failure against the entry.

        Transient failures leave the entry as it was. Returns the entry
        if this failure moved it to the dead letters.
        """
        if not is_permanent_failure(error):
            return None

        attempts = change.attempts + 1
        dead = self._max_attempts is not None and attempts >= self._max_attempts
        self._conn.execute(
            "UPDATE change_queue SET attempts = ?, last_error = ?, status = ? WHERE id = ?",
            (
                attempts,
                str(error)[:500],
                OUTBOX_STATUS_DEAD if dead else OUTBOX_STATUS_PENDING,
                change.id,
            ),
        )
        return change if dead else None

    async def drain(self, remote: "RemoteStore") -> DrainResult:
        """
        Push pending entries to the remote store in creation order.

        Each delivered entry is removed. The first failure stops the
        pass and leaves that entry and everything after it queued.
        """
        changes = self.pending()
        result = DrainResult(remaining=len(changes))
        if not changes:
            return result

        for change in changes:
            try:
                if change.action == "delete":
                    await remote.delete(change.table, change.record_id)
                else:
                    await remote.upsert(change.table, [change.payload], on_conflict="id")
            except Exception as e:
                # Stop on first failure to retry next time
                result.failed = change
                result.error = str(e)
                result.dead_lettered = self._record_failure(change, e)
                if result.dead_lettered is not None:
                    result.remaining -= 1
                break
            self.remove(change.id)
            result.pushed += 1
            result.remaining -= 1

        return result
