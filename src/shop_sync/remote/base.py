"""
base.py - Abstract base class for remote row stores.

All remote backends must inherit from RemoteStore. Rows are plain
dicts carrying at least id and updated_at; soft-deleted rows also
carry deleted_at.
"""

from abc import ABC, abstractmethod
from typing import Any


class RemoteStore(ABC):
    """
    Generic per-table row store.

    Implementations must provide:
    - Changed-since and deleted-since selects
    - Batched upsert keyed on a conflict column
    - Delete by id
    """

    @abstractmethod
    async def select_changed(self, table: str, since: str) -> list[dict[str, Any]]:
        """
        Rows with updated_at > since, ascending by updated_at.
        """
        pass

    @abstractmethod
    async def select_deleted(self, table: str, since: str) -> list[dict[str, Any]]:
        """
        Tombstones: {id, deleted_at} for rows with deleted_at > since.
        """
        pass

    @abstractmethod
    async def upsert(
        self, table: str, rows: list[dict[str, Any]], on_conflict: str = "id"
    ) -> None:
        """Insert rows, updating existing rows that match on_conflict."""
        pass

    @abstractmethod
    async def delete(self, table: str, record_id: Any) -> None:
        """Delete the row with the given id. Deleting a missing row is not an error."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        pass

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for logging."""
        pass
