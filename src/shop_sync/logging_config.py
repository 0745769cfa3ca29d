"""
logging_config.py - Structured logging for shop_sync.

Provides:
- JSON log formatter
- SyncLogger with one method per sync event
- configure_logging() for the CLI and API server
"""

import json
import logging
import os

_STANDARD_ATTRS = frozenset({
    'name', 'msg', 'args', 'created', 'filename', 'funcName',
    'levelname', 'levelno', 'lineno', 'module', 'msecs',
    'pathname', 'process', 'processName', 'relativeCreated',
    'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
    'message', 'taskName',
})


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra
        self._hostname = os.environ.get("HOSTNAME", "unknown")

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "hostname": self._hostname,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_extra:
            for key, value in record.__dict__.items():
                if key not in _STANDARD_ATTRS:
                    log_data[key] = value

        return json.dumps(log_data, default=str)


class SyncLogger:
    """
    Structured logger for sync cycles.

    Provides convenience methods for common sync events.
    """

    def __init__(self, name: str = "shop_sync.sync"):
        self._logger = logging.getLogger(name)

    def sync_started(self, remote: str, tables: list[str]) -> None:
        self._logger.info(
            "Sync started",
            extra={"event": "sync_started", "remote": remote, "tables": tables},
        )

    def sync_completed(
        self,
        pushed: int,
        upserted: int,
        deleted: int,
        skipped: list[str],
        duration_ms: float,
    ) -> None:
        self._logger.info(
            f"Sync completed: pushed={pushed}, upserted={upserted}, deleted={deleted}, "
            f"skipped={len(skipped)}",
            extra={
                "event": "sync_completed",
                "pushed": pushed,
                "upserted": upserted,
                "deleted": deleted,
                "skipped": skipped,
                "duration_ms": duration_ms,
            },
        )

    def sync_failed(self, error: str, table: str | None = None) -> None:
        self._logger.error(
            f"Sync failed: {error}",
            extra={"event": "sync_failed", "error": error, "table": table},
        )

    def table_skipped(self, table: str, reason: str) -> None:
        self._logger.warning(
            f"Skipping sync for missing table {table}: {reason}",
            extra={"event": "table_skipped", "table": table, "reason": reason},
        )

    def drain_stopped(self, table: str, change_id: str, error: str, remaining: int) -> None:
        self._logger.warning(
            f"Outbox drain stopped on {table}: {error}",
            extra={
                "event": "drain_stopped",
                "table": table,
                "change_id": change_id,
                "error": error,
                "remaining": remaining,
            },
        )

    def change_dead_lettered(self, table: str, change_id: str, attempts: int) -> None:
        self._logger.error(
            f"Change {change_id} on {table} moved to dead letters",
            extra={
                "event": "change_dead_lettered",
                "table": table,
                "change_id": change_id,
                "attempts": attempts,
            },
        )

    def backfill_completed(self, rows_by_table: dict[str, int], duration_ms: float) -> None:
        self._logger.info(
            f"Backfill completed: {sum(rows_by_table.values())} rows",
            extra={
                "event": "backfill_completed",
                "rows_by_table": rows_by_table,
                "duration_ms": duration_ms,
            },
        )


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    log_file: str | None = None,
) -> None:
    """
    Configure logging for the CLI and API server.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_format: Use JSON formatting on the console
        log_file: Optional log file path (always JSON)
    """
    handlers: list[logging.Handler] = []

    console = logging.StreamHandler()
    if json_format:
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter(
            '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        ))
    handlers.append(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(JSONFormatter())
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True,
    )
