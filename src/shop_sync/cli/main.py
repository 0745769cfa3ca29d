import asyncio
import os
from typing import Optional

import typer
import uvicorn
from rich.console import Console
from rich.table import Table

from shop_sync.config import ENV_DB_PATH, OUTBOX_STATUS_DEAD, REQUIRED_COLLECTIONS, RemoteSettings, db_path_from_env
from shop_sync.db.migrations import get_schema_version
from shop_sync.errors import SyncError
from shop_sync.logging_config import configure_logging
from shop_sync.outbox.queue import Outbox
from shop_sync.remote.rest import PostgRESTRemote
from shop_sync.seed import seed_missing
from shop_sync.store.local_store import LocalStore
from shop_sync.sync.coordinator import SyncCoordinator
from shop_sync.sync.watermark import all_watermarks

app = typer.Typer(help="Shop sync CLI")
console = Console()

DbPath = typer.Option(None, "--db", help=f"Local store path (env: {ENV_DB_PATH})")


@app.callback()
def _main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Log level"),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit JSON log lines"),
):
    configure_logging(level=log_level, json_format=json_logs)


def _open_store(db_path: Optional[str]) -> LocalStore:
    return LocalStore(db_path or db_path_from_env())


async def _with_coordinator(store: LocalStore, action):
    remote = PostgRESTRemote.from_settings(RemoteSettings.from_env())
    try:
        return await action(SyncCoordinator(store, remote))
    finally:
        await remote.aclose()


@app.command()
def init(
    db_path: Optional[str] = DbPath,
    seed: bool = typer.Option(False, "--seed", help="Fill empty collections with starter data"),
):
    """Create the local store."""
    with _open_store(db_path) as store:
        store.connection
        console.print(f"[green]Local store ready at {store.db_path}[/green]")
        if seed:
            seeded = seed_missing(store)
            console.print(f"Seeded: {', '.join(seeded) or 'nothing'}")


@app.command()
def seed(db_path: Optional[str] = DbPath):
    """Populate absent or empty collections with starter data."""
    with _open_store(db_path) as store:
        seeded = seed_missing(store)
    if seeded:
        console.print(f"[green]Seeded {len(seeded)} collection(s): {', '.join(seeded)}[/green]")
    else:
        console.print("[green]All collections already populated[/green]")


@app.command()
def status(db_path: Optional[str] = DbPath):
    """Show watermarks, outbox depth and collection sizes."""
    with _open_store(db_path) as store:
        outbox = Outbox(store)

        table = Table(title="Sync Status")
        table.add_column("Property", style="cyan")
        table.add_column("Value", style="magenta")
        table.add_row("Database", store.db_path)
        table.add_row("Schema version", str(get_schema_version(store.connection)))
        table.add_row("Pending changes", str(outbox.count()))
        table.add_row("Dead letters", str(outbox.count(OUTBOX_STATUS_DEAD)))
        console.print(table)

        marks = all_watermarks(store)
        wm_table = Table(title="Watermarks")
        wm_table.add_column("Table")
        wm_table.add_column("Last pull")
        for name, value in marks.items():
            wm_table.add_row(name, value)
        if marks:
            console.print(wm_table)
        else:
            console.print("[yellow]Never synced[/yellow]")

        coll_table = Table(title="Collections")
        coll_table.add_column("Collection")
        coll_table.add_column("Records", justify="right")
        for key in REQUIRED_COLLECTIONS:
            coll_table.add_row(key, str(len(store.get(key) or [])))
        console.print(coll_table)


@app.command()
def sync(db_path: Optional[str] = DbPath):
    """Push queued changes, then pull every table."""
    with _open_store(db_path) as store:
        console.print("Syncing...")
        try:
            report = asyncio.run(_with_coordinator(store, lambda c: c.sync_all()))
        except SyncError as e:
            console.print(f"[red]Sync failed: {e}[/red]")
            raise typer.Exit(code=1)

    console.print(
        f"[green]Sync complete[/green]: pushed {report.drain.pushed}, "
        f"upserted {report.upserted}, deleted {report.deleted}"
    )
    if report.drain.failed is not None:
        console.print(
            f"[yellow]{report.drain.remaining} change(s) still queued: {report.drain.error}[/yellow]"
        )
    if report.skipped:
        console.print(f"[yellow]Skipped missing tables: {', '.join(report.skipped)}[/yellow]")


@app.command()
def backfill(db_path: Optional[str] = DbPath):
    """Upload every local collection to a freshly provisioned remote."""
    with _open_store(db_path) as store:
        try:
            report = asyncio.run(_with_coordinator(store, lambda c: c.backfill_all()))
        except SyncError as e:
            console.print(f"[red]Backfill failed: {e}[/red]")
            raise typer.Exit(code=1)

    table = Table(title="Backfill")
    table.add_column("Table")
    table.add_column("Rows", justify="right")
    for name, count in report.rows_by_table.items():
        table.add_row(name, str(count))
    console.print(table)


@app.command()
def outbox(
    db_path: Optional[str] = DbPath,
    dead: bool = typer.Option(False, "--dead", help="List dead letters instead of pending changes"),
    requeue: bool = typer.Option(False, "--requeue", help="Move all dead letters back to pending"),
):
    """Inspect the change outbox."""
    with _open_store(db_path) as store:
        box = Outbox(store)
        if requeue:
            count = box.requeue_dead_letters()
            console.print(f"[green]Requeued {count} change(s)[/green]")
            return

        changes = box.dead_letters() if dead else box.pending()
        if not changes:
            console.print("[green]Outbox is empty[/green]")
            return

        table = Table(title="Dead letters" if dead else "Pending changes")
        table.add_column("ID", style="dim")
        table.add_column("Table", style="cyan")
        table.add_column("Action")
        table.add_column("Record")
        table.add_column("Created")
        table.add_column("Attempts", justify="right")
        table.add_column("Last error")
        for c in changes:
            table.add_row(
                c.id[:12],
                c.table,
                c.action,
                str(c.record_id),
                c.created_at,
                str(c.attempts),
                c.last_error or "",
            )
        console.print(table)


@app.command()
def serve(
    db_path: Optional[str] = DbPath,
    host: str = typer.Option("0.0.0.0", help="Host to bind to"),
    port: int = typer.Option(3001, help="Port to bind to"),
):
    """Start the mobile sync API."""
    if db_path:
        os.environ[ENV_DB_PATH] = db_path
    console.print(f"[bold green]Mobile sync API on http://{host}:{port}/api/sync/[/bold green]")
    uvicorn.run("shop_sync.server.app:app", host=host, port=port)


def main():
    app()


if __name__ == "__main__":
    main()
