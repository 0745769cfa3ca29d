"""
test_cli.py - Tests for the shop-sync command line.
"""

from typer.testing import CliRunner

from shop_sync.cli.main import app
from shop_sync.outbox.queue import Outbox
from shop_sync.store.local_store import LocalStore

runner = CliRunner()


class TestCLI:
    """Tests for commands that only touch the local store."""

    def test_init_with_seed(self, db_path):
        result = runner.invoke(app, ["init", "--db", db_path, "--seed"])

        assert result.exit_code == 0
        assert "Local store ready" in result.output
        with LocalStore(db_path) as store:
            assert store.get("customers")

    def test_seed_twice(self, db_path):
        runner.invoke(app, ["seed", "--db", db_path])
        result = runner.invoke(app, ["seed", "--db", db_path])

        assert result.exit_code == 0
        assert "already populated" in result.output

    def test_status(self, db_path):
        with LocalStore(db_path) as store:
            Outbox(store).enqueue("customers", "upsert", {"id": "c1"})

        result = runner.invoke(app, ["status", "--db", db_path])

        assert result.exit_code == 0
        assert "Sync Status" in result.output
        assert "Never synced" in result.output

    def test_outbox_lists_pending(self, db_path):
        with LocalStore(db_path) as store:
            Outbox(store).enqueue("customers", "delete", {"id": "c1"})

        result = runner.invoke(app, ["outbox", "--db", db_path])

        assert result.exit_code == 0
        assert "Pending changes" in result.output

    def test_sync_without_settings_fails(self, db_path, monkeypatch):
        monkeypatch.delenv("SHOP_SYNC_REMOTE_URL", raising=False)
        monkeypatch.delenv("SHOP_SYNC_REMOTE_KEY", raising=False)
        monkeypatch.delenv("SHOP_SYNC_PUBLISHABLE_KEY", raising=False)

        result = runner.invoke(app, ["sync", "--db", db_path])

        assert result.exit_code == 1
        assert "Sync failed" in result.output
