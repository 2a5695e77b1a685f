"""Tests for the chat-archive CLI: version, config, index and migrate commands."""

from __future__ import annotations

import importlib
import json

import pytest
from typer.testing import CliRunner

from chatarchive import __version__
from chatarchive.cli.app import app
from chatarchive.core.errors import StoreUnavailableError
from chatarchive.migration.backfill import MigrationReport, ScopeReport, ScopeStatus
from chatarchive.store.elasticsearch import ElasticsearchStore
from tests._support.fakes import FakeDocumentStore, make_record

runner = CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup(monkeypatch):
    # chatarchive.cli re-exports the Typer object under the module name "app"
    app_module = importlib.import_module("chatarchive.cli.app")
    monkeypatch.setattr(app_module, "configure_logging", lambda **kwargs: None)


class _IndexAdmin:
    def __init__(self, exists: bool) -> None:
        self.exists = exists
        self.closed = False

    async def ensure_index(self, index: str) -> bool:
        return not self.exists

    async def close(self) -> None:
        self.closed = True


def _use_store(monkeypatch, store) -> None:
    monkeypatch.setattr(ElasticsearchStore, "from_settings", classmethod(lambda cls, settings: store))


class TestRoot:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"chat-archive {__version__}" in result.output

    def test_no_args_shows_help(self):
        result = runner.invoke(app, [])
        assert "migrate" in result.output

    def test_callback_configures_logging_from_settings(self, monkeypatch):
        calls = []
        app_module = importlib.import_module("chatarchive.cli.app")
        monkeypatch.setattr(app_module, "configure_logging", lambda **kwargs: calls.append(kwargs))
        monkeypatch.setenv("ARCHIVE_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("ARCHIVE_LOG_FORMAT", "json")

        result = runner.invoke(app, ["config", "validate"])

        assert result.exit_code == 0
        assert calls == [{"level": "DEBUG", "json_format": True}]

    def test_invalid_config_exits_1(self, monkeypatch):

        monkeypatch.setenv("ARCHIVE_INDEXER__BATCH_SIZE", "0")
        result = runner.invoke(app, ["config", "validate"])
        assert result.exit_code == 1
        assert "Configuration error" in result.output


class TestConfig:
    def test_validate(self):
        result = runner.invoke(app, ["config", "validate"])
        assert result.exit_code == 0
        assert "Configuration OK" in result.output

    def test_show_json_masks_secrets(self, monkeypatch):
        monkeypatch.setenv("ARCHIVE_ELASTICSEARCH__PASSWORD", "hunter2")
        monkeypatch.setenv("ARCHIVE_MIGRATION__BATCH_SIZE", "250")
        result = runner.invoke(app, ["config", "show", "--format", "json"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["migration"]["batch_size"] == 250
        assert data["elasticsearch"]["password"] != "hunter2"
        assert "hunter2" not in result.stdout

    def test_show_table(self):
        result = runner.invoke(app, ["config", "show"])
        assert result.exit_code == 0
        assert "telegram_messages" in result.output


class TestIndex:
    def test_created(self, monkeypatch):
        admin = _IndexAdmin(exists=False)
        _use_store(monkeypatch, admin)
        result = runner.invoke(app, ["index", "ensure"])
        assert result.exit_code == 0
        assert "Created index telegram_messages" in result.output
        assert admin.closed

    def test_already_exists(self, monkeypatch):
        _use_store(monkeypatch, _IndexAdmin(exists=True))
        result = runner.invoke(app, ["index", "ensure"])
        assert "Index telegram_messages already exists" in result.output


def _report(dry_run: bool) -> MigrationReport:
    report = MigrationReport(dry_run=dry_run)
    report.scopes.append(
        ScopeReport(chat_id=-1001, watermark=500, matched=3, accepted=3, batches=1, status=ScopeStatus.COMPLETED)
    )
    report.scopes.append(ScopeReport(chat_id=-1002, watermark=10, status=ScopeStatus.SKIPPED))
    return report


class TestMigrate:
    @pytest.fixture
    def calls(self, monkeypatch):
        seen: list[dict] = []

        async def fake_run_migration(settings, *, dry_run=None, batch_size=None, kind_filter=None):
            seen.append({"dry_run": dry_run, "batch_size": batch_size, "kind_filter": kind_filter})
            return _report(bool(dry_run))

        monkeypatch.setattr("chatarchive.migration.run_migration", fake_run_migration)
        return seen

    def test_run_json(self, calls):
        result = runner.invoke(app, ["migrate", "run", "--dry-run", "-b", "100", "-k", "1", "--json"])
        assert result.exit_code == 0, result.output
        assert calls == [{"dry_run": True, "batch_size": 100, "kind_filter": 1}]
        data = json.loads(result.stdout)
        assert data["dry_run"] is True
        assert data["totals"] == {"scopes": 2, "matched": 3, "accepted": 3, "errors": 0, "batches": 1}
        assert [s["status"] for s in data["scopes"]] == ["completed", "skipped"]

    def test_run_defaults_from_settings(self, calls):
        result = runner.invoke(app, ["migrate", "run"])
        assert result.exit_code == 0, result.output
        assert calls == [{"dry_run": None, "batch_size": None, "kind_filter": None}]
        assert "Total:" in result.output

    def test_store_failure_exits_1(self, monkeypatch):
        async def failing(settings, **kwargs):
            raise StoreUnavailableError("cluster unreachable")

        monkeypatch.setattr("chatarchive.migration.run_migration", failing)
        result = runner.invoke(app, ["migrate", "run"])
        assert result.exit_code == 1
        assert "cluster unreachable" in result.output

    def test_watermarks(self, monkeypatch):
        store = FakeDocumentStore()
        for chat_id, message_id in [(-1002, 40), (-1001, 12), (-1001, 9)]:
            store.put("telegram_messages", make_record(message_id, chat_id=chat_id))
        _use_store(monkeypatch, store)

        result = runner.invoke(app, ["migrate", "watermarks", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.stdout) == [
            {"chat_id": -1002, "watermark": 40},
            {"chat_id": -1001, "watermark": 9},
        ]
        assert store.closed
