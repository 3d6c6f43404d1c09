"""Tests for the command-line interface."""

import logging

import pytest
from typer.testing import CliRunner

from concert_sync import __version__
from concert_sync.cli import _init_settings, app
from concert_sync.logging import BASE_LOGGER
from concert_sync.state.store import SyncStore
from concert_sync.types import EntityType, SyncTask

runner = CliRunner()


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the CLI at an empty data directory with no credentials."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    for name in (
        "TICKETMASTER_API_KEY",
        "SPOTIFY_CLIENT_ID",
        "SPOTIFY_CLIENT_SECRET",
        "SETLISTFM_API_KEY",
    ):
        monkeypatch.delenv(name, raising=False)
    return tmp_path / "data"


class TestVersion:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output


class TestStatus:
    """Tests for the status command."""

    def test_no_data(self, data_dir):
        """Status before any sync should say so."""
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 0
        assert "No sync data found" in result.output

    def test_counts_queued_tasks(self, data_dir):
        runner.invoke(app, ["enqueue", "artist", "A1", "-p", "high"])

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0
        assert "Stored Entities" in result.output
        assert "High:" in result.output


class TestEnqueue:
    """Tests for the enqueue command."""

    def test_enqueue(self, data_dir):
        result = runner.invoke(app, ["enqueue", "artist", "A1", "-o", "create", "-p", "high"])

        assert result.exit_code == 0
        assert "Queued" in result.output
        assert "create artist A1" in result.output
        assert "1 tasks pending" in result.output
        assert [t.id for t in SyncStore(data_dir / "concert_sync.db").load_queue()] == ["A1"]

    def test_enqueue_duplicate(self, data_dir):
        runner.invoke(app, ["enqueue", "show", "E1"])

        result = runner.invoke(app, ["enqueue", "show", "E1"])

        assert "Already queued" in result.output
        assert "1 tasks pending" in result.output

    def test_unknown_entity_type(self, data_dir):
        """Entity types outside the supported set should be rejected."""
        result = runner.invoke(app, ["enqueue", "podcast", "P1"])
        assert result.exit_code == 2


class TestReset:
    def test_reset(self, data_dir):
        result = runner.invoke(app, ["reset", "venue", "V1"])
        assert result.exit_code == 0
        assert "Sync state cleared for venue V1." in result.output


class TestSearchArtists:
    def test_missing_api_key(self, data_dir):
        result = runner.invoke(app, ["search-artists", "radiohead"])
        assert result.exit_code == 1
        assert "TICKETMASTER_API_KEY" in result.output


class TestReportDropped:
    """Tests for the report dropped command."""

    def test_no_data(self, data_dir):
        result = runner.invoke(app, ["report", "dropped"])
        assert "No sync data found" in result.output

    def test_nothing_dropped(self, data_dir):
        data_dir.mkdir(parents=True)
        SyncStore(data_dir / "concert_sync.db")

        result = runner.invoke(app, ["report", "dropped"])

        assert "No dropped tasks to report." in result.output

    def test_report_generated(self, data_dir):
        data_dir.mkdir(parents=True)
        store = SyncStore(data_dir / "concert_sync.db")
        store.record_dropped(SyncTask(EntityType.SHOW, "E1", attempts=3), "HTTP 500")

        result = runner.invoke(app, ["report", "dropped", "--format", "json"])

        assert result.exit_code == 0
        assert "Report generated" in result.output
        assert len(list((data_dir / "reports").glob("dropped_tasks_*.json"))) == 1


class TestLoggingSetup:
    """Tests for logging configured from settings."""

    @pytest.fixture
    def fresh_logger(self):
        logger = logging.getLogger(BASE_LOGGER)
        saved = logger.handlers[:]
        logger.handlers.clear()
        yield logger
        for handler in logger.handlers:
            handler.close()
        logger.handlers[:] = saved

    def test_console_level_from_settings(self, data_dir, monkeypatch, fresh_logger):
        """The stderr handler should use the configured console level."""
        monkeypatch.setenv("CONSOLE_LOG_LEVEL", "ERROR")
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")

        settings = _init_settings()

        stream_levels = [
            h.level
            for h in fresh_logger.handlers
            if type(h) is logging.StreamHandler
        ]
        file_levels = [
            h.level for h in fresh_logger.handlers if isinstance(h, logging.FileHandler)
        ]
        assert stream_levels == [logging.ERROR]
        assert file_levels == [logging.DEBUG]
        assert settings.log_path.exists()
