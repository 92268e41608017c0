"""Tests for CLI commands."""

from __future__ import annotations

import logging
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from typer.testing import CliRunner

from insights.cli import _setup_logging, app
from insights.config import InsightsSettings, SettingsStore


runner = CliRunner()


@pytest.fixture()
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    root.mkdir()
    notes = {
        "doc1.md": "good project research",
        "doc2.md": "bad project failure",
        "doc3.md": "unrelated topic",
        "doc4.md": "distant subject matter",
    }
    for name, text in notes.items():
        (root / name).write_text(text, encoding="utf-8")
    return root


@pytest.fixture()
def state(tmp_path: Path) -> Path:
    return tmp_path / "state" / "settings.json"


class TestSetupLogging:
    """Tests for _setup_logging helper."""

    def test_setup_logging_verbose(self) -> None:
        """Verbose mode sets DEBUG level."""
        with patch("insights.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=True)
            mock_config.assert_called_once()
            assert mock_config.call_args[1]["level"] == logging.DEBUG

    def test_setup_logging_normal(self) -> None:
        """Normal mode sets INFO level."""
        with patch("insights.cli.logging.basicConfig") as mock_config:
            _setup_logging(verbose=False)
            assert mock_config.call_args[1]["level"] == logging.INFO


class TestIndexCommand:
    """Tests for the index command."""

    def test_index_reports_stats(self, vault: Path, state: Path) -> None:
        result = runner.invoke(app, ["index", "--vault", str(vault), "--state", str(state)])
        assert result.exit_code == 0
        assert "Documents: 4" in result.stdout
        assert "failed: 0" in result.stdout

    def test_missing_vault(self, tmp_path: Path, state: Path) -> None:
        result = runner.invoke(app, ["index", "--vault", str(tmp_path / "nope"), "--state", str(state)])
        assert result.exit_code != 0

    @patch("insights.service.Indexer")
    def test_index_failure_exits_nonzero(self, mock_indexer: MagicMock, vault: Path, state: Path) -> None:
        mock_indexer.return_value.index_store.side_effect = RuntimeError("boom")
        result = runner.invoke(app, ["index", "--vault", str(vault), "--state", str(state)])
        assert result.exit_code == 1
        assert "Indexing failed" in result.stdout


class TestSearchCommand:
    """Tests for the search command."""

    def test_search_shows_results(self, vault: Path, state: Path) -> None:
        result = runner.invoke(app, ["search", "good research", "--vault", str(vault), "--state", str(state)])
        assert result.exit_code == 0
        assert "doc1.md" in result.stdout
        assert "doc3.md" not in result.stdout

    def test_search_no_matches(self, vault: Path, state: Path) -> None:
        result = runner.invoke(app, ["search", "zebra", "--vault", str(vault), "--state", str(state)])
        assert result.exit_code == 0
        assert "No matches found" in result.stdout


class TestRuminateCommand:
    """Tests for the ruminate command."""

    def test_ruminate_nothing_above_threshold(self, vault: Path, state: Path) -> None:
        result = runner.invoke(app, ["ruminate", "--force", "--vault", str(vault), "--state", str(state)])
        assert result.exit_code == 0
        assert "No ruminations right now" in result.stdout

    def test_ruminate_shows_pairs_and_saves_state(self, vault: Path, state: Path) -> None:
        settings = InsightsSettings()
        settings.rumination.min_similarity = 0.05
        SettingsStore(state).save(settings)

        result = runner.invoke(app, ["ruminate", "--force", "--vault", str(vault), "--state", str(state)])

        assert result.exit_code == 0
        assert "doc1 ⇄ doc2" in result.stdout
        assert SettingsStore(state).load().rumination_state.seen_pairs["doc1.md|doc2.md"].count == 1


class TestWebCommand:
    """Tests for the web command."""

    @patch("insights.web.app.configure")
    @patch("uvicorn.run")
    def test_web_starts_uvicorn(self, mock_run: MagicMock, mock_configure: MagicMock, vault: Path, state: Path) -> None:
        result = runner.invoke(app, ["web", "--port", "9000", "--vault", str(vault), "--state", str(state)])

        assert result.exit_code == 0
        mock_configure.assert_called_once()
        assert mock_run.call_args[1]["port"] == 9000
        assert "Starting web API" in result.stdout
