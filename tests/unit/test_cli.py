"""Tests for the CLI module."""

from __future__ import annotations

import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from stockiq_sync.cli import cli
from stockiq_sync.core.exceptions import ConfigError
from stockiq_sync.prices.models import HistoricalBar


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def sample_bars():
    return [
        HistoricalBar(date=date(2026, 3, 9), open=10.0, high=11.0, low=9.5, close=10.5, volume=1200),
        HistoricalBar(date=date(2026, 3, 10), open=10.5, high=11.2, low=10.1, close=11.0, volume=900),
    ]


@pytest.fixture
def mock_engine(sample_bars, sample_sec_event, sample_trial_event):
    engine = MagicMock()
    engine.get_historical_data = AsyncMock(return_value=sample_bars)
    engine.get_catalyst_events = AsyncMock(return_value=[sample_sec_event, sample_trial_event])
    engine.close = AsyncMock()
    return engine


# ---------------------------------------------------------------------------
# CLI group tests
# ---------------------------------------------------------------------------


class TestCLIGroup:
    def test_help(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "StockIQ Sync" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_unknown_command(self, runner):
        result = runner.invoke(cli, ["nonexistent"])
        assert result.exit_code != 0

    def test_missing_config_file(self, runner, tmp_path):
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yml"), "history", "ACME"])
        assert result.exit_code != 0

    @patch("stockiq_sync.core.load_config")
    def test_invalid_config(self, mock_load, runner):
        mock_load.side_effect = ConfigError("retry.retries must be >= 0")
        result = runner.invoke(cli, ["history", "ACME"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output


# ---------------------------------------------------------------------------
# history command tests
# ---------------------------------------------------------------------------


class TestHistoryCommand:
    def test_history_help(self, runner):
        result = runner.invoke(cli, ["history", "--help"])
        assert result.exit_code == 0
        assert "--days" in result.output

    @patch("stockiq_sync.core.load_config")
    @patch("stockiq_sync.cli._create_engine_async")
    def test_json_output(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["history", "ACME", "--days", "30", "--format", "json"])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert [row["date"] for row in payload] == ["2026-03-09", "2026-03-10"]
        assert payload[0]["close"] == 10.5
        mock_engine.get_historical_data.assert_awaited_once_with("ACME", 30)
        mock_engine.close.assert_awaited_once()

    @patch("stockiq_sync.core.load_config")
    @patch("stockiq_sync.cli._create_engine_async")
    def test_table_output(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["history", "acme"])

        assert result.exit_code == 0, result.output
        assert "ACME" in result.output
        assert "2026-03-10" in result.output
        mock_engine.get_historical_data.assert_awaited_once_with("acme", 90)

    @patch("stockiq_sync.core.load_config")
    @patch("stockiq_sync.cli._create_engine_async")
    def test_no_bars(self, mock_create, mock_load, runner, mock_engine):
        mock_engine.get_historical_data.return_value = []
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["history", "ACME"])

        assert result.exit_code == 0
        assert "No bars available" in result.output

    def test_days_must_be_positive(self, runner):
        result = runner.invoke(cli, ["history", "ACME", "--days", "0"])
        assert result.exit_code == 2

    @patch("stockiq_sync.core.load_config")
    @patch("stockiq_sync.cli._create_engine_async")
    def test_engine_closed_on_error(self, mock_create, mock_load, runner, mock_engine):
        mock_engine.get_historical_data.side_effect = RuntimeError("boom")
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["history", "ACME"])

        assert result.exit_code != 0
        mock_engine.close.assert_awaited_once()


# ---------------------------------------------------------------------------
# catalysts command tests
# ---------------------------------------------------------------------------


class TestCatalystsCommand:
    @patch("stockiq_sync.core.load_config")
    @patch("stockiq_sync.cli._create_engine_async")
    def test_json_output(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine

        result = runner.invoke(
            cli,
            [
                "catalysts", "ACME",
                "--industry", "Biotechnology",
                "--company", "Acme Therapeutics, Inc.",
                "--format", "json",
            ],
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.stdout)
        assert [e["event_type"] for e in payload] == ["earnings", "clinical_trial"]
        assert payload[1]["is_estimate"] is True
        mock_engine.get_catalyst_events.assert_awaited_once_with(
            "ACME", "Acme Therapeutics, Inc.", "Biotechnology"
        )

    @patch("stockiq_sync.core.load_config")
    @patch("stockiq_sync.cli._create_engine_async")
    def test_table_output(self, mock_create, mock_load, runner, mock_engine):
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["catalysts", "ACME"])

        assert result.exit_code == 0, result.output
        assert "catalysts" in result.output
        assert "(est.)" in result.output
        mock_engine.get_catalyst_events.assert_awaited_once_with("ACME", "", "Unknown")

    @patch("stockiq_sync.core.load_config")
    @patch("stockiq_sync.cli._create_engine_async")
    def test_no_events(self, mock_create, mock_load, runner, mock_engine):
        mock_engine.get_catalyst_events.return_value = []
        mock_create.return_value = mock_engine

        result = runner.invoke(cli, ["catalysts", "ACME"])

        assert result.exit_code == 0
        assert "No catalyst events" in result.output
