"""Tests for the command line entry point."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from conftest import ACCOUNT_ADDRESS, CONDITION_ID
from polymarket_monitor.__main__ import build_parser, main
from polymarket_monitor.config import clear_settings_cache


@pytest.fixture
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[Path]:
    monkeypatch.chdir(tmp_path)
    db_path = tmp_path / "cli.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("WEBHOOK_URL", "https://hooks.example.com/alerts")
    monkeypatch.delenv("TRACKED_CONFIG_PATH", raising=False)
    clear_settings_cache()
    yield db_path
    clear_settings_cache()


class TestParser:
    def test_track_market_arguments(self) -> None:
        args = build_parser().parse_args(["track-market", CONDITION_ID, "--name", "Rain?", "--event-id", "42"])

        assert args.command == "track-market"
        assert args.event_id == 42
        assert args.disable is False

    def test_command_is_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestMain:
    def test_invalid_configuration_exits_2(
        self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("WEBHOOK_URL", raising=False)
        monkeypatch.setenv("DATABASE_URL", "sqlite:///x.db")
        clear_settings_cache()
        try:
            assert main(["show-alerts"]) == 2
        finally:
            clear_settings_cache()
        assert "Invalid configuration" in capsys.readouterr().err

    def test_init_track_and_show(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["init-db"]) == 0
        assert main(["track-market", CONDITION_ID, "--name", "Will it rain tomorrow?"]) == 0
        assert main(["track-account", ACCOUNT_ADDRESS, "--name", "whale"]) == 0
        assert main(["show-alerts"]) == 0

        out = capsys.readouterr().out
        assert "Database schema created" in out
        assert f"Tracked market {CONDITION_ID} (enabled)" in out
        assert f"Tracked account {ACCOUNT_ADDRESS} (enabled)" in out
        assert "No alerts stored" in out
        assert cli_env.exists()

    def test_invalid_account_address(self, cli_env: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert main(["track-account", "0x123"]) == 2
        assert "Invalid address" in capsys.readouterr().err

    def test_invalid_tracked_file_exits_2(
        self, cli_env: Path, monkeypatch: pytest.MonkeyPatch, tmp_path: Path
    ) -> None:
        assert main(["init-db"]) == 0
        tracked = tmp_path / "tracked.json"
        tracked.write_text('{"accounts": [{"address": "nope"}]}', encoding="utf-8")
        monkeypatch.setenv("TRACKED_CONFIG_PATH", str(tracked))
        monkeypatch.setenv("VOLUME_OUTLIER_ENABLED", "false")
        clear_settings_cache()

        assert main(["once"]) == 2
