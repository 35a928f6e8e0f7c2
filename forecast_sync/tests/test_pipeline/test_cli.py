"""Tests for CLI commands."""

from pathlib import Path

import httpx
import pytest
import respx
import yaml

from forecast_sync.cli import main

FORECAST_URL = "https://test-owm.example.com/data/2.5/forecast/daily"


@pytest.fixture
def cli_config(tmp_path: Path) -> Path:
    data = {
        "provider": {
            "base_url": "https://test-owm.example.com",
            "api_key": "k",
            "location_query": "Berlin,DE",
            "days": 7,
        },
        "sync": {"horizon_days": 7},
        "storage": {"db_path": str(tmp_path / "forecast.db")},
    }
    path = tmp_path / "cli.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


class TestCLI:
    def test_no_command_returns_1(self, capsys):
        result = main([])
        assert result == 1

    def test_config_show(self, tmp_path: Path, capsys):
        config_path = tmp_path / "test.yaml"
        config_path.write_text("")
        result = main(["--config", str(config_path), "config", "show"])
        assert result == 0
        captured = capsys.readouterr()
        assert "# config " in captured.out
        assert "horizon_days" in captured.out

    def test_config_set(self, tmp_path: Path, capsys):
        config_path = tmp_path / "test.yaml"
        config_path.write_text("")
        result = main([
            "--config", str(config_path),
            "config", "set", "sync.interval_hours=6",
        ])
        assert result == 0
        captured = capsys.readouterr()
        assert "6.0" in captured.out

    def test_config_set_invalid(self, tmp_path: Path, capsys):
        config_path = tmp_path / "test.yaml"
        config_path.write_text("")
        result = main([
            "--config", str(config_path),
            "config", "set", "sync.horizon_days=40",
        ])
        assert result == 1
        assert "Error" in capsys.readouterr().out

    def test_status_empty(self, cli_config: Path, capsys):
        result = main(["--config", str(cli_config), "status"])
        assert result == 0
        out = capsys.readouterr().out
        assert "Berlin,DE" in out
        assert "Last sync: never" in out
        assert "Fetch needed: True" in out

    def test_show_empty(self, cli_config: Path, capsys):
        assert main(["--config", str(cli_config), "show"]) == 1
        assert "No cached forecast" in capsys.readouterr().out


class TestSyncCommands:
    @respx.mock
    def test_sync_then_show(self, cli_config: Path, make_payload, capsys):
        route = respx.get(FORECAST_URL).mock(
            return_value=httpx.Response(200, text=make_payload(7))
        )

        assert main(["--config", str(cli_config), "sync"]) == 0
        assert "7 written" in capsys.readouterr().out
        assert route.call_count == 1

        assert main(["--config", str(cli_config), "show"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()
        assert len(lines) == 7
        assert "code=800" in lines[0]

        assert main(["--config", str(cli_config), "status"]) == 0
        out = capsys.readouterr().out
        assert "Coverage: 7/7" in out
        assert "Fetch needed: False" in out
        assert "Last sync: SYNCED" in out

    @respx.mock
    def test_second_sync_skipped(self, cli_config: Path, make_payload, capsys):
        route = respx.get(FORECAST_URL).mock(
            return_value=httpx.Response(200, text=make_payload(7))
        )
        main(["--config", str(cli_config), "sync"])
        capsys.readouterr()

        assert main(["--config", str(cli_config), "sync"]) == 0
        assert "skipped" in capsys.readouterr().out
        assert route.call_count == 1

    @respx.mock
    def test_sync_failure_exit_code(self, cli_config: Path, capsys):
        respx.get(FORECAST_URL).mock(return_value=httpx.Response(500))

        assert main(["--config", str(cli_config), "sync"]) == 1
        assert "NETWORK" in capsys.readouterr().out

    def test_db_override(self, cli_config: Path, tmp_path: Path, capsys):
        db_path = tmp_path / "other" / "alt.db"
        assert main(["--config", str(cli_config), "--db", str(db_path), "status"]) == 0
        assert db_path.exists()

    def test_purge(self, cli_config: Path, capsys):
        assert main(["--config", str(cli_config), "purge"]) == 0
        assert "Deleted 0 day(s)" in capsys.readouterr().out
