"""Shared test fixtures."""

import json
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

import pytest
import yaml

from forecast_sync.config.schema import ForecastSyncConfig
from forecast_sync.models.common import normalize_utc_ms
from forecast_sync.storage.weather_store import SqliteWeatherStore

NOW = datetime(2026, 2, 10, 15, 30, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    """A fixed mid-afternoon UTC clock reading."""
    return NOW


@pytest.fixture
def today0() -> int:
    """UTC midnight of NOW, in epoch ms."""
    return normalize_utc_ms(NOW)


@pytest.fixture
def store(tmp_path: Path) -> SqliteWeatherStore:
    """A migrated, empty SQLite store in a temp directory."""
    return SqliteWeatherStore(tmp_path / "test.db")


@pytest.fixture
def default_config() -> ForecastSyncConfig:
    return ForecastSyncConfig()


@pytest.fixture
def config_yaml_path(tmp_path: Path) -> Path:
    """Write a minimal valid config YAML and return its path."""
    data = {
        "provider": {"location_query": "Berlin,DE", "days": 7},
        "sync": {"horizon_days": 7},
        "storage": {"db_path": str(tmp_path / "forecast.db")},
    }
    path = tmp_path / "test_config.yaml"
    with open(path, "w") as f:
        yaml.dump(data, f)
    return path


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def owm_daily_raw(fixtures_dir: Path) -> str:
    return (fixtures_dir / "owm_daily_7.json").read_text()


def _day(i: int) -> dict:
    return {
        "dt": 1_700_000_000 + i * 86_400,
        "temp": {"min": 5.0 + i, "max": 12.5 + i},
        "pressure": 1010.0 + i,
        "humidity": 70 + i,
        "weather": [{"id": 800 + i, "main": "Clear"}],
        "speed": 3.5,
        "deg": 180.0,
    }


@pytest.fixture
def make_payload() -> Callable[..., str]:
    """Build an OWM daily payload with `days` entries; `cod=None` omits the status."""

    def _make(days: int = 7, cod: int | str | None = "200", **extra) -> str:
        payload: dict = {"list": [_day(i) for i in range(days)], "cnt": days}
        if cod is not None:
            payload["cod"] = cod
        payload.update(extra)
        return json.dumps(payload)

    return _make
