"""Forecast read API: FastAPI backend serving the cached forecast.

Read-only: every endpoint reads the local store. Syncing happens in the
daemon or the CLI, never here.
"""

from dataclasses import asdict
from datetime import date
from pathlib import Path

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from forecast_sync.config.loader import load_config
from forecast_sync.config.schema import ForecastSyncConfig
from forecast_sync.daemon import read_state
from forecast_sync.ingest.staleness import days_covered, is_fetch_needed
from forecast_sync.models.common import (
    date_to_ms,
    is_normalized,
    ms_to_iso_date,
    normalized_utc_today_ms,
)
from forecast_sync.models.forecast import ForecastEntry, ListForecastEntry
from forecast_sync.storage.weather_store import SqliteWeatherStore, StorageError

PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "config" / "forecast_sync.yaml"
# Overrides storage.db_path from the config when set
DB_PATH: Path | None = None

app = FastAPI(title="Forecast Sync", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET"],
    allow_headers=["*"],
)


def _db_path(config: ForecastSyncConfig | None = None) -> Path:
    """Store location: DB_PATH if set, else storage.db_path from the config.

    Relative paths are taken from the project root, where the CLI and daemon
    run.
    """
    if DB_PATH is not None:
        return Path(DB_PATH)
    if config is None:
        config = load_config(CONFIG_PATH)
    path = Path(config.storage.db_path)
    return path if path.is_absolute() else PROJECT_ROOT / path


def _store(config: ForecastSyncConfig | None = None) -> SqliteWeatherStore:
    return SqliteWeatherStore(_db_path(config))


def _entry_json(entry: ForecastEntry | ListForecastEntry) -> dict:
    data = asdict(entry)
    data["iso_date"] = entry.iso_date
    return data


def _parse_day(day: str) -> int:
    """Accept YYYY-MM-DD or UTC-midnight epoch milliseconds."""
    if day.isdigit():
        date_ms = int(day)
        if not is_normalized(date_ms):
            raise HTTPException(422, f"{day} is not a UTC-midnight timestamp")
        return date_ms
    try:
        return date_to_ms(date.fromisoformat(day))
    except ValueError:
        raise HTTPException(422, f"Invalid date: {day}") from None


# ── Forecast endpoints ──────────────────────────────────────────


@app.get("/api/forecast")
def get_forecast():
    """List projection from today onward, ordered by date."""
    try:
        entries = _store().list_entries(normalized_utc_today_ms())
    except StorageError as e:
        raise HTTPException(503, f"Forecast store unavailable: {e}") from e
    return [_entry_json(e) for e in entries]


@app.get("/api/forecast/today")
def get_today():
    return get_day(str(normalized_utc_today_ms()))


@app.get("/api/forecast/{day}")
def get_day(day: str):
    """Full entry for one day."""
    date_ms = _parse_day(day)
    try:
        entry = _store().get_by_date(date_ms)
    except StorageError as e:
        raise HTTPException(503, f"Forecast store unavailable: {e}") from e
    if entry is None:
        raise HTTPException(404, f"No forecast for {ms_to_iso_date(date_ms)}")
    return _entry_json(entry)


# ── Status endpoints ────────────────────────────────────────────


@app.get("/api/status")
def get_status():
    """Cache coverage against the configured horizon plus daemon state."""
    config = load_config(CONFIG_PATH)
    store = _store(config)
    today0 = normalized_utc_today_ms()
    try:
        max_date = store.max_date()
        total = store.count()
        last_sync = store.latest_sync()
    except StorageError as e:
        raise HTTPException(503, f"Forecast store unavailable: {e}") from e

    horizon = config.sync.horizon_days
    return {
        "location": config.provider.location_query,
        "entries": total,
        "today": ms_to_iso_date(today0),
        "max_date": ms_to_iso_date(max_date) if max_date is not None else None,
        "days_covered": days_covered(max_date, today0),
        "horizon_days": horizon,
        "fetch_needed": is_fetch_needed(max_date, today0, horizon),
        "last_sync": last_sync,
        "daemon": read_state(),
    }


@app.get("/api/syncs")
def get_syncs(limit: int = 20):
    """Recent sync runs."""
    try:
        return _store().recent_syncs(limit)
    except StorageError as e:
        raise HTTPException(503, f"Forecast store unavailable: {e}") from e


@app.get("/api/health")
def get_health():
    """Quick health check."""
    try:
        last_ok = _store().latest_sync(status="SYNCED")
    except StorageError as e:
        return {"db_ok": False, "error": str(e)}
    return {
        "db_ok": True,
        "last_successful_sync": last_ok["completed_at"] if last_ok else None,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8777)
