"""Composition root: build the sync object graph from config."""

from forecast_sync.config.schema import ForecastSyncConfig
from forecast_sync.ingest.owm_client import OwmClient
from forecast_sync.pipeline.coordinator import Scheduler, SyncCoordinator
from forecast_sync.storage.weather_store import SqliteWeatherStore


def build_store(config: ForecastSyncConfig, db_path: str | None = None) -> SqliteWeatherStore:
    return SqliteWeatherStore(db_path or config.storage.db_path)


def build_client(config: ForecastSyncConfig) -> OwmClient:
    provider = config.provider
    return OwmClient(
        base_url=provider.base_url,
        api_key=provider.api_key,
        units=provider.units.value,
        days=provider.days,
        timeout=provider.timeout_seconds,
        max_retries=provider.max_retries,
        retry_base_delay=provider.retry_base_delay_seconds,
    )


def build_coordinator(
    config: ForecastSyncConfig,
    db_path: str | None = None,
    scheduler: Scheduler | None = None,
) -> SyncCoordinator:
    return SyncCoordinator(
        build_store(config, db_path),
        build_client(config),
        location_query=config.provider.location_query,
        horizon_days=config.sync.horizon_days,
        scheduler=scheduler,
        interval_seconds=config.sync.interval_seconds,
    )
