"""Pydantic v2 configuration schema with strict validation."""

from enum import StrEnum

from pydantic import BaseModel, Field, model_validator

from forecast_sync.config.defaults import (
    DEFAULT_DB_PATH,
    DEFAULT_FORECAST_DAYS,
    DEFAULT_HORIZON_DAYS,
    DEFAULT_LOCATION_QUERY,
    OWM_BASE_URL,
)


class Units(StrEnum):
    METRIC = "metric"
    IMPERIAL = "imperial"


class ProviderConfig(BaseModel):
    model_config = {"extra": "forbid"}

    base_url: str = OWM_BASE_URL
    api_key: str = ""
    location_query: str = Field(default=DEFAULT_LOCATION_QUERY, min_length=1)
    units: Units = Units.METRIC
    days: int = Field(default=DEFAULT_FORECAST_DAYS, ge=1, le=16)
    timeout_seconds: float = Field(default=30.0, gt=0.0)
    max_retries: int = Field(default=3, ge=0)
    retry_base_delay_seconds: float = Field(default=5.0, ge=0.0)


class SyncConfig(BaseModel):
    model_config = {"extra": "forbid"}

    horizon_days: int = Field(default=DEFAULT_HORIZON_DAYS, ge=1, le=16)
    interval_hours: float = Field(default=3.0, gt=0.0)
    max_backoff_seconds: int = Field(default=3600, ge=1)

    @property
    def interval_seconds(self) -> int:
        return max(1, int(self.interval_hours * 3600))


class StorageConfig(BaseModel):
    model_config = {"extra": "forbid"}

    db_path: str = DEFAULT_DB_PATH


class ForecastSyncConfig(BaseModel):
    model_config = {"extra": "forbid"}

    provider: ProviderConfig = ProviderConfig()
    sync: SyncConfig = SyncConfig()
    storage: StorageConfig = StorageConfig()

    @model_validator(mode="after")
    def check_horizon_fits_provider(self) -> "ForecastSyncConfig":
        if self.sync.horizon_days > self.provider.days:
            raise ValueError(
                f"sync.horizon_days ({self.sync.horizon_days}) must not exceed "
                f"provider.days ({self.provider.days})"
            )
        return self
