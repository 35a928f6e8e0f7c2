"""YAML config loader with environment overrides and runtime get/set."""

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import yaml

from forecast_sync.config.defaults import API_KEY_ENV_VAR
from forecast_sync.config.schema import ForecastSyncConfig


def load_config(path: str | Path) -> ForecastSyncConfig:
    """Load and validate config from a YAML file.

    A missing or empty file yields the defaults. An empty provider.api_key is
    filled from the OWM_API_KEY environment variable.
    """
    path = Path(path)
    raw: dict[str, Any] = {}
    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Config must be a YAML mapping at the top level: {path}")

    env_key = os.environ.get(API_KEY_ENV_VAR, "")
    provider = raw.setdefault("provider", {}) or {}
    raw["provider"] = provider
    if env_key and not provider.get("api_key"):
        provider["api_key"] = env_key

    return ForecastSyncConfig(**raw)


def config_hash(config: ForecastSyncConfig) -> str:
    """Compute a deterministic SHA256 hash of the config."""
    data = config.model_dump_json(indent=None)
    return hashlib.sha256(data.encode()).hexdigest()[:16]


def get_config_value(config: ForecastSyncConfig, dotted_key: str) -> Any:
    """Get a config value by dotted key path. E.g. 'sync.horizon_days'."""
    parts = dotted_key.split(".")
    obj: Any = config
    for part in parts:
        if hasattr(obj, part):
            obj = getattr(obj, part)
        elif isinstance(obj, dict):
            obj = obj[part]
        else:
            raise KeyError(f"Config key not found: {dotted_key}")
    return obj


def set_config_value(
    config: ForecastSyncConfig, dotted_key: str, value: Any
) -> ForecastSyncConfig:
    """Set a config value by dotted key path and re-validate.

    Returns a new ForecastSyncConfig instance.
    """
    data = json.loads(config.model_dump_json())
    parts = dotted_key.split(".")
    target = data
    for part in parts[:-1]:
        if part not in target:
            raise KeyError(f"Config key not found: {dotted_key}")
        target = target[part]
    if parts[-1] not in target:
        raise KeyError(f"Config key not found: {dotted_key}")
    old_value = target.get(parts[-1])
    if isinstance(old_value, bool) and isinstance(value, str):
        value = value.lower() in ("1", "true", "yes", "on")
    elif isinstance(old_value, int) and isinstance(value, str):
        value = int(value)
    elif isinstance(old_value, float) and isinstance(value, str):
        value = float(value)
    target[parts[-1]] = value
    return ForecastSyncConfig(**data)
