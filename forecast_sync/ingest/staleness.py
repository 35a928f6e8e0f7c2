"""Freshness and eviction boundaries for the forecast cache."""

from forecast_sync.models.common import DAY_IN_MILLIS


def required_coverage_ms(today0: int, horizon_days: int) -> int:
    """Latest day the cache must hold to serve `horizon_days` days from today0."""
    if horizon_days < 1:
        raise ValueError("horizon_days must be >= 1")
    return today0 + (horizon_days - 1) * DAY_IN_MILLIS


def is_fetch_needed(max_date_ms: int | None, today0: int, horizon_days: int) -> bool:
    """Check if the cache is empty or ends before the horizon."""
    if max_date_ms is None:
        return True
    return max_date_ms < required_coverage_ms(today0, horizon_days)


def days_covered(max_date_ms: int | None, today0: int) -> int:
    """Number of days from today0 through max_date_ms (0 when nothing current)."""
    if max_date_ms is None or max_date_ms < today0:
        return 0
    return (max_date_ms - today0) // DAY_IN_MILLIS + 1
