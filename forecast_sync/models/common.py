"""Common time helpers and the UTC-midnight date policy."""

from datetime import UTC, date, datetime, timedelta

DAY_IN_MILLIS = 86_400_000


def utc_now() -> datetime:
    return datetime.now(UTC)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def normalize_utc_ms(moment: datetime) -> int:
    """Return epoch milliseconds for UTC midnight of the day containing `moment`."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    day = moment.astimezone(UTC).date()
    return date_to_ms(day)


def normalized_utc_today_ms(now: datetime | None = None) -> int:
    return normalize_utc_ms(now if now is not None else utc_now())


def is_normalized(date_ms: int) -> bool:
    return date_ms % DAY_IN_MILLIS == 0


def date_to_ms(day: date) -> int:
    return (day - date(1970, 1, 1)).days * DAY_IN_MILLIS


def ms_to_date(date_ms: int) -> date:
    return date(1970, 1, 1) + timedelta(days=date_ms // DAY_IN_MILLIS)


def ms_to_iso_date(date_ms: int) -> str:
    return ms_to_date(date_ms).isoformat()
