"""OpenWeatherMap daily forecast parser.

Dates are assigned by position: entry i is today0 + i days. The per-entry
`dt` timestamps in the payload are ignored, which relies on the provider
returning contiguous days starting at the current UTC day.
"""

import json
import logging
import math
from typing import Any

from forecast_sync.models.common import DAY_IN_MILLIS, normalized_utc_today_ms
from forecast_sync.models.forecast import ForecastBatch, ForecastEntry
from forecast_sync.models.sync import ParseFailure

logger = logging.getLogger(__name__)

OWM_LIST = "list"
OWM_PRESSURE = "pressure"
OWM_HUMIDITY = "humidity"
OWM_WINDSPEED = "speed"
OWM_WIND_DIRECTION = "deg"
OWM_TEMPERATURE = "temp"
OWM_MAX = "max"
OWM_MIN = "min"
OWM_WEATHER = "weather"
OWM_WEATHER_ID = "id"
OWM_MESSAGE_CODE = "cod"
OWM_MESSAGE = "message"

HTTP_OK = 200
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


class ForecastParseError(Exception):
    def __init__(self, kind: ParseFailure, detail: str = "", field_name: str | None = None):
        self.kind = kind
        self.detail = detail
        self.field_name = field_name
        label = f"{kind}({field_name})" if field_name else str(kind)
        super().__init__(f"{label}: {detail}" if detail else label)


def parse_forecast(raw: str | bytes, *, today0: int | None = None) -> ForecastBatch:
    """Parse a raw provider response into a ForecastBatch.

    Raises ForecastParseError for malformed JSON, a non-OK provider status
    code, or a missing/mistyped required field.
    """
    try:
        forecast_json = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        raise ForecastParseError(ParseFailure.MALFORMED, str(e)) from e

    if not isinstance(forecast_json, dict):
        raise ForecastParseError(
            ParseFailure.MALFORMED, f"expected object, got {type(forecast_json).__name__}"
        )

    _check_provider_status(forecast_json)

    if today0 is None:
        today0 = normalized_utc_today_ms()

    days = forecast_json.get(OWM_LIST)
    if not isinstance(days, list):
        raise ForecastParseError(
            ParseFailure.MISSING_FIELD, "no daily forecast list", field_name=OWM_LIST
        )

    entries = []
    for i, day_forecast in enumerate(days):
        if not isinstance(day_forecast, dict):
            raise ForecastParseError(
                ParseFailure.MALFORMED, f"list[{i}] is not an object"
            )
        entries.append(_parse_day(day_forecast, today0 + DAY_IN_MILLIS * i, i))

    logger.debug("Parsed %d forecast days anchored at %d", len(entries), today0)
    return ForecastBatch(anchor=today0, entries=tuple(entries))


def _check_provider_status(forecast_json: dict) -> None:
    if OWM_MESSAGE_CODE not in forecast_json:
        return
    code = forecast_json[OWM_MESSAGE_CODE]
    message = str(forecast_json.get(OWM_MESSAGE, ""))
    try:
        if isinstance(code, bool):
            raise ValueError(code)
        status = int(code)
    except (TypeError, ValueError):
        raise ForecastParseError(
            ParseFailure.PROVIDER_ERROR, f"unreadable status code {code!r}"
        ) from None
    if status != HTTP_OK:
        raise ForecastParseError(
            ParseFailure.PROVIDER_ERROR, f"provider returned {status} {message}".strip()
        )


def _parse_day(day_forecast: dict, date_ms: int, index: int) -> ForecastEntry:
    pressure = _number(day_forecast, OWM_PRESSURE, index)
    humidity = _number(day_forecast, OWM_HUMIDITY, index)
    wind_speed = _number(day_forecast, OWM_WINDSPEED, index)
    wind_direction = _number(day_forecast, OWM_WIND_DIRECTION, index)

    # Condition lives in a one-element "weather" array
    weather = day_forecast.get(OWM_WEATHER)
    if not isinstance(weather, list) or not weather or not isinstance(weather[0], dict):
        raise ForecastParseError(
            ParseFailure.MISSING_FIELD, f"list[{index}]", field_name=OWM_WEATHER
        )
    weather_id = weather[0].get(OWM_WEATHER_ID)
    if not _is_integral(weather_id):
        raise ForecastParseError(
            ParseFailure.MISSING_FIELD,
            f"list[{index}]",
            field_name=f"{OWM_WEATHER}.{OWM_WEATHER_ID}",
        )

    temperature = day_forecast.get(OWM_TEMPERATURE)
    if not isinstance(temperature, dict):
        raise ForecastParseError(
            ParseFailure.MISSING_FIELD, f"list[{index}]", field_name=OWM_TEMPERATURE
        )
    temp_max = _number(temperature, OWM_MAX, index, prefix=OWM_TEMPERATURE)
    temp_min = _number(temperature, OWM_MIN, index, prefix=OWM_TEMPERATURE)

    return ForecastEntry(
        date=date_ms,
        condition_code=int(weather_id),
        temp_max=temp_max,
        temp_min=temp_min,
        humidity=humidity,
        pressure=pressure,
        wind_speed=wind_speed,
        wind_direction=wind_direction,
    )


def _number(obj: dict, key: str, index: int, prefix: str | None = None) -> float:
    value: Any = obj.get(key)
    name = f"{prefix}.{key}" if prefix else key
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ForecastParseError(
            ParseFailure.MISSING_FIELD, f"list[{index}]", field_name=name
        )
    try:
        number = float(value)
    except OverflowError:
        number = math.inf
    if not math.isfinite(number):
        raise ForecastParseError(
            ParseFailure.MISSING_FIELD, f"list[{index}] not finite", field_name=name
        )
    return number


def _is_integral(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, float):
        if not value.is_integer():
            return False
        value = int(value)
    return isinstance(value, int) and INT64_MIN <= value <= INT64_MAX
