"""Tests for the OWM daily forecast parser."""

import json

import pytest

from forecast_sync.ingest.owm_parser import ForecastParseError, parse_forecast
from forecast_sync.models.common import DAY_IN_MILLIS
from forecast_sync.models.sync import ParseFailure


def _payload_with(mutate) -> str:
    payload = {
        "cod": "200",
        "list": [
            {
                "dt": 1,
                "temp": {"min": 4.0, "max": 11.0},
                "pressure": 1000,
                "humidity": 50,
                "weather": [{"id": 500}],
                "speed": 2.0,
                "deg": 90,
            }
        ],
    }
    mutate(payload["list"][0])
    return json.dumps(payload)


class TestParseForecast:
    def test_fixture_payload(self, owm_daily_raw: str, today0: int):
        batch = parse_forecast(owm_daily_raw, today0=today0)

        assert len(batch) == 7
        assert batch.anchor == today0
        first = batch.entries[0]
        assert first.date == today0
        assert first.condition_code == 800
        assert first.temp_max == 16.3
        assert first.temp_min == 7.1
        assert first.humidity == 71.0
        assert first.pressure == 1021.0
        assert first.wind_speed == 3.1
        assert first.wind_direction == 310.0
        assert batch.entries[3].condition_code == 502

    @pytest.mark.parametrize("days", [1, 7, 14, 16])
    def test_dates_are_positional(self, make_payload, today0: int, days: int):
        batch = parse_forecast(make_payload(days), today0=today0)

        dates = [e.date for e in batch.entries]
        assert dates == [today0 + i * DAY_IN_MILLIS for i in range(days)]
        assert dates == sorted(set(dates))

    def test_embedded_timestamps_ignored(self, today0: int):
        # dt values go backwards and skip days; the parser never reads them
        days = [
            {
                "dt": dt,
                "temp": {"min": 1, "max": 2},
                "pressure": 1000,
                "humidity": 50,
                "weather": [{"id": 800}],
                "speed": 1,
                "deg": 0,
            }
            for dt in (1_900_000_000, 5, 1_600_000_000)
        ]
        batch = parse_forecast(json.dumps({"list": days}), today0=today0)
        assert [e.date for e in batch.entries] == [
            today0,
            today0 + DAY_IN_MILLIS,
            today0 + 2 * DAY_IN_MILLIS,
        ]

    def test_defaults_to_current_day(self, make_payload):
        batch = parse_forecast(make_payload(2))
        assert batch.anchor % DAY_IN_MILLIS == 0
        assert batch.entries[0].date == batch.anchor

    def test_empty_list_is_valid(self, make_payload, today0: int):
        batch = parse_forecast(make_payload(0), today0=today0)
        assert len(batch) == 0
        assert batch.last_date is None

    def test_missing_status_is_ok(self, make_payload, today0: int):
        batch = parse_forecast(make_payload(3, cod=None), today0=today0)
        assert len(batch) == 3

    @pytest.mark.parametrize("cod", [200, "200"])
    def test_ok_status_forms(self, make_payload, today0: int, cod):
        assert len(parse_forecast(make_payload(2, cod=cod), today0=today0)) == 2

    def test_accepts_bytes(self, make_payload, today0: int):
        batch = parse_forecast(make_payload(2).encode(), today0=today0)
        assert len(batch) == 2


class TestProviderError:
    @pytest.mark.parametrize("cod", [404, "404", 500, "401", "not-a-code"])
    def test_non_ok_status(self, make_payload, today0: int, cod):
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(make_payload(7, cod=cod), today0=today0)
        assert exc_info.value.kind == ParseFailure.PROVIDER_ERROR

    def test_city_not_found_body(self):
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast('{"cod":"404","message":"city not found"}')
        assert exc_info.value.kind == ParseFailure.PROVIDER_ERROR
        assert "city not found" in exc_info.value.detail


class TestMalformed:
    @pytest.mark.parametrize("raw", ["", "not json", "{", "[1, 2]", '"text"', "null"])
    def test_not_an_object(self, raw: str):
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(raw)
        assert exc_info.value.kind == ParseFailure.MALFORMED

    def test_list_item_not_object(self):
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast('{"list": [42]}')
        assert exc_info.value.kind == ParseFailure.MALFORMED


class TestMissingField:
    def test_missing_list(self):
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast('{"cod": 200}')
        assert exc_info.value.kind == ParseFailure.MISSING_FIELD
        assert exc_info.value.field_name == "list"

    @pytest.mark.parametrize("field", ["pressure", "humidity", "speed", "deg"])
    def test_missing_numeric_field(self, field: str):
        raw = _payload_with(lambda day: day.pop(field))
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(raw)
        assert exc_info.value.kind == ParseFailure.MISSING_FIELD
        assert exc_info.value.field_name == field

    @pytest.mark.parametrize("value", ["1000", None, True, [1]])
    def test_wrong_typed_field(self, value):
        raw = _payload_with(lambda day: day.update(pressure=value))
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(raw)
        assert exc_info.value.field_name == "pressure"

    @pytest.mark.parametrize(
        ("mutation", "field"),
        [
            (lambda d: d.pop("weather"), "weather"),
            (lambda d: d.update(weather=[]), "weather"),
            (lambda d: d.update(weather=[{"main": "Rain"}]), "weather.id"),
            (lambda d: d.update(weather=[{"id": "500"}]), "weather.id"),
            (lambda d: d.pop("temp"), "temp"),
            (lambda d: d.update(temp={"min": 1.0}), "temp.max"),
            (lambda d: d.update(temp={"max": 1.0}), "temp.min"),
        ],
    )
    def test_nested_fields(self, mutation, field: str):
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(_payload_with(mutation))
        assert exc_info.value.kind == ParseFailure.MISSING_FIELD
        assert exc_info.value.field_name == field

    @pytest.mark.parametrize(
        "value", [10**400, -(10**400), float("nan"), float("inf"), float("-inf")]
    )
    def test_non_finite_number(self, value):
        raw = _payload_with(lambda day: day.update(pressure=value))
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(raw)
        assert exc_info.value.kind == ParseFailure.MISSING_FIELD
        assert exc_info.value.field_name == "pressure"

    @pytest.mark.parametrize("value", [10**400, float("nan")])
    def test_non_finite_temperature(self, value):
        raw = _payload_with(lambda day: day["temp"].update(max=value))
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(raw)
        assert exc_info.value.field_name == "temp.max"

    @pytest.mark.parametrize("weather_id", [2**63, -(2**63) - 1, 2**70, 1e30, float("nan")])
    def test_weather_id_out_of_range(self, weather_id):
        raw = _payload_with(lambda day: day.update(weather=[{"id": weather_id}]))
        with pytest.raises(ForecastParseError) as exc_info:
            parse_forecast(raw)
        assert exc_info.value.kind == ParseFailure.MISSING_FIELD
        assert exc_info.value.field_name == "weather.id"

    def test_weather_id_integral_float_accepted(self, today0: int):
        raw = _payload_with(lambda day: day.update(weather=[{"id": 801.0}]))
        assert parse_forecast(raw, today0=today0).entries[0].condition_code == 801
