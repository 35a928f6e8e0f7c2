"""Canonical forecast models."""

from dataclasses import dataclass

from forecast_sync.models.common import is_normalized, ms_to_iso_date


@dataclass(frozen=True)
class ListForecastEntry:
    """Reduced view of a ForecastEntry for list-style readers."""

    id: int | None
    condition_code: int
    date: int  # UTC-midnight epoch ms
    temp_min: float
    temp_max: float

    @property
    def iso_date(self) -> str:
        return ms_to_iso_date(self.date)


@dataclass(frozen=True)
class ForecastEntry:
    date: int  # UTC-midnight epoch ms
    condition_code: int
    temp_max: float
    temp_min: float
    humidity: float
    pressure: float
    wind_speed: float
    wind_direction: float
    id: int | None = None

    def __post_init__(self) -> None:
        if not is_normalized(self.date):
            raise ValueError(f"date {self.date} is not aligned to UTC midnight")

    @property
    def iso_date(self) -> str:
        return ms_to_iso_date(self.date)

    def to_list_entry(self) -> ListForecastEntry:
        return ListForecastEntry(
            id=self.id,
            condition_code=self.condition_code,
            date=self.date,
            temp_min=self.temp_min,
            temp_max=self.temp_max,
        )


@dataclass(frozen=True)
class ForecastBatch:
    """Parsed provider response: day 0 is `anchor`, day i is anchor + i days."""

    anchor: int
    entries: tuple[ForecastEntry, ...] = ()

    def __len__(self) -> int:
        return len(self.entries)

    @property
    def last_date(self) -> int | None:
        if not self.entries:
            return None
        return self.entries[-1].date
