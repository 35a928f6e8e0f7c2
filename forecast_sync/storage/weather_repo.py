"""Repository for canonical weather entries."""

import sqlite3
from collections.abc import Iterable

from forecast_sync.models.forecast import ForecastEntry, ListForecastEntry

_ENTRY_COLUMNS = "id, date, weather_id, min, max, humidity, pressure, wind, degrees"


def _to_entry(row: sqlite3.Row) -> ForecastEntry:
    return ForecastEntry(
        id=row["id"],
        date=row["date"],
        condition_code=row["weather_id"],
        temp_max=row["max"],
        temp_min=row["min"],
        humidity=row["humidity"],
        pressure=row["pressure"],
        wind_speed=row["wind"],
        wind_direction=row["degrees"],
    )


def get_max_date(conn: sqlite3.Connection) -> int | None:
    row = conn.execute("SELECT MAX(date) FROM weather").fetchone()
    return row[0]


def get_by_date(conn: sqlite3.Connection, date_ms: int) -> ForecastEntry | None:
    row = conn.execute(
        f"SELECT {_ENTRY_COLUMNS} FROM weather WHERE date = ?", (date_ms,)
    ).fetchone()
    if row is None:
        return None
    return _to_entry(row)


def get_range(conn: sqlite3.Connection, start: int, end: int) -> list[ForecastEntry]:
    """Entries with start <= date <= end, ordered by date."""
    rows = conn.execute(
        f"SELECT {_ENTRY_COLUMNS} FROM weather WHERE date BETWEEN ? AND ? ORDER BY date ASC",
        (start, end),
    ).fetchall()
    return [_to_entry(r) for r in rows]


def get_list_entries(conn: sqlite3.Connection, from_date: int) -> list[ListForecastEntry]:
    rows = conn.execute(
        "SELECT id, weather_id, date, min, max FROM weather "
        "WHERE date >= ? ORDER BY date ASC",
        (from_date,),
    ).fetchall()
    return [
        ListForecastEntry(
            id=r["id"],
            condition_code=r["weather_id"],
            date=r["date"],
            temp_min=r["min"],
            temp_max=r["max"],
        )
        for r in rows
    ]


def count_from(conn: sqlite3.Connection, from_date: int) -> int:
    row = conn.execute(
        "SELECT COUNT(*) FROM weather WHERE date >= ?", (from_date,)
    ).fetchone()
    return row[0]


def count_all(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM weather").fetchone()[0]


def delete_before(conn: sqlite3.Connection, date_ms: int) -> int:
    """Delete entries strictly before date_ms. Returns the row count removed.

    Does not commit; callers wrap this in a transaction.
    """
    cursor = conn.execute("DELETE FROM weather WHERE date < ?", (date_ms,))
    return cursor.rowcount


def upsert_entries(conn: sqlite3.Connection, entries: Iterable[ForecastEntry]) -> int:
    """Insert or replace entries matched on date. Does not commit."""
    written = 0
    for e in entries:
        conn.execute(
            "INSERT INTO weather "
            "(date, weather_id, min, max, humidity, pressure, wind, degrees) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(date) DO UPDATE SET "
            "weather_id = excluded.weather_id, min = excluded.min, max = excluded.max, "
            "humidity = excluded.humidity, pressure = excluded.pressure, "
            "wind = excluded.wind, degrees = excluded.degrees",
            (
                e.date,
                e.condition_code,
                e.temp_min,
                e.temp_max,
                e.humidity,
                e.pressure,
                e.wind_speed,
                e.wind_direction,
            ),
        )
        written += 1
    return written
