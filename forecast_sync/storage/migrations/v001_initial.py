"""Initial schema: canonical weather entries and the sync run log."""

import sqlite3

DDL = [
    # One row per UTC-midnight day; list and detail reads share this table
    """
    CREATE TABLE IF NOT EXISTS weather (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        date INTEGER NOT NULL UNIQUE CHECK (date % 86400000 = 0),
        weather_id INTEGER NOT NULL,
        min REAL NOT NULL,
        max REAL NOT NULL,
        humidity REAL NOT NULL,
        pressure REAL NOT NULL,
        wind REAL NOT NULL,
        degrees REAL NOT NULL
    )
    """,

    # Sync pipeline run log
    """
    CREATE TABLE IF NOT EXISTS sync_runs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        started_at TEXT NOT NULL,
        completed_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
        status TEXT NOT NULL,
        entries_written INTEGER NOT NULL DEFAULT 0,
        evicted INTEGER NOT NULL DEFAULT 0,
        failure_kind TEXT,
        failure_detail TEXT,
        duration_seconds REAL NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sync_runs_started ON sync_runs(started_at)",
]


def up(conn: sqlite3.Connection) -> None:
    for stmt in DDL:
        conn.execute(stmt)
