"""Repository for the sync run log."""

import sqlite3

from forecast_sync.models.sync import SyncResult


def record_run(conn: sqlite3.Connection, started_at: str, result: SyncResult) -> int:
    """Log a finished sync attempt. Returns the row id."""
    failure = result.failure
    cursor = conn.execute(
        "INSERT INTO sync_runs "
        "(started_at, status, entries_written, evicted, failure_kind, "
        "failure_detail, duration_seconds) VALUES (?, ?, ?, ?, ?, ?, ?)",
        (
            started_at,
            result.status.value,
            result.entries_written,
            result.evicted,
            failure.kind.value if failure else None,
            str(failure) if failure else None,
            round(result.duration_seconds, 3),
        ),
    )
    assert cursor.lastrowid is not None
    return cursor.lastrowid


def get_latest_run(conn: sqlite3.Connection, status: str | None = None) -> dict | None:
    """Get the most recent run, optionally filtered by status."""
    if status is None:
        row = conn.execute(
            "SELECT * FROM sync_runs ORDER BY id DESC LIMIT 1"
        ).fetchone()
    else:
        row = conn.execute(
            "SELECT * FROM sync_runs WHERE status = ? ORDER BY id DESC LIMIT 1",
            (status,),
        ).fetchone()
    if row is None:
        return None
    return dict(row)


def get_recent_runs(conn: sqlite3.Connection, limit: int = 20) -> list[dict]:
    rows = conn.execute(
        "SELECT * FROM sync_runs ORDER BY id DESC LIMIT ?", (limit,)
    ).fetchall()
    return [dict(r) for r in rows]
