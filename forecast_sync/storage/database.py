"""SQLite connection manager with WAL mode, migrations and write transactions."""

import importlib
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

MIGRATIONS_PACKAGE = "forecast_sync.storage.migrations"
BUSY_TIMEOUT_MS = 5000


def connect(db_path: str | Path) -> sqlite3.Connection:
    """Open a SQLite connection in WAL mode.

    WAL lets readers keep a consistent snapshot while a sync transaction is
    writing, so a half-applied batch is never visible.
    """
    path = Path(db_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
    return conn


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Run the enclosed statements as one write transaction.

    Takes the write lock up front (BEGIN IMMEDIATE) and rolls back on any
    exception.
    """
    conn.execute("BEGIN IMMEDIATE")
    try:
        yield conn
    except BaseException:
        conn.execute("ROLLBACK")
        raise
    conn.execute("COMMIT")


def run_migrations(conn: sqlite3.Connection) -> list[str]:
    """Run all pending migrations in order. Returns list of applied migration names."""
    conn.execute(
        "CREATE TABLE IF NOT EXISTS schema_versions ("
        "  version TEXT PRIMARY KEY,"
        "  applied_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP"
        ")"
    )

    applied = {
        row[0]
        for row in conn.execute("SELECT version FROM schema_versions").fetchall()
    }

    newly_applied = []
    for name in _discover_migrations():
        if name in applied:
            continue
        mod = importlib.import_module(f"{MIGRATIONS_PACKAGE}.{name}")
        with transaction(conn):
            # Another process may have applied it while we waited for the lock
            if _is_applied(conn, name):
                continue
            mod.up(conn)
            conn.execute("INSERT INTO schema_versions (version) VALUES (?)", (name,))
        newly_applied.append(name)

    return newly_applied


def _is_applied(conn: sqlite3.Connection, name: str) -> bool:
    row = conn.execute(
        "SELECT 1 FROM schema_versions WHERE version = ?", (name,)
    ).fetchone()
    return row is not None


def _discover_migrations() -> list[str]:
    """Discover migration modules by naming convention v###_*.py."""
    migrations_dir = Path(__file__).parent / "migrations"
    return sorted(p.stem for p in migrations_dir.glob("v[0-9]*_*.py"))
