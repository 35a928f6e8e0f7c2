"""SQLite-backed local forecast store.

Every call opens its own connection so the store can be shared between the
sync worker thread and readers on other threads.
"""

import logging
import sqlite3
import threading
from collections.abc import Callable, Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Protocol, TypeVar

from forecast_sync.models.forecast import ForecastEntry, ListForecastEntry
from forecast_sync.models.sync import SyncResult
from forecast_sync.storage import sync_repo, weather_repo
from forecast_sync.storage.database import connect, run_migrations, transaction

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StorageError(Exception):
    """Raised when the local store cannot complete an operation."""


class ForecastStore(Protocol):
    def max_date(self) -> int | None: ...

    def entries_in_range(self, start: int, end: int) -> list[ForecastEntry]: ...

    def delete_before(self, date_ms: int) -> int: ...

    def upsert_batch(self, entries: Sequence[ForecastEntry]) -> int: ...

    def replace_and_evict(
        self, entries: Sequence[ForecastEntry], today0: int
    ) -> tuple[int, int]: ...

    def record_sync(self, started_at: str, result: SyncResult) -> None: ...


class SqliteWeatherStore:
    def __init__(self, db_path: str | Path):
        self.db_path = Path(db_path)
        self._migrated = False
        self._migrate_lock = threading.Lock()

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = connect(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(f"cannot open {self.db_path}: {e}") from e
        try:
            self._ensure_schema(conn)
            yield conn
        except sqlite3.Error as e:
            raise StorageError(str(e)) from e
        finally:
            conn.close()

    def _ensure_schema(self, conn: sqlite3.Connection) -> None:
        if self._migrated:
            return
        with self._migrate_lock:
            if not self._migrated:
                run_migrations(conn)
                self._migrated = True

    def _read(self, query: Callable[[sqlite3.Connection], T]) -> T:
        with self._connection() as conn:
            return query(conn)

    # --- Reads ---

    def max_date(self) -> int | None:
        return self._read(weather_repo.get_max_date)

    def entries_in_range(self, start: int, end: int) -> list[ForecastEntry]:
        return self._read(lambda conn: weather_repo.get_range(conn, start, end))

    def get_by_date(self, date_ms: int) -> ForecastEntry | None:
        return self._read(lambda conn: weather_repo.get_by_date(conn, date_ms))

    def list_entries(self, from_date: int) -> list[ListForecastEntry]:
        return self._read(lambda conn: weather_repo.get_list_entries(conn, from_date))

    def count_from(self, from_date: int) -> int:
        return self._read(lambda conn: weather_repo.count_from(conn, from_date))

    def count(self) -> int:
        return self._read(weather_repo.count_all)

    def latest_sync(self, status: str | None = None) -> dict | None:
        return self._read(lambda conn: sync_repo.get_latest_run(conn, status))

    def recent_syncs(self, limit: int = 20) -> list[dict]:
        return self._read(lambda conn: sync_repo.get_recent_runs(conn, limit))

    # --- Writes ---

    def delete_before(self, date_ms: int) -> int:
        with self._connection() as conn, transaction(conn):
            return weather_repo.delete_before(conn, date_ms)

    def upsert_batch(self, entries: Sequence[ForecastEntry]) -> int:
        with self._connection() as conn, transaction(conn):
            return weather_repo.upsert_entries(conn, entries)

    def replace_and_evict(
        self, entries: Iterable[ForecastEntry], today0: int
    ) -> tuple[int, int]:
        """Evict days before today0 and upsert the batch in one transaction.

        Returns (written, evicted). Readers see either the previous contents or
        the fully applied batch.
        """
        with self._connection() as conn, transaction(conn):
            evicted = weather_repo.delete_before(conn, today0)
            written = weather_repo.upsert_entries(conn, entries)
        logger.debug("Applied batch: %d written, %d evicted", written, evicted)
        return written, evicted

    def record_sync(self, started_at: str, result: SyncResult) -> None:
        with self._connection() as conn, transaction(conn):
            sync_repo.record_run(conn, started_at, result)
