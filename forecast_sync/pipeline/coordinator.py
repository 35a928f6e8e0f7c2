"""Sync coordinator: fetch, parse and apply a forecast batch to the local store.

The coordinator is the sole writer of the store. It decides whether a refresh
is needed, evicts days before today, and guarantees that at most one sync runs
at a time inside the process. Retry and backoff belong to whatever triggers it.
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Protocol

from forecast_sync.ingest.owm_client import FetchError
from forecast_sync.ingest.owm_parser import ForecastParseError, parse_forecast
from forecast_sync.ingest.staleness import is_fetch_needed
from forecast_sync.models.common import ms_to_iso_date, normalized_utc_today_ms, utc_now
from forecast_sync.models.forecast import ForecastBatch
from forecast_sync.models.sync import (
    SyncFailure,
    SyncFailureKind,
    SyncResult,
    SyncState,
    SyncStatus,
)
from forecast_sync.storage.weather_store import ForecastStore, StorageError

logger = logging.getLogger(__name__)


class Fetcher(Protocol):
    def fetch(self, location_query: str) -> str: ...


class Scheduler(Protocol):
    def schedule_periodic(
        self, job: Callable[[], SyncResult], interval_seconds: int
    ) -> None: ...


Parser = Callable[..., ForecastBatch]


class SyncCoordinator:
    def __init__(
        self,
        store: ForecastStore,
        fetcher: Fetcher,
        *,
        location_query: str,
        horizon_days: int,
        scheduler: Scheduler | None = None,
        interval_seconds: int = 3 * 3600,
        parser: Parser = parse_forecast,
        clock: Callable[[], datetime] = utc_now,
    ):
        if horizon_days < 1:
            raise ValueError("horizon_days must be >= 1")
        self.store = store
        self.fetcher = fetcher
        self.location_query = location_query
        self.horizon_days = horizon_days
        self.scheduler = scheduler
        self.interval_seconds = interval_seconds
        self.parser = parser
        self.clock = clock

        # Separate locks: initialize() runs sync_now() while holding its own.
        self._init_lock = threading.Lock()
        self._initialized = False
        self._sync_lock = threading.Lock()

        self._state = SyncState.IDLE
        self._last_result: SyncResult | None = None

    @property
    def state(self) -> SyncState:
        return self._state

    @property
    def last_result(self) -> SyncResult | None:
        return self._last_result

    @property
    def initialized(self) -> bool:
        return self._initialized

    def today0(self) -> int:
        return normalized_utc_today_ms(self.clock())

    def initialize(self) -> SyncResult | None:
        """Register the periodic sync and run one now if the cache is short.

        Runs at most once per coordinator. Later or concurrent callers wait for
        the first call to finish and then return None.
        """
        with self._init_lock:
            if self._initialized:
                return None

            # A scheduler that raises leaves the coordinator uninitialized
            if self.scheduler is not None:
                self.scheduler.schedule_periodic(self.sync_now, self.interval_seconds)
                logger.info(
                    "Registered periodic sync every %ds for %r",
                    self.interval_seconds, self.location_query,
                )
            self._initialized = True

            try:
                needed = self.is_fetch_needed()
            except StorageError as e:
                return self._storage_failure(e)
            if needed:
                return self.sync_now()
            logger.info("Cache covers %d days, no initial sync needed", self.horizon_days)
            return None

    def is_fetch_needed(self, today0: int | None = None) -> bool:
        if today0 is None:
            today0 = self.today0()
        return is_fetch_needed(self.store.max_date(), today0, self.horizon_days)

    def delete_old_data(self) -> int:
        """Delete every entry dated before today. Returns rows removed."""
        deleted = self.store.delete_before(self.today0())
        if deleted:
            logger.info("Deleted %d forecast days before today", deleted)
        return deleted

    def sync_now(self) -> SyncResult:
        """Run the fetch -> parse -> store pipeline once.

        If another sync is in flight this returns COALESCED immediately without
        touching the network.
        """
        if not self._sync_lock.acquire(blocking=False):
            logger.info("Sync already in progress, coalescing request")
            return SyncResult(status=SyncStatus.COALESCED)
        try:
            started_at = self.clock().isoformat()
            start = time.monotonic()
            try:
                result = self._run_pipeline()
            finally:
                self._state = SyncState.IDLE
            result = replace(result, duration_seconds=time.monotonic() - start)
            self._last_result = result
            self._record(started_at, result)
            return result
        finally:
            self._sync_lock.release()

    def _run_pipeline(self) -> SyncResult:
        today0 = self.today0()

        try:
            needed = self.is_fetch_needed(today0)
        except StorageError as e:
            return self._storage_failure(e)
        if not needed:
            logger.info("Forecast cache is fresh, skipping fetch")
            return SyncResult(status=SyncStatus.SKIPPED)

        self._state = SyncState.FETCHING
        try:
            raw = self.fetcher.fetch(self.location_query)
        except FetchError as e:
            logger.warning("Forecast fetch failed (%s): %s", e.kind, e.detail)
            return SyncResult(
                status=SyncStatus.FAILED,
                failure=SyncFailure(
                    kind=SyncFailureKind.NETWORK, detail=e.detail, network=e.kind
                ),
            )

        self._state = SyncState.PARSING
        try:
            batch = self.parser(raw, today0=today0)
        except ForecastParseError as e:
            logger.warning("Forecast parse failed: %s", e)
            return SyncResult(
                status=SyncStatus.FAILED,
                failure=SyncFailure(
                    kind=SyncFailureKind.PARSE,
                    detail=e.detail,
                    parse=e.kind,
                    field_name=e.field_name,
                ),
            )

        self._state = SyncState.STORING
        try:
            written, evicted = self.store.replace_and_evict(batch.entries, today0)
        except StorageError as e:
            return self._storage_failure(e)

        logger.info(
            "Synced %d forecast days through %s, evicted %d",
            written,
            ms_to_iso_date(batch.last_date) if batch.last_date is not None else "-",
            evicted,
        )
        return SyncResult(
            status=SyncStatus.SYNCED, entries_written=written, evicted=evicted
        )

    def _storage_failure(self, error: StorageError) -> SyncResult:
        logger.error("Forecast store failed, cache left unchanged: %s", error)
        return SyncResult(
            status=SyncStatus.FAILED,
            failure=SyncFailure(kind=SyncFailureKind.STORAGE, detail=str(error)),
        )

    def _record(self, started_at: str, result: SyncResult) -> None:
        try:
            self.store.record_sync(started_at, result)
        except StorageError as e:
            logger.error("Could not record sync run: %s", e)

