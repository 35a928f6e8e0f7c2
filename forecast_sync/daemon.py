"""Sync daemon: runs the registered forecast sync on a fixed interval.

The coordinator registers its sync job through `schedule_periodic()` during
`initialize()`. The daemon owns cadence, backoff after failures, PID/state
files and signal handling; the coordinator owns everything else.

Usage:
    forecast-sync daemon                 # every 3 hours (config default)
    forecast-sync daemon --interval 600  # every 10 minutes
    forecast-sync daemon --stop          # stop running daemon
    forecast-sync daemon --status
"""

import json
import logging
import os
import signal
import sys
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import UTC, datetime
from pathlib import Path

from forecast_sync.models.sync import SyncResult, SyncStatus

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 3 * 3600  # 3 hours
MAX_BACKOFF = 3600  # 1 hour max backoff after repeated failures
PID_DIR = Path("data")
PID_FILE = PID_DIR / "daemon.pid"
STATE_FILE = PID_DIR / "daemon_state.json"
LOG_DIR = Path("logs")
MAX_LOG_FILES = 100  # Keep last 100 sync logs


class SyncDaemon:
    """Schedule trigger for the sync coordinator."""

    def __init__(
        self,
        interval: int = DEFAULT_INTERVAL,
        max_backoff: int = MAX_BACKOFF,
    ):
        self.interval = interval
        self.max_backoff = max_backoff
        self._job: Callable[[], SyncResult] | None = None
        self._registrations = 0
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="forecast-sync")
        self._running = False
        self._consecutive_failures = 0
        self._total_syncs = 0
        self._total_successes = 0
        self._total_failures = 0
        self._last_status: str | None = None
        self._last_failure: str | None = None
        self._started_at: str | None = None

    @property
    def registrations(self) -> int:
        return self._registrations

    # --- Trigger surface ---

    def schedule_periodic(self, job: Callable[[], SyncResult], interval_seconds: int) -> None:
        """Register the periodic job. Only the first registration takes effect."""
        self._registrations += 1
        if self._job is not None:
            logger.warning("Periodic sync already registered, ignoring duplicate")
            return
        self._job = job
        self.interval = interval_seconds
        logger.info("Periodic sync registered every %ds", interval_seconds)

    def on_scheduled_tick(self) -> SyncResult:
        """Run the registered job on the calling thread."""
        if self._job is None:
            raise RuntimeError("No sync job registered")
        return self._job()

    def on_immediate_request(self) -> "Future[SyncResult]":
        """Queue the registered job on the background worker."""
        if self._job is None:
            raise RuntimeError("No sync job registered")
        return self._executor.submit(self._job)

    def shutdown(self) -> None:
        self._running = False
        self._executor.shutdown(wait=True)

    # --- Process loop ---

    def start(self, setup: Callable[[], SyncResult | None] | None = None) -> None:
        """Start the daemon loop.

        `setup` runs once before the loop, typically the coordinator's
        initialize(), which registers the job and performs any initial sync.
        """
        self._check_not_already_running()
        self._write_pid()
        self._setup_signals()
        self._running = True
        self._started_at = datetime.now(UTC).isoformat()

        try:
            if setup is not None:
                initial = setup()
                if initial is not None:
                    self._record(initial)
            if self._job is None:
                raise RuntimeError("No sync job registered")

            logger.info(
                "Daemon started: interval=%ds pid=%d", self.interval, os.getpid()
            )
            print(f"🔄 Sync daemon started (pid {os.getpid()}, every {self.interval}s)")
            print(f"   Logs: {LOG_DIR}/")
            print("   Stop: forecast-sync daemon --stop")

            self._loop()
        except KeyboardInterrupt:
            logger.info("Daemon interrupted by keyboard")
        finally:
            self._cleanup()

    def _loop(self) -> None:
        """Main sync loop with backoff on failures."""
        while self._running:
            cycle_start = time.monotonic()
            wait = self._next_wait(self._run_one_cycle())
            self._save_state()

            # Sleep in 1-second increments so we can respond to signals
            elapsed = time.monotonic() - cycle_start
            sleep_until = time.monotonic() + max(0, wait - elapsed)
            while self._running and time.monotonic() < sleep_until:
                time.sleep(1)

    def _next_wait(self, success: bool) -> int:
        if success:
            self._consecutive_failures = 0
            return self.interval
        self._consecutive_failures += 1
        backoff = min(self.interval * (2 ** self._consecutive_failures), self.max_backoff)
        logger.warning(
            "Sync failed (%d consecutive), backing off %ds",
            self._consecutive_failures, backoff,
        )
        return backoff

    def _run_one_cycle(self) -> bool:
        """Execute a single tick. Returns True unless the sync failed."""
        timestamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%SZ")

        LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOG_DIR / f"sync_{timestamp}.log"

        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.INFO)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        root_logger = logging.getLogger()
        root_logger.addHandler(file_handler)

        try:
            logger.info("=== Sync tick #%d ===", self._total_syncs + 1)
            result = self.on_scheduled_tick()
            self._record(result)
            return result.ok
        except Exception:
            self._total_syncs += 1
            self._total_failures += 1
            self._last_status = SyncStatus.FAILED.value
            self._last_failure = "crashed"
            logger.exception("Sync tick #%d crashed", self._total_syncs)
            return False
        finally:
            root_logger.removeHandler(file_handler)
            file_handler.close()
            self._rotate_logs()

    def _record(self, result: SyncResult) -> None:
        self._total_syncs += 1
        self._last_status = result.status.value
        self._last_failure = str(result.failure) if result.failure else None
        if result.ok:
            self._total_successes += 1
            logger.info(
                "Sync #%d %s: %d written, %d evicted",
                self._total_syncs, result.status, result.entries_written, result.evicted,
            )
        else:
            self._total_failures += 1
            logger.error("Sync #%d failed: %s", self._total_syncs, result.failure)

    def _rotate_logs(self) -> None:
        """Delete all but the newest MAX_LOG_FILES tick logs."""
        stale = sorted(LOG_DIR.glob("sync_*.log"), reverse=True)[MAX_LOG_FILES:]
        for path in stale:
            path.unlink(missing_ok=True)

    def _setup_signals(self) -> None:
        """Stop the loop after the in-flight sync on SIGTERM or SIGINT."""
        def _stop(signum: int, frame: object) -> None:
            sig_name = signal.Signals(signum).name
            logger.info("Received %s, stopping after the current sync", sig_name)
            print(f"\n⏹️  {sig_name}: letting the current sync finish...")
            self._running = False

        signal.signal(signal.SIGTERM, _stop)
        signal.signal(signal.SIGINT, _stop)

    def _check_not_already_running(self) -> None:
        """Exit if another sync daemon owns the PID file; clear it if stale."""
        pid = _read_pid()
        alive = _pid_alive(pid) if pid is not None else False
        if alive is False:
            if PID_FILE.exists():
                logger.info("Removing stale PID file %s", PID_FILE)
            PID_FILE.unlink(missing_ok=True)
            return
        if alive:
            print(f"❌ A sync daemon is already running (pid {pid}).")
            print("   Stop it with: forecast-sync daemon --stop")
        else:
            print(f"❌ pid {pid} exists but cannot be signalled; not starting.")
        sys.exit(1)

    def _write_pid(self) -> None:
        PID_DIR.mkdir(parents=True, exist_ok=True)
        PID_FILE.write_text(str(os.getpid()))

    def _save_state(self) -> None:
        """Persist sync counters for `daemon --status` and the read API."""
        state = {
            "pid": os.getpid(),
            "started_at": self._started_at,
            "interval": self.interval,
            "registrations": self._registrations,
            "total_syncs": self._total_syncs,
            "total_successes": self._total_successes,
            "total_failures": self._total_failures,
            "consecutive_failures": self._consecutive_failures,
            "last_status": self._last_status,
            "last_failure": self._last_failure,
            "last_update": datetime.now(UTC).isoformat(),
        }
        STATE_FILE.parent.mkdir(parents=True, exist_ok=True)
        STATE_FILE.write_text(json.dumps(state, indent=2))

    def _cleanup(self) -> None:
        """Drain the worker, drop the PID file and write final counters."""
        self._running = False
        self._executor.shutdown(wait=True)
        PID_FILE.unlink(missing_ok=True)
        self._save_state()
        logger.info(
            "Sync daemon stopped after %d syncs (%d ok, %d failed)",
            self._total_syncs, self._total_successes, self._total_failures,
        )
        print(f"⏹️  Sync daemon stopped after {self._total_syncs} syncs")


def _read_pid() -> int | None:
    try:
        return int(PID_FILE.read_text().strip())
    except (OSError, ValueError):
        return None


def _pid_alive(pid: int) -> bool | None:
    """True if running, False if gone, None if it exists but cannot be signalled."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return None
    return True


def read_state() -> dict | None:
    if not STATE_FILE.exists():
        return None
    try:
        return json.loads(STATE_FILE.read_text())
    except (ValueError, OSError):
        return None


def stop_daemon(timeout: int = 60) -> int:
    """Send SIGTERM to the running sync daemon and wait for it to exit."""
    pid = _read_pid()
    if pid is None:
        if PID_FILE.exists():
            print("Unreadable PID file, removing it")
            PID_FILE.unlink(missing_ok=True)
        else:
            print("No sync daemon running")
        return 1

    if _pid_alive(pid) is False:
        print(f"Sync daemon already gone (stale pid {pid}), cleaning up")
        PID_FILE.unlink(missing_ok=True)
        STATE_FILE.unlink(missing_ok=True)
        return 0

    print(f"Stopping sync daemon (pid {pid}); an in-flight sync finishes first...")
    os.kill(pid, signal.SIGTERM)

    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        time.sleep(1)
        if _pid_alive(pid) is False:
            print("✅ Sync daemon stopped")
            PID_FILE.unlink(missing_ok=True)
            return 0

    print(f"⚠️  Sync daemon still alive after {timeout}s, sending SIGKILL")
    os.kill(pid, signal.SIGKILL)
    PID_FILE.unlink(missing_ok=True)
    return 0


def daemon_status() -> int:
    """Print the sync daemon's counters and last result from its state file."""
    state = read_state()
    if state is None:
        print("No sync daemon state found")
        pid = _read_pid()
        if pid is not None:
            print(f"  PID file names pid {pid} ({'alive' if _pid_alive(pid) else 'not running'})")
        return 1

    pid = state.get("pid")
    running = isinstance(pid, int) and _pid_alive(pid) is True
    print(f"{'🟢' if running else '🔴'} Sync daemon {'running' if running else 'stopped'} (pid {pid})")
    print(f"  Every {state.get('interval', '?')}s since {state.get('started_at') or '?'}")
    print(
        f"  Syncs: {state.get('total_syncs', 0)} "
        f"({state.get('total_successes', 0)} ok, {state.get('total_failures', 0)} failed, "
        f"{state.get('consecutive_failures', 0)} failing in a row)"
    )
    print(f"  Last result: {state.get('last_status') or 'none yet'}")
    if state.get("last_failure"):
        print(f"  Last failure: {state['last_failure']}")
    print(f"  Updated: {state.get('last_update', '?')}")
    return 0
