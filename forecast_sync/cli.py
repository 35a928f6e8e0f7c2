"""CLI entry point for the forecast sync service."""

import argparse
import logging

from forecast_sync.config.loader import (
    config_hash,
    get_config_value,
    load_config,
    set_config_value,
)
from forecast_sync.daemon import SyncDaemon, daemon_status, stop_daemon
from forecast_sync.ingest.staleness import days_covered, is_fetch_needed
from forecast_sync.models.common import ms_to_iso_date, normalized_utc_today_ms
from forecast_sync.models.sync import SyncStatus
from forecast_sync.pipeline.factory import build_coordinator, build_store
from forecast_sync.storage.weather_store import StorageError

DEFAULT_CONFIG = "config/forecast_sync.yaml"


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="forecast-sync",
        description="Weather forecast sync and local cache",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG, help="Config YAML path"
    )
    parser.add_argument("--db", default=None, help="SQLite DB path (overrides config)")

    sub = parser.add_subparsers(dest="command")

    # sync
    sub.add_parser("sync", help="Run one sync now if the cache needs it")

    # daemon
    daemon_p = sub.add_parser("daemon", help="Run periodic syncs in the foreground")
    daemon_p.add_argument("--interval", type=int, help="Seconds between syncs")
    daemon_p.add_argument("--stop", action="store_true", help="Stop the running daemon")
    daemon_p.add_argument("--status", action="store_true", help="Show daemon status")

    # show / purge / status
    sub.add_parser("show", help="List cached forecast days from today")
    sub.add_parser("purge", help="Delete cached days before today")
    sub.add_parser("status", help="Show cache coverage and last sync")

    # config show / config set
    config_p = sub.add_parser("config", help="Config operations")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Display current config")
    set_p = config_sub.add_parser("set", help="Validate a config value")
    set_p.add_argument("keyvalue", help="key=value to set")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)

    try:
        if args.command == "sync":
            return _cmd_sync(config, args)
        elif args.command == "daemon":
            return _cmd_daemon(config, args)
        elif args.command == "show":
            return _cmd_show(config, args)
        elif args.command == "purge":
            return _cmd_purge(config, args)
        elif args.command == "status":
            return _cmd_status(config, args)
        elif args.command == "config":
            return _cmd_config(config, args)
    except StorageError as e:
        print(f"Storage error: {e}")
        return 1

    parser.print_help()
    return 1


def _cmd_sync(config, args) -> int:
    coordinator = build_coordinator(config, args.db)
    result = coordinator.sync_now()
    if result.status == SyncStatus.FAILED:
        print(f"Sync failed: {result.failure}")
        return 1
    print(
        f"Sync {result.status.value.lower()}: "
        f"{result.entries_written} written, {result.evicted} evicted"
    )
    return 0


def _cmd_daemon(config, args) -> int:
    if args.stop:
        return stop_daemon()
    if args.status:
        return daemon_status()

    daemon = SyncDaemon(max_backoff=config.sync.max_backoff_seconds)
    coordinator = build_coordinator(config, args.db, scheduler=daemon)
    if args.interval:
        coordinator.interval_seconds = args.interval
    daemon.start(setup=coordinator.initialize)
    return 0


def _cmd_show(config, args) -> int:
    store = build_store(config, args.db)
    entries = store.list_entries(normalized_utc_today_ms())
    if not entries:
        print("No cached forecast. Run: forecast-sync sync")
        return 1
    for e in entries:
        print(f"{e.iso_date}  code={e.condition_code:<4d} min={e.temp_min:.1f} max={e.temp_max:.1f}")
    return 0


def _cmd_purge(config, args) -> int:
    coordinator = build_coordinator(config, args.db)
    deleted = coordinator.delete_old_data()
    print(f"Deleted {deleted} day(s) before today")
    return 0


def _cmd_status(config, args) -> int:
    store = build_store(config, args.db)
    today0 = normalized_utc_today_ms()
    max_date = store.max_date()

    print(f"Location: {config.provider.location_query}")
    print(f"Cached days: {store.count()} | From today: {store.count_from(today0)}")
    print(f"Latest day: {ms_to_iso_date(max_date) if max_date is not None else 'none'}")
    print(
        f"Coverage: {days_covered(max_date, today0)}/{config.sync.horizon_days} days | "
        f"Fetch needed: {is_fetch_needed(max_date, today0, config.sync.horizon_days)}"
    )
    last = store.latest_sync()
    if last is None:
        print("Last sync: never")
    else:
        print(f"Last sync: {last['status']} at {last['started_at']}")
        if last.get("failure_detail"):
            print(f"  {last['failure_detail']}")
    return 0


def _cmd_config(config, args) -> int:
    if args.config_command == "show":
        print(f"# config {config_hash(config)}")
        print(config.model_dump_json(indent=2))
        return 0
    elif args.config_command == "set":
        kv = args.keyvalue
        if "=" not in kv:
            print("Error: use key=value format")
            return 1
        key, value = kv.split("=", 1)
        try:
            new_config = set_config_value(config, key.strip(), value.strip())
            print(f"Set {key} = {get_config_value(new_config, key.strip())}")
            return 0
        except (KeyError, ValueError) as e:
            print(f"Error: {e}")
            return 1
    else:
        print("Use: config show | config set key=value")
        return 1
