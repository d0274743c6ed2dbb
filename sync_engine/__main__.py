"""
Run the budget sync service.

Loads configuration (environment, optionally layered over a YAML file),
builds the ledger client from LEDGER_CLIENT_FACTORY and runs sync cycles
on the configured cron schedule until SIGINT/SIGTERM.

Usage:
    python3 -m sync_engine [--config PATH] [--once]

Examples:
    # Scheduled service, configuration from the environment only
    python3 -m sync_engine

    # Base values from a YAML file, environment overrides
    python3 -m sync_engine --config sync.yaml

    # One cycle now, exit 0 if every budget synced, 1 otherwise
    python3 -m sync_engine --once
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from pathlib import Path
from types import FrameType
from typing import Sequence

import yaml

from sync_kernel.exceptions import (
    ConfigurationError,
    CycleFailedError,
    DataDirectoryPermissionError,
    LedgerClientFactoryError,
)
from sync_kernel.logging_config import configure_logging, get_logger, parse_log_level

from sync_config import get_active_config
from sync_engine.client import create_client
from sync_engine.service import SyncService

logger = get_logger("engine.main")


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python3 -m sync_engine",
        description="Scheduled bank sync and push for remote ledger budgets.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML file with base configuration values (environment overrides).",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single sync cycle and exit instead of scheduling.",
    )
    return parser.parse_args(argv)


def install_exception_hooks() -> None:
    """Log exceptions that escape every call-site boundary.

    These hooks only record the error.  They never touch the session or
    the scheduler.
    """

    def _log_uncaught(exc_type, exc_value, exc_traceback) -> None:
        logger.critical(
            "uncaught_exception",
            exc_info=(exc_type, exc_value, exc_traceback),
        )

    def _log_thread_uncaught(args: threading.ExceptHookArgs) -> None:
        if args.exc_type is SystemExit:
            return
        logger.critical(
            "uncaught_thread_exception",
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
            extra={"thread_name": args.thread.name if args.thread else None},
        )

    sys.excepthook = _log_uncaught
    threading.excepthook = _log_thread_uncaught


def _run_once(service: SyncService) -> int:
    try:
        report = service.run_cycle()
    except CycleFailedError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1
    print(f"Synced {len(report.results)} budget(s) in {report.duration_ms} ms.")
    return 0


def _run_scheduled(service: SyncService) -> int:
    scheduler = service.create_scheduler()
    stopping = threading.Event()

    def _handle_signal(signum: int, frame: FrameType | None) -> None:
        logger.info("shutdown_signal_received", extra={"signal": signal.Signals(signum).name})
        stopping.set()

    signal.signal(signal.SIGINT, _handle_signal)
    signal.signal(signal.SIGTERM, _handle_signal)

    scheduler.start()
    try:
        while not stopping.is_set() and scheduler.is_running:
            stopping.wait(timeout=1.0)
    finally:
        scheduler.stop()
        try:
            service.emergency_shutdown()
        except Exception:
            logger.exception("shutdown_close_failed")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    try:
        config = get_active_config(config_file=args.config)
    except ConfigurationError as e:
        print(f"ERROR: Invalid configuration: {e}", file=sys.stderr)
        return 1
    except (OSError, yaml.YAMLError) as e:
        print(f"ERROR: Failed to load config: {e}", file=sys.stderr)
        return 1

    configure_logging(level=parse_log_level(config.log_level))
    install_exception_hooks()

    if not config.ledger_client_factory:
        print("ERROR: LEDGER_CLIENT_FACTORY is required to build the ledger client.", file=sys.stderr)
        return 1

    try:
        client = create_client(config.ledger_client_factory)
    except LedgerClientFactoryError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    try:
        service = SyncService.from_config(config, client)
        if args.once:
            return _run_once(service)
        return _run_scheduled(service)
    except DataDirectoryPermissionError as e:
        logger.critical("data_dir_unusable", extra={"data_dir": e.path, "reason": e.reason})
        print(f"ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
