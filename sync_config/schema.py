"""
ServiceConfig schema.

The canonical, validated configuration for one service process.  Built
by ``sync_config.loader`` from a YAML file and/or environment variables;
immutable for the lifetime of the process (a change needs a restart).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from sync_engine.domain.types import SyncTarget

DEFAULT_CRON_SCHEDULE = "0 1 * * *"  # once a day at 1am
DEFAULT_TIMEZONE = "UTC"
DEFAULT_LOG_LEVEL = "info"
DEFAULT_DATA_DIR = Path("./data")
LOG_LEVELS = ("debug", "info", "warn", "error")


@dataclass(frozen=True)
class ServiceConfig:
    """Everything the sync service needs to run."""

    server_url: str
    server_password: str = field(repr=False)
    targets: tuple[SyncTarget, ...]
    cron_schedule: str = DEFAULT_CRON_SCHEDULE
    timezone: str = DEFAULT_TIMEZONE
    run_on_start: bool = False
    log_level: str = DEFAULT_LOG_LEVEL
    data_dir: Path = DEFAULT_DATA_DIR
    ledger_client_factory: str | None = None

    @property
    def sync_ids(self) -> tuple[str, ...]:
        return tuple(t.sync_id for t in self.targets)
