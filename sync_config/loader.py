"""
Configuration Loader (``sync_config.loader``).

Responsibility
--------------
Builds a validated ``ServiceConfig`` from two layers:

1. An optional YAML file (base values, lists may be written as YAML lists).
2. Environment variables, which override the file.  Every variable also
   accepts a Docker-secret companion ``<NAME>_FILE``.

The single public entry point for runtime config is
``sync_config.get_active_config()``.

Invariants enforced
-------------------
* Sync ids and encryption passwords are paired by position exactly once,
  here, into ``SyncTarget`` values.  An empty password slot means the
  budget has no password.
* Every validation error raises ``ConfigurationError`` naming the field;
  there are no silent defaults for required fields.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Invalid value  -> ``ConfigurationError``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Mapping, Sequence

import yaml

from sync_kernel.domain.clock import SystemClock
from sync_kernel.exceptions import ConfigurationError
from sync_kernel.logging_config import get_logger

from sync_config.schema import (
    DEFAULT_CRON_SCHEDULE,
    DEFAULT_DATA_DIR,
    DEFAULT_LOG_LEVEL,
    DEFAULT_TIMEZONE,
    LOG_LEVELS,
    ServiceConfig,
)
from sync_config.secrets import get_configuration
from sync_engine.domain.schedule import next_fire_time, parse_cron, validate_timezone
from sync_engine.domain.types import SyncTarget

logger = get_logger("config.loader")

# YAML key -> environment variable
ENV_KEYS: dict[str, str] = {
    "server_url": "ACTUAL_SERVER_URL",
    "server_password": "ACTUAL_SERVER_PASSWORD",
    "budget_sync_ids": "ACTUAL_BUDGET_SYNC_IDS",
    "encryption_passwords": "ENCRYPTION_PASSWORDS",
    "cron_schedule": "CRON_SCHEDULE",
    "timezone": "TIMEZONE",
    "run_on_start": "RUN_ON_START",
    "log_level": "LOG_LEVEL",
    "data_dir": "DATA_DIR",
    "ledger_client_factory": "LEDGER_CLIENT_FACTORY",
}

_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})

MIN_CRON_LENGTH = 9


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML config file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
        ConfigurationError: if the top level is not a mapping.
    """
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigurationError(str(path), "top level of the config file must be a mapping")
    return data


def split_list(value: Any) -> list[str]:
    """Turn a comma-separated string or a YAML list into a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return value.split(",")
    if isinstance(value, (list, tuple)):
        return ["" if item is None else str(item) for item in value]
    raise ValueError(f"expected a list or comma-separated string, got {type(value).__name__}")


def parse_bool(value: Any) -> bool:
    """Parse a boolean from YAML or an environment string."""
    if isinstance(value, bool):
        return value
    word = str(value).strip().lower()
    if word in _TRUE_WORDS:
        return True
    if word in _FALSE_WORDS:
        return False
    raise ValueError(f"expected a boolean, got {value!r}")


def build_targets(
    sync_ids: Sequence[str],
    passwords: Sequence[str],
) -> tuple[SyncTarget, ...]:
    """
    Pair sync ids with encryption passwords by list position.

    Raises:
        ConfigurationError: if no sync ids are given, one is blank, or
            one is repeated.
    """
    cleaned = [sync_id.strip() for sync_id in sync_ids]
    if not cleaned or cleaned == [""]:
        raise ConfigurationError("budget_sync_ids", "at least one sync id is required")
    if any(not sync_id for sync_id in cleaned):
        raise ConfigurationError("budget_sync_ids", "sync ids must not be blank")
    duplicates = sorted({s for s in cleaned if cleaned.count(s) > 1})
    if duplicates:
        raise ConfigurationError("budget_sync_ids", f"duplicate sync ids: {', '.join(duplicates)}")

    if len(passwords) > len(cleaned):
        logger.warning(
            "config_extra_encryption_passwords",
            extra={"sync_id_count": len(cleaned), "password_count": len(passwords)},
        )

    return tuple(
        SyncTarget(
            sync_id=sync_id,
            encryption_password=(passwords[index] or None) if index < len(passwords) else None,
            ordinal_index=index,
        )
        for index, sync_id in enumerate(cleaned)
    )


def _merged_values(
    file_values: Mapping[str, Any],
    environ: Mapping[str, str],
) -> dict[str, Any]:
    merged: dict[str, Any] = {}
    for key, env_name in ENV_KEYS.items():
        env_value = get_configuration(env_name, environ)
        if env_value is not None:
            merged[key] = env_value
        elif file_values.get(key) not in (None, ""):
            merged[key] = file_values[key]
    return merged


def _required(values: Mapping[str, Any], key: str) -> str:
    value = values.get(key)
    if value is None or not str(value).strip():
        raise ConfigurationError(key, f"{ENV_KEYS[key]} is required")
    return str(value)


def load_config(
    environ: Mapping[str, str] | None = None,
    config_file: Path | None = None,
) -> ServiceConfig:
    """
    Build a ``ServiceConfig`` from an optional YAML file plus the environment.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.
        config_file: Optional YAML file with base values.

    Raises:
        ConfigurationError: if any value is missing or invalid.
    """
    env = os.environ if environ is None else environ
    file_values = load_yaml_file(config_file) if config_file is not None else {}
    values = _merged_values(file_values, env)

    server_url = _required(values, "server_url")
    server_password = _required(values, "server_password")

    try:
        sync_ids = split_list(values.get("budget_sync_ids"))
        passwords = split_list(values.get("encryption_passwords"))
    except ValueError as exc:
        raise ConfigurationError("budget_sync_ids", str(exc)) from exc
    targets = build_targets(sync_ids, passwords)

    cron_schedule = str(values.get("cron_schedule", DEFAULT_CRON_SCHEDULE)).strip()
    if len(cron_schedule) < MIN_CRON_LENGTH:
        raise ConfigurationError(
            "cron_schedule", f"must be at least {MIN_CRON_LENGTH} characters, got {cron_schedule!r}"
        )
    try:
        cron_spec = parse_cron(cron_schedule)
    except ValueError as exc:
        raise ConfigurationError("cron_schedule", str(exc)) from exc

    timezone = str(values.get("timezone", DEFAULT_TIMEZONE)).strip()
    try:
        tz = validate_timezone(timezone)
    except ValueError as exc:
        raise ConfigurationError("timezone", str(exc)) from exc

    try:
        next_fire_time(cron_spec, SystemClock().now(), tz)
    except ValueError as exc:
        raise ConfigurationError("cron_schedule", f"schedule never fires: {exc}") from exc

    try:
        run_on_start = parse_bool(values.get("run_on_start", False))
    except ValueError as exc:
        raise ConfigurationError("run_on_start", str(exc)) from exc

    log_level = str(values.get("log_level", DEFAULT_LOG_LEVEL)).strip().lower()
    if log_level not in LOG_LEVELS:
        raise ConfigurationError("log_level", f"expected one of {', '.join(LOG_LEVELS)}, got {log_level!r}")

    factory = values.get("ledger_client_factory")

    return ServiceConfig(
        server_url=server_url,
        server_password=server_password,
        targets=targets,
        cron_schedule=cron_schedule,
        timezone=timezone,
        run_on_start=run_on_start,
        log_level=log_level,
        data_dir=Path(values.get("data_dir", DEFAULT_DATA_DIR)),
        ledger_client_factory=str(factory) if factory else None,
    )
