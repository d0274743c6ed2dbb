"""
sync_config -- single public entrypoint for service configuration.

Responsibility:
    Provides the ONLY way to obtain configuration at runtime through
    ``get_active_config()``.  No other component reads environment
    variables or configuration files directly.

Architecture position:
    Configuration sits above ``sync_kernel`` and the pure
    ``sync_engine.domain`` types.  The engine services never import
    ``sync_config``; only the composition root and the process entry
    point do.

Failure modes:
    - ``ConfigurationError`` -- a required value is missing or invalid.
    - ``SecretFileError`` -- a ``*_FILE`` variable does not name a file.
    - ``FileNotFoundError`` / ``yaml.YAMLError`` -- bad config file.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Mapping

from sync_config.loader import load_config
from sync_config.schema import ServiceConfig
from sync_engine.domain.schedule import describe_cron

_logger = logging.getLogger("ledger_sync.config")


def get_active_config(
    environ: Mapping[str, str] | None = None,
    config_file: Path | None = None,
) -> ServiceConfig:
    """The ONLY public configuration entrypoint.

    Emits one ``SYNC_CONFIG_TRACE`` log entry describing the loaded
    configuration.  Secrets are never logged.

    Args:
        environ: Environment mapping; defaults to ``os.environ``.
        config_file: Optional YAML file whose values the environment overrides.
    """
    config = load_config(environ=environ, config_file=config_file)

    try:
        schedule_description = describe_cron(config.cron_schedule)
    except ValueError:
        schedule_description = config.cron_schedule

    _logger.info(
        "SYNC_CONFIG_TRACE",
        extra={
            "server_url": config.server_url,
            "sync_ids": list(config.sync_ids),
            "encrypted_sync_ids": [t.sync_id for t in config.targets if t.has_password],
            "cron_schedule": config.cron_schedule,
            "schedule_description": schedule_description,
            "timezone": config.timezone,
            "run_on_start": config.run_on_start,
            "data_dir": str(config.data_dir),
            "config_file": str(config_file) if config_file else None,
        },
    )
    return config


__all__ = [
    "ServiceConfig",
    "get_active_config",
]
