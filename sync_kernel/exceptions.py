"""
Typed Exception Hierarchy for the Ledger Sync Service.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The sync engine decides what to retry, what to skip and what to surface
purely by exception type.  Matching on message text would make those
decisions fragile, so:
  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, log-safe)
  3. Exceptions carry structured DATA (sync ids, steps, paths)

Example:
    try:
        orchestrator.run_cycle()
    except CycleFailedError as e:
        log.error("cycle failed", extra={"failed": sorted(e.failed_sync_ids)})

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from SyncKernelError:

    SyncKernelError (base)
    |
    +-- ConfigurationError
    |   +-- SecretFileError
    |   +-- LedgerClientFactoryError
    |
    +-- SessionError
    |   +-- LedgerConnectionError
    |   +-- DataDirectoryPermissionError
    |
    +-- CacheMetadataError
    |
    +-- BudgetSyncError
    |   +-- BudgetStepError
    |   +-- CycleFailedError
    |
    +-- BalanceReadError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                             | When Raised
----------------|----------------------------------|----------------------------------
Configuration   | CONFIGURATION_INVALID            | Missing/invalid setting
                | SECRET_NOT_A_FILE                | X_FILE points at a non-file
                | LEDGER_CLIENT_FACTORY_INVALID    | Factory path cannot be loaded
----------------|----------------------------------|----------------------------------
Session         | LEDGER_CONNECTION_FAILED         | init() rejected or unreachable
                | DATA_DIRECTORY_PERMISSION_DENIED | Data dir not readable/writable
----------------|----------------------------------|----------------------------------
Cache           | CACHE_METADATA_INVALID           | metadata.json unreadable/corrupt
----------------|----------------------------------|----------------------------------
Budget sync     | BUDGET_STEP_FAILED               | download/load/bank-sync/push raised
                | SYNC_CYCLE_FAILED                | >=1 budget exhausted its attempts
----------------|----------------------------------|----------------------------------
Reconciliation  | BALANCE_READ_FAILED              | Local account balances unreadable
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from sync_engine.domain.types import CycleReport


class SyncKernelError(Exception):
    """
    Base exception for all sync service errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "SYNC_KERNEL_ERROR"


# Configuration


class ConfigurationError(SyncKernelError):
    """A configuration value is missing or invalid."""

    code: str = "CONFIGURATION_INVALID"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid configuration for {field}: {reason}")


class SecretFileError(ConfigurationError):
    """A ``*_FILE`` variable points at something that is not a regular file."""

    code: str = "SECRET_NOT_A_FILE"

    def __init__(self, field: str, path: str):
        self.path = path
        super().__init__(field, f"environment variable {field}_FILE ({path}) is not a file")


class LedgerClientFactoryError(ConfigurationError):
    """The configured ledger client factory cannot be imported or called."""

    code: str = "LEDGER_CLIENT_FACTORY_INVALID"

    def __init__(self, factory_path: str, reason: str):
        self.factory_path = factory_path
        super().__init__("ledger_client_factory", f"{factory_path!r}: {reason}")


# Session


class SessionError(SyncKernelError):
    """Base exception for ledger session lifecycle errors."""

    code: str = "SESSION_ERROR"


class LedgerConnectionError(SessionError):
    """The remote ledger service is unreachable or rejected the credentials."""

    code: str = "LEDGER_CONNECTION_FAILED"

    def __init__(self, server_url: str, reason: str):
        self.server_url = server_url
        self.reason = reason
        super().__init__(f"Could not open ledger session at {server_url}: {reason}")


class DataDirectoryPermissionError(SessionError):
    """The local data directory cannot be created, read or written."""

    code: str = "DATA_DIRECTORY_PERMISSION_DENIED"

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Data directory {path} is not usable: {reason}")


# Cache


class CacheMetadataError(SyncKernelError):
    """A cached budget directory has a missing or corrupt metadata file."""

    code: str = "CACHE_METADATA_INVALID"

    def __init__(self, directory: str, reason: str):
        self.directory = directory
        self.reason = reason
        super().__init__(f"Unusable metadata in {directory}: {reason}")


# Budget sync


class BudgetSyncError(SyncKernelError):
    """Base exception for budget sync errors."""

    code: str = "BUDGET_SYNC_ERROR"


class BudgetStepError(BudgetSyncError):
    """One step of a budget sync attempt raised."""

    code: str = "BUDGET_STEP_FAILED"

    def __init__(self, sync_id: str, step: str, attempt: int, reason: str):
        self.sync_id = sync_id
        self.step = step
        self.attempt = attempt
        self.reason = reason
        super().__init__(
            f"Budget {sync_id} failed at {step} (attempt {attempt}): {reason}"
        )


class CycleFailedError(BudgetSyncError):
    """One or more budgets exhausted every attempt during a sync cycle."""

    code: str = "SYNC_CYCLE_FAILED"

    def __init__(
        self,
        failed_sync_ids: Iterable[str],
        report: CycleReport | None = None,
    ):
        self.failed_sync_ids = frozenset(failed_sync_ids)
        self.report = report
        super().__init__(
            "Failed to sync budgets: " + ", ".join(sorted(self.failed_sync_ids))
        )


# Reconciliation


class BalanceReadError(SyncKernelError):
    """Account balances could not be read from the local budget store."""

    code: str = "BALANCE_READ_FAILED"

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"Could not read account balances from {source}: {reason}")
