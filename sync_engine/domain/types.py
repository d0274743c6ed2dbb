"""
sync_engine.domain.types -- Pure frozen dataclasses for the sync engine.

ZERO I/O.  Frozen dataclasses with enum status fields and tuples for
immutable collections.

Invariants enforced:
    - SyncTarget pairs a sync id with its own password; the positional
      matching against the configured password list happens exactly once,
      at config-load time.
    - CycleReport.failed_sync_ids is a frozenset -- a budget that exhausts
      its attempts appears in it exactly once.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


# =============================================================================
# Status enums
# =============================================================================


class AttemptState(str, Enum):
    """Per-target lifecycle state within one cycle."""

    IDLE = "idle"  # Not yet started
    ATTEMPTING = "attempting"  # Attempt n in progress
    FAILED = "failed"  # Every attempt used up
    SUCCEEDED = "succeeded"  # Pushed to the server


class SyncStep(str, Enum):
    """The step of a sync attempt that was running when it failed."""

    OPEN_SESSION = "open_session"
    DOWNLOAD = "download"
    LOAD = "load"
    BANK_SYNC = "bank_sync"
    RECONCILE = "reconcile"
    PUSH = "push"


# =============================================================================
# Configuration-facing DTOs
# =============================================================================


@dataclass(frozen=True)
class SyncTarget:
    """One configured remote budget.

    ``encryption_password`` is None when the budget is not end-to-end
    encrypted; an empty slot in the configured password list maps to None.
    """

    sync_id: str
    encryption_password: str | None = field(default=None, repr=False)
    ordinal_index: int = 0

    @property
    def has_password(self) -> bool:
        return bool(self.encryption_password)


@dataclass(frozen=True)
class LocalCacheEntry:
    """A budget directory the ledger library left in the data directory."""

    directory_name: str
    local_budget_id: str
    sync_id: str  # metadata groupId


@dataclass(frozen=True)
class AccountBalance:
    """Raw balance of one account as stored by the ledger (minor units)."""

    account_id: str
    balance_current: int | float | None = None

    @property
    def has_numeric_balance(self) -> bool:
        value = self.balance_current
        return isinstance(value, (int, float)) and not isinstance(value, bool)


# =============================================================================
# Outcome DTOs
# =============================================================================


@dataclass(frozen=True)
class SyncAttemptOutcome:
    """Immutable result of a single attempt at syncing one budget."""

    sync_id: str
    attempt_number: int
    succeeded: bool
    error: str | None = None
    failed_step: SyncStep | None = None
    duration_ms: int = 0


@dataclass(frozen=True)
class TargetRunResult:
    """Every attempt made for one target during a cycle, and where it ended."""

    sync_id: str
    state: AttemptState
    attempts: tuple[SyncAttemptOutcome, ...] = ()
    balances_reconciled: bool | None = None  # None: never reached reconcile

    @property
    def succeeded(self) -> bool:
        return self.state == AttemptState.SUCCEEDED


@dataclass(frozen=True)
class CycleReport:
    """Immutable summary of one full pass over every sync target.

    Returned by ``BudgetSyncOrchestrator.run_cycle()`` and attached to
    ``CycleFailedError`` when any target failed.
    """

    cycle_id: str
    failed_sync_ids: frozenset[str] = frozenset()
    results: tuple[TargetRunResult, ...] = ()
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return not self.failed_sync_ids
