"""
sync_engine.domain -- Pure types and value objects for the sync engine.

ZERO I/O.  All types are frozen dataclasses.
"""

from sync_engine.domain.attempts import (
    MAX_ATTEMPTS,
    AttemptProgress,
    advance,
    begin_attempts,
)
from sync_engine.domain.types import (
    AccountBalance,
    AttemptState,
    CycleReport,
    LocalCacheEntry,
    SyncAttemptOutcome,
    SyncStep,
    SyncTarget,
    TargetRunResult,
)

__all__ = [
    "MAX_ATTEMPTS",
    "AccountBalance",
    "AttemptProgress",
    "AttemptState",
    "CycleReport",
    "LocalCacheEntry",
    "SyncAttemptOutcome",
    "SyncStep",
    "SyncTarget",
    "TargetRunResult",
    "advance",
    "begin_attempts",
]
