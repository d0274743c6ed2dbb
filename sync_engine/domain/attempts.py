"""
Pure per-target attempt state machine.

Contract:
    ``begin_attempts()`` and ``advance()`` are PURE -- no I/O.  The
    orchestrator owns the side effects (session reset, cache eviction)
    and consults ``AttemptProgress`` to decide whether to perform them.

Transitions::

    Idle --begin--> Attempting(1)
    Attempting(n) --success--> Succeeded
    Attempting(n) --failure--> Attempting(n+1)   if n < max_attempts
    Attempting(n) --failure--> Failed            otherwise
"""

from __future__ import annotations

from dataclasses import dataclass

from sync_engine.domain.types import AttemptState

# Attempts per target per cycle.
MAX_ATTEMPTS = 2


@dataclass(frozen=True)
class AttemptProgress:
    state: AttemptState
    attempt: int
    max_attempts: int = MAX_ATTEMPTS

    @property
    def is_terminal(self) -> bool:
        return self.state in (AttemptState.SUCCEEDED, AttemptState.FAILED)

    @property
    def can_retry(self) -> bool:
        """True while a failure of the current attempt would lead to another."""
        return self.state == AttemptState.ATTEMPTING and self.attempt < self.max_attempts


def begin_attempts(max_attempts: int = MAX_ATTEMPTS) -> AttemptProgress:
    """Move a target from Idle to Attempting(1).

    Raises:
        ValueError: If max_attempts is below 1.
    """
    if max_attempts < 1:
        raise ValueError(f"max_attempts must be at least 1, got {max_attempts}")
    return AttemptProgress(
        state=AttemptState.ATTEMPTING, attempt=1, max_attempts=max_attempts,
    )


def advance(progress: AttemptProgress, succeeded: bool) -> AttemptProgress:
    """Apply the outcome of the current attempt.

    Raises:
        ValueError: If progress is not in the Attempting state.
    """
    if progress.state != AttemptState.ATTEMPTING:
        raise ValueError(f"Cannot advance from state {progress.state.value}")

    if succeeded:
        return AttemptProgress(
            state=AttemptState.SUCCEEDED,
            attempt=progress.attempt,
            max_attempts=progress.max_attempts,
        )

    if progress.attempt < progress.max_attempts:
        return AttemptProgress(
            state=AttemptState.ATTEMPTING,
            attempt=progress.attempt + 1,
            max_attempts=progress.max_attempts,
        )

    return AttemptProgress(
        state=AttemptState.FAILED,
        attempt=progress.attempt,
        max_attempts=progress.max_attempts,
    )
