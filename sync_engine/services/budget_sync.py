"""
BudgetSyncOrchestrator -- one sync cycle over every configured budget.

Contract:
    ``run_cycle()`` opens the shared ledger session, drives each SyncTarget
    through load-or-download -> bank sync -> balance reconcile -> push,
    closes the session in a ``finally`` block, and returns a CycleReport.
    If any target exhausted its attempts the report is attached to a
    single ``CycleFailedError`` naming every failed sync id.

Invariants enforced:
    - Targets run strictly one after another, end to end.  The ledger
      library holds one global session; overlapping download/load calls
      against it fail with "service already running" style races.
    - A failing target never stops the remaining targets.
    - Per target: Attempting(n) --failure--> Attempting(n+1) only while
      n < max_attempts; between attempts the session is reset and the
      target's cache directory (only that one) is evicted.
    - Every remote-library call is wrapped at its call site and surfaces
      as BudgetStepError carrying the step that failed.
    - DataDirectoryPermissionError is never retried; it aborts the cycle
      after the session is closed.

Non-goals:
    - Does NOT schedule -- SyncScheduler owns timing and overlap.
    - Does NOT parallelize.
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Sequence
from uuid import uuid4

from sync_kernel.domain.clock import Clock, SystemClock
from sync_kernel.exceptions import (
    BudgetStepError,
    CycleFailedError,
    DataDirectoryPermissionError,
    LedgerConnectionError,
)
from sync_kernel.logging_config import LogContext, get_logger

from sync_engine.domain.attempts import MAX_ATTEMPTS, advance, begin_attempts
from sync_engine.domain.types import (
    AttemptState,
    CycleReport,
    LocalCacheEntry,
    SyncAttemptOutcome,
    SyncStep,
    SyncTarget,
    TargetRunResult,
)
from sync_engine.services.balance_reconciler import AccountBalanceSource, BalanceReconciler
from sync_engine.services.cache_resolver import CacheResolver
from sync_engine.services.session_manager import Session, SessionManager

logger = get_logger("engine.budget_sync")

StoreFactory = Callable[[Path, LocalCacheEntry], AccountBalanceSource]


class BudgetSyncOrchestrator:
    """Drives every SyncTarget through one cycle with bounded retry."""

    def __init__(
        self,
        session_manager: SessionManager,
        cache_resolver: CacheResolver,
        reconciler: BalanceReconciler,
        targets: Sequence[SyncTarget],
        server_url: str,
        server_password: str,
        data_dir: Path | str,
        clock: Clock | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        store_factory: StoreFactory | None = None,
    ):
        self._sessions = session_manager
        self._cache = cache_resolver
        self._reconciler = reconciler
        self._targets = tuple(targets)
        self._server_url = server_url
        self._server_password = server_password
        self._data_dir = Path(data_dir)
        self._clock = clock or SystemClock()
        self._max_attempts = max_attempts
        self._store_factory = store_factory

    @property
    def targets(self) -> tuple[SyncTarget, ...]:
        return self._targets

    # -------------------------------------------------------------------------
    # Cycle
    # -------------------------------------------------------------------------

    def run_cycle(self) -> CycleReport:
        """Sync every target once.

        Raises:
            DataDirectoryPermissionError: If the data directory is unusable.
            CycleFailedError: If one or more targets exhausted their attempts.
        """
        cycle_id = uuid4().hex
        with LogContext.bind(cycle_id=cycle_id):
            start_time = time.monotonic()
            started_at = self._clock.now()
            logger.info("sync_cycle_started", extra={"target_count": len(self._targets)})

            session: Session | None = None
            results: list[TargetRunResult] = []
            try:
                try:
                    session = self._open_session()
                except LedgerConnectionError:
                    # Each target's first attempt will try to open again.
                    logger.exception("session_open_failed")

                self._cache.scan()
                for target in self._targets:
                    session, result = self._sync_target(session, target)
                    results.append(result)
            finally:
                if session is not None:
                    self._sessions.close(session)

            failed = frozenset(r.sync_id for r in results if not r.succeeded)
            report = CycleReport(
                cycle_id=cycle_id,
                failed_sync_ids=failed,
                results=tuple(results),
                started_at=started_at,
                completed_at=self._clock.now(),
                duration_ms=int((time.monotonic() - start_time) * 1000),
            )

            if failed:
                logger.error(
                    "sync_cycle_failed",
                    extra={
                        "failed_sync_ids": sorted(failed),
                        "duration_ms": report.duration_ms,
                    },
                )
                raise CycleFailedError(failed, report)

            logger.info(
                "sync_cycle_completed",
                extra={"target_count": len(results), "duration_ms": report.duration_ms},
            )
            return report

    # -------------------------------------------------------------------------
    # Per target
    # -------------------------------------------------------------------------

    def _sync_target(
        self, session: Session | None, target: SyncTarget,
    ) -> tuple[Session | None, TargetRunResult]:
        progress = begin_attempts(self._max_attempts)
        outcomes: list[SyncAttemptOutcome] = []
        reconciled: bool | None = None

        with LogContext.bind(sync_id=target.sync_id):
            while not progress.is_terminal:
                attempt = progress.attempt
                with LogContext.bind(attempt=attempt):
                    attempt_start = time.monotonic()
                    error: str | None = None
                    failed_step: SyncStep | None = None

                    try:
                        if session is None or not session.is_open:
                            session = self._open_session()
                        reconciled = self._sync_once(session, target, attempt)
                    except DataDirectoryPermissionError:
                        raise
                    except LedgerConnectionError as exc:
                        error, failed_step = str(exc), SyncStep.OPEN_SESSION
                    except BudgetStepError as exc:
                        error, failed_step = exc.reason, SyncStep(exc.step)
                    except Exception as exc:
                        error = str(exc)

                    succeeded = error is None
                    outcomes.append(SyncAttemptOutcome(
                        sync_id=target.sync_id,
                        attempt_number=attempt,
                        succeeded=succeeded,
                        error=error,
                        failed_step=failed_step,
                        duration_ms=int((time.monotonic() - attempt_start) * 1000),
                    ))
                    progress = advance(progress, succeeded)

                    if succeeded:
                        logger.info("budget_synced")
                    elif progress.state == AttemptState.ATTEMPTING:
                        logger.warning(
                            "budget_attempt_failed_retrying",
                            extra={
                                "error": error,
                                "failed_step": failed_step.value if failed_step else None,
                                "max_attempts": progress.max_attempts,
                            },
                        )
                        session = self._recover(session, target)
                    else:
                        logger.error(
                            "budget_attempts_exhausted",
                            extra={
                                "error": error,
                                "failed_step": failed_step.value if failed_step else None,
                                "max_attempts": progress.max_attempts,
                            },
                        )

        return session, TargetRunResult(
            sync_id=target.sync_id,
            state=progress.state,
            attempts=tuple(outcomes),
            balances_reconciled=reconciled,
        )

    def _sync_once(self, session: Session, target: SyncTarget, attempt: int) -> bool:
        """One pass through the steps.  Returns the reconcile result."""
        client = session.client
        entry = self._cache.lookup(target.sync_id)

        if entry is not None:
            logger.info(
                "budget_loading_cached",
                extra={"local_budget_id": entry.local_budget_id},
            )
            self._call(SyncStep.LOAD, target, attempt, client.load_budget, entry.local_budget_id)
        else:
            logger.info("budget_downloading", extra={"encrypted": target.has_password})
            if target.has_password:
                self._call(
                    SyncStep.DOWNLOAD, target, attempt,
                    client.download_budget, target.sync_id,
                    password=target.encryption_password,
                )
            else:
                self._call(SyncStep.DOWNLOAD, target, attempt, client.download_budget, target.sync_id)
            self._cache.scan()
            entry = self._cache.lookup(target.sync_id)

        logger.info("bank_sync_running")
        self._call(SyncStep.BANK_SYNC, target, attempt, client.run_bank_sync)

        reconciled = self._reconcile(session, entry)

        logger.info("budget_pushing")
        self._call(SyncStep.PUSH, target, attempt, client.sync)
        return reconciled

    def _reconcile(self, session: Session, entry: LocalCacheEntry | None) -> bool:
        if self._store_factory is None:
            return self._reconciler.reconcile(session)
        if entry is None:
            logger.warning("budget_store_not_found")
            return False
        store = self._store_factory(self._data_dir, entry)
        return self._reconciler.reconcile(session, store)

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _open_session(self) -> Session:
        return self._sessions.open(self._data_dir, self._server_url, self._server_password)

    def _recover(self, session: Session | None, target: SyncTarget) -> Session | None:
        """Reset the session and evict the target's cache between attempts."""
        try:
            if session is None:
                session = self._open_session()
            else:
                session = self._sessions.reset(session, self._data_dir)
        except LedgerConnectionError:
            # The next attempt opens again before touching the budget.
            logger.exception("session_reset_failed")

        try:
            self._cache.invalidate(target.sync_id)
        except OSError:
            logger.exception("cache_invalidate_failed")

        return session

    @staticmethod
    def _call(
        step: SyncStep,
        target: SyncTarget,
        attempt: int,
        fn: Callable[..., Any],
        *args: Any,
        **kwargs: Any,
    ) -> Any:
        """Invoke one remote-library operation inside an error boundary."""
        try:
            return fn(*args, **kwargs)
        except Exception as exc:
            raise BudgetStepError(target.sync_id, step.value, attempt, str(exc)) from exc
