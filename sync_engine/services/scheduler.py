"""
SyncScheduler -- in-process cron scheduler for sync cycles.

Contract:
    Fires one sync cycle per match of a cron expression evaluated in an
    IANA timezone.  ``tick()`` runs one cycle and is public for testing;
    ``start()`` / ``stop()`` run the loop on a background thread.

Invariants enforced:
    - No overlapping cycles.  The loop runs cycles on its single thread
      and only computes the next fire time after the cycle returns, so
      fire times that pass while a cycle is running are dropped, not
      queued.  ``tick()`` also refuses to start while another tick is in
      progress (e.g. a manual trigger from another thread).
    - A failing cycle never stops the schedule.  The error is logged, the
      emergency shutdown hook runs (its own errors are logged too), and
      the next scheduled fire still happens.
    - A schedule with no next fire time is logged, not raised; the loop
      asks again every ``NEXT_FIRE_RETRY_SECONDS`` until stopped.
    - All timestamps come from the injected Clock.
"""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Any, Callable

from sync_kernel.domain.clock import Clock, SystemClock
from sync_kernel.logging_config import get_logger

from sync_engine.domain.schedule import (
    CronSpec,
    describe_cron,
    next_fire_time,
    parse_cron,
    validate_timezone,
)

logger = get_logger("engine.scheduler")

# How long the loop waits before asking again when no fire time is found.
NEXT_FIRE_RETRY_SECONDS = 3600.0


class SyncScheduler:
    """Cron-driven runner for sync cycles.

    Non-goals:
        - NOT a distributed scheduler.
        - Does NOT catch up on fire times missed while a cycle was running
          or while the process was down.
    """

    def __init__(
        self,
        cycle: Callable[[], Any],
        cron_expression: str,
        timezone_name: str = "UTC",
        emergency_shutdown: Callable[[], None] | None = None,
        run_on_start: bool = False,
        clock: Clock | None = None,
    ):
        self._cycle = cycle
        self._cron_expression = cron_expression
        self._spec: CronSpec = parse_cron(cron_expression)
        self._timezone_name = timezone_name
        self._tz = validate_timezone(timezone_name)
        self._description = self._describe(cron_expression)
        self._emergency_shutdown = emergency_shutdown
        self._run_on_start = run_on_start
        self._clock = clock or SystemClock()
        self._tick_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    # -------------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------------

    def next_fire_time(self, after: datetime | None = None) -> datetime:
        """Next scheduled fire time after ``after`` (default: now)."""
        return next_fire_time(self._spec, after or self._clock.now(), self._tz)

    @property
    def description(self) -> str:
        """Human-readable schedule, or the raw expression if none is available."""
        return self._description

    def tick(self) -> bool:
        """Run one cycle unless one is already running.

        Returns True when the cycle ran and succeeded.  Never raises.
        """
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("sync_cycle_already_running_skipped")
            return False

        try:
            return self._run_cycle()
        finally:
            self._tick_lock.release()
            logger.info(
                "sync_cycle_finished",
                extra={"next_run_at": self._next_fire_or_none()},
            )

    def start(self) -> None:
        """Start the scheduler on a background thread."""
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="sync-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(
            "scheduler_started",
            extra={
                "cron_expression": self._cron_expression,
                "schedule_description": self._description,
                "timezone": self._timezone_name,
                "run_on_start": self._run_on_start,
                "next_run_at": self._next_fire_or_none(),
            },
        )

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the running cycle (if any) to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the scheduler thread exits.  True if it has."""
        if self._thread is None:
            return True
        self._thread.join(timeout=timeout)
        return not self._thread.is_alive()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    # -------------------------------------------------------------------------
    # Internal
    # -------------------------------------------------------------------------

    def _run_loop(self) -> None:
        """Background loop.  Exits when stop_event is set."""
        if self._run_on_start and not self._stop_event.is_set():
            logger.info("sync_cycle_run_on_start")
            self.tick()

        last_fire: datetime | None = None
        while not self._stop_event.is_set():
            fire_at = self._next_fire_after(last_fire)
            if fire_at is None:
                if self._stop_event.wait(timeout=NEXT_FIRE_RETRY_SECONDS):
                    break
                continue
            delay = (fire_at - self._clock.now()).total_seconds()
            if delay > 0 and self._stop_event.wait(timeout=delay):
                break
            if self._stop_event.is_set():
                break
            logger.info("sync_cycle_scheduled_fire", extra={"scheduled_for": fire_at})
            last_fire = fire_at
            self.tick()

    def _next_fire_after(self, last_fire: datetime | None) -> datetime | None:
        """Next fire strictly after both now and the previous fire.

        A cycle that finishes before its own minute is over (or a clock that
        reads slightly early) must not fire the same minute twice.
        """
        now = self._clock.now()
        after = now if last_fire is None else max(now, last_fire)
        return self._next_fire_or_none(after)

    def _next_fire_or_none(self, after: datetime | None = None) -> datetime | None:
        try:
            return self.next_fire_time(after)
        except ValueError:
            logger.exception(
                "next_fire_time_unavailable",
                extra={"cron_expression": self._cron_expression, "timezone": self._timezone_name},
            )
            return None

    @staticmethod
    def _describe(cron_expression: str) -> str:
        try:
            return describe_cron(cron_expression)
        except ValueError:
            logger.warning(
                "cron_description_unavailable",
                extra={"cron_expression": cron_expression},
            )
            return cron_expression

    def _run_cycle(self) -> bool:
        try:
            self._cycle()
        except Exception:
            logger.exception("sync_cycle_error_shutting_down")
            self._shutdown_after_failure()
            return False
        return True

    def _shutdown_after_failure(self) -> None:
        if self._emergency_shutdown is None:
            return
        try:
            self._emergency_shutdown()
        except Exception:
            logger.exception("emergency_shutdown_failed")
        else:
            logger.info("emergency_shutdown_complete")
