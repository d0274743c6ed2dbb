"""
SyncService -- composition root for the sync engine.

Contract:
    Wires SessionManager, CacheResolver, BalanceReconciler and
    BudgetSyncOrchestrator around one LedgerClient, and creates the
    SyncScheduler that drives cycles.  Single place where all engine
    dependencies are composed.

Invariants enforced:
    - One LedgerClient per process; every component shares it.
    - All components receive the same Clock.
"""

from __future__ import annotations

from sync_kernel.domain.clock import Clock, SystemClock
from sync_kernel.logging_config import get_logger

from sync_config.schema import ServiceConfig
from sync_engine.client import LedgerClient
from sync_engine.domain.types import CycleReport
from sync_engine.services.balance_reconciler import BalanceReconciler
from sync_engine.services.budget_sync import BudgetSyncOrchestrator, StoreFactory
from sync_engine.services.cache_resolver import CacheResolver
from sync_engine.services.scheduler import SyncScheduler
from sync_engine.services.session_manager import SessionManager, ensure_data_dir

logger = get_logger("engine.service")


class SyncService:
    """DI container for the sync engine.

    Contract:
        - ``from_config()`` factory creates a fully wired service.
        - ``run_cycle()`` runs one cycle now (raises on cycle failure).
        - ``create_scheduler()`` returns a SyncScheduler for background use.

    Non-goals:
        - Does NOT start the scheduler automatically -- caller decides.
    """

    def __init__(
        self,
        config: ServiceConfig,
        client: LedgerClient,
        clock: Clock | None = None,
        store_factory: StoreFactory | None = None,
    ) -> None:
        self._config = config
        self._client = client
        self._clock = clock or SystemClock()
        self._session_manager = SessionManager(client, clock=self._clock)
        self._cache_resolver = CacheResolver(config.data_dir)
        self._reconciler = BalanceReconciler()
        self._orchestrator = BudgetSyncOrchestrator(
            session_manager=self._session_manager,
            cache_resolver=self._cache_resolver,
            reconciler=self._reconciler,
            targets=config.targets,
            server_url=config.server_url,
            server_password=config.server_password,
            data_dir=config.data_dir,
            clock=self._clock,
            store_factory=store_factory,
        )

    # -------------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: ServiceConfig,
        client: LedgerClient,
        clock: Clock | None = None,
    ) -> SyncService:
        """Create a service and prepare its data directory.

        Raises:
            DataDirectoryPermissionError: If the data directory cannot be
                created or is not readable and writable.  Startup-fatal.
        """
        ensure_data_dir(config.data_dir)
        return cls(config=config, client=client, clock=clock)

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    def run_cycle(self) -> CycleReport:
        return self._orchestrator.run_cycle()

    def emergency_shutdown(self) -> None:
        self._session_manager.emergency_shutdown()

    def create_scheduler(self) -> SyncScheduler:
        """Create a SyncScheduler bound to this service's cycle."""
        return SyncScheduler(
            cycle=self.run_cycle,
            cron_expression=self._config.cron_schedule,
            timezone_name=self._config.timezone,
            emergency_shutdown=self.emergency_shutdown,
            run_on_start=self._config.run_on_start,
            clock=self._clock,
        )

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> ServiceConfig:
        return self._config

    @property
    def session_manager(self) -> SessionManager:
        return self._session_manager

    @property
    def cache_resolver(self) -> CacheResolver:
        return self._cache_resolver

    @property
    def orchestrator(self) -> BudgetSyncOrchestrator:
        return self._orchestrator
