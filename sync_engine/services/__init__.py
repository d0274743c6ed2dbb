"""
sync_engine.services -- stateful services that drive the ledger client.
"""

from sync_engine.services.balance_reconciler import BalanceReconciler
from sync_engine.services.budget_sync import BudgetSyncOrchestrator
from sync_engine.services.cache_resolver import CacheResolver
from sync_engine.services.scheduler import SyncScheduler
from sync_engine.services.session_manager import Session, SessionManager

__all__ = [
    "BalanceReconciler",
    "BudgetSyncOrchestrator",
    "CacheResolver",
    "Session",
    "SessionManager",
    "SyncScheduler",
]
