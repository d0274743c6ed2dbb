"""
sync_engine -- Scheduled reconciliation of remote ledgers with their banks.

Drives a single-session remote ledger client through repeated sync
cycles: for every configured budget, load or download it, run bank
sync, re-apply account balances through the conflict-free write path,
and push the result back to the server.

Components:
  * :class:`CacheResolver` -- sync id to locally cached budget index
  * :class:`SessionManager` -- the one ledger session (open/close/reset)
  * :class:`BalanceReconciler` -- replays bank-synced balances as CRDT updates
  * :class:`BudgetSyncOrchestrator` -- per-budget retry state machine
  * :class:`SyncScheduler` -- cron trigger without overlapping cycles

Quick start::

    from sync_config import get_active_config
    from sync_engine.service import SyncService

    service = SyncService.from_config(get_active_config(), client)
    scheduler = service.create_scheduler()
    scheduler.start()

Invariants:
    - One cycle at a time, one budget at a time.
    - A failing budget never blocks the others.
    - The session is closed on every exit path of a cycle.
"""
