"""
BalanceReconciler -- re-apply bank-synced balances through the CRDT path.

Contract:
    Bank sync stores each account's ``balance_current`` with a direct
    database write that never produces a conflict-free change message, so
    the new balance is invisible to the next push.  ``reconcile()`` reads
    every account's raw balance from the loaded budget (through the
    session's client unless another source is given) and writes the same
    value back through the client's ``update`` path.

Failure semantics:
    - Read failure: nothing is written, returns False.
    - Per-account write failure: logged, remaining accounts continue,
      returns False.
    - Never raises.  Reconciliation is a best-effort repair and must not
      block the push that follows it.
"""

from __future__ import annotations

from typing import Protocol

from sync_kernel.logging_config import get_logger

from sync_engine.domain.types import AccountBalance
from sync_engine.services.session_manager import Session

logger = get_logger("engine.balance_reconciler")

ACCOUNTS_TABLE = "accounts"


class AccountBalanceSource(Protocol):
    def get_accounts(self) -> list[AccountBalance]: ...


class BalanceReconciler:
    """Replays stored account balances as conflict-free updates."""

    def reconcile(self, session: Session, store: AccountBalanceSource | None = None) -> bool:
        """Re-apply every numeric account balance.  True means no errors.

        ``store`` defaults to the session's client, which reads the budget
        it currently has loaded.
        """
        source = store if store is not None else session.client
        try:
            accounts = source.get_accounts()
        except Exception:
            logger.exception("balance_read_failed")
            return False

        updated = 0
        skipped = 0
        failed = 0

        for account in accounts:
            if not account.has_numeric_balance:
                skipped += 1
                continue

            try:
                session.client.update(
                    ACCOUNTS_TABLE,
                    {
                        "id": account.account_id,
                        "balance_current": account.balance_current,
                    },
                )
            except Exception:
                failed += 1
                logger.exception(
                    "balance_update_failed",
                    extra={"account_id": account.account_id},
                )
                continue
            updated += 1

        logger.info(
            "balances_reconciled",
            extra={"updated": updated, "skipped": skipped, "failed": failed},
        )
        return failed == 0
