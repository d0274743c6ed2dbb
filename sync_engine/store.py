"""
SqliteBudgetStore -- read-only view of a loaded budget's local database.

Contract:
    ``get_accounts()`` returns the raw ``balance_current`` of every live
    (non-tombstoned) account in the budget's ``db.sqlite``, in the ledger's
    display order.  Values are returned exactly as stored (integer minor
    units or NULL); no conversion is applied.

    By default balances are read through ``LedgerClient.get_accounts()``.
    A client bridge can implement that method with this store, or a
    deployment can pass ``SqliteBudgetStore.for_entry`` to the orchestrator
    as its ``store_factory`` to read the cached file directly.

Architecture: sync_engine.  Uses SQLAlchemy Core against the ledger's own
    schema -- the table is reflected by hand because the schema belongs to
    the ledger library, not to this service.

Non-goals:
    - Never writes.  Balance corrections go through the ledger client's
      conflict-free ``update`` path so they are captured for the next push.
"""

from __future__ import annotations

from pathlib import Path

from sqlalchemy import Column, Integer, MetaData, String, Table, create_engine, select
from sqlalchemy.exc import SQLAlchemyError

from sync_kernel.exceptions import BalanceReadError
from sync_kernel.logging_config import get_logger

from sync_engine.domain.types import AccountBalance, LocalCacheEntry

logger = get_logger("engine.store")

BUDGET_DB_FILENAME = "db.sqlite"

_metadata = MetaData()

accounts_table = Table(
    "accounts",
    _metadata,
    Column("id", String, primary_key=True),
    Column("name", String),
    Column("balance_current", Integer),
    Column("sort_order", Integer),
    Column("tombstone", Integer, default=0),
)


class SqliteBudgetStore:
    """Reads account balances straight from a cached budget's SQLite file."""

    def __init__(self, db_path: Path | str):
        self._db_path = Path(db_path)

    @classmethod
    def for_entry(cls, data_dir: Path | str, entry: LocalCacheEntry) -> SqliteBudgetStore:
        """Build a store for the budget cached in ``entry``'s directory."""
        return cls(Path(data_dir) / entry.directory_name / BUDGET_DB_FILENAME)

    @property
    def db_path(self) -> Path:
        return self._db_path

    def get_accounts(self) -> list[AccountBalance]:
        """Return every live account's raw balance.

        Raises:
            BalanceReadError: If the database is missing or cannot be queried.
        """
        if not self._db_path.is_file():
            raise BalanceReadError(str(self._db_path), "budget database not found")

        engine = create_engine(f"sqlite:///{self._db_path}")
        try:
            with engine.connect() as conn:
                rows = conn.execute(
                    select(accounts_table.c.id, accounts_table.c.balance_current)
                    .where(
                        (accounts_table.c.tombstone == 0)
                        | (accounts_table.c.tombstone.is_(None))
                    )
                    .order_by(accounts_table.c.sort_order, accounts_table.c.name)
                ).all()
        except SQLAlchemyError as exc:
            raise BalanceReadError(str(self._db_path), str(exc)) from exc
        finally:
            engine.dispose()

        logger.debug(
            "budget_accounts_read",
            extra={"db_path": str(self._db_path), "account_count": len(rows)},
        )
        return [
            AccountBalance(account_id=row.id, balance_current=row.balance_current)
            for row in rows
        ]
