"""
Pytest fixtures for the ledger sync test suite.

Provides:
- FakeLedgerClient: records every call, fails on demand
- Budget cache directories (metadata.json + db.sqlite) under tmp_path
- Deterministic clock
- Clean logging state between tests
"""

import json
from pathlib import Path
from typing import Any, Callable

import pytest
from sqlalchemy import create_engine, insert

from sync_kernel.domain.clock import DeterministicClock
from sync_kernel.logging_config import LogContext, reset_logging

from sync_engine.domain.types import AccountBalance
from sync_engine.store import BUDGET_DB_FILENAME, SqliteBudgetStore, accounts_table


# =============================================================================
# Budget cache directories
# =============================================================================


def write_budget_dir(
    data_dir: Path,
    directory_name: str,
    sync_id: str,
    accounts: list[dict[str, Any]] | None = None,
    local_budget_id: str | None = None,
) -> Path:
    """Lay out one cached budget the way the ledger library does."""
    budget_dir = data_dir / directory_name
    budget_dir.mkdir(parents=True, exist_ok=True)
    (budget_dir / "metadata.json").write_text(
        json.dumps({
            "id": local_budget_id or directory_name,
            "groupId": sync_id,
            "budgetName": f"Budget {sync_id}",
        }),
        encoding="utf-8",
    )

    if accounts is not None:
        rows = [
            {
                "id": account["id"],
                "name": account.get("name", account["id"]),
                "balance_current": account.get("balance_current"),
                "sort_order": account.get("sort_order", index),
                "tombstone": account.get("tombstone", 0),
            }
            for index, account in enumerate(accounts)
        ]
        engine = create_engine(f"sqlite:///{budget_dir / BUDGET_DB_FILENAME}")
        try:
            accounts_table.metadata.create_all(engine)
            if rows:
                with engine.begin() as conn:
                    conn.execute(insert(accounts_table), rows)
        finally:
            engine.dispose()

    return budget_dir


# =============================================================================
# Fake ledger client
# =============================================================================


class FakeLedgerClient:
    """In-memory stand-in for the remote ledger library.

    Failures are configured per method with ``fail()``, optionally keyed
    by the sync id (or local budget id for ``load_budget``, account id
    for ``update``).  ``times=None`` fails forever.
    """

    def __init__(self, budgets: dict[str, list[dict[str, Any]]] | None = None):
        self.budgets = dict(budgets or {})
        self.calls: list[tuple[str, tuple, dict]] = []
        self.updates: list[tuple[str, dict[str, Any]]] = []
        self.data_dir: Path | None = None
        self.loaded: str | None = None
        self.loaded_dir: Path | None = None
        self._local_ids: dict[str, str] = {}
        self._failures: dict[tuple[str, str | None], list[Any]] = {}

    # -- configuration --------------------------------------------------------

    def fail(
        self,
        method: str,
        times: int | None = None,
        key: str | None = None,
        message: str = "boom",
    ) -> None:
        self._failures[(method, key)] = [times, message]

    def count(self, method: str) -> int:
        return sum(1 for name, _, _ in self.calls if name == method)

    def calls_to(self, method: str) -> list[tuple[tuple, dict]]:
        return [(args, kwargs) for name, args, kwargs in self.calls if name == method]

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self.calls.append((method, args, kwargs))

    def _maybe_fail(self, method: str, key: str | None = None) -> None:
        for failure_key in ((method, key), (method, None)):
            entry = self._failures.get(failure_key)
            if entry is None:
                continue
            remaining, message = entry
            if remaining is None:
                raise RuntimeError(message)
            if remaining > 0:
                entry[0] = remaining - 1
                raise RuntimeError(message)

    # -- LedgerClient ---------------------------------------------------------

    def init(self, data_dir: str, server_url: str, password: str) -> None:
        self._record("init", data_dir, server_url)
        self._maybe_fail("init")
        self.data_dir = Path(data_dir)

    def shutdown(self) -> None:
        self._record("shutdown")
        self.loaded = None
        self.loaded_dir = None
        self._maybe_fail("shutdown")

    def download_budget(self, sync_id: str, **options: Any) -> None:
        self._record("download_budget", sync_id, **options)
        self._maybe_fail("download_budget", sync_id)
        assert self.data_dir is not None
        local_id = f"{sync_id}-local"
        write_budget_dir(self.data_dir, local_id, sync_id, self.budgets.get(sync_id, []))
        self._local_ids[local_id] = sync_id
        self.loaded = sync_id
        self.loaded_dir = self.data_dir / local_id

    def load_budget(self, local_budget_id: str) -> None:
        self._record("load_budget", local_budget_id)
        self._maybe_fail("load_budget", local_budget_id)
        self.loaded = self._local_ids.get(local_budget_id, local_budget_id)
        self.loaded_dir = self._budget_dir(local_budget_id)

    def run_bank_sync(self) -> None:
        self._record("run_bank_sync")
        self._maybe_fail("run_bank_sync", self.loaded)

    def sync(self) -> None:
        self._record("sync")
        self._maybe_fail("sync", self.loaded)

    def update(self, table: str, fields: dict[str, Any]) -> None:
        self._record("update", table, dict(fields))
        self._maybe_fail("update", fields.get("id"))
        self.updates.append((table, dict(fields)))

    def get_accounts(self) -> list[AccountBalance]:
        self._record("get_accounts")
        self._maybe_fail("get_accounts", self.loaded)
        if self.loaded_dir is None:
            raise RuntimeError("no budget loaded")
        return SqliteBudgetStore(self.loaded_dir / BUDGET_DB_FILENAME).get_accounts()

    def _budget_dir(self, local_budget_id: str) -> Path:
        assert self.data_dir is not None
        for metadata_path in self.data_dir.glob("*/metadata.json"):
            try:
                metadata = json.loads(metadata_path.read_text(encoding="utf-8"))
            except ValueError:
                continue
            if isinstance(metadata, dict) and metadata.get("id") == local_budget_id:
                return metadata_path.parent
        return self.data_dir / local_budget_id


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


@pytest.fixture
def clock():
    return DeterministicClock()


@pytest.fixture
def data_dir(tmp_path) -> Path:
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def fake_client() -> FakeLedgerClient:
    return FakeLedgerClient(
        budgets={
            "b1": [
                {"id": "acct-checking", "balance_current": 125_000},
                {"id": "acct-savings", "balance_current": None},
            ],
            "b2": [
                {"id": "acct-card", "balance_current": -4_550},
            ],
        }
    )


@pytest.fixture
def make_client() -> Callable[..., FakeLedgerClient]:
    return FakeLedgerClient


@pytest.fixture
def budget_dir() -> Callable[..., Path]:
    return write_budget_dir
