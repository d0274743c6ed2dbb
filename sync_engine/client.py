"""
LedgerClient protocol and factory loading.

Contract:
    ``LedgerClient`` is the surface of the remote ledger library that the
    sync engine drives.  The library keeps ONE global session, so a single
    client instance is shared by every budget in a cycle and is only ever
    called from one thread at a time.

    ``load_client_factory()`` resolves a ``"package.module:attribute"``
    path to a zero-argument callable returning a LedgerClient, and
    ``create_client()`` calls it.  Every failure on the way surfaces as
    ``LedgerClientFactoryError``.

Non-goals:
    - Does NOT implement the remote download/merge/encryption protocol.
      Deployments provide a concrete client through LEDGER_CLIENT_FACTORY.
"""

from __future__ import annotations

import importlib
from typing import Any, Callable, Protocol, runtime_checkable

from sync_kernel.exceptions import LedgerClientFactoryError

from sync_engine.domain.types import AccountBalance


@runtime_checkable
class LedgerClient(Protocol):
    """Operations consumed from the remote ledger library."""

    def init(self, data_dir: str, server_url: str, password: str) -> None:
        """Open the library's session against the server."""
        ...

    def shutdown(self) -> None:
        """Close the session and release the loaded budget."""
        ...

    def download_budget(self, sync_id: str, **options: Any) -> None:
        """Download and load a budget by sync id.

        ``password=`` is passed only for encrypted budgets; callers omit the
        keyword entirely otherwise.
        """
        ...

    def load_budget(self, local_budget_id: str) -> None:
        """Load an already cached budget by its local id."""
        ...

    def run_bank_sync(self) -> None:
        """Pull transactions and balances from linked bank sources."""
        ...

    def sync(self) -> None:
        """Push local edits of the loaded budget to the server."""
        ...

    def update(self, table: str, fields: dict[str, Any]) -> None:
        """Write a row change through the conflict-free (CRDT) path."""
        ...

    def get_accounts(self) -> list[AccountBalance]:
        """Accounts of the loaded budget with their stored balances."""
        ...


LedgerClientFactory = Callable[[], LedgerClient]


def load_client_factory(path: str) -> LedgerClientFactory:
    """Import a ledger client factory from ``"package.module:attribute"``.

    Raises:
        LedgerClientFactoryError: If the path is malformed, the module or
            attribute cannot be imported, or the target is not callable.
    """
    module_path, sep, attr_path = path.partition(":")
    if not sep or not module_path or not attr_path:
        raise LedgerClientFactoryError(path, "expected 'package.module:attribute'")

    try:
        target: Any = importlib.import_module(module_path)
    except ImportError as exc:
        raise LedgerClientFactoryError(path, f"cannot import {module_path}: {exc}") from exc

    for name in attr_path.split("."):
        try:
            target = getattr(target, name)
        except AttributeError as exc:
            raise LedgerClientFactoryError(path, f"no attribute {name!r}") from exc

    if not callable(target):
        raise LedgerClientFactoryError(path, "target is not callable")
    return target


def create_client(path: str) -> LedgerClient:
    """Load the factory at ``path`` and build a client with it.

    Raises:
        LedgerClientFactoryError: If the factory cannot be loaded, raises
            while building the client, or returns something that is not a
            LedgerClient.
    """
    factory = load_client_factory(path)
    try:
        client = factory()
    except Exception as exc:
        raise LedgerClientFactoryError(path, f"factory raised: {exc}") from exc

    if not isinstance(client, LedgerClient):
        raise LedgerClientFactoryError(
            path, f"factory returned {type(client).__name__}, which does not implement LedgerClient"
        )
    return client
