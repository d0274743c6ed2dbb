"""
SessionManager -- owner of the single ledger session.

Contract:
    ``open()`` prepares the data directory and opens the library session.
    ``close()`` never raises; shutdown errors are logged.
    ``reset()`` is close-then-open and is used only by the retry path.
    ``emergency_shutdown()`` is the scheduler's last-resort teardown and
    DOES propagate errors so the caller can log them.

Invariants enforced:
    - The data directory exists and is readable + writable before the
      library is asked to open a session.  A permission failure raises
      ``DataDirectoryPermissionError`` and ``init`` is never called.
    - One client, one session: the manager never opens a second session
      while one is open.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from sync_kernel.domain.clock import Clock, SystemClock
from sync_kernel.exceptions import DataDirectoryPermissionError, LedgerConnectionError
from sync_kernel.logging_config import get_logger

from sync_engine.client import LedgerClient

logger = get_logger("engine.session_manager")


@dataclass
class Session:
    """Handle for one opened ledger session."""

    client: LedgerClient
    data_dir: Path
    server_url: str
    password: str = field(repr=False)
    opened_at: datetime | None = None
    is_open: bool = False


def ensure_data_dir(data_dir: Path) -> None:
    """Create ``data_dir`` if absent and check read + write access.

    Raises:
        DataDirectoryPermissionError: If the directory cannot be created
            or is not readable and writable.
    """
    if data_dir.is_dir():
        logger.debug("data_dir_exists", extra={"data_dir": str(data_dir)})
    else:
        logger.info("data_dir_creating", extra={"data_dir": str(data_dir)})
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DataDirectoryPermissionError(str(data_dir), f"cannot create: {exc}") from exc

    if not os.access(data_dir, os.R_OK | os.W_OK):
        raise DataDirectoryPermissionError(str(data_dir), "read/write access denied")


class SessionManager:
    """Opens, closes and resets the one shared ledger session.

    Non-goals:
        - Does NOT retry.  Retry policy belongs to BudgetSyncOrchestrator.
    """

    def __init__(self, client: LedgerClient, clock: Clock | None = None):
        self._client = client
        self._clock = clock or SystemClock()
        self._active: Session | None = None

    @property
    def client(self) -> LedgerClient:
        return self._client

    @property
    def active_session(self) -> Session | None:
        return self._active

    def open(self, data_dir: Path | str, server_url: str, password: str) -> Session:
        """Prepare the data directory and open a session.

        Raises:
            DataDirectoryPermissionError: Before ``init`` is attempted.
            LedgerConnectionError: If the server is unreachable or rejects
                the credentials.
        """
        path = Path(data_dir)
        ensure_data_dir(path)

        if self._active is not None and self._active.is_open:
            logger.warning("session_already_open_closing_first")
            self.close(self._active)

        logger.info("session_opening", extra={"server_url": server_url})
        try:
            self._client.init(str(path), server_url, password)
        except Exception as exc:
            raise LedgerConnectionError(server_url, str(exc)) from exc

        session = Session(
            client=self._client,
            data_dir=path,
            server_url=server_url,
            password=password,
            opened_at=self._clock.now(),
            is_open=True,
        )
        self._active = session
        logger.info("session_opened", extra={"server_url": server_url})
        return session

    def close(self, session: Session) -> None:
        """Shut the session down.  Errors are logged, never raised."""
        try:
            self._client.shutdown()
        except Exception:
            logger.exception("session_close_failed", extra={"server_url": session.server_url})
        else:
            logger.info("session_closed", extra={"server_url": session.server_url})
        finally:
            session.is_open = False
            if self._active is session:
                self._active = None

    def reset(self, session: Session, data_dir: Path | str | None = None) -> Session:
        """Close ``session`` and open a fresh one with the same credentials.

        Raises:
            DataDirectoryPermissionError: From the re-open.
            LedgerConnectionError: From the re-open; ``session`` stays closed.
        """
        logger.info("session_resetting", extra={"server_url": session.server_url})
        self.close(session)
        return self.open(
            data_dir if data_dir is not None else session.data_dir,
            session.server_url,
            session.password,
        )

    def emergency_shutdown(self) -> None:
        """Shut the library down regardless of session state.  Propagates errors."""
        try:
            self._client.shutdown()
        finally:
            if self._active is not None:
                self._active.is_open = False
                self._active = None
