"""
CacheResolver -- sync id to locally cached budget index.

Contract:
    The ledger library has no lookup from a server sync id to the local
    budget id it downloaded it as.  Each cached budget lives in its own
    first-level directory of the data dir with a ``metadata.json`` holding
    at least ``{"id": <local budget id>, "groupId": <sync id>}``; this
    service scans those files and presents the result as a small
    read-through index with an explicit ``resolve`` / ``invalidate``
    contract.

Invariants enforced:
    - At most one LocalCacheEntry per sync id.  Directories are scanned in
      name order and the first directory claiming a sync id wins; later
      claimants are logged and ignored.
    - A directory with unreadable or corrupt metadata is skipped with a
      warning; it never aborts the scan and is never deleted.
    - ``invalidate()`` deletes at most one directory, and only the one whose
      metadata ``groupId`` equals the sync id.  No match means nothing is
      deleted (fail open).
"""

from __future__ import annotations

import json
import shutil
from pathlib import Path
from typing import Any

from sync_kernel.exceptions import CacheMetadataError
from sync_kernel.logging_config import get_logger

from sync_engine.domain.types import LocalCacheEntry

logger = get_logger("engine.cache_resolver")

METADATA_FILENAME = "metadata.json"


def list_subdirectories(directory: Path) -> list[str]:
    """Names of the first-level subdirectories of ``directory``, sorted."""
    return sorted(entry.name for entry in directory.iterdir() if entry.is_dir())


def read_cache_entry(data_dir: Path, directory_name: str) -> LocalCacheEntry:
    """Parse one budget directory's metadata file.

    Raises:
        CacheMetadataError: If the file cannot be read, is not valid JSON,
            or lacks string ``id`` / ``groupId`` fields.
    """
    metadata_path = data_dir / directory_name / METADATA_FILENAME
    try:
        raw = metadata_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise CacheMetadataError(directory_name, f"cannot read {METADATA_FILENAME}: {exc}") from exc

    try:
        metadata: Any = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise CacheMetadataError(directory_name, f"invalid JSON: {exc}") from exc

    if not isinstance(metadata, dict):
        raise CacheMetadataError(directory_name, "metadata is not a JSON object")

    local_id = metadata.get("id")
    group_id = metadata.get("groupId")
    if not isinstance(local_id, str) or not local_id:
        raise CacheMetadataError(directory_name, "missing 'id'")
    if not isinstance(group_id, str) or not group_id:
        raise CacheMetadataError(directory_name, "missing 'groupId'")

    return LocalCacheEntry(
        directory_name=directory_name,
        local_budget_id=local_id,
        sync_id=group_id,
    )


class CacheResolver:
    """Read-through index of budgets cached in the data directory.

    Contract:
        - ``resolve()`` rescans and returns ``{sync_id: local_budget_id}``.
        - ``lookup()`` returns the entry for a sync id, scanning on first use.
        - ``invalidate()`` evicts one budget from disk and drops the index.

    Non-goals:
        - Does NOT create cache entries -- only the ledger library does.
    """

    def __init__(self, data_dir: Path | str):
        self._data_dir = Path(data_dir)
        self._index: dict[str, LocalCacheEntry] | None = None

    @property
    def data_dir(self) -> Path:
        return self._data_dir

    # -------------------------------------------------------------------------
    # Index
    # -------------------------------------------------------------------------

    def scan(self) -> dict[str, LocalCacheEntry]:
        """Rebuild the index from disk and return it (sync id -> entry)."""
        index: dict[str, LocalCacheEntry] = {}

        if not self._data_dir.is_dir():
            logger.info(
                "cache_data_dir_missing",
                extra={"data_dir": str(self._data_dir)},
            )
            self._index = index
            return dict(index)

        for directory_name in list_subdirectories(self._data_dir):
            try:
                entry = read_cache_entry(self._data_dir, directory_name)
            except CacheMetadataError as exc:
                logger.warning(
                    "cache_metadata_skipped",
                    extra={"directory": directory_name, "reason": exc.reason},
                )
                continue

            existing = index.get(entry.sync_id)
            if existing is not None:
                logger.warning(
                    "cache_duplicate_sync_id",
                    extra={
                        "sync_id": entry.sync_id,
                        "kept_directory": existing.directory_name,
                        "ignored_directory": directory_name,
                    },
                )
                continue

            index[entry.sync_id] = entry

        self._index = index
        logger.info("cache_index_built", extra={"entry_count": len(index)})
        return dict(index)

    def resolve(self) -> dict[str, str]:
        """Rescan the data dir and map each sync id to its local budget id."""
        return {
            sync_id: entry.local_budget_id
            for sync_id, entry in self.scan().items()
        }

    def lookup(self, sync_id: str) -> LocalCacheEntry | None:
        """Return the cached entry for ``sync_id``, or None if not cached."""
        index = self._index if self._index is not None else self.scan()
        return index.get(sync_id)

    # -------------------------------------------------------------------------
    # Eviction
    # -------------------------------------------------------------------------

    def invalidate(self, sync_id: str) -> Path | None:
        """Delete the cached directory whose metadata ``groupId`` is ``sync_id``.

        The scan walks directories in name order and stops at the first
        match.  Directories with unreadable metadata are logged and left
        alone.  Returns the deleted path, or None when nothing matched.
        """
        self._index = None

        if not self._data_dir.is_dir():
            logger.warning(
                "cache_invalidate_no_match",
                extra={"sync_id": sync_id, "data_dir": str(self._data_dir)},
            )
            return None

        for directory_name in list_subdirectories(self._data_dir):
            try:
                entry = read_cache_entry(self._data_dir, directory_name)
            except CacheMetadataError as exc:
                logger.warning(
                    "cache_metadata_skipped",
                    extra={"directory": directory_name, "reason": exc.reason},
                )
                continue

            if entry.sync_id != sync_id:
                continue

            target = self._data_dir / directory_name
            shutil.rmtree(target)
            logger.info(
                "cache_entry_evicted",
                extra={
                    "sync_id": sync_id,
                    "directory": directory_name,
                    "local_budget_id": entry.local_budget_id,
                },
            )
            return target

        logger.warning(
            "cache_invalidate_no_match",
            extra={"sync_id": sync_id, "data_dir": str(self._data_dir)},
        )
        return None
