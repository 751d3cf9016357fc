from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Dict, Optional

from .errors import PersistenceError, StorageQuotaError

logger = logging.getLogger("friday.storage")


class LocalStorage:
    """Synchronous device-local key-value storage backed by one JSON file."""

    def __init__(self, path: Optional[Path] = None, max_bytes: Optional[int] = None) -> None:
        """Purpose: Initialize the storage and hydrate entries from disk if available.
        Inputs/Outputs: Inputs are an optional file path and a byte quota; no return.
        Side Effects / State: Loads and caches all key/value pairs in memory.
        Dependencies: Calls _load.
        Failure Modes: Corrupt files are logged and treated as empty storage.
        If Removed: Message history cannot survive a restart.
        Testing Notes: Write a key, build a second instance on the same path, read it back.
        """
        # Keep configuration and preload persisted entries if present.
        self._path = path
        self._max_bytes = max_bytes
        self._entries: Dict[str, str] = {}
        self._load()

    def _load(self) -> None:
        # Read and decode the backing file, ignoring anything that is not a string map.
        if not self._path or not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.warning("storage=%s load failed: %s", self._path, exc)
            return
        if not isinstance(data, dict):
            logger.warning("storage=%s ignored non-object payload", self._path)
            return
        self._entries = {str(key): value for key, value in data.items() if isinstance(value, str)}

    def _persist(self, entries: Dict[str, str]) -> None:
        """Purpose: Write the given entries to disk, enforcing the byte quota.
        Inputs/Outputs: Input is the full key/value map; no return value.
        Side Effects / State: Rewrites the backing JSON file.
        Dependencies: Uses json.dumps and Path.write_text.
        Failure Modes: Raises StorageQuotaError over quota, PersistenceError on IO errors.
        If Removed: set/remove would only change the in-memory cache.
        Testing Notes: Use a tiny max_bytes and verify the quota error and unchanged cache.
        """
        payload = json.dumps(entries, ensure_ascii=False)
        size = len(payload.encode("utf-8"))
        if self._max_bytes and size > self._max_bytes:
            raise StorageQuotaError(f"Storage quota exceeded ({size} > {self._max_bytes} bytes)")
        if not self._path:
            return
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(payload, encoding="utf-8")
        except OSError as exc:
            raise PersistenceError(f"Storage write failed: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        return self._entries.get(key)

    def set(self, key: str, value: str) -> None:
        """Store a value; the cache only changes once the write succeeded."""
        updated = dict(self._entries)
        updated[key] = value
        self._persist(updated)
        self._entries = updated

    def remove(self, key: str) -> None:
        if key not in self._entries:
            return
        updated = dict(self._entries)
        updated.pop(key)
        self._persist(updated)
        self._entries = updated
