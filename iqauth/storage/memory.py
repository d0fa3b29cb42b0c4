"""
iQ-auth Storage - In-memory backend.

Dict-backed store for development, testing and single-process
deployments. Expired entries are evicted lazily on read and, once
``initialize()`` has been awaited, by a background sweeper.

Values are deep-copied on the way in and out, so a caller mutating a
returned object never mutates the stored row.
"""

from __future__ import annotations

import asyncio
import copy
import fnmatch
import logging
import time
from typing import Any, Dict, List, Optional

from .core import StorageAdapter, StorageEntry

logger = logging.getLogger("iqauth.storage.memory")


class MemoryStorage(StorageAdapter):
    """
    In-memory key/value store with per-entry TTL.

    Concurrency: a single asyncio.Lock guards the dict; each individual
    key's last writer wins.
    """

    def __init__(self, sweep_interval: float = 30.0):
        """
        Initialize memory backend.

        Args:
            sweep_interval: Seconds between background TTL sweeps
        """
        self._store: Dict[str, StorageEntry] = {}
        self._lock = asyncio.Lock()
        self._sweep_interval = sweep_interval
        self._sweeper_task: Optional[asyncio.Task] = None

    @property
    def name(self) -> str:
        return "memory"

    async def initialize(self) -> None:
        """Start the background TTL sweeper."""
        if self._sweeper_task is not None and not self._sweeper_task.done():
            return
        if self._sweep_interval <= 0:
            return
        self._sweeper_task = asyncio.get_running_loop().create_task(self._ttl_sweeper())

    async def shutdown(self) -> None:
        """Stop the sweeper. Data is kept."""
        if self._sweeper_task and not self._sweeper_task.done():
            self._sweeper_task.cancel()
            try:
                await self._sweeper_task
            except asyncio.CancelledError:
                pass
        self._sweeper_task = None

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return None

            if entry.is_expired:
                del self._store[key]
                return None

            return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires_at = time.monotonic() + ttl if ttl else None
        async with self._lock:
            self._store[key] = StorageEntry(
                key=key,
                value=copy.deepcopy(value),
                expires_at=expires_at,
            )

    async def delete(self, key: str) -> bool:
        async with self._lock:
            entry = self._store.pop(key, None)
            return entry is not None and not entry.is_expired

    async def exists(self, key: str) -> bool:
        async with self._lock:
            entry = self._store.get(key)
            if entry is None:
                return False

            if entry.is_expired:
                del self._store[key]
                return False

            return True

    async def keys(self, pattern: str = "*") -> List[str]:
        """List live keys matching glob pattern."""
        async with self._lock:
            live = [k for k, e in self._store.items() if not e.is_expired]

        if pattern == "*":
            return live
        return [k for k in live if fnmatch.fnmatchcase(k, pattern)]

    async def clear(self) -> int:
        async with self._lock:
            count = len(self._store)
            self._store.clear()
            return count

    def size(self) -> int:
        """Number of entries held, including not-yet-evicted expired ones."""
        return len(self._store)

    async def sweep_expired(self) -> int:
        """Remove expired entries. Returns number removed."""
        async with self._lock:
            expired = [k for k, e in self._store.items() if e.is_expired]
            for key in expired:
                del self._store[key]
            return len(expired)

    async def _ttl_sweeper(self) -> None:
        """Background task to clean expired entries."""
        while True:
            try:
                await asyncio.sleep(self._sweep_interval)
                swept = await self.sweep_expired()
                if swept:
                    logger.debug(f"TTL sweeper removed {swept} expired entries")
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.warning(f"TTL sweep failed: {e}")
