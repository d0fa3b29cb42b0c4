"""
iQ-auth Storage - Keyed Locks

A table of asyncio locks, one per key. An entry exists only while some
task holds or waits on it, so the table does not grow with the number
of keys ever seen.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class KeyedLock:
    """
    Per-key mutual exclusion.

    Example:
        ```python
        locks = KeyedLock()
        async with locks.hold("user-1"):
            ...
        ```
    """

    def __init__(self):
        # key -> (lock, holders + waiters)
        self._entries: dict[str, tuple[asyncio.Lock, int]] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock, users = self._entries.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._entries[key] = (lock, users + 1)

        try:
            async with lock:
                yield
        finally:
            lock, users = self._entries[key]
            if users <= 1:
                del self._entries[key]
            else:
                self._entries[key] = (lock, users - 1)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
