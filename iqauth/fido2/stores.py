"""
iQ-auth FIDO2 - Challenge and Credential Stores

Stores:
- MemoryChallengeStore: in-process, swept explicitly
- StorageChallengeStore: key/value store with TTL expiry
- MemoryCredentialStore: in-process credential table
- StorageCredentialStore: key/value store rows + per-user id index

Memory stores are scoped to one provider instance and do not survive a
restart. Storage-backed stores share state across processes.
"""

from __future__ import annotations

import asyncio
import copy
import math
import time
from typing import Optional, Protocol

from ..storage import StorageAdapter
from .core import Challenge, Credential


# ============================================================================
# Protocols
# ============================================================================

class ChallengeStore(Protocol):
    """Holds issued challenges keyed by user id or challenge id."""

    async def put(self, key: str, challenge: Challenge) -> None: ...

    async def get(self, key: str) -> Optional[Challenge]: ...

    async def pop(self, key: str) -> Optional[Challenge]:
        """Remove and return. Each challenge is handed out at most once."""
        ...

    async def sweep_expired(self, timeout_ms: int) -> int: ...


class CredentialStore(Protocol):
    """Holds registered credentials keyed by credential id."""

    async def get(self, credential_id: str) -> Optional[Credential]: ...

    async def put(self, credential: Credential) -> None: ...

    async def delete(self, credential_id: str) -> bool: ...

    async def exists(self, credential_id: str) -> bool: ...

    async def list_by_user(self, user_id: str) -> list[Credential]: ...


# ============================================================================
# Memory Stores
# ============================================================================

class MemoryChallengeStore:
    """In-memory challenge storage."""

    def __init__(self, clock=time.time):
        self._challenges: dict[str, Challenge] = {}
        self._clock = clock

    async def put(self, key: str, challenge: Challenge) -> None:
        self._challenges[key] = challenge

    async def get(self, key: str) -> Optional[Challenge]:
        return self._challenges.get(key)

    async def pop(self, key: str) -> Optional[Challenge]:
        return self._challenges.pop(key, None)

    async def sweep_expired(self, timeout_ms: int) -> int:
        """Drop challenges older than ``timeout_ms``. Returns count."""
        now = self._clock()
        expired = [k for k, c in self._challenges.items() if c.is_expired(timeout_ms, now)]
        for key in expired:
            del self._challenges[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._challenges)


class MemoryCredentialStore:
    """
    In-memory credential storage.

    Credentials are copied on the way in and out so callers never hold
    the stored object.
    """

    def __init__(self):
        self._credentials: dict[str, Credential] = {}

    async def get(self, credential_id: str) -> Optional[Credential]:
        credential = self._credentials.get(credential_id)
        return copy.deepcopy(credential) if credential is not None else None

    async def put(self, credential: Credential) -> None:
        self._credentials[credential.id] = copy.deepcopy(credential)

    async def delete(self, credential_id: str) -> bool:
        return self._credentials.pop(credential_id, None) is not None

    async def exists(self, credential_id: str) -> bool:
        return credential_id in self._credentials

    async def list_by_user(self, user_id: str) -> list[Credential]:
        return [copy.deepcopy(c) for c in self._credentials.values() if c.user_id == user_id]


# ============================================================================
# Storage-backed Stores
# ============================================================================

class StorageChallengeStore:
    """
    Challenges in the shared key/value store.

    Entries carry a TTL equal to the ceremony timeout, so abandoned
    challenges expire at the store without a sweep.
    """

    def __init__(self, storage: StorageAdapter, timeout_ms: int = 60000, prefix: str = "fido2:challenge:"):
        self.storage = storage
        self.timeout_ms = timeout_ms
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    async def put(self, key: str, challenge: Challenge) -> None:
        ttl = max(1, math.ceil(self.timeout_ms / 1000))
        await self.storage.set(self._key(key), challenge.to_dict(), ttl=ttl)

    async def get(self, key: str) -> Optional[Challenge]:
        row = await self.storage.get(self._key(key))
        return Challenge.from_dict(row) if row is not None else None

    async def pop(self, key: str) -> Optional[Challenge]:
        row = await self.storage.get(self._key(key))
        if row is None:
            return None
        # Only the caller whose delete removed the row gets the challenge
        if not await self.storage.delete(self._key(key)):
            return None
        return Challenge.from_dict(row)

    async def sweep_expired(self, timeout_ms: int) -> int:
        # Store TTL handles expiry
        return 0


class StorageCredentialStore:
    """
    Credentials in the shared key/value store.

    Rows at ``<prefix><credential_id>``; per-user id lists at
    ``<prefix>user:<user_id>``.
    """

    def __init__(self, storage: StorageAdapter, prefix: str = "fido2:credential:"):
        self.storage = storage
        self.prefix = prefix
        self._lock = asyncio.Lock()

    def _key(self, credential_id: str) -> str:
        return f"{self.prefix}{credential_id}"

    def _user_key(self, user_id: str) -> str:
        return f"{self.prefix}user:{user_id}"

    async def get(self, credential_id: str) -> Optional[Credential]:
        row = await self.storage.get(self._key(credential_id))
        return Credential.from_dict(row) if row is not None else None

    async def put(self, credential: Credential) -> None:
        async with self._lock:
            await self.storage.set(self._key(credential.id), credential.to_dict())
            ids = list(await self.storage.get(self._user_key(credential.user_id)) or [])
            if credential.id not in ids:
                ids.append(credential.id)
                await self.storage.set(self._user_key(credential.user_id), ids)

    async def delete(self, credential_id: str) -> bool:
        async with self._lock:
            credential = await self.get(credential_id)
            if credential is None:
                return False

            removed = await self.storage.delete(self._key(credential_id))
            ids = list(await self.storage.get(self._user_key(credential.user_id)) or [])
            if credential_id in ids:
                ids.remove(credential_id)
                if ids:
                    await self.storage.set(self._user_key(credential.user_id), ids)
                else:
                    await self.storage.delete(self._user_key(credential.user_id))
            return removed

    async def exists(self, credential_id: str) -> bool:
        return await self.storage.exists(self._key(credential_id))

    async def list_by_user(self, user_id: str) -> list[Credential]:
        credentials = []
        for credential_id in await self.storage.get(self._user_key(user_id)) or []:
            credential = await self.get(credential_id)
            if credential is not None:
                credentials.append(credential)
        return credentials
