"""
iQ-auth Storage - Core types and the key/value contract.

The registry and provider session state consume only this narrow
contract: get / set / delete / exists with optional per-entry expiry.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, TypeVar


T = TypeVar("T")


# ============================================================================
# Storage Entry
# ============================================================================

@dataclass(slots=True)
class StorageEntry:
    """
    Single stored value with expiry metadata.

    Expiry is tracked on the monotonic clock.
    """
    key: str
    value: Any
    created_at: float = field(default_factory=time.monotonic)
    expires_at: Optional[float] = None

    @property
    def is_expired(self) -> bool:
        """Check if entry has expired."""
        if self.expires_at is None:
            return False
        return time.monotonic() >= self.expires_at

    @property
    def ttl_remaining(self) -> Optional[float]:
        """Remaining TTL in seconds, or None if no expiry."""
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - time.monotonic())

    def __repr__(self) -> str:
        ttl = f", ttl={self.ttl_remaining:.1f}s" if self.ttl_remaining is not None else ""
        return f"<StorageEntry key={self.key!r}{ttl}>"


# ============================================================================
# Storage Adapter
# ============================================================================

class StorageAdapter(ABC):
    """
    Abstract key/value store.

    Backends are responsible for their own TTL enforcement: reads past
    expiry behave as absent. Backend failures propagate unchanged to
    the caller.
    """

    async def initialize(self) -> None:
        """Initialize backend resources (connection pools, sweepers)."""

    async def shutdown(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None if absent or expired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """
        Store a value.

        Args:
            key: Storage key
            value: Value to store
            ttl: Time-to-live in seconds (None = no expiry)
        """
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete key. Returns True if the key existed."""
        ...

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """Check if key exists and is not expired."""
        ...

    async def keys(self, pattern: str = "*") -> List[str]:
        """List live keys matching a glob pattern."""
        raise NotImplementedError(f"{self.name} does not support key listing")

    async def clear(self) -> int:
        """Remove all entries. Returns number removed."""
        raise NotImplementedError(f"{self.name} does not support clear")

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend name for diagnostics."""
        ...
