"""
iQ-auth Registry - Core Types

Identity model and the result shapes returned by registry operations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Awaitable, Callable, Optional


# ============================================================================
# Identity Model
# ============================================================================

class IdentityType(str, Enum):
    """Channel through which a user proved who they are."""
    DEVICE = "device"
    BIOMETRIC = "biometric"
    SOCIAL = "social"
    WALLET = "wallet"
    GOVERNMENT = "government"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Identity:
    """
    Verifiable claim binding a user to one external credential.

    Immutable once created; every mutation in the registry produces a
    new instance.

    Design:
    - ``id`` and ``created_at`` never change after creation
    - ``updated_at`` strictly increases on every mutation
    - an identity belongs to exactly one ``user_id``
    - ``data`` is a provider-specific attribute bag
    """
    id: str
    type: IdentityType
    user_id: str
    provider: str
    data: dict[str, Any] = field(default_factory=dict)
    verified: bool = False
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def is_deactivated(self) -> bool:
        """Check if identity was soft-deleted via deactivate()."""
        return bool(self.data.get("deactivated"))

    def get(self, key: str, default: Any = None) -> Any:
        """Get data attribute with default."""
        return self.data.get(key, default)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dict."""
        return {
            "id": self.id,
            "type": self.type.value,
            "user_id": self.user_id,
            "provider": self.provider,
            "data": dict(self.data),
            "verified": self.verified,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Identity:
        """Deserialize from dict."""
        return cls(
            id=data["id"],
            type=IdentityType(data["type"]),
            user_id=data["user_id"],
            provider=data["provider"],
            data=dict(data.get("data") or {}),
            verified=bool(data.get("verified", False)),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
        )


# ============================================================================
# Operation Results
# ============================================================================

@dataclass
class VerificationResult:
    """Outcome of verify_identity()."""
    verified: bool
    error: Optional[str] = None
    identity: Optional[Identity] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"verified": self.verified}
        if self.error:
            result["error"] = self.error
        return result


@dataclass
class DeactivationResult:
    """Outcome of deactivate()."""
    success: bool
    error: Optional[str] = None
    identity: Optional[Identity] = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success}
        if self.error:
            result["error"] = self.error
        return result


# Caller-supplied proof check, e.g. a provider validating a wallet signature
ProofVerifier = Callable[[Identity, Any], Awaitable[bool]]
