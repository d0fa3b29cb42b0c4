"""
iQ-auth Auth - Provider Contract

Every authentication method, whatever its transport, exposes exactly:

- ``authenticate(credentials) -> AuthResult``
- ``verify(token) -> VerifyResult``

Validation and security rejections come back inside the result shapes
(``success=False`` / ``valid=False``) rather than being raised. The
``error`` string is a safe, generic category; the attached ``fault``
keeps the internal reason for logging hooks and is never serialized.
"""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

from ..faults import Fault

if TYPE_CHECKING:
    from .tokens import SessionTokenSigner


# ============================================================================
# Auth Methods
# ============================================================================

class AuthMethod(str, Enum):
    """Authentication methods known to the system."""
    FIDO2 = "fido2"
    BIOMETRIC = "biometric"
    BLOCKCHAIN = "blockchain"
    WALLET = "wallet"
    GOVERNMENT = "government"
    SOCIAL = "social"
    PASSWORD = "password"
    DEVICE = "device"


# ============================================================================
# Result Shapes
# ============================================================================

@dataclass
class AuthResult:
    """Outcome of authenticate()."""
    success: bool
    token: Optional[str] = None
    user_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    fault: Optional[Fault] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an untrusted caller. Never includes the fault."""
        result: dict[str, Any] = {"success": self.success}
        if self.token is not None:
            result["token"] = self.token
        if self.user_id is not None:
            result["user_id"] = self.user_id
        if self.metadata:
            result["metadata"] = dict(self.metadata)
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class VerifyResult:
    """Outcome of verify()."""
    valid: bool
    user_id: Optional[str] = None
    expires_at: Optional[datetime] = None
    error: Optional[str] = None
    fault: Optional[Fault] = field(default=None, repr=False, compare=False)

    def to_dict(self) -> dict[str, Any]:
        """Serialize for an untrusted caller. Never includes the fault."""
        result: dict[str, Any] = {"valid": self.valid}
        if self.user_id is not None:
            result["user_id"] = self.user_id
        if self.expires_at is not None:
            result["expires_at"] = self.expires_at.isoformat()
        if self.error is not None:
            result["error"] = self.error
        return result


# ============================================================================
# Audit Events
# ============================================================================

@dataclass
class AuthEvent:
    """
    Audit event emitted by providers.

    ``fault_code`` carries the internal rejection reason; it is meant
    for logging and security monitoring, not for end users.
    """
    provider: str
    kind: str                       # register | authenticate | verify | ...
    success: bool
    user_id: Optional[str] = None
    fault_code: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


AuthEventHandler = Callable[[AuthEvent], None]


# ============================================================================
# Provider Base
# ============================================================================

class AuthProvider(ABC):
    """
    Base class for authentication providers.

    Subclasses implement ``authenticate``. ``verify`` checks the shared
    session token format with the injected signer.
    """

    name: str = "provider"
    method: AuthMethod | None = None

    def __init__(self, signer: SessionTokenSigner):
        self.signer = signer
        self.event_handlers: list[AuthEventHandler] = []
        self.logger = logging.getLogger(f"iqauth.{self.name}")

    @abstractmethod
    async def authenticate(self, credentials: Any) -> AuthResult:
        """Run the method's authentication flow."""
        ...

    async def verify(self, token: str) -> VerifyResult:
        """Verify a session token minted by this provider family."""
        result = self.signer.verify(token)
        self._emit_event(AuthEvent(
            provider=self.name,
            kind="verify",
            success=result.valid,
            user_id=result.user_id,
            fault_code=result.fault.code if result.fault else None,
        ))
        return result

    # ========================================================================
    # Events
    # ========================================================================

    def on_event(self, handler: AuthEventHandler) -> None:
        """Register an audit event handler."""
        self.event_handlers.append(handler)

    def _emit_event(self, event: AuthEvent) -> None:
        """Emit event to all handlers. Handler errors are logged."""
        for handler in self.event_handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Event handler error: {e}")

    # ========================================================================
    # Result Helpers
    # ========================================================================

    def _success(
        self,
        user_id: str,
        kind: str = "authenticate",
        metadata: Optional[dict[str, Any]] = None,
    ) -> AuthResult:
        """Mint a session token for ``user_id`` and report success."""
        token = self.signer.mint(user_id)
        self._emit_event(AuthEvent(
            provider=self.name,
            kind=kind,
            success=True,
            user_id=user_id,
            metadata=dict(metadata or {}),
        ))
        return AuthResult(success=True, token=token, user_id=user_id, metadata=dict(metadata or {}))

    def _failure(
        self,
        fault: Fault,
        kind: str = "authenticate",
        user_id: Optional[str] = None,
    ) -> AuthResult:
        """Convert a rejection into a generic result."""
        self.logger.warning(f"{kind} rejected: {fault}")
        self._emit_event(AuthEvent(
            provider=self.name,
            kind=kind,
            success=False,
            user_id=user_id,
            fault_code=fault.code,
        ))
        return AuthResult(success=False, error=fault.public_message, fault=fault)
