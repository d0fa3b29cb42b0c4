"""
iQ-auth Auth - Session Tokens

Minimal session token shared by every provider:

    <subject>:<issued_at_epoch_millis>:<hex HMAC-SHA256 signature>

The signature covers ``<subject>:<issued_at>``. Tokens are valid for a
fixed window (24 hours by default) from issuance; at or after the
boundary they are expired.

The signing secret is injected at construction. ``rotate()`` installs a
new secret while the previous one keeps verifying for a grace window.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from ..config import INSECURE_DEFAULT_SECRET, TokenConfig
from ..faults import ConfigInvalidFault, ConfigMissingFault, Fault
from .core import VerifyResult
from .faults import (
    AUTH_SUBJECT_INVALID,
    AUTH_TOKEN_EXPIRED,
    AUTH_TOKEN_INVALID,
    AUTH_TOKEN_MALFORMED,
)

logger = logging.getLogger("iqauth.tokens")

DEFAULT_TTL = 86400


@dataclass
class SigningSecret:
    """Secret plus rotation bookkeeping (epoch seconds)."""
    value: bytes
    created_at: float = field(default_factory=time.time)
    retired_at: Optional[float] = None


class SessionTokenSigner:
    """
    Mints and verifies session tokens.

    Example:
        ```python
        signer = SessionTokenSigner(secret="s3cret")
        token = signer.mint("user-1")
        result = signer.verify(token)
        assert result.valid and result.user_id == "user-1"
        ```
    """

    def __init__(
        self,
        secret: str | bytes,
        ttl: int = DEFAULT_TTL,
        algorithm: str = "sha256",
        rotation_grace: int = DEFAULT_TTL,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            secret: HMAC key
            ttl: Validity window in seconds
            algorithm: hashlib digest name
            rotation_grace: Seconds a rotated-out secret keeps verifying
            clock: Epoch-seconds clock (tests inject a fake)
        """
        if not secret:
            raise ConfigMissingFault("token.secret")
        if algorithm not in hashlib.algorithms_available:
            raise ConfigInvalidFault("token.algorithm", f"unsupported digest {algorithm!r}")

        self.ttl = ttl
        self.algorithm = algorithm
        self.rotation_grace = rotation_grace
        self._clock = clock
        self._current = SigningSecret(self._to_bytes(secret), created_at=clock())
        self._previous: list[SigningSecret] = []

    @classmethod
    def from_config(cls, config: TokenConfig, **kwargs) -> SessionTokenSigner:
        """
        Build a signer from TokenConfig.

        Raises:
            ConfigMissingFault: no secret and insecure default not allowed
        """
        secret = config.secret
        if not secret:
            if not config.allow_insecure_default:
                raise ConfigMissingFault("token.secret")
            logger.warning("Using insecure default token secret; set IQ_TOKEN__SECRET")
            secret = INSECURE_DEFAULT_SECRET

        return cls(
            secret=secret,
            ttl=config.ttl,
            algorithm=config.algorithm,
            rotation_grace=config.rotation_grace,
            **kwargs,
        )

    @staticmethod
    def _to_bytes(secret: str | bytes) -> bytes:
        if isinstance(secret, (bytes, bytearray)):
            return bytes(secret)
        # Env loading may have parsed a numeric secret
        return str(secret).encode("utf-8")

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def _sign(self, key: bytes, payload: str) -> str:
        return hmac.new(key, payload.encode("utf-8", "surrogatepass"), self.algorithm).hexdigest()

    # ========================================================================
    # Mint / Verify
    # ========================================================================

    def mint(self, subject: str, issued_at_ms: Optional[int] = None) -> str:
        """
        Mint a token for ``subject``.

        Raises:
            AUTH_SUBJECT_INVALID: empty subject or subject containing ':'
        """
        if not subject or ":" in subject:
            raise AUTH_SUBJECT_INVALID(subject=subject)

        issued = self._now_ms() if issued_at_ms is None else issued_at_ms
        payload = f"{subject}:{issued}"
        return f"{payload}:{self._sign(self._current.value, payload)}"

    def verify(self, token: str) -> VerifyResult:
        """
        Verify a token.

        Never raises for a bad token; the reason is reported in
        ``VerifyResult.error``:
        - "Invalid token format": not three fields, or non-numeric timestamp
        - "Invalid token signature": signature mismatch
        - "Token expired": now >= issued_at + ttl
        """
        try:
            subject, issued_ms = self._check(token)
        except Fault as fault:
            logger.debug(f"Token rejected: {fault}")
            return VerifyResult(valid=False, error=fault.public_message, fault=fault)

        return VerifyResult(
            valid=True,
            user_id=subject,
            expires_at=self._expiry(issued_ms),
        )

    def _check(self, token: str) -> tuple[str, int]:
        parts = token.split(":") if isinstance(token, str) else []
        if len(parts) != 3 or not all(parts):
            raise AUTH_TOKEN_MALFORMED()

        subject, issued, signature = parts
        if not (issued.isascii() and issued.isdigit()):
            raise AUTH_TOKEN_MALFORMED()

        payload = f"{subject}:{issued}"
        if not signature.isascii():
            raise AUTH_TOKEN_INVALID()
        if not any(
            hmac.compare_digest(self._sign(key, payload), signature)
            for key in self._verification_keys()
        ):
            raise AUTH_TOKEN_INVALID()

        issued_ms = int(issued)
        if self._now_ms() >= issued_ms + self.ttl * 1000:
            raise AUTH_TOKEN_EXPIRED(subject=subject)

        return subject, issued_ms

    def _expiry(self, issued_ms: int) -> datetime:
        return datetime.fromtimestamp((issued_ms + self.ttl * 1000) / 1000, tz=timezone.utc)

    # ========================================================================
    # Rotation
    # ========================================================================

    def _verification_keys(self) -> list[bytes]:
        now = self._clock()
        self._previous = [
            s for s in self._previous
            if s.retired_at is not None and now - s.retired_at < self.rotation_grace
        ]
        return [self._current.value] + [s.value for s in self._previous]

    def rotate(self, new_secret: str | bytes) -> None:
        """
        Install a new signing secret.

        Tokens signed with the previous secret keep verifying for
        ``rotation_grace`` seconds.
        """
        if not new_secret:
            raise ConfigMissingFault("token.secret")

        now = self._clock()
        self._current.retired_at = now
        self._previous.insert(0, self._current)
        self._current = SigningSecret(self._to_bytes(new_secret), created_at=now)
        logger.info("Session token secret rotated")

    def needs_rotation(self, max_age: float) -> bool:
        """Check if the current secret is older than ``max_age`` seconds."""
        return self._clock() - self._current.created_at >= max_age
