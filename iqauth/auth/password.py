"""
iQ-auth Auth - Email/Password Provider

Fallback authentication method using email and password.

Accounts are kept in the key/value store under
``password:account:<lowercased email>``; passwords are hashed with
Argon2id. Failed logins are rate limited per email.
"""

from __future__ import annotations

import re
import time
from typing import Any, Callable, Optional

from ..config import PasswordConfig, merge_config
from ..faults import Fault
from ..plugins.core import AuthPlugin
from ..registry.core import utcnow
from ..storage import MemoryStorage, StorageAdapter
from .core import AuthEvent, AuthMethod, AuthProvider, AuthResult
from .faults import (
    AUTH_ACCOUNT_EXISTS,
    AUTH_ACCOUNT_LOCKED,
    AUTH_ACCOUNT_NOT_FOUND,
    AUTH_CREDENTIALS_MISSING,
    AUTH_EMAIL_INVALID,
    AUTH_INVALID_CREDENTIALS,
    AUTH_PASSWORD_WEAK,
)
from .hashing import PasswordHasher, PasswordPolicy
from .tokens import SessionTokenSigner

ACCOUNT_PREFIX = "password:account:"

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


# ============================================================================
# Rate Limiting
# ============================================================================

class RateLimiter:
    """Simple in-memory rate limiter for authentication attempts."""

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 900,  # 15 minutes
        lockout_duration: int = 900,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lockout_duration = lockout_duration
        self._clock = clock
        self._attempts: dict[str, list[float]] = {}
        self._lockouts: dict[str, float] = {}

    def _cleanup_old_attempts(self, key: str) -> None:
        """Remove attempts outside the time window."""
        cutoff = self._clock() - self.window_seconds
        if key in self._attempts:
            self._attempts[key] = [ts for ts in self._attempts[key] if ts > cutoff]

    def record_attempt(self, key: str) -> None:
        """Record failed authentication attempt."""
        self._cleanup_old_attempts(key)
        self._attempts.setdefault(key, []).append(self._clock())

        if len(self._attempts[key]) >= self.max_attempts:
            self._lockouts[key] = self._clock() + self.lockout_duration

    def is_locked_out(self, key: str) -> bool:
        """Check if key is currently locked out."""
        # max_attempts <= 0 means always locked
        if self.max_attempts <= 0:
            return True

        if key in self._lockouts:
            if self._clock() < self._lockouts[key]:
                return True
            # Lockout expired
            del self._lockouts[key]
            self._attempts[key] = []
        return False

    def retry_after(self, key: str) -> int:
        """Seconds until lockout ends (0 if not locked)."""
        until = self._lockouts.get(key)
        if until is None:
            return 0
        return max(0, int(until - self._clock()) + 1)

    def get_remaining_attempts(self, key: str) -> int:
        """Get remaining attempts before lockout."""
        self._cleanup_old_attempts(key)
        current = len(self._attempts.get(key, []))
        return max(0, self.max_attempts - current)

    def reset(self, key: str) -> None:
        """Reset attempts for key (successful auth)."""
        self._attempts.pop(key, None)
        self._lockouts.pop(key, None)

    def clear(self) -> None:
        self._attempts.clear()
        self._lockouts.clear()


# ============================================================================
# Provider
# ============================================================================

class EmailPasswordProvider(AuthProvider):
    """
    Email/password provider.

    Example:
        ```python
        provider = EmailPasswordProvider(signer)
        await provider.register("ana@example.com", "Secret123", "user-1")
        result = await provider.authenticate(
            {"email": "ana@example.com", "password": "Secret123"}
        )
        ```
    """

    name = "password"
    method = AuthMethod.PASSWORD

    def __init__(
        self,
        signer: SessionTokenSigner,
        config: Optional[PasswordConfig] = None,
        storage: Optional[StorageAdapter] = None,
        hasher: Optional[PasswordHasher] = None,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        super().__init__(signer)
        self.storage = storage or MemoryStorage(sweep_interval=0)
        self.hasher = hasher or PasswordHasher()
        self.configure(config or PasswordConfig())
        if rate_limiter is not None:
            self.rate_limiter = rate_limiter

    def configure(self, config: PasswordConfig) -> None:
        """Apply configuration (policy and login attempt limits)."""
        self.config = config
        self.policy = PasswordPolicy.from_config(config)
        self.rate_limiter = RateLimiter(
            max_attempts=config.max_login_attempts,
            window_seconds=config.attempt_window,
            lockout_duration=config.lockout_duration,
        )

    @staticmethod
    def _key(email: str) -> str:
        return f"{ACCOUNT_PREFIX}{email.lower()}"

    def _check_password(self, password: str) -> None:
        valid, errors = self.policy.validate(password or "")
        if not valid:
            raise AUTH_PASSWORD_WEAK(errors=errors, public_message=errors[0])

    # ========================================================================
    # Account Management
    # ========================================================================

    async def register(self, email: str, password: str, user_id: str) -> AuthResult:
        """
        Create an account.

        Returns ``success=False`` with a caller-facing error for a bad
        email, a weak password, or a duplicate email (case-insensitive).
        """
        try:
            if not email or not EMAIL_RE.match(email):
                raise AUTH_EMAIL_INVALID()
            if await self.storage.exists(self._key(email)):
                raise AUTH_ACCOUNT_EXISTS(public_message="Email already registered")
            self._check_password(password)
        except Fault as fault:
            return self._failure(fault, kind="register")

        now = utcnow().isoformat()
        await self.storage.set(self._key(email), {
            "email": email.lower(),
            "user_id": user_id,
            "password_hash": self.hasher.hash(password),
            "algorithm": self.hasher.algorithm,
            "created_at": now,
            "last_changed_at": now,
        })

        self.logger.info(f"Registered password account for user {user_id}")
        self._emit_event_for("register", user_id)
        return AuthResult(success=True, user_id=user_id)

    async def change_password(self, email: str, old_password: str, new_password: str) -> AuthResult:
        """Replace the password after checking the current one."""
        account = await self.storage.get(self._key(email))
        try:
            if account is None:
                raise AUTH_ACCOUNT_NOT_FOUND(public_message="User not found")
            if not self.hasher.verify(account["password_hash"], old_password):
                raise AUTH_INVALID_CREDENTIALS(public_message="Invalid current password")
            self._check_password(new_password)
        except Fault as fault:
            return self._failure(fault, kind="change_password")

        account["password_hash"] = self.hasher.hash(new_password)
        account["last_changed_at"] = utcnow().isoformat()
        await self.storage.set(self._key(email), account)

        self.logger.info(f"Password changed for user {account['user_id']}")
        self._emit_event_for("change_password", account["user_id"])
        return AuthResult(success=True, user_id=account["user_id"])

    async def delete_user(self, email: str) -> bool:
        """Delete an account. Returns False if it did not exist."""
        self.rate_limiter.reset(email.lower())
        return await self.storage.delete(self._key(email))

    # ========================================================================
    # Authentication
    # ========================================================================

    async def authenticate(self, credentials: Any) -> AuthResult:
        """
        Authenticate ``{"email": ..., "password": ...}``.

        Unknown email and wrong password produce the same error.
        """
        credentials = credentials or {}
        email = credentials.get("email")
        password = credentials.get("password")

        if not email or not password:
            missing = [k for k in ("email", "password") if not credentials.get(k)]
            return self._failure(AUTH_CREDENTIALS_MISSING(
                missing=missing,
                public_message="Email and password are required",
            ))

        limiter_key = email.lower()
        if self.rate_limiter.is_locked_out(limiter_key):
            return self._failure(AUTH_ACCOUNT_LOCKED(
                retry_after=self.rate_limiter.retry_after(limiter_key),
            ))

        account = await self.storage.get(self._key(email))
        if account is None or not self.hasher.verify(account["password_hash"], password):
            self.rate_limiter.record_attempt(limiter_key)
            return self._failure(AUTH_INVALID_CREDENTIALS(
                public_message="Invalid email or password",
            ))

        self.rate_limiter.reset(limiter_key)

        if self.hasher.check_needs_rehash(account["password_hash"]):
            account["password_hash"] = self.hasher.hash(password)
            await self.storage.set(self._key(email), account)

        return self._success(account["user_id"], metadata={
            "email": account["email"],
            "auth_method": "email-password",
        })

    def _emit_event_for(self, kind: str, user_id: str) -> None:
        self._emit_event(AuthEvent(provider=self.name, kind=kind, success=True, user_id=user_id))


# ============================================================================
# Plugin
# ============================================================================

class EmailPasswordPlugin(AuthPlugin):
    """Installs the email/password provider."""

    name = "password"
    version = "0.1.0"

    def __init__(
        self,
        signer: SessionTokenSigner,
        config: Optional[PasswordConfig] = None,
        storage: Optional[StorageAdapter] = None,
        hasher: Optional[PasswordHasher] = None,
    ):
        super().__init__()
        self.provider = EmailPasswordProvider(signer, config=config, storage=storage, hasher=hasher)

    async def initialize(self, config: Optional[dict[str, Any]] = None) -> None:
        """Apply PasswordConfig fields from the opaque config bag."""
        if config:
            self.provider.configure(merge_config(self.provider.config, config, "password"))

    async def destroy(self) -> None:
        self.provider.rate_limiter.clear()
