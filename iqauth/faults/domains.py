"""
iQ-auth Faults - Category fault types.

Provides one base class per category of the error taxonomy:
- NOT_FOUND faults
- ALREADY_EXISTS faults
- VALIDATION faults
- SECURITY faults (always terminal)
- UNAVAILABLE faults
- STORAGE and CONFIG faults
"""

from typing import Any, Optional

from .core import Fault, FaultDomain, Severity


class NotFoundFault(Fault):
    """Referenced id or name is absent."""
    domain = FaultDomain.NOT_FOUND
    public_message = "Not found"


class AlreadyExistsFault(Fault):
    """Duplicate registration."""
    domain = FaultDomain.ALREADY_EXISTS
    public_message = "Already exists"


class ValidationFault(Fault):
    """Malformed input (bad token shape, missing required fields)."""
    domain = FaultDomain.VALIDATION
    code = "VALIDATION_FAILED"
    message = "Validation failed"
    public_message = "Authentication failed"


class SecurityFault(Fault):
    """
    Security rejection.

    Origin mismatch, non-increasing counter, invalid signature, expired
    challenge or token. Never retried.
    """
    domain = FaultDomain.SECURITY
    severity = Severity.WARN
    retryable = False
    public_message = "Authentication failed"

    def __init__(self, *args: Any, **kwargs: Any):
        kwargs["retryable"] = False
        super().__init__(*args, **kwargs)


class UnavailableFault(Fault):
    """External ceremony mechanism absent or denied by the environment."""
    domain = FaultDomain.UNAVAILABLE
    public_message = "Authentication method unavailable"


# ============================================================================
# STORAGE Faults
# ============================================================================

class StorageFault(Fault):
    """Base class for key/value store faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.ERROR,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.STORAGE,
            severity=severity,
            retryable=True,
            metadata=metadata,
        )


# ============================================================================
# CONFIG Faults
# ============================================================================

class ConfigFault(Fault):
    """Base class for configuration faults."""

    def __init__(
        self,
        code: str,
        message: str,
        *,
        severity: Severity = Severity.FATAL,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(
            code=code,
            message=message,
            domain=FaultDomain.CONFIG,
            severity=severity,
            retryable=False,
            metadata=metadata,
        )


class ConfigMissingFault(ConfigFault):
    """Required configuration is missing."""

    def __init__(self, key: str):
        super().__init__(
            code="CONFIG_MISSING",
            message=f"Required configuration key '{key}' is missing",
            metadata={"key": key},
        )


class ConfigInvalidFault(ConfigFault):
    """Configuration value is invalid."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            code="CONFIG_INVALID",
            message=f"Configuration key '{key}' is invalid: {reason}",
            metadata={"key": key, "reason": reason},
        )
