"""
iQ-auth Faults - Core types and fault taxonomy.

Defines:
- Fault base class (structured fault objects)
- FaultDomain (explicit fault domains)
- Severity levels
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional


# ============================================================================
# Severity & Domain
# ============================================================================

class Severity(str, Enum):
    """
    Fault severity levels.

    Determines the logging level a collaborator should use.
    """
    INFO = "info"       # Informational, no action needed
    WARN = "warn"       # Warning, should be reviewed
    ERROR = "error"     # Error, immediate attention
    FATAL = "fatal"     # Fatal, unrecoverable


class FaultDomain:
    """
    Fault domains (taxonomy).

    Identifies the class of failure. Packages may register their own
    domains the same way the standard ones are declared below.
    """

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.value = name
        self.description = description

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"FaultDomain(name='{self.name}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, FaultDomain):
            return self.name == other.name
        return str(self) == str(other)

    def __hash__(self) -> int:
        return hash(self.name)


# Standard Domains
FaultDomain.NOT_FOUND = FaultDomain("not_found", "Referenced id or name is absent")
FaultDomain.ALREADY_EXISTS = FaultDomain("already_exists", "Duplicate registration")
FaultDomain.VALIDATION = FaultDomain("validation", "Malformed input")
FaultDomain.SECURITY = FaultDomain("security", "Security rejections")
FaultDomain.UNAVAILABLE = FaultDomain("unavailable", "External mechanism absent or denied")
FaultDomain.STORAGE = FaultDomain("storage", "Key/value store failures")
FaultDomain.CONFIG = FaultDomain("config", "Configuration errors")


# Domain defaults
DOMAIN_DEFAULTS = {
    FaultDomain.NOT_FOUND: {"severity": Severity.WARN, "retryable": False},
    FaultDomain.ALREADY_EXISTS: {"severity": Severity.WARN, "retryable": False},
    FaultDomain.VALIDATION: {"severity": Severity.WARN, "retryable": False},
    FaultDomain.SECURITY: {"severity": Severity.ERROR, "retryable": False},
    FaultDomain.UNAVAILABLE: {"severity": Severity.ERROR, "retryable": True},
    FaultDomain.STORAGE: {"severity": Severity.ERROR, "retryable": True},
    FaultDomain.CONFIG: {"severity": Severity.FATAL, "retryable": False},
}


# ============================================================================
# Fault - Base Class
# ============================================================================

class Fault(Exception):
    """
    Base fault class - structured, typed fault object.

    A fault carries:
    - Stable machine-readable code
    - Internal message (for logs and monitoring)
    - Public message (safe to show an untrusted caller)
    - Severity level and domain classification
    - Retry semantics

    Subclasses usually declare ``code``, ``message``, ``public_message``
    and ``domain`` as class attributes and are raised without arguments:

        ```python
        class AUTH_ORIGIN_MISMATCH(SecurityFault):
            code = "AUTH_ORIGIN_MISMATCH"
            message = "Origin mismatch"

        raise AUTH_ORIGIN_MISMATCH(expected="https://a", received="https://b")
        ```

    Extra keyword arguments are collected into ``metadata``.
    """

    code: str | None = None
    message: str | None = None
    public_message: str | None = None
    domain: FaultDomain | None = None

    def __init__(
        self,
        code: str | None = None,
        message: str | None = None,
        *,
        domain: FaultDomain | None = None,
        severity: Optional[Severity] = None,
        retryable: Optional[bool] = None,
        public_message: str | None = None,
        metadata: Optional[dict[str, Any]] = None,
        **context: Any,
    ):
        # Fallback to class attributes if not provided
        self.code = code if code is not None else type(self).code
        self.message = message if message is not None else type(self).message
        self.domain = domain if domain is not None else type(self).domain

        if self.code is None or self.message is None or self.domain is None:
            raise TypeError(f"{self.__class__.__name__} missing required code, message, or domain")

        super().__init__(self.message)

        defaults = DOMAIN_DEFAULTS.get(self.domain, {"severity": Severity.ERROR, "retryable": False})
        self.severity = severity or getattr(type(self), "severity", None) or defaults["severity"]
        if retryable is None:
            retryable = getattr(type(self), "retryable", None)
        self.retryable = retryable if retryable is not None else defaults["retryable"]

        self.public_message = (
            public_message
            if public_message is not None
            else type(self).public_message or self.message
        )

        self.metadata = dict(metadata or {})
        self.metadata.update(context)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"Fault(code={self.code!r}, domain={self.domain.value}, "
            f"severity={self.severity.value})"
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize fault for logging."""
        return {
            "code": self.code,
            "message": self.message,
            "public_message": self.public_message,
            "domain": self.domain.value,
            "severity": self.severity.value,
            "retryable": self.retryable,
            "metadata": {k: v for k, v in self.metadata.items() if not k.startswith("_")},
        }


def is_fault(exception: BaseException, domain: FaultDomain | None = None) -> bool:
    """Check whether an exception is a fault, optionally of a given domain."""
    if not isinstance(exception, Fault):
        return False
    return domain is None or exception.domain == domain
