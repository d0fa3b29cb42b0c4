"""
iQ-auth Auth - Authentication Faults

Structured error types for provider and session token failures.

The ``code`` keeps the internal distinction (replay vs. origin mismatch)
for logging hooks; ``public_message`` is what an untrusted caller sees.
"""

from ..faults import (
    AlreadyExistsFault,
    NotFoundFault,
    SecurityFault,
    Severity,
    ValidationFault,
)


# ============================================================================
# Session Token Faults
# ============================================================================

class AUTH_TOKEN_MALFORMED(ValidationFault):
    """Token does not have three well-formed fields."""
    code = "AUTH_TOKEN_MALFORMED"
    message = "Malformed session token"
    public_message = "Invalid token format"


class AUTH_TOKEN_INVALID(SecurityFault):
    """Token signature does not match."""
    code = "AUTH_TOKEN_INVALID"
    message = "Session token signature mismatch"
    public_message = "Invalid token signature"


class AUTH_TOKEN_EXPIRED(SecurityFault):
    """Token is at or past its expiry."""
    code = "AUTH_TOKEN_EXPIRED"
    severity = Severity.WARN
    message = "Session token expired"
    public_message = "Token expired"


class AUTH_SUBJECT_INVALID(ValidationFault):
    """Token subject is empty or contains the field separator."""
    code = "AUTH_SUBJECT_INVALID"
    message = "Token subject must be non-empty and contain no ':'"


# ============================================================================
# Credential Faults
# ============================================================================

class AUTH_CREDENTIALS_MISSING(ValidationFault):
    """Required credential fields are absent."""
    code = "AUTH_CREDENTIALS_MISSING"
    message = "Required credential fields are missing"

    def __init__(self, missing: list[str] | None = None, **context):
        super().__init__(missing=missing or [], **context)


class AUTH_INVALID_CREDENTIALS(SecurityFault):
    """Unknown account or wrong secret."""
    code = "AUTH_INVALID_CREDENTIALS"
    message = "Invalid credentials"


class AUTH_ACCOUNT_LOCKED(SecurityFault):
    """Too many failed attempts."""
    code = "AUTH_ACCOUNT_LOCKED"
    message = "Account temporarily locked"
    public_message = "Too many failed attempts. Please try again later."

    def __init__(self, retry_after: int | None = None, **context):
        super().__init__(retry_after=retry_after, **context)
        self.retry_after = retry_after


class AUTH_ACCOUNT_EXISTS(AlreadyExistsFault):
    """Account already registered."""
    code = "AUTH_ACCOUNT_EXISTS"
    message = "Account already exists"
    public_message = "Account already exists"


class AUTH_ACCOUNT_NOT_FOUND(NotFoundFault):
    """Account is absent."""
    code = "AUTH_ACCOUNT_NOT_FOUND"
    message = "Account not found"


class AUTH_PASSWORD_WEAK(ValidationFault):
    """Password does not meet the policy."""
    code = "AUTH_PASSWORD_WEAK"
    message = "Password does not meet security requirements"
    public_message = "Password does not meet security requirements"

    def __init__(self, errors: list[str] | None = None, **context):
        super().__init__(errors=errors or [], **context)
        self.errors = errors or []


class AUTH_EMAIL_INVALID(ValidationFault):
    """Email address is malformed."""
    code = "AUTH_EMAIL_INVALID"
    message = "Invalid email format"
    public_message = "Invalid email format"


class AUTH_SIGNATURE_INVALID(SecurityFault):
    """Signature over a challenge or message does not verify."""
    code = "AUTH_SIGNATURE_INVALID"
    message = "Signature verification failed"


class AUTH_CHALLENGE_INVALID(SecurityFault):
    """Challenge is unknown, consumed, expired or mismatched."""
    code = "AUTH_CHALLENGE_INVALID"
    message = "Challenge invalid or expired"
