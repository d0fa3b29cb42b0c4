"""
iQ-auth Auth - Provider contract, session tokens and the email/password
fallback provider.
"""

from .core import (
    AuthEvent,
    AuthMethod,
    AuthProvider,
    AuthResult,
    VerifyResult,
)
from .faults import (
    AUTH_ACCOUNT_EXISTS,
    AUTH_ACCOUNT_LOCKED,
    AUTH_ACCOUNT_NOT_FOUND,
    AUTH_CHALLENGE_INVALID,
    AUTH_CREDENTIALS_MISSING,
    AUTH_EMAIL_INVALID,
    AUTH_INVALID_CREDENTIALS,
    AUTH_PASSWORD_WEAK,
    AUTH_SIGNATURE_INVALID,
    AUTH_SUBJECT_INVALID,
    AUTH_TOKEN_EXPIRED,
    AUTH_TOKEN_INVALID,
    AUTH_TOKEN_MALFORMED,
)
from .hashing import PasswordHasher, PasswordPolicy
from .password import EmailPasswordPlugin, EmailPasswordProvider, RateLimiter
from .tokens import SessionTokenSigner

__all__ = [
    "AuthEvent",
    "AuthMethod",
    "AuthProvider",
    "AuthResult",
    "VerifyResult",
    "AUTH_ACCOUNT_EXISTS",
    "AUTH_ACCOUNT_LOCKED",
    "AUTH_ACCOUNT_NOT_FOUND",
    "AUTH_CHALLENGE_INVALID",
    "AUTH_CREDENTIALS_MISSING",
    "AUTH_EMAIL_INVALID",
    "AUTH_INVALID_CREDENTIALS",
    "AUTH_PASSWORD_WEAK",
    "AUTH_SIGNATURE_INVALID",
    "AUTH_SUBJECT_INVALID",
    "AUTH_TOKEN_EXPIRED",
    "AUTH_TOKEN_INVALID",
    "AUTH_TOKEN_MALFORMED",
    "PasswordHasher",
    "PasswordPolicy",
    "EmailPasswordPlugin",
    "EmailPasswordProvider",
    "RateLimiter",
    "SessionTokenSigner",
]
