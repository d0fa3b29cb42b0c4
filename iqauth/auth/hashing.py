"""
iQ-auth Auth - Password Hashing

Argon2id hashing and password policy for the email/password provider.
"""

from __future__ import annotations

from argon2 import PasswordHasher as Argon2PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from ..config import PasswordConfig


class PasswordHasher:
    """
    Password hasher using Argon2id.

    Argon2id is memory-hard and GPU-resistant. Default parameters:
    time_cost=2, memory_cost=65536 (64MB), parallelism=4
    """

    def __init__(
        self,
        time_cost: int = 2,
        memory_cost: int = 65536,  # 64 MB
        parallelism: int = 4,
        hash_len: int = 32,
        salt_len: int = 16,
    ):
        self.algorithm = "argon2id"
        self.hasher = Argon2PasswordHasher(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
            hash_len=hash_len,
            salt_len=salt_len,
        )

    def hash(self, password: str) -> str:
        """
        Hash password.

        Example output:
            $argon2id$v=19$m=65536,t=2,p=4$saltbase64$hashbase64
        """
        return self.hasher.hash(password)

    def verify(self, password_hash: str, password: str) -> bool:
        """
        Verify password against hash.

        Returns False for a mismatch or an unparseable hash.
        """
        try:
            return self.hasher.verify(password_hash, password)
        except (VerificationError, InvalidHashError):
            return False

    def check_needs_rehash(self, password_hash: str) -> bool:
        """Check if hash was produced with outdated parameters."""
        try:
            return self.hasher.check_needs_rehash(password_hash)
        except InvalidHashError:
            return True


# ============================================================================
# Password Validation
# ============================================================================

class PasswordPolicy:
    """
    Password policy validator.

    Enforces:
    - Minimum length
    - Character requirements (uppercase, lowercase, digit, special)
    - Common password blacklist
    """

    SPECIAL_CHARS = "!@#$%^&*(),.?\":{}|<>"

    def __init__(
        self,
        min_length: int = 8,
        require_uppercase: bool = True,
        require_lowercase: bool = True,
        require_digit: bool = True,
        require_special: bool = False,
    ):
        self.min_length = min_length
        self.require_uppercase = require_uppercase
        self.require_lowercase = require_lowercase
        self.require_digit = require_digit
        self.require_special = require_special

        # Common passwords to reject
        self.blacklist = {
            "password", "password1", "password123", "12345678", "qwerty123",
            "abc12345", "letmein1", "trustno1", "iloveyou", "passw0rd",
            "welcome1", "sunshine1", "qwertyuiop", "123456789",
        }

    @classmethod
    def from_config(cls, config: PasswordConfig) -> PasswordPolicy:
        return cls(
            min_length=config.min_length,
            require_uppercase=config.require_uppercase,
            require_lowercase=config.require_lowercase,
            require_digit=config.require_numbers,
            require_special=config.require_special,
        )

    def validate(self, password: str) -> tuple[bool, list[str]]:
        """
        Validate password against policy.

        Returns:
            (is_valid, error_messages)
        """
        errors = []

        if len(password) < self.min_length:
            errors.append(f"Password must be at least {self.min_length} characters")

        if self.require_uppercase and not any(c.isupper() for c in password):
            errors.append("Password must contain at least one uppercase letter")

        if self.require_lowercase and not any(c.islower() for c in password):
            errors.append("Password must contain at least one lowercase letter")

        if self.require_digit and not any(c.isdigit() for c in password):
            errors.append("Password must contain at least one number")

        if self.require_special and not any(c in self.SPECIAL_CHARS for c in password):
            errors.append("Password must contain at least one special character")

        if password.lower() in self.blacklist:
            errors.append("Password is too common")

        return (len(errors) == 0, errors)
