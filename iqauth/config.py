"""
Config system - Layered typed configuration.

Precedence (later overrides earlier):
defaults < .env file < environment variables (IQ_* prefix) < overrides

Nested keys use a double underscore: ``IQ_TOKEN__SECRET=...`` sets
``config.token.secret``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields, is_dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values

from .faults import ConfigInvalidFault


INSECURE_DEFAULT_SECRET = "change-this-in-production"


@dataclass
class StorageConfig:
    """Key/value store configuration."""
    backend: str = "memory"
    sweep_interval: float = 30.0     # Seconds between TTL sweeps (0 = disabled)


@dataclass
class TokenConfig:
    """
    Session token configuration.

    The secret is injected here once and handed to the signer at
    construction; nothing reads it from the environment at call time.
    """
    secret: Optional[str] = None
    ttl: int = 86400                 # 24 hours
    algorithm: str = "sha256"
    rotation_grace: int = 86400      # Previous secrets keep verifying this long
    allow_insecure_default: bool = False


@dataclass
class FIDO2Config:
    """FIDO2 / WebAuthn relying party configuration."""
    rp_name: str = "iQ-auth"
    rp_id: str = "localhost"
    origin: str = "http://localhost:3000"
    timeout_ms: int = 60000
    attestation: str = "none"        # none | indirect | direct | enterprise
    user_verification: str = "preferred"
    authenticator_selection: Optional[Dict[str, Any]] = None
    challenge_store: str = "memory"  # memory | storage


@dataclass
class PasswordConfig:
    """Email/password fallback provider configuration."""
    min_length: int = 8
    require_uppercase: bool = True
    require_lowercase: bool = True
    require_numbers: bool = True
    require_special: bool = False
    max_login_attempts: int = 5
    attempt_window: int = 900        # 15 minutes
    lockout_duration: int = 900


@dataclass
class WalletConfig:
    """Wallet signature provider configuration."""
    chains: list = field(default_factory=list)
    wallet_types: list = field(default_factory=list)
    nonce_ttl: int = 300


@dataclass
class IQAuthConfig:
    """Root configuration."""
    storage: StorageConfig = field(default_factory=StorageConfig)
    token: TokenConfig = field(default_factory=TokenConfig)
    fido2: FIDO2Config = field(default_factory=FIDO2Config)
    password: PasswordConfig = field(default_factory=PasswordConfig)
    wallet: WalletConfig = field(default_factory=WalletConfig)
    enabled_auth_methods: list = field(default_factory=lambda: ["fido2", "password", "wallet"])

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IQAuthConfig":
        """Build config from a (possibly partial) nested dict."""
        return _build_dataclass(cls, data, prefix="")

    def to_dict(self) -> Dict[str, Any]:
        """Serialize config. The token secret is redacted."""
        data = _dataclass_to_dict(self)
        if data["token"].get("secret"):
            data["token"]["secret"] = "***"
        return data


class ConfigLoader:
    """
    Loads and merges configuration from multiple sources with precedence:
    overrides > environment variables > .env file > defaults
    """

    def __init__(self, env_prefix: str = "IQ_"):
        self.env_prefix = env_prefix
        self.config_data: Dict[str, Any] = {}

    @classmethod
    def load(
        cls,
        env_prefix: str = "IQ_",
        env_file: Optional[str] = ".env",
        overrides: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> IQAuthConfig:
        """
        Load configuration.

        Args:
            env_prefix: Prefix for environment variables
            env_file: Path to .env file (skipped if missing)
            overrides: Manual overrides (highest precedence)
            environ: Environment mapping (defaults to os.environ)

        Returns:
            Typed IQAuthConfig
        """
        loader = cls(env_prefix=env_prefix)

        if env_file:
            loader._load_env_file(env_file)

        loader._load_from_env(os.environ if environ is None else environ)

        if overrides:
            loader._merge_dict(loader.config_data, overrides)

        return IQAuthConfig.from_dict(loader.config_data)

    def _load_env_file(self, path: str):
        """Load prefixed keys from a .env file."""
        if not Path(path).exists():
            return

        for key, value in dotenv_values(path).items():
            if value is not None and key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _load_from_env(self, environ):
        """Load config from environment variables."""
        for key, value in environ.items():
            if key.startswith(self.env_prefix):
                self._set_nested(key, value)

    def _set_nested(self, key: str, value: str):
        """Convert IQ_TOKEN__SECRET to nested dict."""
        key = key[len(self.env_prefix):]
        parts = key.lower().split("__")

        current = self.config_data
        for part in parts[:-1]:
            current = current.setdefault(part, {})

        current[parts[-1]] = self._parse_value(value)

    def _parse_value(self, value: str) -> Any:
        """Parse string value to appropriate type."""
        if value.lower() in ("true", "yes"):
            return True
        if value.lower() in ("false", "no"):
            return False

        try:
            if "." in value:
                return float(value)
            return int(value)
        except ValueError:
            pass

        if value.startswith(("{", "[")):
            try:
                return json.loads(value)
            except json.JSONDecodeError:
                pass

        return value

    def _merge_dict(self, target: dict, source: dict):
        """Deep merge source into target."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._merge_dict(target[key], value)
            else:
                target[key] = value


def _build_dataclass(cls, data: Dict[str, Any], prefix: str):
    known = {f.name: f for f in fields(cls)}
    kwargs = {}
    for key, value in (data or {}).items():
        f = known.get(key)
        if f is None:
            raise ConfigInvalidFault(f"{prefix}{key}", "unknown configuration key")

        default = f.default_factory() if callable(f.default_factory) else f.default
        if is_dataclass(default):
            if not isinstance(value, dict):
                raise ConfigInvalidFault(f"{prefix}{key}", "expected a section")
            value = _build_dataclass(type(default), value, prefix=f"{prefix}{key}.")
        kwargs[key] = value
    return cls(**kwargs)


def _dataclass_to_dict(obj) -> Dict[str, Any]:
    result = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        result[f.name] = _dataclass_to_dict(value) if is_dataclass(value) else value
    return result


def _snake(key: str) -> str:
    return "".join(f"_{c.lower()}" if c.isupper() else c for c in key)


def merge_config(config, bag: Optional[Dict[str, Any]], section: str = ""):
    """
    Return a copy of a config dataclass with fields from a plugin's
    opaque config bag applied. camelCase keys (``rpId``) are accepted.

    Raises:
        ConfigInvalidFault: unknown key
    """
    if not bag:
        return config

    known = {f.name for f in fields(config)}
    changes = {}
    for key, value in bag.items():
        name = _snake(key)
        if name not in known:
            raise ConfigInvalidFault(f"{section}.{key}" if section else key, "unknown configuration key")
        changes[name] = value
    return replace(config, **changes)
