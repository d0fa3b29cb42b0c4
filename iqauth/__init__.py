"""
iQ-auth - Multi-identity authentication core.

Identity registry, plugin lifecycle, a uniform provider contract with
shared session tokens, and a FIDO2 challenge-response provider.
"""

__version__ = "0.1.0"

SYSTEM_NAME = "iQ-auth"

from .auth import (
    AuthEvent,
    AuthMethod,
    AuthProvider,
    AuthResult,
    EmailPasswordPlugin,
    EmailPasswordProvider,
    SessionTokenSigner,
    VerifyResult,
)
from .config import (
    ConfigLoader,
    FIDO2Config,
    IQAuthConfig,
    PasswordConfig,
    StorageConfig,
    TokenConfig,
    WalletConfig,
)
from .engine import IQAuth
from .faults import Fault, FaultDomain, Severity
from .fido2 import (
    AuthenticationOptions,
    Credential,
    FIDO2Plugin,
    FIDO2Provider,
    RegistrationOptions,
)
from .plugins import AuthPlugin, Plugin, PluginKind, PluginLoader, PluginState
from .registry import Identity, IdentityRegistry, IdentityType
from .storage import MemoryStorage, StorageAdapter
from .wallet import WalletPlugin, WalletProvider, WalletType

__all__ = [
    "__version__",
    "SYSTEM_NAME",
    "AuthEvent",
    "AuthMethod",
    "AuthProvider",
    "AuthResult",
    "EmailPasswordPlugin",
    "EmailPasswordProvider",
    "SessionTokenSigner",
    "VerifyResult",
    "ConfigLoader",
    "FIDO2Config",
    "IQAuthConfig",
    "PasswordConfig",
    "StorageConfig",
    "TokenConfig",
    "WalletConfig",
    "IQAuth",
    "Fault",
    "FaultDomain",
    "Severity",
    "AuthenticationOptions",
    "Credential",
    "FIDO2Plugin",
    "FIDO2Provider",
    "RegistrationOptions",
    "AuthPlugin",
    "Plugin",
    "PluginKind",
    "PluginLoader",
    "PluginState",
    "Identity",
    "IdentityRegistry",
    "IdentityType",
    "MemoryStorage",
    "StorageAdapter",
    "WalletPlugin",
    "WalletProvider",
    "WalletType",
]
