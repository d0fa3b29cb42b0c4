"""
iQ-auth Wallet - Wallet signature authentication.
"""

from .faults import (
    ChainUnsupportedFault,
    WalletAddressInvalidFault,
    WalletNotConnectedFault,
    WalletPublicKeyInvalidFault,
    WalletTypeUnsupportedFault,
)
from .plugin import WalletPlugin
from .provider import WalletConnection, WalletProvider, WalletType

__all__ = [
    "ChainUnsupportedFault",
    "WalletAddressInvalidFault",
    "WalletNotConnectedFault",
    "WalletPublicKeyInvalidFault",
    "WalletTypeUnsupportedFault",
    "WalletPlugin",
    "WalletConnection",
    "WalletProvider",
    "WalletType",
]
