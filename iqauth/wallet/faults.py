"""
iQ-auth Wallet - Faults
"""

from ..faults import SecurityFault, ValidationFault


class WalletNotConnectedFault(SecurityFault):
    code = "WALLET_NOT_CONNECTED"
    message = "Wallet not connected"


class WalletAddressInvalidFault(ValidationFault):
    """Empty address or address containing ':'."""
    code = "WALLET_ADDRESS_INVALID"
    message = "Invalid wallet address"
    public_message = "Invalid wallet address"


class WalletPublicKeyInvalidFault(ValidationFault):
    code = "WALLET_PUBLIC_KEY_INVALID"
    message = "Invalid wallet public key"
    public_message = "Invalid wallet public key"


class WalletTypeUnsupportedFault(ValidationFault):
    code = "WALLET_TYPE_UNSUPPORTED"
    message = "Unsupported wallet type"
    public_message = "Unsupported wallet type"


class ChainUnsupportedFault(ValidationFault):
    code = "WALLET_CHAIN_UNSUPPORTED"
    message = "Unsupported chain"
    public_message = "Unsupported chain"
