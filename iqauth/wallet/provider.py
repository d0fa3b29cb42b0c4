"""
iQ-auth Wallet - Provider

Sign-in with a wallet key:

1. ``connect`` records the wallet's address and public key
2. ``issue_nonce`` hands out a single-use sign-in message
3. ``authenticate`` checks the Ed25519 signature over that message and
   consumes the nonce

The wallet address is the user id.
"""

from __future__ import annotations

import base64
import binascii
import secrets
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from ..auth.core import AuthMethod, AuthProvider, AuthResult
from ..auth.faults import (
    AUTH_CHALLENGE_INVALID,
    AUTH_CREDENTIALS_MISSING,
    AUTH_SIGNATURE_INVALID,
)
from ..auth.tokens import SessionTokenSigner
from ..config import WalletConfig
from ..registry.core import utcnow
from ..storage import MemoryStorage, StorageAdapter
from .faults import (
    ChainUnsupportedFault,
    WalletAddressInvalidFault,
    WalletNotConnectedFault,
    WalletPublicKeyInvalidFault,
    WalletTypeUnsupportedFault,
)

NONCE_PREFIX = "wallet:nonce:"


class WalletType(str, Enum):
    METAMASK = "metamask"
    WALLETCONNECT = "walletconnect"
    COINBASE = "coinbase"
    LEDGER = "ledger"
    TREZOR = "trezor"
    SOLANA = "solana"
    PHANTOM = "phantom"
    OTHER = "other"


@dataclass
class WalletConnection:
    """Connected wallet."""
    address: str
    chain_id: int
    wallet_type: WalletType
    public_key: bytes               # raw 32-byte Ed25519 key
    connected_at: Any = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "address": self.address,
            "chain_id": self.chain_id,
            "wallet_type": self.wallet_type.value,
            "public_key": self.public_key.hex(),
            "connected_at": self.connected_at.isoformat(),
        }


def decode_bytes(value: str) -> bytes:
    """Decode hex (optionally 0x-prefixed) or base64/base64url."""
    text = value[2:] if value.startswith(("0x", "0X")) else value
    try:
        return bytes.fromhex(text)
    except ValueError:
        pass
    padded = value + "=" * (-len(value) % 4)
    try:
        return base64.b64decode(padded.replace("-", "+").replace("_", "/"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"not hex or base64: {value!r}") from e


class WalletProvider(AuthProvider):
    """Wallet signature provider."""

    name = "wallet"
    method = AuthMethod.WALLET

    def __init__(
        self,
        signer: SessionTokenSigner,
        config: Optional[WalletConfig] = None,
        storage: Optional[StorageAdapter] = None,
    ):
        super().__init__(signer)
        self.config = config or WalletConfig()
        self.storage = storage or MemoryStorage(sweep_interval=0)
        self.connections: dict[str, WalletConnection] = {}

    def configure(self, config: WalletConfig) -> None:
        self.config = config

    # ========================================================================
    # Connections
    # ========================================================================

    def _supported_chain_ids(self) -> set[int]:
        ids = set()
        for chain in self.config.chains:
            ids.add(int(chain["chain_id"] if isinstance(chain, dict) else chain))
        return ids

    def connect(
        self,
        address: str,
        chain_id: int,
        wallet_type: WalletType | str,
        public_key: str | bytes,
    ) -> WalletConnection:
        """
        Record a wallet connection.

        Raises:
            WalletAddressInvalidFault: empty address or contains ':'
            WalletTypeUnsupportedFault: type unknown or not enabled
            ChainUnsupportedFault: chains configured and chain_id not among them
            WalletPublicKeyInvalidFault: not a 32-byte Ed25519 key
        """
        if not address or ":" in address:
            raise WalletAddressInvalidFault(address=address)

        try:
            wallet_type = WalletType(wallet_type)
        except ValueError:
            raise WalletTypeUnsupportedFault(wallet_type=wallet_type) from None
        if self.config.wallet_types and wallet_type.value not in self.config.wallet_types:
            raise WalletTypeUnsupportedFault(wallet_type=wallet_type.value)

        chains = self._supported_chain_ids()
        if chains and chain_id not in chains:
            raise ChainUnsupportedFault(chain_id=chain_id)

        try:
            raw = public_key if isinstance(public_key, bytes) else decode_bytes(public_key)
            Ed25519PublicKey.from_public_bytes(raw)
        except ValueError as e:
            raise WalletPublicKeyInvalidFault(reason=str(e)) from e

        connection = WalletConnection(
            address=address,
            chain_id=chain_id,
            wallet_type=wallet_type,
            public_key=raw,
        )
        self.connections[address] = connection
        self.logger.info(f"Connected {wallet_type.value} wallet {address}")
        return connection

    async def disconnect(self, address: str) -> bool:
        """Forget a wallet and any pending sign-in message."""
        await self.storage.delete(f"{NONCE_PREFIX}{address}")
        return self.connections.pop(address, None) is not None

    def get_connection(self, address: str) -> Optional[WalletConnection]:
        return self.connections.get(address)

    # ========================================================================
    # Sign-in
    # ========================================================================

    async def issue_nonce(self, address: str) -> str:
        """
        Issue a single-use sign-in message for a connected wallet.

        A new message replaces any pending one.

        Raises:
            WalletNotConnectedFault: address not connected
        """
        if address not in self.connections:
            raise WalletNotConnectedFault(address=address)

        nonce = secrets.token_hex(16)
        message = (
            "iQ-auth sign-in\n"
            f"Address: {address}\n"
            f"Nonce: {nonce}\n"
            f"Issued At: {utcnow().isoformat()}"
        )
        await self.storage.set(
            f"{NONCE_PREFIX}{address}",
            {"nonce": nonce, "message": message},
            ttl=self.config.nonce_ttl,
        )
        return message

    async def authenticate(self, credentials: Any) -> AuthResult:
        """
        Authenticate ``{"address", "message", "signature"}``.

        The signature (hex or base64) must be an Ed25519 signature by the
        connected key over the pending sign-in message. The message is
        consumed whether or not the signature verifies.
        """
        credentials = credentials or {}
        missing = [k for k in ("address", "message", "signature") if not credentials.get(k)]
        if missing:
            return self._failure(AUTH_CREDENTIALS_MISSING(
                missing=missing,
                public_message="Address, message, and signature are required",
            ))

        address = credentials["address"]
        connection = self.connections.get(address)
        if connection is None:
            return self._failure(WalletNotConnectedFault(address=address), user_id=address)

        key = f"{NONCE_PREFIX}{address}"
        pending = await self.storage.get(key)
        if pending is None or pending["message"] != credentials["message"]:
            return self._failure(AUTH_CHALLENGE_INVALID(address=address), user_id=address)
        if not await self.storage.delete(key):
            # Another login consumed it first
            return self._failure(AUTH_CHALLENGE_INVALID(address=address), user_id=address)

        try:
            signature = decode_bytes(credentials["signature"])
            Ed25519PublicKey.from_public_bytes(connection.public_key).verify(
                signature,
                credentials["message"].encode("utf-8"),
            )
        except (ValueError, InvalidSignature):
            return self._failure(AUTH_SIGNATURE_INVALID(address=address), user_id=address)

        return self._success(address, metadata={
            "address": address,
            "wallet_type": connection.wallet_type.value,
            "chain_id": connection.chain_id,
        })
