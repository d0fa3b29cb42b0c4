"""
Wallet provider tests.

Covers wallet connection checks, single-use sign-in messages and
Ed25519 signature verification.
"""

import asyncio
import base64

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from iqauth.auth.faults import AUTH_CHALLENGE_INVALID, AUTH_SIGNATURE_INVALID
from iqauth.config import WalletConfig
from iqauth.storage import MemoryStorage
from iqauth.wallet import (
    ChainUnsupportedFault,
    WalletAddressInvalidFault,
    WalletNotConnectedFault,
    WalletPlugin,
    WalletProvider,
    WalletPublicKeyInvalidFault,
    WalletType,
    WalletTypeUnsupportedFault,
)
from iqauth.wallet.provider import decode_bytes


ADDRESS = "0xAbC0000000000000000000000000000000000001"


@pytest.fixture
def wallet_key():
    return Ed25519PrivateKey.generate()


@pytest.fixture
def public_hex(wallet_key):
    return wallet_key.public_key().public_bytes(
        encoding=serialization.Encoding.Raw,
        format=serialization.PublicFormat.Raw,
    ).hex()


class YieldingStorage(MemoryStorage):
    """Yields after reads so two logins can interleave."""

    async def get(self, key):
        value = await super().get(key)
        await asyncio.sleep(0)
        return value


@pytest.fixture
def wallet(signer, storage):
    return WalletProvider(signer, storage=storage)


# ============================================================================
# Encoding
# ============================================================================

class TestDecodeBytes:

    def test_hex(self):
        assert decode_bytes("0a0b") == b"\x0a\x0b"
        assert decode_bytes("0x0a0b") == b"\x0a\x0b"

    def test_base64(self):
        raw = b"\xff\xfe\xfd"
        assert decode_bytes(base64.b64encode(raw).decode()) == raw
        assert decode_bytes(base64.urlsafe_b64encode(raw).decode().rstrip("=")) == raw

    def test_garbage(self):
        with pytest.raises(ValueError):
            decode_bytes("!!not-bytes!!")


# ============================================================================
# Connection
# ============================================================================

class TestConnect:

    def test_connect(self, wallet, public_hex):
        connection = wallet.connect(ADDRESS, 1, "metamask", public_hex)

        assert connection.wallet_type is WalletType.METAMASK
        assert connection.public_key.hex() == public_hex
        assert wallet.get_connection(ADDRESS) is connection
        assert connection.to_dict()["wallet_type"] == "metamask"

    @pytest.mark.parametrize("address", ["", "eip155:1:0xabc"])
    def test_invalid_address(self, wallet, public_hex, address):
        with pytest.raises(WalletAddressInvalidFault):
            wallet.connect(address, 1, WalletType.METAMASK, public_hex)

    def test_unknown_type(self, wallet, public_hex):
        with pytest.raises(WalletTypeUnsupportedFault):
            wallet.connect(ADDRESS, 1, "paper", public_hex)

    def test_type_not_enabled(self, signer, public_hex):
        wallet = WalletProvider(signer, config=WalletConfig(wallet_types=["phantom"]))
        with pytest.raises(WalletTypeUnsupportedFault):
            wallet.connect(ADDRESS, 1, "metamask", public_hex)

    def test_chain_not_supported(self, signer, public_hex):
        wallet = WalletProvider(signer, config=WalletConfig(chains=[{"chain_id": 137}, 10]))
        with pytest.raises(ChainUnsupportedFault):
            wallet.connect(ADDRESS, 1, "metamask", public_hex)
        assert wallet.connect(ADDRESS, 10, "metamask", public_hex).chain_id == 10

    @pytest.mark.parametrize("key", ["abcd", "zz-not-a-key"])
    def test_bad_public_key(self, wallet, key):
        with pytest.raises(WalletPublicKeyInvalidFault):
            wallet.connect(ADDRESS, 1, "metamask", key)

    @pytest.mark.asyncio
    async def test_disconnect(self, wallet, public_hex, storage):
        wallet.connect(ADDRESS, 1, "metamask", public_hex)
        await wallet.issue_nonce(ADDRESS)

        assert await wallet.disconnect(ADDRESS) is True
        assert await wallet.disconnect(ADDRESS) is False
        assert await storage.keys("wallet:nonce:*") == []


# ============================================================================
# Sign-in
# ============================================================================

class TestSignIn:

    @pytest.mark.asyncio
    async def test_issue_nonce_requires_connection(self, wallet):
        with pytest.raises(WalletNotConnectedFault):
            await wallet.issue_nonce(ADDRESS)

    @pytest.mark.asyncio
    async def test_success(self, wallet, wallet_key, public_hex):
        wallet.connect(ADDRESS, 1, "metamask", public_hex)
        message = await wallet.issue_nonce(ADDRESS)
        assert f"Address: {ADDRESS}" in message

        result = await wallet.authenticate({
            "address": ADDRESS,
            "message": message,
            "signature": wallet_key.sign(message.encode()).hex(),
        })

        assert result.success is True
        assert result.user_id == ADDRESS
        assert result.metadata == {"address": ADDRESS, "wallet_type": "metamask", "chain_id": 1}
        assert (await wallet.verify(result.token)).user_id == ADDRESS

    @pytest.mark.asyncio
    async def test_base64_signature(self, wallet, wallet_key, public_hex):
        wallet.connect(ADDRESS, 1, "phantom", public_hex)
        message = await wallet.issue_nonce(ADDRESS)
        signature = base64.b64encode(wallet_key.sign(message.encode())).decode()

        result = await wallet.authenticate({"address": ADDRESS, "message": message, "signature": signature})
        assert result.success is True

    @pytest.mark.asyncio
    async def test_nonce_single_use(self, wallet, wallet_key, public_hex):
        wallet.connect(ADDRESS, 1, "metamask", public_hex)
        message = await wallet.issue_nonce(ADDRESS)
        credentials = {
            "address": ADDRESS,
            "message": message,
            "signature": wallet_key.sign(message.encode()).hex(),
        }

        assert (await wallet.authenticate(credentials)).success is True

        replay = await wallet.authenticate(credentials)
        assert replay.success is False
        assert isinstance(replay.fault, AUTH_CHALLENGE_INVALID)

    @pytest.mark.asyncio
    async def test_concurrent_logins_share_one_nonce(self, signer, wallet_key, public_hex):
        wallet = WalletProvider(signer, storage=YieldingStorage(sweep_interval=0))
        wallet.connect(ADDRESS, 1, "metamask", public_hex)
        message = await wallet.issue_nonce(ADDRESS)
        credentials = {
            "address": ADDRESS,
            "message": message,
            "signature": wallet_key.sign(message.encode()).hex(),
        }

        results = await asyncio.gather(
            wallet.authenticate(credentials),
            wallet.authenticate(credentials),
        )

        assert sorted(r.success for r in results) == [False, True]

    @pytest.mark.asyncio
    async def test_message_mismatch(self, wallet, wallet_key, public_hex):
        wallet.connect(ADDRESS, 1, "metamask", public_hex)
        await wallet.issue_nonce(ADDRESS)
        forged = "iQ-auth sign-in\nNonce: mine"

        result = await wallet.authenticate({
            "address": ADDRESS,
            "message": forged,
            "signature": wallet_key.sign(forged.encode()).hex(),
        })
        assert isinstance(result.fault, AUTH_CHALLENGE_INVALID)

    @pytest.mark.asyncio
    async def test_wrong_key_consumes_nonce(self, wallet, public_hex):
        wallet.connect(ADDRESS, 1, "metamask", public_hex)
        message = await wallet.issue_nonce(ADDRESS)
        other = Ed25519PrivateKey.generate()

        result = await wallet.authenticate({
            "address": ADDRESS,
            "message": message,
            "signature": other.sign(message.encode()).hex(),
        })

        assert result.success is False
        assert result.error == "Authentication failed"
        assert isinstance(result.fault, AUTH_SIGNATURE_INVALID)
        assert await wallet.storage.get(f"wallet:nonce:{ADDRESS}") is None

    @pytest.mark.asyncio
    async def test_not_connected(self, wallet):
        result = await wallet.authenticate({"address": ADDRESS, "message": "m", "signature": "00"})
        assert isinstance(result.fault, WalletNotConnectedFault)

    @pytest.mark.asyncio
    async def test_missing_fields(self, wallet):
        result = await wallet.authenticate({"address": ADDRESS})
        assert result.error == "Address, message, and signature are required"
        assert result.fault.metadata["missing"] == ["message", "signature"]


# ============================================================================
# Plugin
# ============================================================================

class TestWalletPlugin:

    @pytest.mark.asyncio
    async def test_initialize_and_destroy(self, signer, public_hex):
        plugin = WalletPlugin(signer)
        await plugin.initialize({"walletTypes": ["metamask"], "nonce_ttl": 60})

        assert plugin.provider.config.wallet_types == ["metamask"]
        assert plugin.provider.config.nonce_ttl == 60

        plugin.provider.connect(ADDRESS, 1, "metamask", public_hex)
        await plugin.destroy()
        assert plugin.provider.connections == {}
