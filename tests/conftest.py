"""
Shared test fixtures and helpers for the iQ-auth test suite.
"""

import hashlib
import json
import secrets
import struct
from typing import Any, Dict, Optional

import pytest
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec

from iqauth.auth.hashing import PasswordHasher
from iqauth.auth.tokens import SessionTokenSigner
from iqauth.config import FIDO2Config
from iqauth.fido2.core import (
    AssertionResponse,
    AttestationResponse,
    FLAG_USER_PRESENT,
    FLAG_USER_VERIFIED,
)
from iqauth.fido2.provider import FIDO2Provider
from iqauth.registry import IdentityRegistry
from iqauth.storage import MemoryStorage


ORIGIN = "http://localhost:3000"
RP_ID = "localhost"


# ============================================================================
# Clock
# ============================================================================


class FakeClock:
    """Epoch-seconds clock that only moves when told to."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


# ============================================================================
# Software Authenticator
# ============================================================================


class FakeAuthenticator:
    """
    Software ceremony client.

    Builds real client data, authenticator data and ECDSA P-256
    signatures. Attributes can be flipped per test to forge a bad
    ceremony (wrong origin, replayed counter, cancelled prompt...).
    """

    def __init__(self, origin: str = ORIGIN, rp_id: str = RP_ID):
        self.origin = origin
        self.rp_id = rp_id
        self.supported = True
        self.platform_available = True

        self.keys: Dict[bytes, ec.EllipticCurvePrivateKey] = {}
        self.counters: Dict[bytes, int] = {}
        self.last_raw_id: Optional[bytes] = None

        # Per-test overrides
        self.create_type = "webauthn.create"
        self.get_type = "webauthn.get"
        self.challenge_override: Optional[str] = None
        self.sign_count: Optional[int] = None
        self.raw_id: Optional[bytes] = None
        self.use_credential: Optional[bytes] = None
        self.flags = FLAG_USER_PRESENT | FLAG_USER_VERIFIED
        self.cancel = False
        self.error: Optional[Exception] = None
        self.corrupt_signature = False

        self.create_calls = []
        self.get_calls = []

    def is_supported(self) -> bool:
        return self.supported

    async def is_platform_authenticator_available(self) -> bool:
        return self.platform_available

    def _client_data(self, type_: str, challenge: str) -> bytes:
        return json.dumps({
            "type": type_,
            "challenge": self.challenge_override or challenge,
            "origin": self.origin,
            "crossOrigin": False,
        }).encode("utf-8")

    def _auth_data(self, counter: int) -> bytes:
        rp_hash = hashlib.sha256(self.rp_id.encode("utf-8")).digest()
        return rp_hash + bytes([self.flags]) + struct.pack(">I", counter)

    async def create(self, options: Dict[str, Any]) -> Optional[AttestationResponse]:
        self.create_calls.append(options)
        if self.error is not None:
            raise self.error
        if self.cancel:
            return None

        public_key = options["publicKey"]
        raw_id = self.raw_id or secrets.token_bytes(16)
        key = self.keys.get(raw_id) or ec.generate_private_key(ec.SECP256R1())
        self.keys[raw_id] = key
        self.counters[raw_id] = 0
        self.last_raw_id = raw_id

        return AttestationResponse(
            raw_id=raw_id,
            client_data_json=self._client_data(self.create_type, public_key["challenge"]),
            authenticator_data=self._auth_data(0),
            public_key=key.public_key().public_bytes(
                encoding=serialization.Encoding.DER,
                format=serialization.PublicFormat.SubjectPublicKeyInfo,
            ),
            public_key_algorithm=-7,
            transports=["internal"],
        )

    async def get(self, options: Dict[str, Any]) -> Optional[AssertionResponse]:
        self.get_calls.append(options)
        if self.error is not None:
            raise self.error
        if self.cancel:
            return None

        raw_id = self.use_credential or self.last_raw_id
        key = self.keys[raw_id]

        if self.sign_count is not None:
            counter = self.sign_count
        else:
            counter = self.counters[raw_id] + 1
        self.counters[raw_id] = max(self.counters[raw_id], counter)

        client_data = self._client_data(self.get_type, options["publicKey"]["challenge"])
        auth_data = self._auth_data(counter)
        signature = key.sign(
            auth_data + hashlib.sha256(client_data).digest(),
            ec.ECDSA(hashes.SHA256()),
        )
        if self.corrupt_signature:
            signature = bytes([signature[0] ^ 0xFF]) + signature[1:]

        return AssertionResponse(
            raw_id=raw_id,
            client_data_json=client_data,
            authenticator_data=auth_data,
            signature=signature,
        )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def signer(clock):
    return SessionTokenSigner(secret="test-secret", clock=clock)


@pytest.fixture
def storage():
    return MemoryStorage(sweep_interval=0)


@pytest.fixture
def registry(storage):
    return IdentityRegistry(storage)


@pytest.fixture
def fast_hasher():
    """Argon2id with minimal cost so tests stay quick."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def authenticator():
    return FakeAuthenticator()


@pytest.fixture
def fido2_config():
    return FIDO2Config(rp_name="iQ-auth Test", rp_id=RP_ID, origin=ORIGIN)


@pytest.fixture
def fido2_provider(signer, fido2_config, authenticator, clock):
    return FIDO2Provider(signer, config=fido2_config, ceremony=authenticator, clock=clock)
