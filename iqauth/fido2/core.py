"""
iQ-auth FIDO2 - Core Types

Credentials, challenges, ceremony payloads and the parsers for client
data and authenticator data.

Authenticator data layout (first 37 bytes):

    rpIdHash (32) | flags (1) | signCount (4, big-endian)
"""

from __future__ import annotations

import base64
import hashlib
import json
import struct
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, runtime_checkable

from cryptography.exceptions import InvalidSignature, UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, padding, rsa

from ..registry.core import utcnow
from .faults import (
    AuthenticatorDataInvalidFault,
    ClientDataInvalidFault,
    PublicKeyInvalidFault,
    SignatureInvalidFault,
)


# ============================================================================
# Constants
# ============================================================================

# COSE algorithm identifiers
COSE_ES256 = -7
COSE_EDDSA = -8
COSE_RS256 = -257

SUPPORTED_ALGORITHMS = (COSE_ES256, COSE_RS256, COSE_EDDSA)

CLIENT_DATA_CREATE = "webauthn.create"
CLIENT_DATA_GET = "webauthn.get"

FLAG_USER_PRESENT = 0x01
FLAG_USER_VERIFIED = 0x04
FLAG_ATTESTED_DATA = 0x40


# ============================================================================
# Encoding
# ============================================================================

def b64url_encode(data: bytes) -> str:
    """Base64url without padding."""
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def b64url_decode(data: str) -> bytes:
    """Decode base64url, padding optional."""
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


# ============================================================================
# Credential & Challenge
# ============================================================================

@dataclass
class Credential:
    """
    Registered authenticator credential.

    Owned by the provider that created it. ``counter`` never decreases.
    """
    id: str                         # base64url of the raw credential id
    public_key: bytes               # SubjectPublicKeyInfo DER
    user_id: str
    algorithm: int = COSE_ES256
    counter: int = 0
    transports: list[str] = field(default_factory=list)
    attestation_type: str = "none"
    aaguid: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def descriptor(self) -> dict[str, Any]:
        """PublicKeyCredentialDescriptor for allow/exclude lists."""
        desc: dict[str, Any] = {"type": "public-key", "id": self.id}
        if self.transports:
            desc["transports"] = list(self.transports)
        return desc

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "public_key": b64url_encode(self.public_key),
            "user_id": self.user_id,
            "algorithm": self.algorithm,
            "counter": self.counter,
            "transports": list(self.transports),
            "attestation_type": self.attestation_type,
            "aaguid": self.aaguid,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Credential:
        return cls(
            id=data["id"],
            public_key=b64url_decode(data["public_key"]),
            user_id=data["user_id"],
            algorithm=data.get("algorithm", COSE_ES256),
            counter=data.get("counter", 0),
            transports=list(data.get("transports") or []),
            attestation_type=data.get("attestation_type", "none"),
            aaguid=data.get("aaguid"),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


@dataclass
class Challenge:
    """Single-use random value with its issuance time (epoch seconds)."""
    value: bytes
    issued_at: float = field(default_factory=time.time)

    @property
    def encoded(self) -> str:
        return b64url_encode(self.value)

    def is_expired(self, timeout_ms: int, now: Optional[float] = None) -> bool:
        now = time.time() if now is None else now
        return (now - self.issued_at) * 1000 > timeout_ms

    def to_dict(self) -> dict[str, Any]:
        return {"value": self.encoded, "issued_at": self.issued_at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Challenge:
        return cls(value=b64url_decode(data["value"]), issued_at=data["issued_at"])


# ============================================================================
# Ceremony Options & Responses
# ============================================================================

@dataclass
class RegistrationOptions:
    """Input to a registration ceremony."""
    user_id: str
    user_name: str
    user_display_name: Optional[str] = None
    exclude_credentials: Optional[list[Credential]] = None
    authenticator_selection: Optional[dict[str, Any]] = None


@dataclass
class AuthenticationOptions:
    """
    Input to an authentication ceremony.

    ``challenge_id`` refers to options previously produced by
    ``generate_authentication_options``; without it a fresh challenge
    is issued.
    """
    allow_credentials: Optional[list[Credential | str]] = None
    user_verification: Optional[str] = None
    challenge_id: Optional[str] = None

    def allowed_ids(self) -> Optional[set[str]]:
        if not self.allow_credentials:
            return None
        return {c.id if isinstance(c, Credential) else c for c in self.allow_credentials}


@dataclass
class AttestationResponse:
    """Result of the platform's credential creation."""
    raw_id: bytes
    client_data_json: bytes
    authenticator_data: bytes
    public_key: Optional[bytes] = None          # SubjectPublicKeyInfo DER
    public_key_algorithm: Optional[int] = None
    transports: list[str] = field(default_factory=list)
    attestation_format: str = "none"


@dataclass
class AssertionResponse:
    """Result of the platform's assertion."""
    raw_id: bytes
    client_data_json: bytes
    authenticator_data: bytes
    signature: bytes
    user_handle: Optional[bytes] = None


@runtime_checkable
class CeremonyClient(Protocol):
    """
    Platform collaborator running the authenticator ceremonies.

    ``create`` and ``get`` receive ``{"publicKey": {...}}`` option
    bundles and return None when the user cancels.
    """

    def is_supported(self) -> bool: ...

    async def is_platform_authenticator_available(self) -> bool: ...

    async def create(self, options: dict[str, Any]) -> Optional[AttestationResponse]: ...

    async def get(self, options: dict[str, Any]) -> Optional[AssertionResponse]: ...


# ============================================================================
# Parsing
# ============================================================================

@dataclass(frozen=True)
class ClientData:
    type: str
    challenge: str
    origin: str
    cross_origin: bool = False


def parse_client_data(raw: bytes) -> ClientData:
    """
    Parse clientDataJSON.

    Raises:
        ClientDataInvalidFault: not JSON or required members missing
    """
    try:
        data = json.loads(raw.decode("utf-8"))
        return ClientData(
            type=data["type"],
            challenge=data["challenge"],
            origin=data["origin"],
            cross_origin=bool(data.get("crossOrigin", False)),
        )
    except (UnicodeDecodeError, json.JSONDecodeError, KeyError, TypeError) as e:
        raise ClientDataInvalidFault(reason=str(e)) from e


@dataclass(frozen=True)
class AuthenticatorData:
    rp_id_hash: bytes
    flags: int
    sign_count: int

    @property
    def user_present(self) -> bool:
        return bool(self.flags & FLAG_USER_PRESENT)

    @property
    def user_verified(self) -> bool:
        return bool(self.flags & FLAG_USER_VERIFIED)

    @classmethod
    def parse(cls, raw: bytes) -> AuthenticatorData:
        """
        Parse the fixed 37-byte prefix.

        Raises:
            AuthenticatorDataInvalidFault: fewer than 37 bytes
        """
        if len(raw) < 37:
            raise AuthenticatorDataInvalidFault(length=len(raw))
        rp_id_hash, flags, sign_count = struct.unpack(">32sBI", raw[:37])
        return cls(rp_id_hash=rp_id_hash, flags=flags, sign_count=sign_count)


def rp_id_hash(rp_id: str) -> bytes:
    return hashlib.sha256(rp_id.encode("utf-8")).digest()


# ============================================================================
# Signatures
# ============================================================================

def load_public_key(der: bytes, algorithm: Optional[int] = None) -> int:
    """
    Validate an SPKI DER public key.

    Returns:
        COSE algorithm of the key (``algorithm`` if given and consistent)

    Raises:
        PublicKeyInvalidFault: unparseable key or unsupported algorithm
    """
    try:
        key = serialization.load_der_public_key(der)
    except (ValueError, TypeError, UnsupportedAlgorithm) as e:
        raise PublicKeyInvalidFault(reason=str(e)) from e

    if isinstance(key, ec.EllipticCurvePublicKey) and isinstance(key.curve, ec.SECP256R1):
        inferred = COSE_ES256
    elif isinstance(key, rsa.RSAPublicKey):
        inferred = COSE_RS256
    elif isinstance(key, ed25519.Ed25519PublicKey):
        inferred = COSE_EDDSA
    else:
        raise PublicKeyInvalidFault(reason=f"unsupported key type {type(key).__name__}")

    if algorithm is not None and algorithm != inferred:
        raise PublicKeyInvalidFault(reason=f"key does not match algorithm {algorithm}")
    return inferred


def verify_assertion_signature(
    credential: Credential,
    authenticator_data: bytes,
    client_data_json: bytes,
    signature: bytes,
) -> None:
    """
    Verify an assertion signature over
    ``authenticatorData || SHA-256(clientDataJSON)``.

    Raises:
        SignatureInvalidFault: signature does not verify
    """
    signed = authenticator_data + hashlib.sha256(client_data_json).digest()
    key = serialization.load_der_public_key(credential.public_key)

    try:
        if credential.algorithm == COSE_ES256:
            key.verify(signature, signed, ec.ECDSA(hashes.SHA256()))
        elif credential.algorithm == COSE_RS256:
            key.verify(signature, signed, padding.PKCS1v15(), hashes.SHA256())
        elif credential.algorithm == COSE_EDDSA:
            key.verify(signature, signed)
        else:
            raise SignatureInvalidFault(reason=f"unsupported algorithm {credential.algorithm}")
    except InvalidSignature as e:
        raise SignatureInvalidFault(credential_id=credential.id) from e
