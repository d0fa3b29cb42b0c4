"""
iQ-auth FIDO2 - Challenge-response authentication with hardware-backed
credentials.
"""

from .core import (
    COSE_EDDSA,
    COSE_ES256,
    COSE_RS256,
    AssertionResponse,
    AttestationResponse,
    AuthenticationOptions,
    AuthenticatorData,
    CeremonyClient,
    Challenge,
    ClientData,
    Credential,
    RegistrationOptions,
    b64url_decode,
    b64url_encode,
    parse_client_data,
    rp_id_hash,
)
from .faults import (
    CeremonyCancelledFault,
    CeremonyFailedFault,
    ChallengeExpiredFault,
    ChallengeMismatchFault,
    ChallengeNotFoundFault,
    ClientDataTypeFault,
    CounterReplayFault,
    CredentialAlreadyRegisteredFault,
    CredentialNotAllowedFault,
    CredentialNotFoundFault,
    OptionsInvalidFault,
    OriginMismatchFault,
    PublicKeyInvalidFault,
    RpIdMismatchFault,
    SignatureInvalidFault,
    UserPresenceFault,
    WebAuthnUnsupportedFault,
)
from .plugin import FIDO2Plugin
from .provider import FIDO2Provider
from .stores import (
    ChallengeStore,
    CredentialStore,
    MemoryChallengeStore,
    MemoryCredentialStore,
    StorageChallengeStore,
    StorageCredentialStore,
)

__all__ = [
    "COSE_EDDSA",
    "COSE_ES256",
    "COSE_RS256",
    "AssertionResponse",
    "AttestationResponse",
    "AuthenticationOptions",
    "AuthenticatorData",
    "CeremonyClient",
    "Challenge",
    "ClientData",
    "Credential",
    "RegistrationOptions",
    "b64url_decode",
    "b64url_encode",
    "parse_client_data",
    "rp_id_hash",
    "CeremonyCancelledFault",
    "CeremonyFailedFault",
    "ChallengeExpiredFault",
    "ChallengeMismatchFault",
    "ChallengeNotFoundFault",
    "ClientDataTypeFault",
    "CounterReplayFault",
    "CredentialAlreadyRegisteredFault",
    "CredentialNotAllowedFault",
    "CredentialNotFoundFault",
    "OptionsInvalidFault",
    "OriginMismatchFault",
    "PublicKeyInvalidFault",
    "RpIdMismatchFault",
    "SignatureInvalidFault",
    "UserPresenceFault",
    "WebAuthnUnsupportedFault",
    "FIDO2Plugin",
    "FIDO2Provider",
    "ChallengeStore",
    "CredentialStore",
    "MemoryChallengeStore",
    "MemoryCredentialStore",
    "StorageChallengeStore",
    "StorageCredentialStore",
]
