"""
iQ-auth FIDO2 - Faults

Every ceremony rejection is terminal. Codes keep the internal reason
(replay vs. origin mismatch); public messages stay generic.
"""

from ..faults import (
    AlreadyExistsFault,
    SecurityFault,
    Severity,
    UnavailableFault,
    ValidationFault,
)


# ============================================================================
# Environment
# ============================================================================

class WebAuthnUnsupportedFault(UnavailableFault):
    """No ceremony client, or the client reports no WebAuthn support."""
    code = "FIDO2_UNSUPPORTED"
    message = "WebAuthn is not supported in this environment"


class CeremonyCancelledFault(UnavailableFault):
    """Platform returned no credential."""
    code = "FIDO2_CEREMONY_CANCELLED"
    message = "No credential returned by the authenticator"
    retryable = False


class CeremonyFailedFault(UnavailableFault):
    """Platform ceremony raised."""
    code = "FIDO2_CEREMONY_FAILED"
    message = "Authenticator ceremony failed"
    retryable = False


# ============================================================================
# Malformed Payloads
# ============================================================================

class ClientDataInvalidFault(ValidationFault):
    code = "FIDO2_CLIENT_DATA_INVALID"
    message = "Malformed client data"


class AuthenticatorDataInvalidFault(ValidationFault):
    code = "FIDO2_AUTHENTICATOR_DATA_INVALID"
    message = "Malformed authenticator data"


class PublicKeyInvalidFault(ValidationFault):
    code = "FIDO2_PUBLIC_KEY_INVALID"
    message = "Missing, malformed or unsupported public key"


class OptionsInvalidFault(ValidationFault):
    code = "FIDO2_OPTIONS_INVALID"
    message = "Unsupported authentication options"


# ============================================================================
# Security Rejections
# ============================================================================

class ChallengeNotFoundFault(SecurityFault):
    """Challenge absent or already consumed."""
    code = "FIDO2_CHALLENGE_NOT_FOUND"
    message = "Challenge not found"


class ChallengeExpiredFault(SecurityFault):
    code = "FIDO2_CHALLENGE_EXPIRED"
    severity = Severity.INFO
    message = "Challenge expired"


class ChallengeMismatchFault(SecurityFault):
    code = "FIDO2_CHALLENGE_MISMATCH"
    message = "Challenge mismatch"


class ClientDataTypeFault(SecurityFault):
    code = "FIDO2_CLIENT_DATA_TYPE"
    message = "Invalid client data type"


class OriginMismatchFault(SecurityFault):
    code = "FIDO2_ORIGIN_MISMATCH"
    message = "Origin mismatch"


class RpIdMismatchFault(SecurityFault):
    code = "FIDO2_RP_ID_MISMATCH"
    message = "Relying party id hash mismatch"


class UserPresenceFault(SecurityFault):
    """User-present or required user-verified flag not set."""
    code = "FIDO2_USER_NOT_PRESENT"
    message = "User presence or verification missing"


class CredentialNotFoundFault(SecurityFault):
    code = "FIDO2_CREDENTIAL_NOT_FOUND"
    message = "Credential not found"


class CredentialNotAllowedFault(SecurityFault):
    code = "FIDO2_CREDENTIAL_NOT_ALLOWED"
    message = "Credential not in allow list"


class CounterReplayFault(SecurityFault):
    """Signature counter did not strictly increase."""
    code = "FIDO2_COUNTER_REPLAY"
    severity = Severity.ERROR
    message = "Invalid counter - possible cloned authenticator"


class SignatureInvalidFault(SecurityFault):
    code = "FIDO2_SIGNATURE_INVALID"
    message = "Assertion signature invalid"


class CredentialAlreadyRegisteredFault(AlreadyExistsFault):
    """Raw credential id is already registered."""
    code = "FIDO2_CREDENTIAL_EXISTS"
    message = "Credential already registered"
    public_message = "Authenticator already registered"
