"""
iQ-auth FIDO2 - Provider

Challenge-response authentication with hardware-backed credentials.

Registration:  challenge issued -> credential created -> verified
Authentication: challenge issued -> assertion received -> counter checked -> verified

Every issued challenge is consumed exactly once, whether the ceremony
succeeds or fails. An assertion whose signature counter does not
strictly exceed the stored counter is rejected as a possible cloned
authenticator and the stored counter is left untouched.
"""

from __future__ import annotations

import hmac
import secrets
import time
from typing import Any, Callable, Optional

from ..auth.core import AuthEvent, AuthMethod, AuthProvider, AuthResult
from ..auth.tokens import SessionTokenSigner
from ..config import FIDO2Config
from ..faults import Fault
from ..storage import KeyedLock
from .core import (
    CLIENT_DATA_CREATE,
    CLIENT_DATA_GET,
    SUPPORTED_ALGORITHMS,
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
    load_public_key,
    parse_client_data,
    rp_id_hash,
    verify_assertion_signature,
)
from .faults import (
    CeremonyCancelledFault,
    CeremonyFailedFault,
    ChallengeExpiredFault,
    ChallengeMismatchFault,
    ChallengeNotFoundFault,
    ClientDataTypeFault,
    CredentialAlreadyRegisteredFault,
    CredentialNotAllowedFault,
    CredentialNotFoundFault,
    CounterReplayFault,
    OptionsInvalidFault,
    OriginMismatchFault,
    PublicKeyInvalidFault,
    RpIdMismatchFault,
    UserPresenceFault,
    WebAuthnUnsupportedFault,
)
from .stores import ChallengeStore, CredentialStore, MemoryChallengeStore, MemoryCredentialStore


class FIDO2Provider(AuthProvider):
    """
    FIDO2 / WebAuthn provider.

    The ceremonies themselves run in a platform ``CeremonyClient``; this
    provider issues challenges, validates the returned payloads and
    owns the credential table.

    Example:
        ```python
        provider = FIDO2Provider(signer, FIDO2Config(rp_id="example.com",
                                                      origin="https://example.com"),
                                 ceremony=browser_bridge)
        credential = await provider.register(
            RegistrationOptions(user_id="u1", user_name="ana@example.com")
        )
        result = await provider.authenticate(AuthenticationOptions())
        ```
    """

    name = "fido2"
    method = AuthMethod.FIDO2

    def __init__(
        self,
        signer: SessionTokenSigner,
        config: Optional[FIDO2Config] = None,
        ceremony: Optional[CeremonyClient] = None,
        challenges: Optional[ChallengeStore] = None,
        credentials: Optional[CredentialStore] = None,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(signer)
        self.config = config or FIDO2Config()
        self.ceremony = ceremony
        self._clock = clock
        self.challenges = challenges if challenges is not None else MemoryChallengeStore(clock=clock)
        self.credentials = credentials if credentials is not None else MemoryCredentialStore()
        self._counter_locks = KeyedLock()

    def configure(self, config: FIDO2Config) -> None:
        self.config = config

    # ========================================================================
    # Environment
    # ========================================================================

    def is_supported(self) -> bool:
        """Check if a ceremony client is present and supports WebAuthn."""
        return self.ceremony is not None and self.ceremony.is_supported()

    async def is_platform_authenticator_available(self) -> bool:
        if not self.is_supported():
            return False
        return await self.ceremony.is_platform_authenticator_available()

    # ========================================================================
    # Challenges
    # ========================================================================

    def _new_challenge(self) -> Challenge:
        return Challenge(value=secrets.token_bytes(32), issued_at=self._clock())

    @staticmethod
    def _new_challenge_id() -> str:
        return f"challenge-{secrets.token_urlsafe(16)}"

    async def sweep_expired_challenges(self) -> int:
        """Drop challenges older than the ceremony timeout. Returns count."""
        swept = await self.challenges.sweep_expired(self.config.timeout_ms)
        if swept:
            self.logger.debug(f"Swept {swept} expired challenges")
        return swept

    def _check_client_data(self, client_data: ClientData, expected_type: str, stored: Challenge) -> None:
        if client_data.type != expected_type:
            raise ClientDataTypeFault(expected=expected_type, received=client_data.type)

        try:
            presented = b64url_decode(client_data.challenge)
        except (ValueError, TypeError):
            presented = b""
        if not hmac.compare_digest(presented, stored.value):
            raise ChallengeMismatchFault()

        if stored.is_expired(self.config.timeout_ms, self._clock()):
            raise ChallengeExpiredFault()

        if client_data.origin != self.config.origin:
            raise OriginMismatchFault(expected=self.config.origin, received=client_data.origin)

    def _check_authenticator_data(self, raw: bytes, require_uv: bool = False) -> AuthenticatorData:
        auth_data = AuthenticatorData.parse(raw)
        if not hmac.compare_digest(auth_data.rp_id_hash, rp_id_hash(self.config.rp_id)):
            raise RpIdMismatchFault(rp_id=self.config.rp_id)
        if not auth_data.user_present:
            raise UserPresenceFault(flag="UP")
        if require_uv and not auth_data.user_verified:
            raise UserPresenceFault(flag="UV")
        return auth_data

    # ========================================================================
    # Registration
    # ========================================================================

    async def generate_registration_options(self, options: RegistrationOptions) -> dict[str, Any]:
        """
        Issue a registration challenge bound to ``options.user_id``.

        Returns ``{"publicKey": PublicKeyCredentialCreationOptions}``.
        When no exclude list is given, the user's existing credentials
        are excluded so the same authenticator is not registered twice.
        """
        challenge = self._new_challenge()
        await self.challenges.put(options.user_id, challenge)

        exclude = options.exclude_credentials
        if exclude is None:
            exclude = await self.credentials.list_by_user(options.user_id)

        public_key: dict[str, Any] = {
            "challenge": challenge.encoded,
            "rp": {
                "name": self.config.rp_name,
                "id": self.config.rp_id,
            },
            "user": {
                "id": b64url_encode(options.user_id.encode("utf-8")),
                "name": options.user_name,
                "displayName": options.user_display_name or options.user_name,
            },
            "pubKeyCredParams": [
                {"type": "public-key", "alg": alg} for alg in SUPPORTED_ALGORITHMS
            ],
            "timeout": self.config.timeout_ms,
            "attestation": self.config.attestation,
            "excludeCredentials": [c.descriptor() for c in exclude],
        }

        selection = options.authenticator_selection or self.config.authenticator_selection
        if selection:
            public_key["authenticatorSelection"] = dict(selection)

        return {"publicKey": public_key}

    async def register(self, options: RegistrationOptions) -> Credential:
        """
        Run the registration ceremony and store the new credential.

        The user's challenge is deleted whatever the outcome.

        Raises:
            WebAuthnUnsupportedFault: no usable ceremony client
            CeremonyCancelledFault / CeremonyFailedFault: platform failure
            SecurityFault subclasses: type, challenge, origin, rp id checks
            CredentialAlreadyRegisteredFault: raw id already registered
        """
        if not self.is_supported():
            fault = WebAuthnUnsupportedFault()
            self._report("register", options.user_id, fault)
            raise fault

        try:
            request = await self.generate_registration_options(options)
            response = await self._run_ceremony(self.ceremony.create, request)
            credential = await self._verify_attestation(options.user_id, response)
        except Fault as fault:
            self._report("register", options.user_id, fault)
            raise
        finally:
            await self.challenges.pop(options.user_id)

        self.logger.info(f"Registered credential {credential.id} for user {options.user_id}")
        self._emit_event(AuthEvent(
            provider=self.name,
            kind="register",
            success=True,
            user_id=options.user_id,
            metadata={"credential_id": credential.id},
        ))
        return credential

    async def _verify_attestation(self, user_id: str, response: AttestationResponse) -> Credential:
        stored = await self.challenges.pop(user_id)
        if stored is None:
            raise ChallengeNotFoundFault(user_id=user_id)

        client_data = parse_client_data(response.client_data_json)
        self._check_client_data(client_data, CLIENT_DATA_CREATE, stored)
        self._check_authenticator_data(response.authenticator_data)

        if not response.public_key:
            raise PublicKeyInvalidFault(reason="no public key returned")
        algorithm = load_public_key(response.public_key, response.public_key_algorithm)

        credential_id = b64url_encode(response.raw_id)
        if await self.credentials.exists(credential_id):
            raise CredentialAlreadyRegisteredFault(credential_id=credential_id)

        credential = Credential(
            id=credential_id,
            public_key=response.public_key,
            user_id=user_id,
            algorithm=algorithm,
            counter=0,
            transports=list(response.transports),
            attestation_type=response.attestation_format,
        )
        await self.credentials.put(credential)
        return credential

    # ========================================================================
    # Authentication
    # ========================================================================

    async def generate_authentication_options(
        self,
        options: Optional[AuthenticationOptions] = None,
    ) -> dict[str, Any]:
        """
        Issue an authentication challenge under a fresh opaque id.

        Returns ``{"publicKey": PublicKeyCredentialRequestOptions,
        "challengeId": str}``.
        """
        options = options or AuthenticationOptions()
        challenge_id = self._new_challenge_id()
        challenge = self._new_challenge()
        await self.challenges.put(challenge_id, challenge)
        return self._request_options(options, challenge_id, challenge)

    def _request_options(
        self,
        options: AuthenticationOptions,
        challenge_id: str,
        challenge: Challenge,
    ) -> dict[str, Any]:
        public_key: dict[str, Any] = {
            "challenge": challenge.encoded,
            "timeout": self.config.timeout_ms,
            "rpId": self.config.rp_id,
            "userVerification": options.user_verification or self.config.user_verification,
        }
        if options.allow_credentials:
            public_key["allowCredentials"] = [
                c.descriptor() if isinstance(c, Credential) else {"type": "public-key", "id": c}
                for c in options.allow_credentials
            ]
        return {"publicKey": public_key, "challengeId": challenge_id}

    async def authenticate(self, credentials: Any = None) -> AuthResult:
        """
        Run the assertion ceremony.

        ``credentials`` is an AuthenticationOptions (or a dict of its
        fields). Rejections come back as ``success=False`` with a
        generic error; the attached fault carries the reason.
        """
        try:
            options = self._coerce_options(credentials)
        except Fault as fault:
            return self._failure(fault)

        if not self.is_supported():
            return self._failure(WebAuthnUnsupportedFault())

        if options.challenge_id:
            challenge_id = options.challenge_id
            challenge = await self.challenges.get(challenge_id)
            if challenge is None:
                return self._failure(ChallengeNotFoundFault(challenge_id=challenge_id))
            request = self._request_options(options, challenge_id, challenge)
        else:
            request = await self.generate_authentication_options(options)
            challenge_id = request["challengeId"]

        try:
            response = await self._run_ceremony(self.ceremony.get, request)
            credential = await self._verify_assertion(options, challenge_id, response)
        except Fault as fault:
            return self._failure(fault)
        finally:
            await self.challenges.pop(challenge_id)

        return self._success(credential.user_id, metadata={
            "credential_id": credential.id,
            "counter": credential.counter,
        })

    async def _verify_assertion(
        self,
        options: AuthenticationOptions,
        challenge_id: str,
        response: AssertionResponse,
    ) -> Credential:
        stored = await self.challenges.pop(challenge_id)
        if stored is None:
            raise ChallengeNotFoundFault(challenge_id=challenge_id)

        credential_id = b64url_encode(response.raw_id)
        allowed = options.allowed_ids()
        if allowed is not None and credential_id not in allowed:
            raise CredentialNotAllowedFault(credential_id=credential_id)

        if await self.credentials.get(credential_id) is None:
            raise CredentialNotFoundFault(credential_id=credential_id)

        client_data = parse_client_data(response.client_data_json)
        self._check_client_data(client_data, CLIENT_DATA_GET, stored)

        user_verification = options.user_verification or self.config.user_verification
        auth_data = self._check_authenticator_data(
            response.authenticator_data,
            require_uv=user_verification == "required",
        )

        async with self._counter_locks.hold(credential_id):
            credential = await self.credentials.get(credential_id)
            if credential is None:
                raise CredentialNotFoundFault(credential_id=credential_id)

            verify_assertion_signature(
                credential,
                response.authenticator_data,
                response.client_data_json,
                response.signature,
            )

            if auth_data.sign_count <= credential.counter:
                raise CounterReplayFault(
                    credential_id=credential_id,
                    stored=credential.counter,
                    received=auth_data.sign_count,
                )

            credential.counter = auth_data.sign_count
            await self.credentials.put(credential)

        return credential

    @staticmethod
    def _coerce_options(credentials: Any) -> AuthenticationOptions:
        if credentials is None:
            return AuthenticationOptions()
        if isinstance(credentials, AuthenticationOptions):
            return credentials
        if isinstance(credentials, dict):
            return AuthenticationOptions(
                allow_credentials=credentials.get("allow_credentials"),
                user_verification=credentials.get("user_verification"),
                challenge_id=credentials.get("challenge_id"),
            )
        raise OptionsInvalidFault(received=type(credentials).__name__)

    async def _run_ceremony(self, call, request: dict[str, Any]):
        try:
            response = await call(request)
        except Fault:
            raise
        except Exception as e:
            raise CeremonyFailedFault(reason=str(e)) from e

        if response is None:
            raise CeremonyCancelledFault()
        return response

    def _report(self, kind: str, user_id: Optional[str], fault: Fault) -> None:
        self.logger.warning(f"{kind} rejected: {fault}")
        self._emit_event(AuthEvent(
            provider=self.name,
            kind=kind,
            success=False,
            user_id=user_id,
            fault_code=fault.code,
        ))

    # ========================================================================
    # Credential Management
    # ========================================================================

    async def get_user_credentials(self, user_id: str) -> list[Credential]:
        return await self.credentials.list_by_user(user_id)

    async def delete_credential(self, credential_id: str) -> bool:
        """Delete a credential. Returns False if unknown."""
        deleted = await self.credentials.delete(credential_id)
        if deleted:
            self.logger.info(f"Deleted credential {credential_id}")
        return deleted
