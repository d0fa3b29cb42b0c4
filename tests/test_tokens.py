"""
Session token tests.

Covers mint/verify, the 24h expiry boundary, distinct rejection
reasons, secret rotation and construction from config.
"""

import pytest

from iqauth.auth import SessionTokenSigner
from iqauth.auth.faults import (
    AUTH_SUBJECT_INVALID,
    AUTH_TOKEN_EXPIRED,
    AUTH_TOKEN_INVALID,
    AUTH_TOKEN_MALFORMED,
)
from iqauth.config import TokenConfig
from iqauth.faults import ConfigInvalidFault, ConfigMissingFault


DAY = 86400


# ============================================================================
# Mint / Verify
# ============================================================================

class TestMintVerify:

    def test_format(self, signer, clock):
        token = signer.mint("user-1")
        subject, issued, signature = token.split(":")

        assert subject == "user-1"
        assert int(issued) == int(clock.now * 1000)
        assert len(signature) == 64
        int(signature, 16)

    def test_round_trip(self, signer):
        result = signer.verify(signer.mint("user-1"))
        assert result.valid is True
        assert result.user_id == "user-1"
        assert result.error is None

    def test_expires_at(self, signer, clock):
        result = signer.verify(signer.mint("user-1"))
        assert result.expires_at.timestamp() == pytest.approx(clock.now + DAY)

    def test_explicit_issued_at(self, signer, clock):
        issued_ms = int(clock.now * 1000) - 1000
        token = signer.mint("user-1", issued_at_ms=issued_ms)
        assert token.split(":")[1] == str(issued_ms)

    @pytest.mark.parametrize("subject", ["", "a:b"])
    def test_invalid_subject(self, signer, subject):
        with pytest.raises(AUTH_SUBJECT_INVALID):
            signer.mint(subject)

    def test_to_dict(self, signer):
        data = signer.verify(signer.mint("user-1")).to_dict()
        assert data["valid"] is True
        assert data["user_id"] == "user-1"
        assert "fault" not in data


# ============================================================================
# Expiry boundary
# ============================================================================

class TestExpiry:

    def test_valid_just_before_boundary(self, signer, clock):
        token = signer.mint("user-1")
        clock.advance(DAY - 0.001)
        assert signer.verify(token).valid is True

    def test_expired_at_boundary(self, signer, clock):
        token = signer.mint("user-1")
        clock.advance(DAY)

        result = signer.verify(token)
        assert result.valid is False
        assert result.error == "Token expired"
        assert isinstance(result.fault, AUTH_TOKEN_EXPIRED)

    def test_custom_ttl(self, clock):
        signer = SessionTokenSigner(secret="s", ttl=60, clock=clock)
        token = signer.mint("user-1")
        clock.advance(59)
        assert signer.verify(token).valid
        clock.advance(1)
        assert not signer.verify(token).valid


# ============================================================================
# Rejection reasons
# ============================================================================

class TestRejections:

    @pytest.mark.parametrize("token", [
        "",
        "user-1",
        "user-1:123",
        "user-1:123:abc:def",
        "user-1:notanumber:abc",
        "user-1:-5:abc",
        "::",
        "user-1::abc",
    ])
    def test_malformed(self, signer, token):
        result = signer.verify(token)
        assert result.valid is False
        assert result.error == "Invalid token format"
        assert isinstance(result.fault, AUTH_TOKEN_MALFORMED)

    def test_non_string(self, signer):
        assert signer.verify(None).error == "Invalid token format"

    def test_bad_signature(self, signer):
        subject, issued, signature = signer.mint("user-1").split(":")
        forged = f"{subject}:{issued}:{'0' * len(signature)}"

        result = signer.verify(forged)
        assert result.error == "Invalid token signature"
        assert isinstance(result.fault, AUTH_TOKEN_INVALID)

    def test_tampered_subject(self, signer):
        _, issued, signature = signer.mint("user-1").split(":")
        result = signer.verify(f"admin:{issued}:{signature}")
        assert result.error == "Invalid token signature"

    def test_non_ascii_signature(self, signer):
        subject, issued, _ = signer.mint("user-1").split(":")
        result = signer.verify(f"{subject}:{issued}:\u00e9\u00e9")
        assert result.valid is False
        assert result.error == "Invalid token signature"
        assert isinstance(result.fault, AUTH_TOKEN_INVALID)

    def test_non_ascii_subject(self, signer):
        _, issued, signature = signer.mint("user-1").split(":")
        assert signer.verify(f"\u00e9\ud800:{issued}:{signature}").error == "Invalid token signature"

    def test_other_secret(self, signer, clock):
        other = SessionTokenSigner(secret="other-secret", clock=clock)
        assert signer.verify(other.mint("user-1")).error == "Invalid token signature"

    def test_signature_checked_before_expiry(self, signer, clock):
        subject, issued, _ = signer.mint("user-1").split(":")
        clock.advance(2 * DAY)
        result = signer.verify(f"{subject}:{issued}:{'f' * 64}")
        assert result.error == "Invalid token signature"


# ============================================================================
# Rotation
# ============================================================================

class TestRotation:

    def test_old_tokens_verify_during_grace(self, clock):
        signer = SessionTokenSigner(secret="old", rotation_grace=3600, clock=clock)
        token = signer.mint("user-1")

        signer.rotate("new")
        assert signer.verify(token).valid is True
        assert signer.verify(signer.mint("user-2")).valid is True

    def test_old_tokens_rejected_after_grace(self, clock):
        signer = SessionTokenSigner(secret="old", rotation_grace=3600, clock=clock)
        token = signer.mint("user-1")

        signer.rotate("new")
        clock.advance(3600)
        assert signer.verify(token).error == "Invalid token signature"

    def test_new_tokens_use_new_secret(self, clock):
        signer = SessionTokenSigner(secret="old", clock=clock)
        signer.rotate("new")
        fresh = SessionTokenSigner(secret="new", clock=clock)
        assert fresh.verify(signer.mint("user-1")).valid

    def test_rotate_requires_secret(self, signer):
        with pytest.raises(ConfigMissingFault):
            signer.rotate("")

    def test_needs_rotation(self, signer, clock):
        assert signer.needs_rotation(30 * DAY) is False
        clock.advance(30 * DAY)
        assert signer.needs_rotation(30 * DAY) is True
        signer.rotate("fresh")
        assert signer.needs_rotation(30 * DAY) is False


# ============================================================================
# Construction
# ============================================================================

class TestConstruction:

    def test_empty_secret(self):
        with pytest.raises(ConfigMissingFault):
            SessionTokenSigner(secret="")

    def test_unknown_algorithm(self):
        with pytest.raises(ConfigInvalidFault):
            SessionTokenSigner(secret="s", algorithm="nope512")

    def test_from_config(self, clock):
        signer = SessionTokenSigner.from_config(TokenConfig(secret="s", ttl=10), clock=clock)
        assert signer.ttl == 10
        assert signer.verify(signer.mint("u")).valid

    def test_from_config_missing_secret(self):
        with pytest.raises(ConfigMissingFault):
            SessionTokenSigner.from_config(TokenConfig())

    def test_from_config_insecure_default(self):
        signer = SessionTokenSigner.from_config(TokenConfig(allow_insecure_default=True))
        assert signer.verify(signer.mint("u")).valid

    def test_sha512(self, clock):
        signer = SessionTokenSigner(secret="s", algorithm="sha512", clock=clock)
        token = signer.mint("u")
        assert len(token.split(":")[2]) == 128
        assert signer.verify(token).valid
