"""
Configuration tests.

Covers typed defaults, nested dict construction, .env and environment
loading with precedence, and plugin config bag merging.
"""

import pytest

from iqauth.config import (
    ConfigLoader,
    FIDO2Config,
    IQAuthConfig,
    PasswordConfig,
    merge_config,
)
from iqauth.faults import ConfigInvalidFault, FaultDomain


class TestDefaults:

    def test_defaults(self):
        config = IQAuthConfig()
        assert config.storage.backend == "memory"
        assert config.token.secret is None
        assert config.token.ttl == 86400
        assert config.fido2.rp_name == "iQ-auth"
        assert config.fido2.rp_id == "localhost"
        assert config.fido2.origin == "http://localhost:3000"
        assert config.fido2.timeout_ms == 60000
        assert config.password.min_length == 8
        assert config.enabled_auth_methods == ["fido2", "password", "wallet"]

    def test_sections_not_shared(self):
        a, b = IQAuthConfig(), IQAuthConfig()
        a.enabled_auth_methods.append("sso")
        assert b.enabled_auth_methods == ["fido2", "password", "wallet"]


class TestFromDict:

    def test_partial_nested(self):
        config = IQAuthConfig.from_dict({
            "token": {"secret": "s", "ttl": 60},
            "fido2": {"rp_id": "example.com"},
        })
        assert config.token.secret == "s"
        assert config.token.ttl == 60
        assert config.token.algorithm == "sha256"
        assert config.fido2.rp_id == "example.com"
        assert config.fido2.rp_name == "iQ-auth"

    def test_unknown_key(self):
        with pytest.raises(ConfigInvalidFault) as exc:
            IQAuthConfig.from_dict({"fido2": {"rp_idd": "x"}})
        assert exc.value.domain == FaultDomain.CONFIG
        assert exc.value.metadata["key"] == "fido2.rp_idd"

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigInvalidFault):
            IQAuthConfig.from_dict({"token": "secret"})

    def test_to_dict_redacts_secret(self):
        data = IQAuthConfig.from_dict({"token": {"secret": "s3cret"}}).to_dict()
        assert data["token"]["secret"] == "***"
        assert data["fido2"]["rp_id"] == "localhost"


class TestConfigLoader:

    def test_environ(self):
        config = ConfigLoader.load(env_file=None, environ={
            "IQ_TOKEN__SECRET": "from-env",
            "IQ_TOKEN__TTL": "3600",
            "IQ_FIDO2__RP_ID": "example.com",
            "IQ_PASSWORD__REQUIRE_SPECIAL": "true",
            "IQ_ENABLED_AUTH_METHODS": '["password"]',
            "OTHER_VAR": "ignored",
        })
        assert config.token.secret == "from-env"
        assert config.token.ttl == 3600
        assert config.fido2.rp_id == "example.com"
        assert config.password.require_special is True
        assert config.enabled_auth_methods == ["password"]

    def test_env_file_and_precedence(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text(
            "IQ_TOKEN__SECRET=from-file\n"
            "IQ_FIDO2__ORIGIN=https://file.example\n"
            "UNRELATED=1\n"
        )

        config = ConfigLoader.load(
            env_file=str(env_file),
            environ={"IQ_FIDO2__ORIGIN": "https://env.example"},
            overrides={"fido2": {"rp_name": "Override"}},
        )

        assert config.token.secret == "from-file"
        assert config.fido2.origin == "https://env.example"
        assert config.fido2.rp_name == "Override"

    def test_overrides_win(self):
        config = ConfigLoader.load(
            env_file=None,
            environ={"IQ_TOKEN__TTL": "10"},
            overrides={"token": {"ttl": 20}},
        )
        assert config.token.ttl == 20

    def test_missing_env_file(self, tmp_path):
        config = ConfigLoader.load(env_file=str(tmp_path / "nope.env"), environ={})
        assert config == IQAuthConfig()

    def test_custom_prefix(self):
        config = ConfigLoader.load(env_prefix="AUTH_", env_file=None, environ={"AUTH_TOKEN__SECRET": "x"})
        assert config.token.secret == "x"

    @pytest.mark.parametrize("raw,parsed", [
        ("yes", True),
        ("False", False),
        ("42", 42),
        ("0.5", 0.5),
        ('{"a": 1}', {"a": 1}),
        ("[broken", "[broken"),
        ("plain", "plain"),
    ])
    def test_parse_value(self, raw, parsed):
        assert ConfigLoader()._parse_value(raw) == parsed

    def test_unknown_env_key(self):
        with pytest.raises(ConfigInvalidFault):
            ConfigLoader.load(env_file=None, environ={"IQ_FIDO2__COLOUR": "blue"})


class TestMergeConfig:

    def test_camel_case(self):
        merged = merge_config(FIDO2Config(), {"rpId": "example.com", "timeoutMs": 1000})
        assert merged.rp_id == "example.com"
        assert merged.timeout_ms == 1000

    def test_returns_copy(self):
        original = PasswordConfig()
        merged = merge_config(original, {"min_length": 10})
        assert original.min_length == 8
        assert merged.min_length == 10

    def test_empty_bag(self):
        original = PasswordConfig()
        assert merge_config(original, {}) is original
        assert merge_config(original, None) is original

    def test_unknown_key(self):
        with pytest.raises(ConfigInvalidFault) as exc:
            merge_config(PasswordConfig(), {"pepper": "x"}, "password")
        assert exc.value.metadata["key"] == "password.pepper"
