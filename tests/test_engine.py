"""
Engine facade tests.

Covers wiring of storage, registry and plugins, lifecycle, provider
lookup and routing of authenticate/verify.
"""

import pytest

from iqauth import IQAuth, IQAuthConfig
from iqauth.auth import EmailPasswordPlugin, EmailPasswordProvider, PasswordHasher
from iqauth.config import TokenConfig
from iqauth.faults import ConfigInvalidFault, ConfigMissingFault
from iqauth.fido2 import FIDO2Provider, RegistrationOptions
from iqauth.plugins import (
    Plugin,
    PluginNotFoundFault,
    PluginNotInitializedFault,
    PluginState,
)
from iqauth.registry import IdentityType
from iqauth.storage import MemoryStorage
from iqauth.wallet import WalletProvider


GOOD = "Secret123"


def _config(**kwargs):
    return IQAuthConfig(token=TokenConfig(secret="engine-secret"), **kwargs)


class BrokenPlugin(Plugin):
    name = "broken"

    async def destroy(self):
        raise RuntimeError("teardown failed")


class FlakyPlugin(Plugin):
    """Fails its first initialize call."""

    name = "flaky"

    def __init__(self):
        self.calls = 0

    async def initialize(self, config=None):
        self.calls += 1
        if self.calls == 1:
            raise RuntimeError("boom")


class CountingPlugin(Plugin):
    name = "counting"

    def __init__(self):
        self.calls = 0

    async def initialize(self, config=None):
        self.calls += 1


# ============================================================================
# Construction
# ============================================================================

class TestConstruction:

    def test_requires_secret(self):
        with pytest.raises(ConfigMissingFault):
            IQAuth()

    def test_insecure_default_opt_in(self):
        engine = IQAuth(IQAuthConfig(token=TokenConfig(allow_insecure_default=True)))
        assert engine.signer is not None

    def test_default_storage(self):
        engine = IQAuth(_config())
        assert isinstance(engine.storage, MemoryStorage)
        assert engine.registry.storage is engine.storage

    def test_unknown_backend_needs_instance(self):
        config = _config()
        config.storage.backend = "redis"
        with pytest.raises(ConfigInvalidFault):
            IQAuth(config)

        engine = IQAuth(config, storage=MemoryStorage(sweep_interval=0))
        assert engine.storage.name == "memory"

    def test_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("IQ_TOKEN__SECRET", "from-env")
        monkeypatch.setenv("IQ_ENABLED_AUTH_METHODS", '["password"]')
        engine = IQAuth.from_env(env_file=str(tmp_path / ".env"))
        assert engine.config.token.secret == "from-env"
        assert engine.config.enabled_auth_methods == ["password"]


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:

    @pytest.mark.asyncio
    async def test_default_plugins(self, authenticator):
        async with IQAuth(_config(), ceremony=authenticator) as engine:
            names = [p.name for p in engine.plugins.get_all()]
            assert names == ["fido2", "password", "wallet"]
            assert all(engine.plugins.state(n) is PluginState.INITIALIZED for n in names)

            assert isinstance(engine.get_auth_provider("fido2"), FIDO2Provider)
            assert isinstance(engine.get_auth_provider("password"), EmailPasswordProvider)
            assert isinstance(engine.get_auth_provider("wallet"), WalletProvider)

        assert len(engine.plugins) == 0

    @pytest.mark.asyncio
    async def test_enabled_methods_subset(self):
        engine = IQAuth(_config(enabled_auth_methods=["password", "sso"]))
        await engine.start()
        assert [p.name for p in engine.plugins.get_all()] == ["password"]
        await engine.destroy()

    @pytest.mark.asyncio
    async def test_start_idempotent(self):
        engine = IQAuth(_config(enabled_auth_methods=["password"]))
        await engine.start()
        await engine.start()
        assert len(engine.plugins) == 1
        await engine.destroy()

    @pytest.mark.asyncio
    async def test_explicit_plugins(self):
        engine = IQAuth(_config(), plugins=[BrokenPlugin()])
        await engine.start()

        assert engine.get_auth_provider("broken") is None
        assert await engine.destroy() == ["broken"]

    @pytest.mark.asyncio
    async def test_start_resumes_after_failure(self):
        counting, flaky = CountingPlugin(), FlakyPlugin()
        engine = IQAuth(_config(), plugins=[counting, flaky])

        with pytest.raises(RuntimeError, match="boom"):
            await engine.start()
        assert engine.plugins.state("counting") is PluginState.INITIALIZED
        assert engine.plugins.state("flaky") is PluginState.REGISTERED

        await engine.start()

        assert counting.calls == 1
        assert flaky.calls == 2
        assert engine.plugins.state("flaky") is PluginState.INITIALIZED
        assert await engine.destroy() == []

    @pytest.mark.asyncio
    async def test_shared_signer(self, authenticator):
        async with IQAuth(_config(), ceremony=authenticator) as engine:
            signers = {id(p.provider.signer) for p in engine.plugins.get_auth_plugins()}
            assert signers == {id(engine.signer)}


# ============================================================================
# Routing
# ============================================================================

class TestRouting:

    @pytest.mark.asyncio
    async def test_password_round_trip(self):
        async with IQAuth(_config(enabled_auth_methods=["password"])) as engine:
            provider = engine.get_auth_provider("password")
            provider.hasher = PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)
            await provider.register("ana@example.com", GOOD, "user-1")

            result = await engine.authenticate("password", {"email": "ana@example.com", "password": GOOD})
            assert result.success is True

            verified = await engine.verify("password", result.token)
            assert verified.valid is True
            assert verified.user_id == "user-1"

    @pytest.mark.asyncio
    async def test_token_verifies_across_providers(self, authenticator):
        async with IQAuth(_config(), ceremony=authenticator) as engine:
            fido2 = engine.get_auth_provider("fido2")
            await fido2.register(RegistrationOptions(user_id="u1", user_name="u1"))

            result = await engine.authenticate("fido2", None)
            assert result.success is True
            assert (await engine.verify("wallet", result.token)).user_id == "u1"

    @pytest.mark.asyncio
    async def test_unknown_provider(self):
        async with IQAuth(_config(enabled_auth_methods=[])) as engine:
            with pytest.raises(PluginNotFoundFault):
                await engine.authenticate("password", {})
            with pytest.raises(PluginNotFoundFault):
                await engine.verify("password", "t")

    @pytest.mark.asyncio
    async def test_not_initialized(self, signer, fast_hasher):
        engine = IQAuth(_config(enabled_auth_methods=[]))
        await engine.plugins.register(EmailPasswordPlugin(signer, hasher=fast_hasher))

        with pytest.raises(PluginNotInitializedFault):
            await engine.authenticate("password", {})

    @pytest.mark.asyncio
    async def test_registry_shares_storage(self):
        async with IQAuth(_config(enabled_auth_methods=[])) as engine:
            identity = await engine.registry.register(
                type=IdentityType.WALLET, user_id="u1", provider="metamask",
            )
            assert await engine.storage.exists(f"identity:row:{identity.id}")
