"""
iQ-auth Engine - Composition root.

Wires storage -> registry, a plugin loader and one shared session token
signer.

Example:
    ```python
    config = ConfigLoader.load()
    async with IQAuth(config, ceremony=browser_bridge) as iq:
        identity = await iq.registry.register(
            type=IdentityType.DEVICE, user_id="u1", provider="fido2",
        )
        result = await iq.authenticate("password", {"email": ..., "password": ...})
    ```
"""

from __future__ import annotations

import logging
from typing import Any, Optional, Sequence

from .auth.core import AuthProvider, AuthResult, VerifyResult
from .auth.password import EmailPasswordPlugin
from .auth.tokens import SessionTokenSigner
from .config import ConfigLoader, IQAuthConfig
from .faults import ConfigInvalidFault
from .fido2.core import CeremonyClient
from .fido2.plugin import FIDO2Plugin
from .plugins import (
    Plugin,
    PluginKind,
    PluginLoader,
    PluginNotFoundFault,
    PluginNotInitializedFault,
    PluginState,
)
from .registry import IdentityRegistry
from .storage import MemoryStorage, StorageAdapter
from .wallet.plugin import WalletPlugin

logger = logging.getLogger("iqauth.engine")


class IQAuth:
    """
    iQ-auth engine.

    Args:
        config: Typed configuration (defaults to IQAuthConfig())
        storage: Key/value store (defaults to MemoryStorage)
        plugins: Plugins to install; when None, the built-in plugins
            for ``config.enabled_auth_methods`` are created
        ceremony: Platform ceremony client for the FIDO2 plugin
        signer: Session token signer (defaults to one built from
            ``config.token``)
    """

    def __init__(
        self,
        config: Optional[IQAuthConfig] = None,
        storage: Optional[StorageAdapter] = None,
        plugins: Optional[Sequence[Plugin]] = None,
        ceremony: Optional[CeremonyClient] = None,
        signer: Optional[SessionTokenSigner] = None,
    ):
        self.config = config or IQAuthConfig()
        self._storage = storage or self._build_storage()
        self._registry = IdentityRegistry(self._storage)
        self._plugins = PluginLoader()
        self.signer = signer or SessionTokenSigner.from_config(self.config.token)
        self._pending = list(plugins) if plugins is not None else self._default_plugins(ceremony)
        self._started = False

    @classmethod
    def from_env(cls, env_prefix: str = "IQ_", env_file: Optional[str] = ".env", **kwargs) -> IQAuth:
        """Build an engine from .env / environment configuration."""
        return cls(ConfigLoader.load(env_prefix=env_prefix, env_file=env_file), **kwargs)

    def _build_storage(self) -> StorageAdapter:
        backend = self.config.storage.backend
        if backend != "memory":
            raise ConfigInvalidFault(
                "storage.backend",
                f"no built-in backend {backend!r}; pass a StorageAdapter instance",
            )
        return MemoryStorage(sweep_interval=self.config.storage.sweep_interval)

    def _default_plugins(self, ceremony: Optional[CeremonyClient]) -> list[Plugin]:
        factories = {
            "fido2": lambda: FIDO2Plugin(
                self.signer, config=self.config.fido2, ceremony=ceremony, storage=self._storage,
            ),
            "password": lambda: EmailPasswordPlugin(
                self.signer, config=self.config.password, storage=self._storage,
            ),
            "wallet": lambda: WalletPlugin(
                self.signer, config=self.config.wallet, storage=self._storage,
            ),
        }

        plugins = []
        for method in self.config.enabled_auth_methods:
            factory = factories.get(method)
            if factory is None:
                logger.warning(f"No built-in plugin for auth method {method!r}; skipping")
                continue
            plugins.append(factory())
        return plugins

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def start(self) -> None:
        """
        Initialize storage, then register and initialize every plugin.

        If a plugin fails to initialize the error propagates and the
        plugins before it stay up. Calling start() again resumes with
        the plugin that failed.
        """
        if self._started:
            return

        await self._storage.initialize()
        while self._pending:
            plugin = self._pending[0]
            if plugin.name not in self._plugins:
                await self._plugins.register(plugin)
            if self._plugins.state(plugin.name) is not PluginState.INITIALIZED:
                await self._plugins.initialize(plugin.name, {})
            self._pending.pop(0)
        self._started = True
        logger.info(f"iQ-auth started with plugins: {[p.name for p in self._plugins.get_all()]}")

    async def destroy(self) -> list[str]:
        """
        Destroy all plugins and shut storage down.

        Returns:
            Names of plugins whose destroy hook failed
        """
        failed = await self._plugins.destroy_all()
        await self._storage.shutdown()
        self._started = False
        if failed:
            logger.warning(f"Plugins failed to destroy: {failed}")
        return failed

    async def __aenter__(self) -> IQAuth:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.destroy()

    # ========================================================================
    # Accessors
    # ========================================================================

    @property
    def plugins(self) -> PluginLoader:
        return self._plugins

    @property
    def registry(self) -> IdentityRegistry:
        return self._registry

    @property
    def storage(self) -> StorageAdapter:
        return self._storage

    def get_auth_provider(self, name: str) -> Optional[AuthProvider]:
        """Provider of an AUTH plugin, or None."""
        plugin = self._plugins.get(name)
        if plugin is None or plugin.kind is not PluginKind.AUTH:
            return None
        return plugin.provider

    def _require_provider(self, name: str) -> AuthProvider:
        provider = self.get_auth_provider(name)
        if provider is None:
            raise PluginNotFoundFault(name)
        if self._plugins.state(name) is not PluginState.INITIALIZED:
            raise PluginNotInitializedFault(name)
        return provider

    # ========================================================================
    # Authentication
    # ========================================================================

    async def authenticate(self, name: str, credentials: Any) -> AuthResult:
        """
        Authenticate through the named provider.

        Raises:
            PluginNotFoundFault: no auth plugin under ``name``
            PluginNotInitializedFault: plugin registered but not initialized
        """
        return await self._require_provider(name).authenticate(credentials)

    async def verify(self, name: str, token: str) -> VerifyResult:
        """Verify a session token through the named provider."""
        return await self._require_provider(name).verify(token)
