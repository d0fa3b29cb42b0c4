"""
iQ-auth Plugins - Plugin Loader

Owns the installed plugins and sequences their lifecycle:

    Unregistered -> Registered -> Initialized -> Destroyed

One instance per name. Destroy order follows registration order.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from .core import AuthPlugin, Plugin, PluginEvent, PluginEventHandler, PluginKind, PluginState
from .faults import (
    PluginAlreadyRegisteredFault,
    PluginDestroyFault,
    PluginInvalidFault,
    PluginNotFoundFault,
)


class PluginLoader:
    """
    Plugin lifecycle manager.

    Example:
        ```python
        loader = PluginLoader()
        await loader.register(FIDO2Plugin(signer))
        await loader.initialize("fido2", {"rp_id": "example.com"})
        provider = loader.get("fido2").provider
        ```
    """

    def __init__(self):
        self._plugins: dict[str, Plugin] = {}
        self._states: dict[str, PluginState] = {}
        self.event_handlers: list[PluginEventHandler] = []
        self.logger = logging.getLogger("iqauth.plugins")

    # ========================================================================
    # Events
    # ========================================================================

    def on_event(self, handler: PluginEventHandler) -> None:
        """Register lifecycle event handler."""
        self.event_handlers.append(handler)

    def _emit_event(self, event: PluginEvent) -> None:
        """Emit event to all handlers."""
        for handler in self.event_handlers:
            try:
                handler(event)
            except Exception as e:
                self.logger.error(f"Event handler error: {e}")

    # ========================================================================
    # Lifecycle
    # ========================================================================

    async def register(self, plugin: Plugin) -> None:
        """
        Register a plugin.

        Raises:
            PluginAlreadyRegisteredFault: name is taken
            PluginInvalidFault: no name, or an AUTH plugin without provider
        """
        if not plugin.name:
            raise PluginInvalidFault(repr(plugin), "missing name")
        if plugin.name in self._plugins:
            raise PluginAlreadyRegisteredFault(plugin.name)
        if plugin.kind is PluginKind.AUTH and getattr(plugin, "provider", None) is None:
            raise PluginInvalidFault(plugin.name, "auth plugin has no provider")

        self._plugins[plugin.name] = plugin
        self._states[plugin.name] = PluginState.REGISTERED
        self.logger.info(f"Registered plugin {plugin.name} v{plugin.version}")
        self._emit_event(PluginEvent(plugin.name, "registered", PluginState.REGISTERED))

    async def initialize(self, name: str, config: Optional[dict[str, Any]] = None) -> None:
        """
        Initialize a registered plugin.

        The config bag is passed through unchanged. Plugin failures
        propagate and leave the state untouched.

        Raises:
            PluginNotFoundFault: plugin not registered
        """
        plugin = self._plugins.get(name)
        if plugin is None:
            raise PluginNotFoundFault(name)

        try:
            await plugin.initialize(config if config is not None else {})
        except Exception as e:
            self.logger.error(f"Plugin {name} failed to initialize: {e}")
            self._emit_event(PluginEvent(name, "initialize_failed", self._states[name], error=e))
            raise

        self._states[name] = PluginState.INITIALIZED
        self.logger.info(f"Initialized plugin {name}")
        self._emit_event(PluginEvent(name, "initialized", PluginState.INITIALIZED))

    async def unregister(self, name: str) -> None:
        """
        Destroy and remove a plugin.

        The plugin is removed even if ``destroy`` raises; in that case a
        PluginDestroyFault chained to the original error is raised after
        removal.

        Raises:
            PluginNotFoundFault: plugin not registered
            PluginDestroyFault: plugin's destroy hook failed
        """
        plugin = self._plugins.get(name)
        if plugin is None:
            raise PluginNotFoundFault(name)

        error = await self._destroy(plugin)

        del self._plugins[name]
        del self._states[name]

        if error is not None:
            raise PluginDestroyFault(name) from error

    async def destroy_all(self) -> list[str]:
        """
        Destroy every plugin in registration order, then clear the table.

        Failures are logged and do not stop the sweep.

        Returns:
            Names of plugins whose destroy hook raised
        """
        failed = []
        for plugin in list(self._plugins.values()):
            if await self._destroy(plugin) is not None:
                failed.append(plugin.name)

        self._plugins.clear()
        self._states.clear()
        return failed

    async def _destroy(self, plugin: Plugin) -> Optional[Exception]:
        try:
            await plugin.destroy()
        except Exception as e:
            self.logger.error(f"Plugin {plugin.name} failed to destroy: {e}")
            self._emit_event(PluginEvent(plugin.name, "destroy_failed", PluginState.DESTROYED, error=e))
            return e

        self.logger.info(f"Destroyed plugin {plugin.name}")
        self._emit_event(PluginEvent(plugin.name, "destroyed", PluginState.DESTROYED))
        return None

    # ========================================================================
    # Queries
    # ========================================================================

    def get(self, name: str) -> Optional[Plugin]:
        return self._plugins.get(name)

    def get_all(self) -> list[Plugin]:
        return list(self._plugins.values())

    def get_auth_plugins(self) -> list[AuthPlugin]:
        """Plugins of kind AUTH, in registration order."""
        return [p for p in self._plugins.values() if p.kind is PluginKind.AUTH]

    def state(self, name: str) -> Optional[PluginState]:
        """Lifecycle state, or None if not registered."""
        return self._states.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)
