"""
iQ-auth Plugins - Core Types

A plugin is one of two variants, told apart by the explicit ``kind``
discriminator:

- ``PluginKind.PLAIN``: lifecycle only
- ``PluginKind.AUTH``: additionally carries an authentication ``provider``
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Optional

if TYPE_CHECKING:
    from ..auth.core import AuthProvider


class PluginKind(str, Enum):
    """Plugin capability variant."""
    PLAIN = "plain"
    AUTH = "auth"


class PluginState(str, Enum):
    """Per-plugin lifecycle state."""
    REGISTERED = "registered"
    INITIALIZED = "initialized"
    DESTROYED = "destroyed"


class Plugin:
    """
    Base plugin.

    Subclasses set ``name`` and ``version`` and override ``initialize``
    and ``destroy`` as needed. The config passed to ``initialize`` is an
    opaque attribute bag, forwarded unchanged by the loader.
    """

    name: str = ""
    version: str = "0.0.0"
    kind: PluginKind = PluginKind.PLAIN

    async def initialize(self, config: Optional[dict[str, Any]] = None) -> None:
        """Prepare the plugin. Failures propagate to the loader's caller."""

    async def destroy(self) -> None:
        """Release plugin resources."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} name={self.name!r} version={self.version!r}>"


class AuthPlugin(Plugin):
    """Plugin exposing an authentication provider."""

    kind = PluginKind.AUTH
    provider: Optional[AuthProvider] = None


@dataclass
class PluginEvent:
    """Lifecycle event emitted by the loader."""
    plugin: str
    kind: str                       # registered | initialized | initialize_failed | destroyed | destroy_failed
    state: Optional[PluginState] = None
    error: Optional[BaseException] = None
    timestamp: float = field(default_factory=time.time)


PluginEventHandler = Callable[[PluginEvent], None]
