"""
iQ-auth Plugins - Plugin lifecycle management.
"""

from .core import (
    AuthPlugin,
    Plugin,
    PluginEvent,
    PluginKind,
    PluginState,
)
from .faults import (
    PluginAlreadyRegisteredFault,
    PluginDestroyFault,
    PluginInvalidFault,
    PluginNotFoundFault,
    PluginNotInitializedFault,
)
from .loader import PluginLoader

__all__ = [
    "AuthPlugin",
    "Plugin",
    "PluginEvent",
    "PluginKind",
    "PluginState",
    "PluginAlreadyRegisteredFault",
    "PluginDestroyFault",
    "PluginInvalidFault",
    "PluginNotFoundFault",
    "PluginNotInitializedFault",
    "PluginLoader",
]
