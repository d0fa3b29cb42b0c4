"""
iQ-auth Plugins - Faults

Lifecycle misuse is raised, never folded into result objects.
"""

from ..faults import AlreadyExistsFault, Fault, FaultDomain, NotFoundFault, ValidationFault


class PluginNotFoundFault(NotFoundFault):
    """No plugin registered under the name."""
    code = "PLUGIN_NOT_FOUND"
    message = "Plugin not found"

    def __init__(self, name: str, **context):
        super().__init__(message=f'Plugin "{name}" not found', plugin=name, **context)


class PluginAlreadyRegisteredFault(AlreadyExistsFault):
    """Name already taken."""
    code = "PLUGIN_ALREADY_REGISTERED"
    message = "Plugin already registered"

    def __init__(self, name: str, **context):
        super().__init__(message=f'Plugin "{name}" is already registered', plugin=name, **context)


class PluginInvalidFault(ValidationFault):
    """Plugin does not satisfy its declared kind."""
    code = "PLUGIN_INVALID"
    message = "Invalid plugin"

    def __init__(self, name: str, reason: str, **context):
        super().__init__(message=f'Plugin "{name}" is invalid: {reason}', plugin=name, **context)


class PluginNotInitializedFault(Fault):
    """Provider requested from a plugin that was never initialized."""
    domain = FaultDomain.VALIDATION
    code = "PLUGIN_NOT_INITIALIZED"
    message = "Plugin not initialized"

    def __init__(self, name: str, **context):
        super().__init__(message=f'Plugin "{name}" is not initialized', plugin=name, **context)


class PluginDestroyFault(Fault):
    """Plugin destroy hook raised. The plugin was still removed."""
    domain = FaultDomain.UNAVAILABLE
    code = "PLUGIN_DESTROY_FAILED"
    message = "Plugin destroy failed"
    retryable = False

    def __init__(self, name: str, **context):
        super().__init__(message=f'Plugin "{name}" failed to destroy', plugin=name, **context)
