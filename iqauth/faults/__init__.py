"""
iQ-auth Faults - Structured error handling.

Lifecycle misuse is raised; authentication outcomes are returned inside
result objects with the fault attached for logging hooks.
"""

from .core import (
    Fault,
    FaultDomain,
    Severity,
    DOMAIN_DEFAULTS,
    is_fault,
)

from .domains import (
    NotFoundFault,
    AlreadyExistsFault,
    ValidationFault,
    SecurityFault,
    UnavailableFault,
    StorageFault,
    ConfigFault,
    ConfigMissingFault,
    ConfigInvalidFault,
)

__all__ = [
    "Fault",
    "FaultDomain",
    "Severity",
    "DOMAIN_DEFAULTS",
    "is_fault",
    "NotFoundFault",
    "AlreadyExistsFault",
    "ValidationFault",
    "SecurityFault",
    "UnavailableFault",
    "StorageFault",
    "ConfigFault",
    "ConfigMissingFault",
    "ConfigInvalidFault",
]
