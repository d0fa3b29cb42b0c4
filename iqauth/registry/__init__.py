"""
iQ-auth Registry - Multi-identity registry.
"""

from .core import (
    DeactivationResult,
    Identity,
    IdentityType,
    ProofVerifier,
    VerificationResult,
)
from .faults import (
    IdentityFieldInvalidFault,
    IdentityNotFoundFault,
    IdentityOwnerChangeFault,
    IdentityRowCorruptFault,
)
from .identity import IdentityRegistry

__all__ = [
    "DeactivationResult",
    "Identity",
    "IdentityType",
    "ProofVerifier",
    "VerificationResult",
    "IdentityFieldInvalidFault",
    "IdentityNotFoundFault",
    "IdentityOwnerChangeFault",
    "IdentityRowCorruptFault",
    "IdentityRegistry",
]
