"""
iQ-auth Registry - Faults
"""

from ..faults import NotFoundFault, StorageFault, ValidationFault


class IdentityNotFoundFault(NotFoundFault):
    """Identity id is absent."""
    code = "IDENTITY_NOT_FOUND"
    message = "Identity not found"
    public_message = "Identity not found"

    def __init__(self, identity_id: str, **context):
        super().__init__(
            message=f"Identity '{identity_id}' not found",
            identity_id=identity_id,
            **context,
        )


class IdentityOwnerChangeFault(ValidationFault):
    """Attempt to move an identity to another user."""
    code = "IDENTITY_OWNER_IMMUTABLE"
    message = "Identity owner cannot change"

    def __init__(self, identity_id: str, user_id: str, **context):
        super().__init__(identity_id=identity_id, requested_user_id=user_id, **context)


class IdentityFieldInvalidFault(ValidationFault):
    """Unknown or malformed identity field."""
    code = "IDENTITY_FIELD_INVALID"
    message = "Invalid identity field"

    def __init__(self, field_name: str, reason: str, **context):
        super().__init__(
            message=f"Invalid identity field '{field_name}': {reason}",
            field=field_name,
            **context,
        )


class IdentityRowCorruptFault(StorageFault):
    """Stored identity row cannot be decoded."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            code="IDENTITY_ROW_CORRUPT",
            message=f"Stored identity row '{key}' is corrupt: {reason}",
            metadata={"key": key},
        )
