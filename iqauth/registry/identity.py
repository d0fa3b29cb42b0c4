"""
iQ-auth Registry - Identity Registry

Owns the mapping from a user to the set of identities they registered.

Storage layout:
- ``identity:row:<id>`` holds the primary row (Identity.to_dict())
- ``identity:user:<user_id>`` holds the ordered list of that user's ids

The user index stores ids only. Reads resolve each id to its current
primary row, so the index can never serve a stale copy of an identity.

Mutations for one user are serialized by a per-user lock held
across both writes (row + index). That gives read-your-writes within a
process; atomicity across processes is the store's concern.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import fields, replace
from datetime import timedelta
from typing import Any, Optional

from ..faults import Fault
from ..storage import KeyedLock, StorageAdapter
from .core import (
    DeactivationResult,
    Identity,
    IdentityType,
    ProofVerifier,
    VerificationResult,
    utcnow,
)
from .faults import (
    IdentityFieldInvalidFault,
    IdentityNotFoundFault,
    IdentityOwnerChangeFault,
    IdentityRowCorruptFault,
)

logger = logging.getLogger("iqauth.registry")

ROW_PREFIX = "identity:row:"
USER_INDEX_PREFIX = "identity:user:"

# Fields update() silently refuses to touch
_PRESERVED_FIELDS = frozenset({"id", "created_at", "updated_at"})
_IDENTITY_FIELDS = frozenset(f.name for f in fields(Identity))


class IdentityRegistry:
    """
    Multi-identity registry backed by a key/value store.

    Example:
        ```python
        registry = IdentityRegistry(MemoryStorage())
        identity = await registry.register(
            type=IdentityType.WALLET,
            user_id="u1",
            provider="metamask",
            data={"address": "0xabc"},
        )
        result = await registry.verify_identity(identity.id, {})
        ```
    """

    def __init__(self, storage: StorageAdapter):
        self.storage = storage
        self._user_locks = KeyedLock()

    # ========================================================================
    # Keys & Locks
    # ========================================================================

    @staticmethod
    def _row_key(identity_id: str) -> str:
        return f"{ROW_PREFIX}{identity_id}"

    @staticmethod
    def _index_key(user_id: str) -> str:
        return f"{USER_INDEX_PREFIX}{user_id}"

    @staticmethod
    def _next_timestamp(previous):
        """Current time, forced strictly past ``previous``."""
        now = utcnow()
        if previous is not None and now <= previous:
            now = previous + timedelta(microseconds=1)
        return now

    async def _new_id(self) -> str:
        while True:
            identity_id = f"idn_{secrets.token_urlsafe(16)}"
            if not await self.storage.exists(self._row_key(identity_id)):
                return identity_id

    # ========================================================================
    # Row I/O
    # ========================================================================

    async def _read(self, identity_id: str) -> Optional[Identity]:
        key = self._row_key(identity_id)
        row = await self.storage.get(key)
        if row is None:
            return None
        try:
            return Identity.from_dict(row)
        except (KeyError, TypeError, ValueError) as e:
            raise IdentityRowCorruptFault(key, str(e)) from e

    async def _write(self, identity: Identity) -> None:
        await self.storage.set(self._row_key(identity.id), identity.to_dict())

    async def _read_index(self, user_id: str) -> list[str]:
        return list(await self.storage.get(self._index_key(user_id)) or [])

    async def _write_index(self, user_id: str, ids: list[str]) -> None:
        if ids:
            await self.storage.set(self._index_key(user_id), ids)
        else:
            await self.storage.delete(self._index_key(user_id))

    # ========================================================================
    # Mutations
    # ========================================================================

    async def register(
        self,
        type: IdentityType | str,
        user_id: str,
        provider: str,
        data: Optional[dict[str, Any]] = None,
        verified: bool = False,
    ) -> Identity:
        """
        Register a new identity for a user.

        Assigns a fresh unique id and stamps created_at == updated_at.
        Only store failures propagate.
        """
        if not user_id:
            raise IdentityFieldInvalidFault("user_id", "must be a non-empty string")
        identity_type = self._coerce_type(type)

        async with self._user_locks.hold(user_id):
            now = utcnow()
            identity = Identity(
                id=await self._new_id(),
                type=identity_type,
                user_id=user_id,
                provider=provider,
                data=dict(data or {}),
                verified=verified,
                created_at=now,
                updated_at=now,
            )

            await self._write(identity)

            ids = await self._read_index(user_id)
            if identity.id not in ids:
                ids.append(identity.id)
            await self._write_index(user_id, ids)

        logger.info(f"Registered {identity_type.value} identity {identity.id} for user {user_id}")
        return identity

    async def update(self, identity_id: str, changes: dict[str, Any]) -> Identity:
        """
        Merge changes into an identity.

        ``id``, ``created_at`` and ``updated_at`` in ``changes`` are ignored.
        Moving an identity to another user is rejected.

        Raises:
            IdentityNotFoundFault: identity is absent
            IdentityOwnerChangeFault: ``user_id`` differs from the owner
        """
        current = await self._read(identity_id)
        if current is None:
            raise IdentityNotFoundFault(identity_id)

        async with self._user_locks.hold(current.user_id):
            current = await self._read(identity_id)
            if current is None:
                raise IdentityNotFoundFault(identity_id)

            updated = self._merge(current, changes)
            await self._write(updated)

        logger.debug(f"Updated identity {identity_id}")
        return updated

    def _merge(self, current: Identity, changes: dict[str, Any]) -> Identity:
        merged: dict[str, Any] = {}
        for key, value in changes.items():
            if key in _PRESERVED_FIELDS:
                continue
            if key not in _IDENTITY_FIELDS:
                raise IdentityFieldInvalidFault(key, "unknown field")
            if key == "user_id" and value != current.user_id:
                raise IdentityOwnerChangeFault(current.id, value)
            if key == "type":
                value = self._coerce_type(value)
            elif key == "data":
                value = dict(value or {})
            elif key == "verified":
                value = bool(value)
            merged[key] = value

        return replace(
            current,
            **merged,
            updated_at=self._next_timestamp(current.updated_at),
        )

    async def delete(self, identity_id: str) -> bool:
        """
        Remove the primary row and prune the owner's index.

        Returns False if the identity did not exist.
        """
        current = await self._read(identity_id)
        if current is None:
            return False

        async with self._user_locks.hold(current.user_id):
            removed = await self.storage.delete(self._row_key(identity_id))

            ids = await self._read_index(current.user_id)
            if identity_id in ids:
                ids.remove(identity_id)
                await self._write_index(current.user_id, ids)

        if removed:
            logger.info(f"Deleted identity {identity_id} for user {current.user_id}")
        return removed

    async def verify_identity(
        self,
        identity_id: str,
        proof: Any,
        verifier: Optional[ProofVerifier] = None,
    ) -> VerificationResult:
        """
        Mark an identity as verified.

        The registry does not inspect ``proof`` itself. When a ``verifier``
        is given (typically from the provider that owns the identity) it
        must accept the proof first; a rejection leaves the identity
        untouched.
        """
        identity = await self._read(identity_id)
        if identity is None:
            return VerificationResult(verified=False, error="Identity not found")

        if verifier is not None:
            try:
                accepted = await verifier(identity, proof)
            except Fault as fault:
                logger.warning(f"Proof rejected for identity {identity_id}: {fault}")
                return VerificationResult(verified=False, error=fault.public_message)

            if not accepted:
                logger.warning(f"Proof rejected for identity {identity_id}")
                return VerificationResult(verified=False, error="Verification failed")

        try:
            updated = await self.update(identity_id, {"verified": True})
        except IdentityNotFoundFault:
            return VerificationResult(verified=False, error="Identity not found")

        logger.info(f"Verified identity {identity_id}")
        return VerificationResult(verified=True, identity=updated)

    async def deactivate(self, identity_id: str, reason: str) -> DeactivationResult:
        """
        Soft-delete an identity.

        Sets ``verified=False`` and annotates ``data`` with the reason and
        time. Other data attributes are kept and the row stays queryable.
        """
        identity = await self._read(identity_id)
        if identity is None:
            return DeactivationResult(success=False, error="Identity not found")

        data = dict(identity.data)
        data.update(
            deactivated=True,
            deactivated_at=utcnow().isoformat(),
            deactivation_reason=reason,
        )

        try:
            updated = await self.update(identity_id, {"verified": False, "data": data})
        except IdentityNotFoundFault:
            return DeactivationResult(success=False, error="Identity not found")

        logger.info(f"Deactivated identity {identity_id}: {reason}")
        return DeactivationResult(success=True, identity=updated)

    # ========================================================================
    # Queries
    # ========================================================================

    async def get(self, identity_id: str) -> Optional[Identity]:
        """Get identity by id."""
        return await self._read(identity_id)

    async def find_by_user(self, user_id: str) -> list[Identity]:
        """
        All identities of a user.

        Callers must not depend on ordering.
        """
        identities = []
        for identity_id in await self._read_index(user_id):
            identity = await self._read(identity_id)
            if identity is not None:
                identities.append(identity)
        return identities

    async def find_by_type(self, user_id: str, type: IdentityType | str) -> list[Identity]:
        identity_type = self._coerce_type(type)
        return [i for i in await self.find_by_user(user_id) if i.type == identity_type]

    async def find_by_provider(self, user_id: str, provider: str) -> Optional[Identity]:
        """First identity of the user registered through ``provider``."""
        for identity in await self.find_by_user(user_id):
            if identity.provider == provider:
                return identity
        return None

    async def has_verified_identity(self, user_id: str, type: IdentityType | str) -> bool:
        return any(i.verified for i in await self.find_by_type(user_id, type))

    @staticmethod
    def _coerce_type(value: IdentityType | str) -> IdentityType:
        try:
            return IdentityType(value)
        except ValueError:
            raise IdentityFieldInvalidFault("type", f"unknown identity type {value!r}") from None
