"""
iQ-auth FIDO2 - Plugin
"""

from __future__ import annotations

from typing import Any, Optional

from ..auth.tokens import SessionTokenSigner
from ..config import FIDO2Config, merge_config
from ..plugins.core import AuthPlugin
from ..storage import StorageAdapter
from .core import CeremonyClient
from .provider import FIDO2Provider
from .stores import StorageChallengeStore, StorageCredentialStore


class FIDO2Plugin(AuthPlugin):
    """
    Installs the FIDO2 provider.

    Defaults: rp_name "iQ-auth", rp_id "localhost",
    origin "http://localhost:3000".

    With ``storage`` given and ``challenge_store="storage"`` in config,
    challenge and credential state live in the shared store instead of
    process memory.
    """

    name = "fido2"
    version = "0.1.0"

    def __init__(
        self,
        signer: SessionTokenSigner,
        config: Optional[FIDO2Config] = None,
        ceremony: Optional[CeremonyClient] = None,
        storage: Optional[StorageAdapter] = None,
    ):
        super().__init__()
        self.storage = storage
        self.provider = FIDO2Provider(signer, config=config or FIDO2Config(), ceremony=ceremony)
        self._use_shared_state(self.provider.config)

    async def initialize(self, config: Optional[dict[str, Any]] = None) -> None:
        """Apply FIDO2Config fields (snake_case or camelCase) from the config bag."""
        if config:
            merged = merge_config(self.provider.config, config, "fido2")
            self.provider.configure(merged)
            self._use_shared_state(merged)

    def _use_shared_state(self, config: FIDO2Config) -> None:
        if config.challenge_store != "storage" or self.storage is None:
            return
        if isinstance(self.provider.challenges, StorageChallengeStore):
            self.provider.challenges.timeout_ms = config.timeout_ms
            return
        self.provider.challenges = StorageChallengeStore(self.storage, timeout_ms=config.timeout_ms)
        self.provider.credentials = StorageCredentialStore(self.storage)

    async def destroy(self) -> None:
        await self.provider.sweep_expired_challenges()
