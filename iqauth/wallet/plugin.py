"""
iQ-auth Wallet - Plugin
"""

from __future__ import annotations

from typing import Any, Optional

from ..auth.tokens import SessionTokenSigner
from ..config import WalletConfig, merge_config
from ..plugins.core import AuthPlugin
from ..storage import StorageAdapter
from .provider import WalletProvider


class WalletPlugin(AuthPlugin):
    """Installs the wallet signature provider."""

    name = "wallet"
    version = "0.1.0"

    def __init__(
        self,
        signer: SessionTokenSigner,
        config: Optional[WalletConfig] = None,
        storage: Optional[StorageAdapter] = None,
    ):
        super().__init__()
        self.provider = WalletProvider(signer, config=config, storage=storage)

    async def initialize(self, config: Optional[dict[str, Any]] = None) -> None:
        if config:
            self.provider.configure(merge_config(self.provider.config, config, "wallet"))

    async def destroy(self) -> None:
        for address in list(self.provider.connections):
            await self.provider.disconnect(address)
