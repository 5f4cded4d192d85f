"""Smart wallet lookup and creation through the wallet factory contract."""

import logging
import re
from typing import Optional

from web3 import Web3

from tajiri.ledger.abi import Address
from tajiri.ledger.base import ZERO_ADDRESS, ConfigurationError
from tajiri.ledger.client import LedgerClient

logger = logging.getLogger(__name__)

_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


def owner_address(account_id: str) -> str:
    """Map an account identifier to the owner address used by the factory.

    EVM addresses pass through. Any other identifier (ledger account ids,
    third-party login ids) maps to the first 20 bytes of its keccak-256 hash.
    """
    if _EVM_ADDRESS_RE.match(account_id):
        return Web3.to_checksum_address(account_id)
    digest = Web3.keccak(text=account_id)
    return Web3.to_checksum_address("0x" + bytes(digest[:20]).hex())


class WalletRegistry:
    """Finds or creates the smart wallet owned by an account."""

    def __init__(self, ledger: LedgerClient, factory_id: Optional[str] = None):
        self.ledger = ledger
        self.factory_id = factory_id

    def _require_factory(self) -> str:
        if not self.factory_id:
            raise ConfigurationError("Smart wallet factory is not configured (SMART_WALLET_FACTORY_ID)")
        return self.factory_id

    async def find_wallet(self, account_id: str) -> Optional[str]:
        """Return the wallet address owned by account_id, or None."""
        factory = self._require_factory()
        owner = owner_address(account_id)

        result = await self.ledger.query(factory, "getWalletForOwner", (Address(owner),))
        if result.simulated:
            return None

        wallet = result.get_address(0)
        if wallet == ZERO_ADDRESS:
            return None
        return wallet

    async def create_wallet(self, account_id: str) -> Optional[str]:
        """Create a wallet for account_id unless one exists.

        Returns:
            The wallet address, or None if the factory has not registered
            it yet (e.g. in degraded mode)
        """
        existing = await self.find_wallet(account_id)
        if existing:
            logger.info(f"Smart wallet already exists for {account_id}: {existing}")
            return existing

        factory = self._require_factory()
        owner = owner_address(account_id)
        receipt = await self.ledger.execute(factory, "createWallet", (Address(owner),))
        logger.info(f"Created smart wallet for {account_id} in {receipt.transaction_id}")

        if receipt.simulated:
            return None
        return await self.find_wallet(account_id)
