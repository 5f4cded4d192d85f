"""Smart wallet call forwarding.

Every user transaction reaches its destination through the user's smart
wallet contract. The wallet surface used here:

    execute(address target, bytes4 selector, bytes args) payable
    executeBatch(address[] targets, uint256[] values, bytes[] argsList) payable
    addGuardian(address) / removeGuardian(address)
    initiateRecovery(address) / approveRecovery(address) / cancelRecovery()
    getGuardians() -> address[]
    getRecoveryStatus() -> (bool inProgress, address initiator, address proposedOwner)

The forwarder holds no state; the wallet contract does.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from tajiri.ledger.abi import (
    AbiValue,
    Address,
    Bytes,
    FixedBytes,
    List,
    UInt256,
    encode_arguments,
    function_selector,
    function_signature,
)
from tajiri.ledger.base import ZERO_ADDRESS, BatchShapeError, Receipt
from tajiri.ledger.client import LedgerClient

logger = logging.getLogger(__name__)

EXECUTE_SIGNATURE = "execute(address,bytes4,bytes)"
EXECUTE_BATCH_SIGNATURE = "executeBatch(address[],uint256[],bytes[])"


@dataclass
class RecoveryStatus:
    """Guardian recovery state of a wallet."""

    in_progress: bool
    initiator: Optional[str] = None
    proposed_owner: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "inProgress": self.in_progress,
            "initiator": self.initiator,
            "proposedOwner": self.proposed_owner,
        }


class SmartWalletForwarder:
    """Wraps target-contract calls in smart wallet execute calls."""

    def __init__(self, ledger: LedgerClient, gas_limit: int = 1_000_000):
        self.ledger = ledger
        self.gas_limit = gas_limit

    async def forward_single(
        self,
        wallet_id: str,
        target: str,
        function_name: str,
        params: Sequence[AbiValue] = (),
        value: int = 0,
        encoded_args: Optional[bytes] = None,
    ) -> Receipt:
        """Forward one call through the wallet's execute().

        Args:
            wallet_id: Smart wallet contract id
            target: Target contract id or address
            function_name: Target function name or full signature
            params: Tagged target-call parameters
            value: Payable amount in tinybars (attached only when positive)
            encoded_args: Pre-encoded arguments (overrides params)
        """
        params = tuple(params)
        signature = function_signature(function_name, params)
        selector = function_selector(signature)
        args = encoded_args if encoded_args is not None else encode_arguments(params)

        logger.info(f"Forwarding {signature} to {target} through wallet {wallet_id}")

        return await self.ledger.execute(
            wallet_id,
            EXECUTE_SIGNATURE,
            (Address(target), FixedBytes(selector, 4), Bytes(args)),
            gas=self.gas_limit,
            value=value if value > 0 else 0,
        )

    async def forward_batch(
        self,
        wallet_id: str,
        targets: Sequence[str],
        values: Sequence[int],
        encoded_args_list: Sequence[bytes],
    ) -> Receipt:
        """Forward several calls through the wallet's executeBatch().

        Each entry of encoded_args_list is the full call data (selector
        followed by arguments) for the matching target. The payable amount
        is the sum of values.

        Raises:
            BatchShapeError: If the three sequences differ in length
        """
        if not len(targets) == len(values) == len(encoded_args_list):
            raise BatchShapeError(
                f"Batch arrays differ in length: {len(targets)} targets, "
                f"{len(values)} values, {len(encoded_args_list)} call data entries"
            )
        if any(v < 0 for v in values):
            raise BatchShapeError("Batch values must not be negative")

        logger.info(f"Forwarding batch of {len(targets)} calls through wallet {wallet_id}")

        return await self.ledger.execute(
            wallet_id,
            EXECUTE_BATCH_SIGNATURE,
            (
                List("address", tuple(Address(t) for t in targets)),
                List("uint256", tuple(UInt256(v) for v in values)),
                List("bytes", tuple(Bytes(a) for a in encoded_args_list)),
            ),
            gas=self.gas_limit,
            value=sum(values),
        )

    # ======================
    # Guardians and recovery
    # ======================

    async def add_guardian(self, wallet_id: str, guardian: str) -> Receipt:
        logger.info(f"Adding guardian {guardian} to wallet {wallet_id}")
        return await self.ledger.execute(wallet_id, "addGuardian", (Address(guardian),))

    async def remove_guardian(self, wallet_id: str, guardian: str) -> Receipt:
        logger.info(f"Removing guardian {guardian} from wallet {wallet_id}")
        return await self.ledger.execute(wallet_id, "removeGuardian", (Address(guardian),))

    async def initiate_recovery(self, wallet_id: str, new_owner: str) -> Receipt:
        logger.info(f"Initiating recovery of wallet {wallet_id} to {new_owner}")
        return await self.ledger.execute(wallet_id, "initiateRecovery", (Address(new_owner),))

    async def approve_recovery(self, wallet_id: str, new_owner: str) -> Receipt:
        logger.info(f"Approving recovery of wallet {wallet_id} to {new_owner}")
        return await self.ledger.execute(wallet_id, "approveRecovery", (Address(new_owner),))

    async def cancel_recovery(self, wallet_id: str) -> Receipt:
        logger.info(f"Cancelling recovery of wallet {wallet_id}")
        return await self.ledger.execute(wallet_id, "cancelRecovery")

    async def get_guardians(self, wallet_id: str) -> list[str]:
        result = await self.ledger.query(wallet_id, "getGuardians")
        if result.simulated:
            return []
        (guardians,) = result.decode(["address[]"])
        return [str(g) for g in guardians]

    async def get_recovery_status(self, wallet_id: str) -> RecoveryStatus:
        result = await self.ledger.query(wallet_id, "getRecoveryStatus")
        in_progress = result.get_bool(0)
        initiator = result.get_address(1)
        proposed_owner = result.get_address(2)
        return RecoveryStatus(
            in_progress=in_progress,
            initiator=None if initiator == ZERO_ADDRESS else initiator,
            proposed_owner=None if proposed_owner == ZERO_ADDRESS else proposed_owner,
        )
