"""Base types for ledger access.

Ledger call flow:
1. Normalize the contract id to the network's 20-byte address
2. Encode the function call with typed parameters
3. Hand the call to a transport (read via query, write via execute)
4. Retry transient failures; surface fatal ones unchanged
5. Return a QueryResult or Receipt of the same shape in every mode
"""

import logging
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from eth_abi import decode
from eth_utils import to_checksum_address

logger = logging.getLogger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

_ENTITY_ID_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")
_EVM_ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")


class LedgerError(Exception):
    """Base exception for ledger access."""
    pass


class ConfigurationError(LedgerError):
    """Raised when the ledger client is not configured for use. Never retried."""
    pass


class InvalidContractIdError(LedgerError):
    """Raised when a contract id matches neither supported address shape."""
    pass


class BatchShapeError(LedgerError):
    """Raised when batched call arrays have different lengths."""
    pass


class TransientLedgerError(LedgerError):
    """Raised for temporary network/node conditions that are worth retrying."""
    pass


class ReceiptNotReadyError(TransientLedgerError):
    """Raised while a submitted transaction has no receipt yet."""
    pass


class ExecutionError(LedgerError):
    """Raised when the ledger rejects a call for a non-transient reason."""
    pass


class ContractRevertError(ExecutionError):
    """Raised when contract execution reverted."""
    pass


class InsufficientBalanceError(ExecutionError):
    """Raised when the paying account cannot cover value or fees."""
    pass


class InsufficientGasError(ExecutionError):
    """Raised when the gas limit is too low for the call."""
    pass


class FeeCeilingExceededError(ExecutionError):
    """Raised when a transaction would cost more than the configured ceiling."""
    pass


# Substrings of node/relay error messages and the error type they map to.
# Checked in order; first match wins.
TRANSIENT_MARKERS = (
    "BUSY",
    "CostQuery has not been loaded yet",
    "PLATFORM_TRANSACTION_NOT_CREATED",
    "PLATFORM_NOT_ACTIVE",
    "RECEIPT_NOT_FOUND",
    "network connection issues",
    "timeout",
    "timed out",
)

FATAL_MARKERS: tuple[tuple[str, type[ExecutionError]], ...] = (
    ("CONTRACT_REVERT_EXECUTED", ContractRevertError),
    ("execution reverted", ContractRevertError),
    ("INSUFFICIENT_ACCOUNT_BALANCE", InsufficientBalanceError),
    ("INSUFFICIENT_PAYER_BALANCE", InsufficientBalanceError),
    ("insufficient funds", InsufficientBalanceError),
    ("INSUFFICIENT_GAS", InsufficientGasError),
    ("out of gas", InsufficientGasError),
)


def error_from_message(message: str) -> LedgerError:
    """Map a raw node/relay error message to a typed ledger error."""
    for marker in TRANSIENT_MARKERS:
        if marker.lower() in message.lower():
            return TransientLedgerError(message)

    for marker, error_type in FATAL_MARKERS:
        if marker.lower() in message.lower():
            return error_type(message)

    return ExecutionError(message)


def describe_error(error: BaseException) -> str:
    """Format an error into a user-facing message."""
    if isinstance(error, TransientLedgerError):
        return "Network is busy. Please try again in a moment."
    if isinstance(error, InvalidContractIdError):
        return "Invalid contract ID format. Please check your configuration."
    if isinstance(error, ContractRevertError):
        return "The contract operation was reverted. Please check your inputs."
    if isinstance(error, InsufficientGasError):
        return "Not enough gas provided for this operation."
    if isinstance(error, InsufficientBalanceError):
        return "Insufficient account balance to perform this operation."
    if isinstance(error, FeeCeilingExceededError):
        return "Transaction fee exceeds the configured maximum."
    return str(error) or "An unknown error occurred"


def normalize_contract_id(contract_id: str) -> str:
    """Normalize a contract id to a checksummed 20-byte address.

    Accepts the numeric triplet form (shard.realm.num), mapped to the
    long-zero address (4-byte shard, 8-byte realm, 8-byte num), and the
    0x-prefixed 20-byte hex form.

    Raises:
        InvalidContractIdError: If neither form parses
    """
    if not isinstance(contract_id, str):
        raise InvalidContractIdError(f"Contract id must be a string, got {type(contract_id).__name__}")

    value = contract_id.strip()

    match = _ENTITY_ID_RE.match(value)
    if match:
        shard, realm, num = (int(part) for part in match.groups())
        if shard >= 2**32 or realm >= 2**64 or num >= 2**64:
            raise InvalidContractIdError(f"Contract id out of range: {contract_id}")
        raw = shard.to_bytes(4, "big") + realm.to_bytes(8, "big") + num.to_bytes(8, "big")
        return to_checksum_address("0x" + raw.hex())

    if _EVM_ADDRESS_RE.match(value):
        return to_checksum_address(value)

    raise InvalidContractIdError(f"Invalid contract id: {contract_id}")


@dataclass
class QueryResult:
    """Raw result of a contract query.

    Attributes:
        data: ABI-encoded return data
        simulated: True when produced by degraded mode instead of the network
    """
    data: bytes
    simulated: bool = False

    def word(self, index: int) -> bytes:
        """Get the 32-byte word at index (zero-padded past the end)."""
        chunk = self.data[index * 32:(index + 1) * 32]
        return chunk.ljust(32, b"\x00")

    def get_uint256(self, index: int) -> int:
        return int.from_bytes(self.word(index), "big")

    def get_address(self, index: int) -> str:
        return to_checksum_address("0x" + self.word(index)[12:].hex())

    def get_bool(self, index: int) -> bool:
        return self.get_uint256(index) != 0

    def decode(self, types: list[str]) -> tuple:
        """Decode the return data with ABI types."""
        return decode(types, self.data)


@dataclass
class Receipt:
    """Receipt of an executed transaction.

    Attributes:
        transaction_id: Transaction hash
        status: SUCCESS, or SIMULATED in degraded mode
        gas_used: Gas consumed (None when unknown)
        block_number: Inclusion block (None when unknown)
        simulated: True when produced by degraded mode instead of the network
    """
    transaction_id: str
    status: str
    gas_used: Optional[int] = None
    block_number: Optional[int] = None
    simulated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "transactionId": self.transaction_id,
            "status": self.status,
            "gasUsed": self.gas_used,
            "blockNumber": self.block_number,
            "simulated": self.simulated,
        }


@dataclass(frozen=True)
class PreparedTransaction:
    """A signed transaction that has not been broadcast yet.

    Attributes:
        transaction_id: Hash of the signed bytes
        raw_transaction: 0x-prefixed signed transaction
        nonce: Operator nonce the transaction consumes
    """
    transaction_id: str
    raw_transaction: str
    nonce: int


class LedgerTransport(ABC):
    """Abstract base class for ledger network transports.

    A transport owns the network session and the operator credentials. It
    performs single attempts only; retries live in the ledger client.
    """

    @abstractmethod
    async def open(self) -> None:
        """Open the network session.

        Raises:
            ConfigurationError: If operator credentials are missing
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Close the network session."""
        pass

    @abstractmethod
    async def call(self, address: str, data: bytes, gas: int) -> bytes:
        """Run a read-only contract call and return the raw result."""
        pass

    @abstractmethod
    async def prepare(
        self, address: str, data: bytes, gas: int, value: int = 0
    ) -> PreparedTransaction:
        """Build and sign a transaction with the operator key without sending it.

        The nonce is fixed here, so resending the result can never execute
        the call twice.

        Args:
            value: Payable amount in tinybars

        Raises:
            FeeCeilingExceededError: If the fee would exceed the ceiling
        """
        pass

    @abstractmethod
    async def send(self, prepared: PreparedTransaction, resend: bool = False) -> str:
        """Broadcast a prepared transaction and return its hash.

        Args:
            prepared: Output of prepare()
            resend: True when an earlier send of the same bytes may have
                reached the network
        """
        pass

    @abstractmethod
    async def get_receipt(self, transaction_id: str) -> Receipt:
        """Fetch a receipt.

        Raises:
            ReceiptNotReadyError: If the transaction has no receipt yet
            ContractRevertError: If the transaction failed
        """
        pass
