"""JSON-RPC ledger transport.

Talks to the ledger through its EVM-compatible JSON-RPC relay over one
long-lived httpx session. Writes are signed with the relay operator key,
so the operator pays the network fee.

Unit conventions on the JSON-RPC relay:
- 1 HBAR = 10^8 tinybars = 10^18 weibars
- Payable values are taken in tinybars and sent as weibars
"""

import logging
from decimal import Decimal
from typing import Any, Optional

import httpx
from eth_account import Account
from web3 import Web3

from tajiri.ledger.base import (
    ConfigurationError,
    ContractRevertError,
    ExecutionError,
    FeeCeilingExceededError,
    LedgerTransport,
    PreparedTransaction,
    Receipt,
    ReceiptNotReadyError,
    TransientLedgerError,
    error_from_message,
)
from tajiri.signing.base import InvalidKeyError, parse_private_key

logger = logging.getLogger(__name__)

WEIBARS_PER_TINYBAR = 10**10
WEIBARS_PER_HBAR = 10**18

# Relay replies meaning the exact signed bytes are already in the mempool
KNOWN_TRANSACTION_MARKERS = (
    "already known",
    "known transaction",
    "already imported",
)

# Replies meaning the nonce was consumed; only ours can have consumed it on a resend
NONCE_CONSUMED_MARKERS = (
    "nonce too low",
    "nonce has already been used",
)


def _already_submitted(message: str, resend: bool) -> bool:
    message = message.lower()
    if any(marker in message for marker in KNOWN_TRANSACTION_MARKERS):
        return True
    return resend and any(marker in message for marker in NONCE_CONSUMED_MARKERS)


class JsonRpcTransport(LedgerTransport):
    """Ledger transport backed by a JSON-RPC relay."""

    def __init__(
        self,
        rpc_url: str,
        chain_id: int,
        operator_account_id: Optional[str] = None,
        operator_private_key: Optional[str] = None,
        max_transaction_fee_hbar: Decimal = Decimal("5"),
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the transport.

        Args:
            rpc_url: JSON-RPC relay endpoint
            chain_id: EVM chain id used for transaction signing
            operator_account_id: Account paying for relayed transactions
            operator_private_key: Hex secp256k1 key of the operator account
            max_transaction_fee_hbar: Fee ceiling per transaction
            timeout: Per-request timeout in seconds
            http_client: Pre-built client (the transport will not close it)
        """
        self.rpc_url = rpc_url
        self.chain_id = chain_id
        self.operator_account_id = operator_account_id
        self.max_transaction_fee_hbar = max_transaction_fee_hbar
        self.timeout = timeout
        self._operator_private_key = operator_private_key
        self._client = http_client
        self._owns_client = http_client is None
        self._account = None
        self._request_id = 0

    @property
    def is_open(self) -> bool:
        return self._account is not None and self._client is not None

    @property
    def operator_address(self) -> Optional[str]:
        return self._account.address if self._account else None

    @property
    def max_fee_weibars(self) -> int:
        return int(self.max_transaction_fee_hbar * WEIBARS_PER_HBAR)

    async def open(self) -> None:
        if self.is_open:
            return

        if not self.operator_account_id or not self._operator_private_key:
            raise ConfigurationError(
                "Ledger operator is not configured (OPERATOR_ACCOUNT_ID and OPERATOR_PRIVATE_KEY)"
            )

        try:
            key = parse_private_key(self._operator_private_key)
        except InvalidKeyError as e:
            raise ConfigurationError(f"Operator private key is invalid: {e}") from None

        self._account = Account.from_key(key.to_bytes())

        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True

        logger.info(
            f"Ledger session opened: {self.rpc_url} (chain {self.chain_id}, "
            f"operator {self.operator_account_id})"
        )

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
        self._account = None
        logger.info("Ledger session closed")

    async def _rpc(self, method: str, params: list) -> Any:
        """Perform one JSON-RPC request and return its result field."""
        if not self.is_open:
            raise ConfigurationError("Ledger session is not open")

        self._request_id += 1
        try:
            response = await self._client.post(
                self.rpc_url,
                json={
                    "jsonrpc": "2.0",
                    "method": method,
                    "params": params,
                    "id": self._request_id,
                },
            )
        except httpx.TransportError as e:
            raise TransientLedgerError(f"{method} failed due to network connection issues: {e}") from e

        if response.status_code == 429 or response.status_code >= 500:
            raise TransientLedgerError(f"{method}: relay BUSY (HTTP {response.status_code})")
        if response.status_code != 200:
            raise ExecutionError(f"{method}: relay returned HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError:
            raise TransientLedgerError(f"{method}: relay returned a non-JSON response") from None

        if data.get("error"):
            error = data["error"]
            if isinstance(error, dict):
                message = error.get("message") or str(error)
                if error.get("data"):
                    message = f"{message}: {error['data']}"
            else:
                message = str(error)
            raise error_from_message(message)

        return data.get("result")

    async def call(self, address: str, data: bytes, gas: int) -> bytes:
        result = await self._rpc(
            "eth_call",
            [
                {
                    "from": self.operator_address,
                    "to": address,
                    "data": "0x" + data.hex(),
                    "gas": hex(gas),
                },
                "latest",
            ],
        )
        if not result:
            return b""
        return bytes.fromhex(result[2:] if result.startswith("0x") else result)

    async def prepare(
        self, address: str, data: bytes, gas: int, value: int = 0
    ) -> PreparedTransaction:
        gas_price = int(await self._rpc("eth_gasPrice", []), 16)

        fee = gas * gas_price
        if fee > self.max_fee_weibars:
            raise FeeCeilingExceededError(
                f"Maximum fee {fee / WEIBARS_PER_HBAR:.8f} HBAR exceeds ceiling "
                f"{self.max_transaction_fee_hbar} HBAR"
            )

        nonce = int(
            await self._rpc("eth_getTransactionCount", [self.operator_address, "pending"]),
            16,
        )

        tx = {
            "nonce": nonce,
            "gasPrice": gas_price,
            "gas": gas,
            "to": address,
            "value": value * WEIBARS_PER_TINYBAR,
            "data": "0x" + data.hex(),
            "chainId": self.chain_id,
        }
        signed = self._account.sign_transaction(tx)
        raw = bytes(signed.raw_transaction)

        prepared = PreparedTransaction(
            transaction_id="0x" + bytes(Web3.keccak(raw)).hex(),
            raw_transaction="0x" + raw.hex(),
            nonce=nonce,
        )
        logger.debug(
            f"Prepared transaction {prepared.transaction_id} to {address} "
            f"(nonce {nonce}, gas {gas}, value {value} tinybars)"
        )
        return prepared

    async def send(self, prepared: PreparedTransaction, resend: bool = False) -> str:
        try:
            tx_hash = await self._rpc("eth_sendRawTransaction", [prepared.raw_transaction])
        except ExecutionError as e:
            if _already_submitted(str(e), resend):
                logger.warning(
                    f"Transaction {prepared.transaction_id} was already submitted ({e})"
                )
                return prepared.transaction_id
            raise

        if tx_hash and tx_hash.lower() != prepared.transaction_id.lower():
            logger.warning(
                f"Relay reported hash {tx_hash} for transaction {prepared.transaction_id}"
            )

        logger.info(f"Submitted transaction {prepared.transaction_id} (nonce {prepared.nonce})")
        return prepared.transaction_id

    async def get_receipt(self, transaction_id: str) -> Receipt:
        result = await self._rpc("eth_getTransactionReceipt", [transaction_id])

        if result is None:
            raise ReceiptNotReadyError(f"RECEIPT_NOT_FOUND for {transaction_id}")

        if int(result.get("status", "0x0"), 16) != 1:
            raise ContractRevertError(
                f"CONTRACT_REVERT_EXECUTED: transaction {transaction_id} reverted"
            )

        gas_used = result.get("gasUsed")
        block_number = result.get("blockNumber")
        return Receipt(
            transaction_id=transaction_id,
            status="SUCCESS",
            gas_used=int(gas_used, 16) if gas_used else None,
            block_number=int(block_number, 16) if block_number else None,
        )
