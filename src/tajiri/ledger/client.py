"""Resilient ledger client.

Composes a transport, retry policies and the mode store:

- query: encode, eth_call under the query preset
- execute: encode, sign once, send under the execute preset (a retry
  resends the same signed bytes), then wait for the receipt under the
  query preset (a pending receipt never resubmits)
- degraded mode: both short-circuit to placeholders, same return types

The client is constructed explicitly and owned by whichever service
composes the system; open()/close() bound the network session.
"""

import logging
from typing import Optional

from tajiri.ledger.abi import AbiValue, encode_function_call, function_signature
from tajiri.ledger.base import (
    LedgerTransport,
    PreparedTransaction,
    QueryResult,
    Receipt,
    normalize_contract_id,
)
from tajiri.ledger.dry_run import placeholder_query_result, placeholder_receipt
from tajiri.ledger.mode import DegradedModeTracker, InMemoryModeStore, LedgerMode, ModeStore
from tajiri.ledger.retry import EXECUTE_RETRY, QUERY_RETRY, RetryPolicy

logger = logging.getLogger(__name__)

DEFAULT_QUERY_GAS = 100_000
DEFAULT_EXECUTE_GAS = 1_000_000


class LedgerClient:
    """Query and execute contract functions with retries and degraded mode."""

    def __init__(
        self,
        transport: LedgerTransport,
        mode_store: Optional[ModeStore] = None,
        query_policy: RetryPolicy = QUERY_RETRY,
        execute_policy: RetryPolicy = EXECUTE_RETRY,
        failure_threshold: int = 3,
        query_gas: int = DEFAULT_QUERY_GAS,
        default_gas: int = DEFAULT_EXECUTE_GAS,
    ):
        self.transport = transport
        self.mode_store = mode_store or InMemoryModeStore()
        self.query_policy = query_policy
        self.execute_policy = execute_policy
        self.query_gas = query_gas
        self.default_gas = default_gas
        self._tracker = DegradedModeTracker(self.mode_store, failure_threshold)

    async def open(self) -> None:
        """Open the ledger session (also done on first use).

        Raises:
            ConfigurationError: If the operator is not configured
        """
        await self.transport.open()

    async def close(self) -> None:
        await self.transport.close()

    async def __aenter__(self) -> "LedgerClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    @property
    def mode(self) -> LedgerMode:
        return self._tracker.mode

    @property
    def is_degraded(self) -> bool:
        return self._tracker.is_degraded

    def reset_mode(self) -> None:
        """Leave degraded mode and resume live calls."""
        self._tracker.reset()

    async def query(
        self,
        contract_id: str,
        function_name: str,
        params: Optional[tuple[AbiValue, ...]] = None,
        gas: Optional[int] = None,
    ) -> QueryResult:
        """Call a read-only contract function.

        Args:
            contract_id: Contract id (0.0.x) or 0x address
            function_name: Function name or full signature
            params: Tagged call parameters
            gas: Gas limit (query default if unset)

        Raises:
            ConfigurationError: If the operator is not configured
            InvalidContractIdError: If the contract id does not parse
            EncodingError: If a parameter cannot be encoded
            TransientLedgerError: When retries are exhausted
            ExecutionError: On revert and other fatal node errors
        """
        params = tuple(params or ())
        address = normalize_contract_id(contract_id)
        data = encode_function_call(function_name, params)
        operation = f"query {contract_id}.{function_signature(function_name, params)}"
        await self.transport.open()

        if self.is_degraded:
            logger.info(f"Degraded mode: returning placeholder for {operation}")
            return placeholder_query_result()

        async def attempt() -> bytes:
            return await self.transport.call(address, data, gas or self.query_gas)

        raw = await self.query_policy.run(
            attempt, operation=operation, on_exhausted=self._tracker.record_exhausted
        )
        self._tracker.record_success()
        return QueryResult(data=raw)

    async def execute(
        self,
        contract_id: str,
        function_name: str,
        params: Optional[tuple[AbiValue, ...]] = None,
        gas: Optional[int] = None,
        value: int = 0,
    ) -> Receipt:
        """Execute a contract function as the operator account.

        Args:
            contract_id: Contract id (0.0.x) or 0x address
            function_name: Function name or full signature
            params: Tagged call parameters
            gas: Gas limit (execute default if unset)
            value: Payable amount in tinybars

        Raises:
            ConfigurationError: If the operator is not configured
            InvalidContractIdError: If the contract id does not parse
            EncodingError: If a parameter cannot be encoded
            TransientLedgerError: When retries are exhausted
            ExecutionError: On revert, fee ceiling and other fatal errors
        """
        if value < 0:
            raise ValueError("value must not be negative")

        params = tuple(params or ())
        address = normalize_contract_id(contract_id)
        data = encode_function_call(function_name, params)
        operation = f"execute {contract_id}.{function_signature(function_name, params)}"
        await self.transport.open()

        if self.is_degraded:
            logger.info(f"Degraded mode: returning simulated receipt for {operation}")
            return placeholder_receipt()

        async def prepare() -> PreparedTransaction:
            return await self.transport.prepare(address, data, gas or self.default_gas, value)

        prepared = await self.execute_policy.run(
            prepare, operation=operation, on_exhausted=self._tracker.record_exhausted
        )

        # Signed once; retries resend the same bytes under the same nonce
        sends = 0

        async def send() -> str:
            nonlocal sends
            sends += 1
            return await self.transport.send(prepared, resend=sends > 1)

        tx_id = await self.execute_policy.run(
            send, operation=operation, on_exhausted=self._tracker.record_exhausted
        )

        async def fetch_receipt() -> Receipt:
            return await self.transport.get_receipt(tx_id)

        receipt = await self.query_policy.run(
            fetch_receipt,
            operation=f"receipt {tx_id}",
            on_exhausted=self._tracker.record_exhausted,
        )
        self._tracker.record_success()
        logger.info(f"Transaction {tx_id} completed with status {receipt.status}")
        return receipt
