"""Tests for the JSON-RPC ledger transport."""

import json
from decimal import Decimal
from unittest.mock import patch

import httpx
import pytest
from eth_account import Account
from eth_account.signers.local import LocalAccount
from web3 import Web3

from tajiri.ledger.base import (
    ConfigurationError,
    ContractRevertError,
    ExecutionError,
    FeeCeilingExceededError,
    ReceiptNotReadyError,
    TransientLedgerError,
)
from tajiri.ledger.client import LedgerClient
from tajiri.ledger.mode import LedgerMode
from tajiri.ledger.retry import EXECUTE_RETRY, QUERY_RETRY
from tajiri.ledger.transport import JsonRpcTransport

from tests.conftest import OPERATOR_PRIVATE_KEY, TX_HASH

RPC_URL = "https://rpc.test/api"
GAS_PRICE = 710 * 10**9
CONTRACT = "0x00000000000000000000000000000000000004d2"
NONCE_TOO_LOW = "Nonce too low. Provided nonce: 7, current nonce: 8"


class RpcStub:
    """Scripted JSON-RPC relay."""

    def __init__(self, results: dict):
        self.results = results
        self.requests: list[dict] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append(body)
        result = self.results[body["method"]]
        if isinstance(result, list):
            # Scripted sequence; the last entry repeats
            result = result.pop(0) if len(result) > 1 else result[0]
        if isinstance(result, httpx.Response):
            return result
        if isinstance(result, Exception):
            raise result
        if isinstance(result, dict) and "error" in result:
            return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], **result})
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    def methods(self) -> list[str]:
        return [r["method"] for r in self.requests]


def _hash(raw_transaction: str) -> str:
    return "0x" + bytes(Web3.keccak(hexstr=raw_transaction)).hex()


def _submit_stub(**results) -> RpcStub:
    scripted = {"eth_gasPrice": hex(GAS_PRICE), "eth_getTransactionCount": "0x7"}
    scripted.update(results)
    return RpcStub(scripted)


def _transport(stub: RpcStub, **kwargs) -> JsonRpcTransport:
    options = {
        "operator_account_id": "0.0.2002",
        "operator_private_key": OPERATOR_PRIVATE_KEY,
        "max_transaction_fee_hbar": Decimal("5"),
    }
    options.update(kwargs)
    return JsonRpcTransport(
        RPC_URL,
        chain_id=296,
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(stub)),
        **options,
    )


class TestSession:
    """Tests for opening and closing the session."""

    async def test_open_requires_operator(self):
        """Test a missing operator is a configuration error."""
        transport = _transport(RpcStub({}), operator_account_id=None)

        with pytest.raises(ConfigurationError):
            await transport.open()

    async def test_open_rejects_bad_key(self):
        """Test a malformed operator key is a configuration error."""
        transport = _transport(RpcStub({}), operator_private_key="0x1234")

        with pytest.raises(ConfigurationError):
            await transport.open()

    async def test_open_is_idempotent(self):
        """Test repeated open keeps the session."""
        transport = _transport(RpcStub({}))
        await transport.open()
        await transport.open()

        assert transport.is_open
        assert transport.operator_address == Account.from_key(OPERATOR_PRIVATE_KEY).address

    async def test_call_before_open(self):
        """Test calls need an open session."""
        transport = _transport(RpcStub({}))

        with pytest.raises(ConfigurationError):
            await transport.call(CONTRACT, b"", 100_000)


class TestCall:
    """Tests for read-only calls."""

    async def test_call(self):
        """Test eth_call parameters and result decoding."""
        stub = RpcStub({"eth_call": "0x" + "00" * 31 + "05"})
        transport = _transport(stub)
        await transport.open()

        result = await transport.call(CONTRACT, bytes.fromhex("18160ddd"), 100_000)

        assert result == (5).to_bytes(32, "big")
        params = stub.requests[0]["params"]
        assert params[0]["to"] == CONTRACT
        assert params[0]["data"] == "0x18160ddd"
        assert params[0]["gas"] == hex(100_000)
        assert params[1] == "latest"

    @pytest.mark.parametrize("status", [429, 502, 503])
    async def test_busy_relay_is_transient(self, status):
        """Test throttling and server errors are retryable."""
        transport = _transport(RpcStub({"eth_call": httpx.Response(status)}))
        await transport.open()

        with pytest.raises(TransientLedgerError):
            await transport.call(CONTRACT, b"", 100_000)

    async def test_connection_error_is_transient(self):
        """Test connection failures are retryable."""
        transport = _transport(RpcStub({"eth_call": httpx.ConnectError("refused")}))
        await transport.open()

        with pytest.raises(TransientLedgerError):
            await transport.call(CONTRACT, b"", 100_000)

    async def test_revert(self):
        """Test a reverted call maps to ContractRevertError."""
        stub = RpcStub({"eth_call": {"error": {"code": 3, "message": "execution reverted"}}})
        transport = _transport(stub)
        await transport.open()

        with pytest.raises(ContractRevertError):
            await transport.call(CONTRACT, b"", 100_000)


class TestSubmit:
    """Tests for signed submissions."""

    async def test_prepare(self):
        """Test the operator signs a transaction with the converted value."""
        stub = RpcStub({"eth_gasPrice": hex(GAS_PRICE), "eth_getTransactionCount": "0x7"})
        transport = _transport(stub)
        await transport.open()

        with patch.object(
            LocalAccount,
            "sign_transaction",
            autospec=True,
            side_effect=LocalAccount.sign_transaction,
        ) as signer:
            prepared = await transport.prepare(CONTRACT, b"\x01\x02", 1_000_000, value=25)

        assert stub.methods() == ["eth_gasPrice", "eth_getTransactionCount"]

        tx = signer.call_args.args[1]
        assert tx["nonce"] == 7
        assert tx["gas"] == 1_000_000
        assert tx["gasPrice"] == GAS_PRICE
        assert tx["value"] == 25 * 10**10
        assert tx["chainId"] == 296
        assert tx["data"] == "0x0102"

        assert prepared.nonce == 7
        assert prepared.raw_transaction.startswith("0x")
        assert prepared.transaction_id == _hash(prepared.raw_transaction)
        assert Account.recover_transaction(prepared.raw_transaction) == transport.operator_address

    async def test_fee_ceiling(self):
        """Test submissions above the fee ceiling are rejected before signing."""
        stub = RpcStub({"eth_gasPrice": hex(10 * 10**12)})
        transport = _transport(stub, max_transaction_fee_hbar=Decimal("5"))
        await transport.open()

        with pytest.raises(FeeCeilingExceededError):
            await transport.prepare(CONTRACT, b"", 1_000_000)

        assert stub.methods() == ["eth_gasPrice"]

    async def test_send(self):
        """Test the signed bytes are broadcast and the local hash returned."""
        stub = _submit_stub(eth_sendRawTransaction="0x" + "cd" * 32)
        transport = _transport(stub)
        await transport.open()
        prepared = await transport.prepare(CONTRACT, b"", 100_000)

        tx_hash = await transport.send(prepared)

        assert tx_hash == prepared.transaction_id
        assert stub.requests[-1]["params"] == [prepared.raw_transaction]

    async def test_send_already_known(self):
        """Test a relay that already holds the transaction resolves to its hash."""
        stub = _submit_stub(
            eth_sendRawTransaction={"error": {"code": -32000, "message": "already known"}}
        )
        transport = _transport(stub)
        await transport.open()
        prepared = await transport.prepare(CONTRACT, b"", 100_000)

        assert await transport.send(prepared) == prepared.transaction_id

    async def test_nonce_too_low_on_first_send(self):
        """Test a consumed nonce is an error unless the bytes may have been sent before."""
        stub = _submit_stub(
            eth_sendRawTransaction={"error": {"code": -32001, "message": NONCE_TOO_LOW}}
        )
        transport = _transport(stub)
        await transport.open()
        prepared = await transport.prepare(CONTRACT, b"", 100_000)

        with pytest.raises(ExecutionError):
            await transport.send(prepared)

        assert await transport.send(prepared, resend=True) == prepared.transaction_id

    async def test_send_revert_is_raised(self):
        """Test other send errors propagate."""
        stub = _submit_stub(
            eth_sendRawTransaction={"error": {"code": 3, "message": "execution reverted"}}
        )
        transport = _transport(stub)
        await transport.open()
        prepared = await transport.prepare(CONTRACT, b"", 100_000)

        with pytest.raises(ContractRevertError):
            await transport.send(prepared, resend=True)


class TestExecuteOverRpc:
    """Tests for LedgerClient.execute against the JSON-RPC transport."""

    async def test_lost_send_response_is_not_executed_twice(self, no_sleep, mode_store):
        """Test a send whose response is lost is resent with the same nonce and bytes."""
        stub = _submit_stub(
            eth_getTransactionCount=["0x7", "0x8"],
            eth_sendRawTransaction=[
                httpx.ReadTimeout("timed out"),
                {"error": {"code": -32001, "message": NONCE_TOO_LOW}},
            ],
            eth_getTransactionReceipt={"status": "0x1", "gasUsed": "0x5208", "blockNumber": "0x10"},
        )
        ledger = LedgerClient(
            _transport(stub),
            mode_store=mode_store,
            query_policy=QUERY_RETRY.with_overrides(sleep=no_sleep),
            execute_policy=EXECUTE_RETRY.with_overrides(sleep=no_sleep),
        )

        receipt = await ledger.execute("0.0.7007", "mint")

        sent = [r["params"][0] for r in stub.requests if r["method"] == "eth_sendRawTransaction"]
        assert len(sent) == 2
        assert len(set(sent)) == 1
        assert stub.methods().count("eth_getTransactionCount") == 1
        assert Account.recover_transaction(sent[0]) == ledger.transport.operator_address

        assert receipt.status == "SUCCESS"
        assert receipt.transaction_id == _hash(sent[0])
        receipt_request = [r for r in stub.requests if r["method"] == "eth_getTransactionReceipt"]
        assert receipt_request[0]["params"] == [_hash(sent[0])]
        assert ledger.mode == LedgerMode.LIVE


class TestReceipt:
    """Tests for receipt lookup."""

    async def test_not_ready(self):
        """Test a missing receipt is retryable."""
        transport = _transport(RpcStub({"eth_getTransactionReceipt": None}))
        await transport.open()

        with pytest.raises(ReceiptNotReadyError):
            await transport.get_receipt(TX_HASH)

    async def test_failed(self):
        """Test a failed transaction raises ContractRevertError."""
        transport = _transport(RpcStub({"eth_getTransactionReceipt": {"status": "0x0"}}))
        await transport.open()

        with pytest.raises(ContractRevertError):
            await transport.get_receipt(TX_HASH)

    async def test_success(self):
        """Test a successful receipt."""
        transport = _transport(
            RpcStub(
                {
                    "eth_getTransactionReceipt": {
                        "status": "0x1",
                        "gasUsed": "0x5208",
                        "blockNumber": "0x10",
                    }
                }
            )
        )
        await transport.open()

        receipt = await transport.get_receipt(TX_HASH)

        assert receipt.status == "SUCCESS"
        assert receipt.gas_used == 21000
        assert receipt.block_number == 16
        assert receipt.to_dict()["transactionId"] == TX_HASH
