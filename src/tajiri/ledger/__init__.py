"""Ledger access.

Provides:
- LedgerClient: query/execute with retries and degraded mode
- JsonRpcTransport: network session paid for by the relay operator
- Tagged call parameters (Address, UInt256, Bool, Str, Bytes, FixedBytes, List)
"""

from tajiri.ledger.abi import (
    Address,
    Bool,
    Bytes,
    FixedBytes,
    List,
    Str,
    UInt256,
    encode_function_call,
    parse_params,
)
from tajiri.ledger.base import (
    BatchShapeError,
    ConfigurationError,
    ContractRevertError,
    ExecutionError,
    InvalidContractIdError,
    LedgerError,
    LedgerTransport,
    PreparedTransaction,
    QueryResult,
    Receipt,
    TransientLedgerError,
    describe_error,
    normalize_contract_id,
)
from tajiri.ledger.client import LedgerClient
from tajiri.ledger.mode import InMemoryModeStore, LedgerMode, ModeStore
from tajiri.ledger.retry import EXECUTE_RETRY, QUERY_RETRY, RetryPolicy
from tajiri.ledger.transport import JsonRpcTransport

__all__ = [
    "Address",
    "Bool",
    "Bytes",
    "FixedBytes",
    "List",
    "Str",
    "UInt256",
    "encode_function_call",
    "parse_params",
    "BatchShapeError",
    "ConfigurationError",
    "ContractRevertError",
    "ExecutionError",
    "InvalidContractIdError",
    "LedgerError",
    "LedgerTransport",
    "PreparedTransaction",
    "QueryResult",
    "Receipt",
    "TransientLedgerError",
    "describe_error",
    "normalize_contract_id",
    "LedgerClient",
    "InMemoryModeStore",
    "LedgerMode",
    "ModeStore",
    "EXECUTE_RETRY",
    "QUERY_RETRY",
    "RetryPolicy",
    "JsonRpcTransport",
]
