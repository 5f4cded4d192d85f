"""Base types for the gasless relay.

Relay request flow:
1. Received: raw JSON body arrives
2. Validated: required fields present, parameters decode
3. ReplayChecked: timestamp inside the replay window
4. SignatureVerified: signature matches the account's public key
5. Forwarded: call submitted through the user's smart wallet
6. Completed: receipt obtained

Any step before Forwarded may end in Rejected.
"""

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from tajiri.ledger.abi import AbiValue, encode_function_call, parse_params
from tajiri.ledger.base import InvalidContractIdError, normalize_contract_id
from tajiri.signing.base import SIGNATURE_FIELD, EncodingError

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("accountId", "smartWalletId", "targetContract", "functionName")


class RelayState(str, Enum):
    """Relay request states."""

    RECEIVED = "received"
    VALIDATED = "validated"
    REPLAY_CHECKED = "replay_checked"
    SIGNATURE_VERIFIED = "signature_verified"
    FORWARDED = "forwarded"
    COMPLETED = "completed"
    REJECTED = "rejected"


class RejectionReason(Enum):
    """Why a relay request was rejected, with its HTTP status and message."""

    MISSING_PARAMETERS = (400, "Missing required parameters")
    INVALID_PARAMETERS = (400, "Invalid request parameters")
    UNSIGNED = (401, "Request must be signed")
    EXPIRED = (401, "Request has expired")
    UNKNOWN_ACCOUNT = (401, "Could not retrieve public key for account")
    INVALID_SIGNATURE = (401, "Invalid signature")
    EXECUTION_FAILED = (500, "Transaction execution failed")
    SERVER_ERROR = (500, "Server error")

    @property
    def status_code(self) -> int:
        return self.value[0]

    @property
    def message(self) -> str:
        return self.value[1]


@dataclass(frozen=True)
class TransactionIntent:
    """A call the account wants executed through its smart wallet.

    Attributes:
        account_id: Account that signs the intent
        smart_wallet_id: Wallet contract that performs the call
        target_contract: Contract the wallet calls
        function_name: Target function name or full signature
        params: Tagged target-call parameters
        value: Payable amount in tinybars
        timestamp: Signing time in milliseconds (filled in when signing)
    """

    account_id: str
    smart_wallet_id: str
    target_contract: str
    function_name: str
    params: tuple[AbiValue, ...] = ()
    value: int = 0
    timestamp: Optional[int] = None

    def to_payload(self) -> dict[str, Any]:
        """Wire form of the intent (the object that gets signed)."""
        payload: dict[str, Any] = {
            "accountId": self.account_id,
            "smartWalletId": self.smart_wallet_id,
            "targetContract": self.target_contract,
            "functionName": self.function_name,
            "params": [p.to_wire() for p in self.params],
            "value": self.value,
        }
        if self.timestamp is not None:
            payload["timestamp"] = self.timestamp
        return payload

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "TransactionIntent":
        """Build an intent from its wire form.

        Raises:
            EncodingError: If params or contract ids do not encode
            ValueError: If value is not a non-negative integer
        """
        value = payload.get("value") or 0
        if (
            isinstance(value, bool)
            or not isinstance(value, (int, float))
            or (isinstance(value, float) and not value.is_integer())
        ):
            raise ValueError(f"value must be an integer number of tinybars, got {value!r}")
        if value < 0:
            raise ValueError("value must not be negative")

        timestamp = payload.get("timestamp")
        if (
            isinstance(timestamp, bool)
            or not isinstance(timestamp, (int, float))
            or (isinstance(timestamp, float) and not math.isfinite(timestamp))
        ):
            timestamp = None

        intent = cls(
            account_id=payload["accountId"],
            smart_wallet_id=payload["smartWalletId"],
            target_contract=payload["targetContract"],
            function_name=payload["functionName"],
            params=parse_params(payload.get("params")),
            value=int(value),
            timestamp=int(timestamp) if timestamp is not None else None,
        )
        intent.check_encodable()
        return intent

    def check_encodable(self) -> None:
        """Check the intent can be turned into a wallet call.

        Raises:
            EncodingError: If a contract id or parameter cannot be encoded
        """
        for name, contract_id in (
            ("smartWalletId", self.smart_wallet_id),
            ("targetContract", self.target_contract),
        ):
            try:
                normalize_contract_id(contract_id)
            except InvalidContractIdError:
                raise EncodingError(f"{name} is not a valid contract id: {contract_id}") from None

        try:
            encode_function_call(self.function_name, self.params)
        except InvalidContractIdError as e:
            raise EncodingError(f"Invalid address parameter: {e}") from None


@dataclass(frozen=True)
class SignedIntent:
    """An intent together with its signature.

    payload keeps the body exactly as received, since the signature covers
    those bytes and not a re-serialization of the parsed intent.
    """

    intent: TransactionIntent
    signature: str
    payload: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        body = dict(self.payload) if self.payload else self.intent.to_payload()
        body[SIGNATURE_FIELD] = self.signature
        return body


@dataclass
class RelayResult:
    """Outcome of one relay request."""

    success: bool
    state: RelayState
    transaction_id: Optional[str] = None
    status: Optional[str] = None
    reason: Optional[RejectionReason] = None
    detail: Optional[str] = None

    @property
    def status_code(self) -> int:
        if self.success or self.reason is None:
            return 200
        return self.reason.status_code

    @property
    def error(self) -> Optional[str]:
        if self.reason is None:
            return None
        if self.detail:
            return f"{self.reason.message}: {self.detail}"
        return self.reason.message

    @classmethod
    def rejected(cls, reason: RejectionReason, detail: Optional[str] = None) -> "RelayResult":
        return cls(success=False, state=RelayState.REJECTED, reason=reason, detail=detail)

    def to_response(self) -> dict[str, Any]:
        """Response body for the HTTP boundary."""
        if self.success:
            return {
                "success": True,
                "transactionId": self.transaction_id,
                "status": self.status,
            }
        return {"success": False, "error": self.error}
