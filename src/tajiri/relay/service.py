"""Gasless relay service.

Checks a signed intent and, once it is authentic and fresh, forwards it
through the account's smart wallet with the relay operator paying the
network fee. Steps run strictly in order; the first failing step decides
the rejection:

    missing fields      -> 400 Missing required parameters
    bad params / value  -> 400 Invalid request parameters: <reason>
    no signature        -> 401 Request must be signed
    outside the window  -> 401 Request has expired
    lookup failure      -> 500 Server error: <message>
    unknown account     -> 401 Could not retrieve public key for account
    bad signature       -> 401 Invalid signature
    ledger failure      -> 500 Transaction execution failed: <message>
    anything else       -> 500 Server error: <message>

Verification and replay checks behave the same in degraded mode.
"""

import logging
from typing import Any, Callable, Optional

from tajiri.ledger.base import ConfigurationError, LedgerError, describe_error
from tajiri.relay.base import (
    REQUIRED_FIELDS,
    RejectionReason,
    RelayResult,
    RelayState,
    SignedIntent,
    TransactionIntent,
)
from tajiri.relay.directory import PublicKeyDirectory
from tajiri.signing.base import SIGNATURE_FIELD, EncodingError, InvalidKeyError
from tajiri.signing.local import now_ms, verify_payload
from tajiri.signing.replay import ReplayGuard
from tajiri.wallet.forwarder import SmartWalletForwarder

logger = logging.getLogger(__name__)


class RelayService:
    """Verifies signed intents and forwards them through smart wallets."""

    def __init__(
        self,
        forwarder: SmartWalletForwarder,
        directory: PublicKeyDirectory,
        replay_guard: Optional[ReplayGuard] = None,
        clock: Callable[[], int] = now_ms,
    ):
        """Initialize the relay.

        Args:
            forwarder: Smart wallet forwarder bound to the operator's ledger client
            directory: Account public key directory
            replay_guard: Replay window (5 minutes by default)
            clock: Current time in milliseconds
        """
        self.forwarder = forwarder
        self.directory = directory
        self.replay_guard = replay_guard or ReplayGuard()
        self.clock = clock

    def _reject(
        self,
        state: RelayState,
        reason: RejectionReason,
        account_id: Any = None,
        detail: Optional[str] = None,
    ) -> RelayResult:
        logger.warning(
            f"Relay request rejected at {state.value} (account {account_id}): "
            f"{reason.message}{': ' + detail if detail else ''}"
        )
        return RelayResult.rejected(reason, detail)

    async def relay(self, body: Any) -> RelayResult:
        """Process one relay request body."""
        state = RelayState.RECEIVED

        if not isinstance(body, dict) or any(not body.get(f) for f in REQUIRED_FIELDS):
            return self._reject(state, RejectionReason.MISSING_PARAMETERS)

        account_id = body["accountId"]

        for name in REQUIRED_FIELDS:
            if not isinstance(body[name], str):
                return self._reject(
                    state, RejectionReason.INVALID_PARAMETERS, account_id, f"{name} must be a string"
                )

        try:
            intent = TransactionIntent.from_payload(body)
        except (EncodingError, ValueError) as e:
            return self._reject(state, RejectionReason.INVALID_PARAMETERS, account_id, str(e))

        state = RelayState.VALIDATED

        signature = body.get(SIGNATURE_FIELD)
        if not signature:
            return self._reject(state, RejectionReason.UNSIGNED, account_id)

        signed = SignedIntent(intent=intent, signature=signature, payload=body)

        if not self.replay_guard.check(intent.timestamp or 0, self.clock()):
            return self._reject(state, RejectionReason.EXPIRED, account_id)

        state = RelayState.REPLAY_CHECKED

        try:
            public_key = await self.directory.get_public_key(account_id)
        except Exception as e:
            logger.exception(f"Public key lookup for {account_id} failed in {self.directory.name}")
            return RelayResult.rejected(RejectionReason.SERVER_ERROR, str(e) or type(e).__name__)

        if not public_key:
            return self._reject(state, RejectionReason.UNKNOWN_ACCOUNT, account_id)

        try:
            valid = verify_payload(signed.payload, signed.signature, public_key)
        except InvalidKeyError as e:
            logger.error(f"Public key for {account_id} is malformed: {e}")
            return self._reject(state, RejectionReason.SERVER_ERROR, account_id, str(e))

        if not valid:
            return self._reject(state, RejectionReason.INVALID_SIGNATURE, account_id)

        logger.debug(f"Relay request for {account_id} reached {RelayState.SIGNATURE_VERIFIED.value}")
        logger.info(
            f"Relaying {intent.function_name} on {intent.target_contract} for {account_id} "
            f"via wallet {intent.smart_wallet_id}"
        )

        return await self._forward(intent)

    async def _forward(self, intent: TransactionIntent) -> RelayResult:
        try:
            receipt = await self.forwarder.forward_single(
                intent.smart_wallet_id,
                intent.target_contract,
                intent.function_name,
                intent.params,
                value=intent.value,
            )
        except ConfigurationError as e:
            logger.error(f"Relay is misconfigured: {e}")
            return RelayResult.rejected(RejectionReason.SERVER_ERROR, str(e))
        except (LedgerError, EncodingError) as e:
            logger.error(f"Relayed transaction for {intent.account_id} failed: {e}")
            return RelayResult.rejected(RejectionReason.EXECUTION_FAILED, describe_error(e))
        except Exception as e:
            logger.exception(f"Unexpected relay error for {intent.account_id}")
            return RelayResult.rejected(RejectionReason.SERVER_ERROR, str(e) or type(e).__name__)

        logger.info(
            f"Relayed transaction {receipt.transaction_id} for {intent.account_id}: {receipt.status}"
        )
        return RelayResult(
            success=True,
            state=RelayState.COMPLETED,
            transaction_id=receipt.transaction_id,
            status=receipt.status,
        )
