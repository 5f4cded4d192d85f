"""Client-side gasless submission.

The account signs its intent locally and posts it to the relay; the
private key never leaves this process.
"""

import logging
from typing import Any, Optional, Sequence

import httpx

from tajiri.ledger.abi import AbiValue
from tajiri.relay.base import TransactionIntent
from tajiri.signing.local import attach_signature, now_ms

logger = logging.getLogger(__name__)


class RelayRequestError(Exception):
    """Raised when the relay rejects a request."""

    def __init__(self, status_code: int, error: str):
        super().__init__(f"Relayer error ({status_code}): {error}")
        self.status_code = status_code
        self.error = error


class GaslessClient:
    """Signs transaction intents and submits them to a relay."""

    def __init__(
        self,
        base_url: str,
        private_key: str,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._private_key = private_key
        self._client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "GaslessClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    def build_request(self, intent: TransactionIntent) -> dict[str, Any]:
        """Signed request body for an intent (timestamped now if unset)."""
        return attach_signature(intent.to_payload(), self._private_key)

    async def execute_gasless(
        self,
        account_id: str,
        smart_wallet_id: Optional[str],
        target_contract: str,
        function_name: str,
        params: Sequence[AbiValue] = (),
        value: int = 0,
    ) -> dict[str, Any]:
        """Sign and submit a call to be executed through the smart wallet.

        Returns:
            Relay response body ({"success": True, "transactionId", "status"})

        Raises:
            ValueError: If no smart wallet is given
            RelayRequestError: If the relay rejects the request
        """
        if not smart_wallet_id:
            raise ValueError("No smart wallet ID provided")

        intent = TransactionIntent(
            account_id=account_id,
            smart_wallet_id=smart_wallet_id,
            target_contract=target_contract,
            function_name=function_name,
            params=tuple(params),
            value=value,
            timestamp=now_ms(),
        )
        return await self.submit(intent)

    async def submit(self, intent: TransactionIntent) -> dict[str, Any]:
        body = self.build_request(intent)
        url = f"{self.base_url}/relayer"

        logger.info(f"Submitting gasless {intent.function_name} for {intent.account_id} to {url}")

        response = await self._get_client().post(url, json=body)

        try:
            data = response.json()
        except ValueError:
            raise RelayRequestError(response.status_code, response.text or "Invalid relay response") from None

        if not isinstance(data, dict) or not data.get("success"):
            error = data.get("error") if isinstance(data, dict) else None
            raise RelayRequestError(response.status_code, error or "Unknown relay error")

        return data
