"""Account public key directories.

The relay resolves the public key of the account that claims to have
signed a request. Lookups return None for unknown accounts; the relay
turns that into a rejection.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

SUPPORTED_KEY_TYPE = "ECDSA_SECP256K1"


class PublicKeyDirectory(ABC):
    """Abstract base class for account public key lookup."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Directory name."""
        pass

    @abstractmethod
    async def get_public_key(self, account_id: str) -> Optional[str]:
        """Get the hex public key for an account, or None if unknown."""
        pass

    async def close(self) -> None:
        pass


class StaticKeyDirectory(PublicKeyDirectory):
    """Directory backed by a fixed account -> key map."""

    def __init__(self, keys: Optional[dict[str, str]] = None):
        self._keys = dict(keys or {})

    @property
    def name(self) -> str:
        return "static"

    def register(self, account_id: str, public_key: str) -> None:
        self._keys[account_id] = public_key

    async def get_public_key(self, account_id: str) -> Optional[str]:
        return self._keys.get(account_id)


class MirrorNodeKeyDirectory(PublicKeyDirectory):
    """Directory that reads account keys from the mirror node REST API.

    Only ECDSA(secp256k1) keys can verify relay signatures; accounts with
    other key types resolve to None.
    """

    def __init__(
        self,
        mirror_url: str,
        timeout: float = 15.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.mirror_url = mirror_url.rstrip("/")
        self.timeout = timeout
        self._client = http_client
        self._owns_client = http_client is None

    @property
    def name(self) -> str:
        return "mirror"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
            self._owns_client = True
        return self._client

    async def get_public_key(self, account_id: str) -> Optional[str]:
        url = f"{self.mirror_url}/api/v1/accounts/{account_id}"

        try:
            response = await self._get_client().get(url)
        except httpx.HTTPError as e:
            logger.error(f"Mirror node lookup failed for {account_id}: {e}")
            return None

        if response.status_code == 404:
            return None
        if response.status_code != 200:
            logger.warning(f"Mirror node returned HTTP {response.status_code} for {account_id}")
            return None

        try:
            data = response.json()
        except ValueError:
            logger.error(f"Mirror node returned a non-JSON response for {account_id}")
            return None

        key = data.get("key") if isinstance(data, dict) else None
        if not isinstance(key, dict):
            logger.warning(f"Mirror node response for {account_id} has no key object")
            return None

        if key.get("_type") != SUPPORTED_KEY_TYPE:
            logger.info(f"Account {account_id} has unsupported key type {key.get('_type')}")
            return None

        public_key = key.get("key")
        return public_key if isinstance(public_key, str) and public_key else None

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
