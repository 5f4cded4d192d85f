"""Pytest configuration and fixtures."""

import os
from unittest.mock import AsyncMock

import pytest

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"
os.environ["ADMIN_TOKEN"] = ""
os.environ["OPERATOR_ACCOUNT_ID"] = ""
os.environ["OPERATOR_PRIVATE_KEY"] = ""

from tajiri.config import get_settings
from tajiri.ledger.base import LedgerTransport, PreparedTransaction, Receipt
from tajiri.ledger.client import LedgerClient
from tajiri.ledger.mode import InMemoryModeStore
from tajiri.ledger.retry import EXECUTE_RETRY, QUERY_RETRY
from tajiri.signing.base import public_key_hex

# Fixed test keys (never used on a real network)
USER_PRIVATE_KEY = "0x" + "11" * 32
OTHER_PRIVATE_KEY = "0x" + "22" * 32
OPERATOR_PRIVATE_KEY = "0x" + "33" * 32

USER_ACCOUNT_ID = "0.0.1001"
WALLET_ID = "0.0.5005"
TARGET_CONTRACT = "0.0.7007"

TX_HASH = "0x" + "ab" * 32


@pytest.fixture(autouse=True)
def clear_settings_cache():
    """Re-read settings for every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def user_private_key() -> str:
    return USER_PRIVATE_KEY


@pytest.fixture
def user_public_key() -> str:
    return public_key_hex(USER_PRIVATE_KEY)


@pytest.fixture
def sleeps() -> list[float]:
    """Delays requested by retry policies under test."""
    return []


@pytest.fixture
def no_sleep(sleeps):
    """Awaitable sleep that records the delay instead of waiting."""

    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def transport() -> AsyncMock:
    """Mock ledger transport that succeeds by default."""
    mock = AsyncMock(spec=LedgerTransport)
    mock.call.return_value = bytes(32)
    mock.prepare.return_value = PreparedTransaction(
        transaction_id=TX_HASH, raw_transaction="0x" + "f8" * 8, nonce=7
    )
    mock.send.return_value = TX_HASH
    mock.get_receipt.return_value = Receipt(transaction_id=TX_HASH, status="SUCCESS", gas_used=21000)
    return mock


@pytest.fixture
def mode_store() -> InMemoryModeStore:
    return InMemoryModeStore()


@pytest.fixture
def ledger(transport, mode_store, no_sleep) -> LedgerClient:
    """Ledger client over the mock transport with instant retries."""
    return LedgerClient(
        transport,
        mode_store=mode_store,
        query_policy=QUERY_RETRY.with_overrides(sleep=no_sleep),
        execute_policy=EXECUTE_RETRY.with_overrides(sleep=no_sleep),
        failure_threshold=2,
    )
