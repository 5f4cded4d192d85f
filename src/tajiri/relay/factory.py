"""Relay composition.

Builds the ledger client, key directory, relay service and wallet
registry from settings. The app owns the instances; nothing here is a
hidden global beyond the optional default used by the process entry point.
"""

import logging
from typing import Optional

from tajiri.config import Settings, get_settings
from tajiri.crypto import decrypt_secret
from tajiri.ledger.base import ConfigurationError
from tajiri.ledger.client import LedgerClient
from tajiri.ledger.mode import InMemoryModeStore, ModeStore
from tajiri.ledger.transport import JsonRpcTransport
from tajiri.relay.directory import MirrorNodeKeyDirectory, PublicKeyDirectory, StaticKeyDirectory
from tajiri.relay.service import RelayService
from tajiri.signing.base import InvalidKeyError, public_key_hex
from tajiri.signing.replay import ReplayGuard
from tajiri.wallet.forwarder import SmartWalletForwarder
from tajiri.wallet.registry import WalletRegistry

logger = logging.getLogger(__name__)


def _operator_private_key(settings: Settings) -> Optional[str]:
    if not settings.operator_private_key:
        return None
    try:
        return decrypt_secret(settings.operator_private_key, settings.master_key)
    except ValueError as e:
        raise ConfigurationError(f"Operator private key cannot be used: {e}") from None


def create_ledger_client(
    settings: Optional[Settings] = None,
    mode_store: Optional[ModeStore] = None,
) -> LedgerClient:
    """Create a ledger client for the configured network.

    The client is not opened here; missing operator credentials surface as
    ConfigurationError on open() or first use.
    """
    settings = settings or get_settings()

    transport = JsonRpcTransport(
        rpc_url=settings.rpc_url,
        chain_id=settings.chain_id,
        operator_account_id=settings.operator_account_id,
        operator_private_key=_operator_private_key(settings),
        max_transaction_fee_hbar=settings.max_transaction_fee,
        timeout=settings.request_timeout_seconds,
    )

    logger.info(
        f"Ledger client for {settings.ledger_network} "
        f"(fee ceiling {settings.max_transaction_fee} HBAR)"
    )

    return LedgerClient(
        transport,
        mode_store=mode_store or InMemoryModeStore(),
        failure_threshold=settings.degraded_failure_threshold,
        query_gas=settings.query_gas_limit,
        default_gas=settings.relay_gas_limit,
    )


def create_key_directory(settings: Optional[Settings] = None) -> PublicKeyDirectory:
    """Create the configured account public key directory."""
    settings = settings or get_settings()

    if settings.key_directory == "mirror":
        logger.info(f"Resolving account keys from mirror node {settings.mirror_url}")
        return MirrorNodeKeyDirectory(settings.mirror_url, timeout=settings.request_timeout_seconds)

    keys = dict(settings.account_keys)

    # The operator can always relay for itself
    private_key = _operator_private_key(settings)
    if settings.operator_account_id and private_key:
        try:
            keys.setdefault(settings.operator_account_id, public_key_hex(private_key))
        except InvalidKeyError as e:
            logger.error(f"Operator key is invalid, not registering it: {e}")

    logger.info(f"Static key directory with {len(keys)} accounts")
    return StaticKeyDirectory(keys)


def create_relay_service(
    ledger: LedgerClient,
    directory: PublicKeyDirectory,
    settings: Optional[Settings] = None,
) -> RelayService:
    """Create the relay service on top of a ledger client."""
    settings = settings or get_settings()

    forwarder = SmartWalletForwarder(ledger, gas_limit=settings.relay_gas_limit)
    guard = ReplayGuard(
        max_age_ms=settings.relay_max_request_age_ms,
        max_skew_ms=settings.relay_max_clock_skew_ms,
    )
    return RelayService(forwarder, directory, replay_guard=guard)


def create_wallet_registry(
    ledger: LedgerClient,
    settings: Optional[Settings] = None,
) -> WalletRegistry:
    """Create the smart wallet registry for the configured factory contract."""
    settings = settings or get_settings()

    if settings.smart_wallet_factory_id:
        logger.info(f"Smart wallet factory {settings.smart_wallet_factory_id}")
    else:
        logger.warning("SMART_WALLET_FACTORY_ID not set; wallet lookup and creation are unavailable")

    return WalletRegistry(ledger, factory_id=settings.smart_wallet_factory_id)
