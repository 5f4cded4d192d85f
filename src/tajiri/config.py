"""Application configuration using pydantic-settings.

Holds the ledger network selection, the relay operator credentials that pay
network fees, per-network fee ceilings and the relay's replay window.
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LedgerNetwork = Literal["mainnet", "testnet", "previewnet", "local"]

# Fee ceilings in HBAR
DEFAULT_MAX_TRANSACTION_FEE: dict[str, Decimal] = {
    "mainnet": Decimal("5"),
    "testnet": Decimal("5"),
    "previewnet": Decimal("5"),
    "local": Decimal("10"),
}

DEFAULT_JSON_RPC_URLS: dict[str, str] = {
    "mainnet": "https://mainnet.hashio.io/api",
    "testnet": "https://testnet.hashio.io/api",
    "previewnet": "https://previewnet.hashio.io/api",
    "local": "http://localhost:7546",
}

DEFAULT_MIRROR_NODE_URLS: dict[str, str] = {
    "mainnet": "https://mainnet-public.mirrornode.hedera.com",
    "testnet": "https://testnet.mirrornode.hedera.com",
    "previewnet": "https://previewnet.mirrornode.hedera.com",
    "local": "http://localhost:5551",
}

CHAIN_IDS: dict[str, int] = {
    "mainnet": 295,
    "testnet": 296,
    "previewnet": 297,
    "local": 298,
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ======================
    # API
    # ======================
    api_host: str = Field(default="0.0.0.0", description="API server host")
    api_port: int = Field(default=8000, description="API server port")

    # ======================
    # Environment
    # ======================
    environment: str = Field(default="development", description="Runtime environment")
    debug: bool = Field(default=True, description="Enable debug mode")

    # ======================
    # Admin
    # ======================
    admin_token: str = Field(default="", description="Admin API token for protected endpoints")

    # ======================
    # Ledger network
    # ======================
    ledger_network: LedgerNetwork = Field(default="testnet", description="Ledger network selector")
    json_rpc_url: Optional[str] = Field(default=None, description="JSON-RPC relay URL override")
    mirror_node_url: Optional[str] = Field(default=None, description="Mirror node URL override")
    request_timeout_seconds: float = Field(default=15.0, description="Per-request network timeout")

    # ======================
    # Relay operator (pays network fees)
    # ======================
    operator_account_id: Optional[str] = Field(default=None, description="Operator account id (0.0.x)")
    operator_private_key: Optional[str] = Field(
        default=None, description="Operator secp256k1 private key (hex, optionally Fernet-encrypted)"
    )
    max_transaction_fee_hbar: Optional[Decimal] = Field(
        default=None, description="Fee ceiling per transaction in HBAR (network default if unset)"
    )
    relay_gas_limit: int = Field(default=1_000_000, description="Gas limit for relayed wallet calls")
    query_gas_limit: int = Field(default=100_000, description="Gas limit for contract queries")

    # ======================
    # Relay policy
    # ======================
    relay_max_request_age_ms: int = Field(default=5 * 60 * 1000, description="Replay window")
    relay_max_clock_skew_ms: int = Field(
        default=5_000, description="Tolerated client clock skew for future timestamps"
    )
    degraded_failure_threshold: int = Field(
        default=3, description="Consecutive exhausted calls before degraded mode engages"
    )

    # ======================
    # Account key directory
    # ======================
    key_directory: Literal["static", "mirror"] = Field(
        default="static", description="Where account public keys are resolved"
    )
    relay_account_keys: str = Field(
        default="", description="Comma-separated accountId=publicKeyHex pairs"
    )

    # ======================
    # Contracts
    # ======================
    smart_wallet_factory_id: Optional[str] = Field(
        default=None, description="Smart wallet factory contract id"
    )

    # ======================
    # Encryption
    # ======================
    master_key: Optional[str] = Field(
        default=None, description="Master encryption key for the operator key (Fernet key)"
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment.lower() == "production"

    @property
    def has_operator(self) -> bool:
        """Check if relay operator credentials are configured."""
        return bool(self.operator_account_id and self.operator_private_key)

    @property
    def chain_id(self) -> int:
        """EVM chain id of the selected network."""
        return CHAIN_IDS[self.ledger_network]

    @property
    def rpc_url(self) -> str:
        """JSON-RPC endpoint for the selected network."""
        return self.json_rpc_url or DEFAULT_JSON_RPC_URLS[self.ledger_network]

    @property
    def mirror_url(self) -> str:
        """Mirror node REST endpoint for the selected network."""
        return self.mirror_node_url or DEFAULT_MIRROR_NODE_URLS[self.ledger_network]

    @property
    def max_transaction_fee(self) -> Decimal:
        """Fee ceiling in HBAR for the selected network."""
        if self.max_transaction_fee_hbar is not None:
            return self.max_transaction_fee_hbar
        return DEFAULT_MAX_TRANSACTION_FEE[self.ledger_network]

    @property
    def account_keys(self) -> dict[str, str]:
        """Parse relay_account_keys into an account id -> public key map."""
        keys: dict[str, str] = {}
        for pair in self.relay_account_keys.split(","):
            if "=" not in pair:
                continue
            account_id, public_key = pair.split("=", 1)
            if account_id.strip() and public_key.strip():
                keys[account_id.strip()] = public_key.strip()
        return keys

    def get_safe_dict(self) -> dict:
        """Return settings dict with secrets redacted."""
        return {
            "environment": self.environment,
            "debug": self.debug,
            "api_host": self.api_host,
            "api_port": self.api_port,
            "ledger": {
                "network": self.ledger_network,
                "chain_id": self.chain_id,
                "rpc": self.rpc_url,
                "mirror": self.mirror_url,
                "max_transaction_fee_hbar": str(self.max_transaction_fee),
            },
            "operator": {
                "account_id": self.operator_account_id or "(not set)",
                "private_key": "***" if self.operator_private_key else "(not set)",
            },
            "relay": {
                "max_request_age_ms": self.relay_max_request_age_ms,
                "max_clock_skew_ms": self.relay_max_clock_skew_ms,
                "gas_limit": self.relay_gas_limit,
                "key_directory": self.key_directory,
                "known_accounts": len(self.account_keys),
                "wallet_factory": self.smart_wallet_factory_id or "(not set)",
            },
            "admin_token": "***" if self.admin_token else "(not set)",
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
