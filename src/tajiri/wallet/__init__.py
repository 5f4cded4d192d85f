"""Smart wallet forwarding and lookup."""

from tajiri.wallet.forwarder import RecoveryStatus, SmartWalletForwarder
from tajiri.wallet.registry import WalletRegistry, owner_address

__all__ = [
    "RecoveryStatus",
    "SmartWalletForwarder",
    "WalletRegistry",
    "owner_address",
]
