"""Gasless meta-transaction relay."""

from tajiri.relay.base import (
    RejectionReason,
    RelayResult,
    RelayState,
    SignedIntent,
    TransactionIntent,
)
from tajiri.relay.client import GaslessClient, RelayRequestError
from tajiri.relay.directory import MirrorNodeKeyDirectory, PublicKeyDirectory, StaticKeyDirectory
from tajiri.relay.service import RelayService

__all__ = [
    "RejectionReason",
    "RelayResult",
    "RelayState",
    "SignedIntent",
    "TransactionIntent",
    "GaslessClient",
    "RelayRequestError",
    "MirrorNodeKeyDirectory",
    "PublicKeyDirectory",
    "StaticKeyDirectory",
    "RelayService",
]
