"""Payload signing services.

Provides:
- canonicalize: deterministic digest of structured payloads
- sign_payload / attach_signature: client-side signing
- verify_payload: relay-side verification
- ReplayGuard: request freshness window
"""

from tajiri.signing.base import (
    EncodingError,
    InvalidKeyError,
    SigningError,
    public_key_hex,
)
from tajiri.signing.canonical import canonical_json, canonicalize
from tajiri.signing.local import attach_signature, sign_payload, verify_payload
from tajiri.signing.replay import ReplayGuard

__all__ = [
    "EncodingError",
    "InvalidKeyError",
    "SigningError",
    "ReplayGuard",
    "attach_signature",
    "canonical_json",
    "canonicalize",
    "public_key_hex",
    "sign_payload",
    "verify_payload",
]
