"""Local payload signing and verification.

The private key only ever lives in the signing context (the client); the
relay verifies with the account's public key. Signatures are secp256k1
ECDSA over the canonical payload digest, encoded as 65-byte hex (r || s || v).
"""

import logging
import time
from typing import Any, Optional

from eth_keys import keys
from eth_keys.exceptions import BadSignature, ValidationError

from tajiri.signing.base import (
    SIGNATURE_FIELD,
    TIMESTAMP_FIELD,
    EncodingError,
    parse_private_key,
    parse_public_key,
)
from tajiri.signing.canonical import canonicalize

logger = logging.getLogger(__name__)


def now_ms() -> int:
    """Current wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def prepare_payload(payload: dict[str, Any], timestamp: Optional[int] = None) -> dict[str, Any]:
    """Return a copy of the payload ready for signing.

    Drops any existing signature and fills in the timestamp when the payload
    does not carry one.
    """
    prepared = {k: v for k, v in payload.items() if k != SIGNATURE_FIELD}
    if not prepared.get(TIMESTAMP_FIELD):
        prepared[TIMESTAMP_FIELD] = timestamp if timestamp is not None else now_ms()
    return prepared


def sign_payload(payload: dict[str, Any], private_key: str) -> str:
    """Sign a payload with a private key.

    Signing the same payload twice without a timestamp yields different
    signatures because the current time is injected. Callers that need the
    signed timestamp should use attach_signature() or pre-supply it.

    Args:
        payload: Structured payload (a signature field, if any, is ignored)
        private_key: Hex secp256k1 private key

    Returns:
        Signature as a hex string

    Raises:
        InvalidKeyError: If the private key is malformed
        EncodingError: If the payload cannot be canonicalized
    """
    return _sign_prepared(prepare_payload(payload), private_key)


def attach_signature(payload: dict[str, Any], private_key: str) -> dict[str, Any]:
    """Return the prepared payload with its signature field set."""
    prepared = prepare_payload(payload)
    signed = dict(prepared)
    signed[SIGNATURE_FIELD] = _sign_prepared(prepared, private_key)
    return signed


def _sign_prepared(prepared: dict[str, Any], private_key: str) -> str:
    pk = parse_private_key(private_key)
    digest = canonicalize(prepared)
    signature = pk.sign_msg_hash(digest)
    return signature.to_bytes().hex()


def verify_payload(payload: dict[str, Any], signature: str, public_key: str) -> bool:
    """Verify a payload signature.

    The signature field is stripped from the payload before hashing. A
    malformed signature or an unencodable payload returns False; only
    malformed public-key material raises, since that is a configuration bug.

    Raises:
        InvalidKeyError: If the public key is malformed
    """
    pub = parse_public_key(public_key)

    unsigned = {k: v for k, v in payload.items() if k != SIGNATURE_FIELD}
    try:
        digest = canonicalize(unsigned)
    except EncodingError as e:
        logger.debug(f"Payload could not be canonicalized: {e}")
        return False

    try:
        sig_hex = signature[2:] if signature.startswith("0x") else signature
        sig = keys.Signature(bytes.fromhex(sig_hex))
        return pub.verify_msg_hash(digest, sig)
    except (AttributeError, ValueError, ValidationError, BadSignature) as e:
        logger.debug(f"Malformed signature rejected: {e}")
        return False
