"""Base types for payload signing.

Signing flow:
1. Strip any existing signature from the payload
2. Fill in the timestamp if the caller did not supply one
3. Canonicalize and hash the payload
4. Sign the digest with the account's secp256k1 key
5. Ship the payload together with the hex signature

Keys are secp256k1. Both raw hex keys and the DER-encoded hex strings that
ledger SDKs print for ECDSA keys are accepted.
"""

import logging

from eth_keys import keys
from eth_keys.exceptions import ValidationError

logger = logging.getLogger(__name__)

SIGNATURE_FIELD = "signature"
TIMESTAMP_FIELD = "timestamp"

# DER prefixes for ECDSA(secp256k1) keys as exported by ledger SDKs
DER_PRIVATE_KEY_PREFIX = "3030020100300706052b8104000a04220420"
DER_PUBLIC_KEY_PREFIX = "302d300706052b8104000a032200"


class SigningError(Exception):
    """Exception raised when signing fails."""
    pass


class EncodingError(SigningError):
    """Exception raised when a payload contains a value that cannot be canonicalized."""
    pass


class InvalidKeyError(SigningError):
    """Exception raised for malformed key material."""
    pass


def _strip_hex(value: str) -> str:
    value = value.strip()
    if value.startswith(("0x", "0X")):
        value = value[2:]
    return value.lower()


def parse_private_key(private_key: str) -> keys.PrivateKey:
    """Parse a hex (raw or DER) secp256k1 private key.

    Raises:
        InvalidKeyError: If the key is not a valid secp256k1 private key
    """
    if not isinstance(private_key, str) or not private_key:
        raise InvalidKeyError("Private key must be a non-empty hex string")

    key_hex = _strip_hex(private_key)
    if key_hex.startswith(DER_PRIVATE_KEY_PREFIX):
        key_hex = key_hex[len(DER_PRIVATE_KEY_PREFIX):]

    try:
        return keys.PrivateKey(bytes.fromhex(key_hex))
    except (ValueError, ValidationError) as e:
        raise InvalidKeyError(f"Invalid private key: {e}") from None


def parse_public_key(public_key: str) -> keys.PublicKey:
    """Parse a hex secp256k1 public key.

    Accepts compressed (33 bytes), uncompressed (65 bytes with 0x04 prefix),
    raw (64 bytes) and DER-encoded compressed forms.

    Raises:
        InvalidKeyError: If the key material is malformed
    """
    if not isinstance(public_key, str) or not public_key:
        raise InvalidKeyError("Public key must be a non-empty hex string")

    key_hex = _strip_hex(public_key)
    if key_hex.startswith(DER_PUBLIC_KEY_PREFIX):
        key_hex = key_hex[len(DER_PUBLIC_KEY_PREFIX):]

    try:
        raw = bytes.fromhex(key_hex)
        if len(raw) == 33:
            return keys.PublicKey.from_compressed_bytes(raw)
        if len(raw) == 65 and raw[0] == 4:
            return keys.PublicKey(raw[1:])
        return keys.PublicKey(raw)
    except (ValueError, ValidationError) as e:
        raise InvalidKeyError(f"Invalid public key: {e}") from None


def public_key_hex(private_key: str) -> str:
    """Get the compressed public key (hex) for a private key."""
    pk = parse_private_key(private_key)
    return pk.public_key.to_compressed_bytes().hex()
