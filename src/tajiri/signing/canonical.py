"""Canonical payload encoding.

Signing and verification must hash identical bytes regardless of the order
in which a client inserted its fields. Payloads are serialized as compact
JSON with object keys sorted at every nesting level; list order is kept
because it carries meaning (e.g. the order of batched calls).
"""

import hashlib
import json
import math
from typing import Any

from tajiri.signing.base import EncodingError


def _normalize(value: Any, path: str) -> Any:
    """Recursively sort mapping keys and reject unsupported value kinds."""
    if value is None or isinstance(value, (bool, str)):
        return value

    if isinstance(value, int):
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise EncodingError(f"Non-finite number at {path}")
        # JSON clients serialize integral floats without a fraction
        if value.is_integer():
            return int(value)
        return value

    if isinstance(value, dict):
        normalized = {}
        for key in sorted(value.keys(), key=_key_order(path)):
            normalized[key] = _normalize(value[key], f"{path}.{key}")
        return normalized

    if isinstance(value, (list, tuple)):
        return [_normalize(item, f"{path}[{i}]") for i, item in enumerate(value)]

    raise EncodingError(f"Unsupported value of type {type(value).__name__} at {path}")


def _key_order(path: str):
    def order(key: Any) -> str:
        if not isinstance(key, str):
            raise EncodingError(f"Non-string key {key!r} at {path}")
        return key

    return order


def canonical_json(payload: Any) -> str:
    """Serialize a payload to its canonical JSON string.

    Raises:
        EncodingError: If the payload contains unsupported values
    """
    normalized = _normalize(payload, "$")
    return json.dumps(normalized, separators=(",", ":"), ensure_ascii=False, allow_nan=False)


def canonicalize(payload: Any) -> bytes:
    """Return the 32-byte SHA-256 digest of the canonical form of a payload.

    Raises:
        EncodingError: If the payload contains unsupported values
    """
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).digest()
