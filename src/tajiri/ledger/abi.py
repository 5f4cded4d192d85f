"""Typed contract call parameters and call encoding.

Every parameter carries an explicit ABI tag chosen by the caller; the tag
decides the encoding, never the Python type of the value. This removes the
guesswork of telling an address-shaped string from a plain string.

Wire form (as sent inside relay requests):
    {"type": "address", "value": "0.0.1234" | "0x..."}
    {"type": "uint256", "value": 42 | "42"}
    {"type": "bool",    "value": true}
    {"type": "string",  "value": "..."}
    {"type": "bytes",   "value": "0x..."}
    {"type": "list",    "itemType": "uint256", "value": [<tagged>, ...]}
"""

from dataclasses import dataclass
from typing import Any, Union

from eth_abi import encode
from eth_abi.exceptions import EncodingError as AbiEncodingError
from web3 import Web3

from tajiri.ledger.base import normalize_contract_id
from tajiri.signing.base import EncodingError

UINT256_MAX = 2**256 - 1


@dataclass(frozen=True)
class Address:
    value: str
    abi_type = "address"

    def encodable(self) -> str:
        # Accepts both contract-id shapes; InvalidContractIdError surfaces as-is
        return normalize_contract_id(self.value)

    def to_wire(self) -> dict:
        return {"type": "address", "value": self.value}


@dataclass(frozen=True)
class UInt256:
    value: int
    abi_type = "uint256"

    def __post_init__(self):
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise EncodingError(f"uint256 requires an integer, got {self.value!r}")
        if not 0 <= self.value <= UINT256_MAX:
            raise EncodingError(f"uint256 out of range: {self.value}")

    def encodable(self) -> int:
        return self.value

    def to_wire(self) -> dict:
        return {"type": "uint256", "value": str(self.value)}


@dataclass(frozen=True)
class Bool:
    value: bool
    abi_type = "bool"

    def encodable(self) -> bool:
        return self.value

    def to_wire(self) -> dict:
        return {"type": "bool", "value": self.value}


@dataclass(frozen=True)
class Str:
    value: str
    abi_type = "string"

    def encodable(self) -> str:
        return self.value

    def to_wire(self) -> dict:
        return {"type": "string", "value": self.value}


@dataclass(frozen=True)
class Bytes:
    value: bytes
    abi_type = "bytes"

    def encodable(self) -> bytes:
        return self.value

    def to_wire(self) -> dict:
        return {"type": "bytes", "value": "0x" + self.value.hex()}


@dataclass(frozen=True)
class FixedBytes:
    """Fixed-size byte string such as a bytes4 function selector."""

    value: bytes
    size: int = 4

    def __post_init__(self):
        if not 1 <= self.size <= 32 or len(self.value) != self.size:
            raise EncodingError(f"bytes{self.size} requires exactly {self.size} bytes")

    @property
    def abi_type(self) -> str:
        return f"bytes{self.size}"

    def encodable(self) -> bytes:
        return self.value

    def to_wire(self) -> dict:
        return {"type": self.abi_type, "value": "0x" + self.value.hex()}


@dataclass(frozen=True)
class List:
    """Homogeneous dynamic array of tagged values."""

    item_type: str
    items: tuple = ()

    def __post_init__(self):
        for item in self.items:
            if item.abi_type != self.item_type:
                raise EncodingError(
                    f"List of {self.item_type} cannot hold {item.abi_type}"
                )

    @property
    def abi_type(self) -> str:
        return f"{self.item_type}[]"

    def encodable(self) -> list:
        return [item.encodable() for item in self.items]

    def to_wire(self) -> dict:
        return {
            "type": "list",
            "itemType": self.item_type,
            "value": [item.to_wire() for item in self.items],
        }


AbiValue = Union[Address, UInt256, Bool, Str, Bytes, FixedBytes, List]


SCALAR_TAGS = ("address", "uint256", "bool", "string", "bytes")


def _is_fixed_bytes_tag(tag: Any) -> bool:
    return isinstance(tag, str) and tag.startswith("bytes") and tag[5:].isdigit()


def _parse_hex(value: Any) -> bytes:
    if not isinstance(value, str):
        raise EncodingError(f"Expected hex string, got {value!r}")
    hex_value = value[2:] if value.startswith("0x") else value
    try:
        return bytes.fromhex(hex_value)
    except ValueError:
        raise EncodingError(f"Invalid hex string: {value}") from None


def _parse_uint(value: Any) -> int:
    if isinstance(value, bool):
        raise EncodingError("uint256 cannot be a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    raise EncodingError(f"Invalid uint256 value: {value!r}")


def parse_param(raw: Any) -> AbiValue:
    """Build a tagged value from its wire form.

    Raises:
        EncodingError: If the tag is unknown or the value does not fit it
    """
    if not isinstance(raw, dict) or "type" not in raw or "value" not in raw:
        raise EncodingError(f"Parameter must be a tagged object, got {raw!r}")

    tag = raw["type"]
    value = raw["value"]

    if tag == "address":
        if not isinstance(value, str) or not value:
            raise EncodingError(f"Invalid address value: {value!r}")
        return Address(value)
    if tag == "uint256":
        return UInt256(_parse_uint(value))
    if tag == "bool":
        if not isinstance(value, bool):
            raise EncodingError(f"Invalid bool value: {value!r}")
        return Bool(value)
    if tag == "string":
        if not isinstance(value, str):
            raise EncodingError(f"Invalid string value: {value!r}")
        return Str(value)
    if tag == "bytes":
        return Bytes(_parse_hex(value))
    if _is_fixed_bytes_tag(tag):
        return FixedBytes(_parse_hex(value), int(tag[5:]))
    if tag == "list":
        if not isinstance(value, list):
            raise EncodingError(f"Invalid list value: {value!r}")
        item_type = raw.get("itemType")
        if not isinstance(item_type, str):
            raise EncodingError("List parameter requires an itemType")
        if item_type not in SCALAR_TAGS and not _is_fixed_bytes_tag(item_type):
            raise EncodingError(f"Unsupported list item type: {item_type!r}")
        return List(item_type, tuple(parse_param(item) for item in value))

    raise EncodingError(f"Unsupported parameter type: {tag!r}")


def parse_params(raw: Any) -> tuple[AbiValue, ...]:
    """Build tagged values from a wire-form list (None means no parameters)."""
    if raw is None:
        return ()
    if not isinstance(raw, list):
        raise EncodingError("Parameters must be a list")
    return tuple(parse_param(item) for item in raw)


def function_signature(function_name: str, params: tuple[AbiValue, ...] = ()) -> str:
    """Build a function signature such as transfer(address,uint256).

    A name that already contains a parameter list is used as given.
    """
    if "(" in function_name:
        return function_name
    return f"{function_name}({','.join(p.abi_type for p in params)})"


def function_selector(signature: str) -> bytes:
    """First 4 bytes of keccak-256 of the function signature."""
    return bytes(Web3.keccak(text=signature)[:4])


def encode_arguments(params: tuple[AbiValue, ...]) -> bytes:
    """ABI-encode parameter values without a selector.

    Raises:
        InvalidContractIdError: If an address parameter does not parse
        EncodingError: If a value or list item type cannot be encoded
    """
    types = [p.abi_type for p in params]
    values = [p.encodable() for p in params]
    try:
        return encode(types, values)
    except (AbiEncodingError, ValueError, TypeError) as e:
        raise EncodingError(f"Cannot encode parameters as ({','.join(types)}): {e}") from None


def encode_function_call(function_name: str, params: tuple[AbiValue, ...] = ()) -> bytes:
    """Encode a full call: selector followed by the ABI-encoded arguments."""
    signature = function_signature(function_name, params)
    return function_selector(signature) + encode_arguments(params)
