"""Tests for payload canonicalization, signing and replay protection."""

import pytest

from tajiri.signing import (
    EncodingError,
    InvalidKeyError,
    ReplayGuard,
    attach_signature,
    canonical_json,
    canonicalize,
    public_key_hex,
    sign_payload,
    verify_payload,
)
from tajiri.signing.base import (
    DER_PRIVATE_KEY_PREFIX,
    DER_PUBLIC_KEY_PREFIX,
    parse_private_key,
    parse_public_key,
)
from tajiri.signing.local import prepare_payload
from tajiri.signing.replay import check

from tests.conftest import OTHER_PRIVATE_KEY, USER_PRIVATE_KEY


def _intent(**overrides) -> dict:
    payload = {
        "accountId": "0.0.1001",
        "smartWalletId": "0.0.5005",
        "targetContract": "0.0.7007",
        "functionName": "transfer",
        "params": [
            {"type": "address", "value": "0.0.42"},
            {"type": "uint256", "value": "100"},
        ],
        "value": 100,
        "timestamp": 1_700_000_000_000,
    }
    payload.update(overrides)
    return payload


class TestCanonicalize:
    """Tests for canonical encoding."""

    def test_key_order_does_not_matter(self):
        """Test reordered keys at every level give the same digest."""
        a = {"b": 1, "a": {"y": [1, 2], "x": "s"}}
        b = {"a": {"x": "s", "y": [1, 2]}, "b": 1}

        assert canonicalize(a) == canonicalize(b)
        assert canonical_json(a) == '{"a":{"x":"s","y":[1,2]},"b":1}'

    def test_list_order_matters(self):
        """Test arrays keep their order."""
        assert canonicalize({"a": [1, 2]}) != canonicalize({"a": [2, 1]})

    def test_digest_is_32_bytes(self):
        """Test digest length."""
        assert len(canonicalize(_intent())) == 32

    def test_integral_float_matches_int(self):
        """Test 100.0 and 100 encode identically."""
        assert canonicalize({"value": 100.0}) == canonicalize({"value": 100})

    def test_different_payloads_differ(self):
        """Test semantically different payloads give different digests."""
        assert canonicalize(_intent(value=100)) != canonicalize(_intent(value=1000))

    def test_unsupported_value_raises(self):
        """Test unsupported kinds raise EncodingError."""
        with pytest.raises(EncodingError):
            canonicalize({"a": {1, 2}})

        with pytest.raises(EncodingError):
            canonicalize({"a": float("nan")})

    def test_non_string_key_raises(self):
        """Test non-string mapping keys raise EncodingError."""
        with pytest.raises(EncodingError):
            canonicalize({1: "a"})


class TestSignVerify:
    """Tests for signing and verification."""

    def test_round_trip(self):
        """Test a signed payload verifies with the matching public key."""
        payload = _intent()
        signature = sign_payload(payload, USER_PRIVATE_KEY)

        assert verify_payload(payload, signature, public_key_hex(USER_PRIVATE_KEY))

    def test_signature_field_is_ignored(self):
        """Test the signature field is excluded from the signed bytes."""
        signed = attach_signature(_intent(), USER_PRIVATE_KEY)

        assert "signature" in signed
        assert verify_payload(signed, signed["signature"], public_key_hex(USER_PRIVATE_KEY))

    def test_key_order_independent(self):
        """Test verification succeeds after reordering fields."""
        payload = _intent()
        signature = sign_payload(payload, USER_PRIVATE_KEY)
        reordered = dict(reversed(list(payload.items())))

        assert verify_payload(reordered, signature, public_key_hex(USER_PRIVATE_KEY))

    @pytest.mark.parametrize(
        "field,value",
        [
            ("value", 1000),
            ("targetContract", "0.0.7008"),
            ("functionName", "approve"),
            ("timestamp", 1_700_000_000_001),
            ("params", [{"type": "address", "value": "0.0.43"}]),
        ],
    )
    def test_tampered_field_fails(self, field, value):
        """Test changing any field after signing fails verification."""
        payload = _intent()
        signature = sign_payload(payload, USER_PRIVATE_KEY)
        payload[field] = value

        assert not verify_payload(payload, signature, public_key_hex(USER_PRIVATE_KEY))

    def test_wrong_key_fails(self):
        """Test a signature from another key fails."""
        payload = _intent()
        signature = sign_payload(payload, OTHER_PRIVATE_KEY)

        assert not verify_payload(payload, signature, public_key_hex(USER_PRIVATE_KEY))

    @pytest.mark.parametrize("signature", ["", "zz", "0x1234", "00" * 65])
    def test_malformed_signature_returns_false(self, signature):
        """Test malformed signatures never raise."""
        assert not verify_payload(_intent(), signature, public_key_hex(USER_PRIVATE_KEY))

    def test_malformed_public_key_raises(self):
        """Test malformed public keys are a caller error."""
        signature = sign_payload(_intent(), USER_PRIVATE_KEY)

        with pytest.raises(InvalidKeyError):
            verify_payload(_intent(), signature, "not-a-key")

    def test_timestamp_injected_when_absent(self):
        """Test signing fills in the timestamp."""
        payload = _intent()
        del payload["timestamp"]

        prepared = prepare_payload(payload, timestamp=123)
        signed = attach_signature(payload, USER_PRIVATE_KEY)

        assert prepared["timestamp"] == 123
        assert signed["timestamp"] > 0
        assert "timestamp" not in payload

    def test_supplied_timestamp_is_deterministic(self):
        """Test a pre-supplied timestamp gives the same signature twice."""
        payload = _intent()

        assert sign_payload(payload, USER_PRIVATE_KEY) == sign_payload(payload, USER_PRIVATE_KEY)


class TestKeyParsing:
    """Tests for key formats."""

    def test_public_key_forms(self):
        """Test compressed, uncompressed, raw and DER public keys parse alike."""
        pk = parse_private_key(USER_PRIVATE_KEY)
        compressed = pk.public_key.to_compressed_bytes().hex()
        raw = pk.public_key.to_bytes().hex()

        expected = pk.public_key
        assert parse_public_key(compressed) == expected
        assert parse_public_key("04" + raw) == expected
        assert parse_public_key(raw) == expected
        assert parse_public_key(DER_PUBLIC_KEY_PREFIX + compressed) == expected

    def test_der_private_key(self):
        """Test DER-encoded private keys parse."""
        key = parse_private_key(DER_PRIVATE_KEY_PREFIX + "11" * 32)

        assert key == parse_private_key(USER_PRIVATE_KEY)

    def test_invalid_private_key(self):
        """Test invalid private keys raise InvalidKeyError."""
        with pytest.raises(InvalidKeyError):
            parse_private_key("1234")


class TestReplayGuard:
    """Tests for the replay window."""

    NOW = 1_700_000_000_000
    MAX_AGE = 5 * 60 * 1000

    def test_just_inside_window(self):
        """Test a timestamp 1 ms inside the window is accepted."""
        assert check(self.NOW - (self.MAX_AGE - 1), self.NOW, self.MAX_AGE)

    def test_just_outside_window(self):
        """Test a timestamp 1 ms outside the window is rejected."""
        assert not check(self.NOW - (self.MAX_AGE + 1), self.NOW, self.MAX_AGE)

    def test_small_future_skew_accepted(self):
        """Test a timestamp slightly in the future is tolerated."""
        guard = ReplayGuard(max_age_ms=self.MAX_AGE, max_skew_ms=5_000)

        assert guard.check(self.NOW + 4_000, self.NOW)

    def test_far_future_rejected(self):
        """Test a timestamp far in the future is rejected."""
        guard = ReplayGuard(max_age_ms=self.MAX_AGE, max_skew_ms=5_000)

        assert not guard.check(self.NOW + 60_000, self.NOW)

    def test_zero_timestamp_rejected(self):
        """Test a missing (zero) timestamp is expired."""
        assert not ReplayGuard().check(0, self.NOW)
