# billing/tests/test_signature.py
"""Tests for webhook signature verification."""

from __future__ import annotations

import hashlib
import hmac
import json
import time

import pytest

from billing.signature import (
    compute_signature,
    generate_signature_header,
    parse_signature_header,
    verify_signature,
)

SECRET = "whsec_test"
PAYLOAD = json.dumps({"id": "evt_1", "type": "customer.subscription.updated"})


def _hmac(secret: str, data: str) -> str:
    return hmac.new(secret.encode(), data.encode(), hashlib.sha256).hexdigest()


# =============================================================================
# Header Parsing
# =============================================================================


class TestParseSignatureHeader:
    """Tests for parse_signature_header."""

    def test_parses_timestamp_and_signatures(self):
        parsed = parse_signature_header("t=123,v1=abc,v1=def")

        assert parsed.timestamp == "123"
        assert parsed.signatures == ["abc", "def"]

    def test_ignores_other_schemes_and_whitespace(self):
        parsed = parse_signature_header(" t=123 , v0=zzz, v1=abc ")

        assert parsed.timestamp == "123"
        assert parsed.signatures == ["abc"]

    @pytest.mark.parametrize("header", [None, "", "v1=abc", "t=123", "t=123,v1=", "garbage"])
    def test_incomplete_headers_return_none(self, header):
        assert parse_signature_header(header) is None


# =============================================================================
# Verification
# =============================================================================


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_valid_signature_passes(self):
        t = int(time.time())
        header = f"t={t},v1={_hmac(SECRET, f'{t}.{PAYLOAD}')}"

        assert verify_signature(PAYLOAD, header, SECRET) is True

    def test_bytes_payload_passes(self):
        header = generate_signature_header(SECRET, PAYLOAD)

        assert verify_signature(PAYLOAD.encode("utf-8"), header, SECRET) is True

    def test_invalid_signature_fails(self):
        t = int(time.time())

        assert verify_signature(PAYLOAD, f"t={t},v1=deadbeef", SECRET) is False

    def test_flipping_any_character_fails(self):
        t = int(time.time())
        good = compute_signature(SECRET, t, PAYLOAD)

        for index in range(len(good)):
            flipped = "0" if good[index] != "0" else "1"
            bad = good[:index] + flipped + good[index + 1:]
            assert verify_signature(PAYLOAD, f"t={t},v1={bad}", SECRET) is False

    def test_wrong_secret_fails(self):
        header = generate_signature_header("whsec_other", PAYLOAD)

        assert verify_signature(PAYLOAD, header, SECRET) is False

    def test_modified_payload_fails(self):
        header = generate_signature_header(SECRET, PAYLOAD)

        assert verify_signature(PAYLOAD + " ", header, SECRET) is False

    def test_any_matching_v1_passes(self):
        t = int(time.time())
        good = compute_signature(SECRET, t, PAYLOAD)
        header = f"t={t},v1=deadbeef,v1={good}"

        assert verify_signature(PAYLOAD, header, SECRET) is True

    def test_timestamp_outside_tolerance_fails(self):
        t = int(time.time()) - 1000
        header = generate_signature_header(SECRET, PAYLOAD, timestamp=t)

        assert verify_signature(PAYLOAD, header, SECRET) is False

    def test_future_timestamp_outside_tolerance_fails(self):
        now = 1_700_000_000
        header = generate_signature_header(SECRET, PAYLOAD, timestamp=now + 301)

        assert verify_signature(PAYLOAD, header, SECRET, now=now) is False

    def test_timestamp_at_tolerance_edge_passes(self):
        now = 1_700_000_000
        header = generate_signature_header(SECRET, PAYLOAD, timestamp=now - 300)

        assert verify_signature(PAYLOAD, header, SECRET, now=now) is True

    def test_custom_tolerance(self):
        now = 1_700_000_000
        header = generate_signature_header(SECRET, PAYLOAD, timestamp=now - 60)

        assert verify_signature(PAYLOAD, header, SECRET, tolerance_seconds=30, now=now) is False
        assert verify_signature(PAYLOAD, header, SECRET, tolerance_seconds=90, now=now) is True

    @pytest.mark.parametrize(
        "header",
        [None, "", "t=123", "v1=abc", "t=notanumber,v1=abc", "nonsense"],
    )
    def test_malformed_headers_return_false(self, header):
        assert verify_signature(PAYLOAD, header, SECRET) is False

    def test_non_utf8_payload_returns_false(self):
        header = generate_signature_header(SECRET, PAYLOAD)

        assert verify_signature(b"\xff\xfe", header, SECRET) is False
