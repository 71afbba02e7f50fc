# billing/signature.py
"""
Stripe webhook signature verification.

Header format:
    Stripe-Signature: t=<unix-seconds>,v1=<hex-hmac>[,v1=<hex-hmac>...]

The signed payload is "{t}.{raw_body}", HMAC-SHA256 keyed by the endpoint
secret. Several v1 entries appear while a secret is being rolled.

Everything here is pure apart from reading the clock.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from dataclasses import dataclass
from typing import List, Optional, Union

DEFAULT_TOLERANCE_SECONDS = 300

SIGNATURE_SCHEME = "v1"


@dataclass(frozen=True)
class SignatureHeader:
    """Parsed Stripe-Signature header."""
    timestamp: str
    signatures: List[str]


def parse_signature_header(header: Optional[str]) -> Optional[SignatureHeader]:
    """
    Parse a Stripe-Signature header.

    Returns:
        SignatureHeader, or None when the header is missing, has no
        timestamp, or carries no v1 signature
    """
    if not header:
        return None

    timestamp = None
    signatures = []
    for part in header.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamp = value
        elif key == SIGNATURE_SCHEME and value:
            signatures.append(value)

    if not timestamp or not signatures:
        return None
    return SignatureHeader(timestamp=timestamp, signatures=signatures)


def _as_text(payload: Union[str, bytes]) -> str:
    if isinstance(payload, bytes):
        return payload.decode("utf-8")
    return payload


def compute_signature(secret: str, timestamp: Union[str, int], payload: Union[str, bytes]) -> str:
    """Hex HMAC-SHA256 of "{timestamp}.{payload}" keyed by secret."""
    signed_payload = f"{timestamp}.{_as_text(payload)}"
    return hmac.new(
        secret.encode("utf-8"),
        signed_payload.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def generate_signature_header(
    secret: str,
    payload: Union[str, bytes],
    timestamp: Optional[int] = None,
) -> str:
    """Build a valid Stripe-Signature header (test and local tooling)."""
    if timestamp is None:
        timestamp = int(time.time())
    signature = compute_signature(secret, timestamp, payload)
    return f"t={timestamp},{SIGNATURE_SCHEME}={signature}"


def verify_signature(
    payload: Union[str, bytes],
    signature_header: Optional[str],
    secret: str,
    tolerance_seconds: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> bool:
    """
    Verify that a webhook body was signed by Stripe and is fresh.

    Args:
        payload: Raw request body, exactly as received
        signature_header: Stripe-Signature header value
        secret: Endpoint signing secret
        tolerance_seconds: Maximum allowed |now - t|
        now: Current unix time (defaults to the system clock)

    Returns:
        True if any v1 signature matches and the timestamp is within
        tolerance. Never raises for bad input.
    """
    parsed = parse_signature_header(signature_header)
    if parsed is None:
        return False

    try:
        timestamp = int(parsed.timestamp)
        body = _as_text(payload)
    except (ValueError, UnicodeDecodeError):
        return False

    if now is None:
        now = time.time()
    if abs(int(now) - timestamp) > tolerance_seconds:
        return False

    expected = compute_signature(secret, parsed.timestamp, body)
    matched = False
    # No early exit: every candidate is compared
    for candidate in parsed.signatures:
        if hmac.compare_digest(expected.encode("ascii"), candidate.encode("utf-8")):
            matched = True
    return matched
