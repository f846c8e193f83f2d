# otterhound/core/security.py
"""Stripe webhook signature verification.

Stripe signs every push delivery with a ``Stripe-Signature`` header of the
form ``t=<unix_ts>,v1=<hex>[,v1=<hex>...]``. Each ``v1`` is
HMAC-SHA256(secret, "<t>.<raw body>"); several are sent while a signing
secret is being rolled.
"""

import hashlib
import hmac
import time
from typing import Iterable, List, Optional, Tuple, Union

from otterhound.core.exceptions import AuthError, ParseError
from otterhound.log.logging import logger

SIGNATURE_SCHEME = "v1"
DEFAULT_TOLERANCE_SECONDS = 300


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def compute_signature(secret: Union[str, bytes], timestamp: Union[str, int], body: Union[str, bytes]) -> bytes:
    """
    Compute the raw HMAC-SHA256 digest Stripe sends as ``v1``.

    Args:
        secret: Endpoint signing secret
        timestamp: The ``t`` value exactly as it appears in the header
        body: Raw request body

    Returns:
        The 32-byte digest
    """
    signed_payload = _to_bytes(str(timestamp)) + b"." + _to_bytes(body)
    return hmac.new(_to_bytes(secret), signed_payload, hashlib.sha256).digest()


def build_signature_header(
    secret: str,
    body: Union[str, bytes],
    timestamp: Optional[int] = None,
    extra_secrets: Iterable[str] = (),
) -> str:
    """Build a ``Stripe-Signature`` header value, one ``v1`` per secret."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    parts = [f"t={timestamp}"]
    for key in (secret, *extra_secrets):
        parts.append(f"{SIGNATURE_SCHEME}={compute_signature(key, timestamp, body).hex()}")
    return ",".join(parts)


def parse_signature_header(header: str) -> Tuple[Optional[str], List[str]]:
    """
    Split a signature header into its timestamp and ``v1`` signatures.

    Pairs without ``=`` and unknown keys are ignored. When ``t`` appears more
    than once the last value wins.
    """
    timestamp = None
    signatures = []
    for pair in header.split(","):
        key, sep, value = pair.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            timestamp = value
        elif key == SIGNATURE_SCHEME:
            signatures.append(value)
    return timestamp, signatures


def verify_signature(
    header: Optional[str],
    body: bytes,
    secret: str,
    tolerance: int = DEFAULT_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> int:
    """
    Authenticate a single push delivery.

    The signature is checked first; the freshness window is only enforced
    once the signature is known to be genuine.

    Args:
        header: Raw ``Stripe-Signature`` header value, None when absent
        body: Raw request body bytes
        secret: Endpoint signing secret
        tolerance: Maximum allowed distance in seconds between ``t`` and now
        now: Current unix time, defaults to the wall clock

    Returns:
        The verified timestamp

    Raises:
        AuthError: Header or timestamp missing, no ``v1`` matches, or the
            timestamp is outside the tolerance window
        ParseError: The signed timestamp is not an integer
    """
    if not header:
        raise AuthError("Missing signature")

    timestamp, signatures = parse_signature_header(header)
    if timestamp is None:
        raise AuthError("Missing timestamp")

    expected = compute_signature(secret, timestamp, body)

    matched = False
    for candidate in signatures:
        try:
            decoded = bytes.fromhex(candidate)
        except ValueError:
            logger.debug("Unable to parse signature", event_type="signature_undecodable")
            continue
        if hmac.compare_digest(expected, decoded):
            matched = True
            break

    if not matched:
        raise AuthError("Signature validation failed", {"signatures": len(signatures)})

    try:
        signed_at = int(timestamp)
    except ValueError as e:
        raise ParseError("Failed to parse timestamp") from e

    current = time.time() if now is None else now
    if abs(current - signed_at) > tolerance:
        raise AuthError(
            "Timestamp is too far from current time",
            {"timestamp": signed_at, "skew_seconds": int(current - signed_at)},
        )

    return signed_at
