"""
Signature Functions
===================
HMAC-SHA256 verification of inbound webhook payloads.

The digest is always computed over the raw request bytes exactly as
received. Re-serialized JSON (different key order or whitespace) would
produce a different digest.
"""

import hashlib
import hmac
import re
from typing import Optional

from .models import SIGNATURE_PREFIX, SignatureConfigError, SignatureInvalid

_HEADER_PATTERN = re.compile(r"^sha256=[0-9a-f]{64}$")


def compute_signature(raw_body: bytes, secret: str) -> str:
    """
    Compute the header value for a payload.

    Args:
        raw_body: Raw request body bytes
        secret: Shared app secret

    Returns:
        ``sha256=<hex digest>``
    """
    digest = hmac.new(
        secret.encode("utf-8"),
        raw_body,
        hashlib.sha256,
    ).hexdigest()
    return SIGNATURE_PREFIX + digest


def is_valid(raw_body: bytes, header_signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify a webhook signature using constant-time comparison.

    Missing or malformed headers fail closed. The header format is checked
    before comparing, so the comparison only ever sees equal-length values.

    Args:
        raw_body: Raw request body bytes
        header_signature: Value of the signature header
        secret: Shared app secret

    Returns:
        True if the signature matches

    Raises:
        SignatureConfigError: No secret configured
    """
    if not secret:
        raise SignatureConfigError("Webhook app secret is not configured")

    if not header_signature or not isinstance(header_signature, str):
        return False

    provided = header_signature.strip().lower()
    if not _HEADER_PATTERN.match(provided):
        return False

    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("ascii"), provided.encode("ascii"))


def require_valid(raw_body: bytes, header_signature: Optional[str], secret: Optional[str]) -> None:
    """
    Raise unless the signature matches.

    Raises:
        SignatureConfigError: No secret configured
        SignatureInvalid: Header missing, malformed or not matching
    """
    if not is_valid(raw_body, header_signature, secret):
        raise SignatureInvalid("Webhook signature does not match payload")
