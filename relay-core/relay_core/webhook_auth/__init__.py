"""
Webhook Authentication
======================
Signature verification and subscription handshake for inbound webhooks.
"""

from .models import (
    SIGNATURE_HEADER,
    SIGNATURE_PREFIX,
    SIGNATURE_SCHEME,
    SignatureConfigError,
    SignatureInvalid,
)
from .signature import compute_signature, is_valid, require_valid
from .challenge import verify_subscription

__all__ = [
    # Models
    "SIGNATURE_HEADER",
    "SIGNATURE_PREFIX",
    "SIGNATURE_SCHEME",
    "SignatureConfigError",
    "SignatureInvalid",
    # Signature
    "compute_signature",
    "is_valid",
    "require_valid",
    # Challenge
    "verify_subscription",
]
