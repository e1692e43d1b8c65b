"""
Webhook Auth Models
===================
Errors and constants for inbound webhook authentication.
"""

from relay_core.exceptions import RelayError

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_SCHEME = "sha256"
SIGNATURE_PREFIX = f"{SIGNATURE_SCHEME}="


class SignatureInvalid(RelayError):
    """Inbound request signature is missing, malformed or does not match."""
    pass


class SignatureConfigError(RelayError):
    """No shared secret is configured, so signatures cannot be checked."""
    pass
