"""
Subscription Challenge
======================
Webhook verification handshake.

The platform calls ``GET /webhook`` with ``hub.mode=subscribe``,
``hub.verify_token`` and ``hub.challenge``; the challenge is echoed back
when the verify token matches the configured one.
"""

import hmac
from typing import Optional


def verify_subscription(
    mode: Optional[str],
    token: Optional[str],
    challenge: Optional[str],
    expected_token: Optional[str],
) -> Optional[str]:
    """
    Returns:
        The challenge to echo back, or None when verification fails
    """
    if mode != "subscribe" or not token or not expected_token or challenge is None:
        return None
    if not hmac.compare_digest(token.encode("utf-8"), expected_token.encode("utf-8")):
        return None
    return challenge
