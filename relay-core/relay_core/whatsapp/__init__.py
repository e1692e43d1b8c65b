"""
WhatsApp Channel
================
Inbound payload normalization and outbound Cloud API messages.
"""

from .schemas import CHANNEL, NormalizedQuery, SendAck
from .normalize import extract_messages, normalize_message
from .sender import GRAPH_API_BASE_URL, WhatsAppSender, build_messages_url

__all__ = [
    # Schemas
    "CHANNEL",
    "NormalizedQuery",
    "SendAck",
    # Normalization
    "extract_messages",
    "normalize_message",
    # Sender
    "GRAPH_API_BASE_URL",
    "WhatsAppSender",
    "build_messages_url",
]
