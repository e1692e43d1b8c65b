"""
Message Chunking
================
Utilities for splitting long replies into channel-sized messages.
"""

from .models import (
    LINE_BREAK_MIN_RATIO,
    LOOKBACK_WINDOW,
    WHATSAPP_MESSAGE_MAX_LENGTH,
    MessageChunk,
    render_header,
)
from .chunking import plan_chunks, split_message, strip_chunk_header

__all__ = [
    # Models
    "LINE_BREAK_MIN_RATIO",
    "LOOKBACK_WINDOW",
    "WHATSAPP_MESSAGE_MAX_LENGTH",
    "MessageChunk",
    "render_header",
    # Chunking
    "plan_chunks",
    "split_message",
    "strip_chunk_header",
]
