"""
Messaging Models
================
Data models and limits for outbound message chunking.
"""

from dataclasses import dataclass

# WhatsApp Cloud API hard limit for a text body
WHATSAPP_MESSAGE_MAX_LENGTH = 4096

# Sentence boundaries are only searched for near the end of a chunk
LOOKBACK_WINDOW = 200

# A bare line break is only used as a cut point this far into a chunk
LINE_BREAK_MIN_RATIO = 0.8


def render_header(index: int, total: int) -> str:
    """Continuation header placed above each chunk body."""
    return f"[Part {index}/{total}]\n\n"


@dataclass(frozen=True)
class MessageChunk:
    """One ordered, 1-indexed segment of a split message."""
    index: int
    total: int
    body: str

    @property
    def header(self) -> str:
        if self.total <= 1:
            return ""
        return render_header(self.index, self.total)

    def render(self) -> str:
        return self.header + self.body
