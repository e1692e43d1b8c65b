"""
Message Chunking
================
Splits long replies into ordered chunks that fit the channel limit while
keeping sentences together where possible.

Cut point preference, within the maximal prefix of the remaining text:

1. The latest sentence end (``.``, ``!`` or ``?`` followed by whitespace,
   or a blank line) in the last 200 characters.
2. The last line break, if it sits at or after 80% of the body budget
   (the limit minus the reserved header width).
3. Exactly at the limit.

Headers read ``[Part i/N]``. ``N`` is only known once every cut is made,
so the header width is reserved up front and the text is re-cut if the
chunk count needs more digits than reserved.
"""

import re
from typing import List

from .models import (
    LINE_BREAK_MIN_RATIO,
    LOOKBACK_WINDOW,
    WHATSAPP_MESSAGE_MAX_LENGTH,
    MessageChunk,
    render_header,
)

SENTENCE_BOUNDARY = re.compile(r"[.!?]\s+|\n\n+")
CHUNK_HEADER = re.compile(r"^\s*\[(?:Part )?\d+/\d+\]\s*")


def strip_chunk_header(text: str) -> str:
    """Remove a leading ``[Part i/N]`` or ``[i/N]`` header, if present."""
    return CHUNK_HEADER.sub("", text, count=1)


def _find_cut(prefix: str, limit: int) -> int:
    """
    Cut position within ``prefix``, a window of ``limit`` characters.

    ``limit`` is the body budget, i.e. the channel limit minus the header
    width, so the line-break threshold is 80% of the room left for text
    rather than 80% of the channel limit.
    """
    boundary = None
    for match in SENTENCE_BOUNDARY.finditer(prefix, max(0, len(prefix) - LOOKBACK_WINDOW)):
        boundary = match.end()
    if boundary is not None:
        return boundary

    line_break = prefix.rfind("\n")
    if line_break >= 0 and line_break >= limit * LINE_BREAK_MIN_RATIO:
        return line_break + 1

    return limit


def _cut_bodies(text: str, body_limit: int) -> List[str]:
    bodies = []
    remaining = text.strip()

    while remaining:
        if len(remaining) <= body_limit:
            bodies.append(remaining)
            break

        cut = _find_cut(remaining[:body_limit], body_limit)
        bodies.append(remaining[:cut].strip())
        remaining = remaining[cut:].strip()

    return bodies


def plan_chunks(text: str, max_length: int = WHATSAPP_MESSAGE_MAX_LENGTH) -> List[MessageChunk]:
    """
    Split ``text`` into chunks whose rendered form is at most ``max_length``.

    Args:
        text: Message content
        max_length: Channel limit per message, header included

    Returns:
        Ordered chunks. Text that already fits comes back as a single
        chunk holding the original text, without a header.

    Raises:
        ValueError: ``max_length`` leaves no room for a header and body
    """
    if not isinstance(text, str):
        raise TypeError("text must be a string")
    if max_length < 1:
        raise ValueError("max_length must be positive")

    if len(text) <= max_length:
        return [MessageChunk(index=1, total=1, body=text)]

    source = strip_chunk_header(text)
    digits = 1
    while True:
        widest = 10 ** digits - 1
        body_limit = max_length - len(render_header(widest, widest))
        if body_limit < 1:
            raise ValueError(f"max_length {max_length} is too small for chunk headers")

        bodies = _cut_bodies(source, body_limit)
        needed = len(str(len(bodies)))
        if needed <= digits:
            break
        digits = needed

    if not bodies:
        return [MessageChunk(index=1, total=1, body="")]

    total = len(bodies)
    return [
        MessageChunk(index=index, total=total, body=body)
        for index, body in enumerate(bodies, start=1)
    ]


def split_message(text: str, max_length: int = WHATSAPP_MESSAGE_MAX_LENGTH) -> List[str]:
    """
    Split a message into rendered chunks for sending.

    Args:
        text: Message content
        max_length: Channel limit per message

    Returns:
        List of chunk texts, in sending order
    """
    return [chunk.render() for chunk in plan_chunks(text, max_length)]
