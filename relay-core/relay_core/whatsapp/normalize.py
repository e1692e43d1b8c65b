"""
WhatsApp Normalization
======================
Converts Cloud API webhook payloads into ``NormalizedQuery`` objects.

Only text messages carry a question for the query service. Status
updates (delivered, read) contain no ``messages`` and are skipped by
``extract_messages``.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterator, List, Tuple

from relay_core.exceptions import NormalizationError

from .schemas import CHANNEL, NormalizedQuery

InboundMessage = Tuple[Dict[str, Any], Dict[str, Any]]


def extract_messages(payload: Any) -> List[InboundMessage]:
    """
    Flatten a webhook payload into ``(message, value)`` pairs.

    ``value`` is the enclosing change value, which carries the contact list
    and the receiving business number.

    Raises:
        NormalizationError: The payload is not a WhatsApp webhook body
    """
    if not isinstance(payload, dict):
        raise NormalizationError("Payload must be a JSON object")
    entries = payload.get("entry")
    if not isinstance(entries, list):
        raise NormalizationError("Payload has no 'entry' list")
    return list(_iter_messages(entries))


def _iter_messages(entries: List[Any]) -> Iterator[InboundMessage]:
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        changes = entry.get("changes")
        if not isinstance(changes, list):
            continue
        for change in changes:
            if not isinstance(change, dict):
                continue
            value = change.get("value")
            if not isinstance(value, dict):
                continue
            messages = value.get("messages")
            if not isinstance(messages, list):
                continue
            for message in messages:
                yield message, value


def normalize_message(message: Any, value: Dict[str, Any]) -> NormalizedQuery:
    """
    Convert one inbound message into a query.

    Args:
        message: Entry of ``value["messages"]``
        value: The enclosing change value

    Raises:
        NormalizationError: Missing sender, unsupported type or empty body
    """
    if not isinstance(message, dict):
        raise NormalizationError("Message must be a JSON object")

    sender = message.get("from")
    if not sender:
        raise NormalizationError("Message has no sender")

    message_type = message.get("type")
    if message_type != "text":
        raise NormalizationError(f"Unsupported message type: {message_type}")

    try:
        body = message["text"]["body"]
    except (KeyError, TypeError):
        raise NormalizationError("Text message missing 'text.body'")
    if not isinstance(body, str) or not body.strip():
        raise NormalizationError("Text message body is empty")

    return NormalizedQuery(
        user_id=str(sender),
        channel=CHANNEL,
        message=body.strip(),
        timestamp=_parse_timestamp(message.get("timestamp")),
        metadata=_build_metadata(message, value),
    )


def _parse_timestamp(raw: Any) -> str:
    # Cloud API timestamps are epoch seconds sent as strings
    try:
        moment = datetime.fromtimestamp(int(raw), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        moment = datetime.now(timezone.utc)
    return moment.isoformat()


def _build_metadata(message: Dict[str, Any], value: Dict[str, Any]) -> Dict[str, Any]:
    metadata: Dict[str, Any] = {
        "message_id": message.get("id"),
        "message_type": message.get("type"),
    }

    business = value.get("metadata") or {}
    if isinstance(business, dict):
        metadata["phone_number_id"] = business.get("phone_number_id")
        metadata["display_phone_number"] = business.get("display_phone_number")

    for contact in value.get("contacts") or []:
        if isinstance(contact, dict) and contact.get("wa_id") == message.get("from"):
            metadata["contact_name"] = (contact.get("profile") or {}).get("name")
            break

    return {key: val for key, val in metadata.items() if val is not None}
