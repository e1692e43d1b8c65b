"""
WhatsApp Sender
===============
Outbound text messages through the WhatsApp Cloud API.
"""

from typing import Optional

import structlog

from relay_core.exceptions import MessageTooLongError
from relay_core.http import ResilientHttpClient
from relay_core.messaging import WHATSAPP_MESSAGE_MAX_LENGTH

from .schemas import SendAck

logger = structlog.get_logger(__name__)

GRAPH_API_BASE_URL = "https://graph.facebook.com"


def build_messages_url(phone_number_id: str, api_version: str = "v18.0") -> str:
    return f"{GRAPH_API_BASE_URL}/{api_version}/{phone_number_id}/messages"


class WhatsAppSender:
    """
    Sends text replies to a WhatsApp user.

    Every call goes through the supplied ``ResilientHttpClient`` so the
    configured timeout and retry policy applies to each message.
    """

    def __init__(
        self,
        http: ResilientHttpClient,
        token: str,
        phone_number_id: str,
        api_version: str = "v18.0",
        max_length: int = WHATSAPP_MESSAGE_MAX_LENGTH,
    ):
        self.http = http
        self.url = build_messages_url(phone_number_id, api_version)
        self.max_length = max_length
        self._headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def send(self, recipient: str, text: str) -> SendAck:
        """
        Send one text message.

        Raises:
            ValueError: ``text`` is empty
            MessageTooLongError: ``text`` exceeds the channel limit
            DownstreamError: The Cloud API call failed after retries
        """
        if not text:
            raise ValueError("Message must be a non-empty string")
        if len(text) > self.max_length:
            raise MessageTooLongError(len(text), self.max_length)

        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": recipient,
            "type": "text",
            "text": {"preview_url": False, "body": text},
        }
        response = await self.http.post_json(self.url, payload, headers=self._headers)
        ack = _parse_ack(response)
        logger.debug("whatsapp_message_sent", recipient=recipient, message_id=ack.message_id)
        return ack

    async def aclose(self) -> None:
        await self.http.aclose()


def _parse_ack(response) -> SendAck:
    try:
        data: Optional[dict] = response.json()
    except ValueError:
        data = None
    if not isinstance(data, dict):
        return SendAck()
    return SendAck.model_validate(data)
