"""
WhatsApp Schemas
================
Pydantic models for the normalized query and Cloud API responses.
"""

from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field

CHANNEL = "whatsapp"


class NormalizedQuery(BaseModel):
    """
    Channel-independent query forwarded to the query service.

    Serialized as-is into the backend request body.
    """

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., description="Sender's WhatsApp ID (phone number)")
    channel: str = Field(CHANNEL, description="Source channel")
    message: str = Field(..., description="Trimmed text body")
    timestamp: str = Field(..., description="ISO-8601 UTC time the message was sent")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class SendAck(BaseModel):
    """Acknowledgement returned by the Cloud API for a sent message."""

    model_config = ConfigDict(extra="allow")

    messaging_product: str = "whatsapp"
    contacts: List[Dict[str, Any]] = Field(default_factory=list)
    messages: List[Dict[str, Any]] = Field(default_factory=list)

    @property
    def message_id(self):
        if self.messages:
            return self.messages[0].get("id")
        return None
