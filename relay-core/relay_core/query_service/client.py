"""
Query Service Client
====================
Forwards normalized queries to the backend and extracts the answer text.
"""

import json
from typing import Any

import structlog

from relay_core.http import ResilientHttpClient
from relay_core.whatsapp.schemas import NormalizedQuery

logger = structlog.get_logger(__name__)

QUERY_PATH = "/api/ui/query"


def build_query_url(base_url: str) -> str:
    """Append the query path unless the configured URL already points at it."""
    if QUERY_PATH in base_url:
        return base_url
    return base_url.rstrip("/") + QUERY_PATH


def extract_answer(data: Any) -> str:
    """
    Pull the answer text out of a backend response body.

    Order: ``answer``, then ``response``, then a bare string body, else the
    whole body serialized as JSON.
    """
    if isinstance(data, dict):
        if data.get("answer"):
            return str(data["answer"])
        if data.get("response"):
            return str(data["response"])
    if isinstance(data, str):
        return data
    return json.dumps(data)


class QueryServiceClient:
    """
    Backend query client.

    Retries are applied by the underlying ``ResilientHttpClient``; breaker
    protection is applied by the caller.
    """

    def __init__(self, http: ResilientHttpClient, base_url: str):
        self.http = http
        self.url = build_query_url(base_url)

    async def query(self, normalized: NormalizedQuery) -> str:
        """
        Raises:
            DownstreamError: The backend call failed after retries
        """
        response = await self.http.post_json(self.url, normalized.model_dump())
        try:
            data = response.json()
        except ValueError:
            data = response.text
        answer = extract_answer(data)
        logger.debug(
            "query_answer_received",
            user_id=normalized.user_id,
            answer_length=len(answer),
        )
        return answer

    async def aclose(self) -> None:
        await self.http.aclose()
