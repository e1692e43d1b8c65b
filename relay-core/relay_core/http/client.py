"""
Resilient HTTP Client
=====================
httpx client that runs every request through the relay's timeout and
retry wrapper and maps transport failures onto the relay exceptions.
"""

import asyncio
from typing import Any, Dict, Optional

import httpx

from relay_core.exceptions import (
    ClientError,
    DownstreamError,
    OperationTimeoutError,
    RateLimitedError,
    ServerError,
    TransientNetworkError,
)
from relay_core.observability.events import RelayEvents
from relay_core.retry import CallPolicy, ResilientCaller
from relay_core.retry.executor import SleepFunc


class ResilientHttpClient:
    """
    Async HTTP client for one downstream dependency.

    Features:
    - Per-attempt timeout and policy-driven retries (ResilientCaller).
    - Connection pooling (via httpx.AsyncClient).
    - Standardized exception mapping onto the relay's failure taxonomy.
    """

    def __init__(
        self,
        service_name: str,
        policy: CallPolicy,
        base_url: str = "",
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.AsyncClient] = None,
        events: Optional[RelayEvents] = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self.service_name = service_name
        self.policy = policy

        default_headers = {
            "User-Agent": f"whatsapp-relay/{service_name}",
            "Accept": "application/json",
        }
        default_headers.update(headers or {})

        self.client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=policy.timeout_ms / 1000.0,
            headers=default_headers,
        )
        self._caller = ResilientCaller(service_name, events=events, sleep=sleep)

    async def aclose(self):
        """Close the underlying HTTP client."""
        await self.client.aclose()

    def _map_exception(self, exc: httpx.HTTPError) -> Exception:
        """Map httpx exceptions to downstream exceptions."""
        if isinstance(exc, httpx.TimeoutException):
            return OperationTimeoutError("Request timed out", service=self.service_name)
        if isinstance(exc, (httpx.ConnectError, httpx.NetworkError, httpx.RemoteProtocolError)):
            return TransientNetworkError(f"Failed to connect: {exc}", service=self.service_name)
        return DownstreamError(f"Unexpected transport error: {exc}", service=self.service_name)

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        details = response.text[:500]
        if status == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitedError(
                "Rate limited",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
                service=self.service_name,
                status_code=status,
                details=details,
            )
        if status >= 500:
            raise ServerError("Server error", service=self.service_name, status_code=status, details=details)
        raise ClientError(f"HTTP {status} Error", service=self.service_name, status_code=status, details=details)

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Execute a request with retries and error mapping.

        Returns:
            The successful response

        Raises:
            DownstreamError: Any subclass, after the retry budget is spent
        """

        async def operation() -> httpx.Response:
            try:
                return await self.client.request(method, url, **kwargs)
            except httpx.HTTPError as e:
                raise self._map_exception(e) from e

        response = await self._caller.execute(operation, self.policy)
        self._raise_for_status(response)
        return response

    async def post_json(self, url: str, payload: Any, **kwargs: Any) -> httpx.Response:
        return await self.request("POST", url, json=payload, **kwargs)
