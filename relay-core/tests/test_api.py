"""
Tests for the HTTP Surface
==========================
"""

import json
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from starlette.testclient import TestClient

from relay_core.api import client_identity, create_app
from relay_core.config import RelaySettings
from relay_core.exceptions import ConfigurationError
from relay_core.pipeline import build_runtime
from relay_core.webhook_auth import SIGNATURE_HEADER, compute_signature

from payloads import encode, text_message, webhook_payload

SECRET = "app-secret"

ENV = {
    "WHATSAPP_TOKEN": "wa-token",
    "PHONE_NUMBER_ID": "PHONE_ID",
    "VERIFY_TOKEN": "verify-me",
    "QUERY_SERVICE_URL": "https://idx.test",
    "WHATSAPP_APP_SECRET": SECRET,
    "RATE_LIMIT_MAX_REQUESTS": "3",
}


class Downstreams:
    """Mock query service and Cloud API recording what the relay sends."""

    def __init__(self, answer="Hi"):
        self.answer = answer
        self.query_status = 200
        self.queries = []
        self.sent = []

    def query_handler(self, request):
        self.queries.append(json.loads(request.content))
        if self.query_status != 200:
            return httpx.Response(self.query_status)
        return httpx.Response(200, json={"answer": self.answer})

    def whatsapp_handler(self, request):
        self.sent.append(json.loads(request.content))
        return httpx.Response(200, json={"messages": [{"id": f"wamid.{len(self.sent)}"}]})


@pytest.fixture
def downstreams():
    return Downstreams()


@pytest.fixture
def client(downstreams, events, sleeper):
    settings = RelaySettings.from_env(ENV)
    runtime = build_runtime(
        settings,
        events=events,
        query_transport=httpx.MockTransport(downstreams.query_handler),
        whatsapp_transport=httpx.MockTransport(downstreams.whatsapp_handler),
        sleep=sleeper,
    )
    return TestClient(create_app(runtime=runtime))


def post_signed(client, payload, secret=SECRET, headers=None):
    body = encode(payload)
    all_headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: compute_signature(body, secret),
    }
    all_headers.update(headers or {})
    return client.post("/webhook", content=body, headers=all_headers)


class TestWebhookVerification:
    """Tests for GET /webhook."""

    def test_echoes_challenge(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444"},
        )

        assert response.status_code == 200
        assert response.text == "1158201444"

    def test_wrong_token_is_forbidden(self, client):
        response = client.get(
            "/webhook",
            params={"hub.mode": "subscribe", "hub.verify_token": "guess", "hub.challenge": "1"},
        )

        assert response.status_code == 403


class TestWebhookReceiver:
    """Tests for POST /webhook."""

    def test_relays_message(self, client, downstreams):
        response = post_signed(client, webhook_payload([text_message("Hello")]))

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert downstreams.queries[0]["message"] == "Hello"
        assert downstreams.sent[0]["to"] == "15551234567"
        assert downstreams.sent[0]["text"]["body"] == "Hi"

    def test_bad_signature_is_unauthorized(self, client, downstreams):
        response = post_signed(client, webhook_payload([text_message("Hello")]), secret="wrong")

        assert response.status_code == 401
        assert downstreams.queries == []

    def test_invalid_json_is_bad_request(self, client):
        body = b"{oops"
        response = client.post(
            "/webhook",
            content=body,
            headers={SIGNATURE_HEADER: compute_signature(body, SECRET)},
        )

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON"}

    def test_malformed_messages_field_is_acknowledged(self, client, downstreams):
        response = post_signed(client, {"entry": [{"changes": [{"value": {"messages": 7}}]}]})

        assert response.status_code == 200
        assert downstreams.queries == []
        assert downstreams.sent == []

    def test_rate_limited_by_forwarded_ip(self, client):
        payload = webhook_payload([text_message("Hello")])
        headers = {"X-Forwarded-For": "198.51.100.9"}
        for _ in range(3):
            assert post_signed(client, payload, headers=headers).status_code == 200

        blocked = post_signed(client, payload, headers=headers)
        other = post_signed(client, payload, headers={"X-Forwarded-For": "198.51.100.10"})

        assert blocked.status_code == 429
        assert blocked.headers["Retry-After"] == "60"
        assert other.status_code == 200

    def test_caller_supplied_hops_do_not_change_identity(self, client):
        """Only the hop appended by the trusted proxy identifies the client."""
        payload = webhook_payload([text_message("Hello")])
        statuses = [
            post_signed(
                client,
                payload,
                headers={"X-Forwarded-For": f"10.0.0.{i}, 198.51.100.1"},
            ).status_code
            for i in range(5)
        ]

        assert statuses == [200, 200, 200, 429, 429]

    def test_backend_failure_still_acknowledged(self, client, downstreams):
        """The webhook caller always gets 200 once the event is admitted."""
        downstreams.query_status = 500

        response = post_signed(client, webhook_payload([text_message("Hello")]))

        assert response.status_code == 200
        assert downstreams.sent[0]["text"]["body"].startswith("Sorry, the system is currently busy")


class TestHealthAndMetrics:
    """Tests for health probes and the metrics endpoint."""

    def test_root_status(self, client):
        assert client.get("/").json() == {"status": "ok", "service": "whatsapp-relay"}

    def test_health_reports_breakers(self, client):
        body = client.get("/health").json()

        assert body["status"] == "healthy"
        assert body["components"]["breaker:query-service"]["status"] == "closed"
        assert body["components"]["rate_limiter"]["status"] == "ok"
        assert body["components"]["memory"]["status"] == "connected"

    def test_unreachable_store_degrades_health(self, client):
        store = client.app.state.runtime.rate_limiter.store
        store.ping = AsyncMock(return_value=False)

        body = client.get("/health").json()

        assert body["status"] == "degraded"
        assert body["components"]["memory"]["status"] == "error"
        store.ping.assert_awaited_once()

    def test_live_and_ready(self, client):
        assert client.get("/health/live").json() == {"status": "alive"}
        assert client.get("/health/ready").json() == {"status": "ready"}

    def test_metrics_exposed(self, client):
        post_signed(client, webhook_payload([text_message("Hello")]))

        response = client.get("/metrics")

        assert response.status_code == 200
        assert "relay_rate_limit_decisions" in response.text


class TestCreateApp:
    def test_missing_required_settings(self):
        with pytest.raises(ConfigurationError, match="WHATSAPP_TOKEN"):
            create_app(RelaySettings.from_env({}))


def make_request(forwarded=None, peer="203.0.113.7"):
    request = MagicMock()
    request.headers = {"x-forwarded-for": forwarded} if forwarded is not None else {}
    request.client.host = peer
    return request


class TestClientIdentity:
    """Tests for the rate-limit identity of a request."""

    def test_rightmost_hop_with_one_proxy(self):
        request = make_request("10.0.0.1, 10.0.0.2, 198.51.100.1")

        assert client_identity(request, trust_proxy=True) == "198.51.100.1"

    def test_counts_trusted_hops_from_the_right(self):
        request = make_request("10.0.0.1, 198.51.100.1, 192.0.2.5")

        assert client_identity(request, trust_proxy=True, trusted_hops=2) == "198.51.100.1"

    def test_more_trusted_hops_than_entries_uses_leftmost(self):
        request = make_request("198.51.100.1")

        assert client_identity(request, trust_proxy=True, trusted_hops=3) == "198.51.100.1"

    def test_peer_when_header_missing(self):
        assert client_identity(make_request(), trust_proxy=True) == "203.0.113.7"

    def test_peer_when_proxy_not_trusted(self):
        request = make_request("198.51.100.1")

        assert client_identity(request, trust_proxy=False) == "203.0.113.7"
        assert client_identity(request, trust_proxy=True, trusted_hops=0) == "203.0.113.7"
