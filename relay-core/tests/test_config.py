"""
Tests for Relay Configuration
=============================
"""

import pytest

from relay_core.config import DEFAULT_FALLBACK_ANSWER, RelaySettings
from relay_core.exceptions import ConfigurationError

REQUIRED = {
    "WHATSAPP_TOKEN": "t",
    "PHONE_NUMBER_ID": "p",
    "VERIFY_TOKEN": "v",
    "QUERY_SERVICE_URL": "https://idx.test",
}


class TestRelaySettings:
    """Tests for environment parsing and validation."""

    def test_defaults(self):
        settings = RelaySettings.from_env(REQUIRED)

        assert settings.whatsapp.api_version == "v18.0"
        assert settings.whatsapp.call_policy.timeout_ms == 15000
        assert settings.whatsapp.call_policy.max_retries == 2
        assert settings.query_service.call_policy.timeout_ms == 30000
        assert settings.query_service.call_policy.max_retries == 3
        assert settings.query_service.breaker_config.failure_threshold == 5
        assert settings.query_service.breaker_config.reset_timeout_ms == 30000
        assert settings.rate_limit.max_requests == 100
        assert settings.rate_limit.redis_url is None
        assert settings.messaging.enable_splitting is True
        assert settings.messaging.chunk_delay_ms == 500
        assert settings.messaging.fallback_answer == DEFAULT_FALLBACK_ANSWER
        assert settings.whatsapp.allow_unsigned is False
        assert settings.trusted_proxy_hops == 1

    def test_overrides(self):
        env = dict(
            REQUIRED,
            ENABLE_MESSAGE_SPLITTING="false",
            QUERY_SERVICE_MAX_RETRIES="1",
            REDIS_URL="redis://cache:6379/0",
            LOG_LEVEL="debug",
        )

        settings = RelaySettings.from_env(env)

        assert settings.messaging.enable_splitting is False
        assert settings.query_service.max_retries == 1
        assert settings.rate_limit.redis_url == "redis://cache:6379/0"
        assert settings.log_level == "DEBUG"

    def test_invalid_integer(self):
        with pytest.raises(ConfigurationError, match="RATE_LIMIT_WINDOW_MS"):
            RelaySettings.from_env(dict(REQUIRED, RATE_LIMIT_WINDOW_MS="soon"))

    def test_invalid_boolean(self):
        with pytest.raises(ConfigurationError, match="TRUST_PROXY"):
            RelaySettings.from_env(dict(REQUIRED, TRUST_PROXY="maybe"))

    def test_validate_lists_missing_variables(self):
        settings = RelaySettings.from_env({"WHATSAPP_TOKEN": "t"})

        with pytest.raises(ConfigurationError) as exc_info:
            settings.validate()

        message = str(exc_info.value)
        assert "PHONE_NUMBER_ID" in message
        assert "VERIFY_TOKEN" in message
        assert "QUERY_SERVICE_URL" in message
        assert "WHATSAPP_TOKEN" not in message

    def test_validate_passes_without_secret(self):
        settings = RelaySettings.from_env(REQUIRED)

        assert settings.validate() is settings

    def test_negative_proxy_hops_rejected(self):
        settings = RelaySettings.from_env(dict(REQUIRED, TRUSTED_PROXY_HOPS="-1"))

        with pytest.raises(ConfigurationError, match="TRUSTED_PROXY_HOPS"):
            settings.validate()
