"""
Relay Configuration
===================
Settings loaded from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

import structlog

from relay_core.circuit_breaker import BreakerConfig
from relay_core.exceptions import ConfigurationError
from relay_core.retry import CallPolicy

logger = structlog.get_logger(__name__)

DEFAULT_FALLBACK_ANSWER = (
    "Sorry, the system is currently busy. Please try again in a few moments."
)

REQUIRED_VARIABLES = ("WHATSAPP_TOKEN", "PHONE_NUMBER_ID", "VERIFY_TOKEN", "QUERY_SERVICE_URL")
RECOMMENDED_VARIABLES = ("WHATSAPP_APP_SECRET",)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def _get_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}")


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name, "").strip().lower()
    if raw == "":
        return default
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"{name} must be a boolean, got {raw!r}")


@dataclass
class WhatsAppSettings:
    """Cloud API credentials and outbound call policy."""
    token: str = ""
    phone_number_id: str = ""
    verify_token: str = ""
    app_secret: str = ""
    allow_unsigned: bool = False
    api_version: str = "v18.0"
    timeout_ms: int = 15000
    max_retries: int = 2
    retry_delay_ms: int = 1000

    @property
    def call_policy(self) -> CallPolicy:
        return CallPolicy(
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
            retry_delay_ms=self.retry_delay_ms,
        )


@dataclass
class QueryServiceSettings:
    """Backend endpoint, its call policy and its circuit breaker."""
    url: str = ""
    timeout_ms: int = 30000
    max_retries: int = 3
    retry_delay_ms: int = 1000
    breaker_failure_threshold: int = 5
    breaker_success_threshold: int = 2
    breaker_timeout_ms: int = 60000
    breaker_reset_timeout_ms: int = 30000

    @property
    def call_policy(self) -> CallPolicy:
        return CallPolicy(
            timeout_ms=self.timeout_ms,
            max_retries=self.max_retries,
            retry_delay_ms=self.retry_delay_ms,
        )

    @property
    def breaker_config(self) -> BreakerConfig:
        return BreakerConfig(
            failure_threshold=self.breaker_failure_threshold,
            success_threshold=self.breaker_success_threshold,
            timeout_ms=self.breaker_timeout_ms,
            reset_timeout_ms=self.breaker_reset_timeout_ms,
        )


@dataclass
class RateLimitSettings:
    window_ms: int = 60000
    max_requests: int = 100
    recheck_ms: int = 5000
    redis_url: Optional[str] = None


@dataclass
class MessagingSettings:
    enable_splitting: bool = True
    max_length: int = 4096
    chunk_delay_ms: int = 500
    fallback_answer: str = DEFAULT_FALLBACK_ANSWER


@dataclass
class RelaySettings:
    """Top-level settings for one relay process."""
    whatsapp: WhatsAppSettings = field(default_factory=WhatsAppSettings)
    query_service: QueryServiceSettings = field(default_factory=QueryServiceSettings)
    rate_limit: RateLimitSettings = field(default_factory=RateLimitSettings)
    messaging: MessagingSettings = field(default_factory=MessagingSettings)
    trust_proxy: bool = True
    trusted_proxy_hops: int = 1
    service_name: str = "whatsapp-relay"
    log_level: str = "INFO"
    log_json: bool = True

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RelaySettings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read instead of ``os.environ``

        Raises:
            ConfigurationError: A numeric or boolean variable does not parse
        """
        env = os.environ if environ is None else environ

        return cls(
            whatsapp=WhatsAppSettings(
                token=env.get("WHATSAPP_TOKEN", ""),
                phone_number_id=env.get("PHONE_NUMBER_ID", ""),
                verify_token=env.get("VERIFY_TOKEN", ""),
                app_secret=env.get("WHATSAPP_APP_SECRET", ""),
                allow_unsigned=_get_bool(env, "ALLOW_UNSIGNED_WEBHOOKS", False),
                api_version=env.get("WHATSAPP_API_VERSION", "v18.0"),
                timeout_ms=_get_int(env, "WHATSAPP_API_TIMEOUT_MS", 15000),
                max_retries=_get_int(env, "WHATSAPP_API_MAX_RETRIES", 2),
                retry_delay_ms=_get_int(env, "WHATSAPP_API_RETRY_DELAY_MS", 1000),
            ),
            query_service=QueryServiceSettings(
                url=env.get("QUERY_SERVICE_URL", ""),
                timeout_ms=_get_int(env, "QUERY_SERVICE_TIMEOUT_MS", 30000),
                max_retries=_get_int(env, "QUERY_SERVICE_MAX_RETRIES", 3),
                retry_delay_ms=_get_int(env, "QUERY_SERVICE_RETRY_DELAY_MS", 1000),
                breaker_failure_threshold=_get_int(env, "QUERY_BREAKER_FAILURE_THRESHOLD", 5),
                breaker_success_threshold=_get_int(env, "QUERY_BREAKER_SUCCESS_THRESHOLD", 2),
                breaker_timeout_ms=_get_int(env, "QUERY_BREAKER_TIMEOUT_MS", 60000),
                breaker_reset_timeout_ms=_get_int(env, "QUERY_BREAKER_RESET_TIMEOUT_MS", 30000),
            ),
            rate_limit=RateLimitSettings(
                window_ms=_get_int(env, "RATE_LIMIT_WINDOW_MS", 60000),
                max_requests=_get_int(env, "RATE_LIMIT_MAX_REQUESTS", 100),
                recheck_ms=_get_int(env, "RATE_LIMIT_RECHECK_MS", 5000),
                redis_url=env.get("REDIS_URL") or None,
            ),
            messaging=MessagingSettings(
                enable_splitting=_get_bool(env, "ENABLE_MESSAGE_SPLITTING", True),
                max_length=_get_int(env, "MESSAGE_MAX_LENGTH", 4096),
                chunk_delay_ms=_get_int(env, "CHUNK_DELAY_MS", 500),
                fallback_answer=env.get("FALLBACK_ANSWER") or DEFAULT_FALLBACK_ANSWER,
            ),
            trust_proxy=_get_bool(env, "TRUST_PROXY", True),
            trusted_proxy_hops=_get_int(env, "TRUSTED_PROXY_HOPS", 1),
            service_name=env.get("SERVICE_NAME", "whatsapp-relay"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_json=_get_bool(env, "LOG_JSON", True),
        )

    def missing_required(self) -> List[str]:
        values = {
            "WHATSAPP_TOKEN": self.whatsapp.token,
            "PHONE_NUMBER_ID": self.whatsapp.phone_number_id,
            "VERIFY_TOKEN": self.whatsapp.verify_token,
            "QUERY_SERVICE_URL": self.query_service.url,
        }
        return [name for name in REQUIRED_VARIABLES if not values[name]]

    def validate(self) -> "RelaySettings":
        """
        Check that required settings are present.

        Raises:
            ConfigurationError: One or more required variables are missing
        """
        missing = self.missing_required()
        if missing:
            raise ConfigurationError(
                "Missing required environment variables: " + ", ".join(missing)
            )

        if not self.whatsapp.app_secret:
            logger.warning(
                "webhook_secret_missing",
                variables=list(RECOMMENDED_VARIABLES),
                allow_unsigned=self.whatsapp.allow_unsigned,
            )
        if self.messaging.max_length < 64:
            raise ConfigurationError("MESSAGE_MAX_LENGTH must be at least 64")
        if self.trusted_proxy_hops < 0:
            raise ConfigurationError("TRUSTED_PROXY_HOPS must not be negative")
        return self
