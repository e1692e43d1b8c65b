"""
Structured Logging
==================
structlog configuration and request logging for the relay service.

Usage:
    from relay_core.observability import setup_logging, RequestLoggingMiddleware

    setup_logging(service_name="whatsapp-relay")
    app.add_middleware(RequestLoggingMiddleware)
"""

import logging
import sys
import time
import uuid

import structlog


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> None:
    """
    Configure structlog for the service.

    Args:
        service_name: Bound to every log line as ``service``
        level: Minimum log level
        json_output: Render JSON lines (production) or colored console output
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    # Third-party libraries still log through the stdlib.
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(service=service_name)


class RequestLoggingMiddleware:
    """
    ASGI middleware that binds a request id and logs each request/response.
    """

    def __init__(self, app):
        self.app = app
        self.logger = structlog.get_logger("relay_core.http")

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        request_id = headers.get(b"x-request-id", b"").decode() or uuid.uuid4().hex[:12]
        method = scope.get("method", "")
        path = scope.get("path", "")

        structlog.contextvars.bind_contextvars(request_id=request_id)
        start_time = time.perf_counter()
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            log = self.logger.info if status_code < 400 else self.logger.warning
            log(
                "http_request",
                method=method,
                path=path,
                status_code=status_code,
                duration_ms=duration_ms,
            )
            structlog.contextvars.unbind_contextvars("request_id")
