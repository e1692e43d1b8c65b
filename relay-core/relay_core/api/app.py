"""
Relay Application
=================
FastAPI application factory for the WhatsApp relay.
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI

from relay_core import __version__
from relay_core.config import RelaySettings
from relay_core.observability import RequestLoggingMiddleware, setup_logging
from relay_core.pipeline import RelayRuntime, build_runtime

from .health import create_health_router
from .webhook import router as webhook_router

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[RelaySettings] = None,
    runtime: Optional[RelayRuntime] = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        settings: Settings to use; read from the environment when omitted
        runtime: Pre-built runtime (tests). When omitted the runtime is
            built on startup and closed on shutdown.

    Raises:
        ConfigurationError: Required settings are missing
    """
    if runtime is not None:
        settings = runtime.settings
    elif settings is None:
        settings = RelaySettings.from_env()
    settings.validate()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = getattr(app.state, "runtime", None) is None
        if owned:
            app.state.runtime = build_runtime(settings)
        logger.info("relay_started", service=settings.service_name, version=__version__)
        try:
            yield
        finally:
            if owned:
                await app.state.runtime.aclose()
                app.state.runtime = None
            logger.info("relay_stopped", service=settings.service_name)

    app = FastAPI(
        title="WhatsApp Relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.runtime = runtime
    app.add_middleware(RequestLoggingMiddleware)
    app.include_router(webhook_router)
    app.include_router(create_health_router(version=__version__))
    return app


def create_app_from_env() -> FastAPI:
    """Entry point for ``uvicorn --factory``."""
    settings = RelaySettings.from_env()
    setup_logging(settings.service_name, settings.log_level, settings.log_json)
    return create_app(settings)
