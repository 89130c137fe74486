"""Relay gateway - FastAPI Application."""

import time
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI
from loguru import logger

from relay import __version__
from relay.api.v1 import v1_router
from relay.config import RelaySettings, get_settings
from relay.errors import register_error_handlers
from relay.schemas.openai import HealthResponse
from relay.services.backend import OllamaBackend
from relay.services.resolver import ModelResolver

__all__ = ["create_app"]


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    settings: RelaySettings = app.state.settings
    logger.info(f"Relay starting (environment={settings.environment})...")
    logger.info(f"Forwarding to Ollama at {settings.ollama_base_url}")
    logger.info(f"Model tiers: {app.state.resolver.tiers.as_dict()}")

    yield

    logger.info("Relay shutting down...")
    await app.state.backend.close()
    logger.info("Relay stopped")


def create_app(settings: RelaySettings | None = None) -> FastAPI:
    """Create the Relay FastAPI application.

    Args:
        settings: Settings to run with. Defaults to the environment-derived
                  cached settings.

    The tier table and backend client are built here, once, and shared
    read-only by every request.

    Returns:
        FastAPI application instance
    """
    settings = settings or get_settings()

    # Configure LogFire before the backend client is created
    if settings.logfire_enabled:
        from relay.observability.logfire_config import configure_logfire, instrument_httpx

        configure_logfire(service_version=__version__)
        instrument_httpx()

    app_instance = FastAPI(
        title="Relay AI Model Gateway",
        description="Local AI model gateway wrapping ollama-hosted models",
        version=__version__,
        lifespan=lifespan,
        servers=[
            {
                "url": f"http://localhost:{settings.port}",
                "description": "Development server",
            }
        ],
    )

    app_instance.state.settings = settings
    app_instance.state.resolver = ModelResolver(settings.tier_table())
    app_instance.state.backend = OllamaBackend(
        base_url=settings.ollama_base_url,
        timeout=settings.timeout_chat_seconds,
        connect_timeout=settings.backend_connect_timeout_seconds,
    )

    # Register RFC 7807 error handlers
    register_error_handlers(app_instance)

    # Include API routers
    app_instance.include_router(v1_router)

    if settings.logfire_enabled:
        from relay.observability.logfire_config import instrument_fastapi

        instrument_fastapi(app_instance)

    started_at = time.monotonic()

    @app_instance.get("/health", response_model=HealthResponse, tags=["health"])
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(
            version=__version__,
            uptime=int(time.monotonic() - started_at),
            timestamp=datetime.now(UTC).isoformat(),
        )

    return app_instance


# Lazy initialization for the uvicorn entry point
_app: FastAPI | None = None


def _get_standalone_app() -> FastAPI:
    """Get or create the standalone app instance."""
    global _app
    if _app is None:
        from relay.logging_config import intercept_standard_logging, setup_logging

        settings = get_settings()
        setup_logging(settings.log_level, settings.log_dir)
        intercept_standard_logging()
        _app = create_app(settings)
    return _app


# Allows `uvicorn relay.main:app` while deferring app creation until first access
def __getattr__(name: str) -> Any:
    """Lazy attribute access for module-level app."""
    if name == "app":
        return _get_standalone_app()
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        _get_standalone_app(),
        host=_settings.host,
        port=_settings.port,
    )
