"""LogFire configuration for the Relay gateway."""

import os
from typing import TYPE_CHECKING, Literal

import logfire
from loguru import logger

if TYPE_CHECKING:  # pragma: no cover
    from fastapi import FastAPI

_configured = False


def configure_logfire(
    service_name: str = "relay",
    service_version: str | None = None,
) -> None:
    """Configure LogFire with service metadata.

    MUST be called before creating the FastAPI app or the backend client.
    Uses send_to_logfire='if-token-present' for offline development.
    """
    global _configured
    if _configured:
        return

    # Disable telemetry when running tests or explicitly opted out
    telemetry_disabled = os.environ.get("RELAY_DISABLE_TELEMETRY", "").lower() in (
        "true",
        "1",
        "yes",
    )
    send_mode: bool | Literal["if-token-present"] = (
        False if telemetry_disabled else "if-token-present"
    )

    logfire.configure(
        service_name=service_name,
        service_version=service_version,
        send_to_logfire=send_mode,
    )
    _configured = True
    logger.info(f"LogFire configured for {service_name}")


def instrument_fastapi(app: "FastAPI") -> None:
    """Add FastAPI instrumentation for request tracing."""
    logfire.instrument_fastapi(app)
    logger.info("LogFire FastAPI instrumentation enabled")


def instrument_httpx() -> None:
    """Add HTTPX instrumentation for backend call tracing.

    Instruments ALL httpx clients globally.
    """
    logfire.instrument_httpx()
    logger.info("LogFire HTTPX instrumentation enabled")
