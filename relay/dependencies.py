"""FastAPI dependencies for common operations."""

import secrets
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from relay.config import RelaySettings
from relay.services.backend import OllamaBackend
from relay.services.resolver import ModelResolver

LOOPBACK_HOSTS = frozenset({"127.0.0.1", "::1", "localhost"})

# Bearer token extraction; missing headers are handled by require_api_key
bearer_scheme = HTTPBearer(auto_error=False)


def get_app_settings(request: Request) -> RelaySettings:
    """Get the settings the application was created with."""
    return request.app.state.settings


def get_backend(request: Request) -> OllamaBackend:
    """Get the shared backend client created at startup."""
    return request.app.state.backend


def get_resolver(request: Request) -> ModelResolver:
    """Get the model resolver built from the startup tier table."""
    return request.app.state.resolver


def is_loopback(request: Request) -> bool:
    """Check whether the request comes from the local machine."""
    return request.client is not None and request.client.host in LOOPBACK_HOSTS


async def require_api_key(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    settings: Annotated[RelaySettings, Depends(get_app_settings)],
) -> None:
    """Gate /v1 routes behind the configured API key.

    Passes when local bypass is on and the peer is a loopback address, or
    when no key is configured at all.

    Raises:
        HTTPException 401: If the bearer token is missing or wrong.
    """
    if settings.local_bypass and is_loopback(request):
        return
    if not settings.api_key:
        return

    token = credentials.credentials if credentials is not None else None
    if token is None or not secrets.compare_digest(token.encode(), settings.api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API key",
            headers={"WWW-Authenticate": "Bearer"},
        )
