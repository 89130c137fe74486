"""Pytest fixtures for Relay tests."""

import os
from collections.abc import AsyncGenerator

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

# Set test environment before importing app modules
os.environ["RELAY_DISABLE_TELEMETRY"] = "true"
os.environ["RELAY_LOGFIRE_ENABLED"] = "false"

from relay.config import RelaySettings
from relay.dependencies import get_backend
from relay.main import create_app
from relay.models.ir import (
    Finish,
    GenerationRequest,
    GenerationResult,
    StreamEvent,
)
from relay.services.resolver import ModelResolver, TierTable


class FakeBackend:
    """In-memory stand-in for OllamaBackend.

    Records every generation request and replays canned results/events.
    ``stream_error`` is raised after the canned events have been yielded.
    """

    def __init__(
        self,
        result: GenerationResult | None = None,
        events: list[StreamEvent] | None = None,
        error: Exception | None = None,
        stream_error: Exception | None = None,
    ) -> None:
        self.result = result or GenerationResult(text="Hello!", finish_reason="stop")
        self.events = events if events is not None else [Finish(reason="stop")]
        self.error = error
        self.stream_error = stream_error
        self.requests: list[GenerationRequest] = []
        self.stream_closed = False

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.result

    async def stream(self, request: GenerationRequest) -> AsyncGenerator[StreamEvent, None]:
        self.requests.append(request)
        try:
            if self.error is not None:
                raise self.error
            for event in self.events:
                yield event
            if self.stream_error is not None:
                raise self.stream_error
        finally:
            self.stream_closed = True

    async def close(self) -> None:
        pass


@pytest.fixture(autouse=True)
def reset_sse_app_status():
    """Reset sse-starlette's exit event so it never outlives a test's event loop."""
    from sse_starlette.sse import AppStatus

    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None
    yield
    if hasattr(AppStatus, "should_exit_event"):
        AppStatus.should_exit_event = None


@pytest.fixture(autouse=True)
def isolate_gateway_env(monkeypatch):
    """Keep backend, tier and auth variables from the host shell out of tests."""
    for name in (
        "OLLAMA_BASE_URL",
        "MODEL_SMALL",
        "MODEL_MEDIUM",
        "MODEL_LARGE",
        "API_KEY",
        "LOCAL_BYPASS",
    ):
        monkeypatch.delenv(name, raising=False)
        monkeypatch.delenv(f"RELAY_{name}", raising=False)


@pytest.fixture
def settings() -> RelaySettings:
    """Settings with a fixed tier table and no API key."""
    return RelaySettings(
        _env_file=None,
        ollama_base_url="http://ollama.test/v1",
        model_small="llama3.2:3b",
        model_medium="qwen2.5:32b",
        model_large="llama3.3:70b",
        api_key="",
        local_bypass=True,
        timeout_chat_seconds=30,
    )


@pytest.fixture
def resolver(settings) -> ModelResolver:
    return ModelResolver(settings.tier_table())


@pytest.fixture
def tier_table() -> TierTable:
    return TierTable({"small": "llama3.2:3b", "medium": "qwen2.5:32b", "large": "llama3.3:70b"})


@pytest.fixture
def fake_backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def app(settings, fake_backend):
    """Relay app wired to the fake backend."""
    application = create_app(settings)
    application.dependency_overrides[get_backend] = lambda: fake_backend
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Synchronous test client (peer host is not loopback)."""
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
async def async_client(app):
    """Async test client over ASGITransport (peer host is 127.0.0.1)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def chat_payload() -> dict:
    """Minimal valid chat completion request body."""
    return {
        "model": "small",
        "messages": [
            {"role": "system", "content": "You are terse."},
            {"role": "user", "content": "Say hello"},
        ],
    }
