"""Shared test fixtures for all test modules."""

from collections.abc import Callable
from typing import Any

import pytest

from probekit.adapters.logging import LoggingDiagnostics
from probekit.adapters.storage.in_memory import InMemoryMetricSink, InMemorySampleSink
from probekit.agent import Agent
from probekit.core.config import AgentConfig
from tests.fakes import FakeRedisClient, FakeRedisModule


@pytest.fixture
def diagnostics() -> LoggingDiagnostics:
    """Diagnostic channel that keeps every reported fault."""
    return LoggingDiagnostics()


@pytest.fixture
def sample_sink() -> InMemorySampleSink:
    return InMemorySampleSink()


@pytest.fixture
def metric_sink() -> InMemoryMetricSink:
    return InMemoryMetricSink()


@pytest.fixture
def make_agent(
    sample_sink: InMemorySampleSink,
    metric_sink: InMemoryMetricSink,
    diagnostics: LoggingDiagnostics,
) -> Callable[..., Agent]:
    """Factory fixture building an Agent wired to the in-memory sinks.

    Keyword arguments are passed to ``AgentConfig.from_options``.
    """

    def _agent(**options: Any) -> Agent:
        return Agent(
            AgentConfig.from_options(**options),
            sample_sink=sample_sink,
            metric_sink=metric_sink,
            diagnostics=diagnostics,
        )

    return _agent


@pytest.fixture
def agent(make_agent: Callable[..., Agent]) -> Agent:
    """Agent with default configuration and in-memory sinks."""
    return make_agent()


# === Fake Redis library ===


@pytest.fixture
def redis_module() -> FakeRedisModule:
    return FakeRedisModule()


@pytest.fixture
def redis_client() -> FakeRedisClient:
    return FakeRedisClient()


# === ASGI Test Fixtures ===


@pytest.fixture
def asgi_scope():
    """Factory fixture for creating ASGI scope dicts."""

    def _scope(method: str = "GET", path: str = "/test", headers=None) -> dict[str, Any]:
        return {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": b"",
            "headers": headers or [],
            "scheme": "http",
            "server": ("testserver", 80),
        }

    return _scope


@pytest.fixture
def asgi_send_capture():
    """Fixture that returns a send callable and a responses list for capture."""
    responses: list[dict[str, Any]] = []

    async def send(message: dict[str, Any]) -> None:
        responses.append(message)

    return send, responses


@pytest.fixture
def asgi_receive():
    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": b""}

    return receive
