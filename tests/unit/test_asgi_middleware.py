"""Tests for ASGIProbeMiddleware."""

from __future__ import annotations

import pytest

from probekit.adapters.frameworks.asgi import (
    ASGIProbeMiddleware,
    Receive,
    Scope,
    Send,
    _extract_request_id,
)
from probekit.core.errors import InstrumentationError


def _app(status: int = 200, body: bytes = b"OK"):
    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        await send({"type": "http.response.start", "status": status, "headers": []})
        await send({"type": "http.response.body", "body": body})

    return app


async def failing_app(scope: Scope, receive: Receive, send: Send) -> None:
    raise RuntimeError("handler crashed")


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.RequestId")
def test_extract_request_id_from_header() -> None:
    scope = {"headers": [(b"x-request-id", b"abc-123")]}

    assert _extract_request_id(scope) == "abc-123"


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.RequestId")
def test_extract_request_id_generates_uuid() -> None:
    request_id = _extract_request_id({"headers": []})

    assert len(request_id) == 36


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.Sample")
async def test_request_produces_root_sample(
    agent, sample_sink, asgi_scope, asgi_receive, asgi_send_capture
) -> None:
    send, responses = asgi_send_capture
    middleware = ASGIProbeMiddleware(_app(body=b"hello"), agent)

    await middleware(
        asgi_scope("GET", "/users", [(b"x-request-id", b"req-1")]), asgi_receive, send
    )

    assert responses[0]["status"] == 200
    [sample] = sample_sink.drain()
    assert sample.type == "HTTP"
    assert sample.command == "GET /users"
    assert sample.group == "HTTP: /users"
    assert sample.relative is False
    assert sample.error is None
    assert sample.connection == {"host": "testserver", "port": 80, "scheme": "http"}
    assert sample.arguments["request_id"] == "req-1"
    assert sample.arguments["status_code"] == 200
    assert sample.arguments["response_body_size"] == 5


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.Errors")
async def test_server_error_status_is_recorded(
    agent, sample_sink, asgi_scope, asgi_receive, asgi_send_capture
) -> None:
    send, _ = asgi_send_capture
    middleware = ASGIProbeMiddleware(_app(status=503), agent)

    await middleware(asgi_scope(), asgi_receive, send)

    [sample] = sample_sink.drain()
    assert sample.error == "HTTP 503"


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.Errors")
async def test_client_error_status_is_not_an_error(
    agent, sample_sink, asgi_scope, asgi_receive, asgi_send_capture
) -> None:
    send, _ = asgi_send_capture
    middleware = ASGIProbeMiddleware(_app(status=404), agent)

    await middleware(asgi_scope(), asgi_receive, send)

    [sample] = sample_sink.drain()
    assert sample.error is None


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.Errors")
async def test_exception_is_recorded_and_reraised(
    agent, sample_sink, asgi_scope, asgi_receive, asgi_send_capture
) -> None:
    send, _ = asgi_send_capture
    middleware = ASGIProbeMiddleware(failing_app, agent)

    with pytest.raises(RuntimeError, match="handler crashed"):
        await middleware(asgi_scope(), asgi_receive, send)

    [sample] = sample_sink.drain()
    assert sample.error == "RuntimeError: handler crashed"
    assert sample.arguments["status_code"] == 500


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.ExcludePaths")
async def test_excluded_paths_are_not_sampled(
    agent, sample_sink, asgi_scope, asgi_receive, asgi_send_capture
) -> None:
    send, responses = asgi_send_capture
    middleware = ASGIProbeMiddleware(_app(), agent, exclude_paths=["/health", "/internal/*"])

    await middleware(asgi_scope(path="/health"), asgi_receive, send)
    await middleware(asgi_scope(path="/internal/stats"), asgi_receive, send)
    await middleware(asgi_scope(path="/orders"), asgi_receive, send)

    assert len(responses) == 6
    assert [s.command for s in sample_sink.drain()] == ["GET /orders"]


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.Config")
async def test_profiler_switch_and_setter(
    make_agent, sample_sink, asgi_scope, asgi_receive, asgi_send_capture
) -> None:
    send, _ = asgi_send_capture
    agent = make_agent(transaction_profiler=False)
    middleware = ASGIProbeMiddleware(_app(), agent)

    await middleware(asgi_scope(), asgi_receive, send)
    assert len(sample_sink) == 0

    middleware.set_record_samples(True)
    await middleware(asgi_scope(), asgi_receive, send)
    assert len(sample_sink) == 1


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.Passthrough")
async def test_non_http_scope_passes_through(agent, sample_sink, asgi_receive) -> None:
    seen: list[str] = []

    async def app(scope: Scope, receive: Receive, send: Send) -> None:
        seen.append(scope["type"])

    async def send(message) -> None:
        pass

    await ASGIProbeMiddleware(app, agent)({"type": "lifespan"}, asgi_receive, send)

    assert seen == ["lifespan"]
    assert len(sample_sink) == 0


@pytest.mark.tier(1)
@pytest.mark.tra("Adapter.ASGI.Middleware.Faults")
async def test_recording_fault_is_reported_not_raised(
    agent, diagnostics, asgi_scope, asgi_receive, asgi_send_capture, monkeypatch
) -> None:
    send, responses = asgi_send_capture

    def broken_new_sample():
        raise MemoryError("no room")

    monkeypatch.setattr(agent.samples, "new_sample", broken_new_sample)
    middleware = ASGIProbeMiddleware(_app(), agent)

    await middleware(asgi_scope(), asgi_receive, send)

    assert responses[0]["status"] == 200
    assert isinstance(diagnostics.recent[-1], InstrumentationError)
