"""ASGI middleware recording one root sample per HTTP request.

Framework-agnostic: wraps any ASGI application (FastAPI, Starlette,
Django's ASGI handler) without depending on the framework itself.
Operation samples recorded by client probes while the request runs are
relative samples; the request sample produced here is the root.
"""

import fnmatch
import uuid
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from probekit.core.errors import InstrumentationError
from probekit.core.sampling import Timer

if TYPE_CHECKING:
    from probekit.agent import Agent

# ASGI type aliases
Scope = dict[str, Any]
Receive = Callable[[], Coroutine[Any, Any, dict[str, Any]]]
Send = Callable[[dict[str, Any]], Coroutine[Any, Any, None]]
ASGIApp = Callable[[Scope, Receive, Send], Coroutine[Any, Any, None]]

SAMPLE_TYPE = "HTTP"


def _extract_request_id(scope: Scope, header_name: str = "X-Request-ID") -> str:
    """Extract or generate a request ID from ASGI scope headers.

    Searches for the specified header (case-insensitive). If not found,
    generates a new UUID.

    Args:
        scope: ASGI scope dictionary containing request metadata.
        header_name: Name of the header to search for (default: "X-Request-ID").

    Returns:
        Request ID string (either from header or newly generated UUID).
    """
    header_bytes = header_name.lower().encode()
    headers: list[tuple[bytes, bytes]] = scope.get("headers", [])
    for name, value in headers:
        if name.lower() == header_bytes:
            return str(value.decode("utf-8", errors="replace"))

    return str(uuid.uuid4())


def _error_for(captured: dict[str, Any]) -> str | None:
    """Error message for a finished request, or None if it succeeded.

    Raised exceptions and 5xx responses are errors; 4xx are not.
    """
    exc = captured["exception"]
    if exc is not None:
        return f"{type(exc).__name__}: {exc!s}"
    status = captured["status"]
    if status is not None and 500 <= status < 600:
        return f"HTTP {status}"
    return None


def _connection_of(scope: Scope) -> dict[str, Any]:
    server = scope.get("server") or (None, None)
    return {"host": server[0], "port": server[1], "scheme": scope.get("scheme", "http")}


class ASGIProbeMiddleware:
    """ASGI middleware that times each HTTP request as a root sample.

    Example:
        ```python
        agent = Agent()
        app = ASGIProbeMiddleware(app, agent, exclude_paths=["/health"])
        ```
    """

    def __init__(
        self,
        app: ASGIApp,
        agent: "Agent",
        exclude_paths: list[str] | None = None,
        request_id_header: str = "X-Request-ID",
    ) -> None:
        """Initialize the middleware.

        Args:
            app: The ASGI application to wrap.
            agent: Agent whose sampling engine records the samples.
            exclude_paths: Paths not to sample. Supports exact matches and
                          wildcard patterns (e.g., "/internal/*").
            request_id_header: Header the request ID is taken from
                             (default: "X-Request-ID").
        """
        self.app = app
        self.agent = agent
        self.exclude_paths = exclude_paths or []
        self.request_id_header = request_id_header
        self.record_samples = agent.config.features.transaction_profiler

    def set_record_samples(self, enabled: bool) -> None:
        """Set whether to record request samples.

        Args:
            enabled: True to record a sample per request, False to pass
                    requests through untouched.
        """
        self.record_samples = enabled

    def set_exclude_paths(self, patterns: list[str]) -> None:
        """Replace the excluded path patterns."""
        self.exclude_paths = list(patterns)

    def _path_excluded(self, path: str) -> bool:
        """Check if path matches any pattern in exclude_paths."""
        return any(fnmatch.fnmatch(path, pattern) for pattern in self.exclude_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """ASGI callable interface that processes requests through the wrapped app."""
        if (
            scope["type"] != "http"
            or not self.record_samples
            or self._path_excluded(scope["path"])
        ):
            await self.app(scope, receive, send)
            return

        command = f"{scope['method']} {scope['path']}"
        timer = self.agent.samples.start_timer(SAMPLE_TYPE, command, root=True)
        request_id = _extract_request_id(scope, self.request_id_header)
        captured: dict[str, Any] = {"status": None, "body_size": 0, "exception": None}

        async def wrapped_send(message: dict[str, Any]) -> None:
            if message["type"] == "http.response.start":
                captured["status"] = message["status"]
            elif message["type"] == "http.response.body":
                captured["body_size"] += len(message.get("body", b""))
            await send(message)

        try:
            await self.app(scope, receive, wrapped_send)
        except Exception as e:
            captured["exception"] = e
            captured["status"] = 500

        try:
            self._record(scope, command, timer, request_id, captured)
        except Exception as exc:
            error = InstrumentationError("recording request sample failed", command)
            error.__cause__ = exc
            self.agent.diagnostics.report(error)

        if captured["exception"] is not None:
            raise captured["exception"]

    def _record(
        self,
        scope: Scope,
        command: str,
        timer: Timer,
        request_id: str,
        captured: dict[str, Any],
    ) -> None:
        """Finish the request timer and deliver its sample if retained."""
        samples = self.agent.samples
        error = _error_for(captured)
        if not samples.finish(timer, error is not None):
            return
        if samples.should_skip(timer):
            return

        sample = samples.new_sample()
        sample.type = SAMPLE_TYPE
        sample.connection = _connection_of(scope)
        sample.command = command
        sample.arguments = samples.truncate(
            {
                "request_id": request_id,
                "query": scope.get("query_string", b"").decode(errors="replace"),
                "status_code": captured["status"] or 0,
                "response_body_size": captured["body_size"],
            }
        )
        sample.error = error
        sample.group = f"{SAMPLE_TYPE}: {scope['path']}"
        sample.label = f"{SAMPLE_TYPE}: {command}"
        samples.add(timer, sample)
