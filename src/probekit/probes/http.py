"""HTTP client probe for httpx."""

from typing import Any

import httpx

from probekit.core.errors import InstrumentationError
from probekit.core.models import InvocationContext, Outcome, Success
from probekit.probes.base import Probe


def _request_of(ctx: InvocationContext) -> httpx.Request | None:
    request = ctx.args[0] if ctx.args else ctx.kwargs.get("request")
    return request if isinstance(request, httpx.Request) else None


class HttpxProbe(Probe):
    """Samples every request sent through an httpx client.

    Works for both ``httpx.Client`` and ``httpx.AsyncClient``: all request
    helpers (``get``, ``post``, ``request``, ...) go through ``send``.
    Responses with a 5xx status are recorded as errors.
    """

    name = "HTTP Client"
    packages = ("httpx",)
    operations = ("send",)

    def attach(self, target: Any) -> None:
        if isinstance(target, (httpx.Client, httpx.AsyncClient)):
            self.instrument_client(target)
            return
        self.agent.diagnostics.report(
            InstrumentationError(
                f"HTTP client probe cannot attach to {type(target).__name__}"
            )
        )

    def instrument_client(self, client: httpx.Client | httpx.AsyncClient) -> int:
        return self.instrument(client, {})

    def command_for(self, operation: str, ctx: InvocationContext) -> str:
        request = _request_of(ctx)
        return request.method if request is not None else operation

    def connection_for(
        self, connection: dict[str, Any], ctx: InvocationContext
    ) -> dict[str, Any]:
        request = _request_of(ctx)
        if request is None:
            return dict(connection)
        return {
            "scheme": request.url.scheme,
            "host": request.url.host,
            "port": request.url.port,
        }

    def arguments_for(self, ctx: InvocationContext) -> Any:
        request = _request_of(ctx)
        if request is None:
            return super().arguments_for(ctx)
        return [str(request.url)]

    def error_for(self, outcome: Outcome) -> str | None:
        if isinstance(outcome, Success) and isinstance(outcome.value, httpx.Response):
            response = outcome.value
            if response.is_server_error:
                return f"{response.status_code} {response.reason_phrase}"
            return None
        return super().error_for(outcome)
