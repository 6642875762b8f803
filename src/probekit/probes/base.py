"""Base classes for library probes.

A probe is a static declaration (the operations to instrument and, for
servers with a status query, the fields that become metrics) plus the
runtime glue that turns each instrumented call into a sample.
"""

import functools
import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, ClassVar

from probekit.core.models import InvocationContext, Outcome
from probekit.core.polling import StatusPoller
from probekit.core.ports import StatusClientFactory
from probekit.core.registry import MonitoredResource, ResourceRegistry, StatusField

if TYPE_CHECKING:
    from probekit.agent import Agent

logger = logging.getLogger(__name__)

_MARKER_ATTR = "_probekit_probes"


class Probe:
    """Instruments a fixed list of operations on client objects.

    Subclasses set ``name`` (the sample type), ``packages`` (names the
    probe is registered under) and ``operations``, and implement
    ``attach``.
    """

    name: ClassVar[str] = ""
    packages: ClassVar[tuple[str, ...]] = ()
    operations: ClassVar[Sequence[str]] = ()

    def __init__(self, agent: "Agent") -> None:
        self.agent = agent
        self.interceptor = agent.interceptor
        self.samples = agent.samples

    def attach(self, target: Any) -> None:
        """Start instrumenting a library object (module, factory or client)."""
        raise NotImplementedError

    async def start(self) -> None:
        """Start background work (status polling). No-op by default."""

    async def stop(self) -> None:
        """Stop background work. No-op by default."""

    def instrument(self, client: Any, connection: dict[str, Any]) -> int:
        """Attach sampling hooks to every declared operation of ``client``.

        Instrumenting the same client twice is a no-op.

        Returns:
            Number of operations instrumented.
        """
        marked: set[str] = getattr(client, _MARKER_ATTR, None) or set()
        if self.name in marked:
            return 0

        count = 0
        for operation in self.operations:
            hook = functools.partial(self._before, operation, connection)
            if self.interceptor.attach_before(client, operation, hook):
                count += 1

        try:
            setattr(client, _MARKER_ATTR, marked | {self.name})
        except (AttributeError, TypeError):
            logger.debug("cannot mark %s as instrumented", type(client).__name__)
        return count

    # Per-call description, overridable

    def command_for(self, operation: str, ctx: InvocationContext) -> str:
        return operation

    def connection_for(
        self, connection: dict[str, Any], ctx: InvocationContext
    ) -> dict[str, Any]:
        return dict(connection)

    def arguments_for(self, ctx: InvocationContext) -> Any:
        """Raw argument snapshot; truncated only if the sample is kept."""
        arguments: list[Any] = list(ctx.args)
        if ctx.kwargs:
            arguments.append(dict(ctx.kwargs))
        return arguments

    def error_for(self, outcome: Outcome) -> str | None:
        """Error message for a completed call, or None on success."""
        if outcome.failed:
            return outcome.message  # type: ignore[union-attr]
        return None

    # Hooks

    def _before(
        self,
        operation: str,
        connection: dict[str, Any],
        target: Any,
        ctx: InvocationContext,
    ) -> None:
        command = self.command_for(operation, ctx)
        ctx.timer = self.samples.start_timer(self.name, command)
        ctx.stack = self.samples.stack_trace()
        ctx.snapshot = self.arguments_for(ctx)
        complete = functools.partial(
            self._complete, command, self.connection_for(connection, ctx)
        )
        if not self.interceptor.mark_async_completion(ctx, -1, complete):
            self.interceptor.on_complete(ctx, complete)

    def _complete(
        self,
        command: str,
        connection: dict[str, Any],
        target: Any,
        ctx: InvocationContext,
        outcome: Outcome,
    ) -> None:
        error = self.error_for(outcome)
        if not self.samples.finish(ctx.timer, error is not None):
            return
        if self.samples.should_skip(ctx.timer):
            return

        sample = self.samples.new_sample()
        sample.type = self.name
        sample.connection = connection
        sample.command = command
        sample.arguments = self.samples.truncate(ctx.snapshot)
        sample.stack_trace = self.samples.format_stack(ctx.stack)
        sample.error = error
        sample.group = f"{self.name}: {command}"
        sample.label = f"{self.name}: {command}"

        self.samples.add(ctx.timer, sample)


class MonitoringProbe(Probe):
    """Probe that also polls the servers its clients connect to.

    Subclasses declare ``status_fields``, ``scope`` (metric scope prefix)
    and ``feature`` (the config switch enabling server metrics), and
    implement ``status_factory``.
    """

    status_fields: ClassVar[Sequence[StatusField]] = ()
    scope: ClassVar[str] = ""
    feature: ClassVar[str] = ""

    def __init__(self, agent: "Agent") -> None:
        super().__init__(agent)
        self.resources = ResourceRegistry(limit=agent.config.resource_limit)
        self._poller: StatusPoller | None = None

    @property
    def metrics_enabled(self) -> bool:
        return bool(getattr(self.agent.config.features, self.feature, False))

    def monitor_server(self, host: str, port: int) -> MonitoredResource | None:
        """Register a server for polling (silently capped)."""
        if not self.metrics_enabled:
            return None
        return self.resources.register(host, port)

    def status_factory(self) -> StatusClientFactory | None:
        """Factory of short-lived status clients, or None if unavailable."""
        return None

    @property
    def poller(self) -> StatusPoller | None:
        if self._poller is None:
            factory = self.status_factory()
            if factory is None:
                return None
            self._poller = StatusPoller(
                registry=self.resources,
                client_factory=factory,
                fields=self.status_fields,
                aggregator=self.agent.metrics,
                diagnostics=self.agent.diagnostics,
                scope=self.scope,
                interval=self.agent.config.poll_interval,
            )
        return self._poller

    async def poll(self) -> int:
        """Poll every monitored server once."""
        poller = self.poller
        if poller is None:
            return 0
        return await poller.poll_once()

    async def start(self) -> None:
        if not self.metrics_enabled:
            return
        poller = self.poller
        if poller is None:
            logger.debug("%s probe has no status client factory, not polling", self.name)
            return
        await poller.start()

    async def stop(self) -> None:
        if self._poller is not None:
            await self._poller.stop()
