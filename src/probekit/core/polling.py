"""Periodic status polling of monitored resources."""

import asyncio
import inspect
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from probekit.core.errors import MonitoringError
from probekit.core.logs import log_exception
from probekit.core.metrics import MetricAggregator
from probekit.core.models import MetricKind
from probekit.core.ports import DiagnosticPort, StatusClientFactory
from probekit.core.registry import MonitoredResource, ResourceRegistry, StatusField

logger = logging.getLogger(__name__)


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


async def _close(client: Any) -> None:
    for name in ("aclose", "close", "quit"):
        closer = getattr(client, name, None)
        if callable(closer):
            await _maybe_await(closer())
            return


class StatusPoller:
    """Polls every registered resource and feeds status fields to metrics.

    Args:
        registry: Resources to poll.
        client_factory: Opens a short-lived status client for (host, port).
        fields: Status fields to turn into metrics.
        aggregator: Receives each field value.
        diagnostics: Receives per-resource polling faults.
        scope: Prefix of the metric scope, e.g. "Redis server".
        interval: Seconds between polls.
    """

    def __init__(
        self,
        registry: ResourceRegistry,
        client_factory: StatusClientFactory,
        fields: Sequence[StatusField],
        aggregator: MetricAggregator,
        diagnostics: DiagnosticPort,
        scope: str,
        interval: float = 60.0,
    ) -> None:
        self.registry = registry
        self.client_factory = client_factory
        self.fields = list(fields)
        self.aggregator = aggregator
        self._diagnostics = diagnostics
        self.scope = scope
        self.interval = interval
        self.running = False
        self.task: asyncio.Task[None] | None = None

    def scope_for(self, resource: MonitoredResource) -> str:
        return f"{self.scope} {resource.address}"

    async def poll_once(self) -> int:
        """Poll every registered resource once, sequentially.

        Returns:
            Number of resources polled without error.
        """
        polled = 0
        for resource in self.registry:
            try:
                await self._poll(resource)
            except Exception as exc:
                error = MonitoringError(resource.address, str(exc) or type(exc).__name__)
                error.__cause__ = exc
                self._diagnostics.report(error)
            else:
                polled += 1
        return polled

    async def _poll(self, resource: MonitoredResource) -> None:
        client = self.client_factory(resource.host, resource.port)
        try:
            payload = await _maybe_await(client.info())
            if not isinstance(payload, Mapping):
                raise MonitoringError(
                    resource.address,
                    f"expected a mapping, got {type(payload).__name__}",
                )
            scope = self.scope_for(resource)
            for status_field in self.fields:
                self.aggregator.add_metric(
                    scope,
                    status_field.label,
                    payload.get(status_field.key),
                    status_field.unit,
                    MetricKind.DELTA if status_field.delta else MetricKind.GAUGE,
                    baseline=resource.last_values,
                    key=status_field.key,
                )
        finally:
            await _close(client)

    async def start(self) -> None:
        """Start polling in a background task."""
        if self.running:
            return

        self.running = True
        self.task = asyncio.create_task(self._poll_loop())
        logger.info("Started status polling for %s (interval: %ss)", self.scope, self.interval)

    async def stop(self) -> None:
        """Stop polling."""
        if not self.running:
            return

        self.running = False

        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None

        logger.info("Stopped status polling for %s", self.scope)

    async def _poll_loop(self) -> None:
        while self.running:
            await asyncio.sleep(self.interval)
            try:
                await self.poll_once()
            except Exception:
                log_exception("status poll crashed", scope=self.scope)
