"""Registries: monitored resources and statically registered probes."""

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, NamedTuple

from probekit.core.config import DEFAULT_RESOURCE_LIMIT

if TYPE_CHECKING:
    from probekit.probes.base import Probe

logger = logging.getLogger(__name__)


class StatusField(NamedTuple):
    """One status payload field mapped to a metric.

    Attributes:
        label: Metric name (e.g., "Connected clients").
        key: Field key in the status payload (e.g., "connected_clients").
        unit: Unit label, or None.
        delta: True for monotonically increasing counters.
    """

    label: str
    key: str
    unit: str | None
    delta: bool


@dataclass
class MonitoredResource:
    """An external server polled for status metrics.

    Attributes:
        host: Server host.
        port: Server port.
        last_values: Previous raw values of delta fields, keyed by field key.
    """

    host: str
    port: int
    last_values: dict[str, float] = field(default_factory=dict)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


class ResourceRegistry:
    """Monitored resources, capped at ``limit`` concurrent registrations.

    Registration beyond the cap is silently ignored.
    """

    def __init__(self, limit: int = DEFAULT_RESOURCE_LIMIT) -> None:
        self.limit = limit
        self._resources: dict[str, MonitoredResource] = {}

    def register(self, host: str, port: int) -> MonitoredResource | None:
        """Register (host, port) unless already known or at capacity.

        Returns:
            The registration, or None when the cap was reached.
        """
        address = f"{host}:{port}"
        existing = self._resources.get(address)
        if existing is not None:
            return existing
        if len(self._resources) >= self.limit:
            return None
        resource = MonitoredResource(host=host, port=port)
        self._resources[address] = resource
        logger.debug("monitoring %s", address)
        return resource

    def unregister(self, address: str) -> MonitoredResource | None:
        """Stop monitoring ``address``; its baselines go with it."""
        return self._resources.pop(address, None)

    def get(self, address: str) -> MonitoredResource | None:
        return self._resources.get(address)

    def __iter__(self) -> Iterator[MonitoredResource]:
        return iter(list(self._resources.values()))

    def __len__(self) -> int:
        return len(self._resources)

    def __contains__(self, address: object) -> bool:
        return address in self._resources


class ProbeRegistry:
    """Probes registered explicitly by the embedding application.

    Each probe declares the package names it instruments; ``attach`` routes
    a loaded library object to the probe registered for that name.
    """

    def __init__(self) -> None:
        self._by_package: dict[str, "Probe"] = {}
        self._probes: list["Probe"] = []

    def register(self, probe: "Probe") -> "Probe":
        """Register ``probe`` under each of its package names.

        Raises:
            ValueError: If another probe already claims one of the names.
        """
        for package in probe.packages:
            current = self._by_package.get(package)
            if current is not None and current is not probe:
                raise ValueError(f"a probe for {package!r} is already registered")
        for package in probe.packages:
            self._by_package[package] = probe
        if probe not in self._probes:
            self._probes.append(probe)
        return probe

    def lookup(self, package: str) -> "Probe | None":
        return self._by_package.get(package)

    def attach(self, package: str, target: Any) -> bool:
        """Hand ``target`` to the probe registered for ``package``.

        Returns:
            False when no probe is registered for the package.
        """
        probe = self._by_package.get(package)
        if probe is None:
            return False
        probe.attach(target)
        return True

    def __iter__(self) -> Iterator["Probe"]:
        return iter(list(self._probes))

    def __len__(self) -> int:
        return len(self._probes)

    async def start(self) -> None:
        """Start background work (status pollers) of every probe."""
        for probe in self:
            await probe.start()

    async def stop(self) -> None:
        for probe in reversed(list(self._probes)):
            await probe.stop()
