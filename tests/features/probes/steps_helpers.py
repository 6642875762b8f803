"""Scenario state and helpers shared by the probe step definitions."""

import asyncio
from collections.abc import Coroutine
from dataclasses import dataclass, field
from typing import Any, TypeVar

from probekit.adapters.logging import LoggingDiagnostics
from probekit.adapters.storage.in_memory import InMemoryMetricSink, InMemorySampleSink
from probekit.agent import Agent
from probekit.core.models import MetricObservation, Sample
from probekit.probes.redis import RedisProbe
from tests.fakes import FakeRedisClient, FakeRedisModule

T = TypeVar("T")


@dataclass
class ProbeScenarioContext:
    """Mutable state carried between the steps of one scenario."""

    sample_sink: InMemorySampleSink = field(default_factory=InMemorySampleSink)
    metric_sink: InMemoryMetricSink = field(default_factory=InMemoryMetricSink)
    diagnostics: LoggingDiagnostics = field(default_factory=LoggingDiagnostics)
    agent: Agent | None = None
    probe: RedisProbe | None = None
    client: FakeRedisClient | None = None
    module: FakeRedisModule | None = None
    samples: list[Sample] = field(default_factory=list)
    observations: list[MetricObservation] = field(default_factory=list)

    def delivered_samples(self) -> list[Sample]:
        self.samples.extend(self.sample_sink.drain())
        return self.samples

    def delivered_observations(self) -> list[MetricObservation]:
        self.observations.extend(self.metric_sink.drain())
        return self.observations


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine from a synchronous step."""
    return asyncio.run(coro)


def parse_numbers(text: str) -> list[float]:
    """Parse "40, -50" into [40.0, -50.0]."""
    return [float(part) for part in text.split(",")]
