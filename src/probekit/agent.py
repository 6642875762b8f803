"""The Agent: one explicit instance wiring the instrumentation core.

Example:
    ```python
    from probekit import Agent, AgentConfig
    from probekit.probes import RedisProbe

    agent = Agent(AgentConfig(stdout=True))
    agent.register(RedisProbe)
    agent.attach("redis", redis_module)
    await agent.start()
    ```
"""

import logging
import random
from types import TracebackType
from typing import Any

from probekit.adapters.logging import LoggingDiagnostics
from probekit.adapters.storage import RingBufferMetricSink, RingBufferSampleSink
from probekit.adapters.stdout import StdoutWriter
from probekit.core.config import AgentConfig
from probekit.core.interception import Interceptor, error_message
from probekit.core.logs import configure_logging
from probekit.core.metrics import MetricAggregator
from probekit.core.models import MetricKind, MetricObservation
from probekit.core.ports import DiagnosticPort, MetricSinkPort, SampleSinkPort
from probekit.core.registry import ProbeRegistry
from probekit.core.sampling import SamplingEngine, Timer
from probekit.probes.base import Probe

logger = logging.getLogger(__name__)

DEFAULT_BUFFER_SIZE = 1000
CUSTOM_SAMPLE_TYPE = "Custom"


class CustomTransaction:
    """A user-timed unit of work, recorded as a root sample.

    Call ``end()`` when the work is done, or use it as a context manager.
    A transaction created while the transaction profiler is disabled
    records nothing.
    """

    def __init__(
        self, agent: "Agent", scope: str, label: str, context: Any = None
    ) -> None:
        self.agent = agent
        self.scope = scope
        self.label = label
        self.context = context
        self.enabled = agent.config.features.transaction_profiler
        self.timer: Timer | None = None
        if self.enabled:
            self.timer = agent.samples.start_timer(scope, label, root=True)
            self._stack = agent.samples.stack_trace()

    def end(self, error: Any = None) -> bool:
        """Stop timing and deliver the sample if retained.

        Args:
            error: Exception or message when the work failed.

        Returns:
            True if a sample reached the sink.
        """
        if self.timer is None:
            return False
        samples = self.agent.samples
        if not samples.finish(self.timer, error is not None):
            return False
        if samples.should_skip(self.timer):
            return False

        sample = samples.new_sample()
        sample.type = CUSTOM_SAMPLE_TYPE
        sample.command = self.label
        sample.arguments = samples.truncate(self.context)
        sample.stack_trace = samples.format_stack(self._stack)
        sample.error = error_message(error) if error is not None else None
        sample.group = f"{self.scope}: {self.label}"
        sample.label = f"{self.scope}: {self.label}"
        return samples.add(self.timer, sample)

    def __enter__(self) -> "CustomTransaction":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.end(exc)


class Agent:
    """Owns configuration, diagnostics and the instrumentation core.

    Args:
        config: Agent configuration. Defaults to ``AgentConfig()``.
        sample_sink: Receives retained samples. Defaults to stdout NDJSON
            when ``config.stdout`` is set, else a ring buffer.
        metric_sink: Receives metric observations, same defaults.
        diagnostics: Receives absorbed faults. Defaults to logging.
    """

    def __init__(
        self,
        config: AgentConfig | None = None,
        *,
        sample_sink: SampleSinkPort | None = None,
        metric_sink: MetricSinkPort | None = None,
        diagnostics: DiagnosticPort | None = None,
    ) -> None:
        self.config = config or AgentConfig()
        configure_logging(self.config.debug)

        self.diagnostics: DiagnosticPort = diagnostics or LoggingDiagnostics()
        if self.config.stdout:
            writer = StdoutWriter()
            sample_sink = sample_sink or writer
            metric_sink = metric_sink or writer
        self.sample_sink = sample_sink or RingBufferSampleSink(DEFAULT_BUFFER_SIZE)
        self.metric_sink = metric_sink or RingBufferMetricSink(DEFAULT_BUFFER_SIZE)

        self._next_id = random.randint(0, 10**6)
        self.interceptor = Interceptor(self.diagnostics)
        self.samples = SamplingEngine(
            self.sample_sink, self.diagnostics, self.config, id_source=self.next_id
        )
        self.metrics = MetricAggregator(self.metric_sink, self.diagnostics)
        self.probes = ProbeRegistry()
        self.performance_index = self.metrics.create_metric("Process", "Performance index")
        self.started = False

    def next_id(self) -> int:
        """Process-unique identifier for samples and transactions."""
        self._next_id += 1
        return self._next_id

    # Probes

    def register(self, probe: Probe | type[Probe], **kwargs: Any) -> Probe:
        """Register a probe instance, or build one from a probe class.

        Raises:
            ValueError: If another probe already claims one of its packages.
        """
        if isinstance(probe, type):
            probe = probe(self, **kwargs)
        self.probes.register(probe)
        logger.debug("registered %s probe for %s", probe.name, ", ".join(probe.packages))
        return probe

    def attach(self, package: str, target: Any) -> bool:
        """Instrument ``target`` with the probe registered for ``package``."""
        attached = self.probes.attach(package, target)
        if not attached:
            logger.debug("no probe registered for %s", package)
        return attached

    # Metrics and transactions

    def metric(
        self,
        scope: str,
        name: str,
        value: Any,
        unit: str | None = None,
        kind: MetricKind | str | None = None,
    ) -> MetricObservation | None:
        """Record a custom metric value."""
        return self.metrics.add_metric(scope, name, value, unit, kind)

    def time(self, scope: str, label: str, context: Any = None) -> CustomTransaction:
        """Start timing a custom transaction."""
        return CustomTransaction(self, scope, label, context)

    # Lifecycle

    async def start(self) -> None:
        """Start every probe's background work."""
        if self.started:
            return
        self.started = True
        await self.probes.start()
        logger.info("probekit agent started with %d probes", len(self.probes))

    async def stop(self) -> None:
        if not self.started:
            return
        self.started = False
        await self.probes.stop()
        logger.info("probekit agent stopped")

    def destroy(self) -> None:
        """Restore every operation the agent wrapped.

        Call ``stop()`` first when probes are polling.
        """
        self.interceptor.detach_all()
