"""Port interfaces for the collaborators around the instrumentation core.

These protocols define the contracts that adapters must implement.
The core depends only on these interfaces, not concrete implementations.
"""

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from probekit.core.models import MetricObservation, Sample


@runtime_checkable
class SampleSinkPort(Protocol):
    """Port accepting finalized samples for later batching/upload.

    Examples: InMemorySampleSink, RingBufferSampleSink, StdoutWriter.
    """

    def deliver(self, sample: Sample) -> None:
        """Accept one finalized sample."""
        ...


@runtime_checkable
class MetricSinkPort(Protocol):
    """Port accepting finalized metric observations.

    Examples: InMemoryMetricSink, RingBufferMetricSink, StdoutWriter.
    """

    def deliver(self, observation: MetricObservation) -> None:
        """Accept one metric observation."""
        ...


@runtime_checkable
class DiagnosticPort(Protocol):
    """Port for reporting recoverable faults.

    Implementations must never raise back into the caller.
    """

    def report(self, error: BaseException) -> None:
        """Report a fault absorbed by the core."""
        ...


@runtime_checkable
class StatusClientPort(Protocol):
    """Short-lived client able to fetch a resource's status payload.

    ``info()`` may return the mapping directly or an awaitable of it,
    so both sync and asyncio client libraries fit.
    """

    def info(self) -> Mapping[str, Any] | Awaitable[Mapping[str, Any]]:
        """Fetch the structured status payload."""
        ...


StatusClientFactory = Callable[[str, int], StatusClientPort]
