"""Ring buffer sink adapters for samples and metrics.

Provides bounded in-memory buffers that automatically evict the oldest
entries when full. Useful in production processes that need predictable
memory usage while the uploader is slow or offline.
"""

from collections import deque
from collections.abc import AsyncIterable

from probekit.core.models import MetricObservation, Sample


class RingBufferSampleSink:
    """Ring buffer implementation of SampleSinkPort.

    Args:
        max_size: Maximum number of samples to keep.
    """

    def __init__(self, max_size: int) -> None:
        self._buffer: deque[Sample] = deque(maxlen=max_size)

    def deliver(self, sample: Sample) -> None:
        """Accept one finalized sample, evicting the oldest if full."""
        self._buffer.append(sample)

    async def read(self, since: float = 0) -> AsyncIterable[Sample]:
        """Read samples that began after ``since``, ordered by begin time."""
        filtered = [s for s in self._buffer if s.begin > since]
        for sample in sorted(filtered, key=lambda s: s.begin):
            yield sample

    def drain(self) -> list[Sample]:
        """Remove and return every buffered sample."""
        samples = list(self._buffer)
        self._buffer.clear()
        return samples

    def __len__(self) -> int:
        return len(self._buffer)


class RingBufferMetricSink:
    """Ring buffer implementation of MetricSinkPort.

    Args:
        max_size: Maximum number of observations to keep.
    """

    def __init__(self, max_size: int) -> None:
        self._buffer: deque[MetricObservation] = deque(maxlen=max_size)

    def deliver(self, observation: MetricObservation) -> None:
        """Accept one observation, evicting the oldest if full."""
        self._buffer.append(observation)

    async def read(self) -> AsyncIterable[MetricObservation]:
        """Read all buffered observations."""
        for observation in self._buffer:
            yield observation

    def drain(self) -> list[MetricObservation]:
        """Remove and return every buffered observation."""
        observations = list(self._buffer)
        self._buffer.clear()
        return observations

    def __len__(self) -> int:
        return len(self._buffer)
