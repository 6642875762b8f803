"""In-memory sink adapters for samples and metrics."""

from collections.abc import AsyncIterable

from probekit.core.models import MetricObservation, Sample


class InMemorySampleSink:
    """In-memory implementation of SampleSinkPort.

    Stores delivered samples in a list. Suitable for testing and
    for hosts that drain samples themselves.
    """

    def __init__(self) -> None:
        self._samples: list[Sample] = []

    def deliver(self, sample: Sample) -> None:
        """Accept one finalized sample."""
        self._samples.append(sample)

    async def read(self, since: float = 0) -> AsyncIterable[Sample]:
        """Read samples that began after ``since``, ordered by begin time."""
        filtered = [s for s in self._samples if s.begin > since]
        for sample in sorted(filtered, key=lambda s: s.begin):
            yield sample

    def drain(self) -> list[Sample]:
        """Remove and return every stored sample."""
        samples, self._samples = self._samples, []
        return samples

    def __len__(self) -> int:
        return len(self._samples)


class InMemoryMetricSink:
    """In-memory implementation of MetricSinkPort.

    Stores metric observations in a list. Suitable for testing and
    for hosts that drain metrics themselves.
    """

    def __init__(self) -> None:
        self._observations: list[MetricObservation] = []

    def deliver(self, observation: MetricObservation) -> None:
        """Accept one metric observation."""
        self._observations.append(observation)

    async def read(self) -> AsyncIterable[MetricObservation]:
        """Read all current metric observations."""
        for observation in self._observations:
            yield observation

    def drain(self) -> list[MetricObservation]:
        """Remove and return every stored observation."""
        observations, self._observations = self._observations, []
        return observations

    def __len__(self) -> int:
        return len(self._observations)
