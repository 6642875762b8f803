"""Sink adapters implementing core ports."""

from probekit.adapters.storage.in_memory import (
    InMemoryMetricSink,
    InMemorySampleSink,
)
from probekit.adapters.storage.ring_buffer import (
    RingBufferMetricSink,
    RingBufferSampleSink,
)

__all__ = [
    "InMemoryMetricSink",
    "InMemorySampleSink",
    "RingBufferMetricSink",
    "RingBufferSampleSink",
]
