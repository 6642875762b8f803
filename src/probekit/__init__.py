"""probekit - instrumentation core for application performance monitoring."""

from probekit.adapters.logging import LoggingDiagnostics
from probekit.agent import Agent, CustomTransaction
from probekit.core.config import AgentConfig, Features, SamplingPolicy
from probekit.core.errors import (
    HookError,
    InstrumentationError,
    MetricError,
    MonitoringError,
    ProbekitError,
    SinkError,
)
from probekit.core.interception import Interceptor
from probekit.core.metrics import MetricAggregator
from probekit.core.models import (
    Failure,
    InvocationContext,
    MetricDescriptor,
    MetricKind,
    MetricObservation,
    Sample,
    Success,
)
from probekit.core.sampling import SamplingEngine, Timer

__version__ = "0.1.0"

__all__ = [
    "Agent",
    "AgentConfig",
    "CustomTransaction",
    "Failure",
    "Features",
    "HookError",
    "InstrumentationError",
    "Interceptor",
    "InvocationContext",
    "LoggingDiagnostics",
    "MetricAggregator",
    "MetricDescriptor",
    "MetricError",
    "MetricKind",
    "MetricObservation",
    "MonitoringError",
    "ProbekitError",
    "Sample",
    "SamplingEngine",
    "SamplingPolicy",
    "SinkError",
    "Success",
    "Timer",
]
