"""Core domain models for instrumentation data."""

import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MetricKind(str, Enum):
    """How the aggregator treats successive values of a metric."""

    GAUGE = "gauge"
    DELTA = "delta"


@dataclass(frozen=True)
class MetricDescriptor:
    """A pre-registered metric whose values arrive later.

    Attributes:
        scope: Logical group the metric belongs to (e.g., "Process").
        name: Metric name within the scope.
        unit: Unit label, or None.
        kind: Gauge or delta-counter.
    """

    scope: str
    name: str
    unit: str | None = None
    kind: MetricKind = MetricKind.GAUGE


@dataclass(frozen=True)
class MetricObservation:
    """A finalized metric value handed to the metric sink.

    Attributes:
        scope: Logical group (e.g., "Redis server 127.0.0.1:6379").
        name: Metric name (e.g., "Connected clients").
        value: The emitted value (already converted, delta applied).
        unit: Unit label, or None.
        timestamp: Unix timestamp in seconds.
    """

    scope: str
    name: str
    value: float
    unit: str | None = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class Sample:
    """One completed, timed observation of an instrumented operation.

    Attributes:
        type: Instrumented library or category (e.g., "Redis").
        group: Visual grouping key.
        label: Display label.
        connection: Identity of the remote endpoint.
        command: Operation name.
        arguments: Size-bounded snapshot of the call arguments.
        stack_trace: Formatted frames captured when the call started.
        error: Error message, or None when the operation succeeded.
        duration: Elapsed time in milliseconds.
        relative: True for operations nested inside a request, False for
            root request samples.
        begin: Unix timestamp of the call start.
        id: Process-unique sample id.
    """

    type: str = ""
    group: str = ""
    label: str = ""
    connection: dict[str, Any] = field(default_factory=dict)
    command: str = ""
    arguments: Any = None
    stack_trace: list[str] = field(default_factory=list)
    error: str | None = None
    duration: float = 0.0
    relative: bool = True
    begin: float = 0.0
    id: int = 0


@dataclass(frozen=True)
class Success:
    """Completion outcome of an operation that produced a value."""

    value: Any = None

    @property
    def failed(self) -> bool:
        return False


@dataclass(frozen=True)
class Failure:
    """Completion outcome of an operation that failed."""

    error: Any
    message: str = ""

    @property
    def failed(self) -> bool:
        return True


Outcome = Success | Failure

CompletionHook = Callable[[Any, "InvocationContext", Outcome], None]


@dataclass
class InvocationContext:
    """Per-call state created by the interception layer.

    Before-hooks may replace entries of ``args`` and fill the probe slots
    (``timer``, ``stack``, ``snapshot``). The context settles exactly once.
    """

    target: Any
    operation: str
    args: list[Any]
    kwargs: dict[str, Any]
    token: int
    started: float = field(default_factory=time.monotonic)
    timer: Any = None
    stack: Any = None
    snapshot: Any = None
    completions: list[CompletionHook] = field(default_factory=list)
    awaiting_callback: bool = False
    _consumed: bool = field(default=False, repr=False)

    @property
    def consumed(self) -> bool:
        return self._consumed

    def consume(self) -> bool:
        """Mark the context settled. Returns True only on the first call."""
        if self._consumed:
            return False
        self._consumed = True
        return True


@dataclass
class InterceptionPoint:
    """Hooks attached to one operation of one target."""

    target: Any
    operation: str
    original: Callable[..., Any]
    before: list[Callable[..., Any]] = field(default_factory=list)
    after: list[Callable[..., Any]] = field(default_factory=list)
    error: list[Callable[..., Any]] = field(default_factory=list)
