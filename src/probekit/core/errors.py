"""Exception hierarchy for faults absorbed by the instrumentation core.

None of these cross back into instrumented code. They wrap the original
exception (available as ``__cause__``) and carry enough context for the
diagnostic channel to say where the fault happened.
"""


class ProbekitError(Exception):
    """Base class for all probekit faults."""


class InstrumentationError(ProbekitError):
    """A probe could not instrument or observe a target."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation


class HookError(InstrumentationError):
    """A before/after/error/completion hook raised."""

    def __init__(self, operation: str, phase: str) -> None:
        super().__init__(f"{phase} hook for {operation!r} failed", operation)
        self.phase = phase


class MonitoringError(ProbekitError):
    """Polling a monitored resource failed."""

    def __init__(self, address: str, reason: str) -> None:
        super().__init__(f"status poll of {address} failed: {reason}")
        self.address = address


class SinkError(ProbekitError):
    """A sample or metric sink rejected a delivery."""


class MetricError(ProbekitError):
    """A custom metric was rejected (unknown kind)."""

    def __init__(self, scope: str, name: str, reason: str) -> None:
        super().__init__(f"metric {scope} / {name} rejected: {reason}")
        self.scope = scope
        self.name = name
