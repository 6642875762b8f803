"""Diagnostic channel adapter backed by Python's logging module.

This adapter implements DiagnosticPort by writing each absorbed fault to
the ``probekit`` logger, so faults inside hooks and pollers surface in the
host application's logs instead of in instrumented code.
"""

import logging
from collections import deque

from probekit.core.errors import (
    HookError,
    InstrumentationError,
    MetricError,
    MonitoringError,
)

_DEFAULT_LOGGER = logging.getLogger("probekit.diagnostics")


def _error_attributes(error: BaseException) -> dict[str, str | int | float | bool]:
    """Extract structured fields from a reported error."""
    attributes: dict[str, str | int | float | bool] = {
        "error_type": type(error).__name__,
    }
    if isinstance(error, InstrumentationError) and error.operation:
        attributes["operation"] = error.operation
    if isinstance(error, HookError):
        attributes["phase"] = error.phase
    if isinstance(error, MonitoringError):
        attributes["address"] = error.address
    if isinstance(error, MetricError):
        attributes["metric"] = f"{error.scope} / {error.name}"
    cause = error.__cause__
    if cause is not None:
        attributes["cause_type"] = type(cause).__name__
        attributes["cause_message"] = str(cause)
    return attributes


class LoggingDiagnostics:
    """DiagnosticPort that logs reported faults.

    Example:
        ```python
        from probekit import Agent, LoggingDiagnostics

        agent = Agent(diagnostics=LoggingDiagnostics())
        ```
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        level: int = logging.WARNING,
        history: int = 100,
    ) -> None:
        """Initialize the adapter.

        Args:
            logger: Logger to write to. Defaults to ``probekit.diagnostics``.
            level: Level used for reported faults.
            history: How many recent faults to keep for inspection.
        """
        self._logger = logger or _DEFAULT_LOGGER
        self._level = level
        self.reported = 0
        self.recent: deque[BaseException] = deque(maxlen=history)

    def report(self, error: BaseException) -> None:
        """Log a fault with its traceback and structured fields."""
        self.reported += 1
        self.recent.append(error)
        self._logger.log(
            self._level,
            "%s",
            error,
            exc_info=(type(error), error, error.__traceback__),
            extra=_error_attributes(error),
        )
