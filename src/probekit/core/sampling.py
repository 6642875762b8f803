"""Sampling engine: timers, retention policy and sample delivery.

A probe starts a Timer and captures a StackSnapshot when a call begins,
finishes the timer when the call completes, asks ``should_skip`` and only
then pays for formatting the stack and truncating the arguments.
"""

import inspect
import logging
import os
import random
import time
import traceback
import weakref
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from probekit.core.config import AgentConfig, SamplingPolicy
from probekit.core.errors import SinkError
from probekit.core.models import Sample
from probekit.core.ports import DiagnosticPort, SampleSinkPort
from probekit.core.truncation import truncate

logger = logging.getLogger(__name__)

_PACKAGE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))

# Extra frames captured so that probekit's own frames can be dropped
# without running short of the configured depth.
_CAPTURE_SLACK = 16

StackSnapshot = traceback.StackSummary


@dataclass(eq=False)
class Timer:
    """Times one operation.

    Attributes:
        category: Instrumented library or category.
        operation: Operation name.
        root: True for request-level timers, False for nested operations.
        begin: Unix timestamp at start.
        started: Monotonic instant at start.
        duration: Elapsed milliseconds, set by ``finish``.
        error: Whether the operation failed.
    """

    category: str
    operation: str
    root: bool = False
    begin: float = field(default_factory=time.time)
    started: float = field(default_factory=time.perf_counter)
    duration: float | None = None
    error: bool = False
    expired: bool = False
    delivered: bool = False

    @property
    def done(self) -> bool:
        return self.duration is not None

    def age(self) -> float:
        """Seconds since the timer started."""
        return time.perf_counter() - self.started


class SamplingEngine:
    """Turns completed operations into delivered samples.

    Args:
        sink: Where retained samples are delivered.
        diagnostics: Where delivery faults are reported.
        config: Agent configuration (policy, stack depth, truncation limits).
        id_source: Callable returning process-unique sample ids.
    """

    def __init__(
        self,
        sink: SampleSinkPort,
        diagnostics: DiagnosticPort,
        config: AgentConfig | None = None,
        id_source: Callable[[], int] | None = None,
    ) -> None:
        self.sink = sink
        self._diagnostics = diagnostics
        self._config = config or AgentConfig()
        self.policy: SamplingPolicy = self._config.sampling
        self._random = random.Random(self.policy.seed)
        self._windows: dict[tuple[str, str], tuple[float, int]] = {}
        self._pruned_at = time.monotonic()
        self._open: weakref.WeakSet[Timer] = weakref.WeakSet()
        self._ids = id_source or _counter()

    def start_timer(self, category: str, operation: str, root: bool = False) -> Timer:
        """Begin timing an operation."""
        timer = Timer(category=category, operation=operation, root=root)
        self._open.add(timer)
        return timer

    def stack_trace(self) -> StackSnapshot:
        """Capture the current call stack without reading source files.

        Call this when the operation starts; completions may run on an
        unrelated stack.
        """
        return traceback.StackSummary.extract(
            traceback.walk_stack(inspect.currentframe()),
            limit=self._config.stack_depth + _CAPTURE_SLACK,
            lookup_lines=False,
        )

    def format_stack(self, snapshot: StackSnapshot | None) -> list[str]:
        """Format a captured snapshot, innermost frame first."""
        if not snapshot:
            return []
        lines: list[str] = []
        for frame in snapshot:
            if frame.filename.startswith(_PACKAGE_DIR):
                continue
            lines.append(f"{frame.name} ({frame.filename}:{frame.lineno})")
            if len(lines) >= self._config.stack_depth:
                break
        return lines

    def finish(self, timer: Timer, error: bool = False) -> bool:
        """Stop the timer.

        Returns:
            True on the first call for this timer, False afterwards.
        """
        if timer.done:
            return False
        timer.duration = (time.perf_counter() - timer.started) * 1000
        timer.error = bool(error)
        self._open.discard(timer)
        return True

    def should_skip(self, timer: Timer) -> bool:
        """Decide whether a finished timer's sample is discarded.

        A full cap window skips without consulting the rate; only retained
        samples take a slot in the window.
        """
        if timer.expired:
            return True
        cap = self.policy.max_per_interval
        if cap is None:
            return not self._retain(timer)

        now = time.monotonic()
        self._prune_windows(now)
        key = (timer.category, timer.operation)
        window_start, count = self._windows.get(key, (now, 0))
        if now - window_start >= self.policy.interval:
            window_start, count = now, 0
        if count >= cap or not self._retain(timer):
            return True
        self._windows[key] = (window_start, count + 1)
        return False

    def _retain(self, timer: Timer) -> bool:
        if timer.error and self.policy.keep_errors:
            return True
        if self.policy.rate >= 1.0:
            return True
        if self.policy.rate <= 0.0:
            return False
        return self._random.random() < self.policy.rate

    def _prune_windows(self, now: float) -> None:
        # At most once per interval; expired windows would restart anyway.
        if now - self._pruned_at < self.policy.interval:
            return
        self._pruned_at = now
        interval = self.policy.interval
        self._windows = {
            key: window
            for key, window in self._windows.items()
            if now - window[0] < interval
        }

    def truncate(self, value: Any) -> Any:
        """Size-bounded, JSON-safe copy of call arguments."""
        return truncate(
            value,
            max_string=self._config.max_string,
            max_items=self._config.max_items,
            max_depth=self._config.max_depth,
        )

    def new_sample(self) -> Sample:
        """Allocate a blank sample."""
        return Sample()

    def add(self, timer: Timer, sample: Sample) -> bool:
        """Finalize ``sample`` from ``timer`` and deliver it once.

        Returns:
            True if the sample reached the sink.
        """
        if timer.delivered or not timer.done:
            return False
        timer.delivered = True
        sample.duration = timer.duration or 0.0
        sample.begin = timer.begin
        sample.relative = not timer.root
        sample.id = self._ids()
        try:
            self.sink.deliver(sample)
        except Exception as exc:
            error = SinkError(f"sample sink rejected {sample.type}: {sample.command}")
            error.__cause__ = exc
            self._diagnostics.report(error)
            return False
        return True

    def reap(self, max_age: float) -> int:
        """Force-finish open timers older than ``max_age`` seconds.

        Reaped timers are marked expired, so a late completion is discarded.

        Returns:
            Number of timers reaped.
        """
        stale = [t for t in list(self._open) if t.age() >= max_age]
        for timer in stale:
            self.finish(timer, error=True)
            timer.expired = True
        if stale:
            logger.debug("reaped %d stale timers", len(stale))
        return len(stale)


def _counter() -> Callable[[], int]:
    state = {"next": random.randint(0, 10**6)}

    def next_id() -> int:
        state["next"] += 1
        return state["next"]

    return next_id
