"""Metric aggregation: gauges pass through, delta counters emit differences."""

import logging
import math
import time
from collections.abc import Hashable, MutableMapping
from typing import Any

from probekit.core.errors import MetricError, SinkError
from probekit.core.models import MetricDescriptor, MetricKind, MetricObservation
from probekit.core.ports import DiagnosticPort, MetricSinkPort

logger = logging.getLogger(__name__)

UNIT_DIVISORS = {"KB": 1000.0}


def gauge(
    scope: str,
    name: str,
    value: float,
    unit: str | None = None,
) -> MetricObservation:
    """Create a metric observation with the current timestamp.

    Args:
        scope: Logical group (e.g., "Process")
        name: Metric name (e.g., "Connected clients")
        value: Observed value
        unit: Optional unit label

    Returns:
        MetricObservation with current timestamp
    """
    return MetricObservation(
        scope=scope,
        name=name,
        value=value,
        unit=unit,
        timestamp=time.time(),
    )


def parse_value(raw: Any) -> float | None:
    """Parse a raw status value as a finite float, or return None."""
    if isinstance(raw, bytes):
        raw = raw.decode("ascii", errors="replace")
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value


class MetricAggregator:
    """Accumulates named metrics per scope and forwards them to a sink.

    Gauge values are forwarded every call. Delta values compare against
    the previous raw value: the first observation only records a baseline,
    later ones emit ``current - previous``. The baseline is updated on
    every observation.
    """

    def __init__(self, sink: MetricSinkPort, diagnostics: DiagnosticPort) -> None:
        self.sink = sink
        self._diagnostics = diagnostics
        self._baselines: dict[tuple[str, str], float] = {}
        self._descriptors: dict[tuple[str, str], MetricDescriptor] = {}

    def create_metric(
        self,
        scope: str,
        name: str,
        unit: str | None = None,
        kind: MetricKind | str = MetricKind.GAUGE,
    ) -> MetricDescriptor | None:
        """Pre-register a metric whose value is computed later.

        An unknown ``kind`` is reported and nothing is registered.
        """
        metric_kind = self._kind(scope, name, kind)
        if metric_kind is None:
            return None
        descriptor = MetricDescriptor(scope=scope, name=name, unit=unit, kind=metric_kind)
        self._descriptors[(scope, name)] = descriptor
        return descriptor

    def _kind(self, scope: str, name: str, kind: MetricKind | str) -> MetricKind | None:
        try:
            return MetricKind(kind)
        except ValueError as exc:
            error = MetricError(scope, name, f"unknown kind {kind!r}")
            error.__cause__ = exc
            self._diagnostics.report(error)
            return None

    def descriptor(self, scope: str, name: str) -> MetricDescriptor | None:
        return self._descriptors.get((scope, name))

    def add_metric(
        self,
        scope: str,
        name: str,
        value: Any,
        unit: str | None = None,
        kind: MetricKind | str | None = None,
        *,
        baseline: MutableMapping[Any, float] | None = None,
        key: Hashable | None = None,
    ) -> MetricObservation | None:
        """Record a raw value and emit the resulting observation, if any.

        Args:
            scope: Logical group of the metric
            name: Metric name
            value: Raw value; anything that is not a finite number is dropped
            unit: Unit label; "KB" divides the raw byte count by 1000
            kind: Gauge or delta. Defaults to the registered descriptor's
                kind, else gauge.
            baseline: Map holding previous raw values for delta metrics.
                Defaults to the aggregator's own map.
            key: Key into ``baseline``. Defaults to ``(scope, name)``.

        Returns:
            The observation delivered to the sink, or None when nothing
            was emitted. An unknown ``kind`` is reported to the diagnostic
            channel and yields None.
        """
        descriptor = self._descriptors.get((scope, name))
        if descriptor is not None:
            unit = unit if unit is not None else descriptor.unit
            kind = kind if kind is not None else descriptor.kind
        metric_kind = self._kind(scope, name, kind if kind is not None else MetricKind.GAUGE)
        if metric_kind is None:
            return None

        number = parse_value(value)
        if number is None:
            logger.debug("dropping non-numeric value for %s / %s", scope, name)
            return None
        if unit in UNIT_DIVISORS:
            number /= UNIT_DIVISORS[unit]

        if metric_kind is MetricKind.DELTA:
            store: MutableMapping[Any, float] = (
                baseline if baseline is not None else self._baselines
            )
            slot = key if key is not None else (scope, name)
            previous = store.get(slot)
            store[slot] = number
            if previous is None:
                return None
            number -= previous

        observation = gauge(scope, name, number, unit)
        try:
            self.sink.deliver(observation)
        except Exception as exc:
            error = SinkError(f"metric sink rejected {scope} / {name}")
            error.__cause__ = exc
            self._diagnostics.report(error)
            return None
        return observation

    def forget(self, scope: str) -> None:
        """Drop the aggregator-held baselines of ``scope``."""
        for slot in [s for s in self._baselines if s[0] == scope]:
            del self._baselines[slot]
