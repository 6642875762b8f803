"""NDJSON encoders for samples and metric observations."""

import json
from collections.abc import Iterable
from typing import Any

from probekit.core.models import MetricObservation, Sample


def sample_to_dict(sample: Sample) -> dict[str, Any]:
    """Map a sample to the field names used on the wire."""
    return {
        "_id": sample.id,
        "_group": sample.group,
        "_label": sample.label,
        "_begin": sample.begin,
        "_ms": sample.duration,
        "_relative": sample.relative,
        "Type": sample.type,
        "Connection": sample.connection,
        "Command": sample.command,
        "Arguments": sample.arguments,
        "Stack trace": sample.stack_trace,
        "Error": sample.error,
    }


def observation_to_dict(observation: MetricObservation) -> dict[str, Any]:
    return {
        "scope": observation.scope,
        "name": observation.name,
        "value": observation.value,
        "unit": observation.unit,
        "timestamp": observation.timestamp,
    }


def _encode(objects: Iterable[dict[str, Any]]) -> str:
    lines = [json.dumps(obj, default=repr) for obj in objects]
    if not lines:
        return ""
    return "\n".join(lines) + "\n"


def encode_samples(samples: Iterable[Sample]) -> str:
    """Encode samples to newline-delimited JSON.

    Args:
        samples: An iterable of Sample objects.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no samples.
    """
    return _encode(sample_to_dict(s) for s in samples)


def encode_observations(observations: Iterable[MetricObservation]) -> str:
    """Encode metric observations to newline-delimited JSON.

    Returns:
        NDJSON string with one JSON object per line.
        Empty string if no observations.
    """
    return _encode(observation_to_dict(o) for o in observations)
