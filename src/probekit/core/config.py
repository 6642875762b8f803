"""Agent configuration.

Configuration is plain data handed to the Agent by the embedding
application. Where it comes from (files, environment, a settings service)
is the application's business.
"""

from dataclasses import dataclass, field, fields
from typing import Any

DEFAULT_RESOURCE_LIMIT = 25
DEFAULT_POLL_INTERVAL = 60.0


@dataclass
class SamplingPolicy:
    """Retention policy applied when a sample completes.

    Attributes:
        rate: Probability of keeping a sample, between 0.0 and 1.0.
        max_per_interval: Cap on retained samples per (category, operation)
            within one interval. None disables the cap.
        interval: Length of the rolling cap window in seconds.
        keep_errors: Retain errored samples regardless of ``rate``. They
            still count against the cap.
        seed: Seed for the sampling random generator, for reproducible runs.
    """

    rate: float = 1.0
    max_per_interval: int | None = None
    interval: float = 60.0
    keep_errors: bool = True
    seed: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.rate <= 1.0:
            raise ValueError(f"rate must be between 0.0 and 1.0, got {self.rate}")
        if self.max_per_interval is not None and self.max_per_interval < 0:
            raise ValueError("max_per_interval must be >= 0")
        if self.interval <= 0:
            raise ValueError("interval must be > 0")


@dataclass
class Features:
    """Optional feature switches."""

    redis_metrics: bool = True
    transaction_profiler: bool = True


@dataclass
class AgentConfig:
    """Configuration for an Agent.

    Attributes:
        debug: Log probekit's own DEBUG records to stderr.
        stdout: Write samples and metrics to stdout as NDJSON.
        stack_depth: Maximum frames kept in a sample's stack trace.
        max_string: Longest string kept in an argument snapshot.
        max_items: Most elements kept per collection in a snapshot.
        max_depth: Deepest nesting kept in a snapshot.
        resource_limit: Cap on concurrently monitored resources per probe.
        poll_interval: Seconds between status polls.
        features: Optional feature switches.
        sampling: Sample retention policy.
    """

    debug: bool = False
    stdout: bool = False
    stack_depth: int = 10
    max_string: int = 1000
    max_items: int = 100
    max_depth: int = 5
    resource_limit: int = DEFAULT_RESOURCE_LIMIT
    poll_interval: float = DEFAULT_POLL_INTERVAL
    features: Features = field(default_factory=Features)
    sampling: SamplingPolicy = field(default_factory=SamplingPolicy)

    @classmethod
    def from_options(cls, **opts: Any) -> "AgentConfig":
        """Build a config from keyword options.

        Accepts ``features`` and ``sampling`` as dicts, and the legacy flat
        spellings ``redis_metrics=`` / ``transaction_profiler=`` when the same
        switch is not given inside ``features``. Unknown options raise
        TypeError.
        """
        feature_opts = dict(opts.pop("features", None) or {})
        for name in ("redis_metrics", "transaction_profiler"):
            legacy = opts.pop(name, None)
            if legacy is not None and name not in feature_opts:
                feature_opts[name] = legacy

        sampling_opts = opts.pop("sampling", None) or {}
        if isinstance(sampling_opts, SamplingPolicy):
            sampling = sampling_opts
        else:
            sampling = SamplingPolicy(**sampling_opts)

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(opts) - known)
        if unknown:
            raise TypeError(f"unknown options: {', '.join(unknown)}")

        return cls(
            features=Features(**{k: bool(v) for k, v in feature_opts.items()}),
            sampling=sampling,
            **opts,
        )
