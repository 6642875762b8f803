"""Per-library probes."""

from probekit.probes.base import MonitoringProbe, Probe
from probekit.probes.http import HttpxProbe
from probekit.probes.redis import RedisProbe
from probekit.probes.sqlite import SqliteProbe

__all__ = [
    "HttpxProbe",
    "MonitoringProbe",
    "Probe",
    "RedisProbe",
    "SqliteProbe",
]
