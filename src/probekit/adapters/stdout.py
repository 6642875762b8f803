"""Writer adapter that prints samples and metrics as NDJSON.

Implements both SampleSinkPort and MetricSinkPort, for local debugging
without an uploader.
"""

import sys
from typing import TextIO

from probekit.core.encoding.ndjson import encode_observations, encode_samples
from probekit.core.models import MetricObservation, Sample


class StdoutWriter:
    """Writes every delivery as one NDJSON line.

    Args:
        stream: Text stream to write to. Defaults to ``sys.stdout`` at the
            time of each write, so pytest's capture and redirects apply.
    """

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    @property
    def stream(self) -> TextIO:
        return self._stream or sys.stdout

    def deliver(self, item: Sample | MetricObservation) -> None:
        """Write one sample or metric observation."""
        if isinstance(item, Sample):
            line = encode_samples([item])
        else:
            line = encode_observations([item])
        self.stream.write(line)
        self.stream.flush()
