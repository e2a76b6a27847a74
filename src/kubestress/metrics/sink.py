"""Destinations for per-request latency records."""

from __future__ import annotations

import csv
import threading
from pathlib import Path
from typing import Protocol

from kubestress._internal.errors import ConfigError
from kubestress._internal.logging import get_logger

logger = get_logger("metrics.sink")


class ResultSink(Protocol):
    """Receives one latency value per successful request.

    Implementations must tolerate concurrent ``record`` calls and keep each
    record intact.
    """

    def record(self, value: str) -> None: ...

    def flush(self) -> None: ...


def format_latency(seconds: float) -> str:
    """Render a latency for a sink record, in milliseconds."""
    return f"{seconds * 1000:.3f}"


class CsvResultSink:
    """Writes one CSV row per record, serialized by a ``threading.Lock``.

    The file is opened (and truncated) on construction, so an unwritable
    path fails before the run starts.

    Args:
        path: Output file.

    Raises:
        ConfigError: If the file cannot be opened for writing.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        try:
            self._file = self.path.open("w", newline="")
        except OSError as exc:
            msg = f"cannot open CSV output file {self.path}: {exc}"
            raise ConfigError(msg) from exc
        self._writer = csv.writer(self._file)
        self._lock = threading.Lock()
        self._rows = 0

    @property
    def rows_written(self) -> int:
        """Return the number of rows written so far."""
        with self._lock:
            return self._rows

    def record(self, value: str) -> None:
        """Write ``value`` as a single-column row.

        Args:
            value: The record, typically a formatted latency.
        """
        with self._lock:
            self._writer.writerow([value])
            self._rows += 1

    def flush(self) -> None:
        """Flush buffered rows to the file."""
        with self._lock:
            if not self._file.closed:
                self._file.flush()

    def close(self) -> None:
        """Flush and close the file. Safe to call more than once."""
        with self._lock:
            if self._file.closed:
                return
            self._file.flush()
            self._file.close()
        logger.debug("Wrote %d latency rows to %s", self._rows, self.path)

    def __enter__(self) -> CsvResultSink:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()
