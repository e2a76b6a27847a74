"""Logging for kubestress.

Everything logs under the ``kubestress`` logger to stderr. Verbosity mirrors
the klog ``-v`` levels of the Kubernetes tooling this command is modelled on:
level 0 shows the final report and errors, level 1 adds lifecycle messages,
level 2 adds one TRACE line per request.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import UTC, datetime

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

_ROOT = "kubestress"
_TEXT_FORMAT = "%(asctime)s [%(levelname)-5s] %(name)s: %(message)s"
_VERBOSITY_LEVELS = (logging.INFO, logging.DEBUG, TRACE)


class _JsonLineFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def verbosity_to_level(verbosity: int) -> int:
    """Map a klog-style ``-v`` count to a :mod:`logging` level.

    Args:
        verbosity: Number of ``-v`` flags given. Negative values count as 0
            and values above 2 as 2.

    Returns:
        ``logging.INFO``, ``logging.DEBUG`` or :data:`TRACE`.
    """
    index = min(max(verbosity, 0), len(_VERBOSITY_LEVELS) - 1)
    return _VERBOSITY_LEVELS[index]


def setup_logging(level: int = logging.INFO, *, json_format: bool = False) -> logging.Logger:
    """Send ``kubestress`` logs to stderr at ``level``.

    The stderr handler is created once; later calls only change the level
    and the format.

    Args:
        level: Logging level, e.g. ``logging.DEBUG`` or :data:`TRACE`.
        json_format: Emit one JSON object per line instead of plain text.

    Returns:
        The ``kubestress`` logger.
    """
    logger = logging.getLogger(_ROOT)
    handler = next((h for h in logger.handlers if h.get_name() == _ROOT), None)
    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
        handler.set_name(_ROOT)
        logger.addHandler(handler)
        logger.propagate = False

    handler.setFormatter(
        _JsonLineFormatter()
        if json_format
        else logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    )
    logger.setLevel(level)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``kubestress.<name>`` logger."""
    return logging.getLogger(f"{_ROOT}.{name}")
