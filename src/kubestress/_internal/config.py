"""Run configuration for kubestress."""

from __future__ import annotations

import math
import os
import re
from dataclasses import dataclass

from kubestress._internal.errors import ConfigError

# Namespace created and used by the kube-stress tooling by default.
DEFAULT_NAMESPACE = "kube-stress"

SUPPORTED_OBJECT_TYPES = ("configmaps", "pods")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


@dataclass(frozen=True)
class DispatchConfig:
    """Parameters of one rate-limited LIST run.

    Attributes:
        qps: Target request rate in requests per second. Must be > 0.
        total_duration: Seconds during which new requests are launched.
        request_timeout: Per-request timeout in seconds.
        namespace: Namespace to list from. Empty means all namespaces.
        object_type: Resource to list (``configmaps`` or ``pods``).
        page_size: ``limit`` query parameter. 0 disables pagination.

    Raises:
        ConfigError: If any value is out of range.
    """

    qps: float = 2.0
    total_duration: float = 300.0
    request_timeout: float = 60.0
    namespace: str = DEFAULT_NAMESPACE
    object_type: str = "configmaps"
    page_size: int = 0

    def __post_init__(self) -> None:
        if not math.isfinite(self.qps) or self.qps <= 0:
            msg = f"qps must be positive, got {self.qps}"
            raise ConfigError(msg)
        if not math.isfinite(self.total_duration) or self.total_duration < 0:
            msg = f"total_duration must be non-negative, got {self.total_duration}"
            raise ConfigError(msg)
        if not math.isfinite(self.request_timeout) or self.request_timeout <= 0:
            msg = f"request_timeout must be positive, got {self.request_timeout}"
            raise ConfigError(msg)
        if self.object_type not in SUPPORTED_OBJECT_TYPES:
            supported = ", ".join(SUPPORTED_OBJECT_TYPES)
            msg = f"object_type must be one of: {supported}, got {self.object_type!r}"
            raise ConfigError(msg)
        if self.page_size < 0:
            msg = f"page_size must be non-negative, got {self.page_size}"
            raise ConfigError(msg)

    @property
    def tick_interval(self) -> float:
        """Return the seconds between two launched requests."""
        return 1.0 / self.qps


def parse_duration(value: str) -> float:
    """Parse a duration string into seconds.

    Accepts Go-style durations as used by Kubernetes tooling (``300ms``,
    ``30s``, ``5m``, ``1h30m``) as well as a bare number of seconds.

    Args:
        value: The duration text.

    Returns:
        The duration in seconds.

    Raises:
        ConfigError: If the text is not a valid non-negative duration.
    """
    text = value.strip()
    if not text:
        msg = "duration must not be empty"
        raise ConfigError(msg)

    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds) or seconds < 0:
            msg = f"duration must be a non-negative number, got: {value!r}"
            raise ConfigError(msg)
        return seconds

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        number, unit = match.groups()
        total += float(number) * _DURATION_UNITS[unit]
        pos = match.end()

    if pos != len(text):
        msg = f"invalid duration: {value!r} (expected e.g. 300ms, 30s, 5m, 1h30m)"
        raise ConfigError(msg)
    return total


def request_timeout_from_env(default: float = 60.0) -> float:
    """Read the per-request timeout from the environment.

    Environment variables:
        KUBESTRESS_REQUEST_TIMEOUT: Timeout as a duration (default: 60s).

    Args:
        default: Value used when the variable is unset.

    Returns:
        Timeout in seconds.

    Raises:
        ConfigError: If the variable is set to an invalid or zero duration.
    """
    raw = os.environ.get("KUBESTRESS_REQUEST_TIMEOUT")
    if raw is None:
        return default

    try:
        timeout = parse_duration(raw)
    except ConfigError:
        msg = f"KUBESTRESS_REQUEST_TIMEOUT must be a duration, got: {raw!r}"
        raise ConfigError(msg) from None

    if timeout <= 0:
        msg = f"KUBESTRESS_REQUEST_TIMEOUT must be positive, got: {raw!r}"
        raise ConfigError(msg)
    return timeout
