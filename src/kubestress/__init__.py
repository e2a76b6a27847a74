"""kubestress: rate-controlled LIST load for Kubernetes API servers."""

from __future__ import annotations

from kubestress._internal.config import DispatchConfig
from kubestress._internal.errors import ConfigError, KubeStressError, ListRequestError
from kubestress.engine.cancellation import CancellationController, CancellationToken
from kubestress.engine.dispatcher import RateLimitedDispatcher, RunState
from kubestress.kube.config import ClusterConfig, load_cluster_config
from kubestress.kube.pool import ClientPool, open_client_pool
from kubestress.metrics.counters import Counters, Summary
from kubestress.metrics.sink import CsvResultSink

__version__ = "0.1.0"

__all__ = [
    "CancellationController",
    "CancellationToken",
    "ClientPool",
    "ClusterConfig",
    "ConfigError",
    "Counters",
    "CsvResultSink",
    "DispatchConfig",
    "KubeStressError",
    "ListRequestError",
    "RateLimitedDispatcher",
    "RunState",
    "Summary",
    "load_cluster_config",
    "open_client_pool",
]
