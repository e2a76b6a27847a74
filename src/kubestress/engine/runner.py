"""Top-level wiring of a ``list`` run."""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

from kubestress._internal.logging import get_logger, setup_logging
from kubestress.engine.cancellation import CancellationController, CancellationToken
from kubestress.engine.dispatcher import RateLimitedDispatcher
from kubestress.kube.pool import open_client_pool
from kubestress.metrics.sink import CsvResultSink

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from kubestress._internal.config import DispatchConfig
    from kubestress.kube.config import ClusterConfig
    from kubestress.metrics.counters import Summary
    from kubestress.metrics.sink import ResultSink

logger = get_logger("engine.runner")


def _uvloop_factory() -> Callable[[], asyncio.AbstractEventLoop] | None:
    """Return uvloop's loop constructor, or None to use the asyncio default."""
    if sys.platform == "win32":
        return None

    try:
        import uvloop
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")
        return None

    logger.debug("Using uvloop event loop")
    return uvloop.new_event_loop


def run_list(
    cluster: ClusterConfig,
    config: DispatchConfig,
    *,
    num_clients: int = 10,
    csv_output: str | Path | None = None,
    log_level: int = logging.INFO,
    json_logs: bool = False,
) -> Summary:
    """List objects at a fixed rate and report the outcome.

    Blocks until the run duration elapses or SIGINT/SIGTERM is received, and
    then until every in-flight request has finished.

    Args:
        cluster: API server connection settings.
        config: Rate, duration and request parameters.
        num_clients: Number of client handles to spread requests over.
        csv_output: Optional CSV file receiving one latency row per success.
        log_level: Logging level.
        json_logs: Emit JSON log lines.

    Returns:
        Summary of the run.

    Raises:
        ConfigError: If ``num_clients`` or the CSV path is invalid.
    """
    setup_logging(level=log_level, json_format=json_logs)

    sink = CsvResultSink(csv_output) if csv_output else None
    try:
        with asyncio.Runner(loop_factory=_uvloop_factory()) as runner:
            return runner.run(
                _run_list(cluster, config, num_clients=num_clients, sink=sink)
            )
    finally:
        if sink is not None:
            sink.flush()
            sink.close()


async def _run_list(
    cluster: ClusterConfig,
    config: DispatchConfig,
    *,
    num_clients: int,
    sink: ResultSink | None,
) -> Summary:
    """Async body of :func:`run_list`."""
    token = CancellationToken()

    with CancellationController(token):
        async with open_client_pool(cluster, num_clients) as pool:
            logger.debug(
                "Listing '%s' objects in namespace '%s' (page size = %d) "
                "using %d clients and QPS = %s for %.1fs",
                config.object_type,
                config.namespace,
                config.page_size,
                num_clients,
                config.qps,
                config.total_duration,
            )
            dispatcher = RateLimitedDispatcher(config, pool, token=token, sink=sink)
            try:
                summary = await dispatcher.run()
            finally:
                token.cancel()

    logger.debug("Finished listing objects for a duration of %.1fs", config.total_duration)
    return summary
