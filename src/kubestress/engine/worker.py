"""Executes one LIST request and records its outcome."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from kubestress._internal.logging import TRACE, get_logger
from kubestress.metrics.sink import format_latency

if TYPE_CHECKING:
    from kubestress._internal.config import DispatchConfig
    from kubestress.engine.cancellation import CancellationToken
    from kubestress.kube.client import BodyStream, ListClient
    from kubestress.metrics.counters import Counters
    from kubestress.metrics.latency import LatencyStats
    from kubestress.metrics.sink import ResultSink

logger = get_logger("engine.worker")

DRAIN_CHUNK_SIZE = 64 * 1024


async def drain(body: BodyStream) -> int:
    """Consume a response body completely.

    Args:
        body: The response body stream.

    Returns:
        Number of bytes read.
    """
    size = 0
    async for chunk in body.iter_chunked(DRAIN_CHUNK_SIZE):
        size += len(chunk)
    return size


class RequestWorker:
    """Issues single LIST requests on behalf of the dispatcher.

    One instance is shared by every launch of a run; :meth:`execute` keeps
    no per-request state on ``self``.

    Args:
        config: Run configuration (request parameters and timeout).
        counters: Shared outcome counters.
        token: Run-wide cancellation token.
        sink: Optional destination for latency records.
        latencies: Optional in-memory latency collection for the summary.
    """

    def __init__(
        self,
        config: DispatchConfig,
        counters: Counters,
        *,
        token: CancellationToken,
        sink: ResultSink | None = None,
        latencies: LatencyStats | None = None,
    ) -> None:
        self._config = config
        self._counters = counters
        self._token = token
        self._sink = sink
        self._latencies = latencies

    async def execute(self, client: ListClient) -> None:
        """Run one request against ``client``; never raises for request errors.

        The request is bounded by ``config.request_timeout`` and by the run's
        cancellation token, whichever comes first. Every failure is counted
        and logged, never retried.

        Args:
            client: The client handle to issue the request with.
        """
        self._counters.add_total()

        try:
            latency, size = await self._list_once(client)
        except TimeoutError:
            self._counters.add_failed()
            if self._token.cancelled:
                logger.error("List call aborted by cancellation")
            else:
                logger.error(
                    "List call timed out after %.1fs", self._config.request_timeout
                )
            return
        except Exception as exc:
            self._counters.add_failed()
            logger.error("Error seen with list call: %s", exc)
            return

        logger.log(TRACE, "List call took: %.3fms (%d bytes)", latency * 1000, size)

        if self._latencies is not None:
            self._latencies.record(latency)
        if self._sink is not None:
            try:
                self._sink.record(format_latency(latency))
            except (OSError, ValueError) as exc:
                logger.warning("Failed to record latency: %s", exc)

    async def _list_once(self, client: ListClient) -> tuple[float, int]:
        """Issue and drain one LIST request.

        Returns:
            ``(latency_seconds, body_bytes)``.

        Raises:
            TimeoutError: On per-request timeout or run cancellation.
        """
        config = self._config
        async with asyncio.timeout(config.request_timeout) as deadline:
            loop = asyncio.get_running_loop()

            def _expire_now() -> None:
                if not deadline.expired():
                    deadline.reschedule(loop.time())

            self._token.add_callback(_expire_now)
            try:
                start = time.perf_counter()
                async with client.stream_list(
                    config.namespace, config.object_type, config.page_size
                ) as body:
                    size = await drain(body)
                return time.perf_counter() - start, size
            finally:
                self._token.remove_callback(_expire_now)
