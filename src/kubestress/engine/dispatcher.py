"""Rate-limited dispatcher launching one request task per tick."""

from __future__ import annotations

import asyncio
import math
import time
from enum import Enum, auto
from typing import TYPE_CHECKING, Generic, TypeVar

from kubestress._internal.errors import DispatchError
from kubestress._internal.logging import get_logger
from kubestress.engine.worker import RequestWorker
from kubestress.metrics.counters import Counters, Summary
from kubestress.metrics.latency import LatencyStats

if TYPE_CHECKING:
    from kubestress._internal.config import DispatchConfig
    from kubestress.engine.cancellation import CancellationToken
    from kubestress.kube.client import ListClient
    from kubestress.kube.pool import ClientPool
    from kubestress.metrics.sink import ResultSink

logger = get_logger("engine.dispatcher")

C = TypeVar("C", bound="ListClient")


class RunState(Enum):
    """State machine of a dispatch run.

    RUNNING -> CANCELLING -> DRAINING -> DONE

    CANCELLING is entered as soon as cancellation or the deadline is seen,
    while the tick loop may still be waking up.
    """

    CREATED = auto()
    RUNNING = auto()
    CANCELLING = auto()
    DRAINING = auto()
    DONE = auto()


class RateLimitedDispatcher(Generic[C]):
    """Launches one :class:`RequestWorker` per tick for a fixed duration.

    Ticks are spaced ``1 / qps`` seconds apart, starting one interval after
    :meth:`run` begins. Every tick borrows the next client of the pool in
    round-robin order. Workers run concurrently without any cap and are
    tracked by an ``asyncio.TaskGroup``; :meth:`run` returns only after all
    of them have finished, whether the loop ended by deadline or by
    cancellation.

    Args:
        config: Run configuration.
        pool: Client handles to spread requests over.
        token: Cancellation token shared with the workers.
        sink: Optional destination for latency records.
    """

    def __init__(
        self,
        config: DispatchConfig,
        pool: ClientPool[C],
        *,
        token: CancellationToken,
        sink: ResultSink | None = None,
    ) -> None:
        self._config = config
        self._pool = pool
        self._token = token
        self._counters = Counters()
        self._latencies = LatencyStats()
        self._worker = RequestWorker(
            config,
            self._counters,
            token=token,
            sink=sink,
            latencies=self._latencies,
        )
        self._state = RunState.CREATED
        self._history: list[RunState] = []
        self._launched = 0

    @property
    def state(self) -> RunState:
        """Return the current run state."""
        return self._state

    @property
    def history(self) -> tuple[RunState, ...]:
        """Return every state entered so far, in order."""
        return tuple(self._history)

    @property
    def launched(self) -> int:
        """Return the number of workers launched so far."""
        return self._launched

    @property
    def latencies(self) -> LatencyStats:
        """Return the latencies recorded by successful workers."""
        return self._latencies

    async def run(self) -> Summary:
        """Dispatch requests until the duration elapses or the token is cancelled.

        Returns:
            Summary built after every launched worker has returned.

        Raises:
            DispatchError: If the dispatcher has already been run.
        """
        if self._state is not RunState.CREATED:
            msg = f"dispatcher already used (state {self._state.name})"
            raise DispatchError(msg)

        config = self._config
        start = asyncio.get_running_loop().time()
        wall_start = time.monotonic()

        self._set_state(RunState.RUNNING)
        self._token.add_callback(self._on_cancel)
        logger.debug(
            "Dispatching at %.2f qps (every %.3fs) for %.1fs over %d clients",
            config.qps,
            config.tick_interval,
            config.total_duration,
            self._pool.count(),
        )

        try:
            async with asyncio.TaskGroup() as group:
                await self._tick_loop(group, start)
                self._set_state(RunState.DRAINING)
                logger.debug("Stopped launching after %d requests, draining", self._launched)
        finally:
            self._token.remove_callback(self._on_cancel)

        self._set_state(RunState.DONE)
        summary = self._summarize(time.monotonic() - wall_start)
        logger.info(summary.describe())
        return summary

    async def _tick_loop(self, group: asyncio.TaskGroup, start: float) -> None:
        """Launch a worker per tick until cancellation or the deadline."""
        config = self._config
        loop = asyncio.get_running_loop()
        interval = config.tick_interval
        deadline = start + config.total_duration
        next_tick = start + interval

        while True:
            now = loop.time()
            if next_tick >= deadline:
                # No tick left inside the duration: wait out the deadline.
                if not await self._token.wait(deadline - now):
                    self._deadline_reached()
                break

            if await self._token.wait(next_tick - now):
                break

            if loop.time() - start >= config.total_duration:
                self._deadline_reached()
                break

            client = self._pool.get(self._launched)
            self._launched += 1
            group.create_task(
                self._worker.execute(client),
                name=f"list-{self._launched}",
            )

            next_tick += interval
            behind = loop.time() - next_tick
            if behind > interval:
                skipped = math.floor(behind / interval)
                next_tick += skipped * interval
                logger.debug("Tick loop behind schedule, dropped %d ticks", skipped)

    def _set_state(self, state: RunState) -> None:
        self._state = state
        self._history.append(state)

    def _on_cancel(self) -> None:
        if self._state is RunState.RUNNING:
            self._set_state(RunState.CANCELLING)

    def _deadline_reached(self) -> None:
        logger.debug("Run duration of %.1fs elapsed", self._config.total_duration)
        if self._state is RunState.RUNNING:
            self._set_state(RunState.CANCELLING)

    def _summarize(self, elapsed: float) -> Summary:
        total, failed = self._counters.snapshot()
        percentiles = self._latencies.percentiles()
        p50, p90, p99, p_max = percentiles if percentiles is not None else (None,) * 4
        return Summary(
            total=total,
            failed=failed,
            elapsed_seconds=elapsed,
            latency_count=len(self._latencies),
            latency_p50=p50,
            latency_p90=p90,
            latency_p99=p99,
            latency_max=p_max,
        )
