"""Dispatcher runs against the fake API server over real HTTP."""

from __future__ import annotations

import asyncio

import pytest

from kubestress._internal.config import DispatchConfig
from kubestress.engine.cancellation import CancellationToken
from kubestress.engine.dispatcher import RateLimitedDispatcher
from kubestress.kube.config import ClusterConfig
from kubestress.kube.pool import open_client_pool


async def _run(server_url: str, num_clients: int = 2, token=None, **config_kwargs):
    config = DispatchConfig(**config_kwargs)
    async with open_client_pool(ClusterConfig(server=server_url), num_clients) as pool:
        dispatcher = RateLimitedDispatcher(config, pool, token=token or CancellationToken())
        return await dispatcher.run()


@pytest.mark.timeout(15)
class TestDispatchAgainstApi:
    """End-to-end dispatch over aiohttp."""

    async def test_successful_run(self, api_server) -> None:
        summary = await _run(api_server.url, qps=20.0, total_duration=0.5, page_size=5)

        assert summary.total >= 8
        assert summary.failed == 0
        assert summary.latency_count == summary.total
        assert len(api_server.requests) == summary.total
        assert all(query == {"limit": "5"} for _, query, _ in api_server.requests)

    async def test_broken_namespace_fails_every_request(self, api_server) -> None:
        summary = await _run(api_server.url, qps=20.0, total_duration=0.3, namespace="broken")

        assert summary.total > 0
        assert summary.failed == summary.total
        assert summary.failure_rate == 100.0

    async def test_request_timeout(self, api_server) -> None:
        summary = await _run(
            api_server.url,
            qps=10.0,
            total_duration=0.25,
            request_timeout=0.1,
            namespace="hang",
        )

        assert summary.total >= 1
        assert summary.failed == summary.total

    async def test_cancellation_drains_slow_requests(self, api_server) -> None:
        token = CancellationToken()
        asyncio.get_running_loop().call_later(0.3, token.cancel)

        summary = await _run(
            api_server.url,
            token=token,
            qps=20.0,
            total_duration=60.0,
            namespace="hang",
        )

        assert 1 <= summary.total <= 10
        assert summary.failed == summary.total
