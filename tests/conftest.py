"""Shared test fixtures for the kubestress test suite."""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import socket
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Iterator
    from pathlib import Path


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


@pytest.fixture(autouse=True)
def _reset_kubestress_logger() -> Iterator[None]:
    """Drop handlers bound to streams that a test (e.g. CliRunner) replaced."""
    yield
    logger = logging.getLogger("kubestress")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


# =============================================================================
# Fake client handles for dispatcher and worker tests
# =============================================================================


class FakeBody:
    """Response body yielding a payload in chunks."""

    def __init__(self, payload: bytes) -> None:
        self._payload = payload
        self.consumed = 0

    async def iter_chunked(self, n: int) -> AsyncIterator[bytes]:
        for i in range(0, len(self._payload), n):
            chunk = self._payload[i : i + n]
            self.consumed += len(chunk)
            await asyncio.sleep(0)
            yield chunk


class FakeListClient:
    """In-memory client handle with configurable delay and failure.

    Tracks calls, concurrently open responses and released responses so
    tests can check the scoped-acquisition behaviour of the worker.
    """

    def __init__(
        self,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
        payload: bytes = b'{"kind": "ConfigMapList", "items": []}',
    ) -> None:
        self.delay = delay
        self.error = error
        self.payload = payload
        self.calls: list[tuple[str, str, int]] = []
        self.open = 0
        self.max_open = 0
        self.released = 0

    @contextlib.asynccontextmanager
    async def stream_list(
        self,
        namespace: str,
        object_type: str,
        page_size: int,
    ) -> AsyncIterator[FakeBody]:
        self.calls.append((namespace, object_type, page_size))
        self.open += 1
        self.max_open = max(self.max_open, self.open)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if self.error is not None:
                raise self.error
            yield FakeBody(self.payload)
        finally:
            self.open -= 1
            self.released += 1


@pytest.fixture
def make_client() -> Callable[..., FakeListClient]:
    """Factory for :class:`FakeListClient` instances."""
    return FakeListClient


# =============================================================================
# Fake Kubernetes API server
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


@dataclass
class FakeApiServer:
    """Handle on a running fake API server.

    Attributes:
        url: Base URL, e.g. ``http://127.0.0.1:54321``.
        requests: ``(path, query, authorization)`` of every request received.
    """

    url: str
    requests: list[tuple[str, dict[str, str], str | None]] = field(default_factory=list)


def _object_list(object_type: str, namespace: str, limit: int) -> dict[str, object]:
    kind = {"configmaps": "ConfigMap", "pods": "Pod"}.get(object_type, "Object")
    total = 25
    count = min(limit, total) if limit > 0 else total
    metadata: dict[str, object] = {"resourceVersion": "1000"}
    if count < total:
        metadata["continue"] = f"token-{count}"
    return {
        "kind": f"{kind}List",
        "apiVersion": "v1",
        "metadata": metadata,
        "items": [
            {"metadata": {"name": f"{object_type}-{i}", "namespace": namespace or "default"}}
            for i in range(count)
        ],
    }


def _create_api_app(server: FakeApiServer) -> web.Application:
    """Build a fake API server whose behaviour depends on the namespace.

    Namespaces: ``slow`` answers after ``?delay`` (default 0.2s), ``hang``
    never answers within a test, ``broken`` returns 500 and ``forbidden``
    returns 403. Anything else returns a list of 25 objects.
    """

    async def _list(request: web.Request) -> web.StreamResponse:
        namespace = request.match_info.get("namespace", "")
        object_type = request.match_info["resource"]
        server.requests.append(
            (request.path, dict(request.query), request.headers.get("Authorization"))
        )

        if namespace == "slow":
            await asyncio.sleep(float(request.query.get("delay", "0.2")))
        elif namespace == "hang":
            await asyncio.sleep(30)
        elif namespace == "broken":
            return web.json_response(
                {"kind": "Status", "status": "Failure", "message": "etcdserver: timeout"},
                status=500,
            )
        elif namespace == "forbidden":
            return web.json_response(
                {"kind": "Status", "status": "Failure", "reason": "Forbidden"},
                status=403,
            )

        limit = int(request.query.get("limit", "0"))
        body = json.dumps(_object_list(object_type, namespace, limit)).encode()
        return web.Response(body=body, content_type="application/json")

    app = web.Application()
    app.router.add_get("/api/v1/namespaces/{namespace}/{resource}", _list)
    app.router.add_get("/api/v1/{resource}", _list)
    return app


@pytest.fixture
async def api_server() -> AsyncIterator[FakeApiServer]:
    """Fake API server on the test's event loop."""
    port = _get_free_port()
    server = FakeApiServer(url=f"http://127.0.0.1:{port}")
    runner = web.AppRunner(
        _create_api_app(server), handler_cancellation=True, shutdown_timeout=1.0
    )
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield server
    await runner.cleanup()


@pytest.fixture
def sync_api_server() -> Iterator[FakeApiServer]:
    """Fake API server running in a background thread for sync tests.

    Needed where the code under test starts its own event loop, such as
    ``run_list`` and the CLI.
    """
    port = _get_free_port()
    server = FakeApiServer(url=f"http://127.0.0.1:{port}")
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        runner = web.AppRunner(
            _create_api_app(server), handler_cancellation=True, shutdown_timeout=1.0
        )
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield server

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)


@pytest.fixture
def kubeconfig_file(tmp_path: Path, sync_api_server: FakeApiServer) -> Path:
    """Kubeconfig pointing at the threaded fake API server."""
    content = f"""\
apiVersion: v1
kind: Config
current-context: fake
clusters:
- name: fake-cluster
  cluster:
    server: {sync_api_server.url}
contexts:
- name: fake
  context:
    cluster: fake-cluster
    user: fake-user
users:
- name: fake-user
  user:
    token: fake-token
"""
    path = tmp_path / "kubeconfig"
    path.write_text(content)
    return path
