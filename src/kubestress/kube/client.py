"""Kubernetes API client handle issuing LIST requests over aiohttp."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Protocol

import aiohttp

from kubestress._internal.errors import ListRequestError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from kubestress.kube.config import ClusterConfig

# Bytes of an error response kept in ListRequestError.detail.
_ERROR_DETAIL_LIMIT = 512


class BodyStream(Protocol):
    """Response body as handed to the request worker."""

    def iter_chunked(self, n: int) -> AsyncIterator[bytes]: ...


class ListClient(Protocol):
    """A client handle able to serve concurrent LIST requests."""

    def stream_list(
        self,
        namespace: str,
        object_type: str,
        page_size: int,
    ) -> contextlib.AbstractAsyncContextManager[BodyStream]: ...


def list_path(namespace: str, object_type: str) -> str:
    """Return the core/v1 collection path for a resource.

    Args:
        namespace: Namespace to list from. Empty means all namespaces.
        object_type: Plural resource name, e.g. ``configmaps``.

    Returns:
        ``/api/v1/namespaces/<ns>/<type>`` or ``/api/v1/<type>``.
    """
    if namespace:
        return f"/api/v1/namespaces/{namespace}/{object_type}"
    return f"/api/v1/{object_type}"


class KubeClient:
    """One client handle: an ``aiohttp.ClientSession`` bound to an API server.

    The session's connector has no connection limit, so a single handle can
    carry any number of concurrent in-flight LIST calls.

    Attributes:
        cluster: Connection settings this client was built from.
        name: Label used in logs.
    """

    def __init__(self, cluster: ClusterConfig, name: str = "client-0") -> None:
        self.cluster = cluster
        self.name = name
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> KubeClient:
        """Open the underlying aiohttp session."""
        headers = {
            "Accept": "application/json",
            "User-Agent": "kubestress",
        }
        if self.cluster.token:
            headers["Authorization"] = f"Bearer {self.cluster.token}"

        self._session = aiohttp.ClientSession(
            headers=headers,
            connector=aiohttp.TCPConnector(limit=0, ssl=self.cluster.ssl_context()),
            timeout=aiohttp.ClientTimeout(total=None),
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    @contextlib.asynccontextmanager
    async def stream_list(
        self,
        namespace: str,
        object_type: str,
        page_size: int,
    ) -> AsyncIterator[aiohttp.StreamReader]:
        """Issue a LIST request and yield its body stream.

        The response is released when the context exits, whether the body
        was drained or not. Callers should drain it so the connection can be
        reused.

        Args:
            namespace: Namespace to list from. Empty means all namespaces.
            object_type: Plural resource name.
            page_size: ``limit`` query parameter. 0 sends no limit.

        Yields:
            The response body as an ``aiohttp.StreamReader``.

        Raises:
            RuntimeError: If the client is used outside ``async with``.
            ListRequestError: If the API server answers with status >= 400.
            aiohttp.ClientError: On transport failures.
        """
        if self._session is None:
            msg = "KubeClient must be used as an async context manager"
            raise RuntimeError(msg)

        params = {"limit": str(page_size)} if page_size > 0 else None
        url = f"{self.cluster.base_url}{list_path(namespace, object_type)}"
        async with self._session.get(url, params=params) as resp:
            if resp.status >= 400:
                body = await resp.read()
                raise ListRequestError(
                    resp.status,
                    str(resp.url),
                    body[:_ERROR_DETAIL_LIMIT].decode("utf-8", errors="replace").strip(),
                )
            yield resp.content
