"""Fixed, round-robin pool of client handles."""

from __future__ import annotations

import contextlib
from typing import TYPE_CHECKING, Generic, TypeVar

from kubestress._internal.errors import ConfigError
from kubestress._internal.logging import get_logger
from kubestress.kube.client import KubeClient

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable

    from kubestress.kube.config import ClusterConfig

logger = get_logger("kube.pool")

T = TypeVar("T")


class ClientPool(Generic[T]):
    """Ordered, non-empty sequence of client handles.

    The pool only borrows its handles: it never opens, mutates or closes
    them. Use :func:`open_client_pool` to get a pool whose clients are
    opened and closed around a run.

    Args:
        clients: Client handles, in round-robin order.

    Raises:
        ConfigError: If ``clients`` is empty.
    """

    def __init__(self, clients: Iterable[T]) -> None:
        self._clients = tuple(clients)
        if not self._clients:
            msg = "client pool must contain at least one client"
            raise ConfigError(msg)

    def count(self) -> int:
        """Return the number of handles in the pool."""
        return len(self._clients)

    def get(self, index: int) -> T:
        """Return the handle for a tick index, wrapping around the pool."""
        return self._clients[index % len(self._clients)]

    def __len__(self) -> int:
        return len(self._clients)

    def __getitem__(self, index: int) -> T:
        return self._clients[index]


@contextlib.asynccontextmanager
async def open_client_pool(
    cluster: ClusterConfig,
    num_clients: int,
) -> AsyncIterator[ClientPool[KubeClient]]:
    """Open ``num_clients`` independent API clients as a pool.

    Each client owns its own aiohttp session and connection pool, spreading
    the load over several connections the way separate clientsets would.

    Args:
        cluster: Connection settings shared by every client.
        num_clients: Number of handles. Must be >= 1.

    Yields:
        ClientPool of opened KubeClient handles.

    Raises:
        ConfigError: If ``num_clients`` < 1.
    """
    if num_clients < 1:
        msg = f"num_clients must be >= 1, got {num_clients}"
        raise ConfigError(msg)

    async with contextlib.AsyncExitStack() as stack:
        clients = [
            await stack.enter_async_context(KubeClient(cluster, name=f"client-{i}"))
            for i in range(num_clients)
        ]
        logger.debug("Opened %d clients against %s", num_clients, cluster.base_url)
        yield ClientPool(clients)
