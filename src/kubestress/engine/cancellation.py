"""One-shot cancellation shared by the dispatcher and its workers."""

from __future__ import annotations

import asyncio
import contextlib
import signal
import sys
from typing import TYPE_CHECKING

from kubestress._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import FrameType

logger = get_logger("engine.cancellation")

STOP_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class CancellationToken:
    """Cancellation flag observed by every task of one run.

    :meth:`cancel` only has an effect the first time it is called; later
    calls, from repeated signals or from the run finishing on its own, are
    no-ops. Must be used from the thread running the event loop.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._event = asyncio.Event()
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Return True once :meth:`cancel` has been called."""
        return self._cancelled

    def cancel(self) -> bool:
        """Cancel the token and run the registered callbacks.

        Returns:
            True for the call that actually cancelled, False afterwards.
        """
        if self._cancelled:
            return False
        self._cancelled = True
        self._event.set()

        callbacks, self._callbacks = self._callbacks, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("Cancellation callback %r failed", callback)
        return True

    def add_callback(self, callback: Callable[[], None]) -> None:
        """Run ``callback`` on cancellation, or right away if already cancelled.

        Args:
            callback: Zero-argument callable.
        """
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[], None]) -> None:
        """Unregister a callback that has not run yet."""
        with contextlib.suppress(ValueError):
            self._callbacks.remove(callback)

    async def wait(self, timeout: float | None = None) -> bool:
        """Wait until the token is cancelled or ``timeout`` seconds pass.

        Args:
            timeout: Maximum seconds to wait. None waits indefinitely.

        Returns:
            True if the token is cancelled.
        """
        if self._cancelled:
            return True
        with contextlib.suppress(TimeoutError):
            async with asyncio.timeout(timeout):
                await self._event.wait()
        return self._cancelled


class CancellationController:
    """Turns SIGINT/SIGTERM into a single cancellation of a token.

    Used as a context manager around a run. While active, every stop signal
    is logged and forwarded to :meth:`CancellationToken.cancel`; only the
    first one cancels. Handlers stay installed until exit so that a second
    Ctrl-C does not raise ``KeyboardInterrupt`` while workers drain.

    Attributes:
        signals_received: Number of stop signals seen while active.
    """

    def __init__(self, token: CancellationToken) -> None:
        self._token = token
        self._loop: asyncio.AbstractEventLoop | None = None
        self._use_loop_handlers = False
        self._previous: dict[signal.Signals, object] = {}
        self.signals_received = 0

    def __enter__(self) -> CancellationController:
        """Install the stop-signal handlers on the running loop."""
        self._loop = asyncio.get_running_loop()
        self._use_loop_handlers = sys.platform != "win32"

        for sig in STOP_SIGNALS:
            if self._use_loop_handlers:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            else:
                # No add_signal_handler on Windows event loops.
                self._previous[sig] = signal.signal(sig, self._on_raw_signal)
        return self

    def __exit__(self, *exc_info: object) -> None:
        """Remove the handlers installed by ``__enter__``."""
        if self._loop is None:
            return
        for sig in STOP_SIGNALS:
            if self._use_loop_handlers:
                self._loop.remove_signal_handler(sig)
            else:
                signal.signal(sig, self._previous.pop(sig, signal.SIG_DFL))  # type: ignore[arg-type]
        self._loop = None
        logger.debug("Stop-signal handlers removed")

    def _on_signal(self, sig: signal.Signals) -> None:
        self.signals_received += 1
        logger.debug("Received a stop signal: %s", sig.name)
        if self._token.cancel():
            logger.info("Stopping: no new requests will be sent, draining in-flight ones")

    def _on_raw_signal(self, signum: int, _frame: FrameType | None) -> None:
        if self._loop is not None:
            self._loop.call_soon_threadsafe(self._on_signal, signal.Signals(signum))
