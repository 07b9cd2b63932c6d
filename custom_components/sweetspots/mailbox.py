"""
CallbackMailbox - serialises platform callbacks onto the owning event loop.

This is a pure asyncio concurrency primitive with no HA or platform dependencies.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable

_LOGGER = logging.getLogger(__name__)


class CallbackMailbox:
    """
    Single-consumer queue of callbacks.

    post() may be called from any thread; callbacks are executed one at a time,
    in posting order, by a single worker task on the loop that started the
    mailbox. A failing callback is logged and does not stop the worker.
    """

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @property
    def started(self) -> bool:
        return self._worker is not None

    async def async_start(self) -> None:
        """Bind to the running loop and spawn the worker."""
        if self._worker is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._queue = asyncio.Queue()
        self._worker = self._loop.create_task(self._run())

    def post(self, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule callback(*args) on the owning loop. Thread-safe."""
        if self._loop is None or self._queue is None:
            raise RuntimeError("CallbackMailbox.post() called before async_start()")
        self._loop.call_soon_threadsafe(self._queue.put_nowait, (callback, args))

    async def async_join(self) -> None:
        """Wait until every callback posted so far has run."""
        if self._queue is None:
            return
        # Let call_soon_threadsafe hand-offs from this loop land in the queue first
        await asyncio.sleep(0)
        await self._queue.join()

    async def async_shutdown(self) -> None:
        """Cancel the worker and drop pending callbacks."""
        if self._worker is None:
            return
        self._worker.cancel()
        results = await asyncio.gather(self._worker, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception) and not isinstance(result, asyncio.CancelledError):
                _LOGGER.debug("CallbackMailbox worker error during shutdown: %s", result)
        self._worker = None
        self._queue = None
        self._loop = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        """Consume callbacks indefinitely."""
        queue = self._queue
        while True:
            callback, args = await queue.get()
            try:
                callback(*args)
            except Exception:  # noqa: BLE001
                _LOGGER.exception("Error while handling %s", getattr(callback, "__name__", callback))
            finally:
                queue.task_done()
