from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Awaitable, Optional

logger = logging.getLogger(__name__)


class AsyncRuntime:
    """One long-lived event loop on a daemon thread.

    Flask views are synchronous; they hand coroutines to this loop so that the
    ledger lock, the sync lock, background pushes and the connectivity timer
    all live on the same loop for the lifetime of the process.
    """

    def __init__(self, *, name: str = "attendance-runtime"):
        self._name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._ready = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._ready.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self._name, daemon=True)
        self._thread.start()
        self._ready.wait()
        logger.debug("Async runtime %s started", self._name)

    def _run_loop(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        self._loop = loop
        self._ready.set()
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    def run(self, coro: Awaitable[Any], *, timeout: Optional[float] = None) -> Any:
        """Run a coroutine on the runtime loop and block for its result."""
        if self._loop is None or not self.running:
            raise RuntimeError("Async runtime is not running")
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        return future.result(timeout)

    def stop(self) -> None:
        if self._loop is None or self._thread is None:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout=5)
        self._thread = None
        self._loop = None
        logger.debug("Async runtime %s stopped", self._name)
