from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional, Protocol

import requests

from ..core.constants import DEFAULT_PROBE_INTERVAL_SECONDS, DEFAULT_PROBE_TIMEOUT_SECONDS, DEFAULT_PROBE_URL

logger = logging.getLogger(__name__)


class ConnectivitySignal(Protocol):
    """Read side of connectivity: the latest known online/offline state."""

    def is_online(self) -> bool:
        raise NotImplementedError


class ConnectivityProbe(Protocol):
    """One reachability check. Must return False (never raise) on failure."""

    async def check(self) -> bool:
        raise NotImplementedError


class HttpConnectivityProbe(ConnectivityProbe):
    """Lightweight HEAD request against a well-known URL."""

    def __init__(
        self,
        url: str = DEFAULT_PROBE_URL,
        *,
        timeout: float = DEFAULT_PROBE_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ):
        self._url = url
        self._timeout = float(timeout)
        self._session = session or requests.Session()

    async def check(self) -> bool:
        return await asyncio.to_thread(self._head)

    def _head(self) -> bool:
        try:
            self._session.head(self._url, timeout=self._timeout, allow_redirects=True)
            return True
        except requests.RequestException as e:
            logger.debug("Connectivity probe to %s failed: %s", self._url, e)
            return False


class ConnectivityMonitor(ConnectivitySignal):
    """Process-wide connectivity signal with an explicit lifecycle.

    start() runs one check immediately and then one every `interval` seconds
    on its own task; stop() cancels it. Consumers only ever read the latest
    boolean via is_online(). Listeners are told about transitions.
    """

    def __init__(
        self,
        probe: ConnectivityProbe,
        *,
        interval: float = DEFAULT_PROBE_INTERVAL_SECONDS,
        initial: bool = False,
    ):
        self._probe = probe
        self._interval = float(interval)
        self._online = bool(initial)
        self._task: Optional[asyncio.Task] = None
        self._listeners: list[Callable[[bool], None]] = []

    def is_online(self) -> bool:
        return self._online

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscribe(self, listener: Callable[[bool], None]) -> None:
        self._listeners.append(listener)

    def start(self) -> None:
        """Must be called from inside the event loop that owns the monitor."""
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run(), name="connectivity-monitor")
        logger.info("Connectivity monitor started (interval=%ss)", self._interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Connectivity monitor stopped")

    async def refresh(self) -> bool:
        """Run one probe now and publish the result."""
        try:
            online = bool(await self._probe.check())
        except Exception:
            logger.exception("Connectivity probe raised; treating as offline")
            online = False
        self._publish(online)
        return online

    async def _run(self) -> None:
        while True:
            await self.refresh()
            await asyncio.sleep(self._interval)

    def _publish(self, online: bool) -> None:
        if online == self._online:
            return
        self._online = online
        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in list(self._listeners):
            try:
                listener(online)
            except Exception:
                logger.exception("Connectivity listener failed")
