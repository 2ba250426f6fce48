# src/tasksync/net/connectivity.py

from __future__ import annotations

"""
Connectivity monitors.

Both implementations emit only transitions: listeners are called when the
state differs from the last one seen, never on every check.
"""

import asyncio
import logging
from collections.abc import Callable

import httpx

from ..core.ports import ConnectivityState, Unsubscribe

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[ConnectivityState], None]

OFFLINE = ConnectivityState(is_connected=False, is_internet_reachable=False)
ONLINE = ConnectivityState(is_connected=True, is_internet_reachable=True)


class _ListenerSet:
    def __init__(self) -> None:
        self._listeners: list[ConnectivityListener] = []
        self._state: ConnectivityState | None = None

    def on_change(self, callback: ConnectivityListener) -> Unsubscribe:
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def _publish(self, state: ConnectivityState) -> None:
        previous = self._state
        self._state = state
        if previous is None or previous.is_online == state.is_online:
            return
        logger.info("Connectivity changed online=%s", state.is_online)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Connectivity listener crashed")


class ManualConnectivityMonitor(_ListenerSet):
    """State is set explicitly (console `/net on|off`, tests)."""

    def __init__(self, online: bool = True) -> None:
        super().__init__()
        self._state = ONLINE if online else OFFLINE

    async def get_current_state(self) -> ConnectivityState:
        return self._state or OFFLINE

    def set_online(self, online: bool) -> None:
        self._publish(ONLINE if online else OFFLINE)


class HttpConnectivityMonitor(_ListenerSet):
    """
    Reachability by HTTP check.

    Any HTTP response (even 4xx) means the backend is reachable. A connect
    error means no network; a timeout or other transport error means a
    network without working internet.
    """

    def __init__(
            self,
            check_url: str,
            *,
            timeout_seconds: float = 3.0,
            interval_seconds: float = 5.0,
            client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self.check_url = check_url
        self._timeout = max(0.5, float(timeout_seconds))
        self._interval = max(0.5, float(interval_seconds))
        self._client = client
        self._owns_client = client is None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, follow_redirects=False)
        return self._client

    async def _check_connectivity(self) -> ConnectivityState:
        if not self.check_url:
            # Nothing to check: assume connected, reachability unknown.
            return ConnectivityState(is_connected=True, is_internet_reachable=None)
        try:
            await self._get_client().head(self.check_url)
        except httpx.ConnectError as e:
            logger.debug("Check connect error: %s", e)
            return OFFLINE
        except httpx.HTTPError as e:
            logger.debug("Check transport error: %s", e.__class__.__name__)
            return ConnectivityState(is_connected=True, is_internet_reachable=False)
        return ONLINE

    async def get_current_state(self) -> ConnectivityState:
        state = await self._check_connectivity()
        self._publish(state)
        return state

    async def run(self) -> None:
        """
        Poll forever, publishing transitions.

        To stop the monitor, cancel the coroutine/task.
        """
        while True:
            try:
                await self.get_current_state()
            except Exception:
                logger.exception("Connectivity check crashed")
            await asyncio.sleep(self._interval)

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
        self._client = None
