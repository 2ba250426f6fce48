# tests/test_connectivity.py

from __future__ import annotations

import httpx
import pytest

from tasksync.core.ports import ConnectivityState
from tasksync.net.connectivity import OFFLINE, ONLINE, HttpConnectivityMonitor, ManualConnectivityMonitor


def test_online_requires_reachability_not_explicitly_false() -> None:
    assert ConnectivityState(is_connected=True, is_internet_reachable=None).is_online
    assert ConnectivityState(is_connected=True, is_internet_reachable=True).is_online
    assert not ConnectivityState(is_connected=True, is_internet_reachable=False).is_online
    assert not ConnectivityState(is_connected=False, is_internet_reachable=None).is_online


def test_manual_monitor_emits_transitions_only() -> None:
    monitor = ManualConnectivityMonitor(online=True)
    seen: list[bool] = []
    unsubscribe = monitor.on_change(lambda s: seen.append(s.is_online))

    monitor.set_online(True)
    monitor.set_online(False)
    monitor.set_online(False)
    monitor.set_online(True)
    unsubscribe()
    monitor.set_online(False)

    assert seen == [False, True]


def _monitor(handler) -> HttpConnectivityMonitor:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpConnectivityMonitor("https://backend.test/rest/v1/", client=client)


@pytest.mark.asyncio
async def test_http_monitor_any_response_is_online() -> None:
    monitor = _monitor(lambda request: httpx.Response(401))
    assert await monitor.get_current_state() == ONLINE


@pytest.mark.asyncio
async def test_http_monitor_connect_error_is_offline() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("no route", request=request)

    monitor = _monitor(handler)
    assert await monitor.get_current_state() == OFFLINE


@pytest.mark.asyncio
async def test_http_monitor_timeout_means_connected_but_unreachable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    state = await _monitor(handler).get_current_state()
    assert state.is_connected
    assert state.is_internet_reachable is False
    assert not state.is_online


@pytest.mark.asyncio
async def test_http_monitor_publishes_on_change() -> None:
    status = {"up": True}

    def handler(request: httpx.Request) -> httpx.Response:
        if not status["up"]:
            raise httpx.ConnectError("down", request=request)
        return httpx.Response(200)

    monitor = _monitor(handler)
    seen: list[bool] = []
    monitor.on_change(lambda s: seen.append(s.is_online))

    await monitor.get_current_state()  # first observation is not a transition
    status["up"] = False
    await monitor.get_current_state()
    await monitor.get_current_state()
    status["up"] = True
    await monitor.get_current_state()

    assert seen == [False, True]
    await monitor.aclose()


@pytest.mark.asyncio
async def test_http_monitor_without_check_url_assumes_connected() -> None:
    monitor = HttpConnectivityMonitor("")
    state = await monitor.get_current_state()
    assert state.is_online
    assert state.is_internet_reachable is None
