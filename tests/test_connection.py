from __future__ import annotations

import asyncio

import httpx
import pytest

from fileassist.connection import ConnectionMonitor
from fileassist.gateway import RemoteGateway
from fileassist.state import BackendEndpoint, ConnectionState, ConnectionStatus
from tests.fake_backend import BASE_URL, FakeBackend


def test_status_check_success_and_failure_transitions() -> None:
    backend = FakeBackend()
    status = ConnectionStatus()
    monitor = ConnectionMonitor(backend.gateway(), status)
    seen: list[ConnectionState] = []
    status.watch(seen.append)

    async def scenario() -> None:
        await monitor.refresh()
        assert status.state is ConnectionState.CONNECTED
        assert monitor.last_status == {"status": "UP", "indexedFiles": 12}

        backend.down = True
        envelope = await monitor.refresh()
        assert envelope.success is False

    asyncio.run(scenario())

    assert seen == [ConnectionState.CONNECTED, ConnectionState.CHECKING, ConnectionState.DISCONNECTED]
    assert status.state is ConnectionState.DISCONNECTED
    assert monitor.last_error == "network failure"
    # last known good status stays available for display
    assert monitor.last_status == {"status": "UP", "indexedFiles": 12}


def test_checking_is_set_before_the_check_completes() -> None:
    observed: list[ConnectionState] = []
    status = ConnectionStatus()

    def handler(request: httpx.Request) -> httpx.Response:
        observed.append(status.state)
        return httpx.Response(200, json={"success": False, "message": "starting up"})

    monitor = ConnectionMonitor(RemoteGateway(BackendEndpoint(BASE_URL), transport=httpx.MockTransport(handler)), status)
    envelope = asyncio.run(monitor.refresh())

    assert observed == [ConnectionState.CHECKING]
    assert envelope.message == "starting up"
    assert status.state is ConnectionState.DISCONNECTED
    assert monitor.last_error == "starting up"


def test_only_newest_check_writes_state() -> None:
    calls = {"n": 0}
    gate: dict[str, asyncio.Event] = {}

    async def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        if calls["n"] == 1:
            await gate["first"].wait()
            return httpx.Response(200, json={"success": True, "data": {"status": "UP"}})
        return httpx.Response(200, json={"success": False, "message": "down"})

    status = ConnectionStatus()
    monitor = ConnectionMonitor(RemoteGateway(BackendEndpoint(BASE_URL), transport=httpx.MockTransport(handler)), status)

    async def scenario() -> None:
        gate["first"] = asyncio.Event()
        slow = asyncio.create_task(monitor.refresh())
        while calls["n"] < 1:
            await asyncio.sleep(0)
        await monitor.refresh()
        assert status.state is ConnectionState.DISCONNECTED
        gate["first"].set()
        await slow

    asyncio.run(scenario())
    assert status.state is ConnectionState.DISCONNECTED
    assert monitor.last_status is None


def test_monitor_is_the_only_writer() -> None:
    status = ConnectionStatus()
    ConnectionMonitor(FakeBackend().gateway(), status)
    with pytest.raises(RuntimeError):
        ConnectionMonitor(FakeBackend().gateway(), status)
