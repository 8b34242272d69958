from __future__ import annotations

import asyncio
import json

import httpx

from fileassist.gateway import RemoteGateway
from fileassist.models import GATEWAY_CLOSED, INVALID_RESPONSE, NETWORK_FAILURE
from fileassist.state import BackendEndpoint
from tests.fake_backend import BASE_URL, FakeBackend


def _gateway(handler, **kwargs) -> RemoteGateway:
    return RemoteGateway(BackendEndpoint(BASE_URL), transport=httpx.MockTransport(handler), **kwargs)


def test_list_folders_returns_envelope_unchanged() -> None:
    backend = FakeBackend()
    backend.folders.append({"id": 1, "path": "/a", "recursive": True, "enabled": True})
    gateway = backend.gateway()

    envelope = asyncio.run(gateway.list_folders())

    assert envelope.success is True
    assert envelope.data == {"folders": backend.folders}
    assert str(backend.requests[0].url) == f"{BASE_URL}/api/folders"


def test_add_folder_sends_json_body() -> None:
    backend = FakeBackend()
    gateway = backend.gateway()

    envelope = asyncio.run(gateway.add_folder("/home/docs", recursive=False))

    request = backend.requests[0]
    assert request.method == "POST"
    assert json.loads(request.content) == {"path": "/home/docs", "recursive": False}
    assert envelope.success and envelope.message == "Folder added"


def test_remove_folder_quotes_identifier() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.raw_path.decode())
        return httpx.Response(200, json={"success": True})

    asyncio.run(_gateway(handler).remove_folder("a/b c"))
    assert seen == ["/assistant/api/folders/a%2Fb%20c"]


def test_transport_failure_becomes_network_failure() -> None:
    backend = FakeBackend()
    backend.down = True
    gateway = backend.gateway()

    async def scenario():
        return await asyncio.gather(
            gateway.get_status(),
            gateway.search("x"),
            gateway.get_monitoring_dashboard(),
        )

    for envelope in asyncio.run(scenario()):
        assert envelope.success is False
        assert envelope.message == NETWORK_FAILURE


def test_timeout_becomes_network_failure() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(1.0)
        return httpx.Response(200, json={"success": True})

    envelope = asyncio.run(_gateway(handler, timeout=0.1).get_status())
    assert envelope.success is False
    assert envelope.message == NETWORK_FAILURE


def test_non_json_body_is_invalid_response() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(502, text="<html>Bad gateway</html>")

    envelope = asyncio.run(_gateway(handler).get_status())
    assert envelope.success is False
    assert envelope.message == INVALID_RESPONSE


def test_backend_failure_is_passed_through() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"success": False, "message": "index locked"})

    envelope = asyncio.run(_gateway(handler).reindex_folders())
    assert envelope.success is False
    assert envelope.message == "index locked"


def test_search_history_and_clear() -> None:
    backend = FakeBackend()
    gateway = backend.gateway()

    async def scenario():
        await gateway.search("report", semantic=True)
        await gateway.search("invoice")
        history = await gateway.search_history(limit=1)
        cleared = await gateway.clear_search_history()
        after = await gateway.search_history()
        return history, cleared, after

    history, cleared, after = asyncio.run(scenario())
    assert history.data == [{"query": "invoice", "semantic": False}]
    assert backend.requests[2].url.params["limit"] == "1"
    assert cleared.success
    assert after.data == []


def test_endpoint_change_is_seen_by_next_call() -> None:
    backend = FakeBackend()
    endpoint = BackendEndpoint(BASE_URL)
    gateway = RemoteGateway(endpoint, transport=backend.transport())

    async def scenario():
        await gateway.get_status()
        endpoint.set("http://elsewhere.test/api-root")
        await gateway.get_status()
        await gateway.aclose()

    asyncio.run(scenario())
    assert [str(req.url) for req in backend.requests] == [
        f"{BASE_URL}/api/status",
        "http://elsewhere.test/api-root/api/status",
    ]


def test_requests_after_close_are_refused() -> None:
    backend = FakeBackend()
    gateway = backend.gateway()

    async def scenario():
        await gateway.get_status()
        await gateway.aclose()
        return await gateway.list_folders(), await gateway.search("late")

    listed, searched = asyncio.run(scenario())
    assert gateway.closed
    assert listed == searched
    assert listed.success is False
    assert listed.message == GATEWAY_CLOSED
    assert len(backend.requests) == 1


def test_test_endpoint_checks_candidate_only() -> None:
    backend = FakeBackend()
    gateway = backend.gateway()

    async def scenario():
        return await gateway.test_endpoint("http://candidate.test/assistant/"), await gateway.test_endpoint("  ")

    envelope, empty = asyncio.run(scenario())
    assert envelope.success
    assert str(backend.requests[0].url) == "http://candidate.test/assistant/api/status"
    assert empty.success is False
    assert len(backend.requests) == 1
