"""Typed async client for the indexing backend's REST API.

Every operation returns an :class:`~fileassist.models.Envelope`. Transport
problems (DNS, refused connections, timeouts) are turned into a failure
envelope here and never reach callers as exceptions. No retries happen at
this layer.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from urllib.parse import quote

import httpx  # type: ignore[import-untyped]

from fileassist.models import GATEWAY_CLOSED, INVALID_RESPONSE, NETWORK_FAILURE, Envelope
from fileassist.state import BackendEndpoint

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class RemoteGateway:
    def __init__(
        self,
        endpoint: BackendEndpoint,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._endpoint = endpoint
        self._timeout = max(0.1, float(timeout))
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._closed = False

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self._client

    @property
    def closed(self) -> bool:
        return self._closed

    async def aclose(self) -> None:
        self._closed = True
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        *,
        payload: Optional[dict[str, Any]] = None,
        params: Optional[dict[str, Any]] = None,
        base_url: Optional[str] = None,
    ) -> Envelope:
        if self._closed:
            logger.debug("%s %s refused: gateway is closed", method, path)
            return Envelope.failure(GATEWAY_CLOSED)
        base = (base_url or self._endpoint.get()).rstrip("/")
        url = f"{base}/{path.lstrip('/')}"
        client = self._ensure_client()
        try:
            response = await asyncio.wait_for(
                client.request(method, url, json=payload, params=params),
                timeout=self._timeout,
            )
        except (httpx.HTTPError, httpx.InvalidURL, asyncio.TimeoutError) as exc:
            logger.warning("%s %s failed: %s", method, url, str(exc) or type(exc).__name__)
            return Envelope.failure(NETWORK_FAILURE)

        try:
            body = response.json()
        except ValueError:
            logger.warning("%s %s returned a non-JSON body (HTTP %s)", method, url, response.status_code)
            return Envelope.failure(INVALID_RESPONSE)
        envelope = Envelope.from_payload(body)
        if not envelope.success:
            logger.info("%s %s reported failure: %s", method, url, envelope.message)
        return envelope

    # Folders -------------------------------------------------------------
    async def list_folders(self) -> Envelope:
        return await self._request("GET", "/api/folders")

    async def add_folder(self, path: str, recursive: bool = True) -> Envelope:
        return await self._request("POST", "/api/folders", payload={"path": path, "recursive": bool(recursive)})

    async def remove_folder(self, folder_id: Any) -> Envelope:
        return await self._request("DELETE", f"/api/folders/{quote(str(folder_id), safe='')}")

    async def reindex_folders(self) -> Envelope:
        return await self._request("POST", "/api/folders/reindex")

    # Search --------------------------------------------------------------
    async def search(self, query: str, semantic: bool = False) -> Envelope:
        return await self._request("POST", "/api/search", payload={"query": query, "semantic": bool(semantic)})

    async def search_history(self, limit: int = 10) -> Envelope:
        return await self._request("GET", "/api/search/history", params={"limit": max(1, int(limit))})

    async def clear_search_history(self) -> Envelope:
        return await self._request("DELETE", "/api/search/history")

    # Status --------------------------------------------------------------
    async def get_status(self) -> Envelope:
        return await self._request("GET", "/api/status")

    async def get_monitoring_dashboard(self) -> Envelope:
        return await self._request("GET", "/api/monitoring/dashboard")

    async def test_endpoint(self, base_url: str) -> Envelope:
        """Check a candidate base URL without changing the configured one."""
        candidate = (base_url or "").strip()
        if not candidate:
            return Envelope.failure("backend URL is required")
        return await self._request("GET", "/api/status", base_url=candidate)


__all__ = ["DEFAULT_TIMEOUT", "RemoteGateway"]
