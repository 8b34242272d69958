"""UI runtime: the client-side components wired together on one event loop.

The runtime never touches host objects. Native dialogs, the app version and
tray-originated events all arrive through the :class:`BridgeClient`.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Coroutine, Optional

from fileassist.bridge import (
    ADD_FOLDER,
    GET_APP_VERSION,
    REINDEX_FILES,
    SHOW_MESSAGE_BOX,
    SHOW_OPEN_DIALOG,
    BridgeClient,
    BridgeError,
    Subscription,
    default_socket_path,
)
from fileassist.config import section, set_backend_url
from fileassist.connection import ConnectionMonitor
from fileassist.folders import FolderRegistry
from fileassist.gateway import RemoteGateway
from fileassist.models import Envelope
from fileassist.poller import MonitoringPoller
from fileassist.search import SearchSession
from fileassist.state import AppState

logger = logging.getLogger(__name__)


class UiRuntime:
    """Client-side components sharing one :class:`AppState`.

    ``open()`` returns as soon as the bridge is wired up. The first status
    check and folder load run as a background task, so a slow or unreachable
    backend shows up as ``checking`` and then ``disconnected`` instead of
    holding up the window. Every task the runtime starts is cancelled by
    ``close()``.
    """

    def __init__(
        self,
        state: AppState,
        gateway: RemoteGateway,
        bridge: BridgeClient,
        *,
        poll_interval: float = 30.0,
        persist_endpoint: Callable[[str], Any] = set_backend_url,
    ) -> None:
        self.state = state
        self.gateway = gateway
        self.bridge = bridge
        self.connection = ConnectionMonitor(gateway, state.connection)
        self.folders = FolderRegistry(gateway)
        self.search = SearchSession(gateway)
        self.poller = MonitoringPoller(gateway, interval=poll_interval)
        self._persist_endpoint = persist_endpoint
        self._subscriptions: list[Subscription] = []
        self._tasks: set[asyncio.Task[Any]] = set()
        self._initial_sync: Optional[asyncio.Task[None]] = None
        self.opened = False

    async def open(self) -> None:
        try:
            await self.bridge.connect()
        except BridgeError as exc:
            logger.error("Host bridge unavailable; native features disabled: %s", exc)
        else:
            self._subscriptions = [
                self.bridge.subscribe(REINDEX_FILES, self._on_reindex_requested),
                self.bridge.subscribe(ADD_FOLDER, self._on_folder_selected),
            ]
            try:
                version = await self.bridge.invoke(GET_APP_VERSION)
            except BridgeError as exc:
                logger.warning("Could not read the host version: %s", exc)
            else:
                self.state.app_version = str(version)

        self._initial_sync = self._spawn(self._sync(), name="initial-sync")
        self.poller.start()
        self.opened = True

    async def wait_synced(self) -> None:
        """Wait for the startup status check and folder load to settle."""
        task = self._initial_sync
        if task is not None:
            await asyncio.shield(task)

    async def close(self) -> None:
        for subscription in self._subscriptions:
            subscription.unsubscribe()
        self._subscriptions = []
        tasks, self._tasks = list(self._tasks), set()
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._initial_sync = None
        await self.poller.stop()
        await self.bridge.close()
        await self.gateway.aclose()
        self.opened = False

    async def _sync(self) -> None:
        await self.connection.refresh()
        await self.folders.list()

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        task = asyncio.get_running_loop().create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Runtime task %s failed", task.get_name(), exc_info=task.exception())

    # Host events ---------------------------------------------------------
    def _on_reindex_requested(self, _payload: Any) -> None:
        logger.info("Re-index requested from the tray")
        self._spawn(self.folders.reindex(), name="reindex-files")

    def _on_folder_selected(self, payload: Any) -> None:
        path = payload.get("path") if isinstance(payload, dict) else payload
        if not isinstance(path, str) or not path.strip():
            logger.warning("Ignoring add-folder event without a path: %r", payload)
            return
        self._spawn(self.folders.add(path, True), name="add-folder")

    # Settings ------------------------------------------------------------
    async def save_settings(self, url: str) -> Envelope:
        cleaned = (url or "").strip()
        if not cleaned:
            return Envelope.failure("backend URL is required")
        try:
            self._persist_endpoint(cleaned)
        except (OSError, ValueError) as exc:
            logger.error("Saving the backend URL failed: %s", exc)
            return Envelope.failure(f"could not save settings: {exc}")
        self.state.endpoint.set(cleaned)
        await self.connection.refresh()
        return Envelope.ok({"url": self.state.endpoint.get(), "connection": self.state.connection.state.value})

    async def test_connection(self, url: Optional[str] = None) -> Envelope:
        return await self.gateway.test_endpoint(url or self.state.endpoint.get())

    # Native dialogs ------------------------------------------------------
    async def pick_folder(self, default_path: str = "") -> Optional[str]:
        result = await self.bridge.invoke(
            SHOW_OPEN_DIALOG,
            {"properties": ["openDirectory"], "defaultPath": default_path, "title": "Select a folder to watch"},
        )
        if not isinstance(result, dict) or result.get("canceled"):
            return None
        paths = result.get("filePaths") or []
        return str(paths[0]) if paths else None

    async def confirm(self, title: str, message: str) -> bool:
        result = await self.bridge.invoke(
            SHOW_MESSAGE_BOX,
            {"type": "question", "title": title, "message": message, "buttons": ["OK", "Cancel"], "defaultId": 0, "cancelId": 1},
        )
        return isinstance(result, dict) and result.get("response") == 0

    def snapshot(self) -> dict[str, Any]:
        monitoring = self.poller.snapshot
        return {
            "app": self.state.snapshot(),
            "status": self.connection.last_status,
            "connection_error": self.connection.last_error,
            "folders": [folder.as_dict() for folder in self.folders.folders],
            "folders_error": self.folders.last_error,
            "search": self.search.current.as_dict(),
            "search_pending": self.search.pending,
            "monitoring": monitoring.as_dict() if monitoring is not None else None,
            "monitoring_error": self.poller.last_error,
        }


def build_runtime(config: dict[str, Any], *, socket_path: Path | None = None) -> UiRuntime:
    backend = section("backend", config)
    bridge_cfg = section("bridge", config)
    monitoring = section("monitoring", config)

    state = AppState.from_config(config)
    gateway = RemoteGateway(state.endpoint, timeout=float(backend.get("timeout_seconds", 10.0)))
    bridge = BridgeClient(
        socket_path or default_socket_path(config),
        timeout=float(bridge_cfg.get("invoke_timeout_seconds", 120.0)),
    )
    return UiRuntime(state, gateway, bridge, poll_interval=float(monitoring.get("interval_seconds", 30.0)))


class RuntimeThread:
    """Runs a :class:`UiRuntime` on a dedicated event loop thread."""

    def __init__(self, runtime: UiRuntime) -> None:
        self.runtime = runtime
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.RLock()
        self._opening: Optional[concurrent.futures.Future[None]] = None

    def start(self, *, open_timeout: float = 30.0) -> None:
        with self._lock:
            if self._thread is not None:
                return
            self._loop = asyncio.new_event_loop()
            self._thread = threading.Thread(target=self._loop.run_forever, daemon=True, name="ui-runtime")
            self._thread.start()
        future = self._opening = asyncio.run_coroutine_threadsafe(self.runtime.open(), self._loop)
        try:
            future.result(timeout=open_timeout)
        except concurrent.futures.TimeoutError:
            # keeps opening on the loop; the view shows whatever state it reached
            logger.warning("UI runtime still opening after %.1fs; continuing startup", open_timeout)

    def submit(self, coro: Coroutine[Any, Any, Any], timeout: Optional[float] = None) -> Any:
        loop = self._loop
        if loop is None:
            coro.close()
            raise RuntimeError("UI runtime is not running")
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self) -> None:
        with self._lock:
            thread, self._thread = self._thread, None
            loop = self._loop
        if thread is None or loop is None:
            return
        opening, self._opening = self._opening, None
        if opening is not None:
            # an open still waiting on the bridge must not outlive close()
            opening.cancel()
        try:
            self.submit(self.runtime.close(), timeout=10.0)
        finally:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=2.0)
            loop.close()
            self._loop = None


__all__ = ["RuntimeThread", "UiRuntime", "build_runtime"]
