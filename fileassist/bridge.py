"""Allow-listed message bridge between the host shell and the UI runtime.

Frames are newline-delimited JSON over a Unix domain socket:

* ``{"id", "type": "invoke", "channel", "payload"}`` (runtime -> host)
* ``{"id", "type": "result", "ok", "value" | "error"}`` (host -> runtime)
* ``{"type": "event", "channel", "payload"}`` (host -> runtime)

Only the channels listed in :data:`INVOKE_CHANNELS` and :data:`EVENT_CHANNELS`
can cross. Both ends enforce the lists.
"""
from __future__ import annotations

import asyncio
import contextlib
import inspect
import itertools
import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Optional

from fileassist.config import state_directory

logger = logging.getLogger(__name__)

GET_APP_VERSION = "get-app-version"
SHOW_MESSAGE_BOX = "show-message-box"
SHOW_OPEN_DIALOG = "show-open-dialog"
REINDEX_FILES = "reindex-files"
ADD_FOLDER = "add-folder"

INVOKE_CHANNELS = frozenset({GET_APP_VERSION, SHOW_MESSAGE_BOX, SHOW_OPEN_DIALOG})
EVENT_CHANNELS = frozenset({REINDEX_FILES, ADD_FOLDER})

DEFAULT_INVOKE_TIMEOUT = 120.0
_STREAM_LIMIT = 1 << 20

HostHandler = Callable[[Any], Any]
EventCallback = Callable[[Any], Any]


class BridgeError(RuntimeError):
    """The bridge is not connected or the connection dropped."""


class BridgeTimeout(BridgeError):
    """An invoke did not get an answer in time."""


class BridgeRejected(BridgeError):
    """The channel is not allow-listed or the host handler failed."""


def default_socket_path(config: Optional[dict[str, Any]] = None) -> Path:
    bridge_cfg = (config or {}).get("bridge", {})
    configured = bridge_cfg.get("socket_path") if isinstance(bridge_cfg, dict) else None
    if configured:
        return Path(str(configured)).expanduser()
    return state_directory() / "bridge.sock"


def _encode(frame: dict[str, Any]) -> bytes:
    return json.dumps(frame).encode("utf-8") + b"\n"


# Host side ---------------------------------------------------------------
class BridgeHost:
    """Serves invoke requests and pushes events to connected runtimes.

    Handlers are plain callables run in the default executor, so a modal
    native dialog never blocks the bridge loop. ``start()``/``stop()`` run the
    server on a private loop thread; ``open()``/``close()`` run it on the
    caller's loop.
    """

    def __init__(self, socket_path: Path | str) -> None:
        self._path = Path(socket_path)
        self._handlers: dict[str, HostHandler] = {}
        self._clients: set[asyncio.StreamWriter] = set()
        self._server: Optional[asyncio.AbstractServer] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._loop_thread: Optional[threading.Thread] = None
        self._lock = threading.RLock()

    @property
    def socket_path(self) -> Path:
        return self._path

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def register(self, channel: str, handler: HostHandler) -> None:
        if channel not in INVOKE_CHANNELS:
            raise BridgeRejected(f"channel not allowed: {channel}")
        with self._lock:
            self._handlers[channel] = handler

    def emit(self, channel: str, payload: Any = None) -> None:
        """Push an event to every connected runtime. Safe from any thread."""
        if channel not in EVENT_CHANNELS:
            raise BridgeRejected(f"event not allowed: {channel}")
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.warning("Dropping %s event: bridge is not running", channel)
            return
        frame = {"type": "event", "channel": channel, "payload": payload}
        loop.call_soon_threadsafe(lambda: loop.create_task(self._broadcast(frame)))

    # Lifecycle -----------------------------------------------------------
    def start(self) -> None:
        with self._lock:
            if self._loop_thread is not None:
                return
            loop = asyncio.new_event_loop()
            self._loop_thread = threading.Thread(target=loop.run_forever, daemon=True, name="bridge-host")
            self._loop_thread.start()
        asyncio.run_coroutine_threadsafe(self.open(), loop).result(timeout=5.0)

    def stop(self) -> None:
        with self._lock:
            thread, self._loop_thread = self._loop_thread, None
        loop = self._loop
        if thread is None or loop is None:
            return
        asyncio.run_coroutine_threadsafe(self.close(), loop).result(timeout=5.0)
        loop.call_soon_threadsafe(loop.stop)
        thread.join(timeout=2.0)
        loop.close()
        self._loop = None

    async def open(self) -> None:
        self._loop = asyncio.get_running_loop()
        self._path.parent.mkdir(parents=True, exist_ok=True)
        with contextlib.suppress(FileNotFoundError):
            self._path.unlink()
        self._server = await asyncio.start_unix_server(self._handle_client, path=str(self._path), limit=_STREAM_LIMIT)
        logger.info("Bridge listening on %s", self._path)

    async def close(self) -> None:
        server, self._server = self._server, None
        if server is not None:
            server.close()
        # wait_closed() also waits for open connections, so drop clients first
        for writer in list(self._clients):
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()
        self._clients.clear()
        if server is not None:
            await server.wait_closed()
        with contextlib.suppress(FileNotFoundError):
            self._path.unlink()

    # Connection handling -------------------------------------------------
    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._clients.add(writer)
        logger.debug("Bridge client connected")
        try:
            while not reader.at_eof():
                line = await reader.readline()
                if not line:
                    break
                try:
                    frame = json.loads(line.decode("utf-8"))
                except ValueError:
                    logger.warning("Bridge received a malformed frame")
                    continue
                if not isinstance(frame, dict) or frame.get("type") != "invoke" or "id" not in frame:
                    logger.warning("Bridge ignored unexpected frame: %r", frame)
                    continue
                asyncio.get_running_loop().create_task(self._dispatch(frame, writer))
        except ConnectionError:
            logger.debug("Bridge client connection reset")
        finally:
            self._clients.discard(writer)
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()

    async def _dispatch(self, frame: dict[str, Any], writer: asyncio.StreamWriter) -> None:
        call_id = frame["id"]
        channel = str(frame.get("channel", ""))
        if channel not in INVOKE_CHANNELS:
            logger.warning("Rejected invoke on channel %r", channel)
            await self._send(writer, {"id": call_id, "type": "result", "ok": False, "error": f"channel not allowed: {channel}"})
            return
        with self._lock:
            handler = self._handlers.get(channel)
        if handler is None:
            await self._send(writer, {"id": call_id, "type": "result", "ok": False, "error": f"no handler for {channel}"})
            return

        loop = asyncio.get_running_loop()
        try:
            value = await loop.run_in_executor(None, handler, frame.get("payload"))
            response = {"id": call_id, "type": "result", "ok": True, "value": value}
            _encode(response)  # handler results must be JSON-serializable
        except Exception as exc:
            logger.exception("Bridge handler for %s failed", channel)
            response = {"id": call_id, "type": "result", "ok": False, "error": str(exc) or type(exc).__name__}
        await self._send(writer, response)

    async def _broadcast(self, frame: dict[str, Any]) -> None:
        for writer in list(self._clients):
            await self._send(writer, frame)

    async def _send(self, writer: asyncio.StreamWriter, frame: dict[str, Any]) -> None:
        try:
            writer.write(_encode(frame))
            await writer.drain()
        except ConnectionError:
            self._clients.discard(writer)
            logger.debug("Dropped frame for a disconnected bridge client")


# Runtime side ------------------------------------------------------------
class Subscription:
    """Handle returned by :meth:`BridgeClient.subscribe`."""

    def __init__(self, client: "BridgeClient", channel: str, callback: EventCallback) -> None:
        self.channel = channel
        self._client = client
        self._callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._client._detach(self)

    def deliver(self, payload: Any) -> None:
        if not self.active:
            return
        try:
            result = self._callback(payload)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                task.add_done_callback(_log_task_failure)
        except Exception:
            logger.exception("Bridge subscriber for %s failed", self.channel)

    def __enter__(self) -> "Subscription":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.unsubscribe()


def _log_task_failure(task: asyncio.Future) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Bridge subscriber task failed", exc_info=exc)


class BridgeClient:
    def __init__(self, socket_path: Path | str, *, timeout: float = DEFAULT_INVOKE_TIMEOUT) -> None:
        self._path = Path(socket_path)
        self._timeout = float(timeout)
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None
        self._reader_task: Optional[asyncio.Task[None]] = None
        self._pending: dict[int, asyncio.Future] = {}
        self._subscriptions: dict[str, list[Subscription]] = {}
        self._ids = itertools.count(1)

    @property
    def connected(self) -> bool:
        return self._writer is not None and self._reader_task is not None and not self._reader_task.done()

    async def connect(self) -> None:
        if self.connected:
            return
        try:
            self._reader, self._writer = await asyncio.open_unix_connection(str(self._path), limit=_STREAM_LIMIT)
        except OSError as exc:
            raise BridgeError(f"cannot reach host bridge at {self._path}: {exc}") from exc
        self._reader_task = asyncio.get_running_loop().create_task(self._read_loop(), name="bridge-reader")
        logger.info("Connected to host bridge at %s", self._path)

    async def close(self) -> None:
        task, self._reader_task = self._reader_task, None
        writer, self._writer = self._writer, None
        if writer is not None:
            writer.close()
            with contextlib.suppress(Exception):
                await writer.wait_closed()
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._fail_pending("bridge closed")

    async def invoke(self, channel: str, payload: Any = None, timeout: Optional[float] = None) -> Any:
        if channel not in INVOKE_CHANNELS:
            raise BridgeRejected(f"channel not allowed: {channel}")
        if not self.connected or self._writer is None:
            raise BridgeError("bridge is not connected")

        call_id = next(self._ids)
        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[call_id] = future
        try:
            self._writer.write(_encode({"id": call_id, "type": "invoke", "channel": channel, "payload": payload}))
            await self._writer.drain()
            return await asyncio.wait_for(future, timeout=self._timeout if timeout is None else timeout)
        except asyncio.TimeoutError as exc:
            raise BridgeTimeout(f"{channel} timed out") from exc
        except ConnectionError as exc:
            raise BridgeError(f"bridge connection lost during {channel}") from exc
        finally:
            self._pending.pop(call_id, None)

    def subscribe(self, channel: str, callback: EventCallback) -> Subscription:
        if channel not in EVENT_CHANNELS:
            raise BridgeRejected(f"event not allowed: {channel}")
        subscription = Subscription(self, channel, callback)
        self._subscriptions.setdefault(channel, []).append(subscription)
        return subscription

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscriptions.get(channel, []))

    def _detach(self, subscription: Subscription) -> None:
        subscribers = self._subscriptions.get(subscription.channel, [])
        if subscription in subscribers:
            subscribers.remove(subscription)

    async def _read_loop(self) -> None:
        assert self._reader is not None
        try:
            while True:
                line = await self._reader.readline()
                if not line:
                    break
                try:
                    frame = json.loads(line.decode("utf-8"))
                except ValueError:
                    logger.warning("Bridge client received a malformed frame")
                    continue
                if isinstance(frame, dict):
                    self._handle_frame(frame)
        except ConnectionError:
            logger.warning("Host bridge connection reset")
        finally:
            self._fail_pending("bridge connection closed")

    def _handle_frame(self, frame: dict[str, Any]) -> None:
        kind = frame.get("type")
        if kind == "result":
            future = self._pending.get(frame.get("id"))  # type: ignore[arg-type]
            if future is None or future.done():
                return
            if frame.get("ok"):
                future.set_result(frame.get("value"))
            else:
                future.set_exception(BridgeRejected(str(frame.get("error") or "host rejected the call")))
        elif kind == "event":
            channel = str(frame.get("channel", ""))
            if channel not in EVENT_CHANNELS:
                logger.warning("Ignoring event on channel %r", channel)
                return
            for subscription in list(self._subscriptions.get(channel, [])):
                subscription.deliver(frame.get("payload"))

    def _fail_pending(self, reason: str) -> None:
        pending, self._pending = self._pending, {}
        for future in pending.values():
            if not future.done():
                future.set_exception(BridgeError(reason))


__all__ = [
    "ADD_FOLDER",
    "BridgeClient",
    "BridgeError",
    "BridgeHost",
    "BridgeRejected",
    "BridgeTimeout",
    "EVENT_CHANNELS",
    "GET_APP_VERSION",
    "INVOKE_CHANNELS",
    "REINDEX_FILES",
    "SHOW_MESSAGE_BOX",
    "SHOW_OPEN_DIALOG",
    "Subscription",
    "default_socket_path",
]
