"""Periodic monitoring dashboard refresh."""
from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any, Callable, Optional

from fileassist.gateway import RemoteGateway
from fileassist.models import INVALID_RESPONSE, Envelope, MonitoringSnapshot

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 30.0

SnapshotListener = Callable[[MonitoringSnapshot], Any]
ErrorListener = Callable[[str], Any]


class MonitoringPoller:
    """Fetches the dashboard on activation and then on a fixed interval.

    A failed fetch never replaces the held snapshot; it only sets
    ``last_error`` and notifies the error listeners. At most one interval
    task exists while active, and manual refreshes share whichever fetch is
    already in flight. ``stop()`` cancels the interval; a fetch that was
    already on the wire finishes but its result is ignored.
    """

    def __init__(self, gateway: RemoteGateway, *, interval: float = DEFAULT_INTERVAL) -> None:
        if interval <= 0:
            raise ValueError("Polling interval must be positive")
        self._gateway = gateway
        self.interval = float(interval)
        self._snapshot: Optional[MonitoringSnapshot] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._inflight: Optional[asyncio.Task[Envelope]] = None
        self._epoch = 0
        self._snapshot_listeners: list[SnapshotListener] = []
        self._error_listeners: list[ErrorListener] = []
        self.last_error: Optional[str] = None
        self.fetch_count = 0

    @property
    def snapshot(self) -> Optional[MonitoringSnapshot]:
        return self._snapshot

    @property
    def active(self) -> bool:
        return self._task is not None and not self._task.done()

    def on_snapshot(self, listener: SnapshotListener) -> Callable[[], None]:
        return _attach(self._snapshot_listeners, listener)

    def on_error(self, listener: ErrorListener) -> Callable[[], None]:
        return _attach(self._error_listeners, listener)

    # Lifecycle -----------------------------------------------------------
    def start(self) -> None:
        """Activate polling on the running loop. Starting twice is a no-op."""
        if self.active:
            return
        loop = asyncio.get_running_loop()
        self._epoch += 1
        self._task = loop.create_task(self._run(self._epoch), name="monitoring-poller")
        logger.info("Monitoring poller started (every %.1fs)", self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        self._epoch += 1
        self._inflight = None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("Monitoring poller stopped")

    async def refresh(self) -> Optional[Envelope]:
        """Fetch now, joining a fetch that is already running."""
        if not self.active:
            return None
        return await asyncio.shield(self._shared_fetch())

    # Internals -----------------------------------------------------------
    async def _run(self, epoch: int) -> None:
        while epoch == self._epoch:
            await asyncio.shield(self._shared_fetch())
            await asyncio.sleep(self.interval)

    def _shared_fetch(self) -> asyncio.Task[Envelope]:
        if self._inflight is None or self._inflight.done():
            self._inflight = asyncio.get_running_loop().create_task(self._fetch(self._epoch))
        return self._inflight

    async def _fetch(self, epoch: int) -> Envelope:
        self.fetch_count += 1
        envelope = await self._gateway.get_monitoring_dashboard()
        if epoch != self._epoch:
            logger.debug("Ignoring dashboard fetch that finished after teardown")
            return envelope

        if not envelope.success:
            self._fail(envelope.error_message("failed to load monitoring data"))
            return envelope
        snapshot = MonitoringSnapshot.from_payload(envelope.data)
        if snapshot is None:
            self._fail(INVALID_RESPONSE)
            return Envelope.failure(INVALID_RESPONSE)

        self._snapshot = snapshot
        self.last_error = None
        for listener in list(self._snapshot_listeners):
            try:
                listener(snapshot)
            except Exception:
                logger.exception("Snapshot listener failed")
        return envelope

    def _fail(self, message: str) -> None:
        self.last_error = message
        logger.warning("Monitoring refresh failed: %s", message)
        for listener in list(self._error_listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("Monitoring error listener failed")


def _attach(listeners: list, listener: Callable[..., Any]) -> Callable[[], None]:
    listeners.append(listener)

    def _detach() -> None:
        if listener in listeners:
            listeners.remove(listener)

    return _detach


__all__ = ["DEFAULT_INTERVAL", "MonitoringPoller"]
