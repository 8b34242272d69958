"""Backend reachability tracking."""
from __future__ import annotations

import logging
from typing import Any, Optional

from fileassist.gateway import RemoteGateway
from fileassist.models import Envelope
from fileassist.state import ConnectionState, ConnectionStatus

logger = logging.getLogger(__name__)


class ConnectionMonitor:
    """Sole writer of :class:`ConnectionStatus`.

    ``refresh()`` moves the shared state to ``checking`` before the status
    check is sent, then to ``connected`` or ``disconnected`` depending on the
    status envelope. When checks overlap, only the newest one writes its outcome.
    """

    def __init__(self, gateway: RemoteGateway, status: ConnectionStatus) -> None:
        self._gateway = gateway
        self._status = status
        self._write = status.claim()
        self._generation = 0
        self.last_status: Optional[dict[str, Any]] = None
        self.last_error: Optional[str] = None

    @property
    def state(self) -> ConnectionState:
        return self._status.state

    async def refresh(self) -> Envelope:
        self._generation += 1
        generation = self._generation
        self._write(ConnectionState.CHECKING)

        envelope = await self._gateway.get_status()
        if generation != self._generation:
            logger.debug("Dropping superseded status check #%d", generation)
            return envelope

        if envelope.success:
            if isinstance(envelope.data, dict):
                self.last_status = dict(envelope.data)
            self.last_error = None
            self._write(ConnectionState.CONNECTED)
        else:
            self.last_error = envelope.error_message("backend unavailable")
            self._write(ConnectionState.DISCONNECTED)
        return envelope


__all__ = ["ConnectionMonitor"]
