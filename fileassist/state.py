"""Application state containers owned by the composition root.

Each container has one writer. Readers get the container by reference and
only use the read side (``get``/``state``/``watch``).
"""
from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class ConnectionState(str, Enum):
    CHECKING = "checking"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


class BackendEndpoint:
    """Mutable base URL of the indexing backend."""

    def __init__(self, url: str) -> None:
        self._lock = threading.Lock()
        self._url = self._validate(url)

    @staticmethod
    def _validate(url: str) -> str:
        cleaned = (url or "").strip().rstrip("/")
        if not cleaned:
            raise ValueError("Backend URL must not be empty")
        return cleaned

    def get(self) -> str:
        with self._lock:
            return self._url

    def set(self, url: str) -> str:
        cleaned = self._validate(url)
        with self._lock:
            self._url = cleaned
        logger.info("Backend endpoint set to %s", cleaned)
        return cleaned

    def join(self, path: str) -> str:
        return f"{self.get()}/{path.lstrip('/')}"


StateListener = Callable[[ConnectionState], Any]


class ConnectionStatus:
    """Shared backend reachability value with a single claimed writer."""

    def __init__(self) -> None:
        self._state = ConnectionState.CHECKING
        self._claimed = False
        self._listeners: list[StateListener] = []

    @property
    def state(self) -> ConnectionState:
        return self._state

    def watch(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unwatch() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unwatch

    def claim(self) -> Callable[[ConnectionState], None]:
        """Hand out the only setter. A second claim is a wiring error."""
        if self._claimed:
            raise RuntimeError("ConnectionStatus already has a writer")
        self._claimed = True
        return self._write

    def _write(self, state: ConnectionState) -> None:
        state = ConnectionState(state)
        if state is self._state:
            return
        previous = self._state
        self._state = state
        logger.info("Connection state %s -> %s", previous.value, state.value)
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Connection state listener failed")


class AppState:
    """Process-wide state shared by reference between UI runtime components."""

    def __init__(self, backend_url: str, *, app_version: str = "unknown") -> None:
        self.endpoint = BackendEndpoint(backend_url)
        self.connection = ConnectionStatus()
        self.app_version = app_version

    @classmethod
    def from_config(cls, config: Optional[dict[str, Any]] = None) -> "AppState":
        backend = (config or {}).get("backend", {})
        url = str(backend.get("url", "")) if isinstance(backend, dict) else ""
        return cls(url or "http://localhost:8080/assistant")

    def snapshot(self) -> dict[str, Any]:
        return {
            "backend_url": self.endpoint.get(),
            "connection": self.connection.state.value,
            "app_version": self.app_version,
        }


__all__ = ["AppState", "BackendEndpoint", "ConnectionState", "ConnectionStatus"]
