"""``js_api`` object exposed to the pywebview page.

Every method hands its work to the UI runtime loop and returns a plain
dictionary. Remote and bridge failures come back as
``{"success": False, "message": ...}`` instead of raising into JavaScript.
"""
from __future__ import annotations

import concurrent.futures
import logging
from typing import Any, Coroutine, Optional

from fileassist.bridge import DEFAULT_INVOKE_TIMEOUT, BridgeError
from fileassist.config import section
from fileassist.models import Envelope
from fileassist.runtime import RuntimeThread

logger = logging.getLogger(__name__)

DEFAULT_CALL_TIMEOUT = 60.0
# slack on top of the bridge invoke timeout, so the bridge reports first
_DIALOG_GRACE = 5.0


def _failure(message: str) -> dict[str, Any]:
    return {"success": False, "message": message}


class ViewApi:
    """Methods callable from the page as ``window.pywebview.api.<name>``.

    Backend calls wait at most ``call_timeout``. Calls that open a native
    dialog wait ``dialog_timeout`` instead (``None`` waits for the bridge
    itself to give up), since a user may keep a picker open for minutes.
    """

    def __init__(
        self,
        runtime_thread: RuntimeThread,
        *,
        call_timeout: float = DEFAULT_CALL_TIMEOUT,
        dialog_timeout: Optional[float] = DEFAULT_INVOKE_TIMEOUT + _DIALOG_GRACE,
    ) -> None:
        self._thread = runtime_thread
        self.call_timeout = call_timeout
        self.dialog_timeout = dialog_timeout

    @classmethod
    def from_config(cls, runtime_thread: RuntimeThread, config: dict[str, Any]) -> "ViewApi":
        backend = section("backend", config)
        bridge_cfg = section("bridge", config)
        request_timeout = float(backend.get("timeout_seconds", 10.0))
        invoke_timeout = float(bridge_cfg.get("invoke_timeout_seconds", DEFAULT_INVOKE_TIMEOUT))
        return cls(
            runtime_thread,
            # a folder add is a request plus a relist
            call_timeout=max(DEFAULT_CALL_TIMEOUT, 2 * request_timeout + _DIALOG_GRACE),
            dialog_timeout=invoke_timeout + _DIALOG_GRACE,
        )

    def _call(self, coro: Coroutine[Any, Any, Any], *, dialog: bool = False) -> Any:
        timeout = self.dialog_timeout if dialog else self.call_timeout
        try:
            return self._thread.submit(coro, timeout=timeout)
        except concurrent.futures.TimeoutError:
            return Envelope.failure("request timed out")
        except BridgeError as exc:
            return Envelope.failure(str(exc) or "host bridge unavailable")

    def _envelope(self, coro: Coroutine[Any, Any, Any]) -> dict[str, Any]:
        result = self._call(coro)
        if isinstance(result, Envelope):
            return result.as_dict()
        return {"success": True, "data": result}

    @property
    def _runtime(self):
        return self._thread.runtime

    # Overview ------------------------------------------------------------
    def snapshot(self) -> dict[str, Any]:
        return self._runtime.snapshot()

    def refresh_connection(self) -> dict[str, Any]:
        return self._envelope(self._runtime.connection.refresh())

    # Folders -------------------------------------------------------------
    def list_folders(self) -> dict[str, Any]:
        return self._envelope(self._runtime.folders.list())

    def add_folder(self, payload: Any) -> dict[str, Any]:
        if isinstance(payload, dict):
            path = str(payload.get("path", ""))
            recursive = bool(payload.get("recursive", True))
        else:
            path, recursive = str(payload or ""), True
        return self._envelope(self._runtime.folders.add(path, recursive))

    def remove_folder(self, folder_id: Any) -> dict[str, Any]:
        folder = self._runtime.folders.find(folder_id)
        label = folder.path if folder is not None else str(folder_id)
        confirmed = self._call(self._runtime.confirm("Remove folder", f"Stop watching {label}?"), dialog=True)
        if isinstance(confirmed, Envelope):
            return confirmed.as_dict()
        if not confirmed:
            return {"success": False, "message": "cancelled", "cancelled": True}
        return self._envelope(self._runtime.folders.remove(folder_id))

    def pick_folder(self) -> dict[str, Any]:
        result = self._call(self._runtime.pick_folder(), dialog=True)
        if isinstance(result, Envelope):
            return result.as_dict()
        if result is None:
            return {"success": False, "message": "cancelled", "cancelled": True}
        return {"success": True, "data": {"path": result}}

    def reindex(self) -> dict[str, Any]:
        return self._envelope(self._runtime.folders.reindex())

    # Search --------------------------------------------------------------
    def search(self, payload: Any) -> dict[str, Any]:
        if isinstance(payload, dict):
            query = str(payload.get("query", ""))
            semantic = bool(payload.get("semantic", False))
        else:
            query, semantic = str(payload or ""), False
        view = self._call(self._runtime.search.issue(query, semantic))
        if isinstance(view, Envelope):
            return view.as_dict()
        if view is None:
            # Empty or superseded: report whatever is current.
            return {"success": True, "skipped": True, "data": self._runtime.search.current.as_dict()}
        return {"success": view.error is None, "message": view.error, "data": view.as_dict()}

    def search_history(self, limit: int = 10) -> dict[str, Any]:
        return self._envelope(self._runtime.search.history(int(limit or 10)))

    def clear_search_history(self) -> dict[str, Any]:
        return self._envelope(self._runtime.search.clear_history())

    # Monitoring ----------------------------------------------------------
    def refresh_monitoring(self) -> dict[str, Any]:
        result = self._call(self._runtime.poller.refresh())
        if result is None:
            return _failure("monitoring is not active")
        return result.as_dict()

    # Settings ------------------------------------------------------------
    def save_settings(self, url: str) -> dict[str, Any]:
        return self._envelope(self._runtime.save_settings(str(url or "")))

    def test_connection(self, url: str = "") -> dict[str, Any]:
        return self._envelope(self._runtime.test_connection(str(url or "")))


__all__ = ["ViewApi"]
