"""Host-side window lifecycle, quit intent and native capabilities.

Nothing here imports a GUI toolkit. The launcher binds a pywebview window
and passes pywebview's dialog constants through :class:`DialogKinds`, which
keeps the controller usable with stand-in window objects.
"""
from __future__ import annotations

import logging
import sys
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Optional, Sequence

from fileassist.bridge import (
    ADD_FOLDER,
    GET_APP_VERSION,
    REINDEX_FILES,
    SHOW_MESSAGE_BOX,
    SHOW_OPEN_DIALOG,
    BridgeHost,
)

logger = logging.getLogger(__name__)


class WindowState(str, Enum):
    VISIBLE = "window-visible"
    HIDDEN = "window-hidden"
    TERMINATED = "terminated"


@dataclass(frozen=True, slots=True)
class DialogKinds:
    # pywebview OPEN_DIALOG / FOLDER_DIALOG
    open_file: Any = 10
    folder: Any = 20


@dataclass(frozen=True, slots=True)
class TrayEntry:
    label: str
    action: Callable[[], Any]
    default: bool = False


def _file_types(filters: Any) -> tuple[str, ...]:
    # [{"name": "Docs", "extensions": ["pdf", "md"]}] -> ("Docs (*.pdf;*.md)",)
    if not isinstance(filters, list):
        return ()
    result: list[str] = []
    for item in filters:
        if not isinstance(item, dict):
            continue
        extensions = [str(ext).lstrip(".") for ext in item.get("extensions", []) if str(ext).strip()]
        if not extensions:
            continue
        patterns = ";".join("*" if ext == "*" else f"*.{ext}" for ext in extensions)
        result.append(f"{item.get('name') or 'Files'} ({patterns})")
    return tuple(result)


class ShellController:
    """Owns window visibility and the quit-intent flag.

    Closing or minimizing the window hides it unless a quit was requested.
    ``request_quit`` is the only place that sets the flag.
    With ``resident`` off (no tray to bring the window back) closing exits.
    """

    def __init__(
        self,
        *,
        app_version: str,
        platform: str = sys.platform,
        dialogs: DialogKinds = DialogKinds(),
    ) -> None:
        self._app_version = app_version
        self._platform = platform
        self._dialogs = dialogs
        self._window: Any = None
        self._bridge: Optional[BridgeHost] = None
        self._state = WindowState.VISIBLE
        self._quit_requested = False
        self.resident = True
        self._terminated = threading.Event()
        self._lock = threading.RLock()

    @property
    def state(self) -> WindowState:
        return self._state

    @property
    def quit_requested(self) -> bool:
        return self._quit_requested

    @property
    def window(self) -> Any:
        return self._window

    def bind(self, window: Any, *, start_hidden: bool = False) -> None:
        self._window = window
        window.events.closing += self.handle_close
        window.events.minimized += self.handle_minimize
        self._state = WindowState.HIDDEN if start_hidden else WindowState.VISIBLE

    def attach_bridge(self, host: BridgeHost) -> None:
        self._bridge = host
        host.register(GET_APP_VERSION, self.app_version)
        host.register(SHOW_MESSAGE_BOX, self.show_message_box)
        host.register(SHOW_OPEN_DIALOG, self.show_open_dialog)

    # Visibility ----------------------------------------------------------
    def show(self) -> None:
        with self._lock:
            if self._state is WindowState.TERMINATED or self._window is None:
                return
            self._window.show()
            self._window.restore()
            self._state = WindowState.VISIBLE

    def hide(self) -> None:
        with self._lock:
            if self._state is WindowState.TERMINATED or self._window is None:
                return
            self._window.hide()
            self._state = WindowState.HIDDEN

    def focus(self) -> None:
        logger.info("Bringing the main window to the front")
        self.show()

    def handle_close(self) -> bool:
        """pywebview ``closing`` handler; returning False cancels the close."""
        if self._quit_requested or not self.resident:
            return True
        logger.debug("Close requested without quit intent; hiding instead")
        self.hide()
        return False

    def handle_minimize(self) -> None:
        if self.resident and not self._quit_requested:
            self.hide()

    # Termination ---------------------------------------------------------
    def request_quit(self) -> None:
        with self._lock:
            self._quit_requested = True
            window = self._window
        logger.info("Quit requested")
        if window is not None:
            window.destroy()
        else:
            self._terminate()

    def handle_windows_closed(self) -> bool:
        """Called once every window is gone. Returns True if the process should exit."""
        with self._lock:
            self._window = None
            if self._quit_requested or not self.resident or self._platform != "darwin":
                self._terminate()
                return True
            self._state = WindowState.HIDDEN
        logger.info("Last window closed; staying resident until quit from the tray")
        return False

    def wait_terminated(self, timeout: Optional[float] = None) -> bool:
        return self._terminated.wait(timeout)

    def _terminate(self) -> None:
        self._state = WindowState.TERMINATED
        self._terminated.set()

    # Tray actions --------------------------------------------------------
    def request_reindex(self) -> None:
        if self._bridge is None:
            logger.warning("Re-index requested before the bridge was attached")
            return
        self._bridge.emit(REINDEX_FILES)

    def prompt_add_folder(self) -> Sequence[str]:
        if self._window is None:
            logger.warning("Cannot pick a folder without a window")
            return []
        result = self.show_open_dialog({"properties": ["openDirectory"]})
        paths = result["filePaths"] if not result["canceled"] else []
        if paths and self._bridge is not None:
            for path in paths:
                self._bridge.emit(ADD_FOLDER, path)
        return paths

    def tray_entries(self) -> list[TrayEntry]:
        return [
            TrayEntry("Show window", self.show, default=True),
            TrayEntry("Add watch folder…", self.prompt_add_folder),
            TrayEntry("Re-index files", self.request_reindex),
            TrayEntry("Quit", self.request_quit),
        ]

    # Host capabilities ---------------------------------------------------
    def app_version(self, _payload: Any = None) -> str:
        return self._app_version

    def show_message_box(self, options: Any = None) -> dict[str, Any]:
        opts = options if isinstance(options, dict) else {}
        window = self._require_window()
        buttons = opts.get("buttons") if isinstance(opts.get("buttons"), list) else ["OK"]
        title = str(opts.get("title") or self._window_title())
        message = str(opts.get("message") or "")
        detail = opts.get("detail")
        if detail:
            message = f"{message}\n\n{detail}" if message else str(detail)

        confirmed = bool(window.create_confirmation_dialog(title, message))
        default_id = int(opts.get("defaultId", 0) or 0)
        cancel_id = int(opts.get("cancelId", 1 if len(buttons) > 1 else 0))
        return {"response": default_id if confirmed else cancel_id, "checkboxChecked": False}

    def show_open_dialog(self, options: Any = None) -> dict[str, Any]:
        opts = options if isinstance(options, dict) else {}
        window = self._require_window()
        properties = opts.get("properties") if isinstance(opts.get("properties"), list) else []
        dialog_type = self._dialogs.folder if "openDirectory" in properties else self._dialogs.open_file
        kwargs: dict[str, Any] = {
            "directory": str(opts.get("defaultPath") or ""),
            "allow_multiple": "multiSelections" in properties,
        }
        file_types = _file_types(opts.get("filters"))
        if file_types:
            kwargs["file_types"] = file_types

        selected = window.create_file_dialog(dialog_type, **kwargs)
        if not selected:
            return {"canceled": True, "filePaths": []}
        paths = [selected] if isinstance(selected, str) else [str(item) for item in selected]
        return {"canceled": False, "filePaths": paths}

    def _require_window(self) -> Any:
        window = self._window
        if window is None:
            raise RuntimeError("main window is not available")
        return window

    def _window_title(self) -> str:
        return str(getattr(self._window, "title", "") or "File Assistant")


__all__ = ["DialogKinds", "ShellController", "TrayEntry", "WindowState"]
