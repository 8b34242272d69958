#!/usr/bin/env python
"""Desktop shell: main window, tray icon and host side of the bridge."""
from __future__ import annotations

import atexit
import logging
import sys

import webview

from fileassist.bridge import BridgeHost, default_socket_path
from fileassist.config import app_version, get_config, section
from fileassist.instance import SingleInstanceGuard
from fileassist.logging_config import configure_logging
from fileassist.runtime import RuntimeThread, build_runtime
from fileassist.shell import DialogKinds, ShellController
from fileassist.tray import ShellTray
from fileassist.view import HTML_TEMPLATE
from fileassist.view_api import ViewApi

logger = logging.getLogger("fileassist.launcher")


def main() -> int:
    config = get_config()
    log_cfg = section("logging", config)
    configure_logging(log_cfg.get("level", "INFO"), log_cfg.get("file") or None)

    guard = SingleInstanceGuard()
    if not guard.acquire():
        guard.notify_primary()
        return 0
    atexit.register(guard.release)

    shell_cfg = section("shell", config)
    title = str(shell_cfg.get("title", "File Assistant"))
    start_hidden = bool(shell_cfg.get("start_hidden", False))

    shell = ShellController(
        app_version=app_version(),
        dialogs=DialogKinds(open_file=webview.OPEN_DIALOG, folder=webview.FOLDER_DIALOG),
    )
    socket_path = default_socket_path(config)
    host = BridgeHost(socket_path)
    shell.attach_bridge(host)
    try:
        host.start()
    except OSError as exc:  # pragma: no cover - surfaced to stderr for Finder launches
        print(f"Failed to open the host bridge at {socket_path}: {exc}", file=sys.stderr)
        guard.release()
        return 1
    atexit.register(host.stop)

    runtime_thread = RuntimeThread(build_runtime(config, socket_path=socket_path))
    runtime_thread.start()
    atexit.register(runtime_thread.stop)

    api = ViewApi.from_config(runtime_thread, config)
    window = webview.create_window(
        title,
        html=HTML_TEMPLATE,
        width=int(shell_cfg.get("width", 1200)),
        height=int(shell_cfg.get("height", 800)),
        min_size=(int(shell_cfg.get("min_width", 800)), int(shell_cfg.get("min_height", 600))),
        resizable=True,
        hidden=start_hidden,
        js_api=api,
    )
    assert window is not None
    shell.bind(window, start_hidden=start_hidden)
    guard.on_focus(shell.focus)

    tray = ShellTray(shell, title=title)
    try:
        tray.start()
    except Exception:  # pragma: no cover - depends on the desktop session
        logger.warning("Tray icon unavailable; closing the window will quit", exc_info=True)
        shell.resident = False

    try:
        webview.start(http_server=False)
        if not shell.handle_windows_closed():
            shell.wait_terminated()
    finally:
        tray.stop()
        runtime_thread.stop()
        host.stop()
        guard.release()

    return 0


if __name__ == "__main__":
    sys.exit(main())
