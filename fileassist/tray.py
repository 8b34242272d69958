"""System tray icon for the desktop shell."""
from __future__ import annotations

import logging
from typing import Any, Optional

import pystray  # type: ignore[import-untyped]

from fileassist.icon import build_icon_image
from fileassist.shell import ShellController, TrayEntry

logger = logging.getLogger(__name__)


def _menu_item(entry: TrayEntry) -> pystray.MenuItem:
    def _invoke(_icon: Any, _item: Any) -> None:
        try:
            entry.action()
        except Exception:
            logger.exception("Tray action %r failed", entry.label)

    return pystray.MenuItem(entry.label, _invoke, default=entry.default)


class ShellTray:
    def __init__(self, shell: ShellController, *, title: str) -> None:
        self._shell = shell
        self._title = title
        self._icon: Optional[pystray.Icon] = None

    def start(self) -> None:
        if self._icon is not None:
            return
        entries = self._shell.tray_entries()
        items = [_menu_item(entry) for entry in entries[:-1]]
        items.append(pystray.Menu.SEPARATOR)
        items.append(_menu_item(entries[-1]))
        self._icon = pystray.Icon("fileassist", build_icon_image(64), self._title, menu=pystray.Menu(*items))
        self._icon.run_detached()
        logger.info("Tray icon started")

    def stop(self) -> None:
        icon, self._icon = self._icon, None
        if icon is not None:
            icon.stop()


__all__ = ["ShellTray"]
