from __future__ import annotations

import types
from typing import Any

import pytest

from fileassist.bridge import ADD_FOLDER, GET_APP_VERSION, REINDEX_FILES, SHOW_MESSAGE_BOX, SHOW_OPEN_DIALOG
from fileassist.icon import build_icon_image
from fileassist.shell import DialogKinds, ShellController, WindowState


class _Event:
    def __init__(self) -> None:
        self.handlers: list[Any] = []

    def __iadd__(self, handler: Any) -> "_Event":
        self.handlers.append(handler)
        return self

    def fire(self) -> list[Any]:
        return [handler() for handler in self.handlers]


class _FakeWindow:
    def __init__(self) -> None:
        self.title = "File Assistant"
        self.events = types.SimpleNamespace(closing=_Event(), minimized=_Event())
        self.calls: list[str] = []
        self.dialog_args: list[tuple[Any, dict[str, Any]]] = []
        self.dialog_result: Any = None
        self.confirm_result = True
        self.confirm_args: list[tuple[str, str]] = []

    def show(self) -> None:
        self.calls.append("show")

    def restore(self) -> None:
        self.calls.append("restore")

    def hide(self) -> None:
        self.calls.append("hide")

    def destroy(self) -> None:
        self.calls.append("destroy")

    def create_file_dialog(self, dialog_type: Any, **kwargs: Any) -> Any:
        self.dialog_args.append((dialog_type, kwargs))
        return self.dialog_result

    def create_confirmation_dialog(self, title: str, message: str) -> bool:
        self.confirm_args.append((title, message))
        return self.confirm_result


class _FakeHost:
    def __init__(self) -> None:
        self.handlers: dict[str, Any] = {}
        self.emitted: list[tuple[str, Any]] = []

    def register(self, channel: str, handler: Any) -> None:
        self.handlers[channel] = handler

    def emit(self, channel: str, payload: Any = None) -> None:
        self.emitted.append((channel, payload))


def _shell(platform: str = "linux") -> tuple[ShellController, _FakeWindow, _FakeHost]:
    shell = ShellController(app_version="2.0.1", platform=platform, dialogs=DialogKinds(open_file="OPEN", folder="FOLDER"))
    window = _FakeWindow()
    host = _FakeHost()
    shell.bind(window)
    shell.attach_bridge(host)  # type: ignore[arg-type]
    return shell, window, host


def test_close_hides_unless_quit_requested() -> None:
    shell, window, _ = _shell()

    assert window.events.closing.fire() == [False]
    assert shell.state is WindowState.HIDDEN
    assert window.calls == ["hide"]

    shell.show()
    assert shell.state is WindowState.VISIBLE
    assert window.calls[-2:] == ["show", "restore"]

    window.events.minimized.fire()
    assert shell.state is WindowState.HIDDEN

    shell.request_quit()
    assert shell.quit_requested is True
    assert window.calls[-1] == "destroy"
    assert window.events.closing.fire() == [True]


def test_last_window_closed_terminates_off_macos() -> None:
    shell, _, _ = _shell("linux")
    assert shell.handle_windows_closed() is True
    assert shell.state is WindowState.TERMINATED
    assert shell.wait_terminated(0)


def test_macos_stays_resident_until_tray_quit() -> None:
    shell, _, _ = _shell("darwin")
    assert shell.handle_windows_closed() is False
    assert shell.state is WindowState.HIDDEN
    assert not shell.wait_terminated(0)

    shell.show()
    assert shell.state is WindowState.HIDDEN

    shell.request_quit()
    assert shell.state is WindowState.TERMINATED
    assert shell.wait_terminated(0)


def test_macos_quit_intent_terminates() -> None:
    shell, window, _ = _shell("darwin")
    shell.request_quit()
    assert window.calls == ["destroy"]
    assert shell.handle_windows_closed() is True
    assert shell.state is WindowState.TERMINATED


def test_bridge_channels_registered() -> None:
    _, _, host = _shell()
    assert set(host.handlers) == {GET_APP_VERSION, SHOW_MESSAGE_BOX, SHOW_OPEN_DIALOG}
    assert host.handlers[GET_APP_VERSION](None) == "2.0.1"


def test_open_dialog_maps_options() -> None:
    shell, window, _ = _shell()
    window.dialog_result = ("/a", "/b")

    result = shell.show_open_dialog({
        "properties": ["openDirectory", "multiSelections"],
        "defaultPath": "/home",
    })
    assert result == {"canceled": False, "filePaths": ["/a", "/b"]}
    assert window.dialog_args[-1] == ("FOLDER", {"directory": "/home", "allow_multiple": True})

    window.dialog_result = "/single.pdf"
    result = shell.show_open_dialog({"filters": [{"name": "Docs", "extensions": ["pdf", ".md"]}]})
    assert result == {"canceled": False, "filePaths": ["/single.pdf"]}
    dialog_type, kwargs = window.dialog_args[-1]
    assert dialog_type == "OPEN"
    assert kwargs["file_types"] == ("Docs (*.pdf;*.md)",)

    window.dialog_result = None
    assert shell.show_open_dialog(None) == {"canceled": True, "filePaths": []}


def test_message_box_response_indices() -> None:
    shell, window, _ = _shell()
    options = {"title": "Remove", "message": "Stop watching?", "detail": "/docs", "buttons": ["OK", "Cancel"], "cancelId": 1}

    assert shell.show_message_box(options) == {"response": 0, "checkboxChecked": False}
    assert window.confirm_args[-1] == ("Remove", "Stop watching?\n\n/docs")

    window.confirm_result = False
    assert shell.show_message_box(options)["response"] == 1


def test_capabilities_need_a_window() -> None:
    shell = ShellController(app_version="1")
    with pytest.raises(RuntimeError):
        shell.show_open_dialog({})
    assert shell.prompt_add_folder() == []


def test_tray_actions_emit_bridge_events() -> None:
    shell, window, host = _shell()
    window.dialog_result = ("/home/docs",)

    entries = shell.tray_entries()
    assert [entry.label for entry in entries] == ["Show window", "Add watch folder…", "Re-index files", "Quit"]
    assert [entry.default for entry in entries] == [True, False, False, False]

    entries[1].action()
    entries[2].action()
    assert host.emitted == [(ADD_FOLDER, "/home/docs"), (REINDEX_FILES, None)]

    window.dialog_result = None
    entries[1].action()
    assert len(host.emitted) == 2


def test_focus_shows_hidden_window() -> None:
    shell, window, _ = _shell()
    shell.hide()
    shell.focus()
    assert shell.state is WindowState.VISIBLE
    assert window.calls == ["hide", "show", "restore"]


def test_icon_image() -> None:
    image = build_icon_image(32)
    assert image.size == (32, 32)
    assert image.mode == "RGBA"
    with pytest.raises(ValueError):
        build_icon_image(0)


def test_without_tray_close_exits() -> None:
    shell, window, _ = _shell("darwin")
    shell.resident = False

    assert window.events.closing.fire() == [True]
    window.events.minimized.fire()
    assert window.calls == []
    assert shell.handle_windows_closed() is True
    assert shell.state is WindowState.TERMINATED
