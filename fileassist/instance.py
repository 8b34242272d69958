"""Single-instance enforcement for the desktop shell.

The first instance creates ``instance.lock`` (pid + loopback port) in the
state directory, failing if the file already exists, and listens on that
port. A later launch finds a live pid, sends ``focus`` to the port and exits.
"""
from __future__ import annotations

import json
import logging
import os
import socket
import threading
from pathlib import Path
from typing import Any, Callable, Optional

import psutil  # type: ignore[import-untyped]

from fileassist.config import state_directory

logger = logging.getLogger(__name__)

_LOCK_FILENAME = "instance.lock"
_FOCUS_COMMAND = b"focus"


def _process_alive(pid: int) -> bool:
    try:
        process = psutil.Process(pid)
    except psutil.Error:
        return False
    try:
        return process.is_running() and process.status() != psutil.STATUS_ZOMBIE
    except psutil.Error:
        return False


class SingleInstanceGuard:
    def __init__(self, state_dir: Path | None = None, *, host: str = "127.0.0.1") -> None:
        self._lock_path = state_directory(state_dir) / _LOCK_FILENAME
        self._host = host
        self._listener: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._focus_callbacks: list[Callable[[], Any]] = []
        self._owned = False
        self._owned_port: Optional[int] = None

    @property
    def lock_path(self) -> Path:
        return self._lock_path

    @property
    def port(self) -> Optional[int]:
        if self._listener is None:
            return None
        return int(self._listener.getsockname()[1])

    def on_focus(self, callback: Callable[[], Any]) -> None:
        self._focus_callbacks.append(callback)

    def read_lock(self) -> Optional[dict[str, int]]:
        try:
            data = json.loads(self._lock_path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return None
        if not isinstance(data, dict):
            return None
        try:
            return {"pid": int(data["pid"]), "port": int(data.get("port", 0))}
        except (KeyError, TypeError, ValueError):
            return None

    def acquire(self) -> bool:
        """Become the primary instance. Returns False if another one is alive.

        The lock is published with a hard link from a private temp file, so
        two launches racing for it cannot both win.
        """
        if self._owned:
            return True
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        listener.bind((self._host, 0))
        listener.listen(4)
        listener.settimeout(0.5)
        port = int(listener.getsockname()[1])
        try:
            published = self._publish_lock(port)
        except BaseException:
            listener.close()
            raise
        if not published:
            listener.close()
            return False
        self._listener = listener
        self._owned = True
        self._owned_port = port
        self._thread = threading.Thread(target=self._accept_loop, daemon=True, name="instance-guard")
        self._thread.start()
        return True

    def _publish_lock(self, port: int) -> bool:
        staging = self._lock_path.with_name(f"{_LOCK_FILENAME}.{os.getpid()}.{port}.tmp")
        staging.write_text(json.dumps({"pid": os.getpid(), "port": port}), encoding="utf-8")
        try:
            for _ in range(2):
                try:
                    os.link(staging, self._lock_path)
                    return True
                except FileExistsError:
                    pass
                existing = self.read_lock()
                if existing and _process_alive(existing["pid"]):
                    logger.info("Another instance is running (pid %s)", existing["pid"])
                    return False
                logger.info("Replacing stale instance lock %s", existing or "(unreadable)")
                try:
                    self._lock_path.unlink()
                except FileNotFoundError:
                    pass
            logger.warning("Instance lock at %s keeps reappearing; assuming another launch won", self._lock_path)
            return False
        finally:
            try:
                staging.unlink()
            except FileNotFoundError:
                pass

    def notify_primary(self, timeout: float = 2.0) -> bool:
        """Ask the running instance to bring its window forward."""
        existing = self.read_lock()
        if not existing or not existing["port"]:
            return False
        try:
            with socket.create_connection((self._host, existing["port"]), timeout=timeout) as conn:
                conn.sendall(_FOCUS_COMMAND + b"\n")
        except OSError as exc:
            logger.warning("Could not reach the running instance: %s", exc)
            return False
        return True

    def release(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.close()
        if self._thread is not None:
            self._thread.join(timeout=1.0)
            self._thread = None
        if self._owned:
            self._owned = False
            current = self.read_lock()
            if current == {"pid": os.getpid(), "port": self._owned_port}:
                try:
                    self._lock_path.unlink()
                except FileNotFoundError:
                    pass

    def _accept_loop(self) -> None:
        listener = self._listener
        while listener is not None and self._listener is listener:
            try:
                conn, _ = listener.accept()
            except socket.timeout:
                continue
            except OSError:
                break
            with conn:
                conn.settimeout(1.0)
                try:
                    command = conn.recv(64).strip()
                except OSError:
                    continue
            if command == _FOCUS_COMMAND:
                logger.info("Second launch detected; focusing the main window")
                for callback in list(self._focus_callbacks):
                    try:
                        callback()
                    except Exception:
                        logger.exception("Focus callback failed")


__all__ = ["SingleInstanceGuard"]
