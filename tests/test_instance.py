from __future__ import annotations

import json
import os
import threading

import pytest

from fileassist import instance
from fileassist.instance import SingleInstanceGuard


def test_first_launch_acquires_and_releases(tmp_path) -> None:
    guard = SingleInstanceGuard(tmp_path)
    assert guard.acquire() is True
    try:
        lock = json.loads(guard.lock_path.read_text())
        assert lock["pid"] == os.getpid()
        assert lock["port"] == guard.port
    finally:
        guard.release()
    assert not guard.lock_path.exists()


def test_live_primary_blocks_second_launch(tmp_path) -> None:
    (tmp_path / "instance.lock").write_text(json.dumps({"pid": os.getppid(), "port": 1}))
    guard = SingleInstanceGuard(tmp_path)
    assert guard.acquire() is False
    guard.release()
    # the other instance's lock is left alone
    assert (tmp_path / "instance.lock").exists()


def test_stale_lock_is_replaced(tmp_path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "instance.lock").write_text(json.dumps({"pid": 424242, "port": 1}))
    monkeypatch.setattr(instance, "_process_alive", lambda pid: False)

    guard = SingleInstanceGuard(tmp_path)
    try:
        assert guard.acquire() is True
        assert guard.read_lock() == {"pid": os.getpid(), "port": guard.port}
    finally:
        guard.release()


def test_second_launch_focuses_primary(tmp_path) -> None:
    primary = SingleInstanceGuard(tmp_path)
    focused = threading.Event()
    primary.on_focus(focused.set)
    assert primary.acquire()
    try:
        secondary = SingleInstanceGuard(tmp_path)
        assert secondary.notify_primary() is True
        assert focused.wait(2.0)
    finally:
        primary.release()


def test_notify_without_primary(tmp_path) -> None:
    guard = SingleInstanceGuard(tmp_path)
    assert guard.notify_primary() is False
    (tmp_path / "instance.lock").write_text("not json")
    assert guard.read_lock() is None
    assert guard.notify_primary() is False


def test_existing_lock_is_never_overwritten(tmp_path) -> None:
    primary = SingleInstanceGuard(tmp_path)
    assert primary.acquire() is True
    try:
        # same pid, so only the exclusive create keeps the second guard out
        rival = SingleInstanceGuard(tmp_path)
        assert rival.acquire() is False
        assert rival.port is None
        rival.release()

        assert primary.read_lock() == {"pid": os.getpid(), "port": primary.port}
        assert sorted(path.name for path in tmp_path.iterdir()) == ["instance.lock"]
    finally:
        primary.release()
    assert not primary.lock_path.exists()


def test_concurrent_launches_elect_one_primary(tmp_path) -> None:
    guards = [SingleInstanceGuard(tmp_path) for _ in range(6)]
    barrier = threading.Barrier(len(guards))
    results: list[bool] = []

    def launch(guard: SingleInstanceGuard) -> None:
        barrier.wait()
        results.append(guard.acquire())

    threads = [threading.Thread(target=launch, args=(guard,)) for guard in guards]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=5.0)
    try:
        assert sorted(results) == [False] * 5 + [True]
        winner = next(guard for guard in guards if guard.port is not None)
        assert winner.read_lock() == {"pid": os.getpid(), "port": winner.port}
    finally:
        for guard in guards:
            guard.release()
