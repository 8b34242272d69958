from __future__ import annotations

import os
from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def _isolated_home(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in list(os.environ):
        if key.startswith("FILEASSIST_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("FILEASSIST_CONFIG", str(tmp_path / "config.yaml"))
    monkeypatch.setenv("FILEASSIST_STATE_DIR", str(tmp_path / "state"))
