from __future__ import annotations

import json

import pytest
import yaml

from cli import fileassist as cli
from fileassist import config as fa_config
from tests.fake_backend import BASE_URL, FakeBackend


def _run(backend: FakeBackend, *argv: str) -> None:
    cli.main(["--backend", BASE_URL, *argv], transport=backend.transport())


def test_status_reports_connection(capsys: pytest.CaptureFixture[str]) -> None:
    backend = FakeBackend()
    _run(backend, "status")
    output = capsys.readouterr().out
    assert f"{BASE_URL}: connected" in output
    assert "indexedFiles: 12" in output


def test_status_fails_when_backend_down(capsys: pytest.CaptureFixture[str]) -> None:
    backend = FakeBackend()
    backend.down = True
    with pytest.raises(SystemExit) as excinfo:
        _run(backend, "--json", "status")
    assert "network failure" in str(excinfo.value)
    payload = json.loads(capsys.readouterr().out)
    assert payload["connection"] == "disconnected"


def test_folders_add_list_remove(capsys: pytest.CaptureFixture[str]) -> None:
    backend = FakeBackend()
    _run(backend, "folders", "add", "/home/docs", "--no-recursive")
    assert "1\t/home/docs\tflat\tenabled" in capsys.readouterr().out
    assert json.loads(backend.requests[0].content) == {"path": "/home/docs", "recursive": False}

    _run(backend, "--json", "folders", "list")
    listed = json.loads(capsys.readouterr().out)
    assert [folder["path"] for folder in listed] == ["/home/docs"]

    _run(backend, "folders", "remove", "1")
    assert "No watched folders" in capsys.readouterr().out


def test_folder_failure_exits_with_message() -> None:
    backend = FakeBackend()
    backend.failures[("POST", "/api/folders/reindex")] = "Indexer busy"
    with pytest.raises(SystemExit) as excinfo:
        _run(backend, "folders", "reindex")
    assert str(excinfo.value) == "Error: Indexer busy"

    with pytest.raises(SystemExit) as excinfo:
        _run(backend, "folders", "remove", "99")
    assert str(excinfo.value) == "Error: Folder not found"


def test_search_and_history(capsys: pytest.CaptureFixture[str]) -> None:
    backend = FakeBackend()
    backend.search_results["invoice"] = [
        {"fileName": "a.pdf", "filePath": "/docs/a.pdf", "relevanceScore": 0.9},
        {"fileName": "b.pdf", "filePath": "/docs/b.pdf"},
    ]
    _run(backend, "search", "invoice", "--limit", "1")
    output = capsys.readouterr().out
    assert "0.900\ta.pdf\t/docs/a.pdf" in output
    assert "b.pdf" not in output

    _run(backend, "search", "nothing", "--semantic")
    assert "No results" in capsys.readouterr().out
    assert json.loads(backend.requests[-1].content) == {"query": "nothing", "semantic": True}

    _run(backend, "history", "--limit", "5")
    assert capsys.readouterr().out.split() == ["nothing", "invoice"]

    _run(backend, "history", "--clear")
    assert "cleared" in capsys.readouterr().out
    assert backend.history == []


def test_empty_search_is_rejected() -> None:
    with pytest.raises(SystemExit) as excinfo:
        _run(FakeBackend(), "search", "   ")
    assert "must not be empty" in str(excinfo.value)


def test_monitor_once_and_watch(capsys: pytest.CaptureFixture[str]) -> None:
    backend = FakeBackend()
    backend.dashboard["activeAlerts"] = [{"level": "warning", "title": "Disk", "message": "90% full"}]
    _run(backend, "monitor")
    output = capsys.readouterr().out
    assert "System: cpuUsage=10.0" in output
    assert "[WARNING] Disk: 90% full" in output

    _run(backend, "--json", "monitor", "--watch", "0.05", "--count", "2")
    assert backend.calls("GET", "/api/monitoring/dashboard") == 3
    assert capsys.readouterr().out.count('"systemMetrics"') == 2


def test_monitor_reports_malformed_dashboard() -> None:
    backend = FakeBackend()
    backend.dashboard = ["not", "a", "dashboard"]
    with pytest.raises(SystemExit) as excinfo:
        _run(backend, "monitor")
    assert "invalid response" in str(excinfo.value)


def test_config_set_backend_and_show(capsys: pytest.CaptureFixture[str]) -> None:
    cli.main(["config", "set-backend", "http://indexer.lan:8080/assistant"])
    assert "Backend URL saved" in capsys.readouterr().out
    saved = yaml.safe_load(fa_config.config_path().read_text())
    assert saved["backend"]["url"] == "http://indexer.lan:8080/assistant"

    cli.main(["--json", "config", "show"])
    shown = json.loads(capsys.readouterr().out)
    assert shown["backend"]["url"] == "http://indexer.lan:8080/assistant"

    with pytest.raises(SystemExit):
        cli.main(["config", "set-backend", " "])
