from __future__ import annotations

import json
from textwrap import dedent

import pytest
import yaml

from fileassist import config


def test_defaults_without_file(tmp_path) -> None:
    data = config.get_config()
    assert data["backend"]["url"] == "http://localhost:8080/assistant"
    assert data["monitoring"]["interval_seconds"] == 30.0
    assert data["shell"]["start_hidden"] is False


def test_env_override_applies(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    cfg_path = tmp_path / "custom.yaml"
    cfg_path.write_text(dedent(
        """
        backend:
          url: http://files.local/assistant
        monitoring:
          interval_seconds: 15
        """
    ))
    monkeypatch.setenv("FILEASSIST_CONFIG", str(cfg_path))
    monkeypatch.setenv("FILEASSIST_CFG__MONITORING__INTERVAL_SECONDS", "5")
    monkeypatch.setenv("FILEASSIST_CFG__SHELL__START_HIDDEN", "true")

    data = config.get_config()
    assert data["backend"]["url"] == "http://files.local/assistant"
    assert data["monitoring"]["interval_seconds"] == 5
    assert data["shell"]["start_hidden"] is True
    # untouched defaults survive the merge
    assert data["backend"]["timeout_seconds"] == 10.0


def test_json_override_payload(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv(
        "FILEASSIST_CONFIG_OVERRIDES",
        json.dumps({
            "backend": {"timeout_seconds": 2.5},
            "logging": {"level": "DEBUG"},
        }),
    )

    data = config.get_config()
    assert data["backend"]["timeout_seconds"] == 2.5
    assert data["logging"]["level"] == "DEBUG"


def test_set_backend_url_skips_runtime_overrides(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    monkeypatch.setenv("FILEASSIST_CFG__LOGGING__LEVEL", "DEBUG")

    config.set_backend_url("  http://remote:9000/assistant  ")

    loaded = yaml.safe_load((tmp_path / "config.yaml").read_text()) or {}
    assert loaded["backend"]["url"] == "http://remote:9000/assistant"
    assert loaded["logging"]["level"] == "INFO"
    assert config.get_config()["backend"]["url"] == "http://remote:9000/assistant"


def test_set_backend_url_rejects_empty(tmp_path) -> None:
    with pytest.raises(ValueError):
        config.set_backend_url("   ")
    assert not (tmp_path / "config.yaml").exists()


def test_section_falls_back_to_defaults() -> None:
    assert config.section("bridge", {"bridge": "broken"})["invoke_timeout_seconds"] == 120.0
    assert config.section("unknown", {}) == {}


def test_state_directory_from_env(tmp_path) -> None:
    path = config.state_directory()
    assert path == (tmp_path / "state").resolve()
    assert path.is_dir()


def test_parse_override_value() -> None:
    assert config.parse_override_value("42") == 42
    assert config.parse_override_value("[a, b]") == ["a", "b"]
    assert config.parse_override_value("") == ""


def test_app_version_is_a_string() -> None:
    assert isinstance(config.app_version(), str)
    assert config.app_version()
