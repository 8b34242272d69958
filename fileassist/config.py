"""Configuration helpers for the desktop shell and its UI runtime."""
from __future__ import annotations

import copy
import json
import os
from importlib import metadata
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Sequence

import yaml  # type: ignore[import-untyped]

_DEFAULT_CONFIG: Dict[str, Any] = {
    "backend": {
        "url": "http://localhost:8080/assistant",
        "timeout_seconds": 10.0,
    },
    "monitoring": {
        "interval_seconds": 30.0,
    },
    "bridge": {
        "socket_path": "",
        "invoke_timeout_seconds": 120.0,
    },
    "shell": {
        "title": "File Assistant",
        "width": 1200,
        "height": 800,
        "min_width": 800,
        "min_height": 600,
        "start_hidden": False,
    },
    "logging": {
        "level": "INFO",
        "file": "",
    },
}


_CONFIG_ENV = "FILEASSIST_CONFIG"
_STATE_DIR_ENV = "FILEASSIST_STATE_DIR"
_OVERRIDE_ENV_PREFIX = "FILEASSIST_CFG__"
_OVERRIDE_JSON_ENV = "FILEASSIST_CONFIG_OVERRIDES"
_DEFAULT_STATE_SUBDIR = ".fileassist"
_DISTRIBUTION = "fileassist"


def state_directory(override: Path | None = None) -> Path:
    """Return (and create) the per-user state directory."""
    if override is not None:
        path = override
    else:
        env = os.environ.get(_STATE_DIR_ENV)
        if env:
            path = Path(env).expanduser().resolve()
        else:
            path = Path.home() / _DEFAULT_STATE_SUBDIR
    path.mkdir(parents=True, exist_ok=True)
    return path


def _config_path() -> Path:
    env = os.environ.get(_CONFIG_ENV)
    if env:
        return Path(env).expanduser().resolve()
    return Path.home() / _DEFAULT_STATE_SUBDIR / "config.yaml"


def config_path() -> Path:
    """Return the resolved configuration file path without loading."""
    return _config_path()


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively overlay ``override`` onto ``base`` (mutates and returns ``base``)."""
    for key, value in override.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            base[key] = _merge(dict(current), value)
        else:
            base[key] = value
    return base


def _normalize_env_path(raw: str) -> Sequence[str]:
    # FILEASSIST_CFG__BACKEND__TIMEOUT_SECONDS -> ("backend", "timeout_seconds")
    return [part.strip().lower().replace("-", "_") for part in raw.split("__") if part.strip()]


def _coerce_override_value(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    text = value.strip()
    if not text:
        return ""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return value


def _assign_path(target: Dict[str, Any], path: Sequence[str], value: Any) -> None:
    if not path:
        return
    *parents, leaf = path
    node = target
    for key in parents:
        child = node.get(key)
        if not isinstance(child, dict):
            child = node[key] = {}
        node = child
    node[leaf] = value


def _decode_mapping(raw: str) -> Dict[str, Any]:
    """Decode a JSON (or YAML) mapping from an environment variable."""
    if not raw.strip():
        return {}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError:
            return {}
    return data if isinstance(data, dict) else {}


def _load_runtime_overrides() -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}

    for key, value in os.environ.items():
        if key.startswith(_OVERRIDE_ENV_PREFIX):
            path = _normalize_env_path(key[len(_OVERRIDE_ENV_PREFIX):])
            if path:
                _assign_path(overrides, path, _coerce_override_value(value))

    json_payload = os.environ.get(_OVERRIDE_JSON_ENV)
    if json_payload:
        mapping = _decode_mapping(json_payload)
        if mapping:
            overrides = _merge(overrides, mapping)

    return overrides


def parse_override_value(raw: str) -> Any:
    """Parse a configuration override value using the same coercion as runtime overrides."""
    return _coerce_override_value(raw)


@lru_cache(maxsize=4)
def _load_config(resolved_path: str) -> Dict[str, Any]:
    base = copy.deepcopy(_DEFAULT_CONFIG)
    path = Path(resolved_path)
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        if isinstance(data, dict):
            base = _merge(base, data)
    return base


def get_config(*, include_runtime_overrides: bool = True) -> Dict[str, Any]:
    """Return a copy of the merged configuration."""
    path = str(_config_path())
    config = copy.deepcopy(_load_config(path))
    if include_runtime_overrides:
        overrides = _load_runtime_overrides()
        if overrides:
            config = _merge(config, overrides)
    return config


def save_config(config: Dict[str, Any]) -> None:
    """Persist configuration to disk and refresh the cache."""
    path = _config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(copy.deepcopy(config), handle, sort_keys=False)
    _load_config.cache_clear()  # type: ignore[attr-defined]


def set_backend_url(url: str) -> Dict[str, Any]:
    """Persist a new backend base URL.

    Runtime overrides are not written back, so an environment-supplied URL
    never ends up in the file by accident.
    """
    cleaned = (url or "").strip()
    if not cleaned:
        raise ValueError("Backend URL must not be empty")
    config = get_config(include_runtime_overrides=False)
    config.setdefault("backend", {})["url"] = cleaned
    save_config(config)
    return config


def app_version() -> str:
    """Installed package version, or a local marker when running from a checkout."""
    try:
        return metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        return "0.0.0+local"


def section(name: str, config: Dict[str, Any] | None = None) -> Dict[str, Any]:
    """Return one configuration section, falling back to the defaults."""
    cfg = config if config is not None else get_config()
    value = cfg.get(name)
    if isinstance(value, dict):
        return value
    return copy.deepcopy(_DEFAULT_CONFIG.get(name, {}))


__all__ = [
    "app_version",
    "config_path",
    "get_config",
    "parse_override_value",
    "save_config",
    "section",
    "set_backend_url",
    "state_directory",
]
