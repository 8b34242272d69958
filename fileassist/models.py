"""Records exchanged with the indexing backend."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping, Optional


NETWORK_FAILURE = "network failure"
INVALID_RESPONSE = "invalid response from backend"
GATEWAY_CLOSED = "gateway is closed"


@dataclass(frozen=True, slots=True)
class Envelope:
    """Uniform ``{success, data?, message?}`` response wrapper."""

    success: bool
    data: Any = None
    message: Optional[str] = None

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "Envelope":
        return cls(success=True, data=data, message=message)

    @classmethod
    def failure(cls, message: str) -> "Envelope":
        return cls(success=False, message=message)

    @classmethod
    def from_payload(cls, payload: Any) -> "Envelope":
        if not isinstance(payload, Mapping):
            return cls.failure(INVALID_RESPONSE)
        message = payload.get("message")
        return cls(
            success=_as_bool(payload.get("success"), False),
            data=payload.get("data"),
            message=str(message) if message is not None else None,
        )

    def as_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"success": self.success}
        if self.data is not None:
            body["data"] = self.data
        if self.message is not None:
            body["message"] = self.message
        return body

    def error_message(self, default: str) -> str:
        return self.message or default


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _as_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_mapping(value: Any) -> dict[str, Any]:
    if isinstance(value, Mapping):
        return dict(value)
    return {}


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True, slots=True)
class WatchFolder:
    id: Any
    path: str
    recursive: bool = True
    enabled: bool = True
    created_time: Optional[str] = None
    updated_time: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "WatchFolder":
        created = payload.get("createdTime", payload.get("created_time"))
        updated = payload.get("updatedTime", payload.get("updated_time"))
        return cls(
            id=payload.get("id"),
            path=str(payload.get("path", "")),
            recursive=_as_bool(payload.get("recursive"), True),
            enabled=_as_bool(payload.get("enabled"), True),
            created_time=str(created) if created is not None else None,
            updated_time=str(updated) if updated is not None else None,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "path": self.path,
            "recursive": self.recursive,
            "enabled": self.enabled,
            "createdTime": self.created_time,
            "updatedTime": self.updated_time,
        }


@dataclass(frozen=True, slots=True)
class SearchHit:
    file_name: str
    file_path: str
    file_type: Optional[str] = None
    file_size: Optional[int] = None
    last_modified: Optional[str] = None
    relevance_score: Optional[float] = None
    content: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "SearchHit":
        modified = payload.get("lastModified")
        content = payload.get("content")
        return cls(
            file_name=str(payload.get("fileName", "")),
            file_path=str(payload.get("filePath", "")),
            file_type=payload.get("fileType"),
            file_size=_as_int(payload.get("fileSize")),
            last_modified=str(modified) if modified is not None else None,
            relevance_score=_as_float(payload.get("relevanceScore")),
            content=str(content) if content is not None else None,
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "fileName": self.file_name,
            "filePath": self.file_path,
            "fileType": self.file_type,
            "fileSize": self.file_size,
            "lastModified": self.last_modified,
            "relevanceScore": self.relevance_score,
            "content": self.content,
        }


class AlertLevel(str, Enum):
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @classmethod
    def parse(cls, raw: Any) -> "AlertLevel":
        try:
            return cls(str(raw).upper())
        except ValueError:
            return cls.INFO


@dataclass(frozen=True, slots=True)
class Alert:
    level: AlertLevel
    title: str
    message: str
    timestamp: Optional[int] = None
    type: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Alert":
        return cls(
            level=AlertLevel.parse(payload.get("level")),
            title=str(payload.get("title", "")),
            message=str(payload.get("message", "")),
            timestamp=_as_int(payload.get("timestamp")),
            type=payload.get("type"),
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "level": self.level.value,
            "title": self.title,
            "message": self.message,
            "timestamp": self.timestamp,
            "type": self.type,
        }


_SNAPSHOT_KEYS = ("systemMetrics", "performanceStats", "activeAlerts", "alertStats")


@dataclass(frozen=True, slots=True)
class MonitoringSnapshot:
    system_metrics: dict[str, Any] = field(default_factory=dict)
    performance_stats: dict[str, Any] = field(default_factory=dict)
    active_alerts: tuple[Alert, ...] = ()
    alert_stats: dict[str, Any] = field(default_factory=dict)
    extras: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: Any) -> Optional["MonitoringSnapshot"]:
        """Parse a dashboard payload; ``None`` means the payload is unusable."""
        if not isinstance(payload, Mapping):
            return None
        alerts_raw = payload.get("activeAlerts") or []
        alerts: tuple[Alert, ...] = ()
        if isinstance(alerts_raw, (list, tuple)):
            alerts = tuple(Alert.from_payload(item) for item in alerts_raw if isinstance(item, Mapping))
        return cls(
            system_metrics=_as_mapping(payload.get("systemMetrics")),
            performance_stats=_as_mapping(payload.get("performanceStats")),
            active_alerts=alerts,
            alert_stats=_as_mapping(payload.get("alertStats")),
            extras={key: value for key, value in payload.items() if key not in _SNAPSHOT_KEYS},
        )

    def as_dict(self) -> dict[str, Any]:
        body = dict(self.extras)
        body.update({
            "systemMetrics": self.system_metrics,
            "performanceStats": self.performance_stats,
            "activeAlerts": [alert.as_dict() for alert in self.active_alerts],
            "alertStats": self.alert_stats,
        })
        return body


__all__ = [
    "Alert",
    "AlertLevel",
    "Envelope",
    "GATEWAY_CLOSED",
    "INVALID_RESPONSE",
    "MonitoringSnapshot",
    "NETWORK_FAILURE",
    "SearchHit",
    "WatchFolder",
]
