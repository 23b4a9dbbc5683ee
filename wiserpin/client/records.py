from __future__ import annotations

import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone

from dateutil import parser as dt_parser


DEFAULT_COLLECTION_COLOR = "#6366f1"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_time(value) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        # epoch milliseconds
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        try:
            parsed = dt_parser.isoparse(str(value))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_time(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


@dataclass
class PagePreview:
    url: str
    title: str | None = None
    og_image_url: str | None = None
    site_name: str | None = None
    description: str | None = None


@dataclass
class Summary:
    text: str
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class LocalCollection:
    name: str
    goal: str = ""
    color: str | None = None
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class LocalPin:
    collection_id: str
    page: PagePreview
    summary: Summary | None = None
    note: str | None = None
    id: str | None = None
    created_at: datetime | None = None

    @property
    def is_syncable(self) -> bool:
        return bool(self.collection_id) and bool(self.page and self.page.url)


@dataclass
class RemoteCollection:
    id: str
    name: str
    description: str | None = None
    color: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "RemoteCollection":
        return cls(
            id=str(payload["id"]),
            name=payload.get("name") or "",
            description=payload.get("description"),
            color=payload.get("color"),
            created_at=parse_time(payload.get("createdAt")),
        )


@dataclass
class RemotePin:
    id: str
    url: str
    title: str = ""
    description: str | None = None
    image_url: str | None = None
    collection_id: str | None = None
    tags: list[str] = field(default_factory=list)
    created_at: datetime | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "RemotePin":
        return cls(
            id=str(payload["id"]),
            url=payload.get("url") or "",
            title=payload.get("title") or "",
            description=payload.get("description"),
            image_url=payload.get("imageUrl"),
            collection_id=payload.get("collectionId"),
            tags=list(payload.get("tags") or []),
            created_at=parse_time(payload.get("createdAt")),
        )


class SyncState(str, enum.Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass
class SyncSettings:
    enabled: bool = False
    auto_sync: bool = True
    sync_interval: int = 5
    wifi_only: bool = False

    def to_dict(self) -> dict:
        return {
            "enabled": self.enabled,
            "autoSync": self.auto_sync,
            "syncInterval": self.sync_interval,
            "wifiOnly": self.wifi_only,
        }

    @classmethod
    def from_dict(cls, payload: dict | None) -> "SyncSettings":
        defaults = cls()
        payload = payload or {}
        interval = payload.get("syncInterval", defaults.sync_interval)
        try:
            interval = max(1, int(interval))
        except (TypeError, ValueError):
            interval = defaults.sync_interval
        return cls(
            enabled=bool(payload.get("enabled", defaults.enabled)),
            auto_sync=bool(payload.get("autoSync", defaults.auto_sync)),
            sync_interval=interval,
            wifi_only=bool(payload.get("wifiOnly", defaults.wifi_only)),
        )

    def merged(self, **changes) -> "SyncSettings":
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


@dataclass
class SyncStatus:
    is_syncing: bool = False
    last_sync_time: datetime | None = None
    error: str | None = None
    pending_changes: int = 0

    @property
    def state(self) -> SyncState:
        if self.is_syncing:
            return SyncState.SYNCING
        if self.error:
            return SyncState.ERROR
        return SyncState.IDLE

    def to_dict(self) -> dict:
        return {
            "isSyncing": self.is_syncing,
            "lastSyncTime": format_time(self.last_sync_time),
            "error": self.error,
            "pendingChanges": self.pending_changes,
            "state": self.state.value,
        }

    @classmethod
    def from_dict(cls, payload: dict | None) -> "SyncStatus":
        payload = payload or {}
        return cls(
            is_syncing=bool(payload.get("isSyncing", False)),
            last_sync_time=parse_time(payload.get("lastSyncTime")),
            error=payload.get("error"),
            pending_changes=int(payload.get("pendingChanges") or 0),
        )
