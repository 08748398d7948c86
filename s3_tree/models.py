from __future__ import annotations
"""Data models for addresses, listing entries and notification events."""
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlsplit


@dataclass(frozen=True)
class ResourceAddress:
    """Parsed target URL of a client. Never mutated; use :meth:`with_path`."""

    scheme: str
    host: str
    path: str = ""
    separator: str = "/"

    @classmethod
    def parse(cls, url: str, separator: str = "/") -> "ResourceAddress":
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            raise ValueError(f"not an absolute URL: {url!r}")
        return cls(
            scheme=parts.scheme.lower(),
            host=parts.netloc,
            path=parts.path,
            separator=separator,
        )

    def with_path(self, path: str) -> "ResourceAddress":
        return replace(self, path=path)

    def __str__(self) -> str:
        return f"{self.scheme}://{self.host}{self.path}"


class EntryType(Enum):
    OBJECT = "object"
    DIRECTORY = "directory"
    INCOMPLETE_UPLOAD = "incomplete"


@dataclass
class ContentItem:
    """A single entry produced by a listing or a stat.

    When ``error`` is set the remaining fields carry no information.
    """

    url: Optional[ResourceAddress] = None
    size: int = 0
    time: Optional[datetime] = None
    type: EntryType = EntryType.OBJECT
    error: Optional[Exception] = None


class EventType(Enum):
    CREATE = "create"
    REMOVE = "remove"


@dataclass(frozen=True)
class Event:
    """A normalized bucket notification."""

    time: Optional[datetime]
    size: int
    url: str
    client: Any
    type: EventType


@dataclass
class WatchParams:
    events: list[str] = field(default_factory=lambda: ["put", "delete"])
    prefix: str = ""
    suffix: str = ""


@dataclass
class NotificationConfig:
    """A notification rule attached to a topic, queue or lambda ARN."""

    id: str
    arn: str
    events: list[str] = field(default_factory=list)
    prefix: str = ""
    suffix: str = ""


@dataclass(frozen=True)
class BucketInfo:
    name: str
    creation_date: Optional[datetime] = None


@dataclass(frozen=True)
class ObjectInfo:
    """An object or common prefix as reported by the SDK listing calls."""

    key: str = ""
    size: int = 0
    last_modified: Optional[datetime] = None
    storage_class: Optional[str] = None
    error: Optional[Exception] = None


@dataclass(frozen=True)
class UploadInfo:
    """An incomplete multipart upload, or a common prefix of uploads."""

    key: str = ""
    upload_id: str = ""
    initiated: Optional[datetime] = None
    size: int = 0
    error: Optional[Exception] = None


@dataclass
class NotificationInfo:
    """One message from the listen stream: records or an error."""

    records: list[dict] = field(default_factory=list)
    error: Optional[Exception] = None
