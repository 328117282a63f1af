"""Canonical change events and their wire format."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class WatchEventKind(Enum):
    """Kind of settled filesystem change (wire value)."""

    FILE_ADDED = "add"
    DIR_ADDED = "addDir"
    FILE_CHANGED = "change"
    FILE_REMOVED = "unlink"
    DIR_REMOVED = "unlinkDir"

    @property
    def is_directory(self) -> bool:
        return self in (WatchEventKind.DIR_ADDED, WatchEventKind.DIR_REMOVED)

    @property
    def carries_ext_data(self) -> bool:
        return self in (WatchEventKind.FILE_ADDED, WatchEventKind.FILE_CHANGED)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision and a Z suffix."""
    return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def parse_timestamp(value: str) -> datetime:
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return datetime.fromisoformat(value)


@dataclass
class WatchEvent:
    """One settled filesystem change."""

    kind: WatchEventKind
    path: str
    ext_data: dict[str, list[Any]] | None = None
    timestamp: datetime = field(default_factory=_utcnow)

    @property
    def is_directory(self) -> bool:
        return self.kind.is_directory

    def to_message(self) -> dict[str, Any]:
        """Serialize to the change protocol message."""
        message: dict[str, Any] = {
            "type": self.kind.value,
            "path": self.path,
            "isDirectory": self.is_directory,
            "time": format_timestamp(self.timestamp),
        }
        if self.kind is WatchEventKind.FILE_ADDED:
            message["basename"] = os.path.basename(self.path)
        if self.kind.carries_ext_data and self.ext_data is not None:
            message["extData"] = self.ext_data
        return message

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> WatchEvent:
        """Parse a change protocol message.

        Raises:
            ValueError: If the type is unknown or the path is missing.
            KeyError: If a required field is absent.
        """
        kind = WatchEventKind(message["type"])
        path = message["path"]
        if not isinstance(path, str) or not path:
            raise ValueError(f"Invalid path in change message: {path!r}")
        time_value = message.get("time")
        return cls(
            kind=kind,
            path=path,
            ext_data=message.get("extData") if kind.carries_ext_data else None,
            timestamp=parse_timestamp(time_value) if time_value else _utcnow(),
        )
