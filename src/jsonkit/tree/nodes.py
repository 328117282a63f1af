"""Tree node model shared by the directory scan and the client mirror."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class NodeKind(Enum):
    """Kind of filesystem entry a node represents (wire value)."""

    DIRECTORY = "directory"
    FILE = "file"


@dataclass
class TreeNode:
    """One filesystem entry exposed to clients.

    Directories carry ``children``; files carry ``ext_data`` (None when no
    extraction rules apply or extraction failed).
    """

    title: str
    key: str
    kind: NodeKind
    children: list[TreeNode] | None = None
    ext_data: dict[str, list[Any]] | None = None

    @classmethod
    def directory(cls, title: str, key: str, children: list[TreeNode] | None = None) -> TreeNode:
        return cls(title=title, key=key, kind=NodeKind.DIRECTORY, children=children or [])

    @classmethod
    def file(cls, title: str, key: str, ext_data: dict[str, list[Any]] | None = None) -> TreeNode:
        return cls(title=title, key=key, kind=NodeKind.FILE, ext_data=ext_data)

    @property
    def is_directory(self) -> bool:
        return self.kind is NodeKind.DIRECTORY

    def sort_key(self) -> tuple[int, str]:
        """Directories first, then lexicographic by title."""
        return (0 if self.is_directory else 1, self.title)

    def sort_children(self) -> None:
        if self.children is not None:
            self.children.sort(key=TreeNode.sort_key)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the directory listing wire shape."""
        data: dict[str, Any] = {
            "title": self.title,
            "key": self.key,
            "type": self.kind.value,
        }
        if self.is_directory:
            data["folder"] = True
            data["children"] = [child.to_dict() for child in self.children or []]
        elif self.ext_data is not None:
            data["extData"] = self.ext_data
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> TreeNode:
        """Parse a node from the directory listing wire shape."""
        kind = NodeKind(data.get("type", "file"))
        if kind is NodeKind.DIRECTORY:
            return cls.directory(
                title=data["title"],
                key=data["key"],
                children=[cls.from_dict(child) for child in data.get("children") or []],
            )
        return cls.file(title=data["title"], key=data["key"], ext_data=data.get("extData"))


@dataclass
class ScanStats:
    """Counters collected during one scan, for logging."""

    directories: int = 0
    files: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)
