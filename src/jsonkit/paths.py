"""Path vocabulary shared by the scanner, the watcher and the tree mirror.

Every tree key is the string form of a PathSegments value, so a key produced
by a directory scan and a key produced by a watch event always agree.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import PurePath

JSON_SUFFIX = ".json"


@dataclass(frozen=True)
class PathSegments:
    """An absolute, normalized path held as its anchor plus name segments.

    Example:
        p = PathSegments.from_path("/data/x/y.json")
        p.anchor        # "/"
        p.parts         # ("data", "x", "y.json")
        str(p.parent)   # "/data/x"
    """

    anchor: str
    parts: tuple[str, ...] = ()

    @classmethod
    def from_path(cls, path: str | os.PathLike[str]) -> PathSegments:
        """Normalize a path (made absolute against the cwd) into segments."""
        pure = PurePath(os.path.abspath(os.fspath(path)))
        return cls(anchor=pure.anchor, parts=pure.parts[1:])

    @property
    def name(self) -> str:
        return self.parts[-1] if self.parts else ""

    @property
    def parent(self) -> PathSegments:
        return PathSegments(self.anchor, self.parts[:-1])

    def join(self, *names: str) -> PathSegments:
        return PathSegments(self.anchor, self.parts + tuple(names))

    def is_within(self, other: PathSegments) -> bool:
        """True if self equals other or lies below it, on segment boundaries."""
        if self.anchor != other.anchor or len(self.parts) < len(other.parts):
            return False
        return self.parts[: len(other.parts)] == other.parts

    def relative_to(self, other: PathSegments) -> tuple[str, ...] | None:
        """Segments below other, or None if self is not within other."""
        if not self.is_within(other):
            return None
        return self.parts[len(other.parts) :]

    def ancestors_below(self, root: PathSegments) -> list[PathSegments]:
        """Paths strictly between root and self, outermost first.

        For root /r and self /r/a/b/c.json this is [/r/a, /r/a/b].
        """
        rel = self.relative_to(root)
        if not rel:
            return []
        return [root.join(*rel[:i]) for i in range(1, len(rel))]

    def __str__(self) -> str:
        return str(PurePath(self.anchor, *self.parts))


def canonical_key(path: str | os.PathLike[str]) -> str:
    """The key string a tree node at this path carries."""
    return str(PathSegments.from_path(path))


def is_within(path: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    return PathSegments.from_path(path).is_within(PathSegments.from_path(root))


def has_json_extension(path: str | os.PathLike[str]) -> bool:
    return os.fspath(path).lower().endswith(JSON_SUFFIX)


def has_extension(path: str | os.PathLike[str]) -> bool:
    return bool(os.path.splitext(os.path.basename(os.fspath(path)))[1])


def is_hidden(name: str) -> bool:
    return name.startswith(".")


def is_hidden_path(path: str | os.PathLike[str], root: str | os.PathLike[str]) -> bool:
    """True if any segment below root starts with a dot."""
    rel = PathSegments.from_path(path).relative_to(PathSegments.from_path(root))
    if rel is None:
        return False
    return any(is_hidden(part) for part in rel)
