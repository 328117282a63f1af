"""Exception types shared across jsonkit.

Errors local to one file or subtree are absorbed where they occur and only
degrade that unit's data. Errors at the root (bad root path, watcher death,
invalid configuration) propagate to the owning process.
"""

from __future__ import annotations


class JsonKitError(Exception):
    """Base class for all jsonkit errors."""


class AccessDenied(JsonKitError):
    """Requested path lies outside the permitted root."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Access denied: {path}")
        self.path = path


class NotFound(JsonKitError, FileNotFoundError):
    """Requested path does not exist or is not the expected kind of entry."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Not found: {path}")
        self.path = path


class MalformedContent(JsonKitError):
    """File content could not be parsed as JSON."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"Malformed JSON in {path}: {reason}")
        self.path = path
        self.reason = reason


class WatcherFatal(JsonKitError):
    """The watched root became inaccessible; the watch has terminated."""

    def __init__(self, root: str, reason: str = "watched root is gone") -> None:
        super().__init__(f"Watcher stopped for {root}: {reason}")
        self.root = root
        self.reason = reason


class ConfigError(JsonKitError):
    """Configuration failed validation."""

    def __init__(self, problems: list[str]) -> None:
        super().__init__("Invalid configuration:\n" + "\n".join(f"- {p}" for p in problems))
        self.problems = problems
