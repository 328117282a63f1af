"""Shared test utilities for jsonkit tests."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import Any


def write_json(path: Path, data: Any) -> Path:
    """Write data as JSON, creating parent directories.

    Args:
        path: Target file
        data: JSON-serializable value

    Returns:
        The path written
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class MockWebSocket:
    """Mock WebSocket for testing the connection registry."""

    def __init__(self, should_fail: bool = False):
        self.should_fail = should_fail
        self.accepted = False
        self.closed = False
        self.close_code: int | None = None
        self.close_reason: str | None = None
        self.sent_messages: list = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict) -> None:
        if self.should_fail:
            raise Exception("WebSocket connection failed")
        self.sent_messages.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.close_reason = reason


class FakeObserver:
    """Stands in for watchdog's Observer; notifications are fed by hand."""

    instances: list[FakeObserver] = []

    def __init__(self) -> None:
        self.scheduled: list[tuple[Any, str, bool]] = []
        self.started = False
        self.stopped = False
        # Thread ids that called join()
        self.joined_on: list[int] = []
        FakeObserver.instances.append(self)

    def schedule(self, handler: Any, path: str, recursive: bool = False) -> None:
        self.scheduled.append((handler, path, recursive))

    def start(self) -> None:
        self.started = True

    def stop(self) -> None:
        self.stopped = True

    def join(self, timeout: float | None = None) -> None:
        self.joined_on.append(threading.get_ident())
