"""WebSocket connection registry and change broadcasting."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from fastapi import WebSocket

    from jsonkit.watching.events import WatchEvent

log = logging.getLogger(__name__)


class ConnectionManager:
    """Tracks live client connections and fans messages out to them.

    A connection whose send fails is dropped from the registry; delivery to
    the remaining connections continues.
    """

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket) -> None:
        """Accept a new WebSocket connection and register it."""
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        log.debug("Tree client connected (%d open)", len(self._connections))

    async def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        async with self._lock:
            self._connections.discard(websocket)
        log.debug("Tree client disconnected (%d open)", len(self._connections))

    async def broadcast(self, message: dict[str, Any]) -> int:
        """Send a message to every open connection.

        Returns:
            Number of connections the message reached.
        """
        async with self._lock:
            connections = self._connections.copy()

        if not connections:
            return 0

        dead_connections: list[WebSocket] = []
        for websocket in connections:
            try:
                await websocket.send_json(message)
            except Exception as e:
                log.warning("Dropping tree client after failed send: %s", e)
                dead_connections.append(websocket)

        if dead_connections:
            async with self._lock:
                for ws in dead_connections:
                    self._connections.discard(ws)

        return len(connections) - len(dead_connections)

    async def broadcast_event(self, event: WatchEvent) -> int:
        """Broadcast a WatchEvent as a change protocol message."""
        return await self.broadcast(event.to_message())

    def get_connection_count(self) -> int:
        """Get the number of open connections."""
        return len(self._connections)

    async def close_all(self, reason: str = "Server shutting down") -> None:
        """Close all WebSocket connections gracefully."""
        async with self._lock:
            all_connections = list(self._connections)
            self._connections.clear()

        for websocket in all_connections:
            with contextlib.suppress(Exception):
                await websocket.close(code=1001, reason=reason)
        log.info("Closed %d tree client connections", len(all_connections))
