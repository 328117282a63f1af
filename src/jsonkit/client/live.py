"""Live tree client: initial load over HTTP, then change events over /ws.

On connection loss the client keeps serving its last known mirror, waits a
fixed delay and reconnects. Events missed while disconnected are not
replayed, so by default the full tree is reloaded after reconnecting.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
from collections.abc import Callable
from typing import Any

import httpx
import websockets
from websockets.exceptions import WebSocketException

from jsonkit.client.mirror import TreeMirror
from jsonkit.logging import get_logger
from jsonkit.watching.events import WatchEvent

log = get_logger("client")

DEFAULT_RECONNECT_DELAY = 1.0

# Client status values
IDLE = "idle"
LOADING = "loading"
READY = "ready"
ERROR = "error"
DISCONNECTED = "disconnected"
CLOSED = "closed"


def websocket_url(base_url: str) -> str:
    """The /ws endpoint for an http(s) base URL."""
    base = base_url.rstrip("/")
    if base.startswith("https://"):
        return "wss://" + base[len("https://") :] + "/ws"
    if base.startswith("http://"):
        return "ws://" + base[len("http://") :] + "/ws"
    return base + "/ws"


class LiveTreeClient:
    """Keeps a TreeMirror in sync with a jsonkit server.

    Example:
        client = LiveTreeClient("http://127.0.0.1:3000")
        await client.fetch_config()
        await client.load()
        client.start()
        ...
        await client.close()
    """

    def __init__(
        self,
        base_url: str,
        mirror: TreeMirror | None = None,
        ws_url: str | None = None,
        reconnect_delay: float = DEFAULT_RECONNECT_DELAY,
        reload_on_reconnect: bool = True,
        http_client: httpx.AsyncClient | None = None,
        connect: Callable[[str], Any] = websockets.connect,
        on_file_content: Callable[[str, Any], None] | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Server URL, e.g. "http://127.0.0.1:3000"
            mirror: Mirror to maintain; created by fetch_config() if omitted
            ws_url: Push channel URL; derived from base_url if omitted
            reconnect_delay: Fixed seconds to wait between reconnect attempts
            reload_on_reconnect: Reload the whole tree after reconnecting
            http_client: Client for HTTP requests (owned by the caller)
            connect: WebSocket connect function, returns an async context manager
            on_file_content: Called with (path, content) when the displayed
                file is fetched
        """
        self.base_url = base_url.rstrip("/")
        self.ws_url = ws_url or websocket_url(base_url)
        self.reconnect_delay = reconnect_delay
        self.reload_on_reconnect = reload_on_reconnect
        self.on_file_content = on_file_content

        self.status = IDLE
        self.error: str | None = None
        self.server_config: dict[str, Any] = {}
        self.displayed_content: Any = None

        self._mirror: TreeMirror | None = None
        if mirror is not None:
            self._attach(mirror)

        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(base_url=self.base_url, timeout=10.0)
        self._connect = connect
        self._closed = False
        self._task: asyncio.Task[None] | None = None
        self._refresh_tasks: set[asyncio.Task[None]] = set()

    @property
    def mirror(self) -> TreeMirror:
        if self._mirror is None:
            raise RuntimeError("Mirror not initialized; call fetch_config() first")
        return self._mirror

    @property
    def min_ext_length(self) -> int:
        return int(self.server_config.get("extDataFilterSize", 3))

    def _attach(self, mirror: TreeMirror) -> None:
        self._mirror = mirror
        mirror.on_display_changed = self._schedule_refresh

    async def fetch_config(self) -> dict[str, Any]:
        """Fetch /config and create the mirror from the reported root."""
        response = await self._http.get("/config")
        response.raise_for_status()
        self.server_config = response.json()
        if self._mirror is None:
            self._attach(TreeMirror(self.server_config["jsonDirectoryFull"]))
        return self.server_config

    async def load(self) -> bool:
        """Load the full tree into the mirror.

        Returns:
            False (with status "error") if the listing could not be fetched;
            the mirror is then left as it was.
        """
        self.status = LOADING
        try:
            response = await self._http.get("/api/files", params={"path": self.mirror.root.key})
            response.raise_for_status()
            nodes = response.json()
        except (httpx.HTTPError, ValueError) as e:
            self.status = ERROR
            self.error = f"Failed to load tree: {e}"
            log.error("%s", self.error)
            return False

        self.mirror.load(nodes)
        self.status = READY
        self.error = None
        log.info("Loaded %d nodes from %s", len(self.mirror), self.base_url)
        return True

    async def display(self, path: str) -> Any:
        """Make path the displayed file and fetch its content."""
        self.mirror.displayed = path
        return await self._fetch_displayed(path)

    async def _fetch_displayed(self, path: str) -> Any:
        try:
            response = await self._http.get("/api/file", params={"path": path})
            response.raise_for_status()
            content = response.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("Cannot fetch %s: %s", path, e)
            content = {"error": str(e)}
        if self.mirror.displayed != path:
            # Another file was selected meanwhile
            return content
        self.displayed_content = content
        if self.on_file_content is not None:
            self.on_file_content(path, content)
        return content

    def _schedule_refresh(self, path: str) -> None:
        task = asyncio.get_running_loop().create_task(self._fetch_displayed(path))
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    def handle_message(self, raw: str | bytes) -> WatchEvent | None:
        """Parse one push message and apply it to the mirror."""
        if raw in ("pong", b"pong"):
            return None
        try:
            event = WatchEvent.from_message(json.loads(raw))
        except (ValueError, KeyError, TypeError) as e:
            log.warning("Ignoring malformed change message %r: %s", raw, e)
            return None
        self.mirror.apply(event)
        return event

    def start(self) -> asyncio.Task[None]:
        """Run the push channel loop in a background task."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def run(self) -> None:
        """Follow the push channel until close(), reconnecting on loss."""
        connected_before = False
        while not self._closed:
            try:
                async with self._connect(self.ws_url) as ws:
                    if connected_before and self.reload_on_reconnect:
                        await self.load()
                    elif self.status != ERROR:
                        self.status = READY
                    connected_before = True
                    log.info("Connected to %s", self.ws_url)
                    async for raw in ws:
                        self.handle_message(raw)
            except (OSError, asyncio.TimeoutError, WebSocketException) as e:
                log.debug("Push channel error: %s", e)

            if self._closed:
                break
            self.status = DISCONNECTED
            log.info("Disconnected from %s, retrying in %.1fs", self.ws_url, self.reconnect_delay)
            await asyncio.sleep(self.reconnect_delay)

    async def close(self) -> None:
        """Stop reconnecting and release resources."""
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        for task in list(self._refresh_tasks):
            task.cancel()
        if self._owns_http:
            await self._http.aclose()
        self.status = CLOSED
