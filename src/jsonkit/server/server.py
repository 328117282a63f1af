"""Server lifecycle: HTTP app, change watcher and the broadcast pump."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any

from fastapi import FastAPI

from jsonkit.config.schema import Config
from jsonkit.config.watcher import ConfigWatcher
from jsonkit.errors import WatcherFatal
from jsonkit.server.routes import create_app
from jsonkit.server.websocket import ConnectionManager
from jsonkit.watching.events import WatchEvent
from jsonkit.watching.watcher import ChangeWatcher

log = logging.getLogger(__name__)


class TreeServer:
    """Owns the scan API, the watcher and the client registry.

    Watcher events go through a queue drained by a single pump task, so every
    client receives them in the order the watcher produced them.

    Example:
        server = TreeServer(config)
        await server.serve()  # until shutdown or watcher failure
    """

    def __init__(
        self,
        config: Config,
        observer_factory: Callable[[], Any] | None = None,
        project_root: str | Path | None = None,
        config_file: str | Path | None = None,
    ) -> None:
        """Initialize the server.

        Args:
            config: Validated configuration
            observer_factory: Raw notification source for the watcher
                (defaults to watchdog's Observer)
            project_root: Where the watched jsonkit.yaml lives (defaults to the cwd)
            config_file: Explicit config file to watch for changes
        """
        self.config = config
        self.connection_manager = ConnectionManager()
        self.app: FastAPI = create_app(config, self.connection_manager)
        self.fatal_error: WatcherFatal | None = None

        self._observer_factory = observer_factory
        self._project_root = project_root
        self._config_file = config_file
        self._config_watcher: ConfigWatcher | None = None
        self._queue: asyncio.Queue[WatchEvent] = asyncio.Queue()
        self._watcher: ChangeWatcher | None = None
        self._pump_task: asyncio.Task[None] | None = None
        self._uvicorn: Any = None
        self._start_time: float | None = None

    @property
    def watcher(self) -> ChangeWatcher | None:
        return self._watcher

    def is_running(self) -> bool:
        return self._pump_task is not None and not self._pump_task.done()

    def get_status(self) -> dict[str, Any]:
        return {
            "running": self.is_running(),
            "root": self.app.state.scanner.root,
            "watching": self._watcher is not None and self._watcher.is_running(),
            "uptime": time.time() - self._start_time if self._start_time else 0,
            "connections": self.connection_manager.get_connection_count(),
        }

    async def start(self) -> None:
        """Start the broadcast pump and, if enabled, the watcher."""
        if self.is_running():
            raise RuntimeError("Server already running")

        self._pump_task = asyncio.create_task(self._pump())
        self._start_time = time.time()

        watch = self.config.watch
        if watch.enabled:
            kwargs: dict[str, Any] = {}
            if self._observer_factory is not None:
                kwargs["observer_factory"] = self._observer_factory
            self._watcher = ChangeWatcher(
                root=self.app.state.scanner.root,
                callback=self._queue.put_nowait,
                rules=self.config.navigation.ext_data,
                stability_threshold=watch.stability_threshold,
                poll_interval=watch.poll_interval,
                on_fatal=self._on_watcher_fatal,
                root_check_interval=watch.root_check_interval,
                **kwargs,
            )
            self._watcher.start()

        if watch.config_interval > 0:
            self._config_watcher = ConfigWatcher(
                project_root=self._project_root,
                config_file=self._config_file,
                poll_interval=watch.config_interval,
                on_reload=self.apply_config,
            )
            self._config_watcher.start()

    async def stop(self) -> None:
        """Stop watching, drain the pump and close client connections."""
        if self._config_watcher is not None:
            self._config_watcher.stop()
            self._config_watcher = None

        if self._watcher is not None:
            await self._watcher.aclose()
            self._watcher = None

        if self._pump_task is not None:
            self._pump_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._pump_task
            self._pump_task = None

        await self.connection_manager.close_all("Server shutting down")

    def apply_config(self, new: Config, previous: Config | None = None) -> None:
        """Apply the reloadable part of a new config while serving.

        Extraction rules, the filter size and the client-facing app settings
        take effect at once. Binding and the served directory need a restart.
        """
        live = self.config
        live.navigation.ext_data = dict(new.navigation.ext_data)
        live.navigation.ext_data_filter_size = new.navigation.ext_data_filter_size
        live.app.title = new.app.title
        live.app.version = new.app.version
        live.app.enable_split_panel = new.app.enable_split_panel

        rules = live.navigation.ext_data
        self.app.state.scanner.set_rules(rules)
        if self._watcher is not None:
            self._watcher.set_rules(rules)
        log.info(
            "Applied config: %d extData rule(s), filter size %d",
            len(rules),
            live.navigation.ext_data_filter_size,
        )

        if previous is None:
            return
        for name, old, value in (
            ("server.port", previous.server.port, new.server.port),
            ("server.host", previous.server.host, new.server.host),
            (
                "navigation.json_directory",
                previous.navigation.json_directory,
                new.navigation.json_directory,
            ),
        ):
            if old != value:
                log.warning("%s changed to %r; restart the server to apply it", name, value)

    async def serve(self) -> None:
        """Run the HTTP server until shutdown.

        Raises:
            WatcherFatal: If the watched root became inaccessible.
        """
        # Import here to keep uvicorn out of library-only imports
        import uvicorn

        server_config = self.config.server
        self._uvicorn = uvicorn.Server(
            uvicorn.Config(
                self.app,
                host=server_config.host,
                port=server_config.port,
                log_level="info" if self.config.app.dev else "warning",
                access_log=self.config.app.dev,
            )
        )

        try:
            await self.start()
            log.info(
                "Serving %s on http://%s:%d",
                self.app.state.scanner.root,
                server_config.host,
                server_config.port,
            )
            await self._uvicorn.serve()
        finally:
            await self.stop()
            self._uvicorn = None

        if self.fatal_error is not None:
            raise self.fatal_error

    async def _pump(self) -> None:
        while True:
            event = await self._queue.get()
            try:
                await self.connection_manager.broadcast_event(event)
            except Exception as e:
                log.error("Failed to broadcast %s for %s: %s", event.kind.value, event.path, e)
            finally:
                self._queue.task_done()

    async def drain(self) -> None:
        """Wait until every queued event has been broadcast."""
        await self._queue.join()

    def _on_watcher_fatal(self, error: WatcherFatal) -> None:
        self.fatal_error = error
        if self._uvicorn is not None:
            self._uvicorn.should_exit = True
