"""Config file watcher for automatic reload on changes.

Polls the modification times of every config layer. A change is applied
once the files have stayed unchanged for one more poll, so a reload never
reads a half-written file.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from pathlib import Path

from jsonkit.config.loader import load_config
from jsonkit.config.paths import get_config_paths
from jsonkit.config.schema import Config
from jsonkit.errors import ConfigError

_log = logging.getLogger("jsonkit.config.watcher")

# Default poll interval in seconds
DEFAULT_POLL_INTERVAL = 2.0

# Called with (new, previous); previous is None if no load had succeeded yet
ReloadCallback = Callable[[Config, "Config | None"], None]


class ConfigWatcher:
    """Watches config files for changes and reloads them.

    Example:
        watcher = ConfigWatcher(config_file="jsonkit.yaml", on_reload=apply)
        watcher.start()
    """

    def __init__(
        self,
        project_root: str | Path | None = None,
        config_file: str | Path | None = None,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_reload: ReloadCallback | None = None,
    ) -> None:
        """Initialize the config watcher.

        Args:
            project_root: Directory holding jsonkit.yaml (defaults to the cwd)
            config_file: Explicit config file, watched along with the others
            poll_interval: How often to check for changes (seconds)
            on_reload: Receives each successfully reloaded config
        """
        self._project_root = project_root
        self._config_file = config_file
        self._poll_interval = poll_interval
        self._on_reload = on_reload
        self._running = False
        self._task: asyncio.Task[None] | None = None
        self._mtimes: dict[Path, float] = {}
        self._unsettled = False
        self._current: Config | None = None

    @property
    def current(self) -> Config | None:
        """Last config loaded successfully from the files."""
        return self._current

    def _get_watched_paths(self) -> list[Path]:
        return get_config_paths(self._project_root, self._config_file)

    def _check_mtimes(self) -> dict[Path, float]:
        mtimes: dict[Path, float] = {}
        for path in self._get_watched_paths():
            if path.exists():
                with contextlib.suppress(OSError):
                    mtimes[path] = path.stat().st_mtime
        return mtimes

    def _detect_changes(self) -> list[Path]:
        """Paths created, modified or deleted since the last check."""
        current = self._check_mtimes()
        changed = [p for p, mtime in self._mtimes.items() if current.get(p) != mtime]
        changed.extend(p for p in current if p not in self._mtimes)
        self._mtimes = current
        return changed

    def check(self) -> bool:
        """Run one poll.

        Returns:
            True if a reload was attempted.
        """
        changed = self._detect_changes()
        if changed:
            _log.debug("Config files changed: %s", [str(p) for p in changed])
            self._unsettled = True
            return False
        if not self._unsettled:
            return False
        self._unsettled = False
        self.reload()
        return True

    def reload(self) -> Config | None:
        """Load and validate the config files now.

        An invalid config is logged and the previous one stays in effect.
        """
        try:
            config = load_config(self._project_root, self._config_file, reload=True)
        except ConfigError as e:
            _log.error("Config not reloaded: %s", e)
            return None

        previous, self._current = self._current, config
        _log.info("Config reloaded")
        if self._on_reload is not None:
            try:
                self._on_reload(config, previous)
            except Exception as e:
                _log.error("Error applying reloaded config: %s", e)
        return config

    async def _poll_loop(self) -> None:
        while self._running:
            await asyncio.sleep(self._poll_interval)
            if not self._running:
                break
            self.check()

    def start(self) -> None:
        """Record the current files and begin polling.

        Must be called from within an async context.
        """
        if self._running:
            return

        self._mtimes = self._check_mtimes()
        try:
            self._current = load_config(self._project_root, self._config_file, reload=True)
        except ConfigError as e:
            _log.warning("Config files currently invalid: %s", e)
            self._current = None

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        _log.debug("Config watcher started (interval=%.1fs)", self._poll_interval)

    def stop(self) -> None:
        """Stop watching for config changes."""
        self._running = False
        if self._task:
            self._task.cancel()
            self._task = None
        _log.debug("Config watcher stopped")

    async def __aenter__(self) -> ConfigWatcher:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        self.stop()
