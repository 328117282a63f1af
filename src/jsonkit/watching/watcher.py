"""Directory change watching with write-settling debounce.

A watchdog observer supplies raw notifications on its own thread. They are
marshalled onto the asyncio loop, where every path moves through
``Quiet -> PendingWrite -> Settled``:

1. A create/modify notification opens (or extends) a pending entry whose
   deadline is ``stability_threshold`` seconds away.
2. The entry is polled every ``poll_interval`` seconds; a changed
   ``(mtime, size)`` means the write is still in progress and pushes the
   deadline out again.
3. Once the deadline passes, the entry settles and emits at most one
   canonical WatchEvent describing the net effect.

Deletes are immediate. A path created and deleted inside one window emits
nothing. All watcher state is only touched on the loop thread.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from jsonkit.errors import WatcherFatal
from jsonkit.extraction import load_ext_data
from jsonkit.logging import get_logger
from jsonkit.paths import (
    PathSegments,
    has_extension,
    has_json_extension,
    is_hidden,
    is_hidden_path,
)
from jsonkit.watching.events import WatchEvent, WatchEventKind

log = get_logger("watching")

DEFAULT_STABILITY_THRESHOLD = 0.5
DEFAULT_POLL_INTERVAL = 0.1
DEFAULT_ROOT_CHECK_INTERVAL = 1.0

# Raw change names accepted by ChangeWatcher.notify()
CREATED = "created"
MODIFIED = "modified"
DELETED = "deleted"


@dataclass
class _PendingWrite:
    """A path waiting for its writes to settle."""

    path: str
    is_directory: bool
    deadline: float
    signature: tuple[float, int] | None
    handle: asyncio.TimerHandle | None = None

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


def _signature(path: str) -> tuple[float, int] | None:
    """(mtime, size) of a path, or None if it is gone."""
    try:
        st = os.stat(path, follow_symlinks=False)
    except OSError:
        return None
    return (st.st_mtime, st.st_size)


def is_tracked_file(path: str) -> bool:
    """Files that produce add/remove events: .json or no extension at all."""
    return has_json_extension(path) or not has_extension(path)


class _ObserverBridge(FileSystemEventHandler):
    """Forwards watchdog events from the observer thread onto the loop."""

    def __init__(self, watcher: ChangeWatcher, loop: asyncio.AbstractEventLoop) -> None:
        super().__init__()
        self._watcher = watcher
        self._loop = loop

    def _post(self, change: str, path: Any, is_directory: bool) -> None:
        try:
            self._loop.call_soon_threadsafe(
                self._watcher.notify, change, os.fsdecode(path), is_directory
            )
        except RuntimeError:
            # Loop already closed during shutdown
            pass

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.event_type in (CREATED, MODIFIED, DELETED):
            self._post(event.event_type, event.src_path, event.is_directory)
        elif event.event_type == "moved":
            self._post(DELETED, event.src_path, event.is_directory)
            self._post(CREATED, event.dest_path, event.is_directory)


class ChangeWatcher:
    """Watches a directory tree and emits settled WatchEvents.

    Example:
        async def main() -> None:
            watcher = ChangeWatcher("/srv/data", callback=queue.put_nowait)
            watcher.start()
            ...
            await watcher.aclose()
    """

    def __init__(
        self,
        root: str | Path,
        callback: Callable[[WatchEvent], None],
        rules: Mapping[str, str] | None = None,
        stability_threshold: float = DEFAULT_STABILITY_THRESHOLD,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        on_fatal: Callable[[WatcherFatal], None] | None = None,
        observer_factory: Callable[[], Any] = Observer,
        root_check_interval: float = DEFAULT_ROOT_CHECK_INTERVAL,
    ) -> None:
        """Initialize the watcher.

        Args:
            root: Directory to watch recursively
            callback: Receives each settled WatchEvent, on the loop thread
            rules: Extraction rules for extData on add/change
            stability_threshold: Seconds a path must stay unchanged to settle
            poll_interval: Seconds between checks of an in-progress write
            on_fatal: Called once if the root becomes inaccessible
            observer_factory: Builds the raw notification source
            root_check_interval: Seconds between root liveness checks
        """
        self._root = PathSegments.from_path(root)
        self._root_key = str(self._root)
        self._callback = callback
        self._rules = dict(rules) if rules else None
        self._threshold = max(0.0, stability_threshold)
        self._poll_interval = max(0.01, poll_interval)
        self._on_fatal = on_fatal
        self._observer_factory = observer_factory
        self._root_check_interval = root_check_interval

        # Last known type of every tracked entry: path -> is_directory
        self._known: dict[str, bool] = {}

        # Per-path debounce state
        self._pending: dict[str, _PendingWrite] = {}

        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer: Any = None
        self._monitor_task: asyncio.Task[None] | None = None
        self._running = False
        self._failed = False

    @property
    def root(self) -> str:
        return self._root_key

    @property
    def known_paths(self) -> dict[str, bool]:
        return dict(self._known)

    @property
    def pending_paths(self) -> set[str]:
        return set(self._pending)

    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Snapshot the tree and begin observing.

        Must be called from within a running event loop. Entries present at
        start produce no events.

        Raises:
            WatcherFatal: If the root is not an accessible directory.
        """
        if self._running:
            log.warning("ChangeWatcher already running")
            return
        if not os.path.isdir(self._root_key):
            raise WatcherFatal(self._root_key, "not a directory")

        self._loop = asyncio.get_running_loop()
        self._known = self._snapshot()
        self._failed = False

        self._observer = self._observer_factory()
        self._observer.schedule(_ObserverBridge(self, self._loop), self._root_key, recursive=True)
        self._observer.start()

        self._running = True
        if self._root_check_interval > 0:
            self._monitor_task = self._loop.create_task(self._monitor_root())
        log.info(
            "Watching %s (%d entries, settle %.2fs, poll %.2fs)",
            self._root_key,
            len(self._known),
            self._threshold,
            self._poll_interval,
        )

    def stop(self) -> None:
        """Cancel pending timers and stop the observer.

        Blocks for up to two seconds while the observer thread exits; from a
        coroutine use ``aclose()`` instead.
        """
        observer = self._shutdown()
        if observer is not None:
            observer.join(timeout=2.0)

    async def aclose(self) -> None:
        """Like ``stop()``, but wait for the observer thread off the event loop."""
        observer = self._shutdown()
        if observer is not None:
            await asyncio.to_thread(observer.join, 2.0)

    def _shutdown(self) -> Any:
        """Tear down loop-side state and signal the observer; returns it for joining."""
        if not self._running:
            return None
        self._running = False

        for pending in self._pending.values():
            pending.cancel()
        self._pending.clear()

        if self._monitor_task is not None:
            self._monitor_task.cancel()
            self._monitor_task = None

        observer, self._observer = self._observer, None
        if observer is not None:
            observer.stop()
        log.info("Stopped watching %s", self._root_key)
        return observer

    async def __aenter__(self) -> ChangeWatcher:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def set_rules(self, rules: Mapping[str, str] | None) -> None:
        """Replace the extraction rules used for events emitted from now on."""
        self._rules = dict(rules) if rules else None

    def notify(self, change: str, path: str, is_directory: bool) -> None:
        """Feed one raw notification into the state machine.

        Args:
            change: "created", "modified" or "deleted"
            path: Path the notification refers to
            is_directory: Whether the source reported a directory
        """
        if not self._running:
            return

        segments = PathSegments.from_path(path)
        key = str(segments)
        if key == self._root_key:
            if change == DELETED:
                self._fail("watched root was deleted")
            return
        if not segments.is_within(self._root) or is_hidden_path(key, self._root_key):
            return

        if change == DELETED:
            self._handle_removed(key)
        elif change == MODIFIED and is_directory:
            # Directory mtime changes just echo changes to its children
            return
        elif change in (CREATED, MODIFIED):
            self._touch(key, is_directory)
        else:
            log.debug("Ignoring %s notification for %s", change, key)

    def _touch(self, path: str, is_directory: bool) -> None:
        """Open or extend the settling window for a path."""
        assert self._loop is not None
        deadline = self._loop.time() + self._threshold
        pending = self._pending.get(path)
        if pending is None:
            pending = _PendingWrite(
                path=path,
                is_directory=is_directory,
                deadline=deadline,
                signature=_signature(path),
            )
            self._pending[path] = pending
        else:
            pending.deadline = deadline
            pending.is_directory = is_directory
        self._schedule(pending, min(self._poll_interval, self._threshold))

    def _schedule(self, pending: _PendingWrite, delay: float) -> None:
        assert self._loop is not None
        pending.cancel()
        pending.handle = self._loop.call_later(max(0.0, delay), self._poll, pending.path)

    def _poll(self, path: str) -> None:
        pending = self._pending.get(path)
        if pending is None or not self._running:
            return
        pending.handle = None
        assert self._loop is not None
        now = self._loop.time()

        signature = _signature(path)
        if signature is None:
            # Vanished before a delete notification arrived
            self._handle_removed(path)
            return
        if not pending.is_directory and signature != pending.signature:
            pending.signature = signature
            pending.deadline = now + self._threshold

        if now >= pending.deadline:
            del self._pending[path]
            self._settle(path)
        else:
            self._schedule(pending, min(self._poll_interval, pending.deadline - now))

    def _settle(self, path: str) -> None:
        """Emit the net effect of a settled path."""
        if os.path.islink(path):
            # Listings never include symlinks; a tracked entry replaced by one is gone
            if path in self._known:
                self._handle_removed(path)
            return
        if os.path.isdir(path):
            if path in self._known:
                return
            self._known[path] = True
            self._emit(WatchEvent(kind=WatchEventKind.DIR_ADDED, path=path))
            self._announce_contents(path)
            return

        if not is_tracked_file(path):
            return
        if path not in self._known:
            self._known[path] = False
            self._emit(
                WatchEvent(
                    kind=WatchEventKind.FILE_ADDED,
                    path=path,
                    ext_data=self._ext_data(path),
                )
            )
        elif has_json_extension(path):
            self._emit(
                WatchEvent(
                    kind=WatchEventKind.FILE_CHANGED,
                    path=path,
                    ext_data=self._ext_data(path),
                )
            )

    def _announce_contents(self, directory: str) -> None:
        """Emit adds for entries that arrived with a directory (e.g. a move in).

        Entries with their own pending window settle on their own.
        """
        for path, is_dir in self._walk(directory):
            if path in self._known or path in self._pending:
                continue
            self._known[path] = is_dir
            if is_dir:
                self._emit(WatchEvent(kind=WatchEventKind.DIR_ADDED, path=path))
            else:
                self._emit(
                    WatchEvent(
                        kind=WatchEventKind.FILE_ADDED,
                        path=path,
                        ext_data=self._ext_data(path),
                    )
                )

    def _handle_removed(self, path: str) -> None:
        """Cancel pending windows under path and emit its removal if it was known."""
        removed = PathSegments.from_path(path)
        for pending_path in list(self._pending):
            if PathSegments.from_path(pending_path).is_within(removed):
                self._pending.pop(pending_path).cancel()

        was_directory = self._known.pop(path, None)
        if was_directory is None:
            # Never announced: created and deleted within one window
            return

        if was_directory:
            for known_path in list(self._known):
                if PathSegments.from_path(known_path).is_within(removed):
                    del self._known[known_path]
            self._emit(WatchEvent(kind=WatchEventKind.DIR_REMOVED, path=path))
        else:
            self._emit(WatchEvent(kind=WatchEventKind.FILE_REMOVED, path=path))

    def _ext_data(self, path: str) -> dict[str, list[Any]] | None:
        if not self._rules:
            return None
        return load_ext_data(self._rules, path) or {}

    def _emit(self, event: WatchEvent) -> None:
        log.debug("%s %s", event.kind.value, event.path)
        try:
            self._callback(event)
        except Exception as e:
            log.error("Error in change callback for %s: %s", event.path, e)

    def _fail(self, reason: str) -> None:
        """Report the watch as dead, once, and stop."""
        if self._failed:
            return
        self._failed = True
        error = WatcherFatal(self._root_key, reason)
        log.error("%s", error)
        observer = self._shutdown()
        if observer is not None and self._loop is not None:
            self._loop.run_in_executor(None, observer.join, 2.0)
        if self._on_fatal is not None:
            self._on_fatal(error)

    async def _monitor_root(self) -> None:
        try:
            while self._running:
                await asyncio.sleep(self._root_check_interval)
                if self._running and not os.path.isdir(self._root_key):
                    self._fail("watched root is no longer accessible")
                    return
        except asyncio.CancelledError:
            pass

    def _snapshot(self) -> dict[str, bool]:
        return dict(self._walk(self._root_key))

    def _walk(self, top: str) -> list[tuple[str, bool]]:
        """Tracked entries below top as (path, is_directory), parents first."""
        found: list[tuple[str, bool]] = []
        stack = [top]
        while stack:
            current = stack.pop()
            try:
                entries = list(os.scandir(current))
            except OSError as e:
                log.warning("Cannot list %s: %s", current, e)
                continue
            for entry in sorted(entries, key=lambda e: e.name):
                if is_hidden(entry.name):
                    continue
                try:
                    if entry.is_symlink():
                        continue
                    is_dir = entry.is_dir(follow_symlinks=False)
                except OSError:
                    continue
                key = str(PathSegments.from_path(entry.path))
                if is_dir:
                    found.append((key, True))
                    stack.append(key)
                elif is_tracked_file(key):
                    found.append((key, False))
        return found
