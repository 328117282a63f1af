"""Filesystem change watching for jsonkit.

Raw watchdog notifications are debounced per path and normalized into
canonical WatchEvents, which the server broadcasts to live clients.
"""

from jsonkit.watching.events import WatchEvent, WatchEventKind
from jsonkit.watching.watcher import ChangeWatcher

__all__ = [
    "ChangeWatcher",
    "WatchEvent",
    "WatchEventKind",
]
