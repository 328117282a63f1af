"""jsonkit: a live, filterable tree over a directory of JSON files."""

__version__ = "0.1.0"

from jsonkit.config import Config, load_config
from jsonkit.errors import (
    AccessDenied,
    ConfigError,
    JsonKitError,
    MalformedContent,
    NotFound,
    WatcherFatal,
)
from jsonkit.extraction import extract, load_ext_data
from jsonkit.paths import PathSegments
from jsonkit.tree import DirectoryScanner, NodeKind, TreeNode
from jsonkit.watching import ChangeWatcher, WatchEvent, WatchEventKind

__all__ = [
    "__version__",
    "AccessDenied",
    "ChangeWatcher",
    "Config",
    "ConfigError",
    "DirectoryScanner",
    "JsonKitError",
    "MalformedContent",
    "NodeKind",
    "NotFound",
    "PathSegments",
    "TreeNode",
    "WatchEvent",
    "WatchEventKind",
    "WatcherFatal",
    "extract",
    "load_config",
    "load_ext_data",
]
