"""Configuration management for jsonkit.

Layered YAML configuration (user, project, explicit file) with environment
variable overrides on top.

Example usage:
    from jsonkit.config import load_config

    config = load_config(project_root="/srv/data")
    print(config.navigation.json_directory)
"""

from jsonkit.config.loader import (
    get_config,
    load_config,
    reset_config,
    validate_config,
)
from jsonkit.config.paths import get_config_paths
from jsonkit.config.schema import (
    AppConfig,
    Config,
    CorsConfig,
    LoggingConfig,
    NavigationConfig,
    ServerConfig,
    WatchConfig,
)
from jsonkit.config.watcher import ConfigWatcher

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reset_config",
    "validate_config",
    "get_config_paths",
    "ConfigWatcher",
    "AppConfig",
    "CorsConfig",
    "LoggingConfig",
    "NavigationConfig",
    "ServerConfig",
    "WatchConfig",
]
