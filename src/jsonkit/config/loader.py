"""Configuration file loading, validation and caching.

Handles:
- YAML file parsing
- Environment variable overrides
- Conversion from dict to typed Config dataclass
- Validation of values the server cannot start without
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

import yaml

from jsonkit.config.merge import merge_configs
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
from jsonkit.errors import ConfigError

# Module logger (may not be configured yet at import time)
_log = logging.getLogger("jsonkit.config")

_cached_config: Config | None = None

_TRUE_VALUES = {"1", "true", "yes", "on"}


def load_yaml_file(path: Path) -> dict[str, Any]:
    """Load a YAML file, returning empty dict if not found or invalid."""
    if not path.exists():
        return {}

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
            return data if isinstance(data, dict) else {}
    except yaml.YAMLError as e:
        _log.warning("Invalid YAML in %s: %s", path, e)
        return {}
    except OSError as e:
        _log.warning("Error reading %s: %s", path, e)
        return {}


def env_overrides() -> dict[str, Any]:
    """Build config dict from environment variables.

    JSON_DIR       -> navigation.json_directory
    JSONKIT_PORT   -> server.port
    JSONKIT_LOG    -> logging.file
    JSONKIT_DEV    -> app.dev
    """
    overrides: dict[str, Any] = {}

    json_dir = os.environ.get("JSON_DIR")
    if json_dir:
        overrides.setdefault("navigation", {})["json_directory"] = json_dir

    port = os.environ.get("JSONKIT_PORT")
    if port:
        try:
            overrides.setdefault("server", {})["port"] = int(port)
        except ValueError:
            _log.warning("Ignoring non-numeric JSONKIT_PORT=%r", port)

    log_path = os.environ.get("JSONKIT_LOG")
    if log_path:
        overrides.setdefault("logging", {})["file"] = log_path

    dev = os.environ.get("JSONKIT_DEV")
    if dev:
        overrides.setdefault("app", {})["dev"] = dev.strip().lower() in _TRUE_VALUES

    return overrides


def dict_to_config(data: dict[str, Any]) -> Config:
    """Convert merged dict to typed Config dataclass."""
    server_data = data.get("server") or {}
    cors_data = server_data.get("cors") or {}
    server = ServerConfig(
        host=server_data.get("host", "127.0.0.1"),
        port=server_data.get("port", 3000),
        static_files=server_data.get("static_files", "public"),
        cors=CorsConfig(
            enabled=bool(cors_data.get("enabled", False)),
            origins=[o for o in cors_data.get("origins", []) if isinstance(o, str)],
        ),
    )

    app_data = data.get("app") or {}
    app = AppConfig(
        title=str(app_data.get("title", "JSON Kit")),
        version=str(app_data.get("version", "0.0")),
        enable_split_panel=bool(app_data.get("enable_split_panel", True)),
        dev=bool(app_data.get("dev", False)),
    )

    nav_data = data.get("navigation") or {}
    navigation = NavigationConfig(
        json_directory=nav_data.get("json_directory", "."),
        ext_data=dict(nav_data.get("ext_data") or {}),
        ext_data_filter_size=nav_data.get("ext_data_filter_size", 3),
    )

    watch_data = data.get("watch") or {}
    watch = WatchConfig(
        enabled=bool(watch_data.get("enabled", True)),
        stability_threshold=float(watch_data.get("stability_threshold", 0.5)),
        poll_interval=float(watch_data.get("poll_interval", 0.1)),
        root_check_interval=float(watch_data.get("root_check_interval", 1.0)),
        config_interval=float(watch_data.get("config_interval", 2.0)),
    )

    log_data = data.get("logging") or {}
    logging_config = LoggingConfig(
        level=log_data.get("level"),
        verbose=log_data.get("verbose"),
        file=log_data.get("file"),
    )

    known_keys = {"server", "app", "navigation", "watch", "logging"}
    extra = {k: v for k, v in data.items() if k not in known_keys}

    return Config(
        server=server,
        app=app,
        navigation=navigation,
        watch=watch,
        logging=logging_config,
        extra=extra,
    )


def validate_config(config: Config) -> Config:
    """Check values the server relies on.

    Raises:
        ConfigError: Listing every problem found.
    """
    problems: list[str] = []

    port = config.server.port
    if not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535:
        problems.append(f"server.port must be an integer in 1..65535, got {port!r}")

    json_dir = config.navigation.json_directory
    if not isinstance(json_dir, str) or not json_dir:
        problems.append("navigation.json_directory must be a non-empty string")
    elif ".." in json_dir:
        problems.append(f"navigation.json_directory must not contain '..': {json_dir!r}")

    for name, query in config.navigation.ext_data.items():
        if not isinstance(name, str) or not isinstance(query, str) or not query:
            problems.append(f"navigation.ext_data.{name} must map a name to a query string")

    size = config.navigation.ext_data_filter_size
    if not isinstance(size, int) or isinstance(size, bool) or size < 0:
        problems.append(
            f"navigation.ext_data_filter_size must be a non-negative integer, got {size!r}"
        )

    if config.watch.stability_threshold < 0 or config.watch.poll_interval <= 0:
        problems.append("watch.stability_threshold must be >= 0 and watch.poll_interval > 0")
    if config.watch.config_interval < 0:
        problems.append("watch.config_interval must be >= 0")

    if problems:
        raise ConfigError(problems)
    return config


def load_config(
    project_root: str | Path | None = None,
    config_file: str | Path | None = None,
    reload: bool = False,
) -> Config:
    """Load, merge and validate config from all sources.

    Priority order (highest to lowest):
    1. Environment variables
    2. Explicit config file
    3. Project config ($project_root/jsonkit.yaml)
    4. User config

    Raises:
        ConfigError: If the merged config is invalid.
    """
    global _cached_config

    if _cached_config is not None and not reload:
        return _cached_config

    if config_file and not Path(config_file).exists():
        raise ConfigError([f"config file not found: {config_file}"])

    configs: list[dict[str, Any]] = []
    for path in get_config_paths(project_root, config_file):
        config_data = load_yaml_file(path)
        if config_data:
            _log.debug("Loaded config from %s", path)
            configs.append(config_data)

    env_config = env_overrides()
    if env_config:
        configs.append(env_config)

    config = validate_config(dict_to_config(merge_configs(*configs)))
    _cached_config = config
    return config


def get_config() -> Config:
    """Get the cached config, loading it if needed."""
    if _cached_config is None:
        return load_config()
    return _cached_config


def reset_config() -> None:
    """Reset cached config. Useful for testing or forcing a reload."""
    global _cached_config
    _cached_config = None
