"""Configuration schema dataclasses for jsonkit.

All fields carry defaults so partial YAML files merge into a usable config.

Example jsonkit.yaml:
    server:
      port: 3000
      static_files: public
    app:
      title: JSON Kit
    navigation:
      json_directory: data
      ext_data:
        tags: "$.tags[*]"
        owner: "$.meta.owner"
      ext_data_filter_size: 3
    watch:
      stability_threshold: 0.5
      poll_interval: 0.1
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class CorsConfig:
    """Cross-origin settings for the HTTP API."""

    enabled: bool = False
    origins: list[str] = field(default_factory=list)


@dataclass
class ServerConfig:
    """HTTP/WebSocket server settings."""

    host: str = "127.0.0.1"
    port: int = 3000
    static_files: str | None = "public"  # Directory served at "/", never listed
    cors: CorsConfig = field(default_factory=CorsConfig)


@dataclass
class AppConfig:
    """Values reported to clients via /config."""

    title: str = "JSON Kit"
    version: str = "0.0"
    enable_split_panel: bool = True
    dev: bool = False


@dataclass
class NavigationConfig:
    """The exposed directory and its extraction rules."""

    json_directory: str = "."
    ext_data: dict[str, str] = field(default_factory=dict)  # rule name -> JSONPath
    ext_data_filter_size: int = 3  # Min filter length before extData is searched


@dataclass
class WatchConfig:
    """Change watcher tuning."""

    enabled: bool = True
    stability_threshold: float = 0.5  # Seconds a path must stay unchanged
    poll_interval: float = 0.1  # Seconds between in-progress write checks
    root_check_interval: float = 1.0
    config_interval: float = 2.0  # Seconds between config file checks; 0 disables reload


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str | None = None  # DEBUG, INFO, WARNING, ERROR
    verbose: int | None = None  # 0-4, overrides level
    file: str | None = None  # Log file path


@dataclass
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    app: AppConfig = field(default_factory=AppConfig)
    navigation: NavigationConfig = field(default_factory=NavigationConfig)
    watch: WatchConfig = field(default_factory=WatchConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    # Unknown top-level keys, kept for extensions
    extra: dict[str, Any] = field(default_factory=dict)
