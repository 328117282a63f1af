"""Configuration file locations.

- User: $XDG_CONFIG_HOME/jsonkit/config.yaml, ~/.config/jsonkit/config.yaml,
  or %APPDATA%\\jsonkit\\config.yaml on Windows
- Project: $project_root/jsonkit.yaml
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

CONFIG_FILENAME = "config.yaml"
PROJECT_FILENAME = "jsonkit.yaml"
APP_NAME = "jsonkit"


def get_user_config_path() -> Path | None:
    """Get user-level config path. The file may not exist."""
    if sys.platform == "win32":
        app_data = os.environ.get("APPDATA")
        if app_data:
            return Path(app_data) / APP_NAME / CONFIG_FILENAME
        return None

    xdg_config = os.environ.get("XDG_CONFIG_HOME")
    if xdg_config:
        return Path(xdg_config) / APP_NAME / CONFIG_FILENAME
    return Path.home() / ".config" / APP_NAME / CONFIG_FILENAME


def get_project_config_path(project_root: str | Path) -> Path:
    """Get project-level config path (may not exist)."""
    return Path(project_root) / PROJECT_FILENAME


def get_config_paths(
    project_root: str | Path | None = None,
    config_file: str | Path | None = None,
) -> list[Path]:
    """Get all config paths in priority order (lowest to highest).

    Args:
        project_root: Directory holding jsonkit.yaml. Defaults to the cwd.
        config_file: Explicit config file, applied last.

    Returns:
        List of config paths; later paths override earlier ones.
    """
    paths: list[Path] = []

    user_path = get_user_config_path()
    if user_path:
        paths.append(user_path)

    paths.append(get_project_config_path(project_root or Path.cwd()))

    if config_file:
        paths.append(Path(config_file))

    return paths
