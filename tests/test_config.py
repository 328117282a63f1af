"""Tests for the configuration module."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

from jsonkit.config import (
    Config,
    get_config,
    load_config,
    reset_config,
    validate_config,
)
from jsonkit.config.loader import dict_to_config, env_overrides
from jsonkit.config.merge import deep_merge, merge_configs
from jsonkit.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_user_config_path,
)
from jsonkit.errors import ConfigError

ENV_VARS = ("JSON_DIR", "JSONKIT_PORT", "JSONKIT_LOG", "JSONKIT_DEV")


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the user config at an empty directory and clear overrides."""
    user_dir = tmp_path / "xdg"
    user_dir.mkdir()
    monkeypatch.setenv("XDG_CONFIG_HOME", str(user_dir))
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return user_dir


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_simple_override(self) -> None:
        """Test that override values replace base values."""
        result = deep_merge({"a": 1, "b": 2}, {"b": 3, "c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}

    def test_nested_merge(self) -> None:
        """Test that nested dicts are recursively merged."""
        base = {"server": {"host": "0.0.0.0", "port": 3000}}
        result = deep_merge(base, {"server": {"port": 8080}})
        assert result["server"] == {"host": "0.0.0.0", "port": 8080}

    def test_none_does_not_override(self) -> None:
        """Test that None values in override don't replace base values."""
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_list_replaced_not_merged(self) -> None:
        """Test that lists are replaced, not concatenated."""
        assert deep_merge({"items": [1, 2, 3]}, {"items": [4, 5]}) == {"items": [4, 5]}

    def test_merge_configs_multiple(self) -> None:
        """Test merging multiple configs in order."""
        result = merge_configs({"a": 1, "b": 2}, {"b": 3}, {}, {"c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_windows_user_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test user config path on Windows."""
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("APPDATA", "C:\\Users\\Test\\AppData\\Roaming")

        path = get_user_config_path()
        assert path is not None
        assert "AppData" in str(path)
        assert "jsonkit" in str(path)

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test user config path respects XDG_CONFIG_HOME."""
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")

        assert get_user_config_path() == Path("/home/test/.config-custom/jsonkit/config.yaml")

    def test_unix_user_path_default(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)

        path = get_user_config_path()
        assert path is not None
        assert path.parts[-3:] == (".config", "jsonkit", "config.yaml")

    def test_project_config_path(self) -> None:
        """Test project config path construction."""
        assert get_project_config_path("/srv/app") == Path("/srv/app/jsonkit.yaml")

    def test_get_config_paths_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """User first, then project, then the explicit file."""
        monkeypatch.setattr(sys, "platform", "linux")
        paths = get_config_paths(project_root="/srv/app", config_file="/tmp/extra.yaml")
        assert len(paths) == 3
        assert "jsonkit" in paths[0].parts
        assert paths[1] == Path("/srv/app/jsonkit.yaml")
        assert paths[2] == Path("/tmp/extra.yaml")


class TestConfigLoading:
    """Test configuration loading."""

    def test_defaults(self, tmp_path: Path) -> None:
        """Test that missing config files use defaults."""
        config = load_config(project_root=tmp_path)
        assert isinstance(config, Config)
        assert config.server.port == 3000
        assert config.server.static_files == "public"
        assert config.navigation.json_directory == "."
        assert config.navigation.ext_data == {}
        assert config.navigation.ext_data_filter_size == 3
        assert config.watch.stability_threshold == 0.5
        assert config.watch.poll_interval == 0.1

    def test_load_project_yaml(self, tmp_path: Path) -> None:
        """Test loading a valid project config file."""
        (tmp_path / "jsonkit.yaml").write_text(
            """
server:
  port: 8080
navigation:
  json_directory: data
  ext_data:
    tags: "$.tags[*]"
  ext_data_filter_size: 2
watch:
  stability_threshold: 1.5
"""
        )
        config = load_config(project_root=tmp_path)
        assert config.server.port == 8080
        assert config.server.host == "127.0.0.1"
        assert config.navigation.json_directory == "data"
        assert config.navigation.ext_data == {"tags": "$.tags[*]"}
        assert config.navigation.ext_data_filter_size == 2
        assert config.watch.stability_threshold == 1.5

    def test_layers_merge(self, tmp_path: Path, isolated_env: Path) -> None:
        """User, project and explicit files merge in that order."""
        user_file = isolated_env / "jsonkit" / "config.yaml"
        user_file.parent.mkdir()
        user_file.write_text("app:\n  title: From User\n  dev: true\nserver:\n  port: 4000\n")
        (tmp_path / "jsonkit.yaml").write_text("app:\n  title: From Project\n")
        explicit = tmp_path / "explicit.yaml"
        explicit.write_text("server:\n  port: 5000\n")

        config = load_config(project_root=tmp_path, config_file=explicit)

        assert config.app.title == "From Project"
        assert config.app.dev is True
        assert config.server.port == 5000

    def test_env_overrides_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "jsonkit.yaml").write_text("server:\n  port: 8080\n")
        monkeypatch.setenv("JSON_DIR", "/srv/json")
        monkeypatch.setenv("JSONKIT_PORT", "9000")
        monkeypatch.setenv("JSONKIT_DEV", "yes")
        monkeypatch.setenv("JSONKIT_LOG", "/tmp/jsonkit.log")

        config = load_config(project_root=tmp_path)

        assert config.navigation.json_directory == "/srv/json"
        assert config.server.port == 9000
        assert config.app.dev is True
        assert config.logging.file == "/tmp/jsonkit.log"

    def test_non_numeric_port_env_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("JSONKIT_PORT", "http")
        assert "server" not in env_overrides()

    def test_invalid_yaml_uses_defaults(self, tmp_path: Path) -> None:
        """Test that invalid YAML falls back to defaults."""
        (tmp_path / "jsonkit.yaml").write_text("invalid: yaml: :")
        config = load_config(project_root=tmp_path)
        assert config.server.port == 3000

    def test_missing_explicit_file_is_an_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(project_root=tmp_path, config_file=tmp_path / "nope.yaml")

    def test_invalid_values_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "jsonkit.yaml").write_text("server:\n  port: 70000\n")
        with pytest.raises(ConfigError) as exc_info:
            load_config(project_root=tmp_path)
        assert "server.port" in str(exc_info.value)

    def test_extra_fields_preserved(self, tmp_path: Path) -> None:
        """Unknown top-level sections are kept in extra."""
        (tmp_path / "jsonkit.yaml").write_text("plugins:\n  theme: dark\n")
        config = load_config(project_root=tmp_path)
        assert config.extra == {"plugins": {"theme": "dark"}}


class TestValidation:
    """Test validate_config."""

    def test_defaults_are_valid(self) -> None:
        config = Config()
        assert validate_config(config) is config

    def test_parent_reference_rejected(self) -> None:
        config = dict_to_config({"navigation": {"json_directory": "../secrets"}})
        with pytest.raises(ConfigError) as exc_info:
            validate_config(config)
        assert "json_directory" in exc_info.value.problems[0]

    def test_every_problem_reported(self) -> None:
        config = dict_to_config(
            {
                "server": {"port": 0},
                "navigation": {"ext_data": {"tags": ""}, "ext_data_filter_size": -1},
                "watch": {"poll_interval": 0},
            }
        )
        with pytest.raises(ConfigError) as exc_info:
            validate_config(config)
        assert len(exc_info.value.problems) == 4

    def test_boolean_port_rejected(self) -> None:
        config = Config()
        config.server.port = True  # type: ignore[assignment]
        with pytest.raises(ConfigError):
            validate_config(config)


class TestConfigCaching:
    """Test the cached config."""

    def test_get_config_caches(self) -> None:
        assert get_config() is get_config()

    def test_reset_clears_cache(self) -> None:
        first = get_config()
        reset_config()
        assert get_config() is not first

    def test_reload_bypasses_cache(self, tmp_path: Path) -> None:
        first = load_config(project_root=tmp_path)
        (tmp_path / "jsonkit.yaml").write_text("server:\n  port: 1234\n")
        assert load_config(project_root=tmp_path).server.port == first.server.port
        assert load_config(project_root=tmp_path, reload=True).server.port == 1234


class TestConfigInterval:
    """Test the config reload interval setting."""

    def test_default_and_yaml(self, tmp_path: Path) -> None:
        assert Config().watch.config_interval == 2.0
        config = dict_to_config({"watch": {"config_interval": 0}})
        assert config.watch.config_interval == 0.0

    def test_negative_rejected(self) -> None:
        config = dict_to_config({"watch": {"config_interval": -1}})
        with pytest.raises(ConfigError) as exc_info:
            validate_config(config)
        assert "config_interval" in exc_info.value.problems[0]
