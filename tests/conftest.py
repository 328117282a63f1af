"""Root pytest configuration for all tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from jsonkit.config import reset_config
from tests.utils import write_json

# Configure pytest-asyncio; redundant with pyproject.toml but ensures it's set
pytest_plugins = ("pytest_asyncio",)


@pytest.fixture
def json_root(tmp_path: Path) -> Path:
    """A small directory of JSON files.

    data/
      zeta/
        inner.json    {"tags": ["x"]}
      alpha/
      b.json          {"tags": ["a", "b", "a"]}
      a.json          {"tags": ["c"], "meta": {"owner": "ann"}}
      notes.txt
      .hidden.json
    """
    root = tmp_path / "data"
    root.mkdir()
    write_json(root / "zeta" / "inner.json", {"tags": ["x"]})
    (root / "alpha").mkdir()
    write_json(root / "b.json", {"tags": ["a", "b", "a"]})
    write_json(root / "a.json", {"tags": ["c"], "meta": {"owner": "ann"}})
    (root / "notes.txt").write_text("not json", encoding="utf-8")
    write_json(root / ".hidden.json", {})
    return root


@pytest.fixture(autouse=True)
def _reset_cached_config():
    """Keep the cached config from leaking between tests."""
    reset_config()
    yield
    reset_config()
