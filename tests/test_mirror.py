"""Tests for TreeMirror event reconciliation."""

from __future__ import annotations

import pytest

from jsonkit.client.mirror import TreeMirror
from jsonkit.tree import TreeNode
from jsonkit.watching import WatchEvent, WatchEventKind


def event(kind: WatchEventKind, path: str, ext_data: dict | None = None) -> WatchEvent:
    return WatchEvent(kind=kind, path=path, ext_data=ext_data)


@pytest.fixture
def mirror() -> TreeMirror:
    return TreeMirror("/root")


def titles(node: TreeNode) -> list[str]:
    return [child.title for child in node.children or []]


class TestInsert:
    """Tests for add events."""

    def test_file_add_materializes_ancestors(self, mirror: TreeMirror) -> None:
        assert mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/x/y.json", {}))

        x = mirror.get("/root/x")
        y = mirror.get("/root/x/y.json")
        assert x is not None and x.is_directory
        assert y is not None and not y.is_directory
        assert y.ext_data == {}
        assert mirror.parent_of("/root/x/y.json") is x
        assert titles(mirror.root) == ["x"]

    def test_file_add_is_idempotent(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/x/y.json", {}))
        before = mirror.to_list()

        assert not mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/x/y.json", {}))
        assert mirror.to_list() == before
        assert len(mirror) == 2

    def test_dir_add_is_idempotent(self, mirror: TreeMirror) -> None:
        assert mirror.apply(event(WatchEventKind.DIR_ADDED, "/root/a/b"))
        assert not mirror.apply(event(WatchEventKind.DIR_ADDED, "/root/a/b"))
        assert not mirror.apply(event(WatchEventKind.DIR_ADDED, "/root/a"))
        assert len(mirror) == 2

    def test_insert_keeps_sort_order(self, mirror: TreeMirror) -> None:
        for path in ("/root/m.json", "/root/b.json", "/root/z", "/root/c"):
            kind = WatchEventKind.FILE_ADDED if path.endswith(".json") else WatchEventKind.DIR_ADDED
            mirror.apply(event(kind, path))
        assert titles(mirror.root) == ["c", "z", "b.json", "m.json"]

    def test_keys_join_root_and_segments(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/p/q/r.json"))
        assert [node.key for node in mirror.walk()] == [
            "/root/p",
            "/root/p/q",
            "/root/p/q/r.json",
        ]

    def test_insert_below_file_refused(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/f.json"))
        assert not mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/f.json/g.json"))
        assert "/root/f.json/g.json" not in mirror

    def test_outside_root_ignored(self, mirror: TreeMirror) -> None:
        assert not mirror.apply(event(WatchEventKind.FILE_ADDED, "/elsewhere/a.json"))
        assert not mirror.apply(event(WatchEventKind.DIR_ADDED, "/rootless"))
        assert len(mirror) == 0


class TestRemove:
    """Tests for remove events."""

    def test_dir_remove_drops_subtree(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/x/y.json", {}))

        assert mirror.apply(event(WatchEventKind.DIR_REMOVED, "/root/x"))

        assert "/root/x" not in mirror
        assert "/root/x/y.json" not in mirror
        assert mirror.root.children == []
        assert not mirror.apply(event(WatchEventKind.FILE_CHANGED, "/root/x/y.json", {"t": ["v"]}))

    def test_remove_missing_is_noop(self, mirror: TreeMirror) -> None:
        assert not mirror.apply(event(WatchEventKind.FILE_REMOVED, "/root/nope.json"))

    def test_remove_root_is_noop(self, mirror: TreeMirror) -> None:
        assert not mirror.apply(event(WatchEventKind.DIR_REMOVED, "/root"))

    def test_remove_clears_displayed(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/x/y.json", {}))
        mirror.displayed = "/root/x/y.json"
        mirror.apply(event(WatchEventKind.DIR_REMOVED, "/root/x"))
        assert mirror.displayed is None

    def test_remove_keeps_siblings(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/a.json"))
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/b.json"))
        mirror.apply(event(WatchEventKind.FILE_REMOVED, "/root/a.json"))
        assert titles(mirror.root) == ["b.json"]


class TestUpdate:
    """Tests for change events."""

    def test_change_replaces_ext_data(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/a.json", {"tags": ["old"]}))
        assert mirror.apply(event(WatchEventKind.FILE_CHANGED, "/root/a.json", {"tags": ["new"]}))
        node = mirror.get("/root/a.json")
        assert node is not None
        assert node.ext_data == {"tags": ["new"]}

    def test_change_of_displayed_file_triggers_refresh(self) -> None:
        refreshed: list[str] = []
        mirror = TreeMirror("/root", on_display_changed=refreshed.append)
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/a.json", {}))
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/b.json", {}))
        mirror.displayed = "/root/a.json"

        mirror.apply(event(WatchEventKind.FILE_CHANGED, "/root/b.json", {}))
        assert refreshed == []
        mirror.apply(event(WatchEventKind.FILE_CHANGED, "/root/a.json", {}))
        assert refreshed == ["/root/a.json"]

    def test_change_on_directory_ignored(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.DIR_ADDED, "/root/d"))
        assert not mirror.apply(event(WatchEventKind.FILE_CHANGED, "/root/d", {}))


class TestLoad:
    """Tests for loading a directory listing."""

    def test_load_from_listing(self, mirror: TreeMirror) -> None:
        mirror.load(
            [
                {"title": "b.json", "key": "/root/b.json", "type": "file", "extData": {"t": ["1"]}},
                {
                    "title": "d",
                    "key": "/root/d",
                    "type": "directory",
                    "folder": True,
                    "children": [{"title": "e.json", "key": "/root/d/e.json", "type": "file"}],
                },
            ]
        )
        assert titles(mirror.root) == ["d", "b.json"]
        assert mirror.parent_of("/root/d/e.json") is mirror.get("/root/d")
        assert len(mirror) == 3

    def test_load_replaces_previous_state(self, mirror: TreeMirror) -> None:
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/old.json"))
        mirror.load([TreeNode.file(title="new.json", key="/root/new.json")])
        assert "/root/old.json" not in mirror
        assert "/root/new.json" in mirror

    def test_events_after_load(self, mirror: TreeMirror) -> None:
        mirror.load([TreeNode.directory(title="d", key="/root/d")])
        mirror.apply(event(WatchEventKind.FILE_ADDED, "/root/d/x.json"))
        d = mirror.get("/root/d")
        assert d is not None
        assert titles(d) == ["x.json"]
