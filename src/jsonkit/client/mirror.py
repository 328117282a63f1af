"""Client-held mirror of the server tree, updated incrementally.

The mirror starts from a directory listing and then applies change events
one at a time. Inserts materialize any missing ancestor directories, so an
event can land in a tree that was only partly loaded. Applying the same
add twice leaves the mirror unchanged.
"""

from __future__ import annotations

import bisect
from collections.abc import Callable, Iterable, Iterator
from typing import Any

from jsonkit.logging import get_logger
from jsonkit.paths import PathSegments
from jsonkit.tree.nodes import NodeKind, TreeNode
from jsonkit.watching.events import WatchEvent, WatchEventKind

log = get_logger("mirror")


class TreeMirror:
    """Local copy of the tree rooted at ``root``.

    Example:
        mirror = TreeMirror("/srv/data")
        mirror.load(listing)
        mirror.apply(WatchEvent(WatchEventKind.FILE_ADDED, "/srv/data/x/y.json", {}))
        mirror.get("/srv/data/x").is_directory  # True
    """

    def __init__(
        self,
        root: str,
        on_display_changed: Callable[[str], None] | None = None,
    ) -> None:
        """Initialize an empty mirror.

        Args:
            root: Absolute path of the tree root, as the server reports it
            on_display_changed: Called with the displayed file's path when a
                change event arrives for it
        """
        self._root = PathSegments.from_path(root)
        key = str(self._root)
        self.root = TreeNode.directory(title=self._root.name or key, key=key)
        self.on_display_changed = on_display_changed
        self.displayed: str | None = None

        self._index: dict[str, TreeNode] = {key: self.root}
        self._parents: dict[str, TreeNode] = {}

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._index

    def __len__(self) -> int:
        """Number of nodes, excluding the root."""
        return len(self._index) - 1

    def get(self, key: str) -> TreeNode | None:
        return self._index.get(key)

    def parent_of(self, key: str) -> TreeNode | None:
        return self._parents.get(key)

    def walk(self) -> Iterator[TreeNode]:
        """All nodes below the root, depth-first in display order."""
        stack = list(reversed(self.root.children or []))
        while stack:
            node = stack.pop()
            yield node
            if node.children:
                stack.extend(reversed(node.children))

    def to_list(self) -> list[dict[str, Any]]:
        return [child.to_dict() for child in self.root.children or []]

    def load(self, nodes: Iterable[TreeNode | dict[str, Any]]) -> None:
        """Replace the mirror's contents with a directory listing."""
        key = self.root.key
        self.root = TreeNode.directory(title=self.root.title, key=key)
        self._index = {key: self.root}
        self._parents = {}

        for item in nodes:
            node = item if isinstance(item, TreeNode) else TreeNode.from_dict(item)
            self.root.children.append(node)
            self._register(node, self.root)
        self.root.sort_children()

    def apply(self, event: WatchEvent) -> bool:
        """Apply one change event.

        Returns:
            True if the mirror changed.
        """
        if not PathSegments.from_path(event.path).is_within(self._root):
            log.debug("Ignoring %s outside mirror root: %s", event.kind.value, event.path)
            return False

        kind = event.kind
        if kind is WatchEventKind.DIR_ADDED:
            return self._insert(event.path, NodeKind.DIRECTORY, None)
        if kind is WatchEventKind.FILE_ADDED:
            return self._insert(event.path, NodeKind.FILE, event.ext_data)
        if kind in (WatchEventKind.FILE_REMOVED, WatchEventKind.DIR_REMOVED):
            return self._remove(event.path)
        if kind is WatchEventKind.FILE_CHANGED:
            return self._update(event.path, event.ext_data)
        return False

    def _insert(self, path: str, kind: NodeKind, ext_data: dict[str, list[Any]] | None) -> bool:
        target = PathSegments.from_path(path)
        key = str(target)
        if key in self._index:
            return False

        parent = self.root
        for ancestor in target.ancestors_below(self._root):
            ancestor_key = str(ancestor)
            existing = self._index.get(ancestor_key)
            if existing is None:
                existing = TreeNode.directory(title=ancestor.name, key=ancestor_key)
                self._attach(existing, parent)
            elif not existing.is_directory:
                log.warning("Cannot insert %s below file %s", key, ancestor_key)
                return False
            parent = existing

        if kind is NodeKind.DIRECTORY:
            node = TreeNode.directory(title=target.name, key=key)
        else:
            node = TreeNode.file(title=target.name, key=key, ext_data=ext_data)
        self._attach(node, parent)
        return True

    def _remove(self, path: str) -> bool:
        key = str(PathSegments.from_path(path))
        node = self._index.get(key)
        if node is None or node is self.root:
            return False

        parent = self._parents.pop(key)
        parent.children.remove(node)
        del self._index[key]
        for descendant in self._descendants(node):
            self._index.pop(descendant.key, None)
            self._parents.pop(descendant.key, None)

        if self.displayed is not None and self.displayed not in self._index:
            self.displayed = None
        return True

    def _update(self, path: str, ext_data: dict[str, list[Any]] | None) -> bool:
        key = str(PathSegments.from_path(path))
        node = self._index.get(key)
        if node is None or node.is_directory:
            return False

        node.ext_data = ext_data
        if key == self.displayed and self.on_display_changed is not None:
            self.on_display_changed(key)
        return True

    def _attach(self, node: TreeNode, parent: TreeNode) -> None:
        bisect.insort(parent.children, node, key=TreeNode.sort_key)
        self._index[node.key] = node
        self._parents[node.key] = parent

    def _register(self, node: TreeNode, parent: TreeNode) -> None:
        """Index a loaded subtree."""
        stack = [(node, parent)]
        while stack:
            current, owner = stack.pop()
            self._index[current.key] = current
            self._parents[current.key] = owner
            for child in current.children or []:
                stack.append((child, current))

    @staticmethod
    def _descendants(node: TreeNode) -> Iterator[TreeNode]:
        stack = list(node.children or [])
        while stack:
            current = stack.pop()
            yield current
            stack.extend(current.children or [])
