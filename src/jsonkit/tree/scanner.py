"""Recursive directory scanning into a TreeNode graph.

The scan walks with an explicit work stack rather than recursion, so very
deep trees cannot exhaust the call stack. Every directory's children are
sorted on their own, which makes the result independent of listing order.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path

from jsonkit.errors import AccessDenied, NotFound
from jsonkit.extraction import load_ext_data
from jsonkit.logging import get_logger
from jsonkit.paths import PathSegments, has_json_extension, is_hidden
from jsonkit.tree.nodes import ScanStats, TreeNode

log = get_logger("scanner")


class DirectoryScanner:
    """Lists the JSON files below a root as a sorted tree.

    Example:
        scanner = DirectoryScanner("/srv/data", rules={"tags": "$.tags[*]"})
        node = scanner.scan("/srv/data/projects")
        [child.title for child in node.children]
    """

    def __init__(
        self,
        root: str | Path,
        rules: Mapping[str, str] | None = None,
        excluded_roots: Iterable[str | Path] = (),
    ) -> None:
        """Initialize the scanner.

        Args:
            root: Directory that every scanned path must lie within
            rules: Extraction rules applied to each JSON file
            excluded_roots: Directories that may never be listed (static assets)
        """
        self._root = PathSegments.from_path(root)
        self._rules = dict(rules) if rules else None
        self._excluded = [PathSegments.from_path(p) for p in excluded_roots]

        # Containment is also checked after resolving symlinks
        self._real_root = _resolved(root)
        self._real_excluded = [_resolved(p) for p in excluded_roots]

    @property
    def root(self) -> str:
        return str(self._root)

    @property
    def rules(self) -> dict[str, str] | None:
        return self._rules

    def set_rules(self, rules: Mapping[str, str] | None) -> None:
        """Replace the extraction rules used by later scans."""
        self._rules = dict(rules) if rules else None

    def check_access(self, path: str | Path) -> PathSegments:
        """Validate that path may be exposed.

        Returns:
            The normalized path.

        Raises:
            AccessDenied: If path is outside the root or inside an excluded root,
                either as written or once symlinks are resolved.
        """
        segments = PathSegments.from_path(path)
        real = _resolved(path)
        if not segments.is_within(self._root) or not real.is_within(self._real_root):
            raise AccessDenied(str(segments))
        for excluded, real_excluded in zip(self._excluded, self._real_excluded):
            if segments.is_within(excluded) or real.is_within(real_excluded):
                raise AccessDenied(str(segments))
        return segments

    def scan(self, path: str | Path | None = None) -> TreeNode:
        """Scan a directory into a TreeNode with sorted children.

        Args:
            path: Directory to scan; defaults to the root.

        Raises:
            AccessDenied: If the path may not be exposed.
            NotFound: If the path does not exist or is not a directory.
            OSError: If the requested directory cannot be listed.
        """
        segments = self.check_access(path if path is not None else self.root)
        key = str(segments)
        if not os.path.isdir(key):
            raise NotFound(key)

        top = TreeNode.directory(title=segments.name or key, key=key)
        stats = ScanStats()
        visited: list[TreeNode] = []
        stack: list[TreeNode] = [top]

        while stack:
            node = stack.pop()
            visited.append(node)
            stats.directories += 1
            try:
                entries = list(os.scandir(node.key))
            except OSError as e:
                if node is top:
                    raise
                # Unlistable subdirectory stays in the tree, empty
                log.warning("Cannot list %s: %s", node.key, e)
                stats.errors.append(node.key)
                continue

            for entry in entries:
                child = self._classify(entry, stats)
                if child is None:
                    continue
                node.children.append(child)
                if child.is_directory:
                    stack.append(child)

        for node in visited:
            node.sort_children()

        log.debug(
            "Scanned %s: %d directories, %d files, %d skipped",
            key,
            stats.directories,
            stats.files,
            stats.skipped,
        )
        return top

    def scan_list(self, path: str | Path | None = None) -> list[dict]:
        """Scan and serialize the children, as the listing endpoint returns them."""
        return [child.to_dict() for child in self.scan(path).children or []]

    def _classify(self, entry: os.DirEntry[str], stats: ScanStats) -> TreeNode | None:
        """Turn one directory entry into a node, or None if it is excluded."""
        if is_hidden(entry.name):
            stats.skipped += 1
            return None
        try:
            if entry.is_symlink():
                stats.skipped += 1
                return None
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as e:
            log.warning("Cannot stat %s: %s", entry.path, e)
            stats.skipped += 1
            return None

        segments = PathSegments.from_path(entry.path)
        key = str(segments)
        if is_dir:
            if any(segments.is_within(excluded) for excluded in self._excluded):
                stats.skipped += 1
                return None
            return TreeNode.directory(title=entry.name, key=key)
        if is_file and has_json_extension(entry.name):
            stats.files += 1
            return TreeNode.file(
                title=entry.name,
                key=key,
                ext_data=load_ext_data(self._rules, key),
            )
        stats.skipped += 1
        return None


def _resolved(path: str | Path) -> PathSegments:
    """Path with every existing symlink along it resolved."""
    return PathSegments.from_path(os.path.realpath(path))
