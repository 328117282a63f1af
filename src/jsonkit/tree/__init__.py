"""Directory tree model and scanning."""

from jsonkit.tree.nodes import NodeKind, ScanStats, TreeNode
from jsonkit.tree.scanner import DirectoryScanner

__all__ = [
    "DirectoryScanner",
    "NodeKind",
    "ScanStats",
    "TreeNode",
]
