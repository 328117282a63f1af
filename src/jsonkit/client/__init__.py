"""Client-side tree mirror, filtering and live synchronization."""

from jsonkit.client.filter import filter_tree, matching_keys, node_matches
from jsonkit.client.live import LiveTreeClient
from jsonkit.client.mirror import TreeMirror

__all__ = [
    "LiveTreeClient",
    "TreeMirror",
    "filter_tree",
    "matching_keys",
    "node_matches",
]
