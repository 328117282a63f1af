"""Tree filtering by title and extracted metadata.

Filtering only computes visibility; it never changes the mirror.
"""

from __future__ import annotations

from jsonkit.client.mirror import TreeMirror
from jsonkit.tree.nodes import TreeNode

DEFAULT_MIN_EXT_LENGTH = 3


def node_matches(node: TreeNode, text: str, min_ext_length: int = DEFAULT_MIN_EXT_LENGTH) -> bool:
    """Case-insensitive match on the title, or on extData values.

    extData is only searched once the filter is at least min_ext_length
    characters long, so short filters don't light up half the tree.
    """
    needle = text.casefold()
    if needle in node.title.casefold():
        return True
    if len(text) < min_ext_length or not node.ext_data:
        return False
    return any(
        needle in str(value).casefold()
        for values in node.ext_data.values()
        for value in values
    )


def matching_keys(
    mirror: TreeMirror,
    text: str,
    min_ext_length: int = DEFAULT_MIN_EXT_LENGTH,
) -> set[str]:
    """Keys of nodes that match the filter."""
    return {node.key for node in mirror.walk() if node_matches(node, text, min_ext_length)}


def filter_tree(
    mirror: TreeMirror,
    text: str,
    min_ext_length: int = DEFAULT_MIN_EXT_LENGTH,
) -> set[str]:
    """Keys that stay visible: every match plus its ancestors.

    A blank filter shows everything.
    """
    if not text.strip():
        return {node.key for node in mirror.walk()}

    visible: set[str] = set()
    for key in matching_keys(mirror, text, min_ext_length):
        visible.add(key)
        parent = mirror.parent_of(key)
        while parent is not None and parent is not mirror.root:
            if parent.key in visible:
                break
            visible.add(parent.key)
            parent = mirror.parent_of(parent.key)
    return visible
