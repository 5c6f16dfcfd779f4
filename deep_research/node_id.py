"""Hierarchical node addressing for the research tree.

A node id is a dash-separated path: the root is ``"0"`` and child ``i`` of
parent ``p`` is ``"p-i"``. The id alone encodes the node's position, so a
node's parent and depth can be recovered without any tree bookkeeping.
"""

ROOT_NODE_ID = "0"
SEPARATOR = "-"


def child_node_id(parent_node_id: str, index: int) -> str:
    """Return the id of the ``index``-th (0-based) child of a node."""
    if index < 0:
        raise ValueError(f"child index must be >= 0, got {index}")
    return f"{parent_node_id}{SEPARATOR}{index}"


def parent_node_id(node_id: str) -> str | None:
    """Return the parent id, or None for a node without a parent."""
    head, sep, _ = node_id.rpartition(SEPARATOR)
    if not sep:
        return None
    return head


def node_depth(node_id: str) -> int:
    """Return the node's depth in the tree (0 for the root)."""
    return node_id.count(SEPARATOR)


def is_root(node_id: str) -> bool:
    return node_id == ROOT_NODE_ID
