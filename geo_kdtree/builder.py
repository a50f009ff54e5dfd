"""Median-split kd-tree construction and teardown."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
import logging
from typing import Any

import numpy as np

from .models import Point, SearchNode

logger = logging.getLogger(__name__)


def build_tree(points: Iterable[Point] | np.ndarray) -> SearchNode:
    """Build a kd-tree from a non-empty point collection and return its root.

    ``points`` may be an iterable of ``Point`` objects or an array-like of
    shape ``(n, 2)``. The input is copied and never reordered in place.
    Duplicate points are kept as distinct nodes.
    """
    coords = as_coordinate_array(points)
    root = _build_subtree(coords, depth=0)

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug("Built kd-tree with %d nodes (height %d)", len(coords), tree_height(root))
    return root


def release_tree(root: SearchNode) -> None:
    """Detach every child link below ``root``.

    Afterwards a traversal from ``root`` reaches only ``root`` itself. This
    must not run while a search on the same tree is still in progress.
    """
    stack = [root]
    while stack:
        node = stack.pop()
        stack.extend(node.children())
        node.left = None
        node.right = None


def iter_nodes(root: SearchNode) -> Iterator[SearchNode]:
    """Yield every node of the tree in pre-order (node, left, right)."""
    stack = [root]
    while stack:
        node = stack.pop()
        yield node
        # right first so that left is visited first
        if node.right is not None:
            stack.append(node.right)
        if node.left is not None:
            stack.append(node.left)


def tree_size(root: SearchNode) -> int:
    """Return the number of points stored in the tree."""
    return sum(1 for _ in iter_nodes(root))


def tree_height(root: SearchNode) -> int:
    """Return the number of levels of the tree (1 for a single node)."""
    return max(node.depth for node in iter_nodes(root)) - root.depth + 1


def _build_subtree(coords: np.ndarray, depth: int) -> SearchNode:
    # A stable sort keeps duplicates in input order; only which duplicate
    # lands on the split depends on it, never correctness.
    order = np.argsort(coords[:, depth % 2], kind="stable")
    ordered = coords[order]
    mid = len(ordered) // 2

    node = SearchNode(x=float(ordered[mid, 0]), y=float(ordered[mid, 1]), depth=depth)
    if mid > 0:
        node.left = _build_subtree(ordered[:mid], depth + 1)
    if mid + 1 < len(ordered):
        node.right = _build_subtree(ordered[mid + 1 :], depth + 1)
    return node


def as_coordinate_array(points: Any) -> np.ndarray:
    if isinstance(points, np.ndarray):
        coords = np.asarray(points, dtype=np.float64)
    else:
        rows = [(p.x, p.y) if isinstance(p, Point) else tuple(p) for p in points]
        coords = np.asarray(rows, dtype=np.float64)

    if coords.size == 0:
        raise ValueError("points must not be empty")

    if coords.ndim != 2 or coords.shape[1] != 2:
        raise ValueError(f"points must have shape (n, 2), got {coords.shape}")

    if not np.isfinite(coords).all():
        raise ValueError("points contain non-finite coordinates")

    return coords
