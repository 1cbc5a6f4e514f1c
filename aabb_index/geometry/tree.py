"""
Adaptive binary space partition over axis-aligned boxes.

This is more or less a quadtree in which the split positions are not fixed
in advance: each node is cut perpendicular to one axis (axes taken in
round-robin order), at the largest upper bound found among the boxes that
lie entirely below the middle of the node. Boxes crossing the cut are
referenced by both children, so child regions may overlap the boxes they
hold but never each other across the cut.

Nodes are immutable. A leaf keeps its boxes both as records and as
stacked (n, D) arrays so that a predicate can test the whole leaf in one
vectorised call.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

from aabb_index.config.core import DEFAULT_LEAF_CAPACITY

from .registry import BoxRecord


@dataclass(frozen=True, eq=False)
class Region:
    """
    Bounding extent of a subtree.

    Attributes:
        min: Lower corner, shape (D,)
        max: Upper corner, shape (D,)
    """

    min: NDArray
    max: NDArray

    @property
    def dimension(self) -> int:
        return self.min.shape[0]

    @property
    def center(self) -> NDArray:
        """Midpoint of the region"""
        return self.min + (self.max - self.min) / 2

    def __repr__(self) -> str:
        return f"Region({self.min.tolist()}..{self.max.tolist()})"


@dataclass(frozen=True, eq=False)
class LeafNode:
    """
    Leaf of the box tree.

    Attributes:
        region: Bounding extent of the leaf
        boxes: Boxes referenced by this leaf
        mins: Stacked lower corners, shape (n, D)
        maxs: Stacked upper corners, shape (n, D)
        ids: Box identifiers, shape (n,)
    """

    region: Region
    boxes: tuple[BoxRecord, ...]
    mins: NDArray
    maxs: NDArray
    ids: NDArray

    is_leaf = True


@dataclass(frozen=True, eq=False)
class InternalNode:
    """
    Internal node of the box tree.

    Attributes:
        region: Bounding extent of the subtree
        left: Subtree holding the boxes with min[split_axis] < split_value
        right: Subtree holding the boxes with max[split_axis] > split_value
        split_axis: Axis perpendicular to the cut
        split_value: Position of the cut along split_axis
    """

    region: Region
    left: TreeNode
    right: TreeNode
    split_axis: int
    split_value: float

    is_leaf = False


TreeNode = InternalNode | LeafNode


@dataclass(frozen=True)
class TreeStatistics:
    """Shape of a built tree."""

    num_boxes: int
    num_leaves: int
    num_internal_nodes: int
    depth: int
    box_references: int
    largest_leaf: int

    @property
    def duplication_ratio(self) -> float:
        """Box references stored in leaves per registered box (1.0 = no straddling)."""
        return self.box_references / self.num_boxes if self.num_boxes else 0.0


def build_tree(boxes: Sequence[BoxRecord], leaf_capacity: int = DEFAULT_LEAF_CAPACITY) -> TreeNode | None:
    """
    Build a tree over ``boxes``.

    Args:
        boxes: Registered boxes, all of the same dimension
        leaf_capacity: Maximum number of boxes stored in a leaf that could be split

    Returns:
        Root node, or None when ``boxes`` is empty
    """
    if not boxes:
        return None

    mins = np.vstack([box.min for box in boxes])
    maxs = np.vstack([box.max for box in boxes])
    region = Region(min=mins.min(axis=0), max=maxs.max(axis=0))
    indices = np.arange(len(boxes))

    return _partition(boxes, mins, maxs, indices, region, 0, leaf_capacity)


def find_split(
    mins: NDArray,
    maxs: NDArray,
    indices: NDArray,
    region: Region,
    last_axis: int,
) -> tuple[int, float] | None:
    """
    Look for a usable cut, trying every axis once starting after ``last_axis``.

    On each axis the candidate value is the middle of ``region``. The axis is
    usable when some, but not all, boxes end strictly below it; the cut is
    then moved down to the largest upper bound among those boxes.

    Returns:
        (axis, value), or None when every axis leaves all boxes on one side
    """
    dimension = mins.shape[1]
    axis = (last_axis + 1) % dimension

    for _ in range(dimension):
        midpoint = region.min[axis] + (region.max[axis] - region.min[axis]) / 2
        upper = maxs[indices, axis]
        below = upper < midpoint
        count = np.count_nonzero(below)
        if 0 < count < len(indices):
            return axis, float(upper[below].max())
        axis = (axis + 1) % dimension

    return None


def _partition(
    boxes: Sequence[BoxRecord],
    mins: NDArray,
    maxs: NDArray,
    indices: NDArray,
    region: Region,
    last_axis: int,
    leaf_capacity: int,
) -> TreeNode:
    split = None
    if len(indices) > leaf_capacity:
        split = find_split(mins, maxs, indices, region, last_axis)

    if split is None:
        return _make_leaf(boxes, mins, maxs, indices, region)

    axis, value = split
    lower, upper = mins[indices, axis], maxs[indices, axis]

    # Flat boxes lying exactly on the cut go left so that no box is dropped
    left = indices[(lower < value) | (upper == value)]
    right = indices[upper > value]

    left_region = _child_region(mins, maxs, left, region)
    left_region.max[axis] = min(left_region.max[axis], value)

    right_region = _child_region(mins, maxs, right, region)
    right_region.min[axis] = max(right_region.min[axis], value)

    return InternalNode(
        region=region,
        left=_partition(boxes, mins, maxs, left, left_region, axis, leaf_capacity),
        right=_partition(boxes, mins, maxs, right, right_region, axis, leaf_capacity),
        split_axis=axis,
        split_value=value,
    )


def _child_region(mins: NDArray, maxs: NDArray, indices: NDArray, parent: Region) -> Region:
    """Tight bounds of the selected boxes, clipped to the parent region."""
    lower = np.maximum(mins[indices].min(axis=0), parent.min)
    upper = np.minimum(maxs[indices].max(axis=0), parent.max)
    return Region(min=lower, max=upper)


def _make_leaf(
    boxes: Sequence[BoxRecord],
    mins: NDArray,
    maxs: NDArray,
    indices: NDArray,
    region: Region,
) -> LeafNode:
    leaf_boxes = tuple(boxes[i] for i in indices)
    return LeafNode(
        region=region,
        boxes=leaf_boxes,
        mins=mins[indices],
        maxs=maxs[indices],
        ids=np.array([box.id for box in leaf_boxes], dtype=np.int64),
    )


def iter_leaves(node: TreeNode | None) -> Iterator[LeafNode]:
    """Yield every leaf below ``node``, left to right."""
    if node is None:
        return
    if node.is_leaf:
        yield node
    else:
        yield from iter_leaves(node.left)
        yield from iter_leaves(node.right)


def collect_statistics(root: TreeNode | None, num_boxes: int) -> TreeStatistics:
    """Count nodes, depth and leaf references of a tree."""
    num_leaves = 0
    num_internal = 0
    depth = 0
    references = 0
    largest = 0

    stack: list[tuple[TreeNode, int]] = [(root, 1)] if root is not None else []
    while stack:
        node, level = stack.pop()
        depth = max(depth, level)
        if node.is_leaf:
            num_leaves += 1
            references += len(node.boxes)
            largest = max(largest, len(node.boxes))
        else:
            num_internal += 1
            stack.append((node.right, level + 1))
            stack.append((node.left, level + 1))

    return TreeStatistics(
        num_boxes=num_boxes,
        num_leaves=num_leaves,
        num_internal_nodes=num_internal,
        depth=depth,
        box_references=references,
        largest_leaf=largest,
    )


def format_tree(root: TreeNode | None, num_boxes: int) -> str:
    """Indented text dump of a tree, one line per node."""
    lines = ["tree dump follows"]
    references = 0

    stack: list[tuple[TreeNode, int]] = [(root, 0)] if root is not None else []
    while stack:
        node, level = stack.pop()
        prefix = "  " * level + f"span={node.region.min.tolist()}..{node.region.max.tolist()} "
        if node.is_leaf:
            ids = " ".join(str(box.id) for box in node.boxes)
            lines.append(prefix + f"Leaf [{len(node.boxes)} elts] = {ids}")
            references += len(node.boxes)
        else:
            lines.append(prefix + f"Node axis={node.split_axis} split={node.split_value!r}")
            stack.append((node.right, level + 1))
            stack.append((node.left, level + 1))

    lines.append(f" --- end of tree dump, nb of boxes: {num_boxes}, box references in tree: {references}")
    return "\n".join(lines)
