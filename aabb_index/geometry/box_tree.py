"""
Spatial index over axis-aligned boxes.

Typical use registers every box, builds once, then queries many times:

    >>> tree = BoxTree(epsilon=1e-10)
    >>> tree.add_box([0.0, 0.0], [1.0, 1.0])
    0
    >>> tree.add_box([2.0, 2.0], [3.0, 3.0])
    1
    >>> tree.build_tree()
    >>> tree.find_at_point([0.5, 0.5])
    {0}

Thread Safety:
    add_box(), add_boxes() and clear() must not run concurrently with any
    other call. build_tree() may be called from several threads at once;
    one of them builds and the others wait for it. Once built, the tree is
    never modified and the find_*() and query*() methods need no locking.
    Adding a box to a built tree discards it, and nothing protects queries
    running at that moment.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Sequence
from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import ArrayLike

from aabb_index.config.core import DEFAULT_EPSILON, DEFAULT_LEAF_CAPACITY
from aabb_index.utils.aabb_logging import LoggedOperation, get_logger
from aabb_index.utils.exceptions import (
    DimensionMismatchError,
    validate_coordinate,
    validate_parameter_value,
    validate_tree_state,
)

from .coordinates import CoordinateInterner
from .predicates import (
    BoxPredicate,
    LineIntersects,
    PointIn,
    RegionContained,
    RegionContains,
    RegionIntersects,
)
from .registry import BoxRecord, BoxRegistry
from .tree import LeafNode, TreeNode, TreeStatistics, build_tree, collect_statistics, format_tree

if TYPE_CHECKING:
    from aabb_index.config.core import BoxTreeConfig

logger = get_logger(__name__)

_INTEGER_TYPES = (int, np.integer)
_REAL_TYPES = (int, float, np.integer, np.floating)


class BoxTree:
    """
    Adaptive box tree answering intersection, containment, point and line queries.

    Args:
        epsilon: Tolerance used to merge coordinates and in every boundary comparison
        dimension: Dimension of the indexed space; None infers it from the first box
        leaf_capacity: Maximum number of boxes in a leaf before a split is attempted
        warn_on_rebuild: Log a warning when add_box() discards a built tree
    """

    def __init__(
        self,
        epsilon: float = DEFAULT_EPSILON,
        dimension: int | None = None,
        leaf_capacity: int = DEFAULT_LEAF_CAPACITY,
        warn_on_rebuild: bool = True,
    ):
        validate_parameter_value(epsilon, "epsilon", _REAL_TYPES, (0.0, float("inf")), "BoxTree")
        validate_parameter_value(leaf_capacity, "leaf_capacity", _INTEGER_TYPES, (1, float("inf")), "BoxTree")
        if dimension is not None:
            validate_parameter_value(dimension, "dimension", _INTEGER_TYPES, (1, float("inf")), "BoxTree")

        self._epsilon = float(epsilon)
        self._leaf_capacity = int(leaf_capacity)
        self._configured_dimension = int(dimension) if dimension is not None else None
        self._dimension = self._configured_dimension
        self.warn_on_rebuild = warn_on_rebuild

        self._nodes = CoordinateInterner(self._epsilon)
        self._registry = BoxRegistry(self._epsilon)
        self._root: TreeNode | None = None
        self._built = False
        self._build_lock = threading.Lock()

    @classmethod
    def from_config(cls, config: BoxTreeConfig) -> BoxTree:
        """Create an empty tree from a validated configuration."""
        return cls(
            epsilon=config.epsilon,
            dimension=config.dimension,
            leaf_capacity=config.leaf_capacity,
            warn_on_rebuild=config.warn_on_rebuild,
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def epsilon(self) -> float:
        return self._epsilon

    @property
    def dimension(self) -> int | None:
        """Dimension of the indexed space, None until known."""
        return self._dimension

    @property
    def leaf_capacity(self) -> int:
        return self._leaf_capacity

    @property
    def is_built(self) -> bool:
        return self._built

    @property
    def boxes(self) -> tuple[BoxRecord, ...]:
        """Registered boxes in registry order."""
        return self._registry.records

    @property
    def num_coordinates(self) -> int:
        """Number of distinct interned corner coordinates."""
        return len(self._nodes)

    def __len__(self) -> int:
        return len(self._registry)

    def __repr__(self) -> str:
        state = "built" if self._built else "not built"
        return (
            f"BoxTree(boxes={len(self)}, dimension={self._dimension}, "
            f"epsilon={self._epsilon:g}, leaf_capacity={self._leaf_capacity}, {state})"
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add_box(self, box_min: ArrayLike, box_max: ArrayLike, box_id: int | None = None) -> int:
        """
        Register a box.

        If a box with the same corners (within epsilon) is already
        registered, its id is returned and ``box_id`` is ignored.

        Adding a box to a built tree discards the tree; the next
        build_tree() call rebuilds it from scratch.

        Args:
            box_min: Lower corner, D numbers
            box_max: Upper corner, D numbers
            box_id: Identifier to store; defaults to the number of registered boxes

        Returns:
            Identifier of the new or pre-existing box

        Raises:
            DimensionMismatchError: If a corner does not have D components
            InvalidCoordinateError: If a corner holds NaN or infinite values
            ConfigurationError: If box_id is not a non-negative integer
        """
        lower = validate_coordinate(box_min, "box_min", self._dimension, "BoxTree")
        upper = validate_coordinate(box_max, "box_max", lower.shape[0], "BoxTree")
        if box_id is not None:
            validate_parameter_value(box_id, "box_id", _INTEGER_TYPES, (0, float("inf")), "BoxTree")
            box_id = int(box_id)

        if self._built:
            if self.warn_on_rebuild:
                logger.warning(
                    "Adding a box to an already built tree discards the tree; "
                    "register every box before build_tree() to avoid rebuilding"
                )
            self._invalidate()

        if self._dimension is None:
            self._dimension = lower.shape[0]

        record, inserted = self._registry.add(self._nodes.intern(lower), self._nodes.intern(upper), box_id)
        if not inserted and box_id is not None and box_id != record.id:
            logger.debug(f"Box {lower.tolist()}..{upper.tolist()} already registered as {record.id}; ignoring id {box_id}")
        return record.id

    def add_boxes(
        self,
        box_mins: ArrayLike,
        box_maxs: ArrayLike,
        box_ids: Sequence[int] | None = None,
    ) -> list[int]:
        """
        Register many boxes, in row order.

        Args:
            box_mins: Lower corners, shape (n, D)
            box_maxs: Upper corners, shape (n, D)
            box_ids: Optional identifiers, one per box

        Returns:
            Identifier of each box, as add_box() would return it
        """
        lowers = np.asarray(box_mins, dtype=float)
        uppers = np.asarray(box_maxs, dtype=float)
        if lowers.ndim != 2:
            raise DimensionMismatchError(
                "box_mins",
                lowers.shape,
                self._dimension or (lowers.shape[-1] if lowers.ndim else 1),
                "BoxTree",
                context="expected an (n, D) array",
            )
        if uppers.shape != lowers.shape:
            raise DimensionMismatchError(
                "box_maxs", uppers.shape, lowers.shape[1], "BoxTree", context=f"expected shape {lowers.shape}"
            )
        if box_ids is not None and len(box_ids) != lowers.shape[0]:
            raise ValueError(f"box_ids has {len(box_ids)} entries for {lowers.shape[0]} boxes")

        ids = box_ids if box_ids is not None else [None] * lowers.shape[0]
        return [self.add_box(lower, upper, box_id) for lower, upper, box_id in zip(lowers, uppers, ids)]

    def clear(self):
        """Remove every box, coordinate and the tree."""
        self._root = None
        self._registry.clear()
        self._nodes.clear()
        self._built = False
        self._dimension = self._configured_dimension

    def _invalidate(self):
        self._root = None
        self._built = False

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def build_tree(self):
        """
        Build the tree over the registered boxes.

        Does nothing if the tree is already built. Safe to call from several
        threads: one builds, the others wait and return.
        """
        if self._built:
            return

        with self._build_lock:
            if self._built:
                return

            num_boxes = len(self._registry)
            with LoggedOperation(logger, f"box tree construction over {num_boxes} boxes", logging.DEBUG):
                self._root = build_tree(self._registry.records, self._leaf_capacity)

            if self._root is not None and logger.isEnabledFor(logging.DEBUG):
                logger.debug(f"Box tree shape: {collect_statistics(self._root, num_boxes)}")
            self._built = True

    def statistics(self) -> TreeStatistics:
        """Node counts, depth and leaf references of the built tree."""
        validate_tree_state(self, "statistics")
        return collect_statistics(self._root, len(self._registry))

    def dump(self) -> str:
        """
        Text dump of the tree, building it first if needed.

        Meant for debugging; the format is not stable.
        """
        self.build_tree()
        return format_tree(self._root, len(self._registry))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(self, predicate: BoxPredicate) -> set[int]:
        """
        Ids of the boxes matching ``predicate``.

        Each id appears once, even when its box is referenced by several
        leaves.

        Raises:
            TreeNotBuiltError: If build_tree() has not been called
        """
        validate_tree_state(self, "query")
        found: set[int] = set()
        for leaf in _accepted_leaves(self._root, predicate):
            mask = predicate.matches(leaf.mins, leaf.maxs)
            found.update(leaf.ids[mask].tolist())
        return found

    def query_boxes(self, predicate: BoxPredicate) -> list[BoxRecord]:
        """Records of the boxes matching ``predicate``, each listed once."""
        validate_tree_state(self, "query_boxes")
        found: dict[int, BoxRecord] = {}
        for leaf in _accepted_leaves(self._root, predicate):
            mask = predicate.matches(leaf.mins, leaf.maxs)
            for i in np.flatnonzero(mask):
                box = leaf.boxes[i]
                found.setdefault(id(box), box)
        return list(found.values())

    def find_intersecting(self, query_min: ArrayLike, query_max: ArrayLike) -> set[int]:
        """Ids of the boxes overlapping [query_min, query_max]."""
        validate_tree_state(self, "find_intersecting")
        lower, upper = self._query_region(query_min, query_max)
        return self.query(RegionIntersects(lower, upper, self._epsilon))

    def find_containing(self, query_min: ArrayLike, query_max: ArrayLike) -> set[int]:
        """Ids of the boxes that contain [query_min, query_max]."""
        validate_tree_state(self, "find_containing")
        lower, upper = self._query_region(query_min, query_max)
        return self.query(RegionContains(lower, upper, self._epsilon))

    def find_contained(self, query_min: ArrayLike, query_max: ArrayLike) -> set[int]:
        """Ids of the boxes lying inside [query_min, query_max]."""
        validate_tree_state(self, "find_contained")
        lower, upper = self._query_region(query_min, query_max)
        return self.query(RegionContained(lower, upper, self._epsilon))

    def find_at_point(self, point: ArrayLike) -> set[int]:
        """Ids of the boxes containing ``point``."""
        validate_tree_state(self, "find_at_point")
        coordinate = validate_coordinate(point, "point", self._dimension, "BoxTree")
        return self.query(PointIn(coordinate, self._epsilon))

    def find_line_intersecting(
        self,
        origin: ArrayLike,
        direction: ArrayLike,
        query_min: ArrayLike | None = None,
        query_max: ArrayLike | None = None,
    ) -> set[int]:
        """
        Ids of the boxes crossed by the line through ``origin`` along ``direction``.

        When ``query_min`` and ``query_max`` are given, only boxes that also
        overlap that region are returned.
        """
        validate_tree_state(self, "find_line_intersecting")
        if (query_min is None) != (query_max is None):
            raise ValueError("query_min and query_max must be given together")

        start = validate_coordinate(origin, "origin", self._dimension, "BoxTree")
        heading = validate_coordinate(direction, "direction", start.shape[0], "BoxTree")
        if query_min is None:
            return self.query(LineIntersects(start, heading, self._epsilon))

        lower, upper = self._query_region(query_min, query_max)
        if lower.shape != start.shape:
            raise DimensionMismatchError("query_min", lower.shape, start.shape[0], "BoxTree")
        return self.query(LineIntersects(start, heading, self._epsilon, lower, upper))

    def _query_region(self, query_min: ArrayLike, query_max: ArrayLike):
        lower = validate_coordinate(query_min, "query_min", self._dimension, "BoxTree")
        upper = validate_coordinate(query_max, "query_max", lower.shape[0], "BoxTree")
        return lower, upper


def _accepted_leaves(root: TreeNode | None, predicate: BoxPredicate) -> Iterator[LeafNode]:
    """Depth-first walk yielding the leaves whose path passed predicate.accept()."""
    if root is None:
        return

    stack: list[TreeNode] = [root]
    while stack:
        node = stack.pop()
        if node.is_leaf:
            yield node
            continue
        if predicate.accept(node.right.region.min, node.right.region.max):
            stack.append(node.right)
        if predicate.accept(node.left.region.min, node.left.region.max):
            stack.append(node.left)
