"""
Box tree geometry: coordinate interning, box registry, tree construction and queries.
"""

from __future__ import annotations

from .box_tree import BoxTree
from .coordinates import CoordinateInterner, compare_boxes, compare_coordinates
from .predicates import (
    BoxPredicate,
    LineIntersects,
    PointIn,
    RegionContained,
    RegionContains,
    RegionIntersects,
    line_hits_boxes,
    region_contains,
    regions_intersect,
)
from .registry import BoxRecord, BoxRegistry
from .tree import (
    InternalNode,
    LeafNode,
    Region,
    TreeNode,
    TreeStatistics,
    build_tree,
    collect_statistics,
    find_split,
    format_tree,
    iter_leaves,
)

__all__ = [
    "BoxPredicate",
    "BoxRecord",
    "BoxRegistry",
    "BoxTree",
    "CoordinateInterner",
    "InternalNode",
    "LeafNode",
    "LineIntersects",
    "PointIn",
    "Region",
    "RegionContained",
    "RegionContains",
    "RegionIntersects",
    "TreeNode",
    "TreeStatistics",
    "build_tree",
    "collect_statistics",
    "compare_boxes",
    "compare_coordinates",
    "find_split",
    "format_tree",
    "iter_leaves",
    "line_hits_boxes",
    "region_contains",
    "regions_intersect",
]
