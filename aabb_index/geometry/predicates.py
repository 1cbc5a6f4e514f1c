"""
Query predicates for the box tree.

A predicate answers two questions:

- ``accept(region_min, region_max)``: may the subtree bounded by this region
  hold a match? Used to prune internal nodes, so it must never reject a
  region containing a matching box.
- ``matches(box_min, box_max)``: does this box match? Used on leaf boxes.

Both take corners of shape (D,). ``matches`` also takes stacked corners of
shape (n, D) and then returns a boolean mask of shape (n,), which is how
the tree tests a whole leaf at once.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np
from numpy.typing import NDArray


def regions_intersect(
    min1: NDArray,
    max1: NDArray,
    min2: NDArray,
    max2: NDArray,
    epsilon: float,
) -> NDArray:
    """[min1, max1] and [min2, max2] overlap on every axis, within epsilon."""
    return np.all((max1 >= min2 - epsilon) & (min1 <= max2 + epsilon), axis=-1)


def region_contains(
    outer_min: NDArray,
    outer_max: NDArray,
    inner_min: NDArray,
    inner_max: NDArray,
    epsilon: float,
) -> NDArray:
    """[outer_min, outer_max] contains [inner_min, inner_max] on every axis, within epsilon."""
    return np.all((outer_min <= inner_min + epsilon) & (outer_max >= inner_max - epsilon), axis=-1)


def line_hits_boxes(origin: NDArray, direction: NDArray, box_min: NDArray, box_max: NDArray) -> NDArray:
    """
    Test whether the line ``origin + a * direction`` meets the given boxes.

    For every axis with a non-zero direction component, the line is followed
    to the two planes bounding the box on that axis; the box is hit when one
    of those points lies within the box on all other axes. No tolerance is
    applied.
    """
    hit = np.zeros(box_min.shape[:-1], dtype=bool)

    for axis in np.flatnonzero(direction):
        for bound in (box_min, box_max):
            a = (bound[..., axis] - origin[axis]) / direction[axis]
            points = origin + np.expand_dims(a, -1) * direction
            inside = (points >= box_min) & (points <= box_max)
            inside[..., axis] = True
            hit |= np.all(inside, axis=-1)

    return hit


class BoxPredicate(ABC):
    """Base class for box tree queries."""

    @abstractmethod
    def accept(self, region_min: NDArray, region_max: NDArray) -> bool:
        """
        Conservative test on a subtree region.

        Args:
            region_min: Lower corner of the region, shape (D,)
            region_max: Upper corner of the region, shape (D,)

        Returns:
            False only if no box inside the region can match
        """

    @abstractmethod
    def matches(self, box_min: NDArray, box_max: NDArray) -> NDArray:
        """
        Exact test on boxes.

        Args:
            box_min: Lower corner(s), shape (D,) or (n, D)
            box_max: Upper corner(s), shape (D,) or (n, D)

        Returns:
            Boolean scalar or mask of shape (n,)
        """


class RegionIntersects(BoxPredicate):
    """Boxes overlapping the query region."""

    def __init__(self, query_min: NDArray, query_max: NDArray, epsilon: float):
        self.query_min = query_min
        self.query_max = query_max
        self.epsilon = epsilon

    def accept(self, region_min, region_max):
        return bool(regions_intersect(self.query_min, self.query_max, region_min, region_max, self.epsilon))

    def matches(self, box_min, box_max):
        return regions_intersect(self.query_min, self.query_max, box_min, box_max, self.epsilon)


class RegionContains(RegionIntersects):
    """Boxes containing the query region."""

    def matches(self, box_min, box_max):
        return region_contains(box_min, box_max, self.query_min, self.query_max, self.epsilon)


class RegionContained(RegionIntersects):
    """Boxes contained in the query region."""

    def matches(self, box_min, box_max):
        return region_contains(self.query_min, self.query_max, box_min, box_max, self.epsilon)


class PointIn(BoxPredicate):
    """Boxes containing a point."""

    def __init__(self, point: NDArray, epsilon: float):
        self.point = point
        self.epsilon = epsilon

    def accept(self, region_min, region_max):
        return bool(self.matches(region_min, region_max))

    def matches(self, box_min, box_max):
        return np.all((self.point >= box_min - self.epsilon) & (self.point <= box_max + self.epsilon), axis=-1)


class LineIntersects(BoxPredicate):
    """
    Boxes crossed by an infinite line, optionally restricted to a region.

    With a region, a box must also overlap it (within epsilon). The line
    test itself uses no tolerance.
    """

    def __init__(
        self,
        origin: NDArray,
        direction: NDArray,
        epsilon: float,
        query_min: NDArray | None = None,
        query_max: NDArray | None = None,
    ):
        if (query_min is None) != (query_max is None):
            raise ValueError("query_min and query_max must be given together")
        self.origin = origin
        self.direction = direction
        self.epsilon = epsilon
        self.query_min = query_min
        self.query_max = query_max

    @property
    def has_region(self) -> bool:
        return self.query_min is not None

    def accept(self, region_min, region_max):
        return bool(self.matches(region_min, region_max))

    def matches(self, box_min, box_max):
        hit = line_hits_boxes(self.origin, self.direction, box_min, box_max)
        if self.has_region:
            hit &= regions_intersect(self.query_min, self.query_max, box_min, box_max, self.epsilon)
        return hit
