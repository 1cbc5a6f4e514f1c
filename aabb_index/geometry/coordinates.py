"""
Coordinate interning with an epsilon-tolerant lexicographic order.

Boxes built from a mesh share most of their corner coordinates. Interning
maps every coordinate that is equal to an earlier one within epsilon (on
every axis) to the same read-only array, so repeated corners cost one
allocation and identical corners can be recognised with ``is``.

The order used to keep interned coordinates sorted compares axis by axis
and treats two components as equal when they differ by at most epsilon.
That relation is not transitive (a ~ b and b ~ c does not imply a ~ c),
so a chain of nearly equal values may intern to more than one handle
depending on insertion order. The box registry uses the same order.
"""

from __future__ import annotations

import bisect
import functools
from collections.abc import Sequence

import numpy as np
from numpy.typing import NDArray


def compare_coordinates(a: Sequence[float], b: Sequence[float], epsilon: float) -> int:
    """
    Three-way lexicographic comparison with tolerance.

    Returns -1, 0 or 1. The first axis on which the components differ by
    more than ``epsilon`` decides the order; coordinates equal within
    ``epsilon`` on every axis compare as 0.
    """
    for x, y in zip(a, b):
        if abs(x - y) > epsilon:
            return -1 if x < y else 1
    return 0


def compare_boxes(a: tuple[tuple[float, ...], tuple[float, ...]], b, epsilon: float) -> int:
    """Order two (min, max) pairs: by min first, then by max."""
    return compare_coordinates(a[0], b[0], epsilon) or compare_coordinates(a[1], b[1], epsilon)


class CoordinateInterner:
    """
    Deduplicating store of D-dimensional coordinates.

    Attributes:
        epsilon: Tolerance below which two components are considered equal
    """

    def __init__(self, epsilon: float):
        self.epsilon = epsilon
        self._key = functools.cmp_to_key(functools.partial(compare_coordinates, epsilon=epsilon))
        self._keys: list = []
        self._handles: list[NDArray] = []

    def __len__(self) -> int:
        return len(self._handles)

    def __iter__(self):
        return iter(self._handles)

    def intern(self, coordinate: Sequence[float] | NDArray) -> NDArray:
        """
        Return the shared handle for ``coordinate``.

        Args:
            coordinate: Flat sequence of D numbers

        Returns:
            Read-only float64 array of shape (D,). The same object is
            returned for every coordinate found equal within epsilon.
        """
        values = tuple(float(c) for c in coordinate)
        key = self._key(values)

        pos = bisect.bisect_left(self._keys, key)
        if pos < len(self._keys) and not key < self._keys[pos]:
            return self._handles[pos]

        handle = np.array(values, dtype=float)
        handle.flags.writeable = False
        self._keys.insert(pos, key)
        self._handles.insert(pos, handle)
        return handle

    def clear(self):
        """Forget every interned coordinate."""
        self._keys.clear()
        self._handles.clear()
