"""Ordered, deduplicating registry of boxes."""

from __future__ import annotations

import bisect
import functools
from dataclasses import dataclass

from numpy.typing import NDArray

from .coordinates import compare_boxes


@dataclass(frozen=True, eq=False)
class BoxRecord:
    """
    A registered box.

    Attributes:
        min: Interned lower corner, shape (D,)
        max: Interned upper corner, shape (D,)
        id: Caller-supplied or sequentially assigned identifier
    """

    min: NDArray
    max: NDArray
    id: int

    def __repr__(self) -> str:
        return f"BoxRecord(id={self.id}, min={self.min.tolist()}, max={self.max.tolist()})"


class BoxRegistry:
    """
    Boxes sorted by the epsilon-tolerant order on (min, max).

    Two boxes whose corners agree within epsilon on every axis occupy the
    same entry; registering the second one returns the id of the first.
    """

    def __init__(self, epsilon: float):
        self.epsilon = epsilon
        self._key = functools.cmp_to_key(functools.partial(compare_boxes, epsilon=epsilon))
        self._keys: list = []
        self._records: list[BoxRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self):
        return iter(self._records)

    @property
    def records(self) -> tuple[BoxRecord, ...]:
        """Registered boxes in registry order."""
        return tuple(self._records)

    def add(self, box_min: NDArray, box_max: NDArray, explicit_id: int | None = None) -> tuple[BoxRecord, bool]:
        """
        Register a box unless an equal one is already present.

        Args:
            box_min: Interned lower corner
            box_max: Interned upper corner
            explicit_id: Identifier to store; ignored when the box is a duplicate

        Returns:
            (record, inserted) where record is the new or pre-existing entry
        """
        key = self._key((tuple(box_min.tolist()), tuple(box_max.tolist())))

        pos = bisect.bisect_left(self._keys, key)
        if pos < len(self._keys) and not key < self._keys[pos]:
            return self._records[pos], False

        box_id = explicit_id if explicit_id is not None else len(self._records)
        record = BoxRecord(min=box_min, max=box_max, id=box_id)
        self._keys.insert(pos, key)
        self._records.insert(pos, record)
        return record, True

    def clear(self):
        self._keys.clear()
        self._records.clear()
