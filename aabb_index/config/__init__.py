"""Configuration for aabb_index."""

from __future__ import annotations

from .core import DEFAULT_EPSILON, DEFAULT_LEAF_CAPACITY, BoxTreeConfig

__all__ = ["DEFAULT_EPSILON", "DEFAULT_LEAF_CAPACITY", "BoxTreeConfig"]
