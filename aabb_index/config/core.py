"""
Box tree configuration.

A BoxTreeConfig fixes the parameters that stay constant for the lifetime
of an index: the comparison tolerance, the leaf capacity and, optionally,
the dimension of the indexed space.
"""

from __future__ import annotations

import warnings

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Tolerance used by the interpolation and global-function callers of the box tree
DEFAULT_EPSILON = 1e-13

# Number of boxes a leaf stores before the builder considers a split
DEFAULT_LEAF_CAPACITY = 8


class BoxTreeConfig(BaseModel):
    """
    Configuration for a BoxTree.

    Attributes
    ----------
    epsilon : float
        Tolerance added/subtracted in every boundary comparison and used to
        merge nearly equal coordinates (default: 1e-13)
    leaf_capacity : int
        Maximum number of boxes in a leaf before a split is attempted (default: 8)
    dimension : int | None
        Dimension of the indexed space; None infers it from the first box
    warn_on_rebuild : bool
        Log a warning when add_box() discards an already built tree (default: True)
    """

    epsilon: float = Field(DEFAULT_EPSILON, ge=0.0, allow_inf_nan=False, description="Comparison tolerance")
    leaf_capacity: int = Field(DEFAULT_LEAF_CAPACITY, ge=1, description="Boxes per leaf before splitting")
    dimension: int | None = Field(None, ge=1, description="Dimension of the indexed space")
    warn_on_rebuild: bool = Field(True, description="Warn when a late insertion discards the tree")

    @field_validator("epsilon")
    @classmethod
    def validate_epsilon_scale(cls, v: float) -> float:
        """Warn about tolerances large enough to merge distinct geometry."""
        if v > 1e-3:
            warnings.warn(
                f"Large epsilon ({v:.2e}) merges coordinates closer than {v:.2e} and widens every query",
                UserWarning,
            )
        return v

    @field_validator("leaf_capacity")
    @classmethod
    def validate_leaf_capacity(cls, v: int) -> int:
        """Warn about leaf capacities that defeat the purpose of the tree."""
        if v > 1024:
            warnings.warn(
                f"Very large leaf capacity ({v}) makes queries close to a linear scan",
                UserWarning,
            )
        return v

    model_config = ConfigDict(validate_assignment=True)
