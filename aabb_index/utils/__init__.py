"""Shared utilities: logging and exceptions."""

from __future__ import annotations

from .aabb_logging import LoggedOperation, configure_logging, get_logger
from .exceptions import (
    BoxTreeError,
    ConfigurationError,
    DimensionMismatchError,
    InvalidCoordinateError,
    TreeNotBuiltError,
)

__all__ = [
    "BoxTreeError",
    "ConfigurationError",
    "DimensionMismatchError",
    "InvalidCoordinateError",
    "LoggedOperation",
    "TreeNotBuiltError",
    "configure_logging",
    "get_logger",
]
