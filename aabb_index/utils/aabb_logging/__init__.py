"""
Logging utilities for aabb_index.

Usage:
    >>> from aabb_index.utils.aabb_logging import get_logger, configure_logging
    >>> configure_logging(level="DEBUG")
    >>> logger = get_logger(__name__)
    >>> logger.debug("Building box tree...")
"""

from __future__ import annotations

from .logger import (
    BoxTreeFormatter,
    BoxTreeLogger,
    LoggedOperation,
    configure_logging,
    get_logger,
    log_performance_metric,
)

__all__ = [
    "BoxTreeFormatter",
    "BoxTreeLogger",
    "LoggedOperation",
    "configure_logging",
    "get_logger",
    "log_performance_metric",
]
