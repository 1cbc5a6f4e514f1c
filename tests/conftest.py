"""
Pytest configuration and shared fixtures for the aabb_index test suite.

This module provides common fixtures, test configuration, and utilities
used across the entire test suite.
"""

import pytest

import numpy as np

from aabb_index import BoxTree

# =============================================================================
# Test Configuration
# =============================================================================


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (slower, cross-component)")
    config.addinivalue_line("markers", "property: Randomized equivalence tests against a linear scan")
    config.addinivalue_line("markers", "slow: Slow tests (may take >10 seconds)")


def pytest_collection_modifyitems(config, items):
    """Modify test collection to add markers based on test paths."""
    for item in items:
        test_path = str(item.fspath)

        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/property_based/" in test_path:
            item.add_marker(pytest.mark.property)

        if "large" in item.name or "slow" in item.name:
            item.add_marker(pytest.mark.slow)


# =============================================================================
# Box Fixtures
# =============================================================================


@pytest.fixture
def rng():
    """Seeded generator so that failures can be reproduced."""
    return np.random.default_rng(20240607)


@pytest.fixture
def make_boxes(rng):
    """
    Factory for random boxes inside the unit cube.

    Returns (mins, maxs), each of shape (num_boxes, dimension).
    """

    def _make(num_boxes: int, dimension: int, max_extent: float = 0.2):
        mins = rng.uniform(0.0, 1.0, size=(num_boxes, dimension))
        extents = rng.uniform(0.0, max_extent, size=(num_boxes, dimension))
        return mins, mins + extents

    return _make


@pytest.fixture
def three_box_tree():
    """
    The three-box scenario in 2D:

        B1 = [(0, 0), (1, 1)]
        B2 = [(2, 2), (3, 3)]
        B3 = [(0.5, 0.5), (2.5, 2.5)]
    """
    tree = BoxTree(epsilon=1e-10)
    ids = {
        "B1": tree.add_box([0.0, 0.0], [1.0, 1.0]),
        "B2": tree.add_box([2.0, 2.0], [3.0, 3.0]),
        "B3": tree.add_box([0.5, 0.5], [2.5, 2.5]),
    }
    tree.build_tree()
    return tree, ids


@pytest.fixture
def grid_tree():
    """Unit squares on a 10x10 grid with ids i * 10 + j, leaf capacity 4."""
    tree = BoxTree(epsilon=1e-12, leaf_capacity=4)
    for i in range(10):
        for j in range(10):
            tree.add_box([i, j], [i + 1, j + 1], i * 10 + j)
    tree.build_tree()
    return tree
