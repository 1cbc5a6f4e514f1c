"""
Unit tests for the BoxTree facade: registration, build lifecycle and queries.
"""

import logging

import pytest

import numpy as np

from aabb_index import BoxTree, BoxTreeConfig
from aabb_index.geometry.predicates import PointIn
from aabb_index.utils.exceptions import (
    ConfigurationError,
    DimensionMismatchError,
    InvalidCoordinateError,
    TreeNotBuiltError,
)


@pytest.fixture
def tree_log(caplog):
    """Capture records of the box tree logger, which does not propagate."""
    tree_logger = logging.getLogger("aabb_index.geometry.box_tree")
    tree_logger.addHandler(caplog.handler)
    yield caplog
    tree_logger.removeHandler(caplog.handler)


# =============================================================================
# Three-box scenario
# =============================================================================


class TestThreeBoxScenario:
    """B1 = [(0,0),(1,1)], B2 = [(2,2),(3,3)], B3 = [(0.5,0.5),(2.5,2.5)]."""

    def test_ids_are_sequential(self, three_box_tree):
        _, ids = three_box_tree

        assert ids == {"B1": 0, "B2": 1, "B3": 2}

    def test_find_intersecting(self, three_box_tree):
        tree, ids = three_box_tree

        assert tree.find_intersecting([0.9, 0.9], [2.1, 2.1]) == {ids["B1"], ids["B2"], ids["B3"]}

    def test_find_at_point(self, three_box_tree):
        tree, ids = three_box_tree

        assert tree.find_at_point([0.75, 0.75]) == {ids["B1"], ids["B3"]}

    def test_find_containing(self, three_box_tree):
        tree, ids = three_box_tree

        assert tree.find_containing([0.6, 0.6], [0.7, 0.7]) == {ids["B1"], ids["B3"]}

    def test_find_contained(self, three_box_tree):
        tree, ids = three_box_tree

        assert tree.find_contained([-1, -1], [1.5, 1.5]) == {ids["B1"]}
        assert tree.find_contained([0, 0], [3, 3]) == set(ids.values())

    def test_find_line_intersecting(self, three_box_tree):
        tree, ids = three_box_tree

        assert tree.find_line_intersecting([-1, 0.5], [1, 0]) == {ids["B1"], ids["B3"]}

    def test_find_line_intersecting_in_region(self, three_box_tree):
        tree, ids = three_box_tree

        assert tree.find_line_intersecting([-1, 0.5], [1, 0], [1.5, 0], [3, 3]) == {ids["B3"]}

    def test_no_match(self, three_box_tree):
        tree, _ = three_box_tree

        assert tree.find_at_point([10.0, 10.0]) == set()

    def test_query_boxes_returns_records(self, three_box_tree):
        tree, ids = three_box_tree

        records = tree.query_boxes(PointIn(np.array([0.75, 0.75]), tree.epsilon))

        assert sorted(r.id for r in records) == sorted([ids["B1"], ids["B3"]])
        assert all(r in tree.boxes for r in records)

    def test_coordinates_are_interned(self, three_box_tree):
        tree, _ = three_box_tree

        assert tree.num_coordinates == 6


# =============================================================================
# Registration
# =============================================================================


class TestRegistration:
    """Test add_box(), add_boxes() and deduplication."""

    def test_duplicate_box_returns_same_id(self):
        tree = BoxTree(epsilon=1e-10)

        first = tree.add_box([0, 0], [1, 1])
        second = tree.add_box([0, 0], [1, 1])

        assert first == second
        assert len(tree) == 1

    def test_duplicate_within_epsilon(self):
        tree = BoxTree(epsilon=1e-10)

        first = tree.add_box([0, 0], [1, 1])
        second = tree.add_box([1e-12, 0], [1, 1 + 1e-12])

        assert first == second
        assert len(tree) == 1

    def test_explicit_id_stored(self):
        tree = BoxTree()

        assert tree.add_box([0, 0], [1, 1], 17) == 17
        assert tree.boxes[0].id == 17

    def test_explicit_id_ignored_for_duplicate(self):
        tree = BoxTree()

        tree.add_box([0, 0], [1, 1], 5)

        assert tree.add_box([0, 0], [1, 1], 9) == 5

    def test_shared_corners(self):
        tree = BoxTree()

        tree.add_box([0, 0], [1, 1])
        tree.add_box([1, 1], [2, 2])

        assert tree.num_coordinates == 3

    def test_dimension_inferred_from_first_box(self):
        tree = BoxTree()
        assert tree.dimension is None

        tree.add_box([0, 0, 0], [1, 1, 1])

        assert tree.dimension == 3

    def test_chained_epsilon_boxes(self):
        tree = BoxTree(epsilon=0.1)

        a = tree.add_box([0.0], [1.0])
        c = tree.add_box([0.18], [1.0])
        b = tree.add_box([0.09], [1.0])

        assert a != c
        assert b in (a, c)
        assert len(tree) == 2

    def test_add_boxes(self):
        tree = BoxTree()
        mins = np.array([[0, 0], [2, 2], [0.5, 0.5]])

        ids = tree.add_boxes(mins, mins + 1)

        assert ids == [0, 1, 2]
        assert len(tree) == 3

    def test_add_boxes_with_ids(self):
        tree = BoxTree()

        ids = tree.add_boxes([[0, 0], [5, 5]], [[1, 1], [6, 6]], box_ids=[10, 20])

        assert ids == [10, 20]

    def test_add_boxes_id_count_mismatch(self):
        tree = BoxTree()

        with pytest.raises(ValueError, match="box_ids"):
            tree.add_boxes([[0, 0], [5, 5]], [[1, 1], [6, 6]], box_ids=[1])

    def test_add_boxes_requires_2d_arrays(self):
        tree = BoxTree()

        with pytest.raises(DimensionMismatchError):
            tree.add_boxes([0, 0], [1, 1])
        with pytest.raises(DimensionMismatchError):
            tree.add_boxes([[0, 0]], [[1, 1], [2, 2]])


# =============================================================================
# Invalid input
# =============================================================================


class TestInvalidInput:
    """Test errors raised at the public boundary."""

    def test_wrong_arity_rejected(self):
        tree = BoxTree()
        tree.add_box([0, 0], [1, 1])

        with pytest.raises(DimensionMismatchError) as exc_info:
            tree.add_box([0, 0, 0], [1, 1, 1])

        assert exc_info.value.expected_dimension == 2
        assert exc_info.value.provided_shape == (3,)

    def test_corners_must_agree(self):
        tree = BoxTree()

        with pytest.raises(DimensionMismatchError):
            tree.add_box([0, 0], [1, 1, 1])

    def test_configured_dimension_enforced(self):
        tree = BoxTree(dimension=3)

        with pytest.raises(DimensionMismatchError):
            tree.add_box([0, 0], [1, 1])

    def test_query_arity_checked(self, three_box_tree):
        tree, _ = three_box_tree

        with pytest.raises(DimensionMismatchError):
            tree.find_at_point([0.5])
        with pytest.raises(DimensionMismatchError):
            tree.find_intersecting([0, 0], [1, 1, 1])
        with pytest.raises(DimensionMismatchError):
            tree.find_line_intersecting([0, 0], [1, 0], [0, 0, 0], [1, 1, 1])

    def test_line_region_bounds_come_in_pairs(self, three_box_tree):
        tree, _ = three_box_tree

        with pytest.raises(ValueError, match="together"):
            tree.find_line_intersecting([0, 0], [1, 0], query_min=[0, 0])

    def test_non_finite_coordinates_rejected(self):
        tree = BoxTree()

        with pytest.raises(InvalidCoordinateError) as exc_info:
            tree.add_box([np.nan, 0], [1, 1])

        assert "INVALID_COORDINATE" in str(exc_info.value)
        with pytest.raises(InvalidCoordinateError):
            tree.add_box([0, 0], [np.inf, 1])

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"epsilon": -1.0},
            {"epsilon": float("nan")},
            {"leaf_capacity": 0},
            {"leaf_capacity": 2.5},
            {"dimension": 0},
        ],
    )
    def test_invalid_parameters(self, kwargs):
        with pytest.raises(ConfigurationError):
            BoxTree(**kwargs)

    @pytest.mark.parametrize("box_id", [-1, 1.5, "a", True])
    def test_invalid_box_id(self, box_id):
        tree = BoxTree()

        with pytest.raises(ConfigurationError):
            tree.add_box([0, 0], [1, 1], box_id)


# =============================================================================
# Build lifecycle
# =============================================================================


class TestBuildLifecycle:
    """Test the explicit build step and rebuilds after mutation."""

    def test_query_before_build_raises(self):
        tree = BoxTree()
        tree.add_box([0, 0], [1, 1])

        with pytest.raises(TreeNotBuiltError) as exc_info:
            tree.find_at_point([0.5, 0.5])

        assert exc_info.value.operation_attempted == "find_at_point"
        assert "TREE_NOT_BUILT" in str(exc_info.value)

    @pytest.mark.parametrize(
        "call",
        [
            lambda t: t.find_intersecting([0, 0], [1, 1]),
            lambda t: t.find_containing([0, 0], [1, 1]),
            lambda t: t.find_contained([0, 0], [1, 1]),
            lambda t: t.find_line_intersecting([0, 0], [1, 1]),
            lambda t: t.statistics(),
        ],
    )
    def test_every_query_requires_build(self, call):
        tree = BoxTree()
        tree.add_box([0, 0], [1, 1])

        with pytest.raises(TreeNotBuiltError):
            call(tree)

    def test_empty_tree(self):
        tree = BoxTree()

        tree.build_tree()

        assert tree.is_built
        assert tree.find_at_point([0.0, 0.0]) == set()
        assert tree.find_intersecting([0.0], [1.0]) == set()
        assert tree.statistics().num_boxes == 0

    def test_build_is_idempotent(self, three_box_tree):
        tree, _ = three_box_tree
        before = tree.dump()

        tree.build_tree()

        assert tree.is_built
        assert tree.dump() == before

    def test_add_after_build_discards_tree(self, three_box_tree, tree_log):
        tree, _ = three_box_tree

        new_id = tree.add_box([5, 5], [6, 6])

        assert not tree.is_built
        assert any(r.levelno == logging.WARNING for r in tree_log.records)
        with pytest.raises(TreeNotBuiltError):
            tree.find_at_point([5.5, 5.5])

        tree.build_tree()
        assert tree.find_at_point([5.5, 5.5]) == {new_id}

    def test_rebuild_warning_can_be_disabled(self, tree_log):
        tree = BoxTree(warn_on_rebuild=False)
        tree.add_box([0, 0], [1, 1])
        tree.build_tree()

        tree.add_box([2, 2], [3, 3])

        assert not tree.is_built
        assert not [r for r in tree_log.records if r.levelno >= logging.WARNING]

    def test_clear(self, three_box_tree):
        tree, _ = three_box_tree

        tree.clear()

        assert len(tree) == 0
        assert not tree.is_built
        assert tree.dimension is None
        assert tree.num_coordinates == 0
        assert tree.add_box([0, 0, 0], [1, 1, 1]) == 0

    def test_clear_keeps_configured_dimension(self):
        tree = BoxTree(dimension=2)
        tree.add_box([0, 0], [1, 1])

        tree.clear()

        assert tree.dimension == 2

    def test_statistics_and_dump(self, grid_tree):
        stats = grid_tree.statistics()

        assert stats.num_boxes == 100
        assert stats.num_leaves >= 100 // grid_tree.leaf_capacity
        assert stats.box_references >= 100

        text = grid_tree.dump()
        assert text.startswith("tree dump follows")
        assert "nb of boxes: 100" in text

    def test_dump_builds_tree(self):
        tree = BoxTree()
        tree.add_box([0, 0], [1, 1])

        tree.dump()

        assert tree.is_built

    def test_from_config(self):
        config = BoxTreeConfig(epsilon=1e-9, leaf_capacity=2, dimension=2, warn_on_rebuild=False)

        tree = BoxTree.from_config(config)

        assert tree.epsilon == 1e-9
        assert tree.leaf_capacity == 2
        assert tree.dimension == 2
        assert tree.warn_on_rebuild is False

    def test_repr(self, three_box_tree):
        tree, _ = three_box_tree

        assert "boxes=3" in repr(tree)
        assert "not built" not in repr(tree)


# =============================================================================
# Grid queries
# =============================================================================


class TestGridQueries:
    """Queries on a 10x10 grid of unit squares, which share edges and corners."""

    def test_intersecting_block(self, grid_tree):
        expected = {i * 10 + j for i in range(2, 5) for j in range(2, 5)}

        assert grid_tree.find_intersecting([2.5, 2.5], [4.5, 4.5]) == expected

    def test_shared_corner_point(self, grid_tree):
        assert grid_tree.find_at_point([3.0, 3.0]) == {22, 23, 32, 33}

    def test_contained(self, grid_tree):
        assert grid_tree.find_contained([0, 0], [2, 2]) == {0, 1, 10, 11}

    def test_containing(self, grid_tree):
        assert grid_tree.find_containing([3.2, 3.2], [3.8, 3.8]) == {33}

    def test_line_through_row(self, grid_tree):
        assert grid_tree.find_line_intersecting([0, 5.5], [1, 0]) == {i * 10 + 5 for i in range(10)}

    def test_line_along_edges(self, grid_tree):
        expected = {i * 10 + j for i in range(10) for j in (4, 5)}

        assert grid_tree.find_line_intersecting([0, 5.0], [1, 0]) == expected

    def test_line_in_region(self, grid_tree):
        assert grid_tree.find_line_intersecting([0, 5.5], [1, 0], [2.5, 0], [4.5, 10]) == {25, 35, 45}

    def test_records_listed_once(self, grid_tree):
        records = grid_tree.query_boxes(PointIn(np.array([5.0, 5.0]), grid_tree.epsilon))

        assert len(records) == len({r.id for r in records}) == 4
