"""
Exception classes for aabb_index with helpful error messages and user guidance.

Every error raised at the public boundary of the box tree carries the
component that raised it, a suggested action and a block of diagnostic
data, so that a failing lookup deep inside an interpolation routine still
tells the caller what went wrong.
"""

from __future__ import annotations

import math
import numbers
from typing import Any

import numpy as np
from numpy.typing import NDArray


class BoxTreeError(Exception):
    """
    Base exception for box tree errors with context and suggestions.

    This exception class provides structured error information including:
    - Clear error description
    - Component context information
    - Suggested actions for resolution
    - Optional diagnostic data
    """

    def __init__(
        self,
        message: str,
        component: str | None = None,
        suggested_action: str | None = None,
        error_code: str | None = None,
        diagnostic_data: dict[str, Any] | None = None,
    ):
        self.component = component or "BoxTree"
        self.suggested_action = suggested_action
        self.error_code = error_code
        self.diagnostic_data = diagnostic_data or {}

        full_message = f"[{self.component}] {message}"

        if self.suggested_action:
            full_message += f"\nSuggestion: {self.suggested_action}"

        if self.error_code:
            full_message += f"\nError Code: {self.error_code}"

        if self.diagnostic_data:
            full_message += "\nDiagnostic Information:"
            for key, value in self.diagnostic_data.items():
                full_message += f"\n   - {key}: {value}"

        super().__init__(full_message)


class DimensionMismatchError(BoxTreeError):
    """Exception raised when a coordinate arity differs from the index dimension."""

    def __init__(
        self,
        coordinate_name: str,
        provided_shape: tuple,
        expected_dimension: int,
        component: str | None = None,
        context: str | None = None,
    ):
        self.coordinate_name = coordinate_name
        self.provided_shape = tuple(provided_shape)
        self.expected_dimension = expected_dimension

        diagnostic_data = {
            "coordinate": coordinate_name,
            "provided_shape": str(self.provided_shape),
            "expected_shape": str((expected_dimension,)),
            "dimension_mismatch": _describe_dimension_mismatch(self.provided_shape, expected_dimension),
        }

        if context:
            diagnostic_data["context"] = context

        super().__init__(
            message=f"Dimension mismatch for {coordinate_name}",
            component=component,
            suggested_action=_generate_dimension_suggestions(coordinate_name, self.provided_shape, expected_dimension),
            error_code="DIMENSION_MISMATCH",
            diagnostic_data=diagnostic_data,
        )


class TreeNotBuiltError(BoxTreeError):
    """Exception raised when querying a box tree before build_tree() ran."""

    def __init__(
        self,
        operation_attempted: str,
        component: str | None = None,
        num_boxes: int | None = None,
    ):
        self.operation_attempted = operation_attempted

        diagnostic_data: dict[str, Any] = {
            "attempted_operation": operation_attempted,
            "tree_state": "not_built",
        }
        if num_boxes is not None:
            diagnostic_data["registered_boxes"] = num_boxes

        super().__init__(
            message=f"Cannot perform '{operation_attempted}' - box tree has not been built",
            component=component,
            suggested_action=f"Call build_tree() after the last add_box() and before '{operation_attempted}'",
            error_code="TREE_NOT_BUILT",
            diagnostic_data=diagnostic_data,
        )


class ConfigurationError(BoxTreeError):
    """Exception raised when a box tree parameter is invalid."""

    def __init__(
        self,
        parameter_name: str,
        provided_value: Any,
        expected_type: type | tuple[type, ...] | None = None,
        valid_range: tuple | None = None,
        component: str | None = None,
    ):
        self.parameter_name = parameter_name
        self.provided_value = provided_value

        diagnostic_data = {
            "parameter": parameter_name,
            "provided_value": str(provided_value),
            "provided_type": type(provided_value).__name__,
        }

        if expected_type:
            diagnostic_data["expected_type"] = _type_names(expected_type)

        if valid_range:
            diagnostic_data["valid_range"] = f"[{valid_range[0]}, {valid_range[1]}]"

        super().__init__(
            message=f"Invalid configuration for parameter '{parameter_name}'",
            component=component,
            suggested_action=_generate_configuration_suggestions(
                parameter_name, provided_value, expected_type, valid_range
            ),
            error_code="INVALID_CONFIGURATION",
            diagnostic_data=diagnostic_data,
        )


class InvalidCoordinateError(BoxTreeError):
    """Exception raised when a coordinate holds NaN or infinite values."""

    def __init__(
        self,
        coordinate_name: str,
        values: NDArray,
        component: str | None = None,
    ):
        self.coordinate_name = coordinate_name

        diagnostic_data = {
            "coordinate": coordinate_name,
            "values": np.array2string(np.asarray(values), precision=6),
            "nan_count": int(np.count_nonzero(np.isnan(values))),
            "inf_count": int(np.count_nonzero(np.isinf(values))),
        }

        super().__init__(
            message=f"Non-finite values in {coordinate_name}",
            component=component,
            suggested_action="Check the geometry that produced this coordinate for NaN or overflow",
            error_code="INVALID_COORDINATE",
            diagnostic_data=diagnostic_data,
        )


# Helper functions for generating specific suggestions


def _type_names(expected_type: type | tuple[type, ...]) -> str:
    if isinstance(expected_type, tuple):
        return " | ".join(t.__name__ for t in expected_type)
    return expected_type.__name__


def _is_instance(value: Any, expected_type: type | tuple[type, ...]) -> bool:
    """isinstance() that does not let a bool pass for a number."""
    types = expected_type if isinstance(expected_type, tuple) else (expected_type,)
    if isinstance(value, bool) and bool not in types:
        return False
    return isinstance(value, types)


def _describe_dimension_mismatch(provided_shape: tuple, expected_dimension: int) -> str:
    """Describe the specific nature of dimension mismatch."""

    if len(provided_shape) != 1:
        return f"Wrong number of array dimensions: got {len(provided_shape)}, expected 1"

    return f"axis 0: got {provided_shape[0]} components, expected {expected_dimension}"


def _generate_dimension_suggestions(coordinate_name: str, provided_shape: tuple, expected_dimension: int) -> str:
    """Generate specific suggestions for dimension errors."""

    if len(provided_shape) != 1:
        return f"Pass {coordinate_name} as a flat sequence of {expected_dimension} numbers"

    if provided_shape[0] < expected_dimension:
        return f"Add the missing components to {coordinate_name}; every coordinate needs {expected_dimension}"
    return f"Drop the extra components from {coordinate_name}; this index is {expected_dimension}-dimensional"


def _generate_configuration_suggestions(
    parameter_name: str,
    provided_value: Any,
    expected_type: type | tuple[type, ...] | None,
    valid_range: tuple | None,
) -> str:
    """Generate specific suggestions for configuration errors."""

    suggestions = []

    if expected_type and not isinstance(provided_value, expected_type):
        suggestions.append(f"Convert {parameter_name} to {_type_names(expected_type)}")

    if valid_range and isinstance(provided_value, numbers.Real):
        if provided_value < valid_range[0]:
            suggestions.append(f"Increase {parameter_name} to at least {valid_range[0]}")
        elif provided_value > valid_range[1]:
            suggestions.append(f"Decrease {parameter_name} to at most {valid_range[1]}")

    if "epsilon" in parameter_name.lower() and isinstance(provided_value, numbers.Real):
        if provided_value < 0:
            suggestions.append("Epsilon must be non-negative")

    if "capacity" in parameter_name.lower() and isinstance(provided_value, numbers.Real):
        if provided_value <= 0:
            suggestions.append("Leaf capacity must be at least 1")

    return " | ".join(suggestions) if suggestions else f"Check {parameter_name} value and try again"


# Convenience functions for common error scenarios


def validate_tree_state(tree, operation_name: str):
    """Validate that the tree has been built before querying it."""
    if not getattr(tree, "is_built", False):
        raise TreeNotBuiltError(
            operation_attempted=operation_name,
            component=type(tree).__name__,
            num_boxes=len(tree) if hasattr(tree, "__len__") else None,
        )


def validate_parameter_value(
    value: Any,
    parameter_name: str,
    expected_type: type | tuple[type, ...] | None = None,
    valid_range: tuple | None = None,
    component: str | None = None,
):
    """Validate parameter value and type."""
    if expected_type and not _is_instance(value, expected_type):
        raise ConfigurationError(
            parameter_name=parameter_name,
            provided_value=value,
            expected_type=expected_type,
            component=component,
        )

    if valid_range and isinstance(value, numbers.Real):
        if math.isnan(value) or not (valid_range[0] <= value <= valid_range[1]):
            raise ConfigurationError(
                parameter_name=parameter_name,
                provided_value=value,
                valid_range=valid_range,
                component=component,
            )


def validate_coordinate(
    coordinate: Any,
    coordinate_name: str,
    dimension: int | None = None,
    component: str | None = None,
) -> NDArray:
    """
    Convert a coordinate to a flat float64 array and check its arity.

    Args:
        coordinate: Sequence or array of numbers
        coordinate_name: Name used in error messages
        dimension: Expected number of components (None accepts any non-zero arity)
        component: Component name used in error messages

    Returns:
        Array of shape (D,)

    Raises:
        DimensionMismatchError: If the coordinate is not flat or has the wrong arity
        InvalidCoordinateError: If any component is NaN or infinite
    """
    values = np.asarray(coordinate, dtype=float)

    if values.ndim != 1 or values.shape[0] == 0:
        raise DimensionMismatchError(
            coordinate_name=coordinate_name,
            provided_shape=values.shape,
            expected_dimension=dimension or max(values.size, 1),
            component=component,
        )

    if dimension is not None and values.shape[0] != dimension:
        raise DimensionMismatchError(
            coordinate_name=coordinate_name,
            provided_shape=values.shape,
            expected_dimension=dimension,
            component=component,
        )

    if not np.all(np.isfinite(values)):
        raise InvalidCoordinateError(coordinate_name=coordinate_name, values=values, component=component)

    return values
