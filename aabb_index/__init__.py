from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("aabb-index")  # Matches the name in pyproject.toml
except PackageNotFoundError:
    # package is not installed
    __version__ = "0.0.0-dev"

from .config import BoxTreeConfig  # noqa: E402
from .geometry import (  # noqa: E402
    BoxPredicate,
    BoxRecord,
    BoxTree,
    LineIntersects,
    PointIn,
    RegionContained,
    RegionContains,
    RegionIntersects,
    TreeStatistics,
)
from .utils.exceptions import (  # noqa: E402
    BoxTreeError,
    ConfigurationError,
    DimensionMismatchError,
    InvalidCoordinateError,
    TreeNotBuiltError,
)

__all__ = [
    "BoxPredicate",
    "BoxRecord",
    "BoxTree",
    "BoxTreeConfig",
    "BoxTreeError",
    "ConfigurationError",
    "DimensionMismatchError",
    "InvalidCoordinateError",
    "LineIntersects",
    "PointIn",
    "RegionContained",
    "RegionContains",
    "RegionIntersects",
    "TreeNotBuiltError",
    "TreeStatistics",
    "__version__",
]
