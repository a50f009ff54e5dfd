"""Public API for the planar/geodesic kd-tree nearest-neighbor index."""

from .benchmark import BenchmarkConfig, ConfigError, run_benchmark, run_benchmark_from_config
from .builder import build_tree, iter_nodes, release_tree, tree_height, tree_size
from .config import SearchConfig
from .geometry import SPHERE_RADIUS, haversine_distance, measure
from .models import GeoPoint, MeasuredPoint, MeasureType, PlanePoint, Point, Region, SearchNode
from .sampling import random_geo_points, random_points
from .search import RegionInvariantError, search_nearest
from .spatial_index import BruteForceSpatialIndex, KDTreeSpatialIndex

__all__ = [
    "BenchmarkConfig",
    "BruteForceSpatialIndex",
    "ConfigError",
    "GeoPoint",
    "KDTreeSpatialIndex",
    "MeasuredPoint",
    "MeasureType",
    "PlanePoint",
    "Point",
    "Region",
    "RegionInvariantError",
    "SPHERE_RADIUS",
    "SearchConfig",
    "SearchNode",
    "build_tree",
    "haversine_distance",
    "iter_nodes",
    "measure",
    "random_geo_points",
    "random_points",
    "release_tree",
    "run_benchmark",
    "run_benchmark_from_config",
    "search_nearest",
    "tree_height",
    "tree_size",
]
