"""Seeded point sampling for fixtures and benchmarks."""

from __future__ import annotations

import numpy as np

from .models import GeoPoint, PlanePoint, Point

SeedLike = int | np.random.Generator | None


def random_points(
    size: int,
    seed: SeedLike = None,
    x_lower: float = 0.0,
    x_upper: float = 100.0,
    y_lower: float = 0.0,
    y_upper: float = 100.0,
    point_type: type[Point] = PlanePoint,
) -> list[Point]:
    """Return ``size`` points drawn uniformly from a rectangle.

    The same integer ``seed`` always yields the same points. A
    ``numpy.random.Generator`` may be passed instead to continue its stream.
    """
    coords = random_coordinates(size, seed, x_lower, x_upper, y_lower, y_upper)
    return [point_type(float(x), float(y)) for x, y in coords]


def random_geo_points(size: int, seed: SeedLike = None) -> list[GeoPoint]:
    """Return ``size`` longitude/latitude points spread over the full coordinate box."""
    return random_points(size, seed, -180.0, 180.0, -90.0, 90.0, point_type=GeoPoint)


def random_coordinates(
    size: int,
    seed: SeedLike = None,
    x_lower: float = 0.0,
    x_upper: float = 100.0,
    y_lower: float = 0.0,
    y_upper: float = 100.0,
) -> np.ndarray:
    """Return an ``(size, 2)`` array of uniform coordinates."""
    if size < 0:
        raise ValueError("size must be >= 0")

    if x_upper < x_lower or y_upper < y_lower:
        raise ValueError("upper bounds must not be below lower bounds")

    rng = np.random.default_rng(seed)
    xs = rng.uniform(x_lower, x_upper, size=size)
    ys = rng.uniform(y_lower, y_upper, size=size)
    return np.column_stack([xs, ys])
