"""Configuration objects for nearest-neighbor queries."""

from __future__ import annotations

from dataclasses import dataclass
import math
import numbers

from .models import MeasureType


@dataclass(frozen=True)
class SearchConfig:
    """Validated parameters of one nearest-neighbor query.

    A query returns the ``k`` nearest points and, when ``radius`` is positive,
    every further point whose distance does not exceed ``radius``.
    """

    # Number of nearest points to return (fewer only if the tree is smaller).
    k: int = 1

    # Extra inclusion radius; 0 reduces the query to plain k-nearest-neighbor.
    radius: float = 0.0

    # Distance model. Geodesic distances are in metres on a sphere.
    measure: MeasureType = MeasureType.EUCLIDEAN

    def __post_init__(self) -> None:
        """Validate config values once at construction time."""
        if isinstance(self.k, bool) or not isinstance(self.k, numbers.Integral):
            raise ValueError(f"k must be an integer, got {self.k!r}")

        if self.k < 1:
            raise ValueError("k must be >= 1")

        radius = float(self.radius)
        if not math.isfinite(radius):
            raise ValueError("radius must be finite")

        if radius < 0:
            raise ValueError("radius must be >= 0")

        object.__setattr__(self, "k", int(self.k))
        object.__setattr__(self, "radius", radius)
        object.__setattr__(self, "measure", MeasureType.parse(self.measure))

    @property
    def is_geodesic(self) -> bool:
        return self.measure is MeasureType.GEODESIC
