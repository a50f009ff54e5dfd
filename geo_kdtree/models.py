"""Typed data models shared by the tree builder and the nearest-neighbor search."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from typing import Sequence


class MeasureType(str, Enum):
    """Distance model used to interpret coordinates and compare points."""

    EUCLIDEAN = "euclidean"
    GEODESIC = "geodesic"

    @classmethod
    def parse(cls, value: "MeasureType | str") -> "MeasureType":
        """Accept an enum member or its (case-insensitive) string value."""
        if isinstance(value, cls):
            return value

        try:
            return cls(str(value).strip().lower())
        except ValueError:
            allowed = ", ".join(member.value for member in cls)
            raise ValueError(f"unknown measure {value!r}; expected one of: {allowed}") from None


@dataclass(frozen=True)
class Point:
    """One coordinate pair.

    The active measure decides what the pair means: plane coordinates under
    Euclidean distance, longitude/latitude in degrees under geodesic distance.
    """

    x: float
    y: float

    def as_tuple(self) -> tuple[float, float]:
        return (self.x, self.y)


@dataclass(frozen=True)
class PlanePoint(Point):
    """Point in a flat coordinate plane."""

    def __post_init__(self) -> None:
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise ValueError(f"plane point coordinates must be finite, got ({self.x}, {self.y})")


@dataclass(frozen=True)
class GeoPoint(Point):
    """Point on the sphere: ``x`` is longitude and ``y`` latitude, in degrees."""

    def __post_init__(self) -> None:
        """Reject coordinates outside the longitude/latitude domain."""
        if not (math.isfinite(self.x) and math.isfinite(self.y)):
            raise ValueError(f"geographic coordinates must be finite, got ({self.x}, {self.y})")

        if not -180.0 <= self.x <= 180.0:
            raise ValueError(f"longitude must be within [-180, 180], got {self.x}")

        if not -90.0 <= self.y <= 90.0:
            raise ValueError(f"latitude must be within [-90, 90], got {self.y}")

    @classmethod
    def from_lng_lat(cls, lng: float, lat: float) -> "GeoPoint":
        return cls(x=float(lng), y=float(lat))

    @property
    def lng(self) -> float:
        return self.x

    @property
    def lat(self) -> float:
        return self.y


@dataclass(frozen=True)
class MeasuredPoint(Point):
    """Search result: a tree point plus its distance from the query."""

    dist: float


@dataclass(eq=False)
class SearchNode:
    """One kd-tree vertex.

    The node holds one point itself. Points of the ``left`` subtree are not
    greater than the node on the split axis, points of the ``right`` subtree
    are not smaller. The axis alternates with depth: even depths split on
    ``x`` (longitude), odd depths on ``y`` (latitude).
    """

    x: float
    y: float
    depth: int
    left: SearchNode | None = None
    right: SearchNode | None = None

    @property
    def axis(self) -> int:
        """Return 0 for an ``x`` split, 1 for a ``y`` split."""
        return self.depth % 2

    @property
    def split_value(self) -> float:
        return self.x if self.axis == 0 else self.y

    @property
    def is_leaf(self) -> bool:
        return self.left is None and self.right is None

    def children(self) -> tuple[SearchNode, ...]:
        return tuple(child for child in (self.left, self.right) if child is not None)

    def to_point(self) -> Point:
        return Point(self.x, self.y)


@dataclass(frozen=True)
class Region:
    """Longitude/latitude rectangle accumulated along a path from the root."""

    north: float
    south: float
    west: float
    east: float

    @classmethod
    def whole_sphere(cls) -> "Region":
        return cls(north=90.0, south=-90.0, west=-180.0, east=180.0)

    def within_lng_range(self, lng: float) -> bool:
        """Return True when ``lng`` lies strictly between ``west`` and ``east``."""
        return self.west < lng < self.east

    def within_lat_range(self, lat: float) -> bool:
        """Return True when ``lat`` lies strictly between ``south`` and ``north``."""
        return self.south < lat < self.north

    def contains_strictly(self, point: Point) -> bool:
        return self.within_lng_range(point.x) and self.within_lat_range(point.y)


def as_point(value: Point | Sequence[float]) -> Point:
    """Return ``value`` as a ``Point``, converting a plain ``(x, y)`` pair."""
    if isinstance(value, Point):
        return value

    x, y = value
    return Point(float(x), float(y))
