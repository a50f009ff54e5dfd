"""Distance functions for planar and spherical coordinates."""

from __future__ import annotations

import math

from .models import GeoPoint, MeasureType, Point

# Mean earth radius in metres; geodesic distances are reported in the same unit.
SPHERE_RADIUS = 6371009.0


def resolve_measure(mode: MeasureType | str | None, *points: Point) -> MeasureType:
    """Pick the distance model for a call.

    An explicit ``mode`` wins. Without one, any ``GeoPoint`` argument selects
    geodesic distance and everything else falls back to Euclidean distance.
    Geographic points are never measured as plane coordinates.
    """
    has_geo = any(isinstance(p, GeoPoint) for p in points)

    if mode is None:
        return MeasureType.GEODESIC if has_geo else MeasureType.EUCLIDEAN

    resolved = MeasureType.parse(mode)
    if resolved is MeasureType.EUCLIDEAN and has_geo:
        raise ValueError("GeoPoint coordinates cannot be measured with Euclidean distance")
    return resolved


def euclidean_distance(x1: float, y1: float, x2: float, y2: float) -> float:
    """Return the straight-line distance between two plane points."""
    return math.hypot(x1 - x2, y1 - y2)


def haversine_distance(lng1: float, lat1: float, lng2: float, lat2: float) -> float:
    """Return the great-circle distance between two lng/lat pairs in degrees.

    Uses the haversine formula, which stays accurate for small separations.
    The longitude difference is used as given; no wraparound normalization
    is needed because the sine terms are periodic.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    half_dlng = math.radians(lng1 - lng2) / 2
    half_dlat = (phi1 - phi2) / 2

    a = math.sin(half_dlat) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlng) ** 2
    # Rounding can push `a` slightly above 1 for antipodal points.
    return SPHERE_RADIUS * 2 * math.asin(math.sqrt(min(1.0, a)))


def measure(a: Point, b: Point, mode: MeasureType | str | None = None) -> float:
    """Return the distance between ``a`` and ``b`` under the selected measure."""
    if resolve_measure(mode, a, b) is MeasureType.GEODESIC:
        return haversine_distance(a.x, a.y, b.x, b.y)
    return euclidean_distance(a.x, a.y, b.x, b.y)


def abs_lng_diff(lng1: float, lng2: float) -> float:
    """Return the angular longitude difference folded into [0, 180] degrees."""
    diff = lng1 - lng2
    while diff > 180.0:
        diff -= 360.0
    while diff < -180.0:
        diff += 360.0
    return abs(diff)


def dist_to_meridian(pos: Point, longitude: float, south: float, north: float) -> float:
    """Return the geodesic distance from ``pos`` to a meridian segment.

    The segment runs along ``longitude`` from latitude ``south`` to ``north``.
    Candidates are the two endpoints and, when the query is within a quarter
    turn of the meridian, the foot of the perpendicular great circle if it
    falls inside the segment.
    """
    candidates = [
        haversine_distance(pos.x, pos.y, longitude, south),
        haversine_distance(pos.x, pos.y, longitude, north),
    ]

    d_lng = abs_lng_diff(pos.x, longitude)
    if d_lng <= 90.0:
        lng = math.radians(d_lng)
        lat = math.radians(pos.y)
        perpendicular = SPHERE_RADIUS * math.asin(math.sin(lng) * math.cos(lat))
        # latitude of the perpendicular's foot on the meridian
        foot_lat = 90.0 - math.degrees(math.atan2(math.cos(lng), math.tan(lat)))
        if south < foot_lat < north:
            candidates.append(perpendicular)

    return min(candidates)


def dist_to_parallel(pos: Point, latitude: float, west: float, east: float) -> float:
    """Return the geodesic distance from ``pos`` to a parallel segment.

    The segment runs along ``latitude`` from longitude ``west`` to ``east``.
    When the query's longitude is inside the segment, the meridian arc down
    to the parallel is a candidate as well as the endpoints.
    """
    candidates = [
        haversine_distance(pos.x, pos.y, east, latitude),
        haversine_distance(pos.x, pos.y, west, latitude),
    ]

    if west < pos.x < east:
        candidates.append(SPHERE_RADIUS * math.radians(abs(pos.y - latitude)))

    return min(candidates)
