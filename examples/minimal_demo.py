"""Minimal demo for the planar/geodesic kd-tree index.

Run:
    python examples/minimal_demo.py
"""

from __future__ import annotations

from pathlib import Path
import sys

# Ensure package import works when running this script directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from geo_kdtree import (
    GeoPoint,
    KDTreeSpatialIndex,
    MeasureType,
    PlanePoint,
    build_tree,
    release_tree,
    search_nearest,
)


def make_demo_airports() -> list[GeoPoint]:
    """A few airports on both sides of the antimeridian."""
    return [
        GeoPoint.from_lng_lat(174.79, -37.01),  # Auckland
        GeoPoint.from_lng_lat(178.56, -18.04),  # Nadi
        GeoPoint.from_lng_lat(-171.99, -13.83),  # Apia
        GeoPoint.from_lng_lat(-175.15, -21.24),  # Nuku'alofa
        GeoPoint.from_lng_lat(151.18, -33.95),  # Sydney
        GeoPoint.from_lng_lat(-157.92, 21.32),  # Honolulu
    ]


def main() -> None:
    """Run one planar query and a few geodesic queries, printing the results."""
    grid = [PlanePoint(0.0, 0.0), PlanePoint(0.0, 1.0), PlanePoint(1.0, 0.0), PlanePoint(1.0, 1.0)]
    tree = build_tree(grid)
    nearest = search_nearest(tree, PlanePoint(0.1, 0.1), k=1)
    print("Nearest grid corner to (0.1, 0.1):", nearest[0])
    release_tree(tree)

    index = KDTreeSpatialIndex(make_demo_airports(), measure=MeasureType.GEODESIC)
    query = GeoPoint.from_lng_lat(180.0, -20.0)

    print(f"\nThree airports nearest to ({query.lng}, {query.lat}):")
    for hit in index.query_nearest(query, k=3):
        print(f"  ({hit.x:8.2f}, {hit.y:7.2f})  {hit.dist / 1000:8.1f} km")

    print("\nAirports within 1000 km:")
    for hit in index.query_radius(query, radius=1_000_000.0):
        print(f"  ({hit.x:8.2f}, {hit.y:7.2f})  {hit.dist / 1000:8.1f} km")

    index.release()


if __name__ == "__main__":
    main()
