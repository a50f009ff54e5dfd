"""Tests for great-circle nearest-neighbor search and its region pruning."""

from __future__ import annotations

import unittest

import numpy as np

from geo_kdtree import (
    BruteForceSpatialIndex,
    GeoPoint,
    MeasureType,
    Point,
    Region,
    RegionInvariantError,
    SearchNode,
    build_tree,
    random_geo_points,
    random_points,
    search_nearest,
)
from geo_kdtree.search import ChildSide, min_dist_to_region, next_child, next_region

SINGULAR_QUERIES = [
    Point(0.0, 0.0),
    Point(90.0, 0.0),
    Point(130.0, 0.0),
    Point(0.0, 90.0),
    Point(0.0, -90.0),
    Point(-180.0, 0.0),
    Point(-180.0, 30.0),
    Point(-180.0, 60.0),
    Point(-180.0, -30.0),
    Point(180.0, 0.0),
    Point(180.0, 30.0),
    Point(180.0, 60.0),
    Point(180.0, -30.0),
]


class GeodesicSearchTest(unittest.TestCase):
    """Compare kd-tree answers with brute-force great-circle sorting."""

    @classmethod
    def setUpClass(cls) -> None:
        # A clustered set west of Greenwich plus one lone point across the globe.
        cls.points = random_points(1000, seed=21, x_lower=-100.0, x_upper=0.0, y_lower=-10.0, y_upper=70.0)
        cls.points.append(Point(170.0, 0.0))
        cls.tree = build_tree(cls.points)
        cls.reference = BruteForceSpatialIndex(cls.points, measure=MeasureType.GEODESIC)

    def assert_same_distances(self, found, expected) -> None:
        self.assertEqual(len(found), len(expected))
        self.assertTrue(
            np.allclose([p.dist for p in found], [p.dist for p in expected], rtol=1e-9, atol=1e-6),
            msg=f"kd-tree {found} != brute force {expected}",
        )

    def test_antimeridian_scenario(self) -> None:
        tree = build_tree([Point(179.0, 0.0), Point(-179.0, 0.0), Point(0.0, 0.0)])
        result = search_nearest(tree, Point(180.0, 0.0), 1, 0, MeasureType.GEODESIC)

        self.assertEqual(len(result), 1)
        self.assertIn((result[0].x, result[0].y), [(179.0, 0.0), (-179.0, 0.0)])

    def test_points_across_antimeridian_are_neighbors(self) -> None:
        points = [Point(179.0, 0.0), Point(-179.0, 0.0), Point(0.0, 0.0), Point(90.0, 0.0), Point(-90.0, 0.0)]
        tree = build_tree(points)

        result = search_nearest(tree, Point(-179.0, 0.0), 2, 0, MeasureType.GEODESIC)
        self.assertEqual([(p.x, p.y) for p in result], [(-179.0, 0.0), (179.0, 0.0)])

    def test_lone_far_point_found_from_pacific(self) -> None:
        result = search_nearest(self.tree, Point(-175.0, 1.0), 1, 0, MeasureType.GEODESIC)
        self.assertEqual((result[0].x, result[0].y), (170.0, 0.0))

    def test_random_queries_match_brute_force(self) -> None:
        rng = np.random.default_rng(22)
        for query in random_geo_points(100, seed=23):
            k = int(rng.integers(1, 21))
            found = search_nearest(self.tree, query, k)
            self.assertEqual(len(found), k)
            self.assert_same_distances(found, self.reference.query_nearest(query, k))

    def test_radius_queries_match_brute_force(self) -> None:
        rng = np.random.default_rng(24)
        for query in random_geo_points(60, seed=25):
            k = int(rng.integers(1, 6))
            nearest = self.reference.query_nearest(query, k)[-1].dist
            r = float(rng.uniform(0.0, 1.5)) * nearest
            found = search_nearest(self.tree, query, k, r, MeasureType.GEODESIC)
            self.assert_same_distances(found, self.reference.query_nearest(query, k, r))

    def test_singular_queries_match_brute_force(self) -> None:
        for query in SINGULAR_QUERIES:
            for k in (1, 4, 15):
                found = search_nearest(self.tree, query, k, 0, MeasureType.GEODESIC)
                self.assert_same_distances(found, self.reference.query_nearest(query, k))

    def test_whole_sphere_point_set(self) -> None:
        points = random_geo_points(2000, seed=26)
        tree = build_tree(points)
        reference = BruteForceSpatialIndex(points, measure=MeasureType.GEODESIC)

        queries = random_geo_points(50, seed=27) + [GeoPoint(q.x, q.y) for q in SINGULAR_QUERIES]
        for query in queries:
            found = search_nearest(tree, query, 8, 500_000.0)
            self.assert_same_distances(found, reference.query_nearest(query, 8, 500_000.0))

    def test_polar_cluster(self) -> None:
        points = random_points(500, seed=28, x_lower=-180.0, x_upper=180.0, y_lower=80.0, y_upper=90.0)
        tree = build_tree(points)
        reference = BruteForceSpatialIndex(points, measure=MeasureType.GEODESIC)

        for query in (Point(0.0, 90.0), Point(45.0, 85.0), Point(-170.0, 75.0), Point(100.0, 60.0)):
            found = search_nearest(tree, query, 10, 0, MeasureType.GEODESIC)
            self.assert_same_distances(found, reference.query_nearest(query, 10))

    def test_geo_point_query_infers_geodesic(self) -> None:
        query = GeoPoint(-179.5, 0.5)
        self.assert_same_distances(
            search_nearest(self.tree, query, 3),
            self.reference.query_nearest(query, 3),
        )


class RegionPruningTest(unittest.TestCase):
    """Validate child selection, region narrowing, and the region bound."""

    def test_next_child_inside_longitude_range(self) -> None:
        node = SearchNode(x=10.0, y=0.0, depth=0)
        region = Region.whole_sphere()
        self.assertIs(next_child(Point(5.0, 0.0), region, node), ChildSide.LEFT)
        self.assertIs(next_child(Point(10.0, 0.0), region, node), ChildSide.RIGHT)

    def test_next_child_wraps_around_antimeridian(self) -> None:
        node = SearchNode(x=-50.0, y=0.0, depth=2)
        region = Region(north=90.0, south=-90.0, west=-100.0, east=0.0)

        self.assertIs(next_child(Point(170.0, 0.0), region, node), ChildSide.LEFT)
        self.assertIs(next_child(Point(-170.0, 0.0), region, node), ChildSide.LEFT)
        self.assertIs(next_child(Point(30.0, 0.0), region, node), ChildSide.RIGHT)

    def test_next_child_latitude_split(self) -> None:
        node = SearchNode(x=0.0, y=20.0, depth=1)
        region = Region.whole_sphere()
        self.assertIs(next_child(Point(100.0, -5.0), region, node), ChildSide.LEFT)
        self.assertIs(next_child(Point(100.0, 25.0), region, node), ChildSide.RIGHT)

    def test_next_region_narrows_one_side(self) -> None:
        region = Region.whole_sphere()
        lng_node = SearchNode(x=30.0, y=10.0, depth=0)
        lat_node = SearchNode(x=30.0, y=10.0, depth=1)

        self.assertEqual(next_region(lng_node, region, ChildSide.LEFT), Region(90.0, -90.0, -180.0, 30.0))
        self.assertEqual(next_region(lng_node, region, ChildSide.RIGHT), Region(90.0, -90.0, 30.0, 180.0))
        self.assertEqual(next_region(lat_node, region, ChildSide.LEFT), Region(10.0, -90.0, -180.0, 180.0))
        self.assertEqual(next_region(lat_node, region, ChildSide.RIGHT), Region(90.0, 10.0, -180.0, 180.0))

    def test_bound_rejects_query_inside_region(self) -> None:
        region = Region(north=40.0, south=0.0, west=0.0, east=40.0)
        with self.assertRaises(RegionInvariantError):
            min_dist_to_region(Point(20.0, 20.0), region, SearchNode(x=0.0, y=0.0, depth=0))

    def test_bound_rejects_query_inside_split_range(self) -> None:
        region = Region(north=40.0, south=0.0, west=0.0, east=40.0)
        with self.assertRaises(RegionInvariantError):
            min_dist_to_region(Point(20.0, 60.0), region, SearchNode(x=0.0, y=0.0, depth=0))
        with self.assertRaises(RegionInvariantError):
            min_dist_to_region(Point(60.0, 20.0), region, SearchNode(x=0.0, y=0.0, depth=1))

    def test_latitude_bound_beside_region_is_sound(self) -> None:
        # The nearest point of this region to the query sits inside its east
        # meridian edge, not on a parallel edge.
        region = Region(north=80.0, south=40.0, west=0.0, east=10.0)
        query = Point(80.0, 30.0)
        bound = min_dist_to_region(query, region, SearchNode(x=0.0, y=40.0, depth=1))

        lats = np.linspace(40.0, 80.0, 2001)
        reference = BruteForceSpatialIndex(np.column_stack([np.full_like(lats, 10.0), lats]), MeasureType.GEODESIC)
        self.assertLessEqual(bound, float(reference.distances(query).min()) + 1e-3)

    def test_bound_never_exceeds_distance_to_region_points(self) -> None:
        rng = np.random.default_rng(29)
        for _ in range(300):
            south, north = sorted(float(v) for v in rng.uniform(-90.0, 90.0, size=2))
            west, east = sorted(float(v) for v in rng.uniform(-180.0, 180.0, size=2))
            region = Region(north=north, south=south, west=west, east=east)
            query = Point(float(rng.uniform(-180.0, 180.0)), float(rng.uniform(-90.0, 90.0)))

            if not region.within_lng_range(query.x):
                node = SearchNode(x=west, y=0.0, depth=0)
            elif not region.within_lat_range(query.y):
                node = SearchNode(x=0.0, y=south, depth=1)
            else:
                continue

            bound = min_dist_to_region(query, region, node)
            inside = np.column_stack(
                [rng.uniform(west, east, size=500), rng.uniform(south, north, size=500)]
            )
            nearest = BruteForceSpatialIndex(inside, MeasureType.GEODESIC).distances(query).min()
            self.assertLessEqual(bound, float(nearest) + 1e-3)


if __name__ == "__main__":
    unittest.main()
