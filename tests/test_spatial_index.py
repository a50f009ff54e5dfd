"""Tests for the object-style kd-tree and brute-force indexes."""

from __future__ import annotations

import unittest

import numpy as np

from geo_kdtree import (
    BruteForceSpatialIndex,
    GeoPoint,
    KDTreeSpatialIndex,
    MeasureType,
    Point,
    SearchConfig,
    random_geo_points,
    random_points,
)


class KDTreeSpatialIndexTest(unittest.TestCase):
    """Validate query helpers and lifecycle of `KDTreeSpatialIndex`."""

    def setUp(self) -> None:
        self.points = random_points(300, seed=31)
        self.index = KDTreeSpatialIndex(self.points)
        self.reference = BruteForceSpatialIndex(self.points)

    def test_len_matches_input(self) -> None:
        self.assertEqual(len(self.index), 300)
        self.assertEqual(len(self.reference), 300)

    def test_query_radius_matches_brute_force(self) -> None:
        for query in random_points(30, seed=32):
            found = self.index.query_radius(query, 12.0)
            expected = self.reference.query_radius(query, 12.0)
            self.assertEqual([(p.x, p.y) for p in found], [(p.x, p.y) for p in expected])
            self.assertTrue(all(p.dist <= 12.0 for p in found))

    def test_query_radius_empty_when_nothing_in_range(self) -> None:
        self.assertEqual(self.index.query_radius(Point(1000.0, 1000.0), 1.0), [])
        self.assertEqual(self.reference.query_radius(Point(1000.0, 1000.0), 1.0), [])

    def test_query_nearest_matches_brute_force(self) -> None:
        query = Point(40.0, 60.0)
        found = self.index.query_nearest(query, 6, radius=4.0)
        expected = self.reference.query_nearest(query, 6, radius=4.0)
        self.assertEqual([(p.x, p.y) for p in found], [(p.x, p.y) for p in expected])

    def test_released_index_refuses_queries(self) -> None:
        self.index.release()
        with self.assertRaises(RuntimeError):
            self.index.query_nearest(Point(0.0, 0.0), 1)
        with self.assertRaises(RuntimeError):
            _ = self.index.root

    def test_geodesic_index(self) -> None:
        points = random_geo_points(400, seed=33)
        index = KDTreeSpatialIndex(points, measure="geodesic")
        reference = BruteForceSpatialIndex(points, measure=MeasureType.GEODESIC)

        query = GeoPoint(178.0, -17.0)
        found = index.query_radius(query, 2_000_000.0)
        expected = reference.query_radius(query, 2_000_000.0)
        self.assertEqual(len(found), len(expected))
        self.assertTrue(np.allclose([p.dist for p in found], [p.dist for p in expected], rtol=1e-9, atol=1e-6))

    def test_euclidean_index_rejects_geo_point(self) -> None:
        with self.assertRaises(ValueError):
            self.index.query_nearest(GeoPoint(0.0, 0.0), 1)


class BruteForceSpatialIndexTest(unittest.TestCase):
    """Validate the vectorized reference index."""

    def test_distances_follow_input_order(self) -> None:
        index = BruteForceSpatialIndex(np.array([[0.0, 0.0], [3.0, 4.0]]))
        self.assertTrue(np.allclose(index.distances(Point(0.0, 0.0)), [0.0, 5.0]))

    def test_query_nearest_keeps_in_radius_tail(self) -> None:
        index = BruteForceSpatialIndex([Point(float(i), 0.0) for i in range(6)])
        found = index.query_nearest(Point(0.0, 0.0), 2, radius=3.0)
        self.assertEqual([p.x for p in found], [0.0, 1.0, 2.0, 3.0])

    def test_negative_radius_rejected(self) -> None:
        index = BruteForceSpatialIndex([Point(0.0, 0.0)])
        with self.assertRaises(ValueError):
            index.query_radius(Point(0.0, 0.0), -1.0)


class SearchConfigTest(unittest.TestCase):
    """Validate query parameter normalization."""

    def test_defaults(self) -> None:
        config = SearchConfig()
        self.assertEqual((config.k, config.radius, config.measure), (1, 0.0, MeasureType.EUCLIDEAN))
        self.assertFalse(config.is_geodesic)

    def test_numpy_integer_k_accepted(self) -> None:
        config = SearchConfig(k=np.int64(4), radius=2, measure="GEODESIC")
        self.assertEqual(config.k, 4)
        self.assertIsInstance(config.k, int)
        self.assertEqual(config.radius, 2.0)
        self.assertTrue(config.is_geodesic)

    def test_bool_k_rejected(self) -> None:
        with self.assertRaises(ValueError):
            SearchConfig(k=True)


if __name__ == "__main__":
    unittest.main()
