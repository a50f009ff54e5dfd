"""Object-style spatial indexes over a fixed point set."""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from .builder import as_coordinate_array, build_tree, release_tree, tree_size
from .config import SearchConfig
from .geometry import SPHERE_RADIUS, resolve_measure
from .models import MeasuredPoint, MeasureType, Point, SearchNode, as_point
from .search import run_search


class KDTreeSpatialIndex:
    """kd-tree index answering k-nearest and radius queries.

    The tree is built once in the constructor and is read-only afterwards,
    so one index may serve queries from several threads. ``release`` must
    not be called while any query is still running.
    """

    def __init__(self, points: Iterable[Point] | np.ndarray, measure: MeasureType | str = MeasureType.EUCLIDEAN) -> None:
        self.measure = MeasureType.parse(measure)
        self._root = build_tree(points)
        self._size = tree_size(self._root)
        self._released = False

    def __len__(self) -> int:
        return self._size

    @property
    def root(self) -> SearchNode:
        self._check_alive()
        return self._root

    def query_nearest(
        self,
        query: Point | Sequence[float],
        k: int,
        radius: float = 0.0,
    ) -> list[MeasuredPoint]:
        """Return the ``k`` nearest points plus any further ones within ``radius``."""
        self._check_alive()
        point = as_point(query)
        config = SearchConfig(k=k, radius=radius, measure=resolve_measure(self.measure, point))
        return run_search(self._root, point, config)

    def query_radius(self, query: Point | Sequence[float], radius: float) -> list[MeasuredPoint]:
        """Return every point within ``radius`` of the query, sorted by distance."""
        results = self.query_nearest(query, k=1, radius=radius)

        # k=1 always keeps the nearest point, even when it is out of range.
        if results and results[0].dist > radius:
            return []
        return results

    def release(self) -> None:
        """Tear down the tree; the index cannot be queried afterwards."""
        if not self._released:
            release_tree(self._root)
            self._released = True

    def _check_alive(self) -> None:
        if self._released:
            raise RuntimeError("spatial index has been released")


class BruteForceSpatialIndex:
    """Simple vectorized index that measures every point on each query.

    It answers the same queries as ``KDTreeSpatialIndex`` and serves as the
    correctness reference and benchmark baseline for it.
    """

    def __init__(self, points: Iterable[Point] | np.ndarray, measure: MeasureType | str = MeasureType.EUCLIDEAN) -> None:
        """Store point coordinates for repeated queries."""
        self.measure = MeasureType.parse(measure)
        self._xy = as_coordinate_array(points)

    def __len__(self) -> int:
        return int(self._xy.shape[0])

    def distances(self, query: Point | Sequence[float]) -> np.ndarray:
        """Return the distance from ``query`` to every stored point, in input order."""
        q = as_point(query)

        if self.measure is MeasureType.GEODESIC:
            lng = np.radians(self._xy[:, 0])
            lat = np.radians(self._xy[:, 1])
            q_lng = np.radians(q.x)
            q_lat = np.radians(q.y)

            a = np.sin((q_lat - lat) / 2) ** 2 + np.cos(q_lat) * np.cos(lat) * np.sin((q_lng - lng) / 2) ** 2
            return SPHERE_RADIUS * 2 * np.arcsin(np.sqrt(np.minimum(a, 1.0)))

        return np.hypot(self._xy[:, 0] - q.x, self._xy[:, 1] - q.y)

    def query_nearest(
        self,
        query: Point | Sequence[float],
        k: int,
        radius: float = 0.0,
    ) -> list[MeasuredPoint]:
        """Return the ``k`` nearest points plus any further ones within ``radius``."""
        config = SearchConfig(k=k, radius=radius, measure=self.measure)
        dist = self.distances(query)
        order = np.argsort(dist, kind="stable")

        # Sorted order puts every in-radius point in one leading run.
        n_keep = max(min(config.k, len(order)), int((dist <= config.radius).sum()))
        return [self._measured(i, dist) for i in order[:n_keep]]

    def query_radius(self, query: Point | Sequence[float], radius: float) -> list[MeasuredPoint]:
        """Return every point within ``radius`` of the query, sorted by distance."""
        if radius < 0:
            raise ValueError("radius must be >= 0")

        dist = self.distances(query)
        keep = np.flatnonzero(dist <= radius)
        keep_sorted = keep[np.argsort(dist[keep], kind="stable")]
        return [self._measured(i, dist) for i in keep_sorted]

    def _measured(self, index: int, dist: np.ndarray) -> MeasuredPoint:
        return MeasuredPoint(
            x=float(self._xy[index, 0]),
            y=float(self._xy[index, 1]),
            dist=float(dist[index]),
        )
