"""Branch-and-bound nearest-neighbor search over a built kd-tree.

Two traversals share one result-buffer discipline:

- the Euclidean search prunes a far subtree with the scalar gap between the
  query and the split line;
- the geodesic search threads a longitude/latitude ``Region`` through the
  recursion and prunes with a lower bound on the great-circle distance from
  the query to that region, which accounts for antimeridian wraparound and
  for meridians converging at the poles.

Queries only read the tree. Each call owns its result buffer, so independent
queries may run concurrently on the same tree.
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Sequence

from .config import SearchConfig
from .geometry import (
    abs_lng_diff,
    dist_to_meridian,
    dist_to_parallel,
    euclidean_distance,
    haversine_distance,
    resolve_measure,
)
from .models import MeasuredPoint, MeasureType, Point, Region, SearchNode, as_point

logger = logging.getLogger(__name__)


class RegionInvariantError(RuntimeError):
    """Raised when the geodesic pruning bound is asked about a region that holds the query."""


class ChildSide(str, Enum):
    """Which child of a node a traversal step descends into."""

    LEFT = "left"
    RIGHT = "right"

    def opposite(self) -> "ChildSide":
        return ChildSide.RIGHT if self is ChildSide.LEFT else ChildSide.LEFT


@dataclass(frozen=True)
class _QueryContext:
    query: Point
    k: int
    r: float


@dataclass
class _SearchState:
    result: list[MeasuredPoint] = field(default_factory=list)
    traversed: int = 0


def search_nearest(
    tree: SearchNode,
    query: Point | Sequence[float],
    k: int,
    r: float = 0.0,
    mode: MeasureType | str | None = None,
) -> list[MeasuredPoint]:
    """Return the points of ``tree`` nearest to ``query``, ascending by distance.

    The result holds the ``k`` nearest points (all points when the tree is
    smaller) plus every further point within distance ``r``. Points at equal
    distance keep traversal order.

    Args:
        tree: Root returned by ``build_tree``.
        query: Query location; a ``Point`` or an ``(x, y)`` pair.
        k: Number of nearest points, >= 1.
        r: Extra inclusion radius, >= 0. Geodesic radii are in metres.
        mode: ``MeasureType`` or its name. Inferred from the query type when
            omitted: ``GeoPoint`` selects geodesic distance.

    Raises:
        ValueError: On invalid ``k``, ``r`` or ``mode``.
        RegionInvariantError: If geodesic region bookkeeping goes wrong.
    """
    query_point = as_point(query)
    config = SearchConfig(k=k, radius=r, measure=resolve_measure(mode, query_point))
    return run_search(tree, query_point, config)


def run_search(tree: SearchNode, query: Point, config: SearchConfig) -> list[MeasuredPoint]:
    """Execute one query described by an already validated ``SearchConfig``."""
    ctx = _QueryContext(query=query, k=config.k, r=config.radius)
    state = _SearchState()

    if config.is_geodesic:
        _search_geodesic(tree, Region.whole_sphere(), ctx, state)
    else:
        _search_euclidean(tree, ctx, state)

    logger.debug(
        "Visited %d nodes (k=%d, r=%g, measure=%s)",
        state.traversed,
        ctx.k,
        ctx.r,
        config.measure.value,
    )
    return state.result


def _search_euclidean(node: SearchNode | None, ctx: _QueryContext, state: _SearchState) -> None:
    if node is None:
        return
    state.traversed += 1

    pos = ctx.query
    _insert_search_result(ctx, state, euclidean_distance(pos.x, pos.y, node.x, node.y), node)

    threshold = node.split_value
    value = pos.x if node.axis == 0 else pos.y
    if value < threshold:
        near, far = node.left, node.right
    else:
        near, far = node.right, node.left

    _search_euclidean(near, ctx, state)

    if far is not None and abs(value - threshold) <= _pruning_bound(ctx, state):
        _search_euclidean(far, ctx, state)


def _search_geodesic(
    node: SearchNode | None,
    region: Region,
    ctx: _QueryContext,
    state: _SearchState,
) -> None:
    if node is None:
        return
    state.traversed += 1

    pos = ctx.query
    _insert_search_result(ctx, state, haversine_distance(pos.x, pos.y, node.x, node.y), node)

    which = next_child(pos, region, node)
    _search_geodesic(_get_child(node, which), next_region(node, region, which), ctx, state)

    opposite = which.opposite()
    far = _get_child(node, opposite)
    if far is None:
        return

    far_region = next_region(node, region, opposite)
    if min_dist_to_region(pos, far_region, node) <= _pruning_bound(ctx, state):
        _search_geodesic(far, far_region, ctx, state)


def _insert_search_result(ctx: _QueryContext, state: _SearchState, d: float, node: SearchNode) -> None:
    """Offer one candidate to the sorted result buffer."""
    result = state.result
    size = len(result)

    if size > 0 and d < result[-1].dist:
        # after any existing entries at the same distance
        index = bisect_right(result, d, key=lambda p: p.dist)
    elif size < ctx.k or d <= ctx.r:
        index = size
    else:
        return

    result.insert(index, MeasuredPoint(x=node.x, y=node.y, dist=d))
    if size >= ctx.k and result[size].dist > ctx.r:
        result.pop()


def _pruning_bound(ctx: _QueryContext, state: _SearchState) -> float:
    # The buffer is never empty here: the current node was offered while
    # the buffer held fewer than k >= 1 entries, or it was already full.
    return max(state.result[-1].dist, ctx.r)


def next_child(pos: Point, region: Region, node: SearchNode) -> ChildSide:
    """Choose the child on the query's side of the node's split.

    For a longitude split with the query outside ``[west, east]`` (it wrapped
    around the antimeridian) the side whose bounding meridian is angularly
    closer to the query is chosen.
    """
    if node.axis == 0:
        if region.west <= pos.x <= region.east:
            return ChildSide.LEFT if pos.x < node.x else ChildSide.RIGHT
        if abs_lng_diff(pos.x, region.west) < abs_lng_diff(pos.x, region.east):
            return ChildSide.LEFT
        return ChildSide.RIGHT

    return ChildSide.LEFT if pos.y < node.y else ChildSide.RIGHT


def next_region(node: SearchNode, current: Region, which: ChildSide) -> Region:
    """Return ``current`` narrowed to the given child of ``node``."""
    if node.axis == 0:
        if which is ChildSide.LEFT:
            return Region(north=current.north, south=current.south, west=current.west, east=node.x)
        return Region(north=current.north, south=current.south, west=node.x, east=current.east)

    if which is ChildSide.LEFT:
        return Region(north=node.y, south=current.south, west=current.west, east=current.east)
    return Region(north=current.north, south=node.y, west=current.west, east=current.east)


def min_dist_to_region(pos: Point, region: Region, node: SearchNode) -> float:
    """Return a lower bound on the geodesic distance from ``pos`` to ``region``.

    ``region`` is the child region on the far side of ``node``'s split, so
    ``pos`` must lie outside it. A longitude split is bounded by the two
    meridian edges, a latitude split by the two parallel edges plus, when
    the query is also beside the region, the meridian edges. Corners are
    covered by the edge endpoints.

    Raises:
        RegionInvariantError: If ``pos`` lies inside the region, or inside the
            coordinate range the split is supposed to exclude.
    """
    if region.contains_strictly(pos):
        raise RegionInvariantError(f"query ({pos.x}, {pos.y}) lies inside region {region}")

    if node.axis == 0:
        if region.within_lng_range(pos.x):
            raise RegionInvariantError(
                f"query longitude {pos.x} lies inside ({region.west}, {region.east}) of region {region}"
            )
        return min(
            dist_to_meridian(pos, region.east, region.south, region.north),
            dist_to_meridian(pos, region.west, region.south, region.north),
        )

    if region.within_lat_range(pos.y):
        raise RegionInvariantError(
            f"query latitude {pos.y} lies inside ({region.south}, {region.north}) of region {region}"
        )
    bound = min(
        dist_to_parallel(pos, region.north, region.west, region.east),
        dist_to_parallel(pos, region.south, region.west, region.east),
    )
    if not region.within_lng_range(pos.x):
        # Beside the region the nearest point can lie inside a meridian edge.
        bound = min(
            bound,
            dist_to_meridian(pos, region.east, region.south, region.north),
            dist_to_meridian(pos, region.west, region.south, region.north),
        )
    return bound


def _get_child(node: SearchNode, which: ChildSide) -> SearchNode | None:
    return node.left if which is ChildSide.LEFT else node.right
