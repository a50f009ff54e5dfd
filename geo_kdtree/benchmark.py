"""Reproducible kd-tree versus brute-force benchmark runs."""

from __future__ import annotations

from dataclasses import dataclass
import datetime as dt
import json
import logging
from pathlib import Path
import platform
import re
import subprocess
import sys
import time
from typing import Any

import numpy as np
import pandas as pd
import yaml

from .builder import build_tree, release_tree, tree_height
from .config import SearchConfig
from .models import MeasuredPoint, MeasureType, Point, SearchNode
from .sampling import random_coordinates
from .search import run_search
from .spatial_index import BruteForceSpatialIndex

logger = logging.getLogger(__name__)

DEFAULT_BOUNDS = {
    MeasureType.EUCLIDEAN: ((0.0, 100.0), (0.0, 100.0)),
    MeasureType.GEODESIC: ((-180.0, 180.0), (-90.0, 90.0)),
}


class ConfigError(ValueError):
    """Raised when benchmark config is invalid."""


@dataclass(frozen=True)
class BenchmarkConfig:
    """Resolved config for one reproducible benchmark run."""

    run_name: str
    output_root: Path
    seed: int | None
    points_path: Path | None
    points_format: str | None
    point_columns: dict[str, str]
    n_points: int
    n_queries: int
    x_bounds: tuple[float, float]
    y_bounds: tuple[float, float]
    search: SearchConfig

    def __post_init__(self) -> None:
        if self.n_points <= 0:
            raise ConfigError("inputs.n_points must be > 0")

        if self.n_queries <= 0:
            raise ConfigError("inputs.n_queries must be > 0")

        for name, (lower, upper) in (("x", self.x_bounds), ("y", self.y_bounds)):
            if upper < lower:
                raise ConfigError(f"inputs.bounds.{name} upper bound must be >= lower bound")

        if self.search.is_geodesic:
            if self.x_bounds[0] < -180.0 or self.x_bounds[1] > 180.0:
                raise ConfigError("inputs.bounds.x must stay within [-180, 180] for geodesic runs")
            if self.y_bounds[0] < -90.0 or self.y_bounds[1] > 90.0:
                raise ConfigError("inputs.bounds.y must stay within [-90, 90] for geodesic runs")

    def to_serializable_dict(self) -> dict[str, Any]:
        """Return config as plain Python types for YAML/JSON output."""
        return {
            "run": {
                "name": self.run_name,
                "output_root": str(self.output_root),
                "seed": self.seed,
            },
            "inputs": {
                "points_path": None if self.points_path is None else str(self.points_path),
                "points_format": self.points_format,
                "point_columns": self.point_columns,
                "n_points": self.n_points,
                "n_queries": self.n_queries,
                "bounds": {
                    "x": list(self.x_bounds),
                    "y": list(self.y_bounds),
                },
            },
            "search": {
                "k": self.search.k,
                "radius": self.search.radius,
                "measure": self.search.measure.value,
            },
        }


def load_benchmark_config(config_path: str | Path) -> BenchmarkConfig:
    """Load and validate YAML config for a benchmark run."""
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")

    with path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle)

    if not isinstance(raw, dict):
        raise ConfigError("config root must be a mapping")

    run = _as_dict(raw.get("run"), "run")
    inputs = _as_dict(raw.get("inputs"), "inputs")
    search = _as_dict(raw.get("search"), "search")

    run_name = str(run.get("name", "benchmark"))
    if not run_name.strip():
        raise ConfigError("run.name must be a non-empty string")

    output_root = Path(str(run.get("output_root", "runs"))).expanduser().resolve()
    seed = run.get("seed")
    if seed is not None:
        seed = int(seed)

    try:
        search_config = SearchConfig(
            k=int(search.get("k", 1)),
            radius=float(search.get("radius", 0.0)),
            measure=str(search.get("measure", MeasureType.EUCLIDEAN.value)),
        )
    except ValueError as exc:
        raise ConfigError(f"invalid search section: {exc}") from exc

    points_path_raw = inputs.get("points_path")
    if points_path_raw is None:
        points_path = None
        points_format = None
    else:
        points_path = Path(str(points_path_raw)).expanduser().resolve()
        points_format = _normalize_format(str(inputs.get("points_format", "auto")), points_path)

    point_columns = _default_point_columns(_as_dict(inputs.get("point_columns", {}), "inputs.point_columns"))

    bounds = _as_dict(inputs.get("bounds", {}), "inputs.bounds")
    default_x, default_y = DEFAULT_BOUNDS[search_config.measure]
    x_bounds = _parse_bounds(bounds.get("x", default_x), "inputs.bounds.x")
    y_bounds = _parse_bounds(bounds.get("y", default_y), "inputs.bounds.y")

    return BenchmarkConfig(
        run_name=run_name,
        output_root=output_root,
        seed=seed,
        points_path=points_path,
        points_format=points_format,
        point_columns=point_columns,
        n_points=int(inputs.get("n_points", 10000)),
        n_queries=int(inputs.get("n_queries", 100)),
        x_bounds=x_bounds,
        y_bounds=y_bounds,
        search=search_config,
    )


def run_benchmark(config: BenchmarkConfig, limit_points: int | None = None) -> Path:
    """Run one benchmark and return the output run directory."""
    config.output_root.mkdir(parents=True, exist_ok=True)

    timestamp = dt.datetime.now(dt.timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    run_dir = config.output_root / f"{_slugify(config.run_name)}_{timestamp}"
    run_dir.mkdir(parents=False, exist_ok=False)

    config_dir = run_dir / "config"
    logs_dir = run_dir / "logs"
    config_dir.mkdir(parents=True, exist_ok=True)
    logs_dir.mkdir(parents=True, exist_ok=True)

    steps_log_path = logs_dir / "steps.jsonl"
    _append_step_log(
        steps_log_path,
        event="run_start",
        payload={"run_name": config.run_name, "seed": config.seed},
    )
    logger.info("Benchmark run %r writing to %s", config.run_name, run_dir)

    rng = np.random.default_rng(config.seed)

    points_xy = _load_points(config, rng)
    if limit_points is not None:
        points_xy = _sample_rows(points_xy, int(limit_points), rng)
    _append_step_log(
        steps_log_path,
        event="points_loaded",
        payload={
            "source": "table" if config.points_path is not None else "sampled",
            "n_points": int(len(points_xy)),
        },
    )

    queries_xy = random_coordinates(config.n_queries, rng, *config.x_bounds, *config.y_bounds)

    started = time.perf_counter()
    root = build_tree(points_xy)
    build_seconds = time.perf_counter() - started
    height = tree_height(root)
    _append_step_log(
        steps_log_path,
        event="tree_built",
        payload={"build_seconds": build_seconds, "tree_height": int(height)},
    )
    logger.info("Built tree over %d points in %.4fs (height %d)", len(points_xy), build_seconds, height)

    reference = BruteForceSpatialIndex(points_xy, measure=config.search.measure)
    query_rows = _run_queries(root, reference, queries_xy, config.search)
    release_tree(root)

    n_mismatched = sum(1 for row in query_rows if not row["matches"])
    _append_step_log(
        steps_log_path,
        event="queries_complete",
        payload={"n_queries": int(len(query_rows)), "n_mismatched_queries": int(n_mismatched)},
    )
    if n_mismatched:
        logger.warning("%d of %d queries disagree with the brute-force reference", n_mismatched, len(query_rows))

    summary = _compute_summary(
        config=config,
        n_points=len(points_xy),
        build_seconds=build_seconds,
        tree_height=height,
        query_rows=query_rows,
    )

    _write_yaml(config_dir / "config_resolved.yaml", config.to_serializable_dict())
    _write_json(config_dir / "metadata.json", _build_metadata(config=config, run_dir=run_dir))
    _write_json(run_dir / "summary.json", summary)
    pd.DataFrame(query_rows).to_csv(run_dir / "queries.csv", index=False)
    _append_step_log(
        steps_log_path,
        event="run_complete",
        payload={
            "n_queries": int(summary["n_queries"]),
            "speedup": summary["speedup"],
        },
    )

    return run_dir


def run_benchmark_from_config(config_path: str | Path, limit_points: int | None = None) -> Path:
    """Convenience wrapper: load config, execute benchmark, and return run dir."""
    config = load_benchmark_config(config_path)
    return run_benchmark(config=config, limit_points=limit_points)


def results_match(found: list[MeasuredPoint], expected: list[MeasuredPoint]) -> bool:
    """Compare two result lists by distance profile.

    Points at exactly equal distance may come back in any order, so only the
    sorted distances are compared.
    """
    if len(found) != len(expected):
        return False

    if not found:
        return True

    return bool(
        np.allclose(
            [p.dist for p in found],
            [p.dist for p in expected],
            rtol=1e-9,
            atol=1e-6,
        )
    )


def _run_queries(
    root: SearchNode,
    reference: BruteForceSpatialIndex,
    queries_xy: np.ndarray,
    search: SearchConfig,
) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []

    for idx, (x, y) in enumerate(queries_xy):
        query = Point(float(x), float(y))

        started = time.perf_counter()
        found = run_search(root, query, search)
        tree_seconds = time.perf_counter() - started

        started = time.perf_counter()
        expected = reference.query_nearest(query, k=search.k, radius=search.radius)
        brute_force_seconds = time.perf_counter() - started

        rows.append(
            {
                "query_index": idx,
                "x": query.x,
                "y": query.y,
                "n_results": len(found),
                "nearest_dist": found[0].dist,
                "tree_seconds": tree_seconds,
                "brute_force_seconds": brute_force_seconds,
                "matches": results_match(found, expected),
            }
        )

    return rows


def _load_points(config: BenchmarkConfig, rng: np.random.Generator) -> np.ndarray:
    if config.points_path is None:
        return random_coordinates(config.n_points, rng, *config.x_bounds, *config.y_bounds)

    assert config.points_format is not None
    df = _load_table(config.points_path, config.points_format)

    columns = [config.point_columns["x"], config.point_columns["y"]]
    _require_columns(df, columns, table_name="points")
    for col in columns:
        _validate_numeric_series(df[col], f"points.{col}")

    if len(df) == 0:
        raise ValueError("points table must not be empty")

    points_xy = df.loc[:, columns].apply(pd.to_numeric, errors="raise").to_numpy(dtype=np.float64, copy=True)

    if config.search.is_geodesic:
        if (np.abs(points_xy[:, 0]) > 180.0).any():
            raise ValueError("points longitude column must stay within [-180, 180]")
        if (np.abs(points_xy[:, 1]) > 90.0).any():
            raise ValueError("points latitude column must stay within [-90, 90]")

    return points_xy


def _as_dict(value: Any, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping")
    return value


def _default_point_columns(overrides: dict[str, Any]) -> dict[str, str]:
    cols = {
        "x": "x",
        "y": "y",
    }
    cols.update(overrides)

    for key in ("x", "y"):
        if cols.get(key) is None:
            raise ConfigError(f"inputs.point_columns.{key} must not be null")
        cols[key] = str(cols[key])

    return cols


def _parse_bounds(value: Any, name: str) -> tuple[float, float]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise ConfigError(f"{name} must be a [lower, upper] pair")
    return (float(value[0]), float(value[1]))


def _normalize_format(raw_format: str, path: Path) -> str:
    value = raw_format.strip().lower()
    if value == "auto":
        suffix = path.suffix.lower()
        if suffix in {".csv"}:
            return "csv"
        if suffix in {".tsv", ".txt"}:
            return "tsv"
        if suffix in {".parquet", ".pq"}:
            return "parquet"
        raise ConfigError(f"cannot infer format from extension for file: {path}")

    if value not in {"csv", "tsv", "parquet"}:
        raise ConfigError(f"unsupported table format: {raw_format!r}")
    return value


def _load_table(path: Path, table_format: str) -> pd.DataFrame:
    if not path.exists():
        raise FileNotFoundError(f"table file not found: {path}")

    if table_format == "csv":
        return pd.read_csv(path)
    if table_format == "tsv":
        return pd.read_csv(path, sep="\t")
    if table_format == "parquet":
        return pd.read_parquet(path)

    raise ConfigError(f"unsupported format in loader: {table_format!r}")


def _sample_rows(points_xy: np.ndarray, limit: int, rng: np.random.Generator) -> np.ndarray:
    if limit <= 0:
        raise ValueError("limit values must be > 0")

    if len(points_xy) <= limit:
        return points_xy

    keep = rng.choice(len(points_xy), size=limit, replace=False)
    return points_xy[np.sort(keep)]


def _require_columns(df: pd.DataFrame, columns: list[str], table_name: str) -> None:
    missing = [col for col in columns if col not in df.columns]
    if missing:
        raise ValueError(f"missing columns in {table_name} table: {missing}")


def _validate_numeric_series(series: pd.Series, name: str) -> None:
    numeric = pd.to_numeric(series, errors="coerce")
    if numeric.isna().any():
        raise ValueError(f"column {name} contains non-numeric or missing values")

    values = numeric.to_numpy(dtype=np.float64, copy=False)
    if not np.isfinite(values).all():
        raise ValueError(f"column {name} contains non-finite values")


def _compute_summary(
    config: BenchmarkConfig,
    n_points: int,
    build_seconds: float,
    tree_height: int,
    query_rows: list[dict[str, Any]],
) -> dict[str, Any]:
    tree_times = np.asarray([row["tree_seconds"] for row in query_rows], dtype=np.float64)
    brute_times = np.asarray([row["brute_force_seconds"] for row in query_rows], dtype=np.float64)
    n_results = np.asarray([row["n_results"] for row in query_rows], dtype=np.int64)
    n_mismatched = sum(1 for row in query_rows if not row["matches"])

    tree_total = float(tree_times.sum())
    brute_total = float(brute_times.sum())

    summary = {
        "measure": config.search.measure.value,
        "k": config.search.k,
        "radius": config.search.radius,
        "n_points": int(n_points),
        "n_queries": int(len(query_rows)),
        "tree_height": int(tree_height),
        "build_seconds": float(build_seconds),
        "tree_query_seconds_total": tree_total,
        "brute_force_seconds_total": brute_total,
        "tree_query_seconds_p90": float(np.percentile(tree_times, 90)),
        "speedup": float(brute_total / tree_total) if tree_total > 0 else None,
        "results_mean": float(n_results.mean()),
        "n_mismatched_queries": int(n_mismatched),
    }
    return summary


def _build_metadata(config: BenchmarkConfig, run_dir: Path) -> dict[str, Any]:
    now = dt.datetime.now(dt.timezone.utc).isoformat()

    metadata = {
        "timestamp_utc": now,
        "run_dir": str(run_dir),
        "seed": config.seed,
        "python_version": sys.version,
        "platform": platform.platform(),
        "numpy_version": np.__version__,
        "git_commit": _try_git_commit(),
    }
    return metadata


def _try_git_commit() -> str | None:
    try:
        completed = subprocess.run(
            ["git", "rev-parse", "HEAD"],
            check=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
        )
    except (OSError, subprocess.CalledProcessError):
        # not a checkout, or git is not installed
        return None
    return completed.stdout.strip() or None


def _write_json(path: Path, payload: dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, sort_keys=False)
        handle.write("\n")


def _write_yaml(path: Path, payload: dict[str, Any]) -> None:
    with path.open("w", encoding="utf-8") as handle:
        yaml.safe_dump(payload, handle, sort_keys=False)


def _append_step_log(path: Path, event: str, payload: dict[str, Any]) -> None:
    entry = {
        "timestamp_utc": dt.datetime.now(dt.timezone.utc).isoformat(),
        "event": event,
        "payload": payload,
    }
    with path.open("a", encoding="utf-8") as handle:
        handle.write(json.dumps(entry, sort_keys=False))
        handle.write("\n")


def _slugify(text: str) -> str:
    normalized = re.sub(r"[^A-Za-z0-9._-]+", "_", text.strip())
    normalized = normalized.strip("_")
    return normalized or "item"
