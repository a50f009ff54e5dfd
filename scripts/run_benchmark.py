#!/usr/bin/env python
"""Benchmark kd-tree queries against brute-force sorting using a YAML config.

Usage:
    python scripts/run_benchmark.py --config configs/benchmark.template.yaml
"""

from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
import sys


# Ensure local package import works when the script is executed directly.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from geo_kdtree.benchmark import run_benchmark_from_config


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run reproducible kd-tree benchmark")
    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="Path to YAML config file (configs/*.yaml)",
    )
    parser.add_argument(
        "--limit-points",
        type=int,
        default=None,
        help="Optional debug limit: randomly sample this many points",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (DEBUG also reports visited nodes per query)",
    )
    return parser


def main() -> None:
    args = _build_arg_parser().parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    run_dir = run_benchmark_from_config(
        config_path=args.config,
        limit_points=args.limit_points,
    )

    summary_path = run_dir / "summary.json"
    with summary_path.open("r", encoding="utf-8") as handle:
        summary = json.load(handle)

    print(f"Benchmark complete: {run_dir}")
    print(
        "Summary:",
        {
            "n_points": summary["n_points"],
            "n_queries": summary["n_queries"],
            "build_seconds": summary["build_seconds"],
            "speedup": summary["speedup"],
            "n_mismatched_queries": summary["n_mismatched_queries"],
        },
    )


if __name__ == "__main__":
    main()
