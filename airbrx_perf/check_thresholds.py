"""
Validate a finished run against threshold configuration.

After a headless Locust run completes, CI invokes this script to decide
whether the build passes or fails.  It reads the ``*_stats.csv`` file
that Locust writes with ``--csv``, extracts the **Aggregated** row, and
compares error rate and p95 latency against the profile limits in
:file:`thresholds.yml`.  Locust knows nothing about the gateway cache,
so the cache-hit rate comes from the JSON summary the harness writes at
teardown (``AIRBRX_SUMMARY_PATH``), passed with ``--summary``.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0`` — all thresholds passed
- ``1`` — at least one threshold was breached
- ``2`` — the script itself failed (missing file, bad YAML, etc.)
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from pathlib import Path
from typing import Any

from airbrx_perf.thresholds import (
    DEFAULT_THRESHOLDS_PATH,
    all_passed,
    evaluate,
    load_thresholds,
    print_summary,
)

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the threshold checker."""
    parser = argparse.ArgumentParser(
        description="Check Locust stats CSV (and harness summary) against performance thresholds."
    )
    parser.add_argument(
        "--stats",
        required=True,
        type=Path,
        help="Path to Locust *_stats.csv file",
    )
    parser.add_argument(
        "--summary",
        type=Path,
        default=None,
        help="Path to the harness JSON summary (enables the cache-hit check)",
    )
    parser.add_argument(
        "--thresholds",
        type=Path,
        default=DEFAULT_THRESHOLDS_PATH,
        help="Path to thresholds YAML file",
    )
    parser.add_argument(
        "--profile",
        default="load",
        help="Threshold profile to apply (load or smoke)",
    )
    return parser.parse_args(argv)


def load_aggregated_row(stats_path: Path) -> dict[str, str]:
    """
    Return the run-wide ``Aggregated`` row of a Locust ``*_stats.csv``.

    Raises:
        ValueError: If the file has no ``Aggregated`` row.
    """
    with stats_path.open("r", encoding="utf-8", newline="") as handle:
        for row in csv.DictReader(handle):
            if "Aggregated" in (row.get("Name"), row.get("Type")):
                return row

    raise ValueError("Could not find 'Aggregated' row in stats CSV")


def _parse_float(value: Any, field_name: str) -> float:
    """Read a CSV cell as a number; a trailing ``%`` is ignored."""
    text = "" if value is None else str(value).strip().rstrip("%")
    if not text:
        raise ValueError(f"Missing value for {field_name}")

    try:
        return float(text)
    except ValueError as exc:
        raise ValueError(f"Non-numeric value for {field_name}: {value}") from exc


# Column headers Locust has used for the 95th percentile.
P95_COLUMNS = ("95%", "95%ile", "95th percentile", "p95")


def extract_p95_ms(row: dict[str, str]) -> float:
    """
    Return the p95 latency (ms) from the first populated ``P95_COLUMNS`` entry.

    Raises:
        ValueError: If no p95 column is populated.
    """
    for column in P95_COLUMNS:
        if row.get(column):
            return _parse_float(row[column], column)
    raise ValueError("Could not find p95 column in stats CSV")


def compute_error_rate_percent(row: dict[str, str]) -> float:
    """
    Compute ``Failure Count / Request Count × 100``.

    Raises:
        ValueError: If counts are missing or ``Request Count`` is zero.
    """
    request_count = _parse_float(row.get("Request Count"), "Request Count")
    failure_count = _parse_float(row.get("Failure Count"), "Failure Count")

    if request_count <= 0:
        raise ValueError("Request Count must be > 0 for threshold checks")

    return (failure_count / request_count) * 100.0


def load_cache_hit_rate_percent(summary_path: Path) -> float | None:
    """
    Read the cache-hit rate from a harness JSON summary.

    Returns:
        The rate as a percentage, or ``None`` when the summary records
        ``null`` (the writing process observed no requests).

    Raises:
        ValueError: If the summary lacks a ``cache_hit_rate`` entry or
            the value is non-numeric.
    """
    with summary_path.open("r", encoding="utf-8") as handle:
        summary = json.load(handle)

    try:
        value = summary["cache_hit_rate"]
        if value is None:
            return None
        return float(value) * 100.0
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError("Summary file must define a numeric cache_hit_rate") from exc


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: load thresholds, parse the run artefacts, compare, print.

    Returns:
        ``EXIT_PASS`` (0) if all thresholds are met,
        ``EXIT_THRESHOLD_BREACH`` (1) if any are exceeded, or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.
    """
    args = parse_args(argv)

    try:
        thresholds = load_thresholds(args.thresholds, args.profile)
        row = load_aggregated_row(args.stats)
        cache_hit_rate = load_cache_hit_rate_percent(args.summary) if args.summary else None
        if args.summary and cache_hit_rate is None:
            print(f"No cache hit rate recorded in {args.summary}; skipping cache check")
        results = evaluate(
            p95_ms=extract_p95_ms(row),
            error_rate_percent=compute_error_rate_percent(row),
            cache_hit_rate_percent=cache_hit_rate,
            thresholds=thresholds,
        )
    except Exception as exc:
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    print_summary(results)
    return EXIT_PASS if all_passed(results) else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())
