"""
Run-level pass/fail thresholds.

Limits live in :file:`thresholds.yml`, keyed by run profile, so that CI
can tighten or relax them without touching code.  The same evaluation is
used in three places: the Locust ``test_stop`` hook, the smoke harness,
and the :mod:`~airbrx_perf.check_thresholds` CLI.

All comparisons are strict: a p95 exactly at its limit is a breach.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

DEFAULT_THRESHOLDS_PATH = Path(__file__).resolve().parent / "thresholds.yml"


@dataclass(frozen=True)
class Thresholds:
    """
    Numeric limits for one run profile.

    Attributes:
        max_p95_ms: Upper bound for the 95th-percentile query duration.
        max_error_rate_percent: Upper bound for the failed-iteration rate.
        min_cache_hit_rate_percent: Lower bound for the cache-hit rate,
            or ``None`` when the profile does not gate on caching.
    """

    max_p95_ms: float
    max_error_rate_percent: float
    min_cache_hit_rate_percent: float | None = None


@dataclass(frozen=True)
class ThresholdResult:
    metric: str
    actual: float
    limit: float
    comparison: str
    passed: bool


def load_thresholds(path: Path | None = None, profile: str = "load") -> Thresholds:
    """
    Read the limits for *profile* from a YAML file.

    Args:
        path: YAML file with one mapping per profile.  Defaults to the
            packaged :file:`thresholds.yml`.
        profile: Top-level key to read (``"load"`` or ``"smoke"``).

    Returns:
        The profile's :class:`Thresholds`.

    Raises:
        ValueError: If the profile is missing or a limit is missing or
            non-numeric.
    """
    path = path or DEFAULT_THRESHOLDS_PATH
    with Path(path).open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}

    section = data.get(profile)
    if not isinstance(section, dict):
        raise ValueError(f"Thresholds file has no '{profile}' profile")

    try:
        max_p95_ms = float(section["max_p95_ms"])
        max_error_rate = float(section["max_error_rate_percent"])
        min_cache = section.get("min_cache_hit_rate_percent")
        min_cache_hit_rate = None if min_cache is None else float(min_cache)
    except (KeyError, TypeError, ValueError) as exc:
        raise ValueError(
            f"Profile '{profile}' must define numeric max_p95_ms and max_error_rate_percent"
        ) from exc

    return Thresholds(
        max_p95_ms=max_p95_ms,
        max_error_rate_percent=max_error_rate,
        min_cache_hit_rate_percent=min_cache_hit_rate,
    )


def evaluate(
    *,
    p95_ms: float,
    error_rate_percent: float,
    cache_hit_rate_percent: float | None,
    thresholds: Thresholds,
) -> list[ThresholdResult]:
    """
    Compare observed metrics against *thresholds*.

    The cache-hit check is skipped when either the profile has no
    minimum or no cache-hit figure was observed.
    """
    results = [
        ThresholdResult(
            metric="P95 latency (ms)",
            actual=p95_ms,
            limit=thresholds.max_p95_ms,
            comparison="<",
            passed=p95_ms < thresholds.max_p95_ms,
        ),
        ThresholdResult(
            metric="Error rate (%)",
            actual=error_rate_percent,
            limit=thresholds.max_error_rate_percent,
            comparison="<",
            passed=error_rate_percent < thresholds.max_error_rate_percent,
        ),
    ]
    if thresholds.min_cache_hit_rate_percent is not None and cache_hit_rate_percent is not None:
        results.append(
            ThresholdResult(
                metric="Cache hit rate (%)",
                actual=cache_hit_rate_percent,
                limit=thresholds.min_cache_hit_rate_percent,
                comparison=">",
                passed=cache_hit_rate_percent > thresholds.min_cache_hit_rate_percent,
            )
        )
    return results


def evaluate_snapshot(snapshot: dict[str, Any], thresholds: Thresholds) -> list[ThresholdResult]:
    """Evaluate a :meth:`MetricsAccumulator.snapshot` dictionary."""
    cache_hit_rate = snapshot.get("cache_hit_rate")
    return evaluate(
        p95_ms=float(snapshot["query_duration"]["p95"]),
        error_rate_percent=float(snapshot["error_rate"]) * 100.0,
        cache_hit_rate_percent=None if cache_hit_rate is None else float(cache_hit_rate) * 100.0,
        thresholds=thresholds,
    )


def all_passed(results: list[ThresholdResult]) -> bool:
    return all(result.passed for result in results)


def print_summary(results: list[ThresholdResult]) -> None:
    """Print a human-readable results table to stdout for CI logs."""
    print("Performance Threshold Check")
    print("-" * 64)
    print(f"{'Metric':<22}{'Actual':>12}{'Limit':>16}{'Status':>12}")
    print("-" * 64)
    for result in results:
        status = "PASS" if result.passed else "FAIL"
        limit = f"{result.comparison} {result.limit:.2f}"
        print(f"{result.metric:<22}{result.actual:>12.2f}{limit:>16}{status:>12}")
    print("-" * 64)
    print(f"Overall: {'PASS' if all_passed(results) else 'FAIL'}")
