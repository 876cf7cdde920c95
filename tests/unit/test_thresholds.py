"""
Unit tests for threshold loading and evaluation.

Key SDET Concepts Demonstrated:
- Strict boundary semantics (a value exactly at the limit is a breach)
- YAML fixtures written to ``tmp_path`` for negative-path loading
"""

from __future__ import annotations

import pytest

from airbrx_perf.executor import ExecutionResult
from airbrx_perf.metrics import MetricsAccumulator
from airbrx_perf.thresholds import (
    Thresholds,
    all_passed,
    evaluate,
    evaluate_snapshot,
    load_thresholds,
    print_summary,
)

pytestmark = pytest.mark.unit


def test_packaged_profiles_match_declared_limits():
    """Test that the shipped thresholds.yml declares both run profiles."""
    assert load_thresholds(profile="load") == Thresholds(2000, 5, 50)
    assert load_thresholds(profile="smoke") == Thresholds(5000, 10, None)


def test_missing_profile_raises(tmp_path):
    path = tmp_path / "thresholds.yml"
    path.write_text("load:\n  max_p95_ms: 10\n  max_error_rate_percent: 1\n", encoding="utf-8")

    with pytest.raises(ValueError, match="no 'smoke' profile"):
        load_thresholds(path, "smoke")


def test_non_numeric_limit_raises(tmp_path):
    path = tmp_path / "thresholds.yml"
    path.write_text("load:\n  max_p95_ms: fast\n  max_error_rate_percent: 1\n", encoding="utf-8")

    with pytest.raises(ValueError, match="numeric"):
        load_thresholds(path, "load")


def test_all_limits_within_bounds_pass(thresholds):
    """Test that healthy metrics pass every check, including cache-hit rate."""
    # Act
    results = evaluate(
        p95_ms=1500, error_rate_percent=1.0, cache_hit_rate_percent=80.0, thresholds=thresholds
    )

    # Assert
    assert [result.metric for result in results] == [
        "P95 latency (ms)",
        "Error rate (%)",
        "Cache hit rate (%)",
    ]
    assert all_passed(results)


@pytest.mark.parametrize(
    ("p95", "errors", "cache", "failed_metric"),
    [
        (2000, 1.0, 80.0, "P95 latency (ms)"),
        (1500, 5.0, 80.0, "Error rate (%)"),
        (1500, 1.0, 50.0, "Cache hit rate (%)"),
    ],
)
def test_values_exactly_at_limit_breach(thresholds, p95, errors, cache, failed_metric):
    """Test that comparisons are strict on every threshold."""
    # Act
    results = evaluate(
        p95_ms=p95, error_rate_percent=errors, cache_hit_rate_percent=cache, thresholds=thresholds
    )

    # Assert
    assert [result.metric for result in results if not result.passed] == [failed_metric]
    assert not all_passed(results)


def test_cache_check_skipped_without_minimum_or_observation(thresholds):
    """Test that the cache-hit check only runs when both a limit and a value exist."""
    smoke = Thresholds(max_p95_ms=5000, max_error_rate_percent=10)

    assert len(evaluate(p95_ms=1, error_rate_percent=0, cache_hit_rate_percent=0.0, thresholds=smoke)) == 2
    assert len(evaluate(p95_ms=1, error_rate_percent=0, cache_hit_rate_percent=None, thresholds=thresholds)) == 2


def test_evaluate_snapshot_converts_rates_to_percent(thresholds):
    """Test that accumulator fractions are compared as percentages."""
    # Arrange
    accumulator = MetricsAccumulator()
    for index in range(20):
        accumulator.record(ExecutionResult(success=index != 0, duration_ms=100.0, cache_hit=index < 15))

    # Act
    results = evaluate_snapshot(accumulator.snapshot(), thresholds)

    # Assert
    by_metric = {result.metric: result for result in results}
    assert by_metric["Error rate (%)"].actual == pytest.approx(5.0)
    assert by_metric["Error rate (%)"].passed is False
    assert by_metric["Cache hit rate (%)"].actual == pytest.approx(75.0)
    assert by_metric["P95 latency (ms)"].actual == pytest.approx(100.0)


def test_print_summary_reports_overall_status(thresholds, capsys):
    results = evaluate(p95_ms=2500, error_rate_percent=0, cache_hit_rate_percent=90, thresholds=thresholds)

    print_summary(results)

    output = capsys.readouterr().out
    assert "P95 latency (ms)" in output
    assert "FAIL" in output
    assert output.strip().endswith("Overall: FAIL")
