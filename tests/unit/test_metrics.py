"""Unit tests for the run-wide metric accumulators."""

from __future__ import annotations

import pytest

from airbrx_perf.executor import ExecutionResult
from airbrx_perf.metrics import MetricsAccumulator, Rate, Trend

pytestmark = pytest.mark.unit


def test_trend_percentiles_interpolate_between_ranks():
    """Test that p50 and p95 interpolate linearly across sorted samples."""
    # Arrange
    trend = Trend("query_duration")
    for value in (500, 100, 300, 200, 400):
        trend.add(value)

    # Act / Assert
    assert trend.percentile(50) == 300
    assert trend.percentile(95) == pytest.approx(480)
    assert trend.percentile(0) == 100
    assert trend.percentile(100) == 500


def test_trend_percentile_rejects_out_of_range():
    with pytest.raises(ValueError):
        Trend("t").percentile(101)


def test_trend_summary_matches_percentiles():
    """Test that the summary figures agree with individual percentile lookups."""
    # Arrange
    trend = Trend("query_duration")
    for value in (900, 100, 700, 300, 500, 200):
        trend.add(value)

    # Act
    summary = trend.summary()

    # Assert
    assert summary["count"] == 6
    assert summary["min"] == 100
    assert summary["max"] == 900
    assert summary["med"] == trend.percentile(50)
    assert summary["p90"] == pytest.approx(trend.percentile(90))
    assert summary["p95"] == pytest.approx(trend.percentile(95))
    assert trend.samples == [900, 100, 700, 300, 500, 200]


def test_empty_metrics_report_zeroes_and_unobserved_cache():
    """Test that a run with no iterations reports zeroes and no cache-hit figure."""
    # Arrange
    accumulator = MetricsAccumulator()

    # Act
    snapshot = accumulator.snapshot()

    # Assert
    assert snapshot["total_requests"] == 0
    assert snapshot["error_rate"] == 0.0
    assert snapshot["cache_hit_rate"] is None
    assert snapshot["query_duration"]["p95"] == 0.0


def test_rate_counts_true_fraction():
    rate = Rate("cache_hit_rate")
    for value in (True, False, True, True):
        rate.add(value)
    assert rate.rate == 0.75


def test_record_folds_results_into_snapshot():
    """Test that recorded results drive every metric in the snapshot."""
    # Arrange
    accumulator = MetricsAccumulator()
    results = [
        ExecutionResult(success=True, duration_ms=100.0, cache_hit=True),
        ExecutionResult(success=True, duration_ms=200.0, cache_hit=True),
        ExecutionResult(success=False, duration_ms=300.0, cache_hit=False),
        ExecutionResult(success=True, duration_ms=400.0, cache_hit=False),
    ]

    # Act
    for result in results:
        accumulator.record(result)
    snapshot = accumulator.snapshot()

    # Assert
    assert snapshot["total_requests"] == 4
    assert snapshot["error_rate"] == 0.25
    assert snapshot["cache_hit_rate"] == 0.5
    assert snapshot["query_duration"]["avg"] == 250.0
    assert snapshot["query_duration"]["min"] == 100.0
    assert snapshot["query_duration"]["max"] == 400.0
    assert snapshot["query_duration"]["med"] == 250.0
