"""
Unit tests for the CI threshold checker.

Writes small Locust-style ``*_stats.csv`` files (and harness JSON
summaries) to ``tmp_path`` and asserts the three-state exit codes.
"""

from __future__ import annotations

import dataclasses
import json

import pytest

from airbrx_perf import check_thresholds
from airbrx_perf.lifecycle import RunContext, teardown
from airbrx_perf.metrics import MetricsAccumulator

pytestmark = pytest.mark.unit

CSV_HEADER = "Type,Name,Request Count,Failure Count,Median Response Time,95%,99%\n"


def _write_stats(tmp_path, *, requests_total=200, failures=2, p95=850):
    path = tmp_path / "load_stats.csv"
    path.write_text(
        CSV_HEADER
        + f"POST,/query [POST],{requests_total},{failures},120,{p95},1200\n"
        + f",Aggregated,{requests_total},{failures},120,{p95},1200\n",
        encoding="utf-8",
    )
    return path


def _write_summary(tmp_path, cache_hit_rate):
    path = tmp_path / "summary.json"
    path.write_text(json.dumps({"cache_hit_rate": cache_hit_rate}), encoding="utf-8")
    return path


def test_aggregated_row_metrics_are_extracted(tmp_path):
    """Test that p95 and error rate come from the Aggregated row."""
    row = check_thresholds.load_aggregated_row(_write_stats(tmp_path, requests_total=400, failures=10))

    assert check_thresholds.extract_p95_ms(row) == 850.0
    assert check_thresholds.compute_error_rate_percent(row) == 2.5


def test_p95_column_variants_are_recognised():
    assert check_thresholds.extract_p95_ms({"95%ile": "410"}) == 410.0
    with pytest.raises(ValueError):
        check_thresholds.extract_p95_ms({"99%": "900"})


@pytest.mark.parametrize(
    "row",
    [
        {"Request Count": "0", "Failure Count": "0"},
        {"Request Count": "", "Failure Count": "0"},
        {"Failure Count": "0"},
        {"Request Count": "many", "Failure Count": "0"},
    ],
)
def test_unusable_request_counts_are_errors(row):
    with pytest.raises(ValueError):
        check_thresholds.compute_error_rate_percent(row)


def test_passing_run_exits_zero(tmp_path, capsys):
    """Test that a healthy run with a good cache-hit rate exits 0."""
    # Arrange
    stats = _write_stats(tmp_path)
    summary = _write_summary(tmp_path, 0.72)

    # Act
    exit_code = check_thresholds.main(["--stats", str(stats), "--summary", str(summary)])

    # Assert
    assert exit_code == check_thresholds.EXIT_PASS
    output = capsys.readouterr().out
    assert "Cache hit rate (%)" in output
    assert "Overall: PASS" in output


@pytest.mark.parametrize(
    ("stats_kwargs", "cache_hit_rate"),
    [
        ({"p95": 2400}, 0.72),
        ({"failures": 20}, 0.72),
        ({}, 0.31),
    ],
)
def test_breaches_exit_one(tmp_path, stats_kwargs, cache_hit_rate):
    """Test that breaching latency, error rate or cache-hit rate exits 1."""
    stats = _write_stats(tmp_path, **stats_kwargs)
    summary = _write_summary(tmp_path, cache_hit_rate)

    exit_code = check_thresholds.main(["--stats", str(stats), "--summary", str(summary)])

    assert exit_code == check_thresholds.EXIT_THRESHOLD_BREACH


def test_smoke_profile_ignores_cache(tmp_path):
    """Test that the smoke profile has no cache-hit gate even with a poor summary."""
    stats = _write_stats(tmp_path, p95=4000, failures=10)
    summary = _write_summary(tmp_path, 0.0)

    exit_code = check_thresholds.main(
        ["--stats", str(stats), "--summary", str(summary), "--profile", "smoke"]
    )

    assert exit_code == check_thresholds.EXIT_PASS


def test_summary_from_process_without_users_skips_cache_gate(tmp_path, run_config, capsys):
    """Test that a teardown summary with no local requests does not fail the cache gate."""
    # Arrange
    summary_path = tmp_path / "summary.json"
    config = dataclasses.replace(run_config, summary_path=summary_path)
    context = RunContext(start_time="2026-01-01T00:00:00+00:00", gateway_url=config.base_url)
    teardown(context, MetricsAccumulator(), config)
    stats = _write_stats(tmp_path, requests_total=1000, failures=0, p95=300)

    # Act
    exit_code = check_thresholds.main(["--stats", str(stats), "--summary", str(summary_path)])

    # Assert
    assert json.loads(summary_path.read_text(encoding="utf-8"))["cache_hit_rate"] is None
    assert exit_code == check_thresholds.EXIT_PASS
    output = capsys.readouterr().out
    assert "skipping cache check" in output
    assert "Cache hit rate (%)" not in output


def test_summary_without_cache_entry_exits_two(tmp_path):
    summary = tmp_path / "summary.json"
    summary.write_text(json.dumps({"total_requests": 3}), encoding="utf-8")

    exit_code = check_thresholds.main(["--stats", str(_write_stats(tmp_path)), "--summary", str(summary)])

    assert exit_code == check_thresholds.EXIT_SCRIPT_ERROR


def test_missing_stats_file_exits_two(tmp_path, capsys):
    """Test that a script failure is distinguishable from a threshold breach."""
    exit_code = check_thresholds.main(["--stats", str(tmp_path / "missing.csv")])

    assert exit_code == check_thresholds.EXIT_SCRIPT_ERROR
    assert "Threshold check failed" in capsys.readouterr().err
