"""
Shared pytest fixtures for the load-harness test suite.

Provides a ready-made run configuration pointed at a non-routable host,
its thresholds, and a fresh metrics accumulator per test.  Fake clients,
canned responses and scripted clocks live in :mod:`tests.fakes`.

Key SDET Concepts Demonstrated:
- Function-scoped fixtures so no metric state leaks between tests
- Building configuration directly instead of through the environment
"""

from __future__ import annotations

# Locust applies gevent's monkey-patching on import; it must run before
# requests/urllib3 are imported by any test module.
import locust  # noqa: F401
import pytest

from airbrx_perf.config import RunConfiguration
from airbrx_perf.metrics import MetricsAccumulator
from airbrx_perf.stages import DEFAULT_STAGES
from airbrx_perf.thresholds import Thresholds


@pytest.fixture
def thresholds() -> Thresholds:
    return Thresholds(max_p95_ms=2000, max_error_rate_percent=5, min_cache_hit_rate_percent=50)


@pytest.fixture
def run_config(thresholds: Thresholds) -> RunConfiguration:
    """Load-profile configuration pointed at a non-routable test host."""
    return RunConfiguration(
        profile="load",
        base_url="http://gateway.test",
        stages=DEFAULT_STAGES,
        thresholds=thresholds,
        think_time_min=1.0,
        think_time_max=4.0,
    )


@pytest.fixture
def metrics() -> MetricsAccumulator:
    return MetricsAccumulator()
