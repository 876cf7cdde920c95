# ruff: noqa: E402
"""
Locust entrypoint for the AirBrx gateway load test.

This is the file that the ``locust`` CLI discovers and loads.  It
defines the virtual-user class, the staged ramp shape, and the event
listeners that wrap the run with setup, teardown and threshold checks.

Usage examples::

    # Interactive web UI against a local gateway:
    locust -f airbrx_perf/locustfile.py

    # Headless CI run with CSV output and a JSON metric summary:
    AIRBRX_URL=http://gateway:8080 AIRBRX_SUMMARY_PATH=reports/summary.json \\
        locust -f airbrx_perf/locustfile.py --headless --csv reports/load

    # Shorter custom ramp:
    AIRBRX_STAGES="10s:2,20s:5,10s:0" locust -f airbrx_perf/locustfile.py --headless

Key Concepts Demonstrated:
- ``LoadTestShape`` driving a staged ramp instead of fixed user counts
- ``test_start`` / ``test_stop`` hooks for one-off setup and teardown
- ``quitting`` hook that turns threshold breaches into a non-zero exit
- ``sys.path`` manipulation so imports resolve regardless of the
  working directory Locust is launched from
"""

from __future__ import annotations

import dataclasses
import logging
import sys
from pathlib import Path

from locust import HttpUser, LoadTestShape, between, events, task
from locust.runners import WorkerRunner

# Locust may be invoked from any directory.  Inserting the project root
# onto ``sys.path`` guarantees that ``airbrx_perf`` imports resolve.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from airbrx_perf import lifecycle
from airbrx_perf.config import RunConfiguration
from airbrx_perf.executor import QueryExecutor
from airbrx_perf.helpers import IterationContext, next_user_number
from airbrx_perf.metrics import MetricsAccumulator
from airbrx_perf.scenarios import TEST_QUERIES, WeightedScenarioSelector
from airbrx_perf.stages import spawn_rate_for, target_at
from airbrx_perf.thresholds import all_passed, evaluate, print_summary

logger = logging.getLogger(__name__)

CONFIG = RunConfiguration.from_env()
METRICS = MetricsAccumulator()

_run_context: lifecycle.RunContext | None = None

__all__ = ["GatewayQueryUser", "StagedRampShape"]


class GatewayQueryUser(HttpUser):
    """
    Dashboard user issuing weighted NWEA queries through the gateway.

    Each iteration picks a scenario by weight, sends it, and records the
    outcome; Locust then waits 1–4 seconds to mimic a person reading
    the dashboard before the next query.

    Attributes:
        user_number: Process-unique number used in correlation ids.
        iteration: Count of iterations this user has started.
    """

    host = CONFIG.base_url
    wait_time = between(CONFIG.think_time_min, CONFIG.think_time_max)

    user_number: int
    iteration: int

    def on_start(self) -> None:
        """Assign an identity and build this user's selector and executor."""
        self.user_number = next_user_number()
        self.iteration = 0
        self.selector = WeightedScenarioSelector(TEST_QUERIES)
        self.executor = QueryExecutor(
            CONFIG,
            METRICS,
            request_options={"name": "/query [POST]", "catch_response": True},
        )

    @task
    def run_query(self) -> None:
        """Select, execute and validate one weighted query."""
        scenario = self.selector.select()
        context = IterationContext.now(self.user_number, self.iteration)
        self.iteration += 1
        self.executor.execute(self.client, scenario, context)


class StagedRampShape(LoadTestShape):
    """
    Follow the configured ramp stages, then stop the run.

    Targets are interpolated linearly within each stage, and the spawn
    rate tracks the stage's slope so Locust reaches each target on time.
    """

    stages = CONFIG.stages

    def tick(self):
        run_time = self.get_run_time()
        target = target_at(self.stages, run_time)
        if target is None:
            return None
        return target, spawn_rate_for(self.stages, run_time)


def _target_config(environment) -> RunConfiguration:
    """Point the configuration at the host Locust was given, if any."""
    host = getattr(environment, "host", None)
    if host:
        return dataclasses.replace(CONFIG, base_url=host.rstrip("/"))
    return CONFIG


@events.test_start.add_listener
def _on_test_start(environment, **_kwargs):
    """Run one-off setup on the master or the standalone process."""
    global _run_context
    if isinstance(environment.runner, WorkerRunner):
        return
    _run_context = lifecycle.setup(_target_config(environment))


@events.test_stop.add_listener
def _on_test_stop(environment, **_kwargs):
    """Report the run window and the harness's own metric summary."""
    if isinstance(environment.runner, WorkerRunner) or _run_context is None:
        return
    lifecycle.teardown(_run_context, METRICS, _target_config(environment))


@events.quitting.add_listener
def _check_thresholds(environment, **_kwargs):
    """
    Evaluate run-level thresholds and set a failing exit code on breach.

    Latency and error rate come from Locust's aggregated statistics; the
    cache-hit rate comes from the harness accumulator, which is only
    populated in processes that ran virtual users.
    """
    if isinstance(environment.runner, WorkerRunner):
        return

    total = environment.stats.total
    if total.num_requests == 0:
        logger.warning("No requests recorded; skipping threshold evaluation")
        return

    cache_hit_rate = None
    if METRICS.total_requests.count > 0:
        cache_hit_rate = METRICS.cache_hit_rate.rate * 100.0
    else:
        logger.info("No virtual users ran in this process; skipping cache hit rate check")

    results = evaluate(
        p95_ms=total.get_response_time_percentile(0.95),
        error_rate_percent=total.fail_ratio * 100.0,
        cache_hit_rate_percent=cache_hit_rate,
        thresholds=CONFIG.thresholds,
    )
    print_summary(results)
    if not all_passed(results):
        environment.process_exit_code = 1
