"""
Smoke harness for the AirBrx gateway.

A single simulated user sends one fixed query a handful of times, one
second apart, and checks that the gateway answers.  It is the cheapest
possible "is the query path up?" signal and is meant to run before any
staged load test.

Usage::

    AIRBRX_URL=http://localhost:8080 airbrx-smoke
    python -m airbrx_perf.smoke --iterations 10

Exit codes follow the same three-state convention as
:mod:`airbrx_perf.check_thresholds`:

- ``0`` — all smoke thresholds passed
- ``1`` — at least one threshold was breached
- ``2`` — the script itself failed (bad configuration, etc.)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from collections.abc import Callable
from typing import Any

import requests

from airbrx_perf.config import RunConfiguration, get_profile_defaults
from airbrx_perf.executor import ExecutionResult
from airbrx_perf.helpers import body_preview, is_cache_hit
from airbrx_perf.metrics import MetricsAccumulator
from airbrx_perf.scenarios import SMOKE_QUERY
from airbrx_perf.thresholds import all_passed, evaluate_snapshot, print_summary

logger = logging.getLogger(__name__)

EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2

SMOKE_PATH = "/api/query"
SMOKE_DATABASE = "NWEA"
SMOKE_SCHEMA = "ASSESSMENT_BSD"


class SmokeRunner:
    """
    Run the fixed smoke query ``iterations`` times with a constant pause.

    Each iteration passes when the gateway returns ``200`` with a
    non-empty body.  Results land in a :class:`MetricsAccumulator` so the
    smoke thresholds can be evaluated the same way as a load run.
    """

    def __init__(
        self,
        config: RunConfiguration,
        session: Any = None,
        metrics: MetricsAccumulator | None = None,
        iterations: int | None = None,
        clock: Callable[[], float] = time.perf_counter,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config
        self.session = session or requests.Session()
        self.metrics = metrics or MetricsAccumulator()
        if iterations is None:
            iterations = get_profile_defaults("smoke").iterations or 5
        if iterations < 1:
            raise ValueError(f"Smoke run needs at least one iteration, got {iterations}")
        self.iterations = iterations
        self._clock = clock
        self._sleep = sleep or time.sleep

    def run(self) -> MetricsAccumulator:
        for iteration in range(self.iterations):
            self.run_iteration(iteration)
            self._sleep(self.config.think_time_min)
        return self.metrics

    def run_iteration(self, iteration: int) -> ExecutionResult:
        payload = {
            "sql": SMOKE_QUERY.query_text,
            "database": SMOKE_DATABASE,
            "schema": SMOKE_SCHEMA,
        }

        started = self._clock()
        try:
            response = self.session.post(
                f"{self.config.base_url}{SMOKE_PATH}",
                data=json.dumps(payload),
                headers={"Content-Type": "application/json"},
                timeout=self.config.request_timeout_s,
            )
        except requests.RequestException as exc:
            result = ExecutionResult(
                success=False,
                duration_ms=(self._clock() - started) * 1000.0,
                cache_hit=False,
                failure_reason=f"Request error: {exc}",
            )
            self.metrics.record(result)
            logger.warning("Iteration %d: %s", iteration + 1, result.failure_reason)
            return result

        duration_ms = (self._clock() - started) * 1000.0
        checks = {
            "status is 200": response.status_code == 200,
            "has response data": len(response.content or b"") > 0,
        }
        failed = [name for name, ok in checks.items() if not ok]

        result = ExecutionResult(
            success=not failed,
            duration_ms=duration_ms,
            cache_hit=is_cache_hit(response.headers),
            status_code=response.status_code,
            failure_reason=", ".join(failed) or None,
        )
        self.metrics.record(result)

        for name, ok in checks.items():
            logger.info("Iteration %d: %s %s", iteration + 1, "✓" if ok else "✗", name)
        if failed:
            logger.warning("Error response: %s", body_preview(response))
        return result


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid integer: {value!r}") from exc
    if number < 1:
        raise argparse.ArgumentTypeError(f"must be at least 1, got {number}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the smoke harness."""
    parser = argparse.ArgumentParser(description="Smoke-test the AirBrx gateway query path.")
    parser.add_argument(
        "--iterations",
        type=_positive_int,
        default=None,
        help="Number of smoke iterations (default: 5)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """
    Entry point: run the smoke iterations and evaluate smoke thresholds.

    Returns:
        ``EXIT_PASS``, ``EXIT_THRESHOLD_BREACH`` or ``EXIT_SCRIPT_ERROR``.
    """
    args = parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = RunConfiguration.from_env(profile="smoke")
        runner = SmokeRunner(config, iterations=args.iterations)
        metrics = runner.run()
        results = evaluate_snapshot(metrics.snapshot(), config.thresholds)
    except Exception as exc:
        print(f"Smoke run failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR

    print_summary(results)
    return EXIT_PASS if all_passed(results) else EXIT_THRESHOLD_BREACH


if __name__ == "__main__":
    raise SystemExit(main())
