"""
Run setup and teardown hooks.

``setup`` runs once before any virtual user starts: it prints a banner,
probes the gateway health endpoint, and returns a :class:`RunContext`
that teardown receives at the end.  A failing health probe is only a
warning; the run proceeds so that a cold or flaky gateway still gets
measured.

``teardown`` runs once after every user has stopped.  It reports start
and end times, the metric summary, and where the detailed dashboards
live.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

import requests

from airbrx_perf.config import DEFAULT_GRAFANA_URL, RunConfiguration
from airbrx_perf.metrics import MetricsAccumulator
from airbrx_perf.scenarios import TEST_QUERIES

logger = logging.getLogger(__name__)

HEALTH_PATH = "/health"
HEALTH_TIMEOUT_S = 5
BANNER = "=" * 40


@dataclass(frozen=True)
class RunContext:
    """Values captured at setup and handed through to teardown."""

    start_time: str
    gateway_url: str


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def check_gateway_health(base_url: str, session: Any = None) -> int | None:
    """
    Probe ``GET /health`` without credentials.

    Returns:
        The HTTP status code, or ``None`` if the gateway was unreachable.
    """
    http = session or requests
    try:
        response = http.get(f"{base_url}{HEALTH_PATH}", timeout=HEALTH_TIMEOUT_S)
    except requests.RequestException as exc:
        logger.warning("Gateway health check could not connect: %s", exc)
        return None
    return response.status_code


def setup(config: RunConfiguration, session: Any = None) -> RunContext:
    """
    Announce the run and verify the gateway is reachable.

    Args:
        config: The run configuration.
        session: Optional ``requests``-compatible session for the probe.

    Returns:
        A :class:`RunContext` with the start timestamp and target URL.
    """
    logger.info(BANNER)
    logger.info("AirBrx Load Test Starting (profile: %s)", config.profile)
    logger.info(BANNER)
    logger.info("Gateway URL: %s", config.base_url)
    logger.info("InfluxDB URL: %s (database: %s)", config.influxdb_url, config.influxdb_db)
    logger.info("Total test queries: %d", len(TEST_QUERIES))
    logger.info(BANNER)

    status = check_gateway_health(config.base_url, session)
    if status != 200:
        logger.warning("Gateway health check failed with status %s", status)
    else:
        logger.info("Gateway is reachable")

    return RunContext(start_time=_utc_now_iso(), gateway_url=config.base_url)


def teardown(
    context: RunContext,
    metrics: MetricsAccumulator | None = None,
    config: RunConfiguration | None = None,
) -> dict[str, Any] | None:
    """
    Report the run window and metric summary.

    When *config* names a ``summary_path``, the summary is also written
    there as JSON for :mod:`airbrx_perf.check_thresholds`.

    Returns:
        The summary dictionary, or ``None`` when no metrics were given.
    """
    ended_at = _utc_now_iso()
    logger.info(BANNER)
    logger.info("AirBrx Load Test Complete")
    logger.info(BANNER)
    logger.info("Started at: %s", context.start_time)
    logger.info("Ended at: %s", ended_at)

    summary = None
    if metrics is not None:
        summary = {
            "gateway_url": context.gateway_url,
            "started_at": context.start_time,
            "ended_at": ended_at,
            **metrics.snapshot(),
        }
        duration = summary["query_duration"]
        cache_hit_rate = summary["cache_hit_rate"]
        logger.info(
            "Requests: %d, p95: %.0fms, error rate: %.2f%%, cache hit rate: %s",
            summary["total_requests"],
            duration["p95"],
            summary["error_rate"] * 100,
            "n/a" if cache_hit_rate is None else f"{cache_hit_rate * 100:.2f}%",
        )
        if summary["total_requests"] == 0:
            logger.warning("No requests ran in this process; cache hit rate not observed")
        if config is not None and config.summary_path is not None:
            config.summary_path.parent.mkdir(parents=True, exist_ok=True)
            config.summary_path.write_text(json.dumps(summary, indent=2), encoding="utf-8")
            logger.info("Metric summary written to %s", config.summary_path)

    logger.info(BANNER)
    dashboard = config.grafana_url if config is not None else DEFAULT_GRAFANA_URL
    logger.info("Check Grafana for detailed metrics: %s", dashboard)
    logger.info(BANNER)
    return summary
