"""
Execute one gateway query and classify the outcome.

:class:`QueryExecutor` turns a :class:`~airbrx_perf.scenarios.Scenario`
into a ``POST /query`` request, times it, validates the response, and
folds the result into the shared
:class:`~airbrx_perf.metrics.MetricsAccumulator`.

An iteration is successful only when the gateway answered ``200``, the
body is a JSON object carrying a ``data`` or ``result`` payload, and the
whole round trip took under five seconds.  Transport errors and
malformed bodies are recorded as failures; they never propagate out of
:meth:`QueryExecutor.execute`, and nothing is retried, because a retry
would hide exactly the latency and error behaviour being measured.

The executor works with any client exposing a ``requests``-style
``post``: a plain :class:`requests.Session` for the smoke harness, or
Locust's ``HttpSession`` under load.  Passing
``request_options={"catch_response": True, ...}`` makes the executor
mark Locust's response as success or failure so that Locust's own
statistics reflect payload validation, not just the status code.
"""

from __future__ import annotations

import json
import logging
import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import requests

from airbrx_perf.config import RunConfiguration
from airbrx_perf.helpers import (
    IterationContext,
    body_preview,
    build_query_payload,
    has_payload,
    is_cache_hit,
    query_headers,
    random_user_role,
    safe_json,
)
from airbrx_perf.metrics import MetricsAccumulator
from airbrx_perf.scenarios import Scenario

logger = logging.getLogger(__name__)

QUERY_PATH = "/query"


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a single iteration."""

    success: bool
    duration_ms: float
    cache_hit: bool
    status_code: int = 0
    failure_reason: str | None = None


class QueryExecutor:
    """
    Issue, validate and record gateway queries.

    Args:
        config: Run configuration (target URL, timeout, duration gate,
            debug flag).
        metrics: Shared accumulator every iteration records into.
        rng: Random source for user-role assignment.
        clock: Monotonic clock returning seconds; injected by tests.
        request_options: Extra keyword arguments for ``client.post``,
            e.g. Locust's ``name`` and ``catch_response``.
    """

    def __init__(
        self,
        config: RunConfiguration,
        metrics: MetricsAccumulator,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.perf_counter,
        request_options: dict[str, Any] | None = None,
    ) -> None:
        self._config = config
        self._metrics = metrics
        self._rng = rng or random.Random()
        self._clock = clock
        self._request_options = dict(request_options or {})
        self._catch_response = bool(self._request_options.get("catch_response"))

    def url_for(self, client: Any) -> str:
        """
        Return the query URL to post to through *client*.

        Locust's ``HttpSession`` carries a ``base_url`` (from ``--host`` or
        the web UI) and joins relative paths onto it, so it gets the bare
        path.  A plain ``requests.Session`` needs the absolute URL.
        """
        if getattr(client, "base_url", None):
            return QUERY_PATH
        return f"{self._config.base_url}{QUERY_PATH}"

    def execute(self, client: Any, scenario: Scenario, context: IterationContext) -> ExecutionResult:
        """
        Run *scenario* once and record the outcome.

        Args:
            client: ``requests``-compatible session.
            scenario: The query to send.
            context: Identity of the current virtual-user iteration.

        Returns:
            The classified :class:`ExecutionResult`.
        """
        payload = build_query_payload(scenario.query_text, context, random_user_role(self._rng))
        headers = query_headers(context)

        started = self._clock()
        try:
            response = client.post(
                self.url_for(client),
                data=json.dumps(payload),
                headers=headers,
                timeout=self._config.request_timeout_s,
                **self._request_options,
            )
        except requests.RequestException as exc:
            duration_ms = (self._clock() - started) * 1000.0
            result = ExecutionResult(
                success=False,
                duration_ms=duration_ms,
                cache_hit=False,
                failure_reason=f"Request error: {exc}",
            )
            self._metrics.record(result)
            self._log_outcome(scenario, result, preview=str(exc))
            return result

        duration_ms = (self._clock() - started) * 1000.0

        if self._catch_response:
            with response as tracked:
                result = self.classify(tracked, duration_ms)
                if result.success:
                    tracked.success()
                else:
                    tracked.failure(result.failure_reason)
        else:
            result = self.classify(response, duration_ms)

        self._metrics.record(result)
        self._log_outcome(scenario, result, preview=None if result.success else body_preview(response))
        return result

    def classify(self, response: Any, duration_ms: float) -> ExecutionResult:
        """
        Decide whether *response* counts as a successful iteration.

        Args:
            response: The gateway response.
            duration_ms: Measured round-trip time.

        Returns:
            An :class:`ExecutionResult`; ``failure_reason`` names the
            first check that failed.
        """
        status_code = int(getattr(response, "status_code", 0) or 0)
        cache_hit = is_cache_hit(getattr(response, "headers", None))

        reason = None
        if status_code != 200:
            reason = f"Expected 200, got {status_code}"
        elif not has_payload(safe_json(response)):
            reason = "Response missing data/result payload"
        elif duration_ms >= self._config.max_query_duration_ms:
            reason = (
                f"Response time {duration_ms:.0f}ms exceeds "
                f"{self._config.max_query_duration_ms:.0f}ms"
            )

        return ExecutionResult(
            success=reason is None,
            duration_ms=duration_ms,
            cache_hit=cache_hit,
            status_code=status_code,
            failure_reason=reason,
        )

    def _log_outcome(self, scenario: Scenario, result: ExecutionResult, preview: str | None) -> None:
        if result.success and not self._config.debug:
            return

        level = logging.INFO if result.success else logging.WARNING
        logger.log(
            level,
            "[%s] Status: %s, Duration: %.0fms, Cache: %s",
            scenario.name,
            result.status_code,
            result.duration_ms,
            "HIT" if result.cache_hit else "MISS",
        )
        if not result.success:
            logger.warning("Error response: %s", (preview or "")[:200])
