"""
Run-wide metric accumulators for the gateway load harness.

Locust already tracks per-endpoint response times and failures.  The
accumulators here capture what Locust does not: the gateway's cache-hit
ratio, the end-to-end query duration as measured by the harness, and an
error rate that includes payload validation rather than HTTP status
alone.

Every operation is an append or an increment, so virtual users can
share one :class:`MetricsAccumulator` without coordination.  Nothing
ever reads another iteration's in-flight state.

Key Concepts Demonstrated:
- Counter / Trend / Rate metric shapes familiar from load-testing tools
- An explicit accumulator object passed to each iteration instead of
  module-level globals
- Linear-interpolated percentiles for latency summaries
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Protocol


class _Result(Protocol):
    success: bool
    duration_ms: float
    cache_hit: bool


@dataclass
class Counter:
    """Monotonic count."""

    name: str
    count: int = 0

    def add(self, amount: int = 1) -> None:
        self.count += amount


@dataclass
class Trend:
    """Distribution of numeric samples (milliseconds for durations)."""

    name: str
    samples: list[float] = field(default_factory=list)

    def add(self, value: float) -> None:
        self.samples.append(float(value))

    @property
    def count(self) -> int:
        return len(self.samples)

    def percentile(self, pct: float) -> float:
        """
        Return the *pct*-th percentile of the recorded samples.

        Uses linear interpolation between closest ranks, so ``p(50)`` of
        an even-sized sample is the midpoint of the two middle values.

        Args:
            pct: Percentile in the range ``0``–``100``.

        Returns:
            The interpolated value, or ``0.0`` when no samples exist.

        Raises:
            ValueError: If *pct* is outside ``0``–``100``.
        """
        if not 0 <= pct <= 100:
            raise ValueError(f"Percentile must be between 0 and 100, got {pct}")
        if not self.samples:
            return 0.0
        return _interpolate(sorted(self.samples), pct)

    def summary(self) -> dict[str, float]:
        """
        Summarise the distribution with a single sort of the samples.

        Every sample is kept for the life of the run, so memory grows
        linearly with the request count of long custom ramps.
        """
        if not self.samples:
            return {"count": 0, "avg": 0.0, "min": 0.0, "med": 0.0, "max": 0.0, "p90": 0.0, "p95": 0.0}
        ordered = sorted(self.samples)
        return {
            "count": len(ordered),
            "avg": sum(ordered) / len(ordered),
            "min": ordered[0],
            "med": _interpolate(ordered, 50),
            "max": ordered[-1],
            "p90": _interpolate(ordered, 90),
            "p95": _interpolate(ordered, 95),
        }


def _interpolate(ordered: list[float], pct: float) -> float:
    rank = (pct / 100.0) * (len(ordered) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return ordered[lower]
    fraction = rank - lower
    return ordered[lower] + (ordered[upper] - ordered[lower]) * fraction


@dataclass
class Rate:
    """Fraction of recorded booleans that were ``True``."""

    name: str
    trues: int = 0
    total: int = 0

    def add(self, value: bool) -> None:
        self.total += 1
        if value:
            self.trues += 1

    @property
    def rate(self) -> float:
        if self.total == 0:
            return 0.0
        return self.trues / self.total


class MetricsAccumulator:
    """
    Shared metric handle for a whole run.

    One instance is created per process and handed to every
    :class:`~airbrx_perf.executor.QueryExecutor`.  The four metrics
    mirror the custom series the dashboards expect: ``total_requests``,
    ``query_duration``, ``error_rate`` and ``cache_hit_rate``.
    """

    def __init__(self) -> None:
        self.total_requests = Counter("total_requests")
        self.query_duration = Trend("query_duration")
        self.error_rate = Rate("error_rate")
        self.cache_hit_rate = Rate("cache_hit_rate")

    def record(self, result: _Result) -> None:
        """Fold one iteration's outcome into the run-wide metrics."""
        self.total_requests.add(1)
        self.query_duration.add(result.duration_ms)
        self.error_rate.add(not result.success)
        self.cache_hit_rate.add(result.cache_hit)

    def snapshot(self) -> dict[str, Any]:
        """
        Return a JSON-serialisable view of the current metric values.

        ``cache_hit_rate`` is ``None`` until a request has been recorded.
        A process that ran no virtual users (the master of a distributed
        run) has observed no cache behaviour, and reporting ``0.0`` would
        read as a total cache miss.
        """
        return {
            "total_requests": self.total_requests.count,
            "query_duration": self.query_duration.summary(),
            "error_rate": self.error_rate.rate,
            "cache_hit_rate": self.cache_hit_rate.rate if self.cache_hit_rate.total else None,
        }
