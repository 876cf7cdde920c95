"""
Load-harness configuration.

Every run reads its settings once, at process start, from environment
variables with sensible defaults.  The resulting
:class:`RunConfiguration` is frozen so that no virtual user can change
the target, stages or limits mid-run.

Two profiles exist: ``load`` (staged ramp, full threshold set) and
``smoke`` (single user, a handful of iterations, relaxed limits).  The
``AIRBRX_PROFILE`` variable selects between them.

Key Concepts Demonstrated:
- Environment-variable overrides for 12-factor deployability
- Immutable run configuration shared by every virtual user
- Profile mapping with a ``default`` fallback, selected by key
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from airbrx_perf.stages import DEFAULT_STAGES, RampStage, parse_stages
from airbrx_perf.thresholds import DEFAULT_THRESHOLDS_PATH, Thresholds, load_thresholds

DEFAULT_GATEWAY_URL = "http://localhost:8080"
DEFAULT_INFLUXDB_URL = "http://localhost:8086"
DEFAULT_INFLUXDB_DB = "k6"
DEFAULT_GRAFANA_URL = "http://localhost:3000"

_FALSY = {"", "0", "false", "no", "off"}


@dataclass(frozen=True)
class RunConfiguration:
    """
    Immutable settings for one harness run.

    Attributes:
        profile: ``"load"`` or ``"smoke"``.
        base_url: Gateway base URL (no trailing slash).
        stages: Ordered ramp stages for the load shape.
        thresholds: Run-level pass/fail limits for this profile.
        think_time_min / think_time_max: Pause range between iterations,
            in seconds.
        request_timeout_s: Per-request timeout handed to the transport.
        max_query_duration_ms: Responses at or above this are failures.
        influxdb_url / influxdb_db: Metrics backend the engine reports to.
        grafana_url: Dashboard pointer logged at teardown.
        debug: Log every iteration, not only failures.
        summary_path: Where teardown writes the JSON metric summary, if set.
    """

    profile: str
    base_url: str
    stages: tuple[RampStage, ...]
    thresholds: Thresholds
    think_time_min: float
    think_time_max: float
    request_timeout_s: float = 30.0
    max_query_duration_ms: float = 5000.0
    influxdb_url: str = DEFAULT_INFLUXDB_URL
    influxdb_db: str = DEFAULT_INFLUXDB_DB
    grafana_url: str = DEFAULT_GRAFANA_URL
    debug: bool = False
    summary_path: Path | None = None

    @classmethod
    def from_env(
        cls,
        profile: str | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> RunConfiguration:
        """
        Build a configuration from environment variables.

        Args:
            profile: Explicit profile key.  When *None*, ``AIRBRX_PROFILE``
                is consulted, defaulting to ``"load"``.
            environ: Mapping to read instead of :data:`os.environ`.

        Raises:
            ValueError: If ``AIRBRX_STAGES`` or the thresholds file is
                malformed.
        """
        env = os.environ if environ is None else environ
        profile_key = profile or env.get("AIRBRX_PROFILE", "load")
        defaults = get_profile_defaults(profile_key)

        stages_text = env.get("AIRBRX_STAGES")
        stages = parse_stages(stages_text) if stages_text else defaults.stages

        thresholds_path = Path(env.get("AIRBRX_THRESHOLDS_FILE", str(DEFAULT_THRESHOLDS_PATH)))
        summary_path = env.get("AIRBRX_SUMMARY_PATH")

        return cls(
            profile=defaults.name,
            base_url=env.get("AIRBRX_URL", DEFAULT_GATEWAY_URL).rstrip("/"),
            stages=stages,
            thresholds=load_thresholds(thresholds_path, defaults.name),
            think_time_min=defaults.think_time_min,
            think_time_max=defaults.think_time_max,
            influxdb_url=env.get("INFLUXDB_URL", DEFAULT_INFLUXDB_URL),
            influxdb_db=env.get("INFLUXDB_DB", DEFAULT_INFLUXDB_DB),
            grafana_url=env.get("GRAFANA_URL", DEFAULT_GRAFANA_URL),
            debug=env.get("DEBUG", "").strip().lower() not in _FALSY,
            summary_path=Path(summary_path) if summary_path else None,
        )


@dataclass(frozen=True)
class ProfileDefaults:
    name: str
    stages: tuple[RampStage, ...]
    think_time_min: float
    think_time_max: float
    iterations: int | None = None


LOAD_PROFILE = ProfileDefaults(
    name="load",
    stages=DEFAULT_STAGES,
    think_time_min=1.0,
    think_time_max=4.0,
)

# One user, five iterations, a fixed one-second pause.
SMOKE_PROFILE = ProfileDefaults(
    name="smoke",
    stages=(RampStage(30, 1),),
    think_time_min=1.0,
    think_time_max=1.0,
    iterations=5,
)

profiles = {
    "load": LOAD_PROFILE,
    "smoke": SMOKE_PROFILE,
    "default": LOAD_PROFILE,
}


def get_profile_defaults(name: str | None = None) -> ProfileDefaults:
    """
    Get the defaults for the named profile.

    Unknown names fall back to the ``default`` (load) profile.
    """
    if name is None:
        name = os.environ.get("AIRBRX_PROFILE", "load")
    return profiles.get(name, profiles["default"])
