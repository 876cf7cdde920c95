"""Ramp-stage parsing and target interpolation for staged load runs."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

_DURATION_PART = re.compile(r"(\d+)([hms])")
_UNIT_SECONDS = {"h": 3600, "m": 60, "s": 1}


@dataclass(frozen=True)
class RampStage:
    """Move the virtual-user count toward ``target`` over ``duration_seconds``."""

    duration_seconds: int
    target: int


DEFAULT_STAGES: tuple[RampStage, ...] = (
    RampStage(30, 5),  # ramp up to 5 users
    RampStage(60, 10),  # climb to 10 users
    RampStage(30, 20),  # ramp up to 20 users
    RampStage(120, 20),  # hold at 20 users
    RampStage(30, 0),  # ramp down
)


def parse_duration(text: str) -> int:
    """
    Convert a duration such as ``"30s"``, ``"2m"`` or ``"1m30s"`` to seconds.

    A bare integer is read as seconds.

    Raises:
        ValueError: If the text is empty or contains anything other than
            ``<int><h|m|s>`` groups.
    """
    value = text.strip().lower()
    if not value:
        raise ValueError("Duration must not be empty")
    if value.isdigit():
        return int(value)

    total = 0
    position = 0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            break
        total += int(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position != len(value):
        raise ValueError(f"Invalid duration: {text!r}")
    return total


def parse_stages(text: str) -> tuple[RampStage, ...]:
    """
    Parse ``"30s:5,1m:10,30s:0"`` into an ordered tuple of stages.

    Raises:
        ValueError: On malformed entries, negative targets, or an empty
            stage list.
    """
    stages: list[RampStage] = []
    for raw in text.split(","):
        entry = raw.strip()
        if not entry:
            continue
        duration_text, sep, target_text = entry.partition(":")
        if not sep:
            raise ValueError(f"Stage must look like '<duration>:<target>', got {entry!r}")
        try:
            target = int(target_text.strip())
        except ValueError as exc:
            raise ValueError(f"Non-numeric stage target in {entry!r}") from exc
        if target < 0:
            raise ValueError(f"Stage target must be >= 0, got {target}")
        stages.append(RampStage(parse_duration(duration_text), target))

    if not stages:
        raise ValueError("At least one ramp stage is required")
    return tuple(stages)


def total_duration(stages: Sequence[RampStage]) -> int:
    return sum(stage.duration_seconds for stage in stages)


def target_at(stages: Sequence[RampStage], elapsed_seconds: float) -> int | None:
    """
    Return the interpolated user target at *elapsed_seconds*.

    Each stage moves linearly from the previous stage's target (``0``
    before the first stage) to its own target.  Zero-length stages jump
    straight to their target.  Once every stage has elapsed the run is
    over and ``None`` is returned.
    """
    previous_target = 0
    stage_start = 0.0
    for stage in stages:
        stage_end = stage_start + stage.duration_seconds
        if elapsed_seconds < stage_end:
            progress = (elapsed_seconds - stage_start) / stage.duration_seconds
            delta = stage.target - previous_target
            return round(previous_target + delta * progress)
        previous_target = stage.target
        stage_start = stage_end
    return None


def spawn_rate_for(stages: Sequence[RampStage], elapsed_seconds: float) -> float:
    """Users per second needed to follow the active stage's slope (at least 1)."""
    previous_target = 0
    stage_start = 0.0
    for stage in stages:
        stage_end = stage_start + stage.duration_seconds
        if elapsed_seconds < stage_end:
            slope = abs(stage.target - previous_target) / stage.duration_seconds
            return max(slope, 1.0)
        previous_target = stage.target
        stage_start = stage_end
    return 1.0
