"""
Execution shapes for scenarios.

A scenario declares how load is applied, using the executor vocabulary of
the scenario catalog:

- ``constant-vus``: a fixed number of users for a fixed duration
- ``ramping-vus``: user count ramps linearly through a list of stages
- ``constant-arrival-rate``: iterations start at a fixed rate
- ``ramping-arrival-rate``: the iteration rate ramps through stages

Locust drives user counts through a ``LoadTestShape`` (see the locustfile);
arrival rates are enforced by pacing each user's wait time so that the
whole population starts ``rate`` iterations per second.
"""

from __future__ import annotations

import re
import time
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

CONSTANT_VUS = "constant-vus"
RAMPING_VUS = "ramping-vus"
CONSTANT_ARRIVAL_RATE = "constant-arrival-rate"
RAMPING_ARRIVAL_RATE = "ramping-arrival-rate"
EXECUTORS = (CONSTANT_VUS, RAMPING_VUS, CONSTANT_ARRIVAL_RATE, RAMPING_ARRIVAL_RATE)

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_NUMBER = re.compile(r"\d+(?:\.\d+)?")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

# Wait used by arrival-rate users while the target rate is zero
IDLE_WAIT_SECONDS = 1.0


def parse_duration(value: str | int | float) -> float:
    """
    Convert ``"30s"``, ``"2m"``, ``"1h"`` or ``"1m30s"`` into seconds.

    Bare numbers are taken as seconds.

    Raises:
        ValueError: If *value* is not a recognisable duration.
    """
    if isinstance(value, (int, float)):
        return float(value)

    text = value.strip()
    if _NUMBER.fullmatch(text):
        return float(text)

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()

    if position == 0 or position != len(text):
        raise ValueError(f"Invalid duration: {value!r}")
    return total


@dataclass(frozen=True)
class Stage:
    """Reach *target* (users or iterations/s) by the end of *duration* seconds."""

    duration: float
    target: float


@dataclass(frozen=True)
class ExecutionShape:
    """
    How load is applied over time.

    Attributes:
        executor: One of :data:`EXECUTORS`.
        vus: User count for ``constant-vus``.
        duration: Run length for constant executors, in seconds.
        stages: Stage list for ramping executors.
        start: Initial users (ramping-vus) or rate (ramping-arrival-rate).
        rate: Iterations per ``time_unit`` for ``constant-arrival-rate``.
        time_unit: Seconds per rate unit.
        pre_allocated_vus: Users spawned for arrival-rate executors.
        max_vus: Upper bound on users for arrival-rate executors.
    """

    executor: str
    vus: int = 1
    duration: float = 0.0
    stages: tuple[Stage, ...] = ()
    start: float = 0.0
    rate: float = 0.0
    time_unit: float = 1.0
    pre_allocated_vus: int = 1
    max_vus: int | None = None
    tags: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.executor not in EXECUTORS:
            raise ValueError(f"Unknown executor: {self.executor}")
        if self.is_ramping and not self.stages:
            raise ValueError(f"{self.executor} requires at least one stage")

    @property
    def is_ramping(self) -> bool:
        return self.executor in (RAMPING_VUS, RAMPING_ARRIVAL_RATE)

    @property
    def is_arrival_rate(self) -> bool:
        return self.executor in (CONSTANT_ARRIVAL_RATE, RAMPING_ARRIVAL_RATE)

    @property
    def total_duration(self) -> float:
        if self.is_ramping:
            return sum(stage.duration for stage in self.stages)
        return self.duration

    @property
    def arrival_users(self) -> int:
        """Users kept alive for arrival-rate executors."""
        return max(self.max_vus or 0, self.pre_allocated_vus, 1)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ExecutionShape:
        """Build a shape from a catalog mapping (durations as strings)."""
        stages = tuple(
            Stage(duration=parse_duration(stage["duration"]), target=float(stage["target"]))
            for stage in data.get("stages", ())
        )
        executor = data["executor"]
        return cls(
            executor=executor,
            vus=int(data.get("vus", 1)),
            duration=parse_duration(data.get("duration", 0)),
            stages=stages,
            start=float(data.get("start_vus", data.get("start_rate", 0))),
            rate=float(data.get("rate", 0)),
            time_unit=parse_duration(data.get("time_unit", "1s")),
            pre_allocated_vus=int(data.get("pre_allocated_vus", 1)),
            max_vus=int(data["max_vus"]) if "max_vus" in data else None,
            tags=dict(data.get("tags", {})),
        )

    def _stage_at(self, elapsed: float) -> tuple[float, Stage, float] | None:
        """Return ``(stage_start_target, stage, seconds_into_stage)``."""
        previous_target = self.start
        stage_start = 0.0
        for stage in self.stages:
            if elapsed < stage_start + stage.duration:
                return previous_target, stage, elapsed - stage_start
            previous_target = stage.target
            stage_start += stage.duration
        return None

    def tick(self, elapsed: float) -> tuple[int, float] | None:
        """
        Return the ``(user_count, spawn_rate)`` Locust should run at *elapsed*.

        ``None`` means the scenario is over.
        """
        if elapsed >= self.total_duration:
            return None

        if self.executor == CONSTANT_VUS:
            return self.vus, float(max(self.vus, 1))

        if self.is_arrival_rate:
            users = self.arrival_users
            return users, float(users)

        position = self._stage_at(elapsed)
        if position is None:
            return None
        previous_target, stage, into_stage = position
        fraction = into_stage / stage.duration if stage.duration else 1.0
        users = previous_target + (stage.target - previous_target) * fraction
        spawn_rate = abs(stage.target - previous_target) / stage.duration if stage.duration else 1.0
        return int(round(users)), max(spawn_rate, 1.0)

    def arrival_rate(self, elapsed: float) -> float | None:
        """Iterations per second at *elapsed*; ``None`` for VU executors."""
        if not self.is_arrival_rate:
            return None
        if self.executor == CONSTANT_ARRIVAL_RATE:
            return self.rate / self.time_unit

        position = self._stage_at(elapsed)
        if position is None:
            return self.stages[-1].target / self.time_unit
        previous_target, stage, into_stage = position
        fraction = into_stage / stage.duration if stage.duration else 1.0
        return (previous_target + (stage.target - previous_target) * fraction) / self.time_unit


class Pacer:
    """
    Per-user wait times that hold a population at a target arrival rate.

    Each of ``n`` users starts one iteration every ``n / rate`` seconds;
    time already spent in the iteration is subtracted, like Locust's
    ``constant_pacing``.
    """

    def __init__(self, clock=time.monotonic) -> None:
        self._clock = clock
        self._last_start: float | None = None

    def wait(self, rate: float | None, user_count: int) -> float:
        now = self._clock()
        if rate is None:
            self._last_start = now
            return 0.0
        if rate <= 0:
            self._last_start = now + IDLE_WAIT_SECONDS
            return IDLE_WAIT_SECONDS

        interval = max(user_count, 1) / rate
        if self._last_start is None:
            delay = 0.0
        else:
            delay = max(0.0, interval - (now - self._last_start))
        self._last_start = now + delay
        return delay

