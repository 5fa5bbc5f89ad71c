"""
Unit tests for execution shapes and arrival-rate pacing.
"""

import pytest

from loadtest.shapes import (
    CONSTANT_ARRIVAL_RATE,
    CONSTANT_VUS,
    IDLE_WAIT_SECONDS,
    RAMPING_VUS,
    ExecutionShape,
    Pacer,
    Stage,
    parse_duration,
)
from tests.conftest import FakeClock


pytestmark = pytest.mark.unit


@pytest.mark.parametrize(
    ("text", "seconds"),
    [("30s", 30), ("2m", 120), ("1h", 3600), ("1m30s", 90), ("250ms", 0.25), ("45", 45), (12, 12)],
)
def test_parse_duration(text, seconds):
    assert parse_duration(text) == pytest.approx(seconds)


@pytest.mark.parametrize("text", ["", "fast", "10x", "1m 30s", "s30"])
def test_parse_duration_rejects_garbage(text):
    with pytest.raises(ValueError):
        parse_duration(text)


def test_constant_vus_shape_runs_for_duration():
    shape = ExecutionShape(CONSTANT_VUS, vus=5, duration=30.0)

    assert shape.tick(0) == (5, 5.0)
    assert shape.tick(29.9) == (5, 5.0)
    assert shape.tick(30) is None
    assert shape.arrival_rate(10) is None


def test_ramping_vus_interpolates_between_stages():
    # Arrange
    shape = ExecutionShape(
        RAMPING_VUS,
        stages=(Stage(60, 50), Stage(60, 50), Stage(30, 0)),
    )

    # Act / Assert
    assert shape.tick(0) == (0, 1.0)
    assert shape.tick(30)[0] == 25
    assert shape.tick(90)[0] == 50
    assert shape.tick(135)[0] == 25
    assert shape.tick(150) is None
    assert shape.total_duration == 150


def test_ramping_spawn_rate_follows_stage_slope():
    shape = ExecutionShape(RAMPING_VUS, stages=(Stage(10, 100),))

    assert shape.tick(5) == (50, 10.0)


def test_arrival_rate_shape_keeps_max_users_alive():
    shape = ExecutionShape.from_dict(
        {
            "executor": CONSTANT_ARRIVAL_RATE,
            "rate": 160,
            "time_unit": "1s",
            "duration": "5m",
            "pre_allocated_vus": 33,
            "max_vus": 90,
        }
    )

    assert shape.tick(10) == (90, 90.0)
    assert shape.arrival_rate(10) == 160
    assert shape.total_duration == 300


def test_ramping_arrival_rate_interpolates_rate():
    shape = ExecutionShape.from_dict(
        {
            "executor": "ramping-arrival-rate",
            "start_rate": 10,
            "time_unit": "1s",
            "stages": [{"duration": "1m", "target": 50}, {"duration": "1m", "target": 50}],
        }
    )

    assert shape.arrival_rate(0) == 10
    assert shape.arrival_rate(30) == pytest.approx(30)
    assert shape.arrival_rate(90) == pytest.approx(50)


def test_time_unit_scales_rate():
    shape = ExecutionShape(CONSTANT_ARRIVAL_RATE, rate=120, time_unit=60.0, duration=60.0)

    assert shape.arrival_rate(0) == 2


def test_unknown_executor_is_rejected():
    with pytest.raises(ValueError):
        ExecutionShape("per-vu-iterations")


def test_ramping_shape_requires_stages():
    with pytest.raises(ValueError):
        ExecutionShape(RAMPING_VUS)


def test_pacer_spreads_population_over_target_rate():
    # Arrange: 10 users sharing 5 iterations/s start one iteration every 2 s each
    clock = FakeClock()
    pacer = Pacer(clock)

    # Act
    first = pacer.wait(5.0, 10)
    clock.advance(0.5)
    second = pacer.wait(5.0, 10)

    # Assert
    assert first == 0.0
    assert second == pytest.approx(1.5)


def test_pacer_never_returns_negative_wait():
    clock = FakeClock()
    pacer = Pacer(clock)
    pacer.wait(1.0, 1)

    clock.advance(5)

    assert pacer.wait(1.0, 1) == 0.0


def test_pacer_without_rate_does_not_wait():
    assert Pacer(FakeClock()).wait(None, 50) == 0.0


def test_pacer_idles_while_rate_is_zero():
    assert Pacer(FakeClock()).wait(0.0, 5) == IDLE_WAIT_SECONDS
