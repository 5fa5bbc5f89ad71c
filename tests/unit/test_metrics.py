"""
Unit tests for the run-scoped metric accumulator.
"""

import threading

import pytest

from loadtest.metrics import COUNTER, RATE, TREND, RunAccumulator, tagged_name


pytestmark = pytest.mark.unit


def test_tagged_name_sorts_tags():
    assert tagged_name("http_reqs", {}) == "http_reqs"
    assert tagged_name("x", {"operation": "read", "endpoint": "stats"}) == "x{endpoint:stats,operation:read}"


def test_counter_exports_count_and_per_second_rate():
    accumulator = RunAccumulator()
    for _ in range(30):
        accumulator.add("create_rps")

    assert accumulator.export(10.0)["create_rps"] == {"count": 30, "rate": 3.0}


def test_counter_rate_is_zero_without_elapsed_time():
    accumulator = RunAccumulator()
    accumulator.add("create_rps", 5)

    assert accumulator.export(0.0)["create_rps"]["rate"] == 0.0


def test_rate_exports_pass_fraction():
    accumulator = RunAccumulator()
    for value in (True, True, True, False):
        accumulator.rate("checks", value)

    assert accumulator.export(1.0)["checks"] == {"rate": 0.75, "passes": 3, "fails": 1}


def test_trend_exports_percentiles():
    # Arrange
    accumulator = RunAccumulator()

    # Act
    for value in range(1, 101):
        accumulator.trend("read_duration", value)

    # Assert
    summary = accumulator.export(1.0)["read_duration"]
    assert summary["count"] == 100
    assert summary["min"] == 1
    assert summary["max"] == 100
    assert summary["avg"] == pytest.approx(50.5)
    assert 90 <= summary["p(95)"] <= 100
    assert {"med", "p(90)", "p(99)"} <= set(summary)


def test_gauge_keeps_last_value():
    accumulator = RunAccumulator()
    accumulator.gauge("overall_score", 10)
    accumulator.gauge("overall_score", 72.5)

    assert accumulator.export(1.0)["overall_score"] == {"value": 72.5}


def test_tags_update_parent_and_sub_metric():
    accumulator = RunAccumulator()

    accumulator.add("operation_counts", 1, operation="create")
    accumulator.add("operation_counts", 1, operation="read")
    accumulator.add("operation_counts", 1, operation="read")

    exported = accumulator.export(1.0)
    assert exported["operation_counts"]["count"] == 3
    assert exported["operation_counts{operation:read}"]["count"] == 2


def test_declared_metrics_export_zero():
    accumulator = RunAccumulator()
    accumulator.declare(COUNTER, "stats_errors", "cache_hits")
    accumulator.declare(TREND, "cached_duration")

    exported = accumulator.export(5.0)

    assert exported["stats_errors"] == {"count": 0, "rate": 0.0}
    assert exported["cached_duration"]["count"] == 0
    assert accumulator.names() == ["cache_hits", "cached_duration", "stats_errors"]


def test_reusing_a_name_with_another_kind_is_rejected():
    accumulator = RunAccumulator()
    accumulator.declare(RATE, "read_rps")

    with pytest.raises(TypeError):
        accumulator.add("read_rps")


def test_count_of_unknown_metric_is_zero():
    assert RunAccumulator().count("never_touched") == 0


def test_fresh_accumulators_do_not_share_state():
    first = RunAccumulator()
    first.add("create_errors", 4)

    assert RunAccumulator().export(1.0) == {}


def test_concurrent_increments_are_not_lost():
    accumulator = RunAccumulator()

    def _work():
        for _ in range(1000):
            accumulator.add("create_count")

    threads = [threading.Thread(target=_work) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert accumulator.count("create_count") == 8000
