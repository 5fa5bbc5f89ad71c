"""
Sustained full-load scenario.

Defines :class:`FullLoadUser`: 40 % creates and 60 % reads across all
three read endpoints for eight minutes.  Every successful create
invalidates the server-side cache and is counted in ``cache_events``.
"""

from __future__ import annotations

from locust import tag, task

from loadtest.classifier import MetricNames
from loadtest.metrics import COUNTER, TREND
from loadtest.mix import CREATE, READ, select_operation
from loadtest.scenarios.base import EventApiUser


@tag("full_load")
class FullLoadUser(EventApiUser):
    metric_names = MetricNames(
        count={CREATE: "create_count", READ: "read_count"},
        errors={CREATE: "create_errors", READ: "read_errors"},
        duration={CREATE: "operation_duration", READ: "operation_duration"},
        success_counter="full_load_rps",
    )
    declared_metrics = {
        COUNTER: (
            "full_load_rps",
            "create_count",
            "read_count",
            "create_errors",
            "read_errors",
            "cache_events",
        ),
        TREND: ("operation_duration",),
    }

    @task
    def full_load(self) -> None:
        with self._iteration():
            if select_operation(self.definition.weights, self.rng) == CREATE:
                if self._create().success:
                    self.run.accumulator.add("cache_events")
            else:
                self._read()
