"""
Mixed create/read scenario with read-after-write.

Defines :class:`CreateReadUser`: 30 % of iterations create an event, wait
for the configured invalidation pause (0.1 s) and then read, measuring the
first read after the cache was invalidated; the other 70 % only read.

Key Concepts Demonstrated:
- Operation mix chosen per iteration from catalog weights
- Read-after-write to observe post-invalidation latency
"""

from __future__ import annotations

import time

from locust import tag, task

from loadtest.classifier import MetricNames
from loadtest.metrics import COUNTER, TREND
from loadtest.mix import CREATE, READ, select_operation
from loadtest.scenarios.base import EventApiUser


@tag("create_read")
class CreateReadUser(EventApiUser):
    """Create-then-read or plain read, according to the create weight."""

    metric_names = MetricNames(
        count={CREATE: "create_count", READ: "read_count"},
        errors={CREATE: "create_errors", READ: "read_errors"},
        duration={CREATE: "create_duration", READ: "read_duration"},
        success_counter="mixed_rps",
    )
    declared_metrics = {
        COUNTER: (
            "mixed_rps",
            "create_count",
            "read_count",
            "create_errors",
            "read_errors",
            "cache_invalidations",
        ),
        TREND: ("create_duration", "read_duration"),
    }

    @task
    def mixed(self) -> None:
        with self._iteration():
            if select_operation(self.definition.weights, self.rng) == CREATE:
                self._create()
                time.sleep(self.definition.invalidation_pause_s)
                self._read()
                self.run.accumulator.add("cache_invalidations")
            else:
                self._read()
