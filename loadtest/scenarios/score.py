"""
Scored ramping-load scenario.

Defines :class:`ScoreUser`, which ramps from 0 to 400 users and back over
nine minutes with a 30/70 create/read mix and tight latency ceilings
(creates under 100 ms, reads under 50 ms, non-empty bodies).  At run end
the run's metrics are reduced into stability, create, read and
performance scores plus an overall rating (see :mod:`loadtest.scoring`),
which are exported as gauges and checked by thresholds.

Key Concepts Demonstrated:
- Per-operation counters tagged ``{operation:create|read}``
- Closed-model (ramping users) load with no think time
"""

from __future__ import annotations

from locust import tag, task

from loadtest.classifier import MetricNames
from loadtest.metrics import COUNTER, TREND
from loadtest.mix import CREATE, READ, select_operation
from loadtest.scenarios.base import EventApiUser

OPERATIONS = (CREATE, READ)


@tag("score")
class ScoreUser(EventApiUser):
    """Weighted create/read traffic feeding the run-end scorer."""

    metric_names = MetricNames(
        count=dict.fromkeys(OPERATIONS, "operation_counts"),
        errors=dict.fromkeys(OPERATIONS, "operation_errors"),
        successes=dict.fromkeys(OPERATIONS, "operation_successes"),
        duration=dict.fromkeys(OPERATIONS, "operation_durations"),
        tag_operation=True,
    )
    declared_metrics = {
        COUNTER: ("operation_counts", "operation_errors", "operation_successes"),
        TREND: ("operation_durations",),
    }

    @task
    def weighted_operation(self) -> None:
        with self._iteration():
            if select_operation(self.definition.weights, self.rng) == CREATE:
                self._create()
            else:
                self._read()
