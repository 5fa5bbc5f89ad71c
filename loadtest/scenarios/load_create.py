"""
Create-only throughput scenario.

Defines :class:`LoadCreateUser`, which does nothing but ``POST /event`` at
a constant arrival rate (3000 iterations/s in the catalog).  Each response
is judged with the generic API rule: ``200``/``201`` with a ``data`` field
in under five seconds.

Key Concepts Demonstrated:
- Throughput counter (``create_rps``) counting successful creates, whose
  exported ``rate`` is successes per second
- Raw-throughput grading in the run summary
"""

from __future__ import annotations

from locust import tag, task

from loadtest.classifier import MetricNames, api_rule
from loadtest.metrics import COUNTER, TREND
from loadtest.mix import CREATE
from loadtest.scenarios.base import EventApiUser


@tag("load_create")
class LoadCreateUser(EventApiUser):
    """Hammer the create endpoint with fresh payloads."""

    metric_names = MetricNames(
        errors={CREATE: "create_errors"},
        duration={CREATE: "create_duration"},
        success_counter="create_rps",
    )
    declared_metrics = {
        COUNTER: ("create_rps", "create_errors"),
        TREND: ("create_duration",),
    }

    @task
    def create_event(self) -> None:
        with self._iteration():
            self._create(api_rule(self.definition.create_latency_ms))
