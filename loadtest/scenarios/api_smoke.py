"""
API smoke scenario.

Defines :class:`ApiSmokeUser`, which touches every endpoint once per
iteration (single create, batch create and the three reads) under the
generic ``smoke_test`` shape.  Responses are judged with the generic API
rule and the endpoint-tagged thresholds of the ``api`` threshold set.
"""

from __future__ import annotations

from locust import tag, task

from loadtest.classifier import MetricNames, api_rule
from loadtest.metrics import COUNTER
from loadtest.mix import CREATE, READ
from loadtest.payloads import READ_KINDS
from loadtest.scenarios.base import EventApiUser


@tag("api_smoke")
class ApiSmokeUser(EventApiUser):
    metric_names = MetricNames(
        count={CREATE: "create_count", READ: "read_count"},
        errors={CREATE: "create_errors", READ: "read_errors"},
    )
    declared_metrics = {
        COUNTER: ("create_count", "read_count", "create_errors", "read_errors"),
    }

    @task
    def all_endpoints(self) -> None:
        with self._iteration():
            self._create(api_rule(self.definition.create_latency_ms))
            self._batch(api_rule(self.definition.create_latency_ms))
            for kind in READ_KINDS:
                self._read(kind, api_rule(self.definition.read_latency_ms))
