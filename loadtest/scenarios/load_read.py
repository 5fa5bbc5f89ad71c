"""
Read-only throughput scenario.

Three user classes, one per read endpoint, run side by side.  The catalog
declares each lane's rate (events 80/s, user events 60/s, stats 20/s);
the locustfile turns those rates into Locust ``weight`` values so the
population splits 4:3:1 and each lane receives its share of the total
arrival rate.

Nothing writes during this scenario, so the server-side cache is never
invalidated; cache hits are inferred from latency (50 ms for event
listings, 100 ms for stats).

Key Concepts Demonstrated:
- Lanes as separate, weighted ``HttpUser`` classes sharing one tag
- Latency-based cache inference through the run's cache classifier
"""

from __future__ import annotations

from locust import tag, task

from loadtest.classifier import MetricNames
from loadtest.metrics import COUNTER, TREND
from loadtest.mix import READ
from loadtest.payloads import GET_EVENTS, GET_STATS, GET_USER_EVENTS
from loadtest.scenarios.base import EventApiUser

READ_METRICS = MetricNames(
    errors={READ: "read_errors"},
    duration={READ: "read_duration"},
    success_counter="read_rps",
    cache_hits="cache_hits",
    cache_misses="cache_misses",
)
READ_DECLARATIONS = {
    COUNTER: ("read_rps", "read_errors", "cache_hits", "cache_misses"),
    TREND: ("read_duration",),
}


class _LoadReadUser(EventApiUser):
    abstract = True

    metric_names = READ_METRICS
    declared_metrics = READ_DECLARATIONS

    @task
    def read(self) -> None:
        with self._iteration():
            self._read(self.lane, classify_cache=True)


@tag("load_read")
class LoadReadEventsUser(_LoadReadUser):
    """``GET /events`` with random paging."""

    lane = GET_EVENTS


@tag("load_read")
class LoadReadUserEventsUser(_LoadReadUser):
    """``GET /users/{id}/events`` for a random known user."""

    lane = GET_USER_EVENTS


@tag("load_read")
class LoadReadStatsUser(_LoadReadUser):
    """``GET /stats``, the heaviest read."""

    lane = GET_STATS
