"""
Statistics cache scenario.

Two lanes hit ``GET /stats`` concurrently:

- **cached** (30/s): plain reads, expected to be served from cache
- **uncached** (15/s): ``POST /event`` first to invalidate the cache,
  pause 0.1 s, then read

Hits and misses are inferred from latency (under 200 ms counts as a hit);
uncached reads are always misses.  Throughput, duration and verification
counters are split by that classification so the summary can report the
speed-up the cache provides.

Key Concepts Demonstrated:
- JSON shape validation of the stats document
- Metrics routed by inferred cache classification
- Data verification: inserted pages vs. pages reported by ``top_pages``
"""

from __future__ import annotations

import logging
import time

from locust import tag, task

from loadtest.actions import ActionResult
from loadtest.classifier import (
    CACHED,
    HIT,
    UNCACHED,
    MetricNames,
    ResponseRule,
    stats_rule,
)
from loadtest.metrics import COUNTER, TREND
from loadtest.mix import READ
from loadtest.payloads import GET_STATS
from loadtest.scenarios.base import EventApiUser

logger = logging.getLogger(__name__)


class _StatsCacheUser(EventApiUser):
    abstract = True

    read_kinds = (GET_STATS,)
    metric_names = MetricNames(
        errors={READ: "stats_errors"},
        cache_hits="cache_hits",
        cache_misses="cache_misses",
    )
    declared_metrics = {
        COUNTER: (
            "stats_cached_rps",
            "stats_uncached_rps",
            "stats_errors",
            "cache_hits",
            "cache_misses",
            "pages_inserted",
            "pages_verified",
        ),
        TREND: ("cached_duration", "uncached_duration"),
    }

    def _stats(self, mode: str) -> ActionResult:
        result = self._read(
            GET_STATS,
            rule=stats_rule(self.definition.read_latency_ms),
            cache_mode=mode,
            classify_cache=True,
        )
        outcome = result.outcome
        accumulator = self.run.accumulator

        if outcome.cache_classification == HIT:
            accumulator.trend("cached_duration", outcome.duration_ms)
            if outcome.success:
                accumulator.add("stats_cached_rps")
        else:
            accumulator.trend("uncached_duration", outcome.duration_ms)
            if outcome.success:
                accumulator.add("stats_uncached_rps")
        return result


@tag("stats_cache")
class StatsCachedUser(_StatsCacheUser):
    """Read statistics without touching the cache."""

    lane = CACHED

    @task
    def cached_stats(self) -> None:
        with self._iteration():
            self._stats(CACHED)


@tag("stats_cache")
class StatsUncachedUser(_StatsCacheUser):
    """Invalidate the cache with a write, then read statistics."""

    lane = UNCACHED

    @task
    def uncached_stats(self) -> None:
        with self._iteration():
            self._invalidate()
            time.sleep(self.definition.invalidation_pause_s)

            result = self._stats(UNCACHED)
            if result.success:
                top_pages = result.document().get("data", {}).get("top_pages", [])
                self.run.accumulator.add("pages_verified", len(top_pages))
                logger.debug("Stats response contains %d pages", len(top_pages))

    def _invalidate(self) -> None:
        rule = ResponseRule({201}, self.definition.create_latency_ms)
        result = self._create(rule, record=False)
        if result.outcome.status == 201:
            self.run.accumulator.add("pages_inserted")
            logger.debug("Inserted page %s", result.payload["metadata"]["page"])
