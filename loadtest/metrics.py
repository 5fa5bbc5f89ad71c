"""
Run-scoped custom metrics.

Locust tracks HTTP requests on its own, but the scenarios also need named
counters (``create_errors``, ``cache_hits`` ...), success rates, duration
trends and run-end gauges (``overall_score``).  :class:`RunAccumulator`
holds all of them for exactly one test run; the locustfile creates a new
one on every ``test_start`` so no values leak between runs.

Trend percentiles are delegated to Locust's own :class:`StatsEntry`, the
same structure that backs the request statistics table.

Metric names accept tags: ``add("operation_counts", 1,
operation="create")`` updates both ``operation_counts`` and
``operation_counts{operation:create}``.
"""

from __future__ import annotations

import threading
from typing import Any

from locust.stats import StatsEntry

TREND_PERCENTILES = (0.90, 0.95, 0.99)

COUNTER = "counter"
RATE = "rate"
TREND = "trend"
GAUGE = "gauge"


def tagged_name(name: str, tags: dict[str, Any]) -> str:
    """Return the sub-metric name for *tags*, e.g. ``name{endpoint:stats}``."""
    if not tags:
        return name
    rendered = ",".join(f"{key}:{value}" for key, value in sorted(tags.items()))
    return f"{name}{{{rendered}}}"


class Counter:
    """Monotonic sum; exported as ``count`` and per-second ``rate``."""

    kind = COUNTER

    def __init__(self) -> None:
        self.count = 0.0

    def add(self, value: float) -> None:
        self.count += value

    def export(self, elapsed_seconds: float) -> dict[str, float]:
        rate = self.count / elapsed_seconds if elapsed_seconds > 0 else 0.0
        return {"count": self.count, "rate": rate}


class Rate:
    """Fraction of truthy samples; exported as ``rate``, ``passes`` and ``fails``."""

    kind = RATE

    def __init__(self) -> None:
        self.passes = 0
        self.fails = 0

    def add(self, value: Any) -> None:
        if value:
            self.passes += 1
        else:
            self.fails += 1

    def export(self, elapsed_seconds: float) -> dict[str, float]:
        total = self.passes + self.fails
        return {
            "rate": self.passes / total if total else 0.0,
            "passes": self.passes,
            "fails": self.fails,
        }


class Trend:
    """Duration samples backed by a Locust ``StatsEntry``."""

    kind = TREND

    def __init__(self, name: str) -> None:
        self._entry = StatsEntry(None, name, TREND)

    def add(self, value: float) -> None:
        self._entry.log(value, 0)

    def export(self, elapsed_seconds: float) -> dict[str, float]:
        return trend_summary(self._entry)


class Gauge:
    """Last value written."""

    kind = GAUGE

    def __init__(self) -> None:
        self.value = 0.0

    def add(self, value: float) -> None:
        self.value = value

    def export(self, elapsed_seconds: float) -> dict[str, float]:
        return {"value": self.value}


def trend_summary(entry: StatsEntry) -> dict[str, float]:
    """Summarise a Locust ``StatsEntry`` as avg/min/med/max and percentiles."""
    summary = {
        "count": entry.num_requests,
        "avg": entry.avg_response_time,
        "min": entry.min_response_time or 0.0,
        "med": entry.median_response_time,
        "max": entry.max_response_time,
    }
    for percentile in TREND_PERCENTILES:
        summary[f"p({int(percentile * 100)})"] = entry.get_response_time_percentile(percentile)
    return summary


class RunAccumulator:
    """
    Named metrics for a single test run.

    Metrics are created on first use, or up front with :meth:`declare` so
    that thresholds on metrics that never fire (e.g. ``stats_errors``) see
    a zero value instead of a missing metric.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._metrics: dict[str, Counter | Rate | Trend | Gauge] = {}

    def declare(self, kind: str, *names: str) -> None:
        with self._lock:
            for name in names:
                self._get(kind, name)

    def add(self, name: str, value: float = 1, **tags: Any) -> None:
        """Increment counter *name* by *value*."""
        self._record(COUNTER, name, value, tags)

    def rate(self, name: str, value: Any, **tags: Any) -> None:
        """Record a pass/fail sample on rate *name*."""
        self._record(RATE, name, value, tags)

    def trend(self, name: str, value: float, **tags: Any) -> None:
        """Record a duration sample (ms) on trend *name*."""
        self._record(TREND, name, value, tags)

    def gauge(self, name: str, value: float, **tags: Any) -> None:
        """Set gauge *name* to *value*."""
        self._record(GAUGE, name, value, tags)

    def count(self, name: str) -> float:
        """Return a counter's total, ``0`` if it was never touched."""
        metric = self._metrics.get(name)
        return metric.count if isinstance(metric, Counter) else 0.0

    def names(self) -> list[str]:
        return sorted(self._metrics)

    def export(self, elapsed_seconds: float) -> dict[str, dict[str, float]]:
        """Return every metric as ``{name: {aggregation: value}}``."""
        with self._lock:
            return {
                name: metric.export(elapsed_seconds)
                for name, metric in sorted(self._metrics.items())
            }

    def _record(self, kind: str, name: str, value: Any, tags: dict[str, Any]) -> None:
        with self._lock:
            self._get(kind, name).add(value)
            if tags:
                self._get(kind, tagged_name(name, tags)).add(value)

    def _get(self, kind: str, name: str) -> Counter | Rate | Trend | Gauge:
        metric = self._metrics.get(name)
        if metric is None:
            if kind == TREND:
                metric = Trend(name)
            else:
                metric = {COUNTER: Counter, RATE: Rate, GAUGE: Gauge}[kind]()
            self._metrics[name] = metric
        elif metric.kind != kind:
            raise TypeError(f"Metric {name!r} is a {metric.kind}, not a {kind}")
        return metric
