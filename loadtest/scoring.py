"""
Run-end health scoring.

Reduces the aggregate metrics of a finished run into four 0-100 pillar
scores and a weighted overall score with a letter rating:

- **Stability**: ``100 - error_rate × 2000 - max(0, (p95 - 100) / 5)``
- **Create**: ``(min(100, rps × 0.7/60) + max(0, 100 - avg)) / 2``
- **Read**: ``(min(100, rps × 0.7/80) + max(0, 100 - 2 × avg)) / 2``
- **Performance**: ``min(100, rps / 60)`` (6000 RPS = 100 points)
- **Overall**: 25 % of each pillar

Everything here is a pure function of a :class:`RunMetricsSnapshot`;
scoring the same snapshot twice yields the same report.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

PILLAR_WEIGHT = 0.25


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


@dataclass(frozen=True)
class RunMetricsSnapshot:
    """
    Aggregate metrics of a completed run.

    Attributes:
        total_requests: Number of HTTP requests issued.
        failure_rate: Fraction of failed requests (0-1).
        rps: Requests per second over the run.
        avg_duration: Mean request duration (ms).
        p50_duration: Median request duration (ms).
        p95_duration: 95th percentile request duration (ms).
        p99_duration: 99th percentile request duration (ms).
        elapsed_seconds: Wall-clock duration of the run.
        metrics: Every other named metric as
            ``{name: {aggregation: value}}`` (custom counters, trends,
            per-endpoint sub-metrics ...).
    """

    total_requests: int = 0
    failure_rate: float = 0.0
    rps: float = 0.0
    avg_duration: float = 0.0
    p50_duration: float = 0.0
    p95_duration: float = 0.0
    p99_duration: float = 0.0
    elapsed_seconds: float = 0.0
    metrics: Mapping[str, Mapping[str, float]] = field(default_factory=dict)

    def as_metrics(self) -> dict[str, dict[str, float]]:
        """Return all metrics, including the built-in ``http_*`` ones."""
        merged: dict[str, dict[str, float]] = {
            name: dict(values) for name, values in self.metrics.items()
        }
        merged.setdefault("http_reqs", {}).update(
            {"count": self.total_requests, "rate": self.rps}
        )
        merged.setdefault("http_req_failed", {}).update({"rate": self.failure_rate})
        merged.setdefault("http_req_duration", {}).update(
            {
                "avg": self.avg_duration,
                "med": self.p50_duration,
                "p(50)": self.p50_duration,
                "p(95)": self.p95_duration,
                "p(99)": self.p99_duration,
            }
        )
        return merged

    def value(self, name: str, aggregation: str, default: float = 0.0) -> float:
        """Look up one aggregation of a custom metric."""
        return float(self.metrics.get(name, {}).get(aggregation, default))


@dataclass(frozen=True)
class ScoringConfig:
    """
    Tunables of the scoring formulas.

    Attributes:
        latency_baseline_ms: P95 above this value costs stability points.
        rps_divisor: RPS divided by this gives the performance score.
        create_rps_factor: Multiplier mapping RPS to create points.
        read_rps_factor: Multiplier mapping RPS to read points.
        error_penalty: Stability points lost per unit of error rate.
        latency_penalty_divisor: Milliseconds of excess P95 per lost point.
    """

    latency_baseline_ms: float = 100.0
    rps_divisor: float = 60.0
    create_rps_factor: float = 0.7 / 60
    read_rps_factor: float = 0.7 / 80
    error_penalty: float = 2000.0
    latency_penalty_divisor: float = 5.0

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> ScoringConfig:
        return cls(**{key: float(value) for key, value in (data or {}).items()})


@dataclass(frozen=True)
class Rating:
    """A rating band: letter grade, label and the throughput it implies."""

    grade: str
    label: str
    rps_expectation: str
    min_score: float

    def __str__(self) -> str:
        return f"{self.grade} ({self.label} - {self.rps_expectation})"


# Descending; first band whose lower bound is met wins.
RATING_BANDS = (
    Rating("A+", "Exceptional", "6000+ RPS", 95),
    Rating("A", "Excellent", "4000+ RPS", 85),
    Rating("B", "Good", "2000+ RPS", 75),
    Rating("C", "Satisfactory", "1000+ RPS", 65),
    Rating("D", "Poor", "<1000 RPS", 50),
    Rating("F", "Unsatisfactory", "critical issues", float("-inf")),
)


def rating(overall: float) -> Rating:
    """Map an overall score to its band (inclusive at the lower bound)."""
    for band in RATING_BANDS:
        if overall >= band.min_score:
            return band
    return RATING_BANDS[-1]


@dataclass(frozen=True)
class ScoreReport:
    overall: float
    create: float
    read: float
    stability: float
    performance: float
    rating: Rating

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "create": self.create,
            "read": self.read,
            "stability": self.stability,
            "performance": self.performance,
            "rating": str(self.rating),
            "grade": self.rating.grade,
        }


def stability_score(snapshot: RunMetricsSnapshot, config: ScoringConfig) -> float:
    latency_penalty = max(
        0.0,
        (snapshot.p95_duration - config.latency_baseline_ms) / config.latency_penalty_divisor,
    )
    return clamp(100.0 - snapshot.failure_rate * config.error_penalty - latency_penalty)


def create_score(snapshot: RunMetricsSnapshot, config: ScoringConfig) -> float:
    rps_points = min(100.0, snapshot.rps * config.create_rps_factor)
    time_points = max(0.0, 100.0 - snapshot.avg_duration)
    return (rps_points + time_points) / 2


def read_score(snapshot: RunMetricsSnapshot, config: ScoringConfig) -> float:
    # Reads should be twice as fast as creates
    rps_points = min(100.0, snapshot.rps * config.read_rps_factor)
    time_points = max(0.0, 100.0 - snapshot.avg_duration * 2)
    return (rps_points + time_points) / 2


def performance_score(snapshot: RunMetricsSnapshot, config: ScoringConfig) -> float:
    return min(100.0, snapshot.rps / config.rps_divisor)


def score(snapshot: RunMetricsSnapshot, config: ScoringConfig | None = None) -> ScoreReport:
    """Compute the pillar scores, overall score and rating for a run."""
    config = config or ScoringConfig()

    stability = stability_score(snapshot, config)
    create = create_score(snapshot, config)
    read = read_score(snapshot, config)
    performance = performance_score(snapshot, config)
    overall = PILLAR_WEIGHT * (stability + create + read + performance)

    return ScoreReport(
        overall=overall,
        create=create,
        read=read,
        stability=stability,
        performance=performance,
        rating=rating(overall),
    )


THROUGHPUT_GRADES = (
    (6000, "EXCELLENT (6000+ RPS)"),
    (4000, "GREAT (4000+ RPS)"),
    (2000, "GOOD (2000+ RPS)"),
    (1000, "AVERAGE (1000+ RPS)"),
)


def throughput_grade(rps: float) -> str:
    """Grade a create-only run by raw throughput."""
    for floor, label in THROUGHPUT_GRADES:
        if rps >= floor:
            return label
    return "NEEDS IMPROVEMENT"


def recommendations(report: ScoreReport, snapshot: RunMetricsSnapshot) -> list[str]:
    """Return one advice line per scoring dimension."""
    return [
        "Optimise database/cache performance" if report.overall < 75 else "Performance is excellent",
        "Reduce the error count" if snapshot.failure_rate > 0.02 else "Stability is good",
        "Improve response time" if snapshot.p95_duration > 150 else "Response time is acceptable",
        "Scale the infrastructure" if snapshot.rps < 3000 else "RPS is on target",
    ]
