"""
Lifecycle of one load-test run.

A :class:`LoadTestRun` is created when Locust initialises and is attached
to the Locust ``Environment``; virtual users reach it through
:func:`current_run`.  Every ``test_start`` resets it with a fresh
:class:`~loadtest.metrics.RunAccumulator`, and at the end of the run
:meth:`LoadTestRun.finish` reduces Locust's request statistics plus the
accumulator into a snapshot, scores it, checks thresholds and writes the
report.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loadtest.catalog import ScenarioDefinition
from loadtest.classifier import LatencyCacheClassifier
from loadtest.data_loader import ReferenceData
from loadtest.metrics import RunAccumulator, trend_summary
from loadtest.report import render_summary, write_results
from loadtest.scoring import RunMetricsSnapshot, ScoreReport, score
from loadtest.thresholds import ThresholdError, ThresholdResult, all_passed, evaluate

logger = logging.getLogger(__name__)

RUN_ATTRIBUTE = "loadtest_run"
SCORE_GAUGES = ("overall_score", "create_score", "read_score", "stability_score", "performance_score")


def attach_run(environment: Any, run: LoadTestRun) -> None:
    setattr(environment, RUN_ATTRIBUTE, run)


def current_run(environment: Any) -> LoadTestRun | None:
    """Return the run attached to a Locust environment, if any."""
    return getattr(environment, RUN_ATTRIBUTE, None)


@dataclass(frozen=True)
class RunResult:
    snapshot: RunMetricsSnapshot
    scores: ScoreReport | None
    thresholds: tuple[ThresholdResult, ...]
    passed: bool
    summary: str
    results_path: Path | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)


class LoadTestRun:
    """
    State shared by all virtual users of one run.

    Args:
        definition: The scenario being executed.
        reference: Optional reference datasets for payload generation.
        results_dir: Where the JSON artifact is written.
        declarations: Metrics to create up front, as ``{kind: names}``.
        clock: Monotonic clock, replaceable in tests.
    """

    def __init__(
        self,
        definition: ScenarioDefinition,
        reference: ReferenceData | None = None,
        results_dir: str | Path = "results",
        declarations: Mapping[str, Iterable[str]] | None = None,
        clock=time.monotonic,
    ) -> None:
        self.definition = definition
        self.reference = reference or ReferenceData()
        self.results_dir = Path(results_dir)
        self.declarations = {kind: tuple(names) for kind, names in (declarations or {}).items()}
        self.cache_classifier = LatencyCacheClassifier(definition.cache_thresholds_ms)
        self._clock = clock
        self.reset()

    @property
    def shape(self):
        return self.definition.shape

    def reset(self) -> None:
        """Start a new run: zeroed metrics and a new start time."""
        self.accumulator = RunAccumulator()
        for kind, names in self.declarations.items():
            self.accumulator.declare(kind, *names)
        self.started_at = self._clock()
        self.vus = 0
        self.vus_max = 0

    def elapsed(self) -> float:
        return max(self._clock() - self.started_at, 0.0)

    def observe_users(self, user_count: int) -> None:
        self.vus = user_count
        self.vus_max = max(self.vus_max, user_count)

    def snapshot(self, stats: Any) -> RunMetricsSnapshot:
        """
        Combine Locust ``RequestStats`` with the accumulator.

        Per-endpoint request statistics are exported as
        ``http_req_duration{endpoint:<name>}`` and friends, since every
        request is named after its endpoint.
        """
        total = stats.total
        elapsed = self.elapsed()

        metrics: dict[str, dict[str, float]] = self.accumulator.export(elapsed)
        metrics["http_reqs"] = {"count": total.num_requests, "rate": total.total_rps}
        metrics["http_req_failed"] = {"rate": total.fail_ratio, "count": total.num_failures}
        metrics["http_req_duration"] = trend_summary(total)
        for entry in stats.entries.values():
            tag = f"{{endpoint:{entry.name}}}"
            metrics[f"http_reqs{tag}"] = {"count": entry.num_requests, "rate": entry.total_rps}
            metrics[f"http_req_failed{tag}"] = {"rate": entry.fail_ratio, "count": entry.num_failures}
            metrics[f"http_req_duration{tag}"] = trend_summary(entry)
        metrics["vus"] = {"value": self.vus}
        metrics["vus_max"] = {"value": self.vus_max}

        return RunMetricsSnapshot(
            total_requests=total.num_requests,
            failure_rate=total.fail_ratio,
            rps=total.total_rps,
            avg_duration=total.avg_response_time,
            p50_duration=total.median_response_time,
            p95_duration=total.get_response_time_percentile(0.95),
            p99_duration=total.get_response_time_percentile(0.99),
            elapsed_seconds=elapsed,
            metrics=metrics,
        )

    def finish(self, stats: Any, write: bool = True) -> RunResult:
        """
        Reduce the run into scores, threshold results and a report.

        Threshold configuration problems are reported as a failed run
        rather than raised, so the summary is always produced.
        """
        definition = self.definition
        snapshot = self.snapshot(stats)

        scores = None
        if definition.scoring is not None:
            scores = score(snapshot, definition.scoring)
            for name, value in zip(
                SCORE_GAUGES,
                (scores.overall, scores.create, scores.read, scores.stability, scores.performance),
            ):
                self.accumulator.gauge(name, value)
            snapshot = self.snapshot(stats)

        errors: list[str] = []
        try:
            results = tuple(evaluate(definition.thresholds, snapshot.as_metrics()))
        except ThresholdError as exc:
            logger.error("Threshold evaluation failed: %s", exc)
            errors.append(str(exc))
            results = ()

        passed = all_passed(results) and not errors
        summary = render_summary(definition, snapshot, scores, results)

        results_path = None
        if write:
            results_path = self.results_dir / definition.results_file
            write_results(
                results_path,
                {
                    "scenario": definition.name,
                    "elapsed_seconds": snapshot.elapsed_seconds,
                    "metrics": snapshot.as_metrics(),
                    "scores": _score_payload(scores, snapshot),
                    "thresholds": [result.to_dict() for result in results],
                    "passed": passed,
                    "errors": errors,
                },
            )

        for result in results:
            if not result.passed:
                logger.warning(
                    "Threshold breached: %s %s (actual %.3f)",
                    result.threshold.metric,
                    result.threshold.expression,
                    result.actual,
                )

        return RunResult(
            snapshot=snapshot,
            scores=scores,
            thresholds=results,
            passed=passed,
            summary=summary,
            results_path=results_path,
            errors=tuple(errors),
        )


def _score_payload(scores: ScoreReport | None, snapshot: RunMetricsSnapshot) -> dict[str, Any] | None:
    if scores is None:
        return None
    payload = scores.to_dict()
    payload.update(
        {
            "rps": snapshot.rps,
            "avg_duration": snapshot.avg_duration,
            "p95_duration": snapshot.p95_duration,
            "error_rate_percent": snapshot.failure_rate * 100,
        }
    )
    return payload
