"""
Run-end reporting: console summary and JSON artifact.

The console summary is a fixed-width box whose sections appear only when
the scenario produced the metrics they describe (operation split, cache
behaviour, scores ...).  The JSON artifact carries every exported metric,
the scores and each threshold result for CI to archive or re-check with
:mod:`loadtest.check_thresholds`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loadtest.scoring import RunMetricsSnapshot, ScoreReport, recommendations, throughput_grade
from loadtest.thresholds import ThresholdResult

if TYPE_CHECKING:
    from loadtest.catalog import ScenarioDefinition

logger = logging.getLogger(__name__)

BOX_WIDTH = 64


def format_duration(ms: float) -> str:
    """Render milliseconds as ``ms``, ``s`` or ``m`` depending on magnitude."""
    if ms < 1000:
        return f"{ms:.2f}ms"
    if ms < 60000:
        return f"{ms / 1000:.2f}s"
    return f"{ms / 60000:.2f}m"


def _percent(part: float, whole: float) -> float:
    return part / whole * 100 if whole else 0.0


def cache_hit_rate(hits: float, misses: float) -> float:
    """Hit percentage; ``0`` when nothing was classified."""
    return _percent(hits, hits + misses)


class _Box:
    def __init__(self, title: str) -> None:
        self.lines = [
            "╔" + "═" * BOX_WIDTH + "╗",
            "║" + title.center(BOX_WIDTH) + "║",
            "╠" + "═" * BOX_WIDTH + "╣",
        ]

    def add(self, text: str = "") -> None:
        self.lines.append(f"║ {text}")

    def section(self, heading: str) -> None:
        self.add()
        self.add(heading)

    def render(self) -> str:
        return "\n".join(self.lines + ["╚" + "═" * BOX_WIDTH + "╝"])


def render_summary(
    definition: ScenarioDefinition,
    snapshot: RunMetricsSnapshot,
    scores: ScoreReport | None = None,
    thresholds: Sequence[ThresholdResult] = (),
) -> str:
    """Build the console summary for a finished run."""
    box = _Box(definition.title)
    total = snapshot.total_requests

    if scores is not None:
        box.add(f"OVERALL RATING: {scores.rating}")
        box.section("SCORES (0-100):")
        box.add(f"  Overall:     {scores.overall:.1f}")
        box.add(f"  Performance: {scores.performance:.1f}")
        box.add(f"  Stability:   {scores.stability:.1f}")
        box.add(f"  Create:      {scores.create:.1f}")
        box.add(f"  Read:        {scores.read:.1f}")
        box.section("PERFORMANCE METRICS:")

    target = f" (Target: {definition.target_rps:.0f}+)" if definition.target_rps else ""
    box.add(f"Total Requests: {total}")
    box.add(f"Failed Requests: {snapshot.failure_rate * 100:.2f}%")
    box.add(f"RPS Achieved: {snapshot.rps:.2f}{target}")
    box.add(f"Avg Response Time: {format_duration(snapshot.avg_duration)}")
    box.add(f"95th Percentile: {format_duration(snapshot.p95_duration)}")

    create_ops = snapshot.value("create_count", "count")
    read_ops = snapshot.value("read_count", "count")
    if "create_count" in snapshot.metrics or "read_count" in snapshot.metrics:
        box.section("OPERATIONS DISTRIBUTION:")
        box.add(f"  Create: {create_ops:.0f} ({_percent(create_ops, total):.1f}%)")
        box.add(f"  Read: {read_ops:.0f} ({_percent(read_ops, total):.1f}%)")
    for name, label in (("cache_invalidations", "Cache Invalidations"), ("cache_events", "Cache Events")):
        if name in snapshot.metrics:
            box.add(f"  {label}: {snapshot.value(name, 'count'):.0f}")

    if "cache_hits" in snapshot.metrics:
        hits = snapshot.value("cache_hits", "count")
        misses = snapshot.value("cache_misses", "count")
        box.section("CACHE PERFORMANCE (inferred from latency):")
        box.add(f"  Cache Hit Rate: {cache_hit_rate(hits, misses):.2f}% ({hits:.0f}/{hits + misses:.0f})")
        if "cached_duration" in snapshot.metrics:
            cached = snapshot.value("cached_duration", "avg")
            uncached = snapshot.value("uncached_duration", "avg")
            gain = f"{uncached / cached:.1f}x" if cached > 0 and uncached > 0 else "N/A"
            box.add(f"  Cached Avg Time: {cached:.2f}ms")
            box.add(f"  Uncached Avg Time: {uncached:.2f}ms")
            box.add(f"  Cache Speed Gain: {gain}")

    if "pages_inserted" in snapshot.metrics:
        box.section("DATA VERIFICATION:")
        box.add(f"  Pages Inserted (POST): {snapshot.value('pages_inserted', 'count'):.0f}")
        box.add(f"  Pages in Stats: {snapshot.value('pages_verified', 'count'):.0f}")

    error_lines = [
        (name, snapshot.value(name, "count"))
        for name in sorted(snapshot.metrics)
        if name.endswith("_errors") and "{" not in name
    ]
    if error_lines:
        box.section("ERRORS:")
        for name, count in error_lines:
            box.add(f"  {name}: {count:.0f}")

    if scores is not None:
        box.section("RECOMMENDATIONS:")
        for line in recommendations(scores, snapshot):
            box.add(f"  {line}")
    elif definition.target_rps:
        box.section("PERFORMANCE GRADE:")
        box.add(f"  {throughput_grade(snapshot.rps)}")

    if thresholds:
        box.section("THRESHOLDS:")
        for result in thresholds:
            status = "PASS" if result.passed else "FAIL"
            label = f"{result.threshold.metric} {result.threshold.expression}"
            box.add(f"  {label:<46}{result.actual:>10.2f} {status}")

    if definition.note:
        box.section(f"NOTE: {definition.note}")

    return box.render()


def write_results(path: str | Path, payload: dict[str, Any]) -> Path:
    """Write the JSON artifact, creating parent directories as needed."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(payload, handle, indent=2, default=str)
    logger.info("Results written to %s", target)
    return target
