"""
Pass/fail thresholds over run metrics.

Thresholds are declared per scenario in the catalog as a mapping from a
metric name to a list of expressions::

    http_req_duration: ["p(95)<500", "p(99)<1000"]
    http_req_failed: ["rate<0.05"]
    create_errors: ["count<100"]
    overall_score: ["value>80"]

An expression is ``<aggregation><operator><number>``.  The aggregation
must exist in the exported metric (``p(N)``, ``avg``, ``min``, ``med``,
``max`` for trends; ``count``/``rate`` for counters; ``rate`` for rates;
``value`` for gauges).
"""

from __future__ import annotations

import operator
import re
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

_OPERATORS = {
    "<=": operator.le,
    ">=": operator.ge,
    "==": operator.eq,
    "<": operator.lt,
    ">": operator.gt,
}
_EXPRESSION = re.compile(
    r"^\s*(?P<aggregation>p\(\d+(?:\.\d+)?\)|avg|min|med|max|count|rate|value)"
    r"\s*(?P<operator><=|>=|==|<|>)\s*(?P<limit>-?\d+(?:\.\d+)?)\s*$"
)


class ThresholdError(ValueError):
    """Raised for malformed expressions or thresholds on unknown metrics."""


@dataclass(frozen=True)
class Threshold:
    metric: str
    aggregation: str
    operator: str
    limit: float

    @property
    def expression(self) -> str:
        return f"{self.aggregation}{self.operator}{self.limit:g}"

    def check(self, actual: float) -> bool:
        return _OPERATORS[self.operator](actual, self.limit)


@dataclass(frozen=True)
class ThresholdResult:
    threshold: Threshold
    actual: float
    passed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.threshold.metric,
            "expression": self.threshold.expression,
            "actual": self.actual,
            "passed": self.passed,
        }


def parse_threshold(metric: str, expression: str) -> Threshold:
    """
    Parse one expression for *metric*.

    Raises:
        ThresholdError: If the expression does not match the grammar.
    """
    match = _EXPRESSION.match(expression)
    if match is None:
        raise ThresholdError(f"Invalid threshold for {metric}: {expression!r}")
    return Threshold(
        metric=metric,
        aggregation=match.group("aggregation"),
        operator=match.group("operator"),
        limit=float(match.group("limit")),
    )


def parse_thresholds(spec: Mapping[str, Sequence[str]]) -> list[Threshold]:
    """Parse a catalog ``thresholds`` mapping into :class:`Threshold` objects."""
    thresholds = []
    for metric, expressions in spec.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        for expression in expressions:
            thresholds.append(parse_threshold(metric, expression))
    return thresholds


def _lookup(metrics: Mapping[str, Mapping[str, float]], threshold: Threshold) -> float:
    values = metrics.get(threshold.metric)
    if values is None:
        raise ThresholdError(f"Threshold references unknown metric: {threshold.metric}")

    aggregation = threshold.aggregation
    if aggregation not in values and aggregation == "med":
        aggregation = "p(50)"
    if aggregation not in values:
        raise ThresholdError(
            f"Metric {threshold.metric} has no {threshold.aggregation!r} aggregation"
        )
    return float(values[aggregation])


def evaluate(
    thresholds: Sequence[Threshold],
    metrics: Mapping[str, Mapping[str, float]],
) -> list[ThresholdResult]:
    """
    Check every threshold against exported *metrics*.

    Raises:
        ThresholdError: If a threshold names a metric or aggregation that
            does not exist.
    """
    results = []
    for threshold in thresholds:
        actual = _lookup(metrics, threshold)
        results.append(ThresholdResult(threshold, actual, threshold.check(actual)))
    return results


def all_passed(results: Sequence[ThresholdResult]) -> bool:
    return all(result.passed for result in results)
