"""
Per-response outcome classification.

Every request a scenario issues is judged against a :class:`ResponseRule`
(expected status codes, a latency ceiling, optional body and JSON-shape
checks).  Classification never raises: a malformed body is simply a
failed shape check, and transport errors arrive from Locust as status
``0`` responses that fail the status check.

Cache hits are *inferred* from latency.  The inference is a reporting
proxy, not a correctness oracle: a fast response is assumed to have come
from the server-side cache, a slow one from the database.  The strategy is
pluggable through the :class:`CacheClassifier` protocol so that a real
signal (e.g. an ``X-Cache`` response header) can replace it without
touching the scenarios.

Key Concepts Demonstrated:
- ``catch_response``-friendly verdicts that carry failure reasons
- Categorised failures (status / latency / body / shape) for diagnosis
- Run-scoped accumulators updated through a single recorder object
"""

from __future__ import annotations

import json
import logging
from collections.abc import Collection, Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

from loadtest.metrics import RunAccumulator

logger = logging.getLogger(__name__)

HIT = "hit"
MISS = "miss"
NOT_APPLICABLE = "n/a"

CACHED = "cached"
UNCACHED = "uncached"

# Failure categories recorded on a verdict
STATUS = "status"
LATENCY = "latency"
BODY = "body"
SHAPE = "shape"

STATS_FIELDS = ("data.total_events", "data.unique_users", "data.top_pages[]")

BODY_EXCERPT_LENGTH = 200


@dataclass(frozen=True)
class ResponseView:
    """
    The parts of an HTTP response the classifier inspects.

    Attributes:
        status: HTTP status code (``0`` for transport failures).
        body: Decoded response body.
        latency_ms: Request duration in milliseconds.
    """

    status: int
    body: str
    latency_ms: float

    @classmethod
    def from_response(cls, response: Any) -> ResponseView:
        """
        Adapt a Locust or ``requests`` response.

        Locust's ``ResponseContextManager`` carries the measured duration
        in ``request_meta["response_time"]``; plain ``requests`` responses
        only have ``elapsed``.
        """
        request_meta = getattr(response, "request_meta", None) or {}
        latency_ms = request_meta.get("response_time")
        if latency_ms is None:
            elapsed = getattr(response, "elapsed", None)
            latency_ms = elapsed.total_seconds() * 1000 if elapsed is not None else 0.0

        try:
            body = response.text or ""
        except (AttributeError, UnicodeDecodeError, ValueError):
            body = ""

        return cls(
            status=int(getattr(response, "status_code", 0) or 0),
            body=body,
            latency_ms=float(latency_ms),
        )


@dataclass(frozen=True)
class ResponseRule:
    """
    Acceptance criteria for one endpoint in one scenario.

    Attributes:
        expected_status: Status codes that count as success.
        max_latency_ms: Responses at or above this duration fail.
        require_body: Whether an empty body fails the check.
        required_fields: Dotted JSON paths that must be present; a
            trailing ``[]`` additionally requires the value to be a list.
    """

    expected_status: Collection[int]
    max_latency_ms: float
    require_body: bool = False
    required_fields: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "expected_status", frozenset(self.expected_status))
        object.__setattr__(self, "max_latency_ms", float(self.max_latency_ms))
        object.__setattr__(self, "required_fields", tuple(self.required_fields))


def create_rule(max_latency_ms: float, require_body: bool = False) -> ResponseRule:
    """``POST /event`` must answer ``201 Created``."""
    return ResponseRule({201}, max_latency_ms, require_body=require_body)


def read_rule(max_latency_ms: float, require_body: bool = False) -> ResponseRule:
    """Read endpoints must answer ``200 OK``."""
    return ResponseRule({200}, max_latency_ms, require_body=require_body)


def api_rule(max_latency_ms: float = 5000) -> ResponseRule:
    """Generic API check: 200 or 201 with a top-level ``data`` field."""
    return ResponseRule({200, 201}, max_latency_ms, required_fields=("data",))


def stats_rule(max_latency_ms: float = 2000) -> ResponseRule:
    """``GET /stats`` must carry the aggregate fields and a ``top_pages`` list."""
    return ResponseRule({200}, max_latency_ms, required_fields=("data{}",) + STATS_FIELDS)


@dataclass(frozen=True)
class Verdict:
    """
    Result of classifying one response.

    Truthy exactly when :attr:`success` is ``True`` so it can be used
    directly in ``if`` statements and rate metrics.
    """

    success: bool
    reasons: tuple[str, ...] = ()
    categories: frozenset[str] = field(default_factory=frozenset)

    def __bool__(self) -> bool:
        return self.success

    @property
    def message(self) -> str:
        return "; ".join(self.reasons)


def _parse_json(body: str) -> Any:
    try:
        return json.loads(body)
    except (TypeError, ValueError):
        return None


def _has_field(document: Any, path: str) -> bool:
    """
    Check a dotted path in a decoded JSON document.

    A trailing ``[]`` requires a list and a trailing ``{}`` an object.
    """
    expect: type | None = None
    if path.endswith("[]"):
        path, expect = path[:-2], list
    elif path.endswith("{}"):
        path, expect = path[:-2], dict

    node = document
    for part in path.split("."):
        if not isinstance(node, dict) or part not in node:
            return False
        node = node[part]
    return expect is None or isinstance(node, expect)


def classify(response: ResponseView, rule: ResponseRule) -> Verdict:
    """
    Judge *response* against *rule*.

    Every check is evaluated so the verdict lists all problems at once.
    """
    reasons: list[str] = []
    categories: set[str] = set()

    if response.status not in rule.expected_status:
        expected = "/".join(str(code) for code in sorted(rule.expected_status))
        reasons.append(f"Expected {expected}, got {response.status}")
        categories.add(STATUS)

    if response.latency_ms >= rule.max_latency_ms:
        reasons.append(
            f"Response time {response.latency_ms:.0f}ms exceeds {rule.max_latency_ms:.0f}ms"
        )
        categories.add(LATENCY)

    if rule.require_body and not response.body:
        reasons.append("Empty response body")
        categories.add(BODY)

    if rule.required_fields:
        document = _parse_json(response.body)
        if document is None:
            reasons.append("Response body is not valid JSON")
            categories.add(SHAPE)
        else:
            missing = [path for path in rule.required_fields if not _has_field(document, path)]
            if missing:
                reasons.append(f"Response missing {', '.join(missing)}")
                categories.add(SHAPE)

    return Verdict(success=not reasons, reasons=tuple(reasons), categories=frozenset(categories))


class CacheClassifier(Protocol):
    """Strategy deciding whether a read was served from cache."""

    def __call__(self, mode: str, endpoint_kind: str, latency_ms: float) -> str: ...


class LatencyCacheClassifier:
    """
    Infer cache hits from response time.

    A read faster than its endpoint's threshold counts as a hit.  Scenarios
    running in :data:`UNCACHED` mode invalidate the cache with a write
    before every read, so they always report a miss.

    Args:
        thresholds: Per-endpoint hit ceilings in milliseconds.
        default_ms: Ceiling for endpoints not listed in *thresholds*.
    """

    def __init__(self, thresholds: Mapping[str, float] | None = None, default_ms: float = 50) -> None:
        self.thresholds = dict(thresholds or {})
        self.default_ms = default_ms

    def __call__(self, mode: str, endpoint_kind: str, latency_ms: float) -> str:
        if mode == UNCACHED:
            return MISS
        ceiling = self.thresholds.get(endpoint_kind, self.default_ms)
        return HIT if latency_ms < ceiling else MISS


def classify_cache(
    mode: str,
    endpoint_kind: str,
    latency_ms: float,
    thresholds: Mapping[str, float] | None = None,
) -> str:
    """Convenience wrapper around :class:`LatencyCacheClassifier`."""
    return LatencyCacheClassifier(thresholds)(mode, endpoint_kind, latency_ms)


@dataclass(frozen=True)
class OperationOutcome:
    """One iteration's primary request, consumed immediately by counters."""

    operation: str
    endpoint: str
    success: bool
    duration_ms: float
    cache_classification: str = NOT_APPLICABLE
    status: int = 0
    verdict: Verdict | None = None


@dataclass(frozen=True)
class MetricNames:
    """
    Which accumulator metrics a scenario writes outcomes into.

    ``None`` skips that metric.  Counter names may differ between create
    and read operations.

    Attributes:
        count: Per-operation counter of attempts.
        errors: Per-operation counter of failures.
        successes: Per-operation counter of successes.
        duration: Per-operation duration trend.
        success_counter: Counter of successful operations across both
            kinds (its ``rate`` is successful operations per second).
        cache_hits: Counter incremented on inferred hits.
        cache_misses: Counter incremented on inferred misses.
        tag_operation: Also record ``{operation:...}`` sub-metrics.
    """

    count: Mapping[str, str] = field(default_factory=dict)
    errors: Mapping[str, str] = field(default_factory=dict)
    successes: Mapping[str, str] = field(default_factory=dict)
    duration: Mapping[str, str] = field(default_factory=dict)
    success_counter: str | None = None
    cache_hits: str | None = None
    cache_misses: str | None = None
    tag_operation: bool = False


class OutcomeRecorder:
    """
    Write :class:`OperationOutcome` records into a run's accumulator.

    Args:
        accumulator: The run's metric store.
        names: Which metrics this scenario maintains.
    """

    def __init__(self, accumulator: RunAccumulator, names: MetricNames) -> None:
        self.accumulator = accumulator
        self.names = names

    def record(self, outcome: OperationOutcome, body: str = "") -> None:
        names = self.names
        operation = outcome.operation
        tags = {"operation": operation} if names.tag_operation else {}

        if operation in names.count:
            self.accumulator.add(names.count[operation], 1, **tags)
        if operation in names.duration:
            self.accumulator.trend(names.duration[operation], outcome.duration_ms, **tags)

        if outcome.success:
            if operation in names.successes:
                self.accumulator.add(names.successes[operation], 1, **tags)
            if names.success_counter:
                self.accumulator.add(names.success_counter, 1)
        else:
            if operation in names.errors:
                self.accumulator.add(names.errors[operation], 1, **tags)
            reason = outcome.verdict.message if outcome.verdict else ""
            logger.error(
                "%s failed: status=%s reason=%s body=%s",
                outcome.endpoint,
                outcome.status,
                reason,
                body[:BODY_EXCERPT_LENGTH],
            )

        if outcome.cache_classification == HIT and names.cache_hits:
            self.accumulator.add(names.cache_hits)
        elif outcome.cache_classification == MISS and names.cache_misses:
            self.accumulator.add(names.cache_misses)
