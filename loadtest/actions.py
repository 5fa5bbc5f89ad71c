"""
Request primitives shared by every scenario.

Each function issues exactly one request through a Locust ``HttpSession``,
judges the response with :func:`~loadtest.classifier.classify`, marks the
Locust statistics entry as success or failure with the verdict's reasons,
and hands back an :class:`ActionResult`.

Requests are named after their endpoint (``create_event``,
``batch_events``, ``get_events``, ``get_user_events``, ``get_stats``) so
Locust's per-name statistics double as the ``{endpoint:...}`` sub-metrics
the thresholds refer to.

Key Concepts Demonstrated:
- ``catch_response=True`` so the verdict, not the status code alone,
  decides what Locust records as a failure
- Transport errors (status ``0``) handled as ordinary failed outcomes
- Cache inference plugged in as a strategy object
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from locust.clients import HttpSession

from loadtest.classifier import (
    CACHED,
    NOT_APPLICABLE,
    CacheClassifier,
    OperationOutcome,
    ResponseRule,
    ResponseView,
    classify,
)
from loadtest.mix import CREATE, READ
from loadtest.payloads import (
    DEFAULT_BATCH_SIZE,
    GET_USER_EVENTS,
    PayloadSynthesizer,
    ReadQueryProfile,
    read_path,
)

CREATE_EVENT = "create_event"
BATCH_EVENTS = "batch_events"


@dataclass(frozen=True)
class ActionResult:
    """
    What a scenario gets back from one request.

    Attributes:
        outcome: The classified outcome, ready for an ``OutcomeRecorder``.
        response: Status, body and latency of the response.
        payload: The request body that was sent, if any.
        params: Query parameters of a read request.
    """

    outcome: OperationOutcome
    response: ResponseView
    payload: Any = None
    params: list[tuple[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.outcome.success

    def document(self) -> dict[str, Any]:
        """Return the response JSON as a dict, or ``{}`` if parsing fails."""
        return _safe_json(self.response.body)


def _safe_json(body: str) -> dict[str, Any]:
    try:
        data = json.loads(body)
    except (TypeError, ValueError):
        return {}

    if isinstance(data, dict):
        return data
    return {}


def _conclude(
    response: Any,
    rule: ResponseRule,
    operation: str,
    endpoint: str,
    cache_classifier: CacheClassifier | None = None,
    cache_mode: str = CACHED,
) -> tuple[OperationOutcome, ResponseView]:
    view = ResponseView.from_response(response)
    verdict = classify(view, rule)
    if verdict:
        response.success()
    else:
        response.failure(verdict.message)

    cache_classification = NOT_APPLICABLE
    if cache_classifier is not None:
        cache_classification = cache_classifier(cache_mode, endpoint, view.latency_ms)

    outcome = OperationOutcome(
        operation=operation,
        endpoint=endpoint,
        success=verdict.success,
        duration_ms=view.latency_ms,
        cache_classification=cache_classification,
        status=view.status,
        verdict=verdict,
    )
    return outcome, view


def post_event(client: HttpSession, synthesizer: PayloadSynthesizer, rule: ResponseRule) -> ActionResult:
    """``POST /event`` with a freshly generated payload."""
    payload = synthesizer.generate_event_payload()
    with client.post("/event", json=payload, name=CREATE_EVENT, catch_response=True) as response:
        outcome, view = _conclude(response, rule, CREATE, CREATE_EVENT)
    return ActionResult(outcome, view, payload)


def post_batch(
    client: HttpSession,
    synthesizer: PayloadSynthesizer,
    rule: ResponseRule,
    size: int = DEFAULT_BATCH_SIZE,
) -> ActionResult:
    """``POST /events/batch`` with *size* independent payloads as a JSON array."""
    payload = synthesizer.generate_batch(size)
    with client.post("/events/batch", json=payload, name=BATCH_EVENTS, catch_response=True) as response:
        outcome, view = _conclude(response, rule, CREATE, BATCH_EVENTS)
    return ActionResult(outcome, view, payload)


def get_read(
    client: HttpSession,
    synthesizer: PayloadSynthesizer,
    kind: str,
    profile: ReadQueryProfile,
    rule: ResponseRule,
    cache_classifier: CacheClassifier | None = None,
    cache_mode: str = CACHED,
) -> ActionResult:
    """
    Issue one read of endpoint *kind* with randomised query parameters.

    Args:
        client: The Locust HTTP session.
        synthesizer: The virtual user's payload/query generator.
        kind: ``get_events``, ``get_user_events`` or ``get_stats``.
        profile: The scenario's read-parameter distribution.
        rule: Acceptance criteria for the response.
        cache_classifier: Optional cache-hit inference strategy.
        cache_mode: ``cached`` or ``uncached`` traffic.

    Raises:
        ValueError: If *kind* is not a read endpoint.
    """
    user_id = synthesizer.random_user_id() if kind == GET_USER_EVENTS else None
    path = read_path(kind, user_id)
    params = synthesizer.build_read_query(kind, profile)

    with client.get(path, params=params, name=kind, catch_response=True) as response:
        outcome, view = _conclude(response, rule, READ, kind, cache_classifier, cache_mode)
    return ActionResult(outcome, view, params=params)
