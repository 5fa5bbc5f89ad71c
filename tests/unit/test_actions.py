"""
Unit tests for the request primitives.

HTTP goes to ``FakeClient``; assertions cover what is sent, how the
Locust response is marked and the outcome handed back.
"""

import pytest

from loadtest.actions import BATCH_EVENTS, CREATE_EVENT, get_read, post_batch, post_event
from loadtest.classifier import (
    HIT,
    MISS,
    NOT_APPLICABLE,
    STATUS,
    UNCACHED,
    LatencyCacheClassifier,
    api_rule,
    create_rule,
    read_rule,
)
from loadtest.mix import CREATE, READ
from loadtest.payloads import GET_EVENTS, GET_STATS, GET_USER_EVENTS, PayloadSynthesizer, ReadQueryProfile
from tests.conftest import FakeClient, FakeResponse


pytestmark = pytest.mark.unit


def test_post_event_sends_payload_and_marks_success(synthesizer):
    # Arrange
    response = FakeResponse(status_code=201, response_time=12.0)
    client = FakeClient(response)

    # Act
    result = post_event(client, synthesizer, create_rule(1000))

    # Assert
    call = client.calls[0]
    assert (call.method, call.path) == ("POST", "/event")
    assert call.kwargs["name"] == CREATE_EVENT
    assert call.kwargs["catch_response"] is True
    assert call.kwargs["json"] == result.payload
    assert response.marked == "success"
    assert result.success
    assert result.outcome.operation == CREATE
    assert result.outcome.duration_ms == 12.0


def test_post_event_marks_failure_with_reasons(synthesizer):
    response = FakeResponse(status_code=500, body="boom", response_time=20.0)

    result = post_event(FakeClient(response), synthesizer, create_rule(1000))

    assert response.marked == "failure"
    assert response.failure_message == "Expected 201, got 500"
    assert not result.success
    assert result.outcome.status == 500
    assert result.response.body == "boom"


def test_transport_error_is_a_failed_outcome(synthesizer):
    response = FakeResponse(status_code=0, response_time=0.0)

    result = post_event(FakeClient(response), synthesizer, create_rule(1000))

    assert not result.success
    assert STATUS in result.outcome.verdict.categories


def test_post_batch_sends_json_array(synthesizer):
    client = FakeClient(FakeResponse(status_code=201, body={"data": {"inserted": 4}}))

    result = post_batch(client, synthesizer, api_rule(), size=4)

    call = client.calls[0]
    assert call.path == "/events/batch"
    assert call.kwargs["name"] == BATCH_EVENTS
    assert isinstance(call.kwargs["json"], list)
    assert len(call.kwargs["json"]) == 4
    assert result.success
    assert result.document() == {"data": {"inserted": 4}}


def test_get_events_sends_page_and_limit(synthesizer):
    client = FakeClient(FakeResponse(status_code=200, body={"data": []}))

    result = get_read(client, synthesizer, GET_EVENTS, ReadQueryProfile(), read_rule(1000))

    call = client.calls[0]
    assert (call.method, call.path) == ("GET", "/events")
    assert call.kwargs["name"] == GET_EVENTS
    assert [name for name, _ in call.kwargs["params"]] == ["page", "limit"]
    assert result.params == call.kwargs["params"]
    assert result.outcome.operation == READ
    assert result.outcome.cache_classification == NOT_APPLICABLE


def test_get_user_events_uses_a_known_user(rng, user_ids):
    synthesizer = PayloadSynthesizer(rng, user_ids=user_ids)
    client = FakeClient()

    get_read(client, synthesizer, GET_USER_EVENTS, ReadQueryProfile(), read_rule(1000))

    path = client.calls[0].path
    assert path.startswith("/users/") and path.endswith("/events")
    assert int(path.split("/")[2]) in user_ids
    assert client.calls[0].kwargs["name"] == GET_USER_EVENTS


def test_read_classifies_cache_hit_by_latency(synthesizer):
    classifier = LatencyCacheClassifier({GET_STATS: 100})
    client = FakeClient(FakeResponse(response_time=40.0), FakeResponse(response_time=140.0))

    fast = get_read(client, synthesizer, GET_STATS, ReadQueryProfile(), read_rule(1000), classifier)
    slow = get_read(client, synthesizer, GET_STATS, ReadQueryProfile(), read_rule(1000), classifier)

    assert fast.outcome.cache_classification == HIT
    assert slow.outcome.cache_classification == MISS


def test_uncached_reads_are_always_misses(synthesizer):
    classifier = LatencyCacheClassifier({GET_STATS: 100})
    client = FakeClient(FakeResponse(response_time=1.0))

    result = get_read(
        client, synthesizer, GET_STATS, ReadQueryProfile(), read_rule(1000), classifier, UNCACHED
    )

    assert result.outcome.cache_classification == MISS


def test_slow_read_fails_latency_check(synthesizer):
    response = FakeResponse(status_code=200, body="[]", response_time=2500.0)

    result = get_read(FakeClient(response), synthesizer, GET_EVENTS, ReadQueryProfile(), read_rule(2000))

    assert not result.success
    assert "exceeds 2000ms" in response.failure_message


def test_unknown_read_kind_raises(synthesizer):
    with pytest.raises(ValueError):
        get_read(FakeClient(), synthesizer, "get_everything", ReadQueryProfile(), read_rule(1000))


def test_document_of_non_json_body_is_empty(synthesizer):
    result = post_event(FakeClient(FakeResponse(status_code=201, body="<html>")), synthesizer, create_rule(1000))

    assert result.document() == {}
