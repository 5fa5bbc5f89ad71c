"""
Unit tests for the scenario user classes.

Users are built against a real Locust ``Environment`` but their HTTP
client is swapped for ``FakeClient``, and tasks are invoked directly.
"""

import pytest
from locust.env import Environment

from loadtest.metrics import COUNTER, TREND
from loadtest.mix import OperationWeights
from loadtest.run import LoadTestRun, attach_run
from loadtest.scenarios.api_smoke import ApiSmokeUser
from loadtest.scenarios.base import ITERATION_DURATION
from loadtest.scenarios.create_read import CreateReadUser
from loadtest.scenarios.full_load import FullLoadUser
from loadtest.scenarios.load_create import LoadCreateUser
from loadtest.scenarios.load_read import LoadReadStatsUser
from loadtest.scenarios.score import ScoreUser
from loadtest.scenarios.stats_cache import StatsCachedUser, StatsUncachedUser
from tests.conftest import FakeClient, FakeResponse


pytestmark = pytest.mark.unit


STATS_BODY = {"data": {"total_events": 10, "unique_users": 4, "top_pages": [{"page": "/home"}, {"page": "/about"}]}}


@pytest.fixture
def spawn(scenario_factory, tmp_path):
    """
    Factory fixture returning a started user bound to a fresh run.

    Usage:
        user = spawn(LoadCreateUser, FakeResponse(201), weights=...)
    """

    def _spawn(user_class, *responses, **definition_overrides):
        environment = Environment(user_classes=[user_class])
        run = LoadTestRun(
            scenario_factory(**definition_overrides),
            results_dir=tmp_path,
            declarations=user_class.metric_declarations(),
        )
        attach_run(environment, run)
        user = user_class(environment)
        user.on_start()
        user.client = FakeClient(*responses)
        return user

    return _spawn


def test_metric_declarations_include_iteration_duration():
    declarations = CreateReadUser.metric_declarations()

    assert ITERATION_DURATION in declarations[TREND]
    assert "cache_invalidations" in declarations[COUNTER]


def test_load_create_counts_successes_and_errors(spawn):
    # Arrange
    user = spawn(
        LoadCreateUser,
        FakeResponse(201, {"data": {"id": 1}}),
        FakeResponse(500, "oops"),
    )

    # Act
    user.create_event()
    user.create_event()

    # Assert
    accumulator = user.run.accumulator
    assert accumulator.count("create_rps") == 1
    assert accumulator.count("create_errors") == 1
    assert accumulator.export(1.0)[ITERATION_DURATION]["count"] == 2


def test_load_read_stats_lane_classifies_cache(spawn):
    user = spawn(
        LoadReadStatsUser,
        FakeResponse(200, STATS_BODY, response_time=20.0),
        FakeResponse(200, STATS_BODY, response_time=400.0),
        cache_thresholds_ms={"get_stats": 100},
    )

    user.read()
    user.read()

    accumulator = user.run.accumulator
    assert [call.path for call in user.client.calls] == ["/stats", "/stats"]
    assert accumulator.count("cache_hits") == 1
    assert accumulator.count("cache_misses") == 1
    assert accumulator.count("read_rps") == 2


def test_create_read_writes_then_reads(spawn):
    user = spawn(
        CreateReadUser,
        FakeResponse(201),
        FakeResponse(200, {"data": []}),
        weights=OperationWeights(create=1.0),
    )

    user.mixed()

    accumulator = user.run.accumulator
    assert [call.method for call in user.client.calls] == ["POST", "GET"]
    assert accumulator.count("create_count") == 1
    assert accumulator.count("read_count") == 1
    assert accumulator.count("cache_invalidations") == 1
    assert accumulator.count("mixed_rps") == 2


def test_create_read_reads_only_without_create_weight(spawn):
    user = spawn(CreateReadUser, weights=OperationWeights(create=0.0))

    user.mixed()

    assert [call.method for call in user.client.calls] == ["GET"]
    assert user.run.accumulator.count("cache_invalidations") == 0


def test_full_load_counts_cache_events_on_successful_create(spawn):
    user = spawn(FullLoadUser, FakeResponse(201), FakeResponse(503), weights=OperationWeights(create=1.0))

    user.full_load()
    user.full_load()

    accumulator = user.run.accumulator
    assert accumulator.count("cache_events") == 1
    assert accumulator.count("create_errors") == 1
    assert accumulator.export(1.0)["operation_duration"]["count"] == 2


def test_stats_cached_user_feeds_cached_trend(spawn):
    user = spawn(
        StatsCachedUser,
        FakeResponse(200, STATS_BODY, response_time=30.0),
        cache_thresholds_ms={"get_stats": 200},
    )

    user.cached_stats()

    exported = user.run.accumulator.export(1.0)
    assert exported["cache_hits"]["count"] == 1
    assert exported["stats_cached_rps"]["count"] == 1
    assert exported["cached_duration"]["count"] == 1
    assert exported["uncached_duration"]["count"] == 0


def test_stats_uncached_user_invalidates_and_verifies_pages(spawn):
    # Arrange
    user = spawn(
        StatsUncachedUser,
        FakeResponse(201),
        FakeResponse(200, STATS_BODY, response_time=30.0),
    )

    # Act
    user.uncached_stats()

    # Assert
    accumulator = user.run.accumulator
    assert [call.path for call in user.client.calls] == ["/event", "/stats"]
    assert accumulator.count("pages_inserted") == 1
    assert accumulator.count("pages_verified") == 2
    assert accumulator.count("cache_misses") == 1
    assert accumulator.count("stats_uncached_rps") == 1


def test_stats_user_counts_shape_failures_as_errors(spawn):
    user = spawn(StatsCachedUser, FakeResponse(200, {"data": {"total_events": 1}}))

    user.cached_stats()

    assert user.run.accumulator.count("stats_errors") == 1
    assert user.run.accumulator.count("stats_cached_rps") == 0


def test_score_user_tags_operations(spawn):
    user = spawn(ScoreUser, FakeResponse(201), weights=OperationWeights(create=1.0))

    user.weighted_operation()

    exported = user.run.accumulator.export(1.0)
    assert exported["operation_counts{operation:create}"]["count"] == 1
    assert exported["operation_successes{operation:create}"]["count"] == 1


def test_api_smoke_user_hits_every_endpoint(spawn):
    body = {"data": {"total_events": 1, "unique_users": 1, "top_pages": []}}
    responses = [FakeResponse(201, body), FakeResponse(201, body)] + [FakeResponse(200, body) for _ in range(3)]
    user = spawn(ApiSmokeUser, *responses)

    user.all_endpoints()

    names = [call.kwargs["name"] for call in user.client.calls]
    assert names == ["create_event", "batch_events", "get_events", "get_user_events", "get_stats"]
    assert user.run.accumulator.count("create_count") == 2
    assert user.run.accumulator.count("read_count") == 3
    assert user.run.accumulator.count("read_errors") == 0
