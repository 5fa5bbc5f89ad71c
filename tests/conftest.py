"""
Shared pytest fixtures for the load-test suite.

The scenario logic is exercised without a server or a running Locust
runner: HTTP calls go to :class:`FakeClient`, which hands out
:class:`FakeResponse` objects mimicking Locust's ``ResponseContextManager``
(``status_code``, ``text``, ``request_meta``, ``success()``/``failure()``),
and run-end statistics come from :class:`FakeStats`.

Key Concepts Demonstrated:
- Seeded random sources for reproducible distribution tests
- Test data factories built on Faker
- Lightweight fakes instead of network access
"""

import json
import os
import random
from dataclasses import dataclass, field
from typing import Any

import pytest
from faker import Faker

# Select the testing configuration before loadtest.config is imported
os.environ.setdefault("LOADTEST_ENV", "testing")

from loadtest.catalog import ScenarioDefinition
from loadtest.payloads import PayloadSynthesizer
from loadtest.shapes import ExecutionShape


# Initialize Faker for generating test data
fake = Faker()


# -----------------------------------------------------------------------------
# Fakes
# -----------------------------------------------------------------------------

class FakeResponse:
    """Stand-in for Locust's ``ResponseContextManager``."""

    def __init__(self, status_code: int = 200, body: Any = "", response_time: float = 10.0):
        self.status_code = status_code
        self.text = body if isinstance(body, str) else json.dumps(body)
        self.request_meta = {"response_time": response_time}
        self.marked: str | None = None
        self.failure_message: str | None = None

    def success(self) -> None:
        self.marked = "success"

    def failure(self, message: str) -> None:
        self.marked = "failure"
        self.failure_message = message

    def __enter__(self) -> "FakeResponse":
        return self

    def __exit__(self, *exc_info) -> bool:
        return False


@dataclass
class RecordedCall:
    method: str
    path: str
    kwargs: dict[str, Any]


class FakeClient:
    """Records requests and replays queued responses (default: 200, empty body)."""

    def __init__(self, *responses: FakeResponse):
        self.responses = list(responses)
        self.calls: list[RecordedCall] = []

    def _next(self, method: str, path: str, kwargs: dict[str, Any]) -> FakeResponse:
        self.calls.append(RecordedCall(method, path, kwargs))
        if self.responses:
            return self.responses.pop(0)
        return FakeResponse()

    def post(self, path: str, **kwargs: Any) -> FakeResponse:
        return self._next("POST", path, kwargs)

    def get(self, path: str, **kwargs: Any) -> FakeResponse:
        return self._next("GET", path, kwargs)


@dataclass
class FakeStatsEntry:
    name: str = "Aggregated"
    num_requests: int = 0
    num_failures: int = 0
    total_rps: float = 0.0
    avg_response_time: float = 0.0
    median_response_time: float = 0.0
    min_response_time: float | None = None
    max_response_time: float = 0.0
    percentiles: dict[float, float] = field(default_factory=dict)

    @property
    def fail_ratio(self) -> float:
        return self.num_failures / self.num_requests if self.num_requests else 0.0

    def get_response_time_percentile(self, percent: float) -> float:
        return self.percentiles.get(percent, 0.0)


@dataclass
class FakeStats:
    total: FakeStatsEntry = field(default_factory=FakeStatsEntry)
    entries: dict[tuple[str, str], FakeStatsEntry] = field(default_factory=dict)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def __call__(self) -> float:
        return self.now


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def rng() -> random.Random:
    """Seeded random source so distribution tests are reproducible."""
    return random.Random(20240601)


@pytest.fixture
def synthesizer(rng) -> PayloadSynthesizer:
    """Synthesizer without reference data (built-in fallbacks)."""
    return PayloadSynthesizer(rng)


@pytest.fixture
def user_ids() -> list[int]:
    return [fake.unique.random_int(min=5000, max=9999) for _ in range(5)]


@pytest.fixture
def users_csv(tmp_path, user_ids):
    """A users.csv file with Faker names and the ``user_ids`` fixture as ids."""
    path = tmp_path / "users.csv"
    lines = ["id,name,email"]
    for user_id in user_ids:
        lines.append(f"{user_id},{fake.name()},{fake.email()}")
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


@pytest.fixture
def event_types_csv(tmp_path):
    path = tmp_path / "event_types.csv"
    path.write_text(
        "id,name,description\n1,signup,User signed up\n2,checkout,Checkout started\n",
        encoding="utf-8",
    )
    return path


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_stats() -> FakeStats:
    """Stats for a healthy run: 1000 requests, 10 failures, 100 rps."""
    total = FakeStatsEntry(
        num_requests=1000,
        num_failures=10,
        total_rps=100.0,
        avg_response_time=40.0,
        median_response_time=35.0,
        min_response_time=5.0,
        max_response_time=300.0,
        percentiles={0.90: 80.0, 0.95: 90.0, 0.99: 150.0},
    )
    create = FakeStatsEntry(
        name="create_event",
        num_requests=300,
        num_failures=3,
        total_rps=30.0,
        avg_response_time=50.0,
        median_response_time=45.0,
        min_response_time=8.0,
        max_response_time=300.0,
        percentiles={0.90: 90.0, 0.95: 110.0, 0.99: 200.0},
    )
    return FakeStats(total=total, entries={("create_event", "POST"): create})


@pytest.fixture
def scenario_factory():
    """
    Factory fixture for ScenarioDefinition instances.

    Usage:
        def test_something(scenario_factory):
            definition = scenario_factory(thresholds=(...))
    """

    def _create(**overrides: Any) -> ScenarioDefinition:
        values: dict[str, Any] = {
            "name": "unit_scenario",
            "title": "UNIT SCENARIO",
            "results_file": "unit-summary.json",
            "shape": ExecutionShape("constant-vus", vus=2, duration=60.0),
        }
        values.update(overrides)
        return ScenarioDefinition(**values)

    return _create
