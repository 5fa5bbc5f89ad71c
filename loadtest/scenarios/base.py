"""
Shared abstract Locust user class for the event-API scenarios.

:class:`EventApiUser` gives every virtual user its own random source and
:class:`~loadtest.payloads.PayloadSynthesizer`, looks up the
:class:`~loadtest.run.LoadTestRun` attached to the environment, and
paces iterations so arrival-rate scenarios hold their target rate.

Concrete user classes declare a single ``@task`` that wraps its body in
:meth:`EventApiUser._iteration` and delegates to the ``_`` prefixed
helpers defined here.

Key Concepts Demonstrated:
- Abstract Locust base classes for DRY scenario authoring
- Per-user state only; the run's accumulator is the single shared object
- ``wait_time`` as a method computing arrival-rate pacing
"""

from __future__ import annotations

import random
import time
from collections.abc import Iterator
from contextlib import contextmanager
from typing import ClassVar

from locust import HttpUser
from locust.exception import StopUser

from loadtest.actions import ActionResult, get_read, post_batch, post_event
from loadtest.catalog import ScenarioDefinition
from loadtest.classifier import (
    CACHED,
    MetricNames,
    OperationOutcome,
    OutcomeRecorder,
    ResponseRule,
    create_rule,
    read_rule,
)
from loadtest.config import get_config
from loadtest.metrics import TREND
from loadtest.mix import select_read_kind
from loadtest.payloads import READ_KINDS, PayloadSynthesizer
from loadtest.run import LoadTestRun, current_run
from loadtest.shapes import Pacer

ITERATION_DURATION = "iteration_duration"


class EventApiUser(HttpUser):
    """
    Base user for every scenario.

    ``abstract = True`` tells Locust not to spawn this class directly,
    only its concrete subclasses.

    Attributes:
        lane: Name of the scenario lane this class represents; its Locust
            ``weight`` is derived from the lane's declared rate.
        metric_names: Which accumulator metrics outcomes are written to.
        declared_metrics: Metrics created at run start, as
            ``{kind: names}``, so thresholds on them never see a missing
            metric.
        read_kinds: Read endpoints the class picks from.
    """

    abstract = True
    host = get_config().BASE_URL

    lane: ClassVar[str | None] = None
    metric_names: ClassVar[MetricNames] = MetricNames()
    declared_metrics: ClassVar[dict[str, tuple[str, ...]]] = {}
    read_kinds: ClassVar[tuple[str, ...]] = READ_KINDS

    run: LoadTestRun
    rng: random.Random
    synthesizer: PayloadSynthesizer
    pacer: Pacer

    def on_start(self) -> None:
        """Bind to the current run and build per-user generators."""
        run = current_run(self.environment)
        if run is None:
            raise StopUser("No load-test run is attached to the environment")

        self.run = run
        self.rng = random.Random()
        self.synthesizer = PayloadSynthesizer(
            self.rng,
            user_ids=run.reference.user_ids,
            event_types=run.reference.event_types,
        )
        self.pacer = Pacer()

    def wait_time(self) -> float:
        """Pace iterations for arrival-rate shapes; no wait for VU shapes."""
        runner = self.environment.runner
        user_count = runner.user_count if runner is not None else 1
        self.run.observe_users(user_count)
        rate = self.run.shape.arrival_rate(self.run.elapsed())
        return self.pacer.wait(rate, user_count)

    @classmethod
    def metric_declarations(cls) -> dict[str, tuple[str, ...]]:
        """Metrics this class needs, merged with the base declarations."""
        declarations = {TREND: (ITERATION_DURATION,)}
        for kind, names in cls.declared_metrics.items():
            declarations[kind] = declarations.get(kind, ()) + tuple(names)
        return declarations

    @property
    def definition(self) -> ScenarioDefinition:
        return self.run.definition

    @property
    def recorder(self) -> OutcomeRecorder:
        return OutcomeRecorder(self.run.accumulator, self.metric_names)

    @contextmanager
    def _iteration(self) -> Iterator[None]:
        """Record the wall-clock duration of one iteration."""
        started = time.monotonic()
        try:
            yield
        finally:
            self.run.accumulator.trend(ITERATION_DURATION, (time.monotonic() - started) * 1000)

    def _create_rule(self) -> ResponseRule:
        return create_rule(self.definition.create_latency_ms, self.definition.require_body)

    def _read_rule(self) -> ResponseRule:
        return read_rule(self.definition.read_latency_ms, self.definition.require_body)

    def _record(self, result: ActionResult) -> OperationOutcome:
        self.recorder.record(result.outcome, result.response.body)
        return result.outcome

    def _create(self, rule: ResponseRule | None = None, record: bool = True) -> ActionResult:
        """POST one event."""
        result = post_event(self.client, self.synthesizer, rule or self._create_rule())
        if record:
            self._record(result)
        return result

    def _batch(self, rule: ResponseRule | None = None, record: bool = True) -> ActionResult:
        """POST a batch of ``definition.batch_size`` events."""
        result = post_batch(
            self.client,
            self.synthesizer,
            rule or self._create_rule(),
            self.definition.batch_size,
        )
        if record:
            self._record(result)
        return result

    def _read(
        self,
        kind: str | None = None,
        rule: ResponseRule | None = None,
        cache_mode: str = CACHED,
        classify_cache: bool = False,
        record: bool = True,
    ) -> ActionResult:
        """
        Read one endpoint.

        Args:
            kind: Endpoint kind; a uniform pick from :attr:`read_kinds`
                when omitted.
            rule: Acceptance criteria; the scenario's read rule by default.
            cache_mode: ``cached`` or ``uncached`` traffic.
            classify_cache: Infer a cache hit or miss from latency.
            record: Write the outcome to the run's metrics.
        """
        kind = kind or select_read_kind(self.read_kinds, self.rng)
        result = get_read(
            self.client,
            self.synthesizer,
            kind,
            self.definition.read_query,
            rule or self._read_rule(),
            cache_classifier=self.run.cache_classifier if classify_cache else None,
            cache_mode=cache_mode,
        )
        if record:
            self._record(result)
        return result
