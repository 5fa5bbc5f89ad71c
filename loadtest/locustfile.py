# ruff: noqa: E402
"""
Locust entrypoint for the event-API load tests.

This is the file that the ``locust`` CLI discovers and loads.  It imports
every concrete user class, picks the scenario to run, drives the user
count from the scenario's execution shape, and reports on the run when
Locust quits.

Usage examples::

    # Default scenario (SCENARIO env var, "score" if unset):
    locust -f loadtest/locustfile.py --headless --host http://localhost:8080

    # One catalog scenario, selected by tag:
    locust -f loadtest/locustfile.py --headless --tags load_read ...

    # A scenario under a generic shape:
    SHAPE=smoke_test locust -f loadtest/locustfile.py --headless --tags create_read ...

Key Concepts Demonstrated:
- Locust ``events.init`` hook that maps ``--tags`` to scenario user classes
- ``LoadTestShape`` fed by the declarative execution shape
- Run-scoped metrics reset on ``test_start`` and reduced on ``quitting``
- Threshold breaches surfaced through ``environment.process_exit_code``
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from locust import LoadTestShape, events
from locust.runners import WorkerRunner

# Locust may be invoked from any directory.  Inserting the project root
# onto ``sys.path`` guarantees that ``from loadtest…`` imports resolve.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from loadtest.catalog import CatalogError, load_catalog
from loadtest.config import configure_logging, get_config
from loadtest.data_loader import ReferenceData
from loadtest.run import LoadTestRun, attach_run, current_run
from loadtest.scenarios.api_smoke import ApiSmokeUser
from loadtest.scenarios.create_read import CreateReadUser
from loadtest.scenarios.full_load import FullLoadUser
from loadtest.scenarios.load_create import LoadCreateUser
from loadtest.scenarios.load_read import LoadReadEventsUser, LoadReadStatsUser, LoadReadUserEventsUser
from loadtest.scenarios.score import ScoreUser
from loadtest.scenarios.stats_cache import StatsCachedUser, StatsUncachedUser

__all__ = [
    "ApiSmokeUser",
    "CreateReadUser",
    "FullLoadUser",
    "LoadCreateUser",
    "LoadReadEventsUser",
    "LoadReadStatsUser",
    "LoadReadUserEventsUser",
    "ScenarioLoadShape",
    "ScoreUser",
    "StatsCachedUser",
    "StatsUncachedUser",
]

logger = logging.getLogger(__name__)

# Maps scenario names (and CLI ``--tags`` values) to their user classes.
TAG_TO_SCENARIO = {
    "load_create": (LoadCreateUser,),
    "load_read": (LoadReadEventsUser, LoadReadUserEventsUser, LoadReadStatsUser),
    "create_read": (CreateReadUser,),
    "full_load": (FullLoadUser,),
    "stats_cache": (StatsCachedUser, StatsUncachedUser),
    "score": (ScoreUser,),
    "api_smoke": (ApiSmokeUser,),
}


def select_scenario(tags: list[str] | None, default: str) -> str:
    """
    Return the scenario named by ``--tags``, or *default*.

    Only one scenario runs at a time; extra scenario tags are ignored with
    a warning.
    """
    selected = [tag for tag in (tags or []) if tag in TAG_TO_SCENARIO]
    if not selected:
        return default
    if len(selected) > 1:
        logger.warning("Several scenario tags given (%s); running %s", ", ".join(selected), selected[0])
    return selected[0]


def build_run(scenario: str, settings=None) -> tuple[LoadTestRun, tuple[type, ...]]:
    """
    Load the catalog entry for *scenario* and build its run.

    Lane classes get a Locust ``weight`` proportional to their lane's
    declared rate.

    Raises:
        CatalogError: If the scenario is unknown or invalid.
    """
    settings = settings or get_config()
    if scenario not in TAG_TO_SCENARIO:
        raise CatalogError(f"Unknown scenario: {scenario}")

    definition = load_catalog(settings.SCENARIO_CATALOG).scenario(scenario, shape=settings.SHAPE)
    user_classes = TAG_TO_SCENARIO[scenario]

    declarations: dict[str, tuple[str, ...]] = {}
    for user_class in user_classes:
        user_class.weight = definition.lane_weight(user_class.lane) if user_class.lane else 1
        for kind, names in user_class.metric_declarations().items():
            declarations[kind] = declarations.get(kind, ()) + tuple(names)

    reference = ReferenceData.load(settings.USERS_CSV, settings.EVENT_TYPES_CSV)
    run = LoadTestRun(
        definition,
        reference=reference,
        results_dir=settings.RESULTS_DIR,
        declarations=declarations,
    )
    return run, user_classes


class ScenarioLoadShape(LoadTestShape):
    """Follow the execution shape of the run attached to the environment."""

    def tick(self):
        run = current_run(self.runner.environment)
        if run is None:
            return None
        return run.shape.tick(self.get_run_time())


@events.init.add_listener
def _install_scenario(environment, **_kwargs):
    """
    Select the scenario's user classes and attach a fresh run.

    Locust's built-in tag filtering hides individual ``@task`` methods but
    still instantiates every user class, so ``environment.user_classes``
    is replaced with exactly the classes of the selected scenario.
    """
    settings = get_config()
    configure_logging(settings.LOG_LEVEL)

    parsed_options = environment.parsed_options
    tags = parsed_options.tags if parsed_options is not None else None
    scenario = select_scenario(tags, settings.SCENARIO)

    run, user_classes = build_run(scenario, settings)
    environment.user_classes = list(user_classes)
    attach_run(environment, run)
    logger.info(
        "Scenario %s: %s executor, %d user class(es), %d threshold(s)",
        scenario,
        run.shape.executor,
        len(user_classes),
        len(run.definition.thresholds),
    )


@events.test_start.add_listener
def _reset_run(environment, **_kwargs):
    run = current_run(environment)
    if run is not None:
        run.reset()
        logger.info("Run started: %s", run.definition.name)


@events.quitting.add_listener
def _report_run(environment, **_kwargs):
    """Score, check thresholds and report; fail the process on a breach."""
    run = current_run(environment)
    if run is None or isinstance(environment.runner, WorkerRunner):
        return

    result = run.finish(environment.stats)
    print(result.summary)
    if not result.passed:
        environment.process_exit_code = 1
