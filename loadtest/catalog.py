"""
Declarative scenario catalog.

Loads :file:`scenarios.yml` and turns each scenario entry into a
:class:`ScenarioDefinition`: execution shape, thresholds, operation mix,
read-query profile, latency ceilings and cache-inference thresholds.
Scenario user classes read everything that varies between scenarios from
here, so the request logic itself is written once.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from loadtest.mix import OperationWeights
from loadtest.payloads import ReadQueryProfile
from loadtest.scoring import ScoringConfig
from loadtest.shapes import ExecutionShape
from loadtest.thresholds import Threshold, ThresholdError, parse_thresholds

logger = logging.getLogger(__name__)

DEFAULT_CATALOG_PATH = Path(__file__).resolve().parent / "scenarios.yml"


class CatalogError(ValueError):
    """Raised when the catalog is missing, malformed or names unknown entries."""


@dataclass(frozen=True)
class ScenarioDefinition:
    """
    Everything that distinguishes one scenario from another.

    Attributes:
        name: Catalog key, also the Locust tag.
        title: Heading of the console summary.
        results_file: JSON artifact name inside the results directory.
        shape: Execution shape (possibly overridden by a generic shape).
        thresholds: Parsed pass/fail conditions.
        weights: Create/read split.
        read_query: Parameter distribution for reads.
        lanes: Relative weights of the scenario's user classes.
        create_latency_ms: Latency ceiling for create requests.
        read_latency_ms: Latency ceiling for read requests.
        require_body: Whether empty bodies fail the checks.
        cache_thresholds_ms: Per-endpoint cache-hit latency ceilings.
        invalidation_pause_s: Pause between a cache-invalidating write
            and the read that follows it.
        batch_size: Events per ``POST /events/batch`` request.
        scoring: Scorer tunables; ``None`` disables scoring.
        target_rps: Throughput target shown in the summary.
        note: Free-text remark shown in the summary.
    """

    name: str
    title: str
    results_file: str
    shape: ExecutionShape
    thresholds: tuple[Threshold, ...] = ()
    weights: OperationWeights = field(default_factory=lambda: OperationWeights(create=0.3))
    read_query: ReadQueryProfile = field(default_factory=ReadQueryProfile)
    lanes: Mapping[str, float] = field(default_factory=dict)
    create_latency_ms: float = 1000.0
    read_latency_ms: float = 1000.0
    require_body: bool = False
    cache_thresholds_ms: Mapping[str, float] = field(default_factory=dict)
    invalidation_pause_s: float = 0.0
    batch_size: int = 10
    scoring: ScoringConfig | None = None
    target_rps: float | None = None
    note: str = ""

    def lane_weight(self, lane: str) -> int:
        """Integer Locust weight for *lane*, proportional to its declared rate."""
        if not self.lanes:
            return 1
        smallest = min(value for value in self.lanes.values() if value > 0)
        return max(1, round(self.lanes.get(lane, 0) / smallest))


@dataclass(frozen=True)
class Catalog:
    shapes: Mapping[str, Mapping[str, Any]]
    shape_thresholds: Mapping[str, Mapping[str, Any]]
    threshold_sets: Mapping[str, Mapping[str, Any]]
    scenarios: Mapping[str, Mapping[str, Any]]

    def scenario_names(self) -> list[str]:
        return list(self.scenarios)

    def shape(self, name: str) -> ExecutionShape:
        try:
            return ExecutionShape.from_dict(self.shapes[name])
        except KeyError as exc:
            raise CatalogError(f"Unknown shape: {name}") from exc

    def scenario(self, name: str, shape: str | None = None) -> ScenarioDefinition:
        """
        Build the definition of scenario *name*.

        Args:
            name: Scenario key in the catalog.
            shape: Optional generic shape that replaces the scenario's own
                execution shape; its ``shape_thresholds`` are added.

        Raises:
            CatalogError: If the scenario, shape or a threshold is invalid.
        """
        try:
            data = self.scenarios[name]
        except KeyError as exc:
            raise CatalogError(f"Unknown scenario: {name}") from exc

        try:
            return self._build(name, data, shape)
        except CatalogError:
            raise
        except (KeyError, TypeError, ValueError) as exc:
            raise CatalogError(f"Invalid scenario {name!r}: {exc}") from exc

    def _build(self, name: str, data: Mapping[str, Any], shape_override: str | None) -> ScenarioDefinition:
        shape_spec = shape_override or data["shape"]
        shape = self.shape(shape_spec) if isinstance(shape_spec, str) else ExecutionShape.from_dict(shape_spec)

        threshold_spec: dict[str, list[str]] = {}
        for set_name in data.get("threshold_sets", ()):
            if set_name not in self.threshold_sets:
                raise CatalogError(f"Unknown threshold set: {set_name}")
            _merge_thresholds(threshold_spec, self.threshold_sets[set_name])
        _merge_thresholds(threshold_spec, data.get("thresholds", {}))
        if shape_override:
            _merge_thresholds(threshold_spec, self.shape_thresholds.get(shape_override, {}))

        try:
            thresholds = tuple(parse_thresholds(threshold_spec))
        except ThresholdError as exc:
            raise CatalogError(str(exc)) from exc

        scoring = data.get("scoring")
        return ScenarioDefinition(
            name=name,
            title=data.get("title", name.upper()),
            results_file=data.get("results_file", f"{name}-summary.json"),
            shape=shape,
            thresholds=thresholds,
            weights=OperationWeights(create=float(data.get("weights", {}).get("create", 0.3))),
            read_query=ReadQueryProfile.from_dict(data.get("read_query")),
            lanes={lane: float(rate) for lane, rate in data.get("lanes", {}).items()},
            create_latency_ms=float(data.get("create_latency_ms", 1000)),
            read_latency_ms=float(data.get("read_latency_ms", 1000)),
            require_body=bool(data.get("require_body", False)),
            cache_thresholds_ms={
                kind: float(value) for kind, value in data.get("cache_thresholds_ms", {}).items()
            },
            invalidation_pause_s=float(data.get("invalidation_pause_s", 0.0)),
            batch_size=int(data.get("batch_size", 10)),
            scoring=ScoringConfig.from_dict(scoring) if scoring is not None else None,
            target_rps=float(data["target_rps"]) if "target_rps" in data else None,
            note=data.get("note", ""),
        )


def _merge_thresholds(target: dict[str, list[str]], source: Mapping[str, Any]) -> None:
    for metric, expressions in source.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        bucket = target.setdefault(metric, [])
        for expression in expressions:
            if expression not in bucket:
                bucket.append(expression)


def load_catalog(path: str | Path | None = None) -> Catalog:
    """
    Read the scenario catalog from *path* (default: the packaged file).

    Raises:
        CatalogError: If the file is missing, not YAML, or lacks scenarios.
    """
    catalog_path = Path(path) if path else DEFAULT_CATALOG_PATH
    try:
        with catalog_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except OSError as exc:
        raise CatalogError(f"Cannot read scenario catalog {catalog_path}: {exc}") from exc
    except yaml.YAMLError as exc:
        raise CatalogError(f"Scenario catalog {catalog_path} is not valid YAML: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("scenarios"), dict):
        raise CatalogError(f"Scenario catalog {catalog_path} must define a 'scenarios' mapping")

    logger.debug("Loaded %d scenarios from %s", len(data["scenarios"]), catalog_path)
    return Catalog(
        shapes=data.get("shapes", {}),
        shape_thresholds=data.get("shape_thresholds", {}),
        threshold_sets=data.get("threshold_sets", {}),
        scenarios=data["scenarios"],
    )
