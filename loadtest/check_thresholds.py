"""
Re-check a finished run against the scenario catalog's thresholds.

The locustfile already evaluates thresholds when Locust quits, but CI
often wants to gate on an archived artifact, or on a run whose thresholds
were edited afterwards.  This script accepts either:

- ``--results``: the JSON artifact written by the run (every metric,
  custom counters included), or
- ``--stats``: the ``*_stats.csv`` file Locust writes with ``--csv``;
  only the ``http_*`` metrics can be rebuilt from it, so thresholds on
  custom metrics are reported as skipped.

Exit codes follow a three-state convention so that CI can distinguish
"thresholds breached" from "script crashed":

- ``0``: all thresholds passed
- ``1``: at least one threshold was breached
- ``2``: the script itself failed (missing file, bad YAML, unknown metric, etc.)

Key Concepts Demonstrated:
- One threshold grammar shared by the live run and offline checks
- Defensive CSV parsing that tolerates Locust version differences
- Human-readable summary table printed to stdout for CI logs
"""

from __future__ import annotations

import argparse
import csv
import json
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from loadtest.catalog import DEFAULT_CATALOG_PATH, load_catalog
from loadtest.thresholds import Threshold, ThresholdResult, all_passed, evaluate

# Three-state exit codes so CI can tell "test failed" from "script crashed".
EXIT_PASS = 0
EXIT_THRESHOLD_BREACH = 1
EXIT_SCRIPT_ERROR = 2

# Locust CSV column -> trend aggregation
_DURATION_COLUMNS = {
    "avg": ("Average Response Time",),
    "min": ("Min Response Time",),
    "max": ("Max Response Time",),
    "med": ("Median Response Time", "50%"),
    "p(90)": ("90%", "90%ile"),
    "p(95)": ("95%", "95%ile", "95th percentile", "p95"),
    "p(99)": ("99%", "99%ile"),
}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the threshold checker."""
    parser = argparse.ArgumentParser(
        description="Check a load-test run against the scenario catalog's thresholds."
    )
    source = parser.add_mutually_exclusive_group(required=True)
    source.add_argument("--results", type=Path, help="Path to the run's JSON results artifact")
    source.add_argument("--stats", type=Path, help="Path to a Locust *_stats.csv file")
    parser.add_argument(
        "--scenario",
        help="Scenario whose thresholds apply (default: the one recorded in --results)",
    )
    parser.add_argument(
        "--catalog",
        type=Path,
        default=DEFAULT_CATALOG_PATH,
        help="Path to the scenario catalog YAML file",
    )
    parser.add_argument("--shape", help="Generic shape the run used, if any")
    return parser.parse_args(argv)


def _load_results(path: Path) -> dict[str, Any]:
    """
    Read a results artifact.

    Raises:
        ValueError: If the file is not a JSON object with a ``metrics`` mapping.
    """
    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)

    if not isinstance(data, dict) or not isinstance(data.get("metrics"), dict):
        raise ValueError(f"{path} does not contain a 'metrics' mapping")
    return data


def _parse_float(value: Any, field_name: str) -> float:
    """
    Coerce *value* to ``float``, stripping ``%`` suffixes if present.

    Raises:
        ValueError: If the value is missing, empty, or non-numeric.
    """
    if value is None:
        raise ValueError(f"Missing field: {field_name}")

    text = str(value).strip().replace("%", "")
    if text in ("", "N/A"):
        raise ValueError(f"Empty value for field: {field_name}")

    try:
        return float(text)
    except ValueError as exc:
        raise ValueError(f"Non-numeric value for {field_name}: {value}") from exc


def _first_column(row: dict[str, str], candidates: Sequence[str]) -> float | None:
    for candidate in candidates:
        if row.get(candidate) not in (None, "", "N/A"):
            return _parse_float(row[candidate], candidate)
    return None


def _row_metrics(row: dict[str, str]) -> dict[str, dict[str, float]]:
    request_count = _parse_float(row.get("Request Count"), "Request Count")
    failure_count = _parse_float(row.get("Failure Count"), "Failure Count")

    duration: dict[str, float] = {}
    for aggregation, columns in _DURATION_COLUMNS.items():
        value = _first_column(row, columns)
        if value is not None:
            duration[aggregation] = value

    return {
        "http_reqs": {
            "count": request_count,
            "rate": _first_column(row, ("Requests/s",)) or 0.0,
        },
        "http_req_failed": {
            "rate": failure_count / request_count if request_count else 0.0,
            "count": failure_count,
        },
        "http_req_duration": duration,
    }


def metrics_from_stats_csv(stats_path: Path) -> dict[str, dict[str, float]]:
    """
    Rebuild ``http_*`` metrics from a Locust stats CSV.

    The ``Aggregated`` row becomes the untagged metrics; every other row
    becomes ``{endpoint:<Name>}`` sub-metrics, since requests are named
    after their endpoint.

    Raises:
        ValueError: If no ``Aggregated`` row is found.
    """
    with stats_path.open("r", encoding="utf-8", newline="") as handle:
        rows = list(csv.DictReader(handle))

    metrics: dict[str, dict[str, float]] = {}
    found_aggregate = False
    for row in rows:
        if row.get("Name") == "Aggregated" or row.get("Type") == "Aggregated":
            metrics.update(_row_metrics(row))
            found_aggregate = True
        elif row.get("Name"):
            for name, values in _row_metrics(row).items():
                metrics[f"{name}{{endpoint:{row['Name']}}}"] = values

    if not found_aggregate:
        raise ValueError("Could not find 'Aggregated' row in stats CSV")
    return metrics


def _split_checkable(
    thresholds: Sequence[Threshold],
    metrics: dict[str, dict[str, float]],
) -> tuple[list[Threshold], list[Threshold]]:
    checkable = [threshold for threshold in thresholds if threshold.metric in metrics]
    skipped = [threshold for threshold in thresholds if threshold.metric not in metrics]
    return checkable, skipped


def _print_summary(
    results: Sequence[ThresholdResult],
    skipped: Sequence[Threshold],
    passed: bool,
) -> None:
    """Print a human-readable results table to stdout for CI logs."""
    print("Performance Threshold Check")
    print("-" * 86)
    print(f"{'Metric':<44}{'Actual':>12}{'Limit':>18}{'Status':>12}")
    print("-" * 86)

    for result in results:
        status = "PASS" if result.passed else "FAIL"
        print(
            f"{result.threshold.metric:<44}{result.actual:>12.2f}"
            f"{result.threshold.expression:>18}{status:>12}"
        )
    for threshold in skipped:
        print(f"{threshold.metric:<44}{'-':>12}{threshold.expression:>18}{'SKIP':>12}")

    print("-" * 86)
    print(f"Overall: {'PASS' if passed else 'FAIL'}")


def main(argv: Sequence[str] | None = None) -> int:
    """
    Entry point: load the catalog and metrics, compare, and print results.

    Returns:
        ``EXIT_PASS`` (0) if all thresholds are met,
        ``EXIT_THRESHOLD_BREACH`` (1) if any are exceeded, or
        ``EXIT_SCRIPT_ERROR`` (2) on unexpected failures.
    """
    args = parse_args(argv)

    try:
        if args.results is not None:
            data = _load_results(args.results)
            metrics = data["metrics"]
            scenario = args.scenario or data.get("scenario")
        else:
            metrics = metrics_from_stats_csv(args.stats)
            scenario = args.scenario

        if not scenario:
            raise ValueError("--scenario is required when it is not recorded in the results")

        definition = load_catalog(args.catalog).scenario(scenario, shape=args.shape)
        if args.results is not None:
            checkable, skipped = list(definition.thresholds), []
        else:
            checkable, skipped = _split_checkable(definition.thresholds, metrics)

        results = evaluate(checkable, metrics)
        passed = all_passed(results)
        _print_summary(results, skipped, passed)
        return EXIT_PASS if passed else EXIT_THRESHOLD_BREACH
    except Exception as exc:  # pragma: no cover - defensive CLI guard
        print(f"Threshold check failed: {exc}", file=sys.stderr)
        return EXIT_SCRIPT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
