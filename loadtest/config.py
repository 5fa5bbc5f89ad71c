"""
Load-test configuration module.

Configuration classes for the environments the suite runs in (local
development, unit tests, CI).  Values are read from environment variables
with sensible defaults, mirroring how the scenario scripts pick up
``BASE_URL`` and friends when launched by Locust.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

# Root of the repository (one level above the package)
BASE_DIR = Path(__file__).resolve().parent.parent

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class Config:
    """Base configuration with default settings."""

    BASE_URL: str = os.environ.get("BASE_URL", "http://localhost")

    USERS_CSV: str = os.environ.get("USERS_CSV", str(BASE_DIR / "data" / "users.csv"))
    EVENT_TYPES_CSV: str = os.environ.get(
        "EVENT_TYPES_CSV",
        str(BASE_DIR / "data" / "event_types.csv"),
    )

    RESULTS_DIR: str = os.environ.get("RESULTS_DIR", str(BASE_DIR / "results"))

    # Scenario spawned when ``--tags`` is not given
    SCENARIO: str = os.environ.get("SCENARIO", "score")
    # Optional generic shape (smoke_test, load_test, ...) overriding the
    # scenario's own execution shape
    SHAPE: str | None = os.environ.get("SHAPE") or None
    SCENARIO_CATALOG: str = os.environ.get(
        "SCENARIO_CATALOG",
        str(Path(__file__).resolve().parent / "scenarios.yml"),
    )

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "INFO")


class DevelopmentConfig(Config):
    """Local runs against a developer's stack."""

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "DEBUG")


class TestingConfig(Config):
    """Unit-test configuration: no reference files, throwaway results dir."""

    USERS_CSV: str = os.environ.get("TEST_USERS_CSV", "")
    EVENT_TYPES_CSV: str = os.environ.get("TEST_EVENT_TYPES_CSV", "")
    RESULTS_DIR: str = os.environ.get("TEST_RESULTS_DIR", str(BASE_DIR / "instance" / "results"))


class CIConfig(Config):
    """Headless CI runs; quieter logs."""

    LOG_LEVEL: str = os.environ.get("LOG_LEVEL", "WARNING")


config = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "ci": CIConfig,
    "default": DevelopmentConfig,
}


def get_config(env: str | None = None) -> type[Config]:
    """
    Get the configuration class for the specified environment.

    Args:
        env: Environment name (development, testing, ci).
             If None, uses the LOADTEST_ENV environment variable.

    Returns:
        Configuration class for the specified environment.
    """
    if env is None:
        env = os.environ.get("LOADTEST_ENV", "development")
    return config.get(env, config["default"])


def configure_logging(level: str | int = "INFO") -> None:
    """Install the suite's root logging format."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
