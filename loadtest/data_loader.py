"""
Reference data loading for payload generation.

Two optional CSV datasets shape the synthetic traffic:

- ``users.csv``: must expose an integer ``id`` column
- ``event_types.csv``: must expose a string ``name`` column

Neither file is required.  Every loader returns ``None`` when the data is
missing, unreadable or empty, and the payload synthesizer falls back to
its built-in generators in that case.  Problems are logged as warnings,
never raised.

Running this module writes a default pair of files::

    python -m loadtest.data_loader --output data
"""

from __future__ import annotations

import argparse
import csv
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from faker import Faker

logger = logging.getLogger(__name__)

NAMED_EVENT_TYPES: list[tuple[str, str]] = [
    ("click", "User clicked on element"),
    ("page_view", "Page view event"),
    ("scroll", "User scrolled page"),
    ("hover", "Mouse hover over element"),
    ("form_submit", "Form submission"),
    ("download", "File download"),
    ("search", "Search query"),
    ("login", "User login"),
    ("logout", "User logout"),
    ("purchase", "Purchase completed"),
    ("add_to_cart", "Item added to cart"),
    ("remove_from_cart", "Item removed from cart"),
    ("view_product", "Product page viewed"),
    ("share", "Content shared"),
    ("comment", "Comment posted"),
    ("like", "Content liked"),
    ("follow", "User followed"),
    ("unfollow", "User unfollowed"),
    ("notification_open", "Notification opened"),
    ("video_play", "Video started playing"),
]
DEFAULT_EVENT_TYPE_COUNT = 100
DEFAULT_USER_COUNT = 1000


def load_csv_rows(path: str | Path | None) -> list[dict[str, str]]:
    """
    Read a headed CSV file into a list of row dictionaries.

    Rows whose column count does not match the header are dropped.
    Values are stripped of surrounding whitespace.

    Args:
        path: Location of the CSV file.  ``None`` or an empty string
            means "no dataset configured".

    Returns:
        The parsed rows, or ``[]`` if the file is absent or unreadable.
    """
    if not path:
        return []

    csv_path = Path(path)
    try:
        with csv_path.open("r", encoding="utf-8", newline="") as handle:
            reader = csv.DictReader(handle)
            rows = []
            for row in reader:
                # DictReader stores surplus values under the ``None`` key and
                # fills missing ones with ``None``.
                if None in row or None in row.values():
                    continue
                rows.append({key.strip(): value.strip() for key, value in row.items()})
    except FileNotFoundError:
        logger.warning("Reference data file not found: %s", csv_path)
        return []
    except (OSError, csv.Error, UnicodeDecodeError) as exc:
        logger.warning("Failed to load CSV from %s: %s", csv_path, exc)
        return []

    return rows


def load_user_ids(path: str | Path | None) -> tuple[int, ...] | None:
    """Return the integer ``id`` column of the users file, or ``None``."""
    rows = load_csv_rows(path)
    if not rows:
        return None
    if "id" not in rows[0]:
        logger.warning("Users file %s has no 'id' column; using random ids", path)
        return None

    user_ids = []
    for row in rows:
        try:
            user_ids.append(int(row["id"]))
        except ValueError:
            logger.debug("Skipping user row with non-integer id: %r", row["id"])

    if not user_ids:
        logger.warning("Users file %s contained no usable ids", path)
        return None
    return tuple(user_ids)


def load_event_types(path: str | Path | None) -> tuple[str, ...] | None:
    """Return the non-empty ``name`` column of the event-types file, or ``None``."""
    rows = load_csv_rows(path)
    if not rows:
        return None
    if "name" not in rows[0]:
        logger.warning("Event types file %s has no 'name' column; using fallback types", path)
        return None

    names = tuple(row["name"] for row in rows if row["name"])
    if not names:
        logger.warning("Event types file %s contained no usable names", path)
        return None
    return names


@dataclass(frozen=True)
class ReferenceData:
    """
    Optional reference datasets shared by every virtual user of a run.

    Attributes:
        user_ids: Known user ids, or ``None`` to draw from ``[1, 1000]``.
        event_types: Known event-type names, or ``None`` to use the
            synthesizer's fallback set.
    """

    user_ids: tuple[int, ...] | None = None
    event_types: tuple[str, ...] | None = None

    @classmethod
    def load(cls, users_csv: str | Path | None, event_types_csv: str | Path | None) -> ReferenceData:
        """Load both datasets, logging how much data each one yielded."""
        user_ids = load_user_ids(users_csv)
        event_types = load_event_types(event_types_csv)
        logger.info(
            "Loaded %d users and %d event types",
            len(user_ids or ()),
            len(event_types or ()),
        )
        return cls(user_ids=user_ids, event_types=event_types)


def generate_default_users(
    count: int = DEFAULT_USER_COUNT,
    faker: Faker | None = None,
) -> list[dict[str, Any]]:
    """Build ``count`` user records with sequential ids and fake names/emails."""
    faker = faker or Faker()
    users = []
    for user_id in range(1, count + 1):
        first_name = faker.first_name()
        last_name = faker.last_name()
        users.append(
            {
                "id": user_id,
                "name": f"{first_name} {last_name}",
                "email": f"{first_name.lower()}.{last_name.lower()}{user_id}@example.com",
            }
        )
    return users


def generate_default_event_types(count: int = DEFAULT_EVENT_TYPE_COUNT) -> list[dict[str, Any]]:
    """Build the named event types, padded with ``event_type_N`` up to ``count``."""
    event_types = [
        {"id": index, "name": name, "description": description}
        for index, (name, description) in enumerate(NAMED_EVENT_TYPES[:count], start=1)
    ]
    for index in range(len(event_types) + 1, count + 1):
        event_types.append(
            {
                "id": index,
                "name": f"event_type_{index}",
                "description": f"Auto-generated event type {index}",
            }
        )
    return event_types


def _write_csv(path: Path, fieldnames: list[str], rows: list[dict[str, Any]]) -> None:
    with path.open("w", encoding="utf-8", newline="") as handle:
        writer = csv.DictWriter(handle, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(rows)


def write_default_csv_files(directory: str | Path, seed: int | None = None) -> tuple[Path, Path]:
    """
    Write default ``users.csv`` and ``event_types.csv`` into *directory*.

    Args:
        directory: Target directory, created if necessary.
        seed: Optional seed for reproducible fake names.

    Returns:
        The ``(users_path, event_types_path)`` pair.
    """
    target = Path(directory)
    target.mkdir(parents=True, exist_ok=True)

    faker = Faker()
    if seed is not None:
        faker.seed_instance(seed)

    users_path = target / "users.csv"
    event_types_path = target / "event_types.csv"
    _write_csv(users_path, ["id", "name", "email"], generate_default_users(faker=faker))
    _write_csv(event_types_path, ["id", "name", "description"], generate_default_event_types())

    logger.info("Wrote default reference data to %s", target)
    return users_path, event_types_path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the default-data generator."""
    parser = argparse.ArgumentParser(
        description="Write default users.csv and event_types.csv reference files."
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=Path("data"),
        help="Directory to write the CSV files into",
    )
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible data")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Entry point for ``python -m loadtest.data_loader``."""
    from loadtest.config import configure_logging

    configure_logging()
    args = parse_args(argv)
    try:
        users_path, event_types_path = write_default_csv_files(args.output, seed=args.seed)
    except OSError as exc:
        logger.error("Cannot write reference data to %s: %s", args.output, exc)
        return 2

    print(f"Wrote {users_path} and {event_types_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
