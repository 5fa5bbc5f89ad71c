"""
Randomised request payloads and read-query parameters.

:class:`PayloadSynthesizer` produces schema-valid event bodies for
``POST /event`` and ``POST /events/batch`` and query strings for the three
read endpoints.  Each virtual user owns its own synthesizer (and its own
``random.Random``), so nothing here is shared between concurrent users.

Key Concepts Demonstrated:
- Optional reference datasets with explicit ``None`` fallbacks
- Scenario-specific traffic shapes passed in as data
  (:class:`ReadQueryProfile`) rather than hard-coded branches
- Traffic skew: repeated user ids are expected and desirable
"""

from __future__ import annotations

import random
import string
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

FALLBACK_EVENT_TYPES = ("click", "page_view", "scroll", "hover", "form_submit", "download", "search")
PAGES = ("/home", "/dashboard", "/profile", "/settings", "/search", "/about", "/products", "/contact")
REFERRERS = ("https://google.com", "https://facebook.com", "direct", "https://twitter.com")
USER_AGENT = "locust-load-test"

MAX_FALLBACK_USER_ID = 1000
SESSION_TOKEN_LENGTH = 9
SESSION_ALPHABET = string.ascii_lowercase + string.digits
DEFAULT_BATCH_SIZE = 10

# User-event reads always request the full page of 1000 events.
USER_EVENTS_LIMIT = 1000

GET_EVENTS = "get_events"
GET_USER_EVENTS = "get_user_events"
GET_STATS = "get_stats"
READ_KINDS = (GET_EVENTS, GET_USER_EVENTS, GET_STATS)


def iso_timestamp(moment: datetime | None = None) -> str:
    """Format *moment* (default: now) as ISO-8601 UTC with millisecond precision."""
    moment = moment or datetime.now(timezone.utc)
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass(frozen=True)
class ReadQueryProfile:
    """
    Parameter distribution for the read endpoints of one scenario.

    Each ``*_threshold`` is the value a uniform draw must *exceed* for the
    optional stats parameter to be included, so ``0.3`` means "included
    70 % of the time".  ``None`` disables the parameter entirely.

    Attributes:
        page_bound: Upper bound (inclusive) for the ``page`` parameter.
        events_limits: Menu of ``limit`` values for ``GET /events``.
        stats_limits: Menu of ``limit`` values for ``GET /stats``.
        stats_types: Menu of ``type`` filters for ``GET /stats``.
        from_threshold: Draw threshold for including ``from``.
        to_threshold: Draw threshold for including ``to``.
        type_threshold: Draw threshold for including ``type``.
        stats_window_days: How far back ``from`` reaches.
    """

    page_bound: int = 50
    events_limits: tuple[int, ...] = (10, 50, 100)
    stats_limits: tuple[int, ...] = (3, 5, 10)
    stats_types: tuple[str, ...] = ("click", "page_view", "scroll")
    from_threshold: float | None = None
    to_threshold: float | None = None
    type_threshold: float | None = None
    stats_window_days: int = 7

    def __post_init__(self) -> None:
        if self.page_bound < 1:
            raise ValueError("page_bound must be >= 1")
        if not self.events_limits or not self.stats_limits:
            raise ValueError("limit menus must not be empty")
        if self.type_threshold is not None and not self.stats_types:
            raise ValueError("stats_types must not be empty when type_threshold is set")

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ReadQueryProfile:
        """Build a profile from a catalog mapping, using defaults for missing keys."""
        data = dict(data or {})
        for key in ("events_limits", "stats_limits", "stats_types"):
            if key in data:
                data[key] = tuple(data[key])
        return cls(**data)


class PayloadSynthesizer:
    """
    Generate event payloads and read queries for one virtual user.

    Args:
        rng: Random source; a fresh ``random.Random`` when omitted.
        user_ids: Optional pool of known user ids.
        event_types: Optional pool of known event-type names.
    """

    def __init__(
        self,
        rng: random.Random | None = None,
        user_ids: Sequence[int] | None = None,
        event_types: Sequence[str] | None = None,
    ) -> None:
        self.rng = rng or random.Random()
        self.user_ids = tuple(user_ids) if user_ids else None
        self.event_types = tuple(event_types) if event_types else None

    def random_user_id(self) -> int:
        """Pick a known user id, or any id in ``[1, 1000]`` without a pool."""
        if self.user_ids is None:
            return self.rng.randint(1, MAX_FALLBACK_USER_ID)
        return self.rng.choice(self.user_ids)

    def random_event_type(self) -> str:
        """Pick a known event type, or one of the fallback labels."""
        if self.event_types is None:
            return self.rng.choice(FALLBACK_EVENT_TYPES)
        return self.rng.choice(self.event_types)

    def random_session_id(self) -> str:
        token = "".join(self.rng.choices(SESSION_ALPHABET, k=SESSION_TOKEN_LENGTH))
        return f"session_{token}"

    def random_metadata(self) -> dict[str, str]:
        """Build the fixed-shape metadata block attached to every event."""
        return {
            "page": self.rng.choice(PAGES),
            "referrer": self.rng.choice(REFERRERS),
            "user_agent": USER_AGENT,
            "session_id": self.random_session_id(),
        }

    def generate_event_payload(self) -> dict[str, Any]:
        """Build a complete ``POST /event`` body stamped with the current time."""
        return {
            "user_id": self.random_user_id(),
            "event_type": self.random_event_type(),
            "timestamp": iso_timestamp(),
            "metadata": self.random_metadata(),
        }

    def generate_batch(self, count: int = DEFAULT_BATCH_SIZE) -> list[dict[str, Any]]:
        """Build *count* independent payloads for ``POST /events/batch``."""
        if count < 0:
            raise ValueError("batch count must be >= 0")
        return [self.generate_event_payload() for _ in range(count)]

    def build_read_query(
        self,
        kind: str,
        profile: ReadQueryProfile,
        now: datetime | None = None,
    ) -> list[tuple[str, Any]]:
        """
        Draw query parameters for a read endpoint.

        Args:
            kind: One of :data:`GET_EVENTS`, :data:`GET_USER_EVENTS`,
                :data:`GET_STATS`.
            profile: The scenario's parameter distribution.
            now: Reference time for stats date ranges (default: now).

        Returns:
            Ordered ``(name, value)`` pairs suitable for ``params=``.

        Raises:
            ValueError: If *kind* is not a known read endpoint.
        """
        if kind == GET_EVENTS:
            return [
                ("page", self.rng.randint(1, profile.page_bound)),
                ("limit", self.rng.choice(profile.events_limits)),
            ]

        if kind == GET_USER_EVENTS:
            return [("limit", USER_EVENTS_LIMIT)]

        if kind == GET_STATS:
            now = now or datetime.now(timezone.utc)
            params: list[tuple[str, Any]] = []
            if self._include(profile.from_threshold):
                window_start = now - timedelta(days=profile.stats_window_days)
                params.append(("from", iso_timestamp(window_start)))
            if self._include(profile.to_threshold):
                params.append(("to", iso_timestamp(now)))
            if self._include(profile.type_threshold):
                params.append(("type", self.rng.choice(profile.stats_types)))
            params.append(("limit", self.rng.choice(profile.stats_limits)))
            return params

        raise ValueError(f"Unknown read endpoint kind: {kind}")

    def _include(self, threshold: float | None) -> bool:
        # Always draw when enabled so each flag is an independent coin flip.
        return threshold is not None and self.rng.random() > threshold


def read_path(kind: str, user_id: int | None = None) -> str:
    """Return the URL path for a read endpoint kind."""
    if kind == GET_EVENTS:
        return "/events"
    if kind == GET_USER_EVENTS:
        if user_id is None:
            raise ValueError("user_id is required for user event reads")
        return f"/users/{user_id}/events"
    if kind == GET_STATS:
        return "/stats"
    raise ValueError(f"Unknown read endpoint kind: {kind}")
