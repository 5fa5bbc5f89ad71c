"""
Weighted operation selection.

Scenarios differ only in their create/read ratio and in which read
endpoints they hit, so both decisions are plain functions of a weight or
menu plus an injected random source.
"""

from __future__ import annotations

import random
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TypeVar

CREATE = "create"
READ = "read"

T = TypeVar("T")


@dataclass(frozen=True)
class OperationWeights:
    """
    Create/read split for a scenario.

    Attributes:
        create: Probability of a create iteration; reads get the rest.
    """

    create: float

    def __post_init__(self) -> None:
        if not 0.0 <= self.create <= 1.0:
            raise ValueError(f"create weight must be within [0, 1], got {self.create}")

    @property
    def read(self) -> float:
        return 1.0 - self.create


def select_operation(weights: OperationWeights, rng: random.Random) -> str:
    """Return ``"create"`` with probability ``weights.create``, else ``"read"``."""
    return CREATE if rng.random() < weights.create else READ


def select_read_kind(menu: Sequence[T], rng: random.Random) -> T:
    """Pick one entry of *menu* uniformly."""
    if not menu:
        raise ValueError("read menu must not be empty")
    return menu[rng.randrange(len(menu))]
