from __future__ import annotations

import random
from typing import Optional, Protocol


class RandomProvider(Protocol):
    def number_between(self, min_value: int, max_value: int) -> int:
        """Return an integer in the inclusive range [min_value, max_value]."""
        ...


class DefaultRandomProvider:
    """Uniform provider backed by `random.Random`; pass a seed for reproducible rolls."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._random = random.Random(seed)

    def number_between(self, min_value: int, max_value: int) -> int:
        return self._random.randint(min_value, max_value)
