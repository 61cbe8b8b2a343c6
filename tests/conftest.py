from __future__ import annotations

import itertools

import pytest


class SequenceRandom:
    """Random provider returning preset values in order (cycling), recording each requested range."""

    def __init__(self, *values: int) -> None:
        self._values = itertools.cycle(values)
        self.calls: list[tuple[int, int]] = []

    def number_between(self, min_value: int, max_value: int) -> int:
        self.calls.append((min_value, max_value))
        return next(self._values)


@pytest.fixture
def sequence_random():
    return SequenceRandom
