from __future__ import annotations

from collections import deque
from typing import Iterable, Protocol

import numpy as np


class RandomSource(Protocol):
    """
    A single logical random stream, consumed in call order.

    random() returns a float in [0, 1); integers(low, high) an int in
    [low, high).
    """

    def random(self) -> float: ...

    def integers(self, low: int, high: int) -> int: ...


class NumpyRandomSource:
    """Seedable stream backed by numpy's default Generator (PCG64)."""

    def __init__(self, seed: int | None = None) -> None:
        self.seed = seed
        self._gen = np.random.default_rng(seed)

    def random(self) -> float:
        return float(self._gen.random())

    def integers(self, low: int, high: int) -> int:
        return int(self._gen.integers(low, high))


class ScriptedRandomSource:
    """
    Deterministic source for tests: hands out pre-recorded draws.

    Integer requests fall back to `low` when no ints were scripted, so a
    test can pin lottery draws without caring about reel symbols.
    """

    def __init__(self, draws: Iterable[float] = (), ints: Iterable[int] | None = None) -> None:
        self._draws = deque(float(d) for d in draws)
        self._ints = deque(int(i) for i in ints) if ints is not None else None

    @property
    def remaining(self) -> int:
        return len(self._draws)

    def random(self) -> float:
        if not self._draws:
            raise RuntimeError("ScriptedRandomSource ran out of draws")
        return self._draws.popleft()

    def integers(self, low: int, high: int) -> int:
        if self._ints is None:
            return low
        if not self._ints:
            raise RuntimeError("ScriptedRandomSource ran out of integer draws")
        value = self._ints.popleft()
        if not low <= value < high:
            raise RuntimeError(f"scripted integer {value} outside [{low}, {high})")
        return value
