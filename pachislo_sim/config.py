from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable

from pachislo_sim.models import check_count

EPS = 1e-9

# Depths probed at construction so a malformed continuation function fails fast.
PROBE_DEPTH = 8


class ConfigError(ValueError):
    """Raised when a machine configuration is invalid."""


def _check_unit(label: str, value: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{label} must be a number (got {value!r})")
    value = float(value)
    if math.isnan(value) or value < 0.0 or value > 1.0:
        raise ConfigError(f"{label} must be in [0, 1] (got {value})")
    return value


@dataclass(frozen=True, slots=True)
class SlotProbability:
    """
    One lottery's outcome distribution.

    win, fake_win and fake_lose partition [0, 1) left to right; whatever
    is left over is the plain lose probability.
    """

    win: float
    fake_win: float = 0.0
    fake_lose: float = 0.0

    def __post_init__(self) -> None:
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "win", _check_unit("win", self.win))
        object.__setattr__(self, "fake_win", _check_unit("fake_win", self.fake_win))
        object.__setattr__(self, "fake_lose", _check_unit("fake_lose", self.fake_lose))
        total = self.win + self.fake_win + self.fake_lose
        if total > 1.0 + EPS:
            raise ConfigError(
                f"win + fake_win + fake_lose must be <= 1 (got {total:.6f})"
            )

    @property
    def lose(self) -> float:
        return max(0.0, 1.0 - (self.win + self.fake_win + self.fake_lose))

    @property
    def headroom(self) -> float:
        """Largest win figure that keeps the fake figures valid."""
        return max(0.0, 1.0 - (self.fake_win + self.fake_lose))

    def with_win(self, win: float) -> SlotProbability:
        return replace(self, win=win)


@dataclass(frozen=True, slots=True)
class BallsConfig:
    init_balls: int
    incremental_balls: int
    incremental_rush: int

    def __post_init__(self) -> None:
        check_count("init_balls", self.init_balls, ConfigError)
        check_count("incremental_balls", self.incremental_balls, ConfigError)
        check_count("incremental_rush", self.incremental_rush, ConfigError)


class RangePolicy(str, Enum):
    """What to do when the continuation function leaves [0, 1]."""

    STRICT = "strict"
    CLAMP = "clamp"


RushContinueFn = Callable[[int], float]


@dataclass(frozen=True, slots=True)
class ConstantContinue:
    value: float

    def __post_init__(self) -> None:
        _check_unit("rush_continue_fn.value", self.value)

    def __call__(self, n: int) -> float:
        return float(self.value)


@dataclass(frozen=True, slots=True)
class DecayingContinue:
    """p(n) = max(floor, base * decay**n)"""

    base: float
    decay: float
    floor: float = 0.0

    def __post_init__(self) -> None:
        _check_unit("rush_continue_fn.base", self.base)
        _check_unit("rush_continue_fn.decay", self.decay)
        _check_unit("rush_continue_fn.floor", self.floor)

    def __call__(self, n: int) -> float:
        return max(float(self.floor), float(self.base) * float(self.decay) ** n)


@dataclass(frozen=True)
class Probability:
    """
    The three lottery distributions plus the rush continuation strategy.

    rush_continue_fn maps the rush depth n (>= 0) to the win probability
    used by the rush-continue lottery. Its fake figures come from
    rush_continue. Under RangePolicy.STRICT an out-of-range value is a
    ConfigError; under RangePolicy.CLAMP it is clamped into what the fake
    figures leave available.
    """

    normal: SlotProbability
    rush: SlotProbability
    rush_continue: SlotProbability
    rush_continue_fn: RushContinueFn = field(default_factory=lambda: ConstantContinue(0.5))
    range_policy: RangePolicy = RangePolicy.STRICT

    def __post_init__(self) -> None:
        for label in ("normal", "rush", "rush_continue"):
            if not isinstance(getattr(self, label), SlotProbability):
                raise ConfigError(f"{label} must be a SlotProbability")
        if not callable(self.rush_continue_fn):
            raise ConfigError("rush_continue_fn must be callable")
        object.__setattr__(self, "range_policy", RangePolicy(self.range_policy))

        for n in range(PROBE_DEPTH):
            self.rush_continue_win(n)

    def rush_continue_win(self, n: int) -> float:
        if n < 0:
            raise ValueError(f"rush depth must be >= 0 (got {n})")

        try:
            raw = float(self.rush_continue_fn(n))
        except ConfigError:
            raise
        except Exception as e:
            raise ConfigError(f"rush_continue_fn({n}) did not return a usable number: {e!r}") from e

        if math.isnan(raw):
            raise ConfigError(f"rush_continue_fn({n}) returned NaN")

        ceiling = self.rush_continue.headroom
        if self.range_policy is RangePolicy.CLAMP:
            return min(max(raw, 0.0), ceiling)

        if raw < 0.0 or raw > 1.0:
            raise ConfigError(f"rush_continue_fn({n}) must be in [0, 1] (got {raw})")
        if raw > ceiling + EPS:
            raise ConfigError(
                f"rush_continue_fn({n})={raw} leaves no room for rush_continue fake figures "
                f"(max {ceiling})"
            )
        return min(raw, ceiling)

    def rush_continue_at(self, n: int) -> SlotProbability:
        return self.rush_continue.with_win(self.rush_continue_win(n))


@dataclass(frozen=True)
class Config:
    balls: BallsConfig
    probability: Probability

    def __post_init__(self) -> None:
        if not isinstance(self.balls, BallsConfig):
            raise ConfigError("balls must be a BallsConfig")
        if not isinstance(self.probability, Probability):
            raise ConfigError("probability must be a Probability")
