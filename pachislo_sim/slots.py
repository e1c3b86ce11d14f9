from __future__ import annotations

from dataclasses import dataclass, field

from pachislo_sim.config import ConfigError
from pachislo_sim.models import Lose, LotteryResult
from pachislo_sim.rng import RandomSource


@dataclass(frozen=True, slots=True)
class SlotProducer:
    """
    Picks the reel symbols shown for a lottery result.

    Presentation only: symbols are drawn after the outcome is decided and
    never feed back into ball accounting.

      win (any flavour)  -> every reel shows the same symbol
      Lose.FAKE_LOSE     -> "reach": all but the last reel match
      Lose.DEFAULT       -> the first two reels already differ
    """

    reels: int = 3
    symbols: tuple[int, ...] = field(default=tuple(range(1, 8)))

    def __post_init__(self) -> None:
        if isinstance(self.reels, bool) or not isinstance(self.reels, int) or self.reels < 3:
            raise ConfigError(f"slots.reels must be an int >= 3 (got {self.reels!r})")
        symbols = tuple(self.symbols)
        if len(symbols) < 2:
            raise ConfigError("slots.symbols must hold at least two symbols")
        if len(set(symbols)) != len(symbols):
            raise ConfigError("slots.symbols must not contain duplicates")
        for s in symbols:
            if isinstance(s, bool) or not isinstance(s, int) or s < 0:
                raise ConfigError(f"slots.symbols must be small non-negative ints (got {s!r})")
        object.__setattr__(self, "symbols", symbols)

    def _pick(self, rng: RandomSource, exclude: int | None = None) -> int:
        pool = self.symbols if exclude is None else tuple(s for s in self.symbols if s != exclude)
        return pool[rng.integers(0, len(pool))]

    def produce(self, result: LotteryResult, rng: RandomSource) -> tuple[int, ...]:
        first = self._pick(rng)

        if result.is_win:
            return (first,) * self.reels

        if result.outcome is Lose.FAKE_LOSE:
            last = self._pick(rng, exclude=first)
            return (first,) * (self.reels - 1) + (last,)

        second = self._pick(rng, exclude=first)
        rest = tuple(self._pick(rng) for _ in range(self.reels - 2))
        return (first, second) + rest
