from __future__ import annotations

from enum import Enum

from pachislo_sim.config import Probability, SlotProbability
from pachislo_sim.models import Lose, LotteryResult, Win


class LotteryKind(str, Enum):
    NORMAL = "Normal"
    RUSH = "Rush"
    RUSH_CONTINUE = "RushContinue"


def resolve(prob: SlotProbability, r: float) -> LotteryResult:
    """
    Map a uniform draw r in [0, 1) onto an outcome.

    [0, 1) is cut into four half-open intervals, left to right:
      win -> fake_win -> fake_lose -> remainder (lose)

    Each draw lands in exactly one interval, so a boundary value belongs
    to the interval on its right.
    """
    if not 0.0 <= r < 1.0:
        raise ValueError(f"draw must be in [0, 1) (got {r})")

    edge = prob.win
    if r < edge:
        return LotteryResult(Win.DEFAULT)
    edge += prob.fake_win
    if r < edge:
        return LotteryResult(Win.FAKE_WIN)
    edge += prob.fake_lose
    if r < edge:
        return LotteryResult(Lose.FAKE_LOSE)
    return LotteryResult(Lose.DEFAULT)


def resolve_rush_continue(probability: Probability, n: int, r: float) -> LotteryResult:
    """Rush-continue lottery at depth n: win is replaced by rush_continue_fn(n)."""
    return resolve(probability.rush_continue_at(n), r)
