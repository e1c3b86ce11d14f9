from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class CommandParseError(ValueError):
    """Raised when an external token does not name a known command."""

    def __init__(self, token: object) -> None:
        super().__init__(f"unrecognized command token: {token!r}")
        self.token = token


class StateFormatError(ValueError):
    """Raised when a wire-shaped game state cannot be decoded."""


def check_count(label: str, value: int, error: type[ValueError] = ValueError) -> int:
    """Validate a non-negative int count; config code passes ConfigError as `error`."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise error(f"{label} must be an int (got {value!r})")
    if value < 0:
        raise error(f"{label} must be >= 0 (got {value})")
    return value


@dataclass(frozen=True, slots=True)
class Uninitialized:
    """No session started (or the last one was finished)."""


@dataclass(frozen=True, slots=True)
class Normal:
    balls: int

    def __post_init__(self) -> None:
        check_count("balls", self.balls)


@dataclass(frozen=True, slots=True)
class Rush:
    """
    High-probability mode.

    n counts consecutive rush lotteries won; it selects between the
    plain rush lottery (n == 0) and the rush-continue lottery (n > 0).
    """

    balls: int
    rush_balls: int
    n: int = 0

    def __post_init__(self) -> None:
        check_count("balls", self.balls)
        check_count("rush_balls", self.rush_balls)
        check_count("n", self.n)


GameState = Union[Uninitialized, Normal, Rush]


def session_payout(state: GameState) -> int:
    """
    Balls a player walks away with when a session ends in `state`.

    Rush folds rush_balls back into balls (the two counters are summed).
    """
    if isinstance(state, Normal):
        return state.balls
    if isinstance(state, Rush):
        return state.balls + state.rush_balls
    return 0


class Win(str, Enum):
    DEFAULT = "Default"
    FAKE_WIN = "FakeWin"


class Lose(str, Enum):
    DEFAULT = "Default"
    FAKE_LOSE = "FakeLose"


@dataclass(frozen=True, slots=True)
class LotteryResult:
    """
    Outcome of one lottery draw.

    Only the Win/Lose discriminant drives ball accounting; the fake
    flavours select a near-miss presentation.
    """

    outcome: Win | Lose

    @property
    def is_win(self) -> bool:
        return isinstance(self.outcome, Win)

    @property
    def is_fake(self) -> bool:
        return self.outcome in (Win.FAKE_WIN, Lose.FAKE_LOSE)

    def to_wire(self) -> dict[str, str]:
        tag = "Win" if self.is_win else "Lose"
        return {tag: self.outcome.value}


class Command(str, Enum):
    """Closed command vocabulary; values are the external tokens."""

    LAUNCH_BALL = "LaunchBall"
    CAUSE_LOTTERY = "CauseLottery"
    START_GAME = "StartGame"
    FINISH_GAME = "FinishGame"
    FINISH = "Finish"


def parse_command(token: object) -> Command:
    """Convert an external token (case-sensitive) into a Command."""
    if not isinstance(token, str):
        raise CommandParseError(token)
    try:
        return Command(token)
    except ValueError as e:
        raise CommandParseError(token) from e


class ControlFlow(str, Enum):
    CONTINUE = "Continue"
    BREAK = "Break"


@dataclass(frozen=True, slots=True)
class Transition:
    before: GameState | None
    after: GameState

    def to_wire(self) -> dict[str, Any]:
        return {
            "before": state_to_wire(self.before) if self.before is not None else None,
            "after": state_to_wire(self.after),
        }


def state_to_wire(state: GameState) -> str | dict[str, dict[str, int]]:
    """
    Tagged-union encoding used across the event boundary:

      "Uninitialized"
      {"Normal": {"balls": b}}
      {"Rush": {"balls": b, "rush_balls": r, "n": n}}
    """
    if isinstance(state, Uninitialized):
        return "Uninitialized"
    if isinstance(state, Normal):
        return {"Normal": {"balls": state.balls}}
    if isinstance(state, Rush):
        return {"Rush": {"balls": state.balls, "rush_balls": state.rush_balls, "n": state.n}}
    raise TypeError(f"not a GameState: {state!r}")


def state_from_wire(raw: object) -> GameState:
    if raw == "Uninitialized":
        return Uninitialized()
    if not isinstance(raw, dict) or len(raw) != 1:
        raise StateFormatError(f"state must be 'Uninitialized' or a single-key object (got {raw!r})")

    (tag, fields), = raw.items()
    if not isinstance(fields, dict):
        raise StateFormatError(f"{tag} payload must be an object")

    try:
        if tag == "Normal":
            return Normal(balls=fields["balls"])
        if tag == "Rush":
            return Rush(balls=fields["balls"], rush_balls=fields["rush_balls"], n=fields["n"])
    except KeyError as e:
        raise StateFormatError(f"{tag} payload is missing field {e.args[0]!r}") from e
    except ValueError as e:
        raise StateFormatError(f"{tag} payload is invalid: {e}") from e

    raise StateFormatError(f"unknown state tag: {tag!r}")
