from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from pachislo_sim.config import Config, SlotProbability
from pachislo_sim.event_sink import EventSink
from pachislo_sim.lottery import LotteryKind, resolve
from pachislo_sim.models import (
    Command,
    CommandParseError,
    ControlFlow,
    GameState,
    LotteryResult,
    Normal,
    Rush,
    Transition,
    Uninitialized,
    parse_command,
)
from pachislo_sim.rng import NumpyRandomSource, RandomSource
from pachislo_sim.slots import SlotProducer

logger = logging.getLogger(__name__)


class InvalidOperationError(RuntimeError):
    """Raised when a command is not valid in the current state. State is left unchanged."""

    def __init__(self, command: Command, state: GameState, reason: str) -> None:
        super().__init__(f"{command.value} rejected in {type(state).__name__}: {reason}")
        self.command = command
        self.state = state
        self.reason = reason


class SessionEndedError(InvalidOperationError):
    """Raised for any command after Finish."""


@dataclass(frozen=True, slots=True)
class CommandOutcome:
    token: object
    command: Command | None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class StepResult:
    control: ControlFlow
    outcomes: tuple[CommandOutcome, ...]

    @property
    def errors(self) -> list[Exception]:
        return [o.error for o in self.outcomes if o.error is not None]


class GameEngine:
    """
    Owns the session state and applies commands to it.

    Rules:
    - StartGame:    Uninitialized -> Normal{init_balls}
    - LaunchBall:   balls -= 1 in Normal or Rush (never below zero)
    - CauseLottery: Normal lottery; a win grants incremental_balls and
                    enters Rush{n=0} with incremental_rush rush_balls.
                    In Rush the plain rush lottery runs at n == 0 and the
                    rush-continue lottery after that; a win grants
                    incremental_rush and n += 1, a loss drops back to
                    Normal with balls untouched.
    - FinishGame:   reports the session state, then -> Uninitialized
    - Finish:       reports the state, then the engine accepts nothing more

    Event order per command: lottery event (if any), then Transition (if
    the state changed). A state never changes without a Transition.
    """

    def __init__(
        self,
        config: Config,
        event_sink: EventSink | None = None,
        rng: RandomSource | None = None,
        slot_producer: SlotProducer | None = None,
    ) -> None:
        self._config = config
        self._sink = event_sink
        self._rng: RandomSource = rng if rng is not None else NumpyRandomSource()
        self._slots = slot_producer if slot_producer is not None else SlotProducer()
        self._state: GameState = Uninitialized()
        self._finished = False
        self._has_transitioned = False

    @property
    def config(self) -> Config:
        return self._config

    @property
    def state(self) -> GameState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._finished

    # ----------------------------
    # Commands
    # ----------------------------

    def apply(self, command: Command) -> GameState:
        """Apply one command and return the resulting state."""
        if self._finished:
            raise SessionEndedError(command, self._state, "session ended")

        if command is Command.START_GAME:
            self._start_game()
        elif command is Command.LAUNCH_BALL:
            self._launch_ball()
        elif command is Command.CAUSE_LOTTERY:
            self._cause_lottery()
        elif command is Command.FINISH_GAME:
            self._finish_game()
        elif command is Command.FINISH:
            self._finish()
        else:
            raise TypeError(f"not a Command: {command!r}")

        return self._state

    def step(self, tokens: Iterable[object]) -> StepResult:
        """
        Apply an ordered batch of external tokens.

        Errors are reported per token and do not stop the batch; state
        committed by earlier tokens stays in effect.
        """
        outcomes: list[CommandOutcome] = []
        for token in tokens:
            try:
                command = parse_command(token)
            except CommandParseError as e:
                logger.warning("%s", e)
                outcomes.append(CommandOutcome(token=token, command=None, error=e))
                continue

            try:
                self.apply(command)
            except InvalidOperationError as e:
                logger.warning("%s", e)
                outcomes.append(CommandOutcome(token=token, command=command, error=e))
                continue

            outcomes.append(CommandOutcome(token=token, command=command))

        control = ControlFlow.BREAK if self._finished else ControlFlow.CONTINUE
        return StepResult(control=control, outcomes=tuple(outcomes))

    def run_step_with_command(self, token: object) -> ControlFlow:
        """Single-token step; parse and operation errors propagate."""
        if self._finished:
            return ControlFlow.BREAK
        self.apply(parse_command(token))
        return ControlFlow.BREAK if self._finished else ControlFlow.CONTINUE

    # ----------------------------
    # Rules
    # ----------------------------

    def _start_game(self) -> None:
        state = self._state
        if not isinstance(state, Uninitialized):
            raise InvalidOperationError(Command.START_GAME, state, "a session is already active")
        logger.info("session started with %d balls", self._config.balls.init_balls)
        self._transition(Normal(balls=self._config.balls.init_balls))

    def _launch_ball(self) -> None:
        state = self._state
        if isinstance(state, Uninitialized):
            raise InvalidOperationError(Command.LAUNCH_BALL, state, "no active session")
        if state.balls == 0:
            raise InvalidOperationError(Command.LAUNCH_BALL, state, "no balls left")

        if isinstance(state, Normal):
            self._transition(Normal(balls=state.balls - 1))
        else:
            self._transition(Rush(balls=state.balls - 1, rush_balls=state.rush_balls, n=state.n))

    def _cause_lottery(self) -> None:
        state = self._state
        balls = self._config.balls
        probability = self._config.probability

        if isinstance(state, Uninitialized):
            raise InvalidOperationError(Command.CAUSE_LOTTERY, state, "no active session")

        if isinstance(state, Normal):
            result = self._draw(LotteryKind.NORMAL, probability.normal)
            if result.is_win:
                self._transition(
                    Rush(
                        balls=state.balls + balls.incremental_balls,
                        rush_balls=balls.incremental_rush,
                        n=0,
                    )
                )
            return

        if state.n == 0:
            result = self._draw(LotteryKind.RUSH, probability.rush)
        else:
            result = self._draw(LotteryKind.RUSH_CONTINUE, probability.rush_continue_at(state.n))

        if result.is_win:
            self._transition(
                Rush(
                    balls=state.balls,
                    rush_balls=state.rush_balls + balls.incremental_rush,
                    n=state.n + 1,
                )
            )
        else:
            self._transition(Normal(balls=state.balls))

    def _finish_game(self) -> None:
        state = self._state
        if isinstance(state, Uninitialized):
            raise InvalidOperationError(Command.FINISH_GAME, state, "no active session")
        logger.info("session finished in %s", type(state).__name__)
        if self._sink is not None:
            self._sink.finish(state)
        self._transition(Uninitialized())

    def _finish(self) -> None:
        logger.info("engine finished in %s", type(self._state).__name__)
        if self._sink is not None:
            self._sink.finish(self._state)
        self._finished = True

    # ----------------------------
    # Helpers
    # ----------------------------

    def _draw(self, kind: LotteryKind, prob: SlotProbability) -> LotteryResult:
        result = resolve(prob, self._rng.random())
        reels = self._slots.produce(result, self._rng)
        logger.debug("%s lottery -> %s reels=%s", kind.value, result.to_wire(), reels)

        if self._sink is not None:
            if kind is LotteryKind.NORMAL:
                self._sink.lottery_normal(result, reels)
            elif kind is LotteryKind.RUSH:
                self._sink.lottery_rush(result, reels)
            else:
                self._sink.lottery_rush_continue(result, reels)
        return result

    def _transition(self, after: GameState) -> None:
        # The engine's very first transition has no predecessor.
        before: GameState | None = self._state if self._has_transitioned else None
        self._state = after
        self._has_transitioned = True
        logger.debug("transition %r -> %r", before, after)

        if self._sink is not None:
            self._sink.transition(Transition(before=before, after=after))
