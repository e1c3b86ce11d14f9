from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, Sequence

from pachislo_sim.engine import GameEngine, StepResult
from pachislo_sim.models import Command, ControlFlow

logger = logging.getLogger(__name__)

# Supplies the command tokens for one step; may block on user input.
CommandSource = Callable[[], Sequence[str]]


class ScriptedCommandSource:
    """
    Replays pre-recorded batches, one per call.

    Once the script is exhausted every call yields ["Finish"], so a
    driver loop always terminates.
    """

    def __init__(self, batches: Iterable[Sequence[str]]) -> None:
        self._batches = [list(b) for b in batches]
        self._cursor = 0

    @property
    def exhausted(self) -> bool:
        return self._cursor >= len(self._batches)

    def __call__(self) -> list[str]:
        if self.exhausted:
            return [Command.FINISH.value]
        batch = self._batches[self._cursor]
        self._cursor += 1
        return batch


@dataclass
class SessionRun:
    results: list[StepResult] = field(default_factory=list)
    stopped_by: str = "break"

    @property
    def steps(self) -> int:
        return len(self.results)

    @property
    def errors(self) -> list[Exception]:
        return [e for r in self.results for e in r.errors]


def run(engine: GameEngine, source: CommandSource, max_steps: int | None = None) -> SessionRun:
    """
    Ask the source for a batch, feed it to the engine, repeat until Break.

    max_steps is a safety cap; the run stops early (stopped_by="max_steps")
    when it is reached before the engine breaks.
    """
    session = SessionRun()
    while True:
        if max_steps is not None and session.steps >= max_steps:
            session.stopped_by = "max_steps"
            logger.info("driver stopped after %d steps (cap reached)", session.steps)
            return session

        result = engine.step(source())
        session.results.append(result)
        if result.control is ControlFlow.BREAK:
            logger.info("driver stopped after %d steps", session.steps)
            return session
