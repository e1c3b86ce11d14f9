from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from pachislo_sim.events import Event, EventType
from pachislo_sim.models import (
    GameState,
    LotteryResult,
    Transition,
    session_payout,
    state_to_wire,
)


class EventSink(ABC):
    """
    Consumer of session events.
    The engine must be able to run with event_sink=None (no events).
    """

    @abstractmethod
    def transition(self, transition: Transition) -> None: ...

    @abstractmethod
    def finish(self, state: GameState) -> None: ...

    @abstractmethod
    def lottery_normal(self, result: LotteryResult, reels: Sequence[int]) -> None: ...

    @abstractmethod
    def lottery_rush(self, result: LotteryResult, reels: Sequence[int]) -> None: ...

    @abstractmethod
    def lottery_rush_continue(self, result: LotteryResult, reels: Sequence[int]) -> None: ...


@dataclass
class InMemoryEventSink(EventSink):
    """
    Simple sink for tests/demos.
    Owns seq numbering and records every callback as a wire-shaped Event.
    """

    events: list[Event] = field(default_factory=list)
    _seq: int = field(default=0, init=False)

    def _record(self, event_type: EventType, **data: Any) -> None:
        self._seq += 1
        self.events.append(Event(seq=self._seq, type=event_type, data=dict(data)))

    def of_type(self, event_type: EventType) -> list[Event]:
        return [e for e in self.events if e.type == event_type]

    def transition(self, transition: Transition) -> None:
        self._record(EventType.TRANSITION, **transition.to_wire())

    def finish(self, state: GameState) -> None:
        self._record(EventType.FINISH, state=state_to_wire(state), payout=session_payout(state))

    def lottery_normal(self, result: LotteryResult, reels: Sequence[int]) -> None:
        self._record(EventType.LOTTERY_NORMAL, result=result.to_wire(), reels=list(reels))

    def lottery_rush(self, result: LotteryResult, reels: Sequence[int]) -> None:
        self._record(EventType.LOTTERY_RUSH, result=result.to_wire(), reels=list(reels))

    def lottery_rush_continue(self, result: LotteryResult, reels: Sequence[int]) -> None:
        self._record(EventType.LOTTERY_RUSH_CONTINUE, result=result.to_wire(), reels=list(reels))


class CallbackEventSink(EventSink):
    """
    Adapts plain callables to the sink interface.

    Each callback receives explicit arguments only (no bound context);
    a missing callback means the channel is ignored.
    """

    def __init__(
        self,
        *,
        on_transition: Callable[[Transition], None] | None = None,
        on_finish: Callable[[GameState], None] | None = None,
        on_lottery_normal: Callable[[LotteryResult, Sequence[int]], None] | None = None,
        on_lottery_rush: Callable[[LotteryResult, Sequence[int]], None] | None = None,
        on_lottery_rush_continue: Callable[[LotteryResult, Sequence[int]], None] | None = None,
    ) -> None:
        self._on_transition = on_transition
        self._on_finish = on_finish
        self._on_lottery_normal = on_lottery_normal
        self._on_lottery_rush = on_lottery_rush
        self._on_lottery_rush_continue = on_lottery_rush_continue

    def transition(self, transition: Transition) -> None:
        if self._on_transition is not None:
            self._on_transition(transition)

    def finish(self, state: GameState) -> None:
        if self._on_finish is not None:
            self._on_finish(state)

    def lottery_normal(self, result: LotteryResult, reels: Sequence[int]) -> None:
        if self._on_lottery_normal is not None:
            self._on_lottery_normal(result, reels)

    def lottery_rush(self, result: LotteryResult, reels: Sequence[int]) -> None:
        if self._on_lottery_rush is not None:
            self._on_lottery_rush(result, reels)

    def lottery_rush_continue(self, result: LotteryResult, reels: Sequence[int]) -> None:
        if self._on_lottery_rush_continue is not None:
            self._on_lottery_rush_continue(result, reels)
