from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """
    The five channels a session reports on.
    """

    TRANSITION = "TRANSITION"
    FINISH = "FINISH"
    LOTTERY_NORMAL = "LOTTERY_NORMAL"
    LOTTERY_RUSH = "LOTTERY_RUSH"
    LOTTERY_RUSH_CONTINUE = "LOTTERY_RUSH_CONTINUE"


LOTTERY_EVENT_TYPES = frozenset(
    {EventType.LOTTERY_NORMAL, EventType.LOTTERY_RUSH, EventType.LOTTERY_RUSH_CONTINUE}
)


@dataclass(frozen=True, slots=True)
class Event:
    """
    A structured, orderable fact emitted during a session.

    seq is owned by the sink; data holds wire-shaped payloads only
    (strings, ints, lists, dicts) so a stream dumps straight to JSON.
    """

    seq: int
    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
