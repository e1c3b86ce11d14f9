from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from pachislo_sim.events import LOTTERY_EVENT_TYPES, Event, EventType


@dataclass(frozen=True, slots=True)
class RushChain:
    """
    One stay in Rush mode, from the Normal win that opened it to the
    event that closed it.

    closed_by:
      "lose"   - a rush lottery was lost (back to Normal)
      "finish" - the session or engine finished while in Rush
      "open"   - the stream ended with the chain still running
    """

    start_seq: int
    end_seq: int | None
    wins: int
    rush_balls: int
    closed_by: str


@dataclass(frozen=True, slots=True)
class SessionSummary:
    lotteries: dict[str, int]
    wins: dict[str, int]
    chains: tuple[RushChain, ...]
    payouts: tuple[int, ...]
    final_state: str | dict[str, Any] | None = None

    @property
    def longest_chain(self) -> int:
        return max((c.wins for c in self.chains), default=0)


def _rush_fields(state: object) -> dict[str, int] | None:
    if isinstance(state, dict) and "Rush" in state:
        return state["Rush"]
    return None


def derive_rush_chains(events: Iterable[Event]) -> list[RushChain]:
    """
    Derive Rush chains from an ordered event stream.

    Rule:
      - A chain opens at a TRANSITION whose "after" is Rush and whose
        "before" is not
      - It closes at the TRANSITION leaving Rush, or at a FINISH event
        reporting a Rush state, whichever comes first
      - wins and rush_balls are read from the last Rush state seen
    """
    chains: list[RushChain] = []
    start: int | None = None
    last: dict[str, int] | None = None

    def _close(end_seq: int | None, closed_by: str) -> None:
        nonlocal start, last
        if start is None or last is None:
            return
        chains.append(
            RushChain(
                start_seq=start,
                end_seq=end_seq,
                wins=int(last.get("n", 0)),
                rush_balls=int(last.get("rush_balls", 0)),
                closed_by=closed_by,
            )
        )
        start = None
        last = None

    for e in events:
        if e.type == EventType.TRANSITION:
            before = _rush_fields(e.data.get("before"))
            after = _rush_fields(e.data.get("after"))

            if after is not None:
                if start is None:
                    start = e.seq
                last = after
            elif before is not None and start is not None:
                _close(e.seq, "lose" if "Normal" in (e.data.get("after") or {}) else "finish")
            continue

        if e.type == EventType.FINISH and start is not None:
            if _rush_fields(e.data.get("state")) is not None:
                _close(e.seq, "finish")

    if start is not None:
        _close(None, "open")

    return chains


def summarize(events: Iterable[Event]) -> SessionSummary:
    events = list(events)

    lotteries: dict[str, int] = {t.value: 0 for t in EventType if t in LOTTERY_EVENT_TYPES}
    wins: dict[str, int] = dict(lotteries)
    payouts: list[int] = []
    final_state: str | dict[str, Any] | None = None

    for e in events:
        if e.type in LOTTERY_EVENT_TYPES:
            lotteries[e.type.value] += 1
            if "Win" in (e.data.get("result") or {}):
                wins[e.type.value] += 1
        elif e.type == EventType.TRANSITION:
            final_state = e.data.get("after")
        elif e.type == EventType.FINISH:
            payouts.append(int(e.data.get("payout", 0)))
            final_state = e.data.get("state", final_state)

    return SessionSummary(
        lotteries=lotteries,
        wins=wins,
        chains=tuple(derive_rush_chains(events)),
        payouts=tuple(payouts),
        final_state=final_state,
    )


def render_summary(summary: SessionSummary) -> str:
    out: list[str] = []
    out.append("Lotteries")
    for kind, count in summary.lotteries.items():
        out.append(f"  {kind:<22s} {count:>5d}  wins={summary.wins[kind]}")

    out.append("")
    out.append(f"Rush chains: {len(summary.chains)} (longest {summary.longest_chain})")
    for i, chain in enumerate(summary.chains, start=1):
        out.append(
            f"  #{i}: wins={chain.wins} rush_balls={chain.rush_balls} closed_by={chain.closed_by}"
        )

    out.append("")
    if summary.payouts:
        out.append("Payouts: " + ", ".join(str(p) for p in summary.payouts))
    out.append(f"Final state: {summary.final_state}")
    return "\n".join(out) + "\n"
