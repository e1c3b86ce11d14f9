from __future__ import annotations

from pachislo_sim.config import BallsConfig, Config, DecayingContinue, Probability, SlotProbability
from pachislo_sim.engine import GameEngine
from pachislo_sim.event_sink import CallbackEventSink
from pachislo_sim.models import session_payout, state_to_wire
from pachislo_sim.rng import NumpyRandomSource


def main() -> None:
    config = Config(
        balls=BallsConfig(init_balls=20, incremental_balls=15, incremental_rush=50),
        probability=Probability(
            normal=SlotProbability(0.1, 0.05, 0.02),
            rush=SlotProbability(0.8, 0.1, 0.05),
            rush_continue=SlotProbability(0.7, 0.1, 0.05),
            rush_continue_fn=DecayingContinue(base=0.8, decay=0.9, floor=0.3),
        ),
    )

    def on_lottery(label: str):
        def _print(result, reels) -> None:
            mark = "WIN " if result.is_win else "lose"
            fake = " (fake)" if result.is_fake else ""
            print(f"  {label:<13s} {mark}{fake:<7s} reels={list(reels)}")
        return _print

    sink = CallbackEventSink(
        on_transition=lambda t: print(f"{state_to_wire(t.after)}"),
        on_finish=lambda s: print(f"finish: {state_to_wire(s)} payout={session_payout(s)}"),
        on_lottery_normal=on_lottery("normal"),
        on_lottery_rush=on_lottery("rush"),
        on_lottery_rush_continue=on_lottery("rush-continue"),
    )

    engine = GameEngine(config, event_sink=sink, rng=NumpyRandomSource(seed=7))
    engine.step(["StartGame"])
    for _ in range(30):
        result = engine.step(["LaunchBall", "CauseLottery"])
        for err in result.errors:
            print(f"  rejected: {err}")
    engine.step(["FinishGame", "Finish"])


if __name__ == "__main__":
    main()
