from __future__ import annotations

import pytest

from pachislo_sim.config import ConfigError, RangePolicy
from pachislo_sim.engine import GameEngine, InvalidOperationError, SessionEndedError
from pachislo_sim.events import EventType
from pachislo_sim.models import Command, ControlFlow, Normal, Rush, Uninitialized
from pachislo_sim.rng import NumpyRandomSource
from tests._support.factories import (
    CONTINUE_LOSE,
    CONTINUE_WIN,
    NORMAL_LOSE,
    NORMAL_WIN,
    RUSH_LOSE,
    RUSH_WIN,
    make_config,
    make_engine,
)


def test_start_game_seeds_normal_with_init_balls():
    engine, _ = make_engine(init_balls=42)

    engine.apply(Command.START_GAME)

    assert engine.state == Normal(balls=42)


def test_start_then_launch_leaves_99_balls():
    engine, _ = make_engine(init_balls=100, incremental_balls=15)

    result = engine.step(["StartGame", "LaunchBall"])

    assert result.control is ControlFlow.CONTINUE
    assert result.errors == []
    assert engine.state == Normal(balls=99)


def test_launch_with_zero_balls_is_rejected_and_state_unchanged():
    engine, sink = make_engine(init_balls=0)
    engine.apply(Command.START_GAME)
    events_before = list(sink.events)

    with pytest.raises(InvalidOperationError):
        engine.apply(Command.LAUNCH_BALL)

    assert engine.state == Normal(balls=0)
    assert sink.events == events_before


def test_unrecognized_token_is_a_parse_error_without_events():
    engine, sink = make_engine()

    result = engine.step(["Jump"])

    assert len(result.outcomes) == 1
    outcome = result.outcomes[0]
    assert outcome.command is None
    assert "Jump" in str(outcome.error)
    assert sink.events == []
    assert engine.state == Uninitialized()


@pytest.mark.parametrize("setup", [[], ["StartGame"], ["StartGame", "CauseLottery"]])
def test_finish_fires_once_and_later_steps_break(setup):
    # NORMAL_WIN makes the CauseLottery setup land in Rush.
    engine, sink = make_engine([NORMAL_WIN])
    engine.step(setup)
    state_at_finish = engine.state

    result = engine.step(["Finish"])
    assert result.control is ControlFlow.BREAK
    assert engine.finished

    later = engine.step(["StartGame", "LaunchBall"])
    assert later.control is ControlFlow.BREAK
    assert all(isinstance(e, SessionEndedError) for e in later.errors)
    assert len(later.errors) == 2

    finishes = sink.of_type(EventType.FINISH)
    assert len(finishes) == 1
    assert engine.state == state_at_finish


def test_run_step_with_command_after_finish_returns_break():
    engine, _ = make_engine()
    assert engine.run_step_with_command("StartGame") is ControlFlow.CONTINUE
    assert engine.run_step_with_command("Finish") is ControlFlow.BREAK
    assert engine.run_step_with_command("LaunchBall") is ControlFlow.BREAK


def test_normal_win_enters_rush_at_depth_zero():
    engine, _ = make_engine([NORMAL_WIN], init_balls=10, incremental_balls=15, incremental_rush=50)
    engine.step(["StartGame", "LaunchBall", "CauseLottery"])

    assert engine.state == Rush(balls=9 + 15, rush_balls=50, n=0)


def test_normal_lose_changes_nothing():
    engine, sink = make_engine([NORMAL_LOSE], init_balls=10)
    engine.step(["StartGame"])

    engine.apply(Command.CAUSE_LOTTERY)

    assert engine.state == Normal(balls=10)
    assert [e.type for e in sink.events] == [EventType.TRANSITION, EventType.LOTTERY_NORMAL]


def test_rush_lose_returns_to_normal_with_balls_preserved():
    engine, _ = make_engine([NORMAL_WIN, RUSH_LOSE], init_balls=10)
    engine.step(["StartGame", "CauseLottery"])
    rush = engine.state
    assert isinstance(rush, Rush)

    engine.step(["CauseLottery"])

    assert engine.state == Normal(balls=rush.balls)


def test_rush_wins_accumulate_rush_balls_and_depth():
    engine, sink = make_engine(
        [NORMAL_WIN, RUSH_WIN, CONTINUE_WIN, CONTINUE_LOSE],
        init_balls=10,
        incremental_balls=15,
        incremental_rush=50,
    )
    engine.step(["StartGame", "CauseLottery"])
    engine.step(["CauseLottery"])
    assert engine.state == Rush(balls=25, rush_balls=100, n=1)

    engine.step(["CauseLottery"])
    assert engine.state == Rush(balls=25, rush_balls=150, n=2)

    engine.step(["CauseLottery"])
    assert engine.state == Normal(balls=25)

    lottery_types = [
        e.type
        for e in sink.events
        if e.type in (EventType.LOTTERY_NORMAL, EventType.LOTTERY_RUSH, EventType.LOTTERY_RUSH_CONTINUE)
    ]
    assert lottery_types == [
        EventType.LOTTERY_NORMAL,
        EventType.LOTTERY_RUSH,
        EventType.LOTTERY_RUSH_CONTINUE,
        EventType.LOTTERY_RUSH_CONTINUE,
    ]


def test_rush_continue_uses_continuation_function_for_win():
    # rush_continue_fn(n) = 0 means every continuation draw misses the win band,
    # but 0.05 still lands in fake_win [0, 0.1) which counts as a win.
    engine, _ = make_engine(
        [NORMAL_WIN, RUSH_WIN, 0.05, 0.12],
        rush_continue_fn=lambda n: 0.0,
    )
    engine.step(["StartGame", "CauseLottery", "CauseLottery"])
    assert isinstance(engine.state, Rush) and engine.state.n == 1

    engine.step(["CauseLottery"])
    assert engine.state.n == 2

    # 0.12 lands in fake_lose [0.1, 0.15): a loss.
    engine.step(["CauseLottery"])
    assert isinstance(engine.state, Normal)


def test_strict_function_leaving_range_mid_chain_is_fatal_and_changes_nothing():
    # Depths 0..7 pass the construction check; depth 9 returns 1.5.
    engine, sink = make_engine(
        [NORMAL_WIN, RUSH_WIN] + [CONTINUE_WIN] * 8,
        rush_continue_fn=lambda n: 0.5 if n < 9 else 1.5,
    )
    engine.step(["StartGame"] + ["CauseLottery"] * 10)
    assert engine.state == Rush(balls=115, rush_balls=500, n=9)
    state_before = engine.state
    events_before = list(sink.events)

    with pytest.raises(ConfigError, match=r"rush_continue_fn\(9\)"):
        engine.apply(Command.CAUSE_LOTTERY)
    with pytest.raises(ConfigError):
        engine.step(["CauseLottery"])

    assert engine.state == state_before
    assert sink.events == events_before


@pytest.mark.parametrize(
    "draw,expected_result,stays_in_rush",
    [
        (0.84, {"Win": "Default"}, True),
        (0.96, {"Lose": "FakeLose"}, False),
    ],
)
def test_clamp_policy_caps_continuation_win_band(draw, expected_result, stays_in_rush):
    # 1.5 is clamped to 1 - fake_win - fake_lose = 0.85 for the rush_continue figures.
    engine, sink = make_engine(
        [NORMAL_WIN, RUSH_WIN, draw],
        rush_continue_fn=lambda n: 1.5,
        range_policy=RangePolicy.CLAMP,
    )
    assert engine.config.probability.rush_continue_at(1).win == pytest.approx(0.85)

    engine.step(["StartGame", "CauseLottery", "CauseLottery", "CauseLottery"])

    continuation = sink.of_type(EventType.LOTTERY_RUSH_CONTINUE)
    assert len(continuation) == 1
    assert continuation[0].data["result"] == expected_result
    assert isinstance(engine.state, Rush) is stays_in_rush


def test_launch_in_rush_spends_balls_not_rush_balls():
    engine, _ = make_engine([NORMAL_WIN], init_balls=3)
    engine.step(["StartGame", "CauseLottery", "LaunchBall"])

    assert engine.state == Rush(balls=3 + 15 - 1, rush_balls=50, n=0)


def test_start_game_while_active_is_rejected():
    engine, _ = make_engine()
    engine.step(["StartGame"])

    with pytest.raises(InvalidOperationError):
        engine.apply(Command.START_GAME)


@pytest.mark.parametrize("command", [Command.LAUNCH_BALL, Command.CAUSE_LOTTERY, Command.FINISH_GAME])
def test_commands_need_an_active_session(command):
    engine, sink = make_engine()

    with pytest.raises(InvalidOperationError):
        engine.apply(command)

    assert engine.state == Uninitialized()
    assert sink.events == []


def test_finish_game_in_rush_reports_folded_payout():
    engine, sink = make_engine([NORMAL_WIN], init_balls=10, incremental_balls=15, incremental_rush=50)
    engine.step(["StartGame", "CauseLottery", "FinishGame"])

    assert engine.state == Uninitialized()
    (finish,) = sink.of_type(EventType.FINISH)
    assert finish.data["state"] == {"Rush": {"balls": 25, "rush_balls": 50, "n": 0}}
    assert finish.data["payout"] == 75

    # A new session can be started after FinishGame.
    engine.step(["StartGame"])
    assert engine.state == Normal(balls=10)


def test_batch_errors_are_reported_per_command_without_rollback():
    engine, _ = make_engine(init_balls=1)

    result = engine.step(["StartGame", "LaunchBall", "LaunchBall", "Bogus", "FinishGame"])

    assert [o.ok for o in result.outcomes] == [True, True, False, False, True]
    assert isinstance(result.outcomes[2].error, InvalidOperationError)
    assert engine.state == Uninitialized()


def test_first_transition_has_no_before_state():
    engine, sink = make_engine()
    engine.step(["StartGame", "LaunchBall"])

    transitions = sink.of_type(EventType.TRANSITION)
    assert transitions[0].data == {"before": None, "after": {"Normal": {"balls": 100}}}
    assert transitions[1].data["before"] == {"Normal": {"balls": 100}}


def test_ball_counts_never_negative_over_random_play():
    engine = GameEngine(make_config(init_balls=5), rng=NumpyRandomSource(seed=1234))
    rng = NumpyRandomSource(seed=99)
    tokens = [c.value for c in Command if c is not Command.FINISH]

    for _ in range(5000):
        engine.step([tokens[rng.integers(0, len(tokens))]])
        state = engine.state
        if isinstance(state, (Normal, Rush)):
            assert state.balls >= 0
        if isinstance(state, Rush):
            assert state.rush_balls >= 0
