from __future__ import annotations

import pytest

from pachislo_sim.models import (
    Command,
    CommandParseError,
    Lose,
    LotteryResult,
    Normal,
    Rush,
    StateFormatError,
    Transition,
    Uninitialized,
    Win,
    check_count,
    parse_command,
    session_payout,
    state_from_wire,
    state_to_wire,
)


@pytest.mark.parametrize(
    "token,command",
    [
        ("LaunchBall", Command.LAUNCH_BALL),
        ("CauseLottery", Command.CAUSE_LOTTERY),
        ("StartGame", Command.START_GAME),
        ("FinishGame", Command.FINISH_GAME),
        ("Finish", Command.FINISH),
    ],
)
def test_parse_command_vocabulary(token, command):
    assert parse_command(token) is command


@pytest.mark.parametrize("token", ["Jump", "launchball", "LAUNCHBALL", "", " Finish", None, 3])
def test_parse_command_rejects_unknown_tokens(token):
    with pytest.raises(CommandParseError) as exc:
        parse_command(token)
    assert exc.value.token == token


def test_states_reject_negative_counters():
    with pytest.raises(ValueError):
        Normal(balls=-1)
    with pytest.raises(ValueError):
        Rush(balls=1, rush_balls=-1, n=0)
    with pytest.raises(ValueError):
        Rush(balls=1, rush_balls=1, n=-1)


def test_state_wire_shapes():
    assert state_to_wire(Uninitialized()) == "Uninitialized"
    assert state_to_wire(Normal(balls=7)) == {"Normal": {"balls": 7}}
    assert state_to_wire(Rush(balls=7, rush_balls=50, n=2)) == {
        "Rush": {"balls": 7, "rush_balls": 50, "n": 2}
    }


def test_state_from_wire_decodes_rush():
    raw = {"Rush": {"balls": 3, "rush_balls": 100, "n": 4}}
    assert state_from_wire(raw) == Rush(balls=3, rush_balls=100, n=4)


@pytest.mark.parametrize(
    "raw",
    [
        "Normal",
        {"Normal": {}},
        {"Normal": {"balls": -2}},
        {"Jackpot": {"balls": 1}},
        {"Normal": {"balls": 1}, "Rush": {"balls": 1, "rush_balls": 0, "n": 0}},
    ],
)
def test_state_from_wire_rejects_malformed_input(raw):
    with pytest.raises(StateFormatError):
        state_from_wire(raw)


def test_transition_wire_shape_allows_missing_before():
    t = Transition(before=None, after=Normal(balls=100))
    assert t.to_wire() == {"before": None, "after": {"Normal": {"balls": 100}}}


def test_lottery_result_discriminant_and_wire():
    assert LotteryResult(Win.DEFAULT).is_win
    assert LotteryResult(Win.FAKE_WIN).is_win
    assert not LotteryResult(Lose.DEFAULT).is_win
    assert not LotteryResult(Lose.FAKE_LOSE).is_win

    assert LotteryResult(Win.FAKE_WIN).to_wire() == {"Win": "FakeWin"}
    assert LotteryResult(Lose.DEFAULT).to_wire() == {"Lose": "Default"}
    assert LotteryResult(Lose.FAKE_LOSE).is_fake


def test_session_payout_folds_rush_balls():
    assert session_payout(Uninitialized()) == 0
    assert session_payout(Normal(balls=12)) == 12
    assert session_payout(Rush(balls=12, rush_balls=100, n=3)) == 112


def test_check_count_raises_the_requested_error_type():
    class CountError(ValueError):
        pass

    assert check_count("balls", 3, CountError) == 3
    with pytest.raises(CountError, match="balls must be >= 0"):
        check_count("balls", -1, CountError)
    with pytest.raises(CountError, match="must be an int"):
        check_count("balls", True, CountError)
