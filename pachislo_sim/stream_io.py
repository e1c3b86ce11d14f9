from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from pachislo_sim.config import (
    BallsConfig,
    Config,
    ConfigError,
    ConstantContinue,
    DecayingContinue,
    Probability,
    RangePolicy,
    RushContinueFn,
    SlotProbability,
)
from pachislo_sim.events import LOTTERY_EVENT_TYPES, Event, EventType
from pachislo_sim.models import Lose, StateFormatError, Win, state_from_wire
from pachislo_sim.slots import SlotProducer


class InputFormatError(ValueError):
    """Raised when an input file fails validation."""


@dataclass(frozen=True)
class MachineSpec:
    config: Config
    slot_producer: SlotProducer


def _read_json(path: Path) -> Any:
    if not path.exists():
        raise InputFormatError(f"file not found: {path}")
    if not path.is_file():
        raise InputFormatError(f"not a file: {path}")

    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e


def _number(raw: dict[str, Any], key: str, *, label: str, default: float | None = None) -> float:
    value = raw.get(key, default)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InputFormatError(f"{label}.{key} must be a number")
    return float(value)


def _int(raw: dict[str, Any], key: str, *, label: str) -> int:
    value = raw.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise InputFormatError(f"{label}.{key} must be an int")
    if value < 0:
        raise InputFormatError(f"{label}.{key} must be >= 0 (got {value})")
    return value


def _object(raw: dict[str, Any], key: str, *, label: str) -> dict[str, Any]:
    value = raw.get(key)
    if not isinstance(value, dict):
        raise InputFormatError(f"{label}.{key} must be an object")
    return value


def load_machine_config(path: Path) -> MachineSpec:
    """Load and validate a machine config.

    Format:
      {
        "balls": {"init_balls": 100, "incremental_balls": 15, "incremental_rush": 50},
        "probability": {
          "normal": {"win": 0.1, "fake_win": 0.05, "fake_lose": 0.02},
          "rush": {"win": 0.8, "fake_win": 0.1, "fake_lose": 0.05},
          "rush_continue": {"win": 0.7, "fake_win": 0.1, "fake_lose": 0.05},
          "rush_continue_fn": {"kind": "decaying", "base": 0.8, "decay": 0.95, "floor": 0.3},
          "range_policy": "strict"
        },
        "slots": {"reels": 3, "symbols": [1, 2, 3, 4, 5, 6, 7]}
      }

    rush_continue_fn kinds:
      - {"kind": "constant", "value": p}
      - {"kind": "decaying", "base": b, "decay": d, "floor": f (optional)}
    When rush_continue_fn is omitted, rush_continue.win is used at every depth.
    "slots" and "range_policy" are optional.
    """
    raw = _read_json(path)
    if not isinstance(raw, dict):
        raise InputFormatError("root must be a JSON object")

    try:
        balls_raw = _object(raw, "balls", label="config")
        balls = BallsConfig(
            init_balls=_int(balls_raw, "init_balls", label="balls"),
            incremental_balls=_int(balls_raw, "incremental_balls", label="balls"),
            incremental_rush=_int(balls_raw, "incremental_rush", label="balls"),
        )

        prob_raw = _object(raw, "probability", label="config")
        normal = _parse_slot_probability(prob_raw, "normal")
        rush = _parse_slot_probability(prob_raw, "rush")
        rush_continue = _parse_slot_probability(prob_raw, "rush_continue")

        fn_raw = prob_raw.get("rush_continue_fn", None)
        if fn_raw is None:
            rush_continue_fn: RushContinueFn = ConstantContinue(rush_continue.win)
        else:
            rush_continue_fn = _parse_rush_continue_fn(fn_raw)

        policy_raw = prob_raw.get("range_policy", RangePolicy.STRICT.value)
        try:
            range_policy = RangePolicy(policy_raw)
        except ValueError as e:
            raise InputFormatError(
                "probability.range_policy must be one of: strict, clamp"
            ) from e

        probability = Probability(
            normal=normal,
            rush=rush,
            rush_continue=rush_continue,
            rush_continue_fn=rush_continue_fn,
            range_policy=range_policy,
        )

        slot_producer = _parse_slots(raw.get("slots", None))
        return MachineSpec(config=Config(balls=balls, probability=probability), slot_producer=slot_producer)
    except ConfigError as e:
        raise InputFormatError(f"invalid machine config {path}: {e}") from e


def _parse_slot_probability(raw: dict[str, Any], key: str) -> SlotProbability:
    block = _object(raw, key, label="probability")
    label = f"probability.{key}"
    return SlotProbability(
        win=_number(block, "win", label=label),
        fake_win=_number(block, "fake_win", label=label, default=0.0),
        fake_lose=_number(block, "fake_lose", label=label, default=0.0),
    )


def _parse_rush_continue_fn(raw: object) -> RushContinueFn:
    label = "probability.rush_continue_fn"
    if not isinstance(raw, dict):
        raise InputFormatError(f"{label} must be an object")

    kind = raw.get("kind")
    if kind == "constant":
        return ConstantContinue(_number(raw, "value", label=label))
    if kind == "decaying":
        return DecayingContinue(
            base=_number(raw, "base", label=label),
            decay=_number(raw, "decay", label=label),
            floor=_number(raw, "floor", label=label, default=0.0),
        )
    raise InputFormatError(f"{label}.kind must be one of: constant, decaying (got {kind!r})")


def _parse_slots(raw: object) -> SlotProducer:
    if raw is None:
        return SlotProducer()
    if not isinstance(raw, dict):
        raise InputFormatError("slots must be an object")

    reels = raw.get("reels", 3)
    symbols = raw.get("symbols", None)
    if symbols is None:
        return SlotProducer(reels=reels)
    if not isinstance(symbols, list):
        raise InputFormatError("slots.symbols must be an array")
    return SlotProducer(reels=reels, symbols=tuple(symbols))


def load_command_script(path: Path) -> list[list[str]]:
    """Load a command script.

    Either an array of batches (each an array of tokens, one batch per
    step) or an array of bare tokens (one token per step):

      [["StartGame"], ["LaunchBall", "CauseLottery"], ["Finish"]]
      ["StartGame", "LaunchBall", "CauseLottery", "Finish"]

    Tokens are not interpreted here; unknown tokens are reported by the
    engine when the step runs.
    """
    raw = _read_json(path)
    if not isinstance(raw, list):
        raise InputFormatError("root must be a JSON array")

    batches: list[list[str]] = []
    for i, item in enumerate(raw):
        if isinstance(item, str):
            batches.append([item])
            continue
        if not isinstance(item, list):
            raise InputFormatError(f"script[{i}] must be a string or an array of strings")
        for j, token in enumerate(item):
            if not isinstance(token, str):
                raise InputFormatError(f"script[{i}][{j}] must be a string")
        batches.append(list(item))
    return batches


def load_event_stream(path: Path) -> list[Event]:
    """Load and validate an ordered event stream previously dumped to JSON."""
    raw = _read_json(path)
    if not isinstance(raw, list):
        raise InputFormatError("root must be a JSON array of events")

    events: list[Event] = []
    last_seq: int | None = None

    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise InputFormatError(f"event[{i}] must be an object")

        seq = item.get("seq")
        etype = item.get("type")
        data = item.get("data", {})

        if isinstance(seq, bool) or not isinstance(seq, int) or seq < 1:
            raise InputFormatError(f"event[{i}].seq must be an int >= 1")
        if not isinstance(etype, str):
            raise InputFormatError(f"event[{i}].type must be a string")
        if not isinstance(data, dict):
            raise InputFormatError(f"event[{i}].data must be an object")

        try:
            event_type = EventType(etype)
        except ValueError as e:
            raise InputFormatError(
                f"event[{i}].type is not a valid EventType: {etype!r}"
            ) from e

        if last_seq is not None and seq <= last_seq:
            raise InputFormatError(
                f"events must be strictly increasing by seq; event[{i}] has seq={seq} after {last_seq}"
            )
        last_seq = seq

        _check_payload(f"event[{i}].data", event_type, data)
        events.append(Event(seq=seq, type=event_type, data=data))

    return events


def _check_state(label: str, raw: object) -> None:
    try:
        state_from_wire(raw)
    except StateFormatError as e:
        raise InputFormatError(f"{label} is not a game state: {e}") from e


def _check_payload(label: str, event_type: EventType, data: dict[str, Any]) -> None:
    """Validate the data shape each event type is written with."""
    if event_type == EventType.TRANSITION:
        if data.get("before") is not None:
            _check_state(f"{label}.before", data["before"])
        _check_state(f"{label}.after", data.get("after"))
        return

    if event_type == EventType.FINISH:
        _check_state(f"{label}.state", data.get("state"))
        payout = data.get("payout")
        if isinstance(payout, bool) or not isinstance(payout, int) or payout < 0:
            raise InputFormatError(f"{label}.payout must be an int >= 0")
        return

    if event_type in LOTTERY_EVENT_TYPES:
        result = data.get("result")
        if not isinstance(result, dict) or len(result) != 1:
            raise InputFormatError(f"{label}.result must be a single-key object")
        (tag, outcome), = result.items()
        kinds = {"Win": Win, "Lose": Lose}
        if tag not in kinds or outcome not in [o.value for o in kinds[tag]]:
            raise InputFormatError(f"{label}.result is not a lottery result: {result!r}")
        reels = data.get("reels")
        if not isinstance(reels, list) or not all(
            isinstance(s, int) and not isinstance(s, bool) for s in reels
        ):
            raise InputFormatError(f"{label}.reels must be an array of ints")


def dump_event_stream(events: list[Event]) -> list[dict[str, Any]]:
    """Return a JSON-serializable event stream."""
    out: list[dict[str, Any]] = []
    for e in events:
        d = asdict(e)
        d["type"] = str(e.type.value)
        out.append(d)
    return out
