from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from pachislo_sim.config import (
    BallsConfig,
    Config,
    ConfigError,
    DecayingContinue,
    Probability,
    SlotProbability,
)
from pachislo_sim.driver import ScriptedCommandSource, run
from pachislo_sim.engine import GameEngine
from pachislo_sim.event_sink import InMemoryEventSink
from pachislo_sim.models import Command
from pachislo_sim.reporting import render_summary, summarize
from pachislo_sim.rng import NumpyRandomSource
from pachislo_sim.slots import SlotProducer
from pachislo_sim.stream_io import (
    InputFormatError,
    dump_event_stream,
    load_command_script,
    load_event_stream,
    load_machine_config,
)


def _demo_config() -> Config:
    return Config(
        balls=BallsConfig(init_balls=100, incremental_balls=15, incremental_rush=50),
        probability=Probability(
            normal=SlotProbability(win=0.1, fake_win=0.05, fake_lose=0.02),
            rush=SlotProbability(win=0.8, fake_win=0.1, fake_lose=0.05),
            rush_continue=SlotProbability(win=0.7, fake_win=0.1, fake_lose=0.05),
            rush_continue_fn=DecayingContinue(base=0.8, decay=0.95, floor=0.3),
        ),
    )


def _demo_script(launches: int) -> list[list[str]]:
    script = [[Command.START_GAME.value]]
    script.extend([Command.LAUNCH_BALL.value, Command.CAUSE_LOTTERY.value] for _ in range(launches))
    script.append([Command.FINISH_GAME.value])
    script.append([Command.FINISH.value])
    return script


def _play(
    *,
    config: Config,
    slot_producer: SlotProducer,
    script: list[list[str]],
    seed: int | None,
    max_steps: int,
    events_out: str | None,
) -> int:
    sink = InMemoryEventSink()
    engine = GameEngine(
        config,
        event_sink=sink,
        rng=NumpyRandomSource(seed),
        slot_producer=slot_producer,
    )

    try:
        session = run(engine, ScriptedCommandSource(script), max_steps=max_steps)
    except ConfigError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 2

    if events_out:
        Path(events_out).write_text(
            json.dumps(dump_event_stream(sink.events), indent=2) + "\n", encoding="utf-8"
        )

    sys.stdout.write(render_summary(summarize(sink.events)))
    sys.stdout.write(
        f"Steps: {session.steps} (stopped by {session.stopped_by}), "
        f"rejected commands: {len(session.errors)}\n"
    )
    return 0


def _cmd_run(args: argparse.Namespace) -> int:
    chosen = sum(1 for v in [bool(args.script), bool(args.commands)] if v)
    if chosen != 1:
        print("ERROR: choose exactly one of --script or --commands.", file=sys.stderr)
        return 2

    try:
        machine = load_machine_config(Path(str(args.config)))
    except InputFormatError as e:
        print(f"ERROR: invalid machine config: {e}", file=sys.stderr)
        return 2

    if args.script:
        try:
            script = load_command_script(Path(str(args.script)))
        except InputFormatError as e:
            print(f"ERROR: invalid command script: {e}", file=sys.stderr)
            return 2
    else:
        # --commands "StartGame,LaunchBall;CauseLottery": ';' separates steps
        script = [
            [tok.strip() for tok in batch.split(",") if tok.strip()]
            for batch in str(args.commands).split(";")
        ]

    return _play(
        config=machine.config,
        slot_producer=machine.slot_producer,
        script=script,
        seed=args.seed,
        max_steps=int(args.max_steps),
        events_out=args.events_out,
    )


def _cmd_demo(args: argparse.Namespace) -> int:
    if args.launches < 0:
        print("ERROR: --launches must be >= 0.", file=sys.stderr)
        return 2
    return _play(
        config=_demo_config(),
        slot_producer=SlotProducer(),
        script=_demo_script(int(args.launches)),
        seed=args.seed,
        max_steps=int(args.launches) + 10,
        events_out=args.events_out,
    )


def _cmd_report(args: argparse.Namespace) -> int:
    try:
        events = load_event_stream(Path(str(args.input)))
    except InputFormatError as e:
        print(f"ERROR: invalid input stream: {e}", file=sys.stderr)
        return 2
    sys.stdout.write(render_summary(summarize(events)))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="pachislo_sim",
        description=(
            "Pachislo Session Simulator — user harness.\n"
            "\n"
            "Replays command scripts against a machine config and prints a session summary."
        ),
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level for engine diagnostics (written to stderr).",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Replay a command script against a machine config.")
    run_p.add_argument("--config", type=str, required=True, help="Machine config JSON.")
    run_p.add_argument("--script", type=str, help="Command script JSON.")
    run_p.add_argument(
        "--commands",
        type=str,
        help="Inline commands: ',' separates tokens in a step, ';' separates steps.",
    )
    run_p.add_argument("--seed", type=int, default=None, help="Seed for the random stream.")
    run_p.add_argument("--max-steps", type=int, default=10_000, help="Safety cap: max steps to run.")
    run_p.add_argument("--events-out", type=str, default=None, help="Write the event stream JSON here.")
    run_p.set_defaults(func=_cmd_run)

    demo = sub.add_parser("demo", help="Run the built-in machine with a launch/lottery loop.")
    demo.add_argument("--seed", type=int, default=0, help="Seed for the random stream.")
    demo.add_argument("--launches", type=int, default=200, help="Launch+lottery steps to play.")
    demo.add_argument("--events-out", type=str, default=None, help="Write the event stream JSON here.")
    demo.set_defaults(func=_cmd_demo)

    report = sub.add_parser("report", help="Summarize an existing event stream JSON.")
    report.add_argument("--input", type=str, required=True, help="Event stream JSON.")
    report.set_defaults(func=_cmd_report)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
