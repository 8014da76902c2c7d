"""CLI entrypoint for the Vim motion trainer."""

from __future__ import annotations

import argparse
import logging
from collections.abc import Callable
from pathlib import Path

from .collaborators import ConsoleUI
from .config import load_config
from .models import LEVEL_NAMES, Decision, TeachingMode
from .scheduler import ManualScheduler, WallClockScheduler
from .service import MentorService
from .simulator import SimulatedBuffer

InputFn = Callable[[str], str]
PrintFn = Callable[[str], None]
FLOW_EXIT_COMMANDS = {":quit", ":exit", ":q"}
SURFACE_ID = "trainer"
DATA_DIR = Path(".vimmentor")

HELP_LINES = (
    "Type keys as Vim notation, one per line: <Down>, <PageUp>, <LeftMouse>, j, 5j, gg, w ...",
    "Commands: :skip  :wait <ms>  :mode <1-4>  :status  :help  :q",
)


def _service(args: argparse.Namespace, scheduler: ManualScheduler | None = None) -> MentorService:
    """Create app service from parsed arguments."""
    config = load_config(args.config)
    return MentorService(db_path=Path(args.db), config=config, profile_name=args.profile, scheduler=scheduler)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="vimmentor", description="Practice Vim motions instead of arrow keys")
    parser.add_argument("command", nargs="?", default="play", choices=["play", "status", "rules", "profiles", "reset", "export"])
    parser.add_argument("path", nargs="?", help="output file for export")
    parser.add_argument("--db", default=str(DATA_DIR / "progress.db"), help="progress database path")
    parser.add_argument("--config", default=str(DATA_DIR / "config.json"), help="JSON config file")
    parser.add_argument("--profile", default="default", help="learner profile name")
    parser.add_argument("--mode", type=int, choices=[mode.value for mode in TeachingMode], help="teaching mode for this run")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    return parser


def run(argv: list[str] | None = None, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the CLI application."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    if args.command == "export" and not args.path:
        print_fn("Export needs an output path.")
        return 2

    scheduler = WallClockScheduler() if args.command == "play" else None
    try:
        service = _service(args, scheduler)
    except ValueError as exc:
        print_fn(f"Invalid configuration: {exc}")
        return 2
    try:
        if args.mode is not None:
            service.set_teaching_mode(args.mode)
        if args.command == "status":
            _status_flow(service, print_fn)
        elif args.command == "rules":
            _rules_flow(service, print_fn)
        elif args.command == "profiles":
            _profiles_flow(service, print_fn)
        elif args.command == "reset":
            _reset_flow(service, input_fn, print_fn)
        elif args.command == "export":
            summary = service.export_progress(args.path)
            print_fn(
                f"Exported profile '{summary.profile_name}' to {args.path} "
                f"({summary.command_rows} commands, {summary.outcome_rows} outcomes)."
            )
        else:
            play_shell(service, input_fn, print_fn)
        return 0
    finally:
        service.close()


def play_shell(service: MentorService, input_fn: InputFn = input, print_fn: PrintFn = print) -> int:
    """Run the interactive practice loop against a simulated buffer."""
    host = SimulatedBuffer()
    session = service.open_session(SURFACE_ID, host, ConsoleUI(print_fn))
    scheduler = service.scheduler
    pump = scheduler.pump if isinstance(scheduler, WallClockScheduler) else (lambda: None)

    status = service.status()
    print_fn("\n=== Vim Mentor ===")
    print_fn(f"Profile: {status.profile_name}")
    print_fn(f"Mode: {status.teaching_mode.label}  Level: {status.level} ({status.level_name})")
    for line in HELP_LINES:
        print_fn(line)

    corrected = 0
    detections = 0
    while True:
        pump()
        state = session.get_session_status().state
        print_fn(f"\n[{state.value}] {host.line:>3}:{host.col:<3} {host.current_text}")
        raw = input_fn("key> ").strip()
        pump()
        if not raw:
            continue
        lowered = raw.lower()
        if lowered in FLOW_EXIT_COMMANDS:
            break
        if lowered == ":help":
            for line in HELP_LINES:
                print_fn(line)
            continue
        if lowered == ":status":
            _status_flow(service, print_fn)
            continue
        if lowered == ":skip":
            if session.active is None:
                print_fn("Nothing to skip.")
                continue
            session.on_skip_requested()
            if session.active is not None:
                print_fn("Skipping is not allowed in this mode.")
            continue
        if lowered.startswith(":wait"):
            _wait(scheduler, lowered, print_fn)
            continue
        if lowered.startswith(":mode"):
            _mode_command(service, lowered, print_fn)
            continue

        if session.state.blocked:
            expected = session.active.hint.suggestion.command if session.active is not None else ""
            if service.on_candidate_input(SURFACE_ID, raw):
                corrected += 1
                host.run(raw)
                print_fn("Correct.")
            else:
                print_fn(f"Not quite. Expected e.g.: {expected}")
            continue

        if service.classify(raw) is None and not host.run(raw):
            print_fn(f"Unknown key: {raw}")
            continue
        decision = service.on_raw_key(SURFACE_ID, raw)
        if decision in (Decision.ALLOWED, Decision.DELAYED, Decision.BLOCKED):
            detections += 1
        if decision is Decision.DROPPED:
            print_fn("(ignored while a hint is active)")

    print_fn(f"\nSession complete: {corrected} corrected, {detections} hints shown")
    return 0


def _wait(scheduler: object, command: str, print_fn: PrintFn) -> None:
    parts = command.split()
    if len(parts) != 2 or not parts[1].isdigit():
        print_fn("Usage: :wait <milliseconds>")
        return
    if isinstance(scheduler, ManualScheduler):
        scheduler.advance(int(parts[1]))


def _mode_command(service: MentorService, command: str, print_fn: PrintFn) -> None:
    parts = command.split()
    valid = {str(mode.value) for mode in TeachingMode}
    if len(parts) != 2 or parts[1] not in valid:
        print_fn("Usage: :mode <1-4>  (1 Gentle, 2 Moderate, 3 Strict, 4 Master)")
        return
    mode = TeachingMode(int(parts[1]))
    service.set_teaching_mode(mode)
    print_fn(f"Teaching mode: {mode.label}")


def _status_flow(service: MentorService, print_fn: PrintFn) -> None:
    """Print progression, lifetime totals, and the most practiced commands."""
    status = service.status()
    lifetime = service.lifetime_stats()
    print_fn("\n=== Progress ===")
    print_fn(f"Profile: {status.profile_name}")
    print_fn(f"- Level: {status.level} ({status.level_name})")
    print_fn(f"- Teaching mode: {status.teaching_mode.label}")
    print_fn(f"- Streak: {status.streak} (best {status.best_streak})")
    if status.next_level_at is not None:
        next_name = LEVEL_NAMES.get(status.level + 1, "?")
        print_fn(f"- Next level ({next_name}) at {status.next_level_at} correct (now {status.cumulative_correct})")
    print_fn(f"- Lifetime: {lifetime.correct} correct, {lifetime.incorrect} prompted, {lifetime.total_sessions} sessions")

    stats = service.command_stats()
    if not stats:
        print_fn("No commands practiced yet.")
        return
    command_width = max(len("Command"), max(len(item.command) for item in stats))
    correct_width = len("Correct")
    prompted_width = len("Prompted")
    header = f"{'Command':<{command_width}} {'Correct':>{correct_width}} {'Prompted':>{prompted_width}} Accuracy"
    print_fn(header)
    print_fn("-" * len(header))
    for item in stats[:10]:
        print_fn(
            f"{item.command:<{command_width}} "
            f"{item.correct:>{correct_width}} "
            f"{item.prompted:>{prompted_width}} "
            f"{item.accuracy:.0f}%"
        )


def _rules_flow(service: MentorService, print_fn: PrintFn) -> None:
    """Print every operation with the suggestions it can produce."""
    references = service.list_rule_references()
    print_fn("\n=== Rules ===")
    op_width = max(len("Operation"), max(len(item.operation_type) for item in references))
    keys_width = max(len("Keys"), max(len(", ".join(item.keys)) for item in references))
    command_width = max(
        len("Suggestion"),
        max(len(entry.command) for item in references for entry in item.suggestions),
    )
    header = f"{'Operation':<{op_width}} {'Keys':<{keys_width}} {'Suggestion':<{command_width}} Lvl When"
    print_fn(header)
    print_fn("-" * len(header))
    for item in references:
        keys = ", ".join(item.keys)
        for entry in item.suggestions:
            print_fn(
                f"{item.operation_type:<{op_width}} "
                f"{keys:<{keys_width}} "
                f"{entry.command:<{command_width}} "
                f"{entry.min_level:>3} "
                f"{entry.condition}"
            )
            keys = ""


def _profiles_flow(service: MentorService, print_fn: PrintFn) -> None:
    print_fn("\n=== Profiles ===")
    for profile in service.list_profiles():
        marker = "*" if profile.name == service.profile.name else " "
        print_fn(f"{marker} {profile.name}")


def _reset_flow(service: MentorService, input_fn: InputFn, print_fn: PrintFn) -> None:
    """Reset progress with explicit confirmation safeguard."""
    print_fn(f"WARNING: This permanently deletes all progress for profile '{service.profile.name}'.")
    confirm = input_fn("Type YES to confirm reset: ").strip()
    if confirm != "YES":
        print_fn("Reset cancelled.")
        return
    service.reset_progress()
    print_fn("Progress reset.")


def main_entry() -> None:
    """Console script entrypoint."""
    raise SystemExit(run())


if __name__ == "__main__":  # pragma: no cover
    main_entry()
