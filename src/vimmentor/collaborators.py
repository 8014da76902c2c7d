"""Interfaces to the host editor and the UI, plus a plain-text console UI."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from .models import LEVEL_NAMES, Escalation, EscalationAction, Hint, LearningProfile, TeachingMode

PrintFn = Callable[[str], None]

MILESTONE_MESSAGES = {
    5: ("Nice start!", "5 correct Vim commands in a row!"),
    10: ("Getting better!", "10 streak! You are learning fast."),
    25: ("Impressive!", "25 streak! Vim is becoming natural."),
    50: ("Vim Apprentice!", "50 streak! True muscle memory."),
    100: ("Vim Master!", "100 streak! Nothing can stop you."),
}


@dataclass(frozen=True)
class EditorSnapshot:
    """Host editor state at the moment an event arrives."""

    cursor_line: int
    cursor_col: int
    total_lines: int
    line_length: int
    mode: str = "n"
    filetype: str = ""


class HostEditor(Protocol):
    """Editor surface the core reads state from and applies actions to."""

    def snapshot(self) -> EditorSnapshot | None: ...

    def apply_fallback(self, raw_key: str, fallback: str) -> None: ...


class MentorUI(Protocol):
    """One-way presentation calls made by the core."""

    def present(self, hint: Hint, mode: TeachingMode) -> None: ...

    def dismiss(self) -> None: ...

    def present_escalation(self, kind: EscalationAction, escalation: Escalation) -> None: ...

    def present_level_up(self, level: int) -> None: ...

    def present_milestone(self, streak: int) -> None: ...


class ProgressSink(Protocol):
    """Asynchronous persistence as seen from the core."""

    def record_outcome(self, command: str, correct: bool) -> object: ...

    def save(self, profile: LearningProfile) -> object: ...


class ConsoleUI:
    """Render hints and notifications as text lines."""

    def __init__(self, print_fn: PrintFn = print) -> None:
        self._print = print_fn
        self.visible = False

    def present(self, hint: Hint, mode: TeachingMode) -> None:
        self.visible = True
        if mode is TeachingMode.MASTER:
            self._print(f"[vim-mentor] {hint.raw_key} is blocked.")
            return
        suggestion = hint.suggestion
        self._print(f"[vim-mentor] Detected: {hint.display_name} ({hint.raw_key})")
        self._print(f"  Use:  {suggestion.command}  ({suggestion.description})")
        if suggestion.rationale:
            self._print(f"  Why:  {suggestion.rationale}")
        others = [item.command for item in hint.alternatives]
        if others:
            self._print(f"  Also: {', '.join(others)}")
        if mode is TeachingMode.MODERATE:
            self._print("  (action runs after a short delay; :skip to cancel)")
        elif mode is TeachingMode.STRICT:
            self._print("  (type the command to continue)")

    def dismiss(self) -> None:
        self.visible = False

    def present_escalation(self, kind: EscalationAction, escalation: Escalation) -> None:
        suggestion = escalation.hint.suggestion
        if kind is EscalationAction.EXTENDED_HELP:
            self._print(f"[vim-mentor] You have tried this {escalation.attempts} times.")
            self._print(f"  {escalation.details or 'No extended description available.'}")
        elif kind is EscalationAction.LOWER_LEVEL_TEMPORARILY:
            self._print("[vim-mentor] Temporarily lowering the level for this command.")
        else:
            self._print(f"[vim-mentor] Try pressing '{suggestion.command}' -- {suggestion.description}")

    def present_level_up(self, level: int) -> None:
        self._print(f"[vim-mentor] Level up! Now level {level}: {LEVEL_NAMES.get(level, '?')}")

    def present_milestone(self, streak: int) -> None:
        title, body = MILESTONE_MESSAGES.get(streak, ("Milestone!", f"{streak} correct commands in a row!"))
        self._print(f"[vim-mentor] {title} {body}")
