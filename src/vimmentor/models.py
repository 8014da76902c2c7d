"""Core domain models for detection, suggestions, and teaching state."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from enum import Enum, IntEnum

MIN_LEARNING_LEVEL = 1
MAX_LEARNING_LEVEL = 5

LEVEL_NAMES = {
    1: "Beginner",
    2: "Elementary",
    3: "Intermediate",
    4: "Advanced",
    5: "Expert",
}


class TeachingMode(IntEnum):
    """How strictly a detected operation is enforced."""

    GENTLE = 1
    MODERATE = 2
    STRICT = 3
    MASTER = 4

    @property
    def label(self) -> str:
        return self.name.capitalize()


class SessionState(Enum):
    """States of the per-surface teaching state machine."""

    IDLE = "idle"
    ALLOWING = "allowing"
    DELAYING = "delaying"
    BLOCKED_VISIBLE = "blocked_visible"
    BLOCKED_SILENT = "blocked_silent"

    @property
    def blocked(self) -> bool:
        return self in (SessionState.BLOCKED_VISIBLE, SessionState.BLOCKED_SILENT)


class Decision(Enum):
    """What happened to the host's original action for one detection."""

    PASS_THROUGH = "pass_through"
    ALLOWED = "allowed"
    DELAYED = "delayed"
    BLOCKED = "blocked"
    DROPPED = "dropped"


class EscalationAction(Enum):
    """Extra intervention performed after repeated failures."""

    EXTENDED_HELP = "extended_help"
    LOWER_LEVEL_TEMPORARILY = "lower_level_temporarily"
    DEMO = "demo"


@dataclass(frozen=True)
class DetectionContext:
    """Snapshot of editor state for one detected event."""

    repeat_count: int
    cursor_line: int
    cursor_col: int
    total_lines: int
    line_length: int
    mode: str
    near_top_edge: bool
    near_bottom_edge: bool
    available: bool = True


@dataclass(frozen=True)
class Suggestion:
    """Preferred command offered in place of a non-preferred input."""

    command: str
    description: str
    rationale: str
    min_level: int
    template: str | None = None


Predicate = Callable[[DetectionContext], bool]


@dataclass(frozen=True)
class ContextualRule:
    """Suggestion that only applies when its predicate holds."""

    name: str
    predicate: Predicate = field(compare=False)
    suggestion: Suggestion
    priority: int
    when: Mapping[str, object] = field(default_factory=dict, compare=False)


@dataclass(frozen=True)
class Rule:
    """All suggestions known for one operation type."""

    operation_type: str
    display_name: str
    category: str
    keys: tuple[str, ...]
    fallback: str
    details: str
    base_suggestions: tuple[Suggestion, ...]
    contextual_rules: tuple[ContextualRule, ...]
    trigger: str = "key"

    @property
    def is_pattern(self) -> bool:
        """Whether the rule fires on repeated native keys instead of one raw key."""
        return self.trigger == "repeat"


@dataclass(frozen=True)
class LearningProfile:
    """Persistent learner progression."""

    level: int = MIN_LEARNING_LEVEL
    teaching_mode: TeachingMode = TeachingMode.MODERATE
    cumulative_correct: int = 0
    streak: int = 0
    best_streak: int = 0
    level_baseline: int = 0


@dataclass(frozen=True)
class Hint:
    """Everything the UI needs to show one suggestion."""

    operation_type: str
    display_name: str
    raw_key: str
    suggestion: Suggestion
    alternatives: tuple[Suggestion, ...]
    attempts: int


@dataclass(frozen=True)
class Escalation:
    """Payload passed to the UI when an escalation fires."""

    kind: EscalationAction
    hint: Hint
    attempts: int
    details: str


@dataclass(frozen=True)
class SessionStatus:
    """Read-only view of one session."""

    mode: TeachingMode
    level: int
    streak: int
    blocked: bool
    state: SessionState
