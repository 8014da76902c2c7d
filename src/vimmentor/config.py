"""Configuration defaults and JSON config loading."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Literal, cast

from .models import MAX_LEARNING_LEVEL, MIN_LEARNING_LEVEL, EscalationAction, TeachingMode

logger = logging.getLogger(__name__)

# Timing (milliseconds)
REPEAT_WINDOW_MS: int = 800  # Max gap between presses that still counts as a repeat
GENTLE_TIMEOUT_MS: int = 5000  # Hint lifetime in gentle mode
MODERATE_DELAY_MS: int = 1000  # Deferred execution delay in moderate mode

# Detection
EDGE_LINES: int = 5  # Lines from the buffer edge that count as "near"
HJKL_REPEAT_THRESHOLD: int = 4  # Repeated h/j/k/l presses before a count is suggested
BLOCKED_KEY_CATEGORIES: tuple[str, ...] = (
    "arrow_keys",
    "mouse",
    "page_keys",
    "home_end",
    "ctrl_arrow",
    "hjkl_repeat",
)
EXCLUDED_FILETYPES: tuple[str, ...] = (
    "NvimTree",
    "TelescopePrompt",
    "lazy",
    "mason",
    "help",
    "qf",
    "fugitive",
    "neo-tree",
    "dashboard",
    "alpha",
    "notify",
    "packer",
    "toggleterm",
)

# Progression
ADVANCE_THRESHOLD: int = 50  # Correct answers needed per level
ESCALATION_THRESHOLD: int = 3  # Failures on one key before escalating
STREAK_MILESTONES: tuple[int, ...] = (5, 10, 25, 50, 100)

AdvancePolicy = Literal["flat", "scaled"]
ADVANCE_POLICIES: tuple[str, ...] = ("flat", "scaled")


@dataclass(frozen=True)
class MentorConfig:
    """Effective configuration for the mentor core."""

    teaching_mode: TeachingMode = TeachingMode.MODERATE
    learning_level: int = MIN_LEARNING_LEVEL
    auto_advance: bool = True
    advance_threshold: int = ADVANCE_THRESHOLD
    advance_policy: AdvancePolicy = "flat"
    repeat_window_ms: int = REPEAT_WINDOW_MS
    edge_lines: int = EDGE_LINES
    gentle_timeout_ms: int = GENTLE_TIMEOUT_MS
    moderate_delay_ms: int = MODERATE_DELAY_MS
    escalation_threshold: int = ESCALATION_THRESHOLD
    escalation_action: EscalationAction = EscalationAction.EXTENDED_HELP
    allow_skip: bool = True
    hjkl_repeat_threshold: int = HJKL_REPEAT_THRESHOLD
    blocked_keys: frozenset[str] = frozenset(BLOCKED_KEY_CATEGORIES)
    excluded_filetypes: frozenset[str] = frozenset(EXCLUDED_FILETYPES)
    milestones: tuple[int, ...] = STREAK_MILESTONES

    def with_overrides(self, **changes: object) -> MentorConfig:
        """Return a validated copy with some fields replaced."""
        return _validated(replace(self, **changes))  # type: ignore[arg-type]


def load_config(path: Path | str | None = None) -> MentorConfig:
    """Load configuration from a JSON file; a missing file means defaults."""
    if path is None:
        return MentorConfig()
    config_path = Path(path)
    if not config_path.exists():
        logger.debug("Config file %s not found, using defaults", config_path)
        return MentorConfig()
    raw_obj: object = json.loads(config_path.read_text(encoding="utf-8-sig"))
    if not isinstance(raw_obj, dict):
        raise ValueError("Config file root must be a JSON object.")
    return config_from_dict(cast(dict[str, object], raw_obj))


def config_from_dict(raw: dict[str, object]) -> MentorConfig:
    """Build a config from a decoded JSON object."""
    known = {item.name for item in fields(MentorConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"Unknown config keys: {', '.join(unknown)}")

    changes: dict[str, object] = {}
    for key, value in raw.items():
        changes[key] = _coerce_field(key, value)
    return _validated(replace(MentorConfig(), **changes))  # type: ignore[arg-type]


def _coerce_field(key: str, value: object) -> object:
    """Convert one JSON value into the field's Python type."""
    if key == "teaching_mode":
        mode = _coerce_int(value)
        if mode is None or mode not in {item.value for item in TeachingMode}:
            raise ValueError(f"Invalid teaching_mode: {value!r}")
        return TeachingMode(mode)
    if key == "escalation_action":
        try:
            return EscalationAction(str(value))
        except ValueError:
            raise ValueError(f"Invalid escalation_action: {value!r}") from None
    if key in {"auto_advance", "allow_skip"}:
        if not isinstance(value, bool):
            raise ValueError(f"Config key '{key}' must be true or false.")
        return value
    if key == "advance_policy":
        return str(value)
    if key in {"blocked_keys", "excluded_filetypes"}:
        return frozenset(_string_list(key, value))
    if key == "milestones":
        items: list[int] = []
        for item in _list(key, value):
            number = _coerce_int(item)
            if number is None:
                raise ValueError(f"Invalid milestone: {item!r}")
            items.append(number)
        return tuple(sorted(set(items)))
    number = _coerce_int(value)
    if number is None:
        raise ValueError(f"Config key '{key}' must be an integer, got {value!r}")
    return number


def _validated(config: MentorConfig) -> MentorConfig:
    """Reject values the core cannot work with."""
    if not MIN_LEARNING_LEVEL <= config.learning_level <= MAX_LEARNING_LEVEL:
        raise ValueError(f"learning_level must be between {MIN_LEARNING_LEVEL} and {MAX_LEARNING_LEVEL}.")
    if config.advance_policy not in ADVANCE_POLICIES:
        raise ValueError(f"advance_policy must be one of: {', '.join(ADVANCE_POLICIES)}")
    for name in ("advance_threshold", "repeat_window_ms", "escalation_threshold", "hjkl_repeat_threshold"):
        if int(getattr(config, name)) < 1:
            raise ValueError(f"{name} must be at least 1.")
    for name in ("edge_lines", "gentle_timeout_ms", "moderate_delay_ms"):
        if int(getattr(config, name)) < 0:
            raise ValueError(f"{name} must not be negative.")
    unknown_categories = sorted(config.blocked_keys - set(BLOCKED_KEY_CATEGORIES))
    if unknown_categories:
        raise ValueError(f"Unknown blocked_keys categories: {', '.join(unknown_categories)}")
    if any(item < 1 for item in config.milestones):
        raise ValueError("milestones must be positive.")
    return config


def _list(key: str, value: object) -> list[object]:
    if not isinstance(value, list):
        raise ValueError(f"Config key '{key}' must be a list.")
    return cast(list[object], value)


def _string_list(key: str, value: object) -> list[str]:
    return [str(item).strip() for item in _list(key, value) if str(item).strip()]


def _coerce_int(value: object) -> int | None:
    """Coerce a JSON scalar to int; booleans are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None
