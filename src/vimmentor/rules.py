"""Load declarative rule packs and index them by operation type."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from importlib import resources
from pathlib import Path
from typing import Any

from .models import MAX_LEARNING_LEVEL, ContextualRule, DetectionContext, Predicate, Rule, Suggestion

logger = logging.getLogger(__name__)

RULES_PACKAGE = "vimmentor.content.rules"
TRIGGERS = ("key", "repeat")


def _int_value(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int | str):
        raise TypeError("expected an integer")
    return int(value)


def _repeat_count_at_least(value: object) -> Predicate:
    threshold = _int_value(value)
    return lambda ctx: ctx.repeat_count >= threshold


def _near_top_edge(value: object) -> Predicate:
    expected = bool(value)
    return lambda ctx: ctx.near_top_edge is expected


def _near_bottom_edge(value: object) -> Predicate:
    expected = bool(value)
    return lambda ctx: ctx.near_bottom_edge is expected


def _cursor_col_at_most(value: object) -> Predicate:
    limit = _int_value(value)
    return lambda ctx: ctx.cursor_col <= limit


def _distance_to_line_end_at_most(value: object) -> Predicate:
    limit = _int_value(value)
    return lambda ctx: ctx.line_length - ctx.cursor_col <= limit


def _modes(value: object) -> Predicate:
    if isinstance(value, str):
        allowed = frozenset({value})
    else:
        if not isinstance(value, list):
            raise TypeError("modes must be a string or list")
        allowed = frozenset(str(item) for item in value)
    return lambda ctx: ctx.mode in allowed


CONDITIONS = {
    "repeat_count_at_least": _repeat_count_at_least,
    "near_top_edge": _near_top_edge,
    "near_bottom_edge": _near_bottom_edge,
    "cursor_col_at_most": _cursor_col_at_most,
    "distance_to_line_end_at_most": _distance_to_line_end_at_most,
    "modes": _modes,
}


def compile_predicate(when: Mapping[str, object], where: str = "<rule>") -> Predicate:
    """Compile a declarative condition mapping into a pure predicate.

    All listed conditions must hold; an empty mapping always matches.
    """
    checks: list[Predicate] = []
    for key, value in when.items():
        factory = CONDITIONS.get(key)
        if factory is None:
            raise ValueError(f"Unknown condition '{key}' in {where}.")
        try:
            checks.append(factory(value))
        except (TypeError, ValueError):
            raise ValueError(f"Invalid value for condition '{key}' in {where}: {value!r}") from None
    frozen_checks = tuple(checks)

    def predicate(ctx: DetectionContext) -> bool:
        return all(check(ctx) for check in frozen_checks)

    return predicate


def _suggestion_from_dict(raw: dict[str, Any], where: str) -> Suggestion:
    """Build a suggestion from raw JSON content."""
    command = str(raw.get("command", "")).strip()
    if not command:
        raise ValueError(f"Suggestion in {where} has no command.")
    try:
        min_level = int(raw.get("min_level", 1))
    except (TypeError, ValueError):
        raise ValueError(f"Suggestion '{command}' in {where} has invalid min_level.") from None
    return Suggestion(
        command=command,
        description=str(raw.get("description", "")),
        rationale=str(raw.get("rationale", "")),
        min_level=min_level,
    )


def _contextual_from_dict(operation_type: str, index: int, raw: dict[str, Any]) -> ContextualRule:
    """Build a contextual rule from raw JSON content."""
    name = str(raw.get("name") or f"rule{index}")
    where = f"{operation_type}/{name}"
    when_raw = raw.get("when", {})
    if not isinstance(when_raw, dict):
        raise ValueError(f"Contextual rule {where} must use an object for 'when'.")
    suggestion_raw = raw.get("suggestion")
    if not isinstance(suggestion_raw, dict):
        raise ValueError(f"Contextual rule {where} has no suggestion.")
    return ContextualRule(
        name=name,
        predicate=compile_predicate(when_raw, where),
        suggestion=_suggestion_from_dict(suggestion_raw, where),
        priority=int(raw.get("priority", 0)),
        when=dict(when_raw),
    )


def _rule_from_dict(raw: dict[str, Any]) -> Rule:
    """Build a rule from raw JSON content."""
    operation_type = str(raw.get("operation_type", "")).strip()
    if not operation_type:
        raise ValueError("Rule has no operation_type.")
    trigger = str(raw.get("trigger", "key"))
    if trigger not in TRIGGERS:
        raise ValueError(f"Rule '{operation_type}' has unknown trigger '{trigger}'.")
    base = tuple(_suggestion_from_dict(item, operation_type) for item in raw.get("base", []))
    contextual = tuple(
        _contextual_from_dict(operation_type, index, item) for index, item in enumerate(raw.get("contextual", []))
    )
    return Rule(
        operation_type=operation_type,
        display_name=str(raw.get("display_name") or operation_type),
        category=str(raw.get("category", "")),
        keys=tuple(str(key) for key in raw.get("keys", []) if str(key)),
        fallback=str(raw.get("fallback", "")),
        details=str(raw.get("details", "")),
        base_suggestions=base,
        contextual_rules=contextual,
        trigger=trigger,
    )


def _rules_from_pack(raw: object, source: str) -> list[Rule]:
    if not isinstance(raw, dict) or not isinstance(raw.get("rules"), list):
        raise ValueError(f"Rule pack {source} must be an object with a 'rules' list.")
    return [_rule_from_dict(item) for item in raw["rules"]]


def load_rules() -> list[Rule]:
    """Load bundled rule packs."""
    rules: list[Rule] = []
    entries = sorted(resources.files(RULES_PACKAGE).iterdir(), key=lambda item: item.name)
    for entry in entries:
        if entry.name.endswith(".json"):
            raw = json.loads(entry.read_text(encoding="utf-8-sig"))
            rules.extend(_rules_from_pack(raw, entry.name))
    return rules


def load_rules_from_dir(path: Path) -> list[Rule]:
    """Load rule packs from a directory for tests/tools."""
    rules: list[Rule] = []
    for file_path in sorted(path.glob("*.json")):
        raw = json.loads(file_path.read_text(encoding="utf-8-sig"))
        rules.extend(_rules_from_pack(raw, file_path.name))
    return rules


class RuleStore:
    """Immutable index of rules by operation type and raw key."""

    def __init__(self, rules: Iterable[Rule]) -> None:
        by_type: dict[str, Rule] = {}
        by_key: dict[str, str] = {}
        pattern_keys: dict[str, str] = {}
        for rule in rules:
            if rule.operation_type in by_type:
                raise ValueError(f"Duplicate operation type: {rule.operation_type}")
            by_type[rule.operation_type] = rule
            index = pattern_keys if rule.is_pattern else by_key
            for key in rule.keys:
                previous = index.get(key)
                if previous is not None:
                    raise ValueError(f"Key {key} is mapped by both {previous} and {rule.operation_type}")
                index[key] = rule.operation_type
        self._rules = by_type
        self._by_key = by_key
        self._pattern_keys = pattern_keys
        self._report_configuration_errors()

    @classmethod
    def bundled(cls) -> RuleStore:
        """Build a store from the packaged rule packs."""
        return cls(load_rules())

    def get(self, operation_type: str) -> Rule | None:
        return self._rules.get(operation_type)

    def operation_for_key(self, raw_key: str) -> str | None:
        """Return the operation type a raw key is classified as."""
        return self._by_key.get(raw_key)

    def pattern_for_key(self, raw_key: str) -> str | None:
        """Return the repeat-pattern operation a native key feeds, if any."""
        return self._pattern_keys.get(raw_key)

    def operation_types(self) -> list[str]:
        return sorted(self._rules)

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules[key] for key in sorted(self._rules))

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, operation_type: object) -> bool:
        return operation_type in self._rules

    def _report_configuration_errors(self) -> None:
        """Warn once about rules that can never produce a suggestion as written."""
        for rule in self._rules.values():
            if not rule.base_suggestions:
                logger.warning("Rule %s has no base suggestions; it will never suggest anything", rule.operation_type)
                continue
            levels = [item.min_level for item in rule.base_suggestions]
            levels.extend(item.suggestion.min_level for item in rule.contextual_rules)
            if min(levels) > MAX_LEARNING_LEVEL:
                logger.warning(
                    "Rule %s has no suggestion reachable at any level; falling back to %r",
                    rule.operation_type,
                    rule.base_suggestions[0].command,
                )
