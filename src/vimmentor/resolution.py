"""Pick the best suggestion for an operation in its context."""

from __future__ import annotations

from dataclasses import replace

from .models import ContextualRule, DetectionContext, Rule, Suggestion
from .rules import RuleStore

COUNT_PLACEHOLDER = "{count}"


class ResolutionEngine:
    """Stateless resolver over an immutable rule store.

    Results depend only on (operation type, context, level), so one engine can
    be shared by every session.
    """

    def __init__(self, store: RuleStore) -> None:
        self.store = store

    def resolve(self, operation_type: str, context: DetectionContext, level: int) -> Suggestion | None:
        """Return the primary suggestion, or None when nothing applies."""
        rule = self.store.get(operation_type)
        if rule is None or not rule.base_suggestions or not context.available:
            return None
        primary = _primary(rule, context, level)
        return _surface(primary, context)

    def resolve_all(self, operation_type: str, context: DetectionContext, level: int) -> list[Suggestion]:
        """Return the primary suggestion followed by other eligible alternatives."""
        rule = self.store.get(operation_type)
        if rule is None or not rule.base_suggestions or not context.available:
            return []
        ordered = [_primary(rule, context, level)]
        for contextual in _by_priority(rule):
            if contextual.suggestion.min_level <= level and contextual.predicate(context):
                ordered.append(contextual.suggestion)
        ordered.extend(item for item in rule.base_suggestions if item.min_level <= level)

        results: list[Suggestion] = []
        seen: set[str] = set()
        for suggestion in ordered:
            if suggestion.command in seen:
                continue
            seen.add(suggestion.command)
            results.append(_surface(suggestion, context))
        return results


def _by_priority(rule: Rule) -> list[ContextualRule]:
    return sorted(rule.contextual_rules, key=lambda item: item.priority)


def _primary(rule: Rule, context: DetectionContext, level: int) -> Suggestion:
    for contextual in _by_priority(rule):
        if contextual.suggestion.min_level <= level and contextual.predicate(context):
            return contextual.suggestion
    for suggestion in rule.base_suggestions:
        if suggestion.min_level <= level:
            return suggestion
    return rule.base_suggestions[0]


def _surface(suggestion: Suggestion, context: DetectionContext) -> Suggestion:
    """Substitute the live repeat count and remember the template command."""
    if context.repeat_count < 1 or COUNT_PLACEHOLDER not in suggestion.command + suggestion.description:
        return replace(suggestion, template=suggestion.command)
    count = str(context.repeat_count)
    return replace(
        suggestion,
        command=suggestion.command.replace(COUNT_PLACEHOLDER, count),
        description=suggestion.description.replace(COUNT_PLACEHOLDER, count),
        template=suggestion.command,
    )
