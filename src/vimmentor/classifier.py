"""Classify raw editor keys into operation types."""

from __future__ import annotations

from collections.abc import Iterable

from .config import BLOCKED_KEY_CATEGORIES
from .rules import RuleStore

NORMAL_MODE = "n"


class KeyClassifier:
    """Map raw keys to operation types using the rule store's key tables."""

    def __init__(self, store: RuleStore, enabled_categories: Iterable[str] = BLOCKED_KEY_CATEGORIES) -> None:
        self._store = store
        self._enabled = frozenset(enabled_categories)

    def _enabled_for(self, operation_type: str | None) -> str | None:
        if operation_type is None:
            return None
        rule = self._store.get(operation_type)
        if rule is None or rule.category not in self._enabled:
            return None
        return operation_type

    def classify(self, raw_key: str) -> str | None:
        """Return the operation type for a non-preferred key, or None.

        Arrow, page and mouse keys are classified in every editor mode.
        """
        return self._enabled_for(self._store.operation_for_key(raw_key))

    def classify_pattern(self, raw_key: str, mode: str = NORMAL_MODE) -> str | None:
        """Return the repeat-pattern operation a native key feeds; normal mode only."""
        if mode != NORMAL_MODE:
            return None
        return self._enabled_for(self._store.pattern_for_key(raw_key))
