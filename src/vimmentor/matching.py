"""Accepted-command parsing and candidate normalization."""

from __future__ import annotations

import re

from .models import Suggestion

_SEPARATOR_RE = re.compile(r"\s*(?:/|or|,)\s*")
_PLACEHOLDER_RE = re.compile(r"\{[^}]+\}")


def accepted_forms(command: str) -> list[str]:
    """Return the normalized inputs that satisfy a suggested command.

    The command is split on ``/``, ``or`` and ``,``; each part loses its
    ``{...}`` placeholders and is trimmed and lower-cased. The whole command,
    normalized the same way, is appended when not already present.
    """
    forms: list[str] = []
    for part in _SEPARATOR_RE.split(command):
        cleaned = _PLACEHOLDER_RE.sub("", part).strip().lower()
        if cleaned:
            forms.append(cleaned)
    full = _PLACEHOLDER_RE.sub("", command.lower()).strip()
    if full and full not in forms:
        forms.append(full)
    return forms


def normalize_candidate(text: str) -> str:
    """Normalize typed input the way accepted forms are normalized."""
    return _PLACEHOLDER_RE.sub("", text).strip().lower()


def suggestion_forms(suggestion: Suggestion) -> list[str]:
    """Return accepted forms for a surfaced suggestion and its template."""
    forms = accepted_forms(suggestion.command)
    if suggestion.template is not None and suggestion.template != suggestion.command:
        for form in accepted_forms(suggestion.template):
            if form not in forms:
                forms.append(form)
    return forms


def is_accepted(suggestion: Suggestion, text: str) -> bool:
    """Return whether typed text satisfies the suggestion."""
    candidate = normalize_candidate(text)
    if not candidate:
        return False
    return candidate in suggestion_forms(suggestion)
