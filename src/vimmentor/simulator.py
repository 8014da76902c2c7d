"""In-memory text buffer that stands in for a host editor in the trainer CLI."""

from __future__ import annotations

import re

from .collaborators import EditorSnapshot

SAMPLE_TEXT = """\
import json
from pathlib import Path


def load_settings(path):
    \"\"\"Read settings from a JSON file.\"\"\"
    raw = Path(path).read_text(encoding="utf-8")
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError("settings must be an object")
    return data


def merge(base, override):
    result = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = merge(result[key], value)
        else:
            result[key] = value
    return result


class Settings:
    def __init__(self, values):
        self.values = values

    def get(self, key, default=None):
        return self.values.get(key, default)

    def section(self, name):
        return Settings(self.values.get(name, {}))


def main():
    settings = Settings(load_settings("settings.json"))
    print(settings.get("name", "unnamed"))
    for name in ("editor", "theme", "keys"):
        print(name, settings.section(name).values)


if __name__ == "__main__":
    main()
"""

PAGE_LINES = 20
NATIVE_ALIASES = {
    "<Up>": "k",
    "<Down>": "j",
    "<Left>": "h",
    "<Right>": "l",
    "<Home>": "0",
    "<End>": "$",
    "<PageUp>": "<C-b>",
    "<PageDown>": "<C-f>",
    "<C-Left>": "b",
    "<C-Right>": "w",
    "<C-Up>": "{",
    "<C-Down>": "}",
    "<ScrollWheelUp>": "<C-y>",
    "<ScrollWheelDown>": "<C-e>",
}
_COUNTED_RE = re.compile(r"^(\d*)(.+)$")
_WORD_RE = re.compile(r"\w+|[^\w\s]+")


class SimulatedBuffer:
    """A read-only buffer with a cursor that understands common motions."""

    def __init__(self, text: str = SAMPLE_TEXT, filetype: str = "python") -> None:
        self.lines = text.splitlines() or [""]
        self.line = 1
        self.col = 0
        self.mode = "n"
        self.filetype = filetype
        self.applied: list[tuple[str, str]] = []

    @property
    def total_lines(self) -> int:
        return len(self.lines)

    @property
    def current_text(self) -> str:
        return self.lines[self.line - 1]

    def snapshot(self) -> EditorSnapshot | None:
        return EditorSnapshot(
            cursor_line=self.line,
            cursor_col=self.col,
            total_lines=self.total_lines,
            line_length=len(self.current_text),
            mode=self.mode,
            filetype=self.filetype,
        )

    def apply_fallback(self, raw_key: str, fallback: str) -> None:
        self.applied.append((raw_key, fallback))
        self.run(fallback or raw_key)

    def run(self, keys: str) -> bool:
        """Execute one motion, optionally count-prefixed; False when unknown."""
        keys = keys.strip()
        if not keys:
            return False
        keys = NATIVE_ALIASES.get(keys, keys)
        ctrl = re.fullmatch(r"(?i)ctrl-(\w)", keys)
        if ctrl:
            keys = f"<C-{ctrl.group(1).lower()}>"
        match = _COUNTED_RE.match(keys)
        if match is None:
            return False
        count_text, motion = match.groups()
        if motion.isdigit() or (not count_text and motion == "0"):
            count_text, motion = "", keys
        count = int(count_text) if count_text else None
        return self._motion(motion, count)

    def _motion(self, motion: str, count: int | None) -> bool:
        times = count or 1
        half = PAGE_LINES // 2
        vertical = {
            "j": times,
            "k": -times,
            "<C-d>": half,
            "<C-u>": -half,
            "<C-f>": PAGE_LINES,
            "<C-b>": -PAGE_LINES,
            "<C-e>": times,
            "<C-y>": -times,
        }
        if motion in vertical:
            self._goto_line(self.line + vertical[motion])
        elif motion == "G":
            self._goto_line(count if count is not None else self.total_lines)
        elif motion == "gg":
            self._goto_line(count if count is not None else 1)
        elif motion == "h":
            self.col = max(0, self.col - times)
        elif motion == "l":
            self.col = min(self._last_col(), self.col + times)
        elif motion == "0":
            self.col = 0
        elif motion == "^":
            self.col = len(self.current_text) - len(self.current_text.lstrip())
        elif motion == "$":
            self.col = self._last_col()
        elif motion in {"w", "W"}:
            for _ in range(min(times, len(self.current_text) + 1)):
                self.col = self._next_word_start()
        elif motion in {"b", "B"}:
            for _ in range(min(times, len(self.current_text) + 1)):
                self.col = self._prev_word_start()
        elif motion in {"e", "E"}:
            for _ in range(min(times, len(self.current_text) + 1)):
                self.col = self._word_end()
        elif motion == "}":
            for _ in range(min(times, self.total_lines)):
                self._goto_line(self._paragraph(1))
        elif motion == "{":
            for _ in range(min(times, self.total_lines)):
                self._goto_line(self._paragraph(-1))
        elif motion.startswith("/") and len(motion) > 1:
            return self._search(motion[1:])
        else:
            return False
        return True

    def _goto_line(self, line: int) -> None:
        self.line = max(1, min(self.total_lines, line))
        self.col = min(self.col, self._last_col())

    def _last_col(self) -> int:
        return max(0, len(self.current_text) - 1)

    def _word_starts(self) -> list[int]:
        return [match.start() for match in _WORD_RE.finditer(self.current_text)]

    def _next_word_start(self) -> int:
        for start in self._word_starts():
            if start > self.col:
                return start
        return self._last_col()

    def _prev_word_start(self) -> int:
        previous = 0
        for start in self._word_starts():
            if start >= self.col:
                break
            previous = start
        return previous

    def _word_end(self) -> int:
        for match in _WORD_RE.finditer(self.current_text):
            if match.end() - 1 > self.col:
                return match.end() - 1
        return self._last_col()

    def _paragraph(self, step: int) -> int:
        line = self.line + step
        while 1 <= line <= self.total_lines:
            if not self.lines[line - 1].strip():
                return line
            line += step
        return 1 if step < 0 else self.total_lines

    def _search(self, pattern: str) -> bool:
        for offset in range(1, self.total_lines + 1):
            index = (self.line - 1 + offset) % self.total_lines
            col = self.lines[index].find(pattern)
            if col >= 0:
                self.line = index + 1
                self.col = col
                return True
        return False
