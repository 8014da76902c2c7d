"""Build immutable detection contexts from host editor snapshots."""

from __future__ import annotations

from .collaborators import EditorSnapshot
from .models import DetectionContext


def build_context(snapshot: EditorSnapshot | None, repeat_count: int, edge_lines: int) -> DetectionContext:
    """Build a fresh context for one detected event.

    Lines are 1-based and clamped into the buffer; columns are 0-based. A
    missing snapshot yields an unavailable context with no edge flags.
    """
    if snapshot is None:
        return DetectionContext(
            repeat_count=0,
            cursor_line=1,
            cursor_col=0,
            total_lines=1,
            line_length=0,
            mode="",
            near_top_edge=False,
            near_bottom_edge=False,
            available=False,
        )

    total_lines = max(1, snapshot.total_lines)
    cursor_line = min(max(1, snapshot.cursor_line), total_lines)
    return DetectionContext(
        repeat_count=max(0, repeat_count),
        cursor_line=cursor_line,
        cursor_col=max(0, snapshot.cursor_col),
        total_lines=total_lines,
        line_length=max(0, snapshot.line_length),
        mode=snapshot.mode,
        near_top_edge=cursor_line <= edge_lines,
        near_bottom_edge=total_lines - cursor_line <= edge_lines,
    )
