"""Per-surface teaching state machine."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import cast

from .collaborators import HostEditor, MentorUI, ProgressSink
from .config import MentorConfig
from .context import build_context
from .matching import is_accepted
from .models import (
    MIN_LEARNING_LEVEL,
    Decision,
    Escalation,
    EscalationAction,
    Hint,
    Rule,
    SessionState,
    SessionStatus,
    Suggestion,
    TeachingMode,
)
from .progression import LevelProgressionTracker, ProgressUpdate
from .resolution import ResolutionEngine
from .scheduler import Scheduler, TimerHandle
from .tracker import RepeatTracker

logger = logging.getLogger(__name__)


class SessionEvent(Enum):
    """Inputs to the state machine."""

    DETECTED = "detected"
    CANDIDATE = "candidate"
    SKIP = "skip"
    TIMER = "timer"


MODE_STATES = {
    TeachingMode.GENTLE: SessionState.ALLOWING,
    TeachingMode.MODERATE: SessionState.DELAYING,
    TeachingMode.STRICT: SessionState.BLOCKED_VISIBLE,
    TeachingMode.MASTER: SessionState.BLOCKED_SILENT,
}

MODE_DECISIONS = {
    TeachingMode.GENTLE: Decision.ALLOWED,
    TeachingMode.MODERATE: Decision.DELAYED,
    TeachingMode.STRICT: Decision.BLOCKED,
    TeachingMode.MASTER: Decision.BLOCKED,
}


@dataclass(frozen=True)
class Detection:
    """One detected non-preferred operation."""

    raw_key: str
    operation_type: str
    native: bool = False


@dataclass
class LedgerEntry:
    """Failure count for one (operation, key) pair and the suggestion last shown for it."""

    count: int = 0
    suggestion: Suggestion | None = None


@dataclass
class ActiveHint:
    """The one suggestion a session is currently enforcing."""

    detection: Detection
    rule: Rule
    hint: Hint
    timers: list[TimerHandle] = field(default_factory=list)


Handler = Callable[["Session", object], object]


class Session:
    """Drive allow/delay/block behavior for one editing surface.

    Every state entry bumps a generation counter; timers carry the generation
    they were scheduled in and do nothing once it has moved on.
    """

    def __init__(
        self,
        *,
        engine: ResolutionEngine,
        host: HostEditor,
        ui: MentorUI,
        progression: LevelProgressionTracker,
        scheduler: Scheduler,
        config: MentorConfig | None = None,
        persistence: ProgressSink | None = None,
        teaching_mode: TeachingMode | None = None,
        tracker: RepeatTracker | None = None,
    ) -> None:
        self.config = config or MentorConfig()
        self._engine = engine
        self._host = host
        self._ui = ui
        self._progression = progression
        self._scheduler = scheduler
        self._persistence = persistence
        self.teaching_mode = TeachingMode(teaching_mode or progression.profile.teaching_mode)
        self.tracker = tracker or RepeatTracker(scheduler, self.config.repeat_window_ms)
        self.state = SessionState.IDLE
        self.generation = 0
        self.ledger: dict[tuple[str, str], LedgerEntry] = {}
        self.active: ActiveHint | None = None
        self.level_drop = 0
        self._busy = False
        self._closed = False

    @property
    def effective_level(self) -> int:
        return max(MIN_LEARNING_LEVEL, self._progression.level - self.level_drop)

    def on_operation_detected(self, raw_key: str, operation_type: str) -> Decision:
        """Handle a classified non-preferred input."""
        if self._closed:
            self._apply(Detection(raw_key, operation_type), self._engine.store.get(operation_type))
            return Decision.PASS_THROUGH
        if self._busy:
            logger.debug("Dropping re-entrant detection %s (%s)", operation_type, raw_key)
            return Decision.DROPPED
        self.tracker.track(operation_type)
        detection = Detection(raw_key, operation_type)
        return cast(Decision, self._guarded(SessionEvent.DETECTED, detection, Decision.PASS_THROUGH))

    def on_pattern_key(self, raw_key: str, operation_type: str) -> Decision | None:
        """Feed a native key that may form a repeat pattern.

        Returns None until the repeat count reaches the configured threshold; the
        key itself has already run in the editor.
        """
        if self._closed or self._busy:
            return None
        count = self.tracker.track(operation_type)
        if count != self.config.hjkl_repeat_threshold:
            return None
        detection = Detection(raw_key, operation_type, native=True)
        return cast(Decision, self._guarded(SessionEvent.DETECTED, detection, Decision.PASS_THROUGH))

    def on_candidate_input(self, text: str) -> bool:
        """Try typed input against the active suggestion; True when it clears a block."""
        if self._closed:
            return False
        return bool(self._guarded(SessionEvent.CANDIDATE, text, False))

    def on_skip_requested(self) -> None:
        if not self._closed:
            self._guarded(SessionEvent.SKIP, None, None)

    def get_session_status(self) -> SessionStatus:
        return SessionStatus(
            mode=self.teaching_mode,
            level=self.effective_level,
            streak=self._progression.profile.streak,
            blocked=self.state.blocked,
            state=self.state,
        )

    def set_teaching_mode(self, mode: TeachingMode) -> None:
        """Change strictness for future detections; an active hint keeps its state."""
        self.teaching_mode = TeachingMode(mode)

    def close(self) -> None:
        """Cancel timers and clear any visible hint."""
        if self._closed:
            return
        if self.active is not None:
            self._ui.dismiss()
        self._enter(SessionState.IDLE)
        self.tracker.reset()
        self._closed = True

    def _guarded(self, event: SessionEvent, payload: object, default: object) -> object:
        handler = TRANSITIONS.get((self.state, event))
        if handler is None:
            logger.debug("Ignoring %s in state %s", event.value, self.state.value)
            return default
        self._busy = True
        try:
            return handler(self, payload)
        finally:
            self._busy = False

    def _enter(self, state: SessionState) -> None:
        self.generation += 1
        if self.active is not None:
            for timer in self.active.timers:
                timer.cancel()
            self.active.timers.clear()
        if state is SessionState.IDLE:
            self.active = None
        self.state = state

    def _schedule(self, delay_ms: int) -> None:
        generation = self.generation
        assert self.active is not None
        self.active.timers.append(self._scheduler.call_later(delay_ms, lambda: self._on_timer(generation)))

    def _on_timer(self, generation: int) -> None:
        if generation != self.generation or self._closed:
            return
        self._guarded(SessionEvent.TIMER, generation, None)

    def _apply(self, detection: Detection, rule: Rule | None) -> None:
        if detection.native:
            return
        self._host.apply_fallback(detection.raw_key, rule.fallback if rule is not None else "")

    def _persist(self, command: str, correct: bool) -> None:
        if self._persistence is None:
            return
        self._persistence.record_outcome(command, correct)
        self._persistence.save(self._progression.profile)

    def _notify(self, update: ProgressUpdate) -> None:
        if update.milestone is not None:
            self._ui.present_milestone(update.milestone)
        if update.leveled_up:
            self._ui.present_level_up(update.profile.level)

    def _build_hint(self, detection: Detection, rule: Rule, attempts: int) -> Hint | None:
        snapshot = self._host.snapshot()
        context = build_context(snapshot, self.tracker.count, self.config.edge_lines)
        level = self.effective_level
        suggestions = self._engine.resolve_all(detection.operation_type, context, level)
        if not suggestions:
            return None
        return Hint(
            operation_type=detection.operation_type,
            display_name=rule.display_name,
            raw_key=detection.raw_key,
            suggestion=suggestions[0],
            alternatives=tuple(suggestions[1:]),
            attempts=attempts,
        )

    # Transition handlers

    def _detect_when_idle(self, payload: object) -> Decision:
        assert isinstance(payload, Detection)
        detection = payload
        rule = self._engine.store.get(detection.operation_type)
        if rule is None:
            self._apply(detection, None)
            return Decision.PASS_THROUGH
        key = (detection.operation_type, detection.raw_key)
        entry = self.ledger.get(key, LedgerEntry())
        hint = self._build_hint(detection, rule, entry.count + 1)
        if hint is None:
            self._apply(detection, rule)
            return Decision.PASS_THROUGH

        entry.count += 1
        entry.suggestion = hint.suggestion
        self.ledger[key] = entry
        self._progression.record_outcome(False)
        self._persist(hint.suggestion.template or hint.suggestion.command, False)

        if entry.count >= self.config.escalation_threshold:
            hint = self._escalate(detection, rule, hint)
            entry.count = 0
            entry.suggestion = hint.suggestion

        mode = self.teaching_mode
        self._enter(MODE_STATES[mode])
        self.active = ActiveHint(detection=detection, rule=rule, hint=hint)
        self._ui.present(hint, mode)
        if mode is TeachingMode.GENTLE:
            self._apply(detection, rule)
            self._schedule(self.config.gentle_timeout_ms)
        elif mode is TeachingMode.MODERATE:
            self._schedule(self.config.moderate_delay_ms)
        return MODE_DECISIONS[mode]

    def _escalate(self, detection: Detection, rule: Rule, hint: Hint) -> Hint:
        action = self.config.escalation_action
        if action is EscalationAction.LOWER_LEVEL_TEMPORARILY and self.effective_level > MIN_LEARNING_LEVEL:
            self.level_drop += 1
            lowered = self._build_hint(detection, rule, hint.attempts)
            if lowered is not None:
                hint = lowered
        logger.info("Escalating %s for %s after %d attempts", action.value, detection.operation_type, hint.attempts)
        escalation = Escalation(kind=action, hint=hint, attempts=hint.attempts, details=rule.details)
        self._ui.present_escalation(action, escalation)
        return hint

    def _drop_detection(self, payload: object) -> Decision:
        assert isinstance(payload, Detection)
        logger.debug(
            "Dropping %s (%s) while %s is active",
            payload.operation_type,
            payload.raw_key,
            self.state.value,
        )
        if self.state is SessionState.ALLOWING:
            self._apply(payload, self._engine.store.get(payload.operation_type))
        return Decision.DROPPED

    def _candidate_when_blocked(self, payload: object) -> bool:
        assert isinstance(payload, str) and self.active is not None
        suggestion = self.active.hint.suggestion
        if not is_accepted(suggestion, payload):
            return False

        for entry in self.ledger.values():
            if entry.suggestion is not None and _same_suggestion(entry.suggestion, suggestion):
                entry.count = 0
        self.level_drop = 0
        update = self._progression.record_outcome(True)
        self._persist(suggestion.template or suggestion.command, True)
        self._ui.dismiss()
        self.tracker.reset()
        self._enter(SessionState.IDLE)
        self._notify(update)
        return True

    def _skip_allowing(self, payload: object) -> None:
        self._ui.dismiss()
        self._enter(SessionState.IDLE)

    def _skip_delaying(self, payload: object) -> None:
        self._ui.dismiss()
        self._enter(SessionState.IDLE)

    def _skip_blocked(self, payload: object) -> None:
        if not self.config.allow_skip or self.teaching_mode > TeachingMode.MODERATE:
            logger.debug("Skip refused in %s mode", self.teaching_mode.label)
            return
        self._ui.dismiss()
        self._enter(SessionState.IDLE)

    def _gentle_timeout(self, payload: object) -> None:
        self._ui.dismiss()
        self._enter(SessionState.IDLE)

    def _deferred_execute(self, payload: object) -> None:
        assert self.active is not None
        active = self.active
        self._apply(active.detection, active.rule)
        self._ui.dismiss()
        self._enter(SessionState.IDLE)


def _same_suggestion(left: Suggestion, right: Suggestion) -> bool:
    return (left.template or left.command) == (right.template or right.command)


TRANSITIONS: dict[tuple[SessionState, SessionEvent], Handler] = {
    (SessionState.IDLE, SessionEvent.DETECTED): Session._detect_when_idle,
    (SessionState.ALLOWING, SessionEvent.DETECTED): Session._drop_detection,
    (SessionState.DELAYING, SessionEvent.DETECTED): Session._drop_detection,
    (SessionState.BLOCKED_VISIBLE, SessionEvent.DETECTED): Session._drop_detection,
    (SessionState.BLOCKED_SILENT, SessionEvent.DETECTED): Session._drop_detection,
    (SessionState.BLOCKED_VISIBLE, SessionEvent.CANDIDATE): Session._candidate_when_blocked,
    (SessionState.BLOCKED_SILENT, SessionEvent.CANDIDATE): Session._candidate_when_blocked,
    (SessionState.ALLOWING, SessionEvent.SKIP): Session._skip_allowing,
    (SessionState.DELAYING, SessionEvent.SKIP): Session._skip_delaying,
    (SessionState.BLOCKED_VISIBLE, SessionEvent.SKIP): Session._skip_blocked,
    (SessionState.BLOCKED_SILENT, SessionEvent.SKIP): Session._skip_blocked,
    (SessionState.ALLOWING, SessionEvent.TIMER): Session._gentle_timeout,
    (SessionState.DELAYING, SessionEvent.TIMER): Session._deferred_execute,
}
