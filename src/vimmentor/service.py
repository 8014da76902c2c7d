"""Application service shared by every editing surface of one learner."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from concurrent.futures import Executor
from dataclasses import asdict, dataclass, replace
from datetime import UTC, datetime
from pathlib import Path

from . import __version__
from .classifier import KeyClassifier
from .collaborators import HostEditor, MentorUI
from .config import MentorConfig
from .models import LEVEL_NAMES, Decision, LearningProfile, Rule, TeachingMode
from .persistence import PersistenceDispatcher
from .progress import SCHEMA_VERSION, CommandStats, LifetimeStats, Profile, ProgressStore
from .progression import LevelProgressionTracker
from .resolution import ResolutionEngine
from .rules import RuleStore
from .scheduler import ManualScheduler, Scheduler
from .session import Session

logger = logging.getLogger(__name__)

EXPORT_FORMAT_VERSION = 1
DEFAULT_PROFILE = "default"


@dataclass(frozen=True)
class SuggestionReference:
    """One suggestion row for the rule reference view."""

    command: str
    min_level: int
    condition: str


@dataclass(frozen=True)
class RuleReference:
    """Rule metadata for the reference view."""

    operation_type: str
    display_name: str
    category: str
    keys: tuple[str, ...]
    suggestions: tuple[SuggestionReference, ...]


@dataclass(frozen=True)
class MentorStatus:
    """Learner progression summary."""

    profile_name: str
    level: int
    level_name: str
    teaching_mode: TeachingMode
    streak: int
    best_streak: int
    cumulative_correct: int
    next_level_at: int | None


@dataclass(frozen=True)
class ExportSummary:
    """Summary emitted by progress export."""

    profile_name: str
    command_rows: int
    outcome_rows: int


class MentorService:
    """Own the shared rule store, engine, progression, and persistence; one session per surface."""

    def __init__(
        self,
        db_path: Path | str,
        config: MentorConfig | None = None,
        *,
        profile_name: str = DEFAULT_PROFILE,
        scheduler: Scheduler | None = None,
        rules: RuleStore | None = None,
        executor: Executor | None = None,
    ) -> None:
        """Initialize service with database path."""
        self.config = config or MentorConfig()
        self.rules = rules or RuleStore.bundled()
        self.engine = ResolutionEngine(self.rules)
        self.classifier = KeyClassifier(self.rules, self.config.blocked_keys)
        self.scheduler = scheduler or ManualScheduler()
        self.progress = ProgressStore(db_path)
        self.profile = self.progress.get_or_create_profile(profile_name.strip() or DEFAULT_PROFILE)
        self.persistence = PersistenceDispatcher(self.progress, self.profile.id, executor)
        loaded = self.persistence.load(LearningProfile(level=self.config.learning_level))
        # Only the level carries over between runs; strictness always comes from config.
        loaded = replace(loaded, teaching_mode=self.config.teaching_mode)
        self.progression = LevelProgressionTracker(
            loaded,
            advance_threshold=self.config.advance_threshold,
            advance_policy=self.config.advance_policy,
            auto_advance=self.config.auto_advance,
            milestones=self.config.milestones,
        )
        self._sessions: dict[str, tuple[Session, HostEditor]] = {}

    def open_session(self, surface_id: str, host: HostEditor, ui: MentorUI) -> Session:
        """Create the session for one editing surface."""
        if surface_id in self._sessions:
            raise ValueError(f"Session already open for surface '{surface_id}'.")
        session = Session(
            engine=self.engine,
            host=host,
            ui=ui,
            progression=self.progression,
            scheduler=self.scheduler,
            config=self.config,
            persistence=self.persistence,
        )
        self._sessions[surface_id] = (session, host)
        self.persistence.record_session()
        return session

    def get_session(self, surface_id: str) -> Session:
        return self._sessions[surface_id][0]

    def close_session(self, surface_id: str) -> bool:
        """Close one surface's session; False when none was open."""
        entry = self._sessions.pop(surface_id, None)
        if entry is None:
            return False
        entry[0].close()
        return True

    def classify(self, raw_key: str) -> str | None:
        """Return the operation type of a non-preferred key."""
        return self.classifier.classify(raw_key)

    def on_raw_key(self, surface_id: str, raw_key: str) -> Decision | None:
        """Route one raw key from a surface; None means the mentor does not handle it."""
        session, host = self._sessions[surface_id]
        snapshot = host.snapshot()
        if snapshot is not None and snapshot.filetype in self.config.excluded_filetypes:
            return None
        mode = snapshot.mode if snapshot is not None else "n"
        operation_type = self.classifier.classify(raw_key)
        if operation_type is not None:
            return session.on_operation_detected(raw_key, operation_type)
        pattern = self.classifier.classify_pattern(raw_key, mode)
        if pattern is not None:
            return session.on_pattern_key(raw_key, pattern)
        return None

    def on_candidate_input(self, surface_id: str, text: str) -> bool:
        return self.get_session(surface_id).on_candidate_input(text)

    def on_skip_requested(self, surface_id: str) -> None:
        self.get_session(surface_id).on_skip_requested()

    def set_teaching_mode(self, mode: TeachingMode | int) -> None:
        """Change strictness for the learner and every open session."""
        teaching_mode = TeachingMode(mode)
        profile = self.progression.set_teaching_mode(teaching_mode)
        for session, _ in self._sessions.values():
            session.set_teaching_mode(teaching_mode)
        self.persistence.save(profile)

    def set_learning_level(self, level: int) -> None:
        self.persistence.save(self.progression.set_level(level))

    def status(self) -> MentorStatus:
        profile = self.progression.profile
        return MentorStatus(
            profile_name=self.profile.name,
            level=profile.level,
            level_name=LEVEL_NAMES.get(profile.level, "?"),
            teaching_mode=profile.teaching_mode,
            streak=profile.streak,
            best_streak=profile.best_streak,
            cumulative_correct=profile.cumulative_correct,
            next_level_at=self.progression.next_level_target() if self.progression.auto_advance else None,
        )

    def lifetime_stats(self) -> LifetimeStats:
        self.persistence.flush()
        return self.progress.lifetime_stats(self.profile.id)

    def command_stats(self) -> list[CommandStats]:
        self.persistence.flush()
        return self.progress.list_command_stats(self.profile.id)

    def list_profiles(self) -> list[Profile]:
        return self.progress.list_profiles()

    def list_rule_references(self) -> list[RuleReference]:
        """Return every rule with its suggestions, contextual ones first by priority."""
        return [_rule_reference(rule) for rule in self.rules]

    def export_progress(self, export_path: Path | str) -> ExportSummary:
        """Export progression, command statistics, and outcome history to a JSON file."""
        self.persistence.flush()
        command_rows = [asdict(item) for item in self.progress.list_command_stats(self.profile.id)]
        outcome_rows = self.progress.list_outcome_rows(self.profile.id)
        profile = self.progression.profile
        payload = {
            "format_version": EXPORT_FORMAT_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            "source": {
                "app_version": __version__,
                "schema_version": SCHEMA_VERSION,
            },
            "profile": {
                "name": self.profile.name,
                "level": profile.level,
                "teaching_mode": int(profile.teaching_mode),
                "cumulative_correct": profile.cumulative_correct,
                "streak": profile.streak,
                "best_streak": profile.best_streak,
                "level_baseline": profile.level_baseline,
            },
            "command_stats": command_rows,
            "outcomes": outcome_rows,
        }

        path = Path(export_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        return ExportSummary(
            profile_name=self.profile.name,
            command_rows=len(command_rows),
            outcome_rows=len(outcome_rows),
        )

    def reset_progress(self) -> LearningProfile:
        """Forget all progression and history for the current profile."""
        self.persistence.flush()
        self.progress.reset_progress(self.profile.id)
        profile = self.progression.reset()
        for session, _ in self._sessions.values():
            session.ledger.clear()
            session.level_drop = 0
        self.persistence.save(profile)
        logger.info("Progress reset for profile %s", self.profile.name)
        return profile

    def close(self) -> None:
        """Close sessions, flush writes, and release the database."""
        for surface_id in list(self._sessions):
            self.close_session(surface_id)
        try:
            self.persistence.close()
        finally:
            self.progress.close()


def _rule_reference(rule: Rule) -> RuleReference:
    suggestions = [
        SuggestionReference(
            command=item.suggestion.command,
            min_level=item.suggestion.min_level,
            condition=_describe_condition(item.when),
        )
        for item in sorted(rule.contextual_rules, key=lambda entry: entry.priority)
    ]
    suggestions.extend(
        SuggestionReference(command=item.command, min_level=item.min_level, condition="always")
        for item in rule.base_suggestions
    )
    return RuleReference(
        operation_type=rule.operation_type,
        display_name=rule.display_name,
        category=rule.category,
        keys=rule.keys,
        suggestions=tuple(suggestions),
    )


def _describe_condition(when: Mapping[str, object]) -> str:
    if not when:
        return "always"
    return ", ".join(f"{key}={value}" for key, value in sorted(when.items()))
