"""Learning level progression and streak bookkeeping."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from .config import ADVANCE_THRESHOLD, STREAK_MILESTONES, AdvancePolicy
from .models import MAX_LEARNING_LEVEL, MIN_LEARNING_LEVEL, LearningProfile, TeachingMode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressUpdate:
    """Result of recording one outcome."""

    profile: LearningProfile
    leveled_up: bool = False
    milestone: int | None = None


class LevelProgressionTracker:
    """Accumulate outcomes and advance the learning level when a threshold is crossed.

    Two advancement formulas are supported:

    - ``flat``: advance once ``advance_threshold`` more correct answers have been
      given since the current level was entered.
    - ``scaled``: advance once the lifetime correct count reaches
      ``advance_threshold * level``.
    """

    def __init__(
        self,
        profile: LearningProfile | None = None,
        *,
        advance_threshold: int = ADVANCE_THRESHOLD,
        advance_policy: AdvancePolicy = "flat",
        auto_advance: bool = True,
        milestones: Iterable[int] = STREAK_MILESTONES,
    ) -> None:
        self.profile = profile or LearningProfile()
        self.advance_threshold = advance_threshold
        self.advance_policy = advance_policy
        self.auto_advance = auto_advance
        self.milestones = frozenset(milestones)

    @property
    def level(self) -> int:
        return self.profile.level

    def record_outcome(self, correct: bool) -> ProgressUpdate:
        """Apply one correction outcome."""
        profile = self.profile
        if not correct:
            self.profile = replace(profile, streak=0)
            return ProgressUpdate(self.profile)

        streak = profile.streak + 1
        profile = replace(
            profile,
            cumulative_correct=profile.cumulative_correct + 1,
            streak=streak,
            best_streak=max(profile.best_streak, streak),
        )
        self.profile = profile
        leveled_up = False
        if self.auto_advance:
            target = self.next_level_target()
            if target is not None and profile.cumulative_correct >= target:
                self.profile = replace(profile, level=profile.level + 1, level_baseline=profile.cumulative_correct)
                leveled_up = True
                logger.info("Learning level advanced to %d", self.profile.level)
        return ProgressUpdate(
            self.profile,
            leveled_up=leveled_up,
            milestone=streak if streak in self.milestones else None,
        )

    def next_level_target(self) -> int | None:
        """Return the cumulative correct count needed for the next level."""
        profile = self.profile
        if profile.level >= MAX_LEARNING_LEVEL:
            return None
        if self.advance_policy == "scaled":
            return self.advance_threshold * profile.level
        return profile.level_baseline + self.advance_threshold

    def set_level(self, level: int) -> LearningProfile:
        """Move to a level explicitly and restart the count toward the next one."""
        bounded = max(MIN_LEARNING_LEVEL, min(MAX_LEARNING_LEVEL, level))
        self.profile = replace(self.profile, level=bounded, level_baseline=self.profile.cumulative_correct)
        return self.profile

    def set_teaching_mode(self, mode: TeachingMode) -> LearningProfile:
        self.profile = replace(self.profile, teaching_mode=TeachingMode(mode))
        return self.profile

    def reset(self) -> LearningProfile:
        """Start over at the first level, keeping the teaching mode."""
        self.profile = LearningProfile(teaching_mode=self.profile.teaching_mode)
        return self.profile
