from vimmentor.models import MAX_LEARNING_LEVEL, LearningProfile, TeachingMode
from vimmentor.progression import LevelProgressionTracker


def test_correct_outcome_increments_counters() -> None:
    tracker = LevelProgressionTracker()
    update = tracker.record_outcome(True)
    assert update.profile.cumulative_correct == 1
    assert update.profile.streak == 1
    assert update.profile.best_streak == 1
    assert update.leveled_up is False
    assert update.milestone is None


def test_failure_resets_streak_but_keeps_best() -> None:
    tracker = LevelProgressionTracker()
    tracker.record_outcome(True)
    tracker.record_outcome(True)
    update = tracker.record_outcome(False)
    assert update.profile.streak == 0
    assert update.profile.best_streak == 2
    assert update.profile.cumulative_correct == 2


def test_flat_policy_advances_after_threshold_since_level_start() -> None:
    tracker = LevelProgressionTracker(advance_threshold=3, advance_policy="flat")
    assert tracker.next_level_target() == 3
    updates = [tracker.record_outcome(True) for _ in range(3)]
    assert [item.leveled_up for item in updates] == [False, False, True]
    assert tracker.level == 2
    assert tracker.profile.level_baseline == 3
    assert tracker.next_level_target() == 6


def test_scaled_policy_uses_threshold_times_level() -> None:
    tracker = LevelProgressionTracker(LearningProfile(level=2, cumulative_correct=5), advance_threshold=4)
    tracker.advance_policy = "scaled"
    assert tracker.next_level_target() == 8
    for _ in range(2):
        tracker.record_outcome(True)
    assert tracker.level == 2
    assert tracker.record_outcome(True).leveled_up is True
    assert tracker.level == 3
    assert tracker.next_level_target() == 12


def test_auto_advance_disabled_never_levels() -> None:
    tracker = LevelProgressionTracker(advance_threshold=1, auto_advance=False)
    for _ in range(5):
        assert tracker.record_outcome(True).leveled_up is False
    assert tracker.level == 1


def test_level_is_capped_at_maximum() -> None:
    tracker = LevelProgressionTracker(LearningProfile(level=MAX_LEARNING_LEVEL), advance_threshold=1)
    assert tracker.next_level_target() is None
    assert tracker.record_outcome(True).leveled_up is False
    assert tracker.level == MAX_LEARNING_LEVEL


def test_milestones_are_reported_at_exact_streaks() -> None:
    tracker = LevelProgressionTracker(advance_threshold=100, milestones=(2, 4))
    milestones = [tracker.record_outcome(True).milestone for _ in range(5)]
    assert milestones == [None, 2, None, 4, None]


def test_set_level_is_bounded_and_restarts_count() -> None:
    tracker = LevelProgressionTracker(LearningProfile(cumulative_correct=12), advance_threshold=5)
    assert tracker.set_level(9).level == MAX_LEARNING_LEVEL
    assert tracker.set_level(0).level == 1
    assert tracker.profile.level_baseline == 12
    assert tracker.next_level_target() == 17


def test_reset_keeps_teaching_mode() -> None:
    tracker = LevelProgressionTracker(LearningProfile(level=3, teaching_mode=TeachingMode.STRICT, streak=4))
    tracker.set_teaching_mode(TeachingMode.MASTER)
    profile = tracker.reset()
    assert profile == LearningProfile(teaching_mode=TeachingMode.MASTER)
