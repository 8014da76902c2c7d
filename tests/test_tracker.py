from vimmentor.scheduler import ManualScheduler
from vimmentor.tracker import RepeatTracker


def test_same_operation_within_window_increments() -> None:
    scheduler = ManualScheduler()
    tracker = RepeatTracker(scheduler, window_ms=800)
    assert tracker.track("arrow_down") == 1
    scheduler.advance(200)
    assert tracker.track("arrow_down") == 2
    scheduler.advance(200)
    assert tracker.track("arrow_down") == 3
    assert tracker.count == 3


def test_gap_of_exactly_window_starts_over() -> None:
    scheduler = ManualScheduler()
    tracker = RepeatTracker(scheduler, window_ms=800)
    tracker.track("arrow_down", now_ms=0)
    assert tracker.track("arrow_down", now_ms=799) == 2
    assert tracker.track("arrow_down", now_ms=1599) == 1


def test_different_operation_resets_to_one() -> None:
    scheduler = ManualScheduler()
    tracker = RepeatTracker(scheduler)
    tracker.track("arrow_down")
    tracker.track("arrow_down")
    assert tracker.track("arrow_up") == 1


def test_count_decays_after_window() -> None:
    scheduler = ManualScheduler()
    tracker = RepeatTracker(scheduler, window_ms=800)
    tracker.track("arrow_left")
    tracker.track("arrow_left")
    scheduler.advance(799)
    assert tracker.count == 2
    scheduler.advance(1)
    assert tracker.count == 0
    assert tracker.track("arrow_left") == 1


def test_new_press_pushes_decay_back() -> None:
    scheduler = ManualScheduler()
    tracker = RepeatTracker(scheduler, window_ms=800)
    tracker.track("arrow_right")
    scheduler.advance(600)
    tracker.track("arrow_right")
    scheduler.advance(600)
    assert tracker.count == 2
    assert scheduler.pending() == 1


def test_reset_clears_state_and_timer() -> None:
    scheduler = ManualScheduler()
    tracker = RepeatTracker(scheduler)
    tracker.track("page_down")
    tracker.reset()
    assert tracker.count == 0
    assert scheduler.pending() == 0
    assert tracker.track("page_down") == 1
