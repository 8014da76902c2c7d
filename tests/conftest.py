from __future__ import annotations

import shutil
import sys
from collections.abc import Callable, Iterator
from pathlib import Path
from uuid import uuid4

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vimmentor.collaborators import EditorSnapshot  # noqa: E402
from vimmentor.config import MentorConfig  # noqa: E402
from vimmentor.models import Escalation, EscalationAction, Hint, LearningProfile, TeachingMode  # noqa: E402
from vimmentor.progression import LevelProgressionTracker  # noqa: E402
from vimmentor.resolution import ResolutionEngine  # noqa: E402
from vimmentor.rules import RuleStore  # noqa: E402
from vimmentor.scheduler import ManualScheduler  # noqa: E402
from vimmentor.session import Session  # noqa: E402


def _tmp_path_fixture() -> Iterator[Path]:
    """Provide per-test temporary directory path inside the workspace.

    This intentionally overrides pytest's builtin ``tmp_path`` fixture for this
    repository. Tests keep temporary files under the project working directory
    at ``.tmp_pytest/``.
    """
    base = ROOT / ".tmp_pytest"
    base.mkdir(parents=True, exist_ok=True)
    path = base / str(uuid4())
    path.mkdir(parents=True, exist_ok=False)
    try:
        yield path
    finally:
        shutil.rmtree(path, ignore_errors=True)
        try:
            next(base.iterdir())
        except StopIteration:
            base.rmdir()
        except FileNotFoundError:
            pass


tmp_path = pytest.fixture(name="tmp_path")(_tmp_path_fixture)


class FakeHost:
    """Host editor double with a fixed-size buffer and a movable cursor."""

    def __init__(self, line: int = 50, col: int = 4, total_lines: int = 100, line_length: int = 40) -> None:
        self.line = line
        self.col = col
        self.total_lines = total_lines
        self.line_length = line_length
        self.mode = "n"
        self.filetype = "python"
        self.available = True
        self.applied: list[tuple[str, str]] = []

    def snapshot(self) -> EditorSnapshot | None:
        if not self.available:
            return None
        return EditorSnapshot(
            cursor_line=self.line,
            cursor_col=self.col,
            total_lines=self.total_lines,
            line_length=self.line_length,
            mode=self.mode,
            filetype=self.filetype,
        )

    def apply_fallback(self, raw_key: str, fallback: str) -> None:
        self.applied.append((raw_key, fallback))


class RecordingUI:
    """UI double that records every call in order."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, object]] = []
        self.hints: list[Hint] = []
        self.escalations: list[Escalation] = []

    def present(self, hint: Hint, mode: TeachingMode) -> None:
        self.hints.append(hint)
        self.calls.append(("present", mode))

    def dismiss(self) -> None:
        self.calls.append(("dismiss", None))

    def present_escalation(self, kind: EscalationAction, escalation: Escalation) -> None:
        self.escalations.append(escalation)
        self.calls.append(("escalation", kind))

    def present_level_up(self, level: int) -> None:
        self.calls.append(("level_up", level))

    def present_milestone(self, streak: int) -> None:
        self.calls.append(("milestone", streak))

    def names(self) -> list[str]:
        return [name for name, _ in self.calls]


class RecordingSink:
    """Persistence double that keeps writes in memory."""

    def __init__(self) -> None:
        self.outcomes: list[tuple[str, bool]] = []
        self.saved: list[LearningProfile] = []

    def record_outcome(self, command: str, correct: bool) -> None:
        self.outcomes.append((command, correct))

    def save(self, profile: LearningProfile) -> None:
        self.saved.append(profile)


class Harness:
    """A session wired to doubles and a virtual clock."""

    def __init__(
        self,
        session: Session,
        host: FakeHost,
        ui: RecordingUI,
        sink: RecordingSink,
        scheduler: ManualScheduler,
    ) -> None:
        self.session = session
        self.host = host
        self.ui = ui
        self.sink = sink
        self.scheduler = scheduler


@pytest.fixture(scope="session")
def rule_store() -> RuleStore:
    return RuleStore.bundled()


@pytest.fixture
def make_session(rule_store: RuleStore) -> Callable[..., Harness]:
    """Build a session in a given teaching mode and level with config overrides."""

    def factory(
        mode: TeachingMode = TeachingMode.STRICT,
        level: int = 1,
        host: FakeHost | None = None,
        **overrides: object,
    ) -> Harness:
        scheduler = ManualScheduler()
        config = MentorConfig().with_overrides(**overrides) if overrides else MentorConfig()
        progression = LevelProgressionTracker(
            LearningProfile(level=level, teaching_mode=mode),
            advance_threshold=config.advance_threshold,
            milestones=config.milestones,
        )
        fake_host = host or FakeHost()
        ui = RecordingUI()
        sink = RecordingSink()
        session = Session(
            engine=ResolutionEngine(rule_store),
            host=fake_host,
            ui=ui,
            progression=progression,
            scheduler=scheduler,
            config=config,
            persistence=sink,
        )
        return Harness(session, fake_host, ui, sink, scheduler)

    return factory


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def ui() -> RecordingUI:
    return RecordingUI()


@pytest.fixture
def host_factory() -> Callable[..., FakeHost]:
    return FakeHost


@pytest.fixture
def ui_factory() -> Callable[[], RecordingUI]:
    return RecordingUI
