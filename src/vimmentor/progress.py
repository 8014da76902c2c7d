"""SQLite persistence for learner profiles, progression, and command statistics."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

from .models import MAX_LEARNING_LEVEL, MIN_LEARNING_LEVEL, LearningProfile, TeachingMode

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


@dataclass(frozen=True)
class Profile:
    """User profile record."""

    id: int
    name: str


@dataclass(frozen=True)
class CommandStats:
    """How often one suggested command was prompted and answered correctly."""

    command: str
    correct: int
    prompted: int
    last_seen_at: str

    @property
    def accuracy(self) -> float:
        return 0.0 if self.prompted == 0 else 100.0 * self.correct / self.prompted


@dataclass(frozen=True)
class LifetimeStats:
    """Totals across every session of a profile."""

    correct: int
    incorrect: int
    best_streak: int
    total_sessions: int


class ProgressStore:
    """Database access layer for learner progress."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database and schema."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        # Writes arrive from the persistence worker thread.
        self._conn = sqlite3.connect(target, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, _now()),
                )

    def _migrate_to_v1(self) -> None:
        """Create profile, learning state, statistics, and outcome tables."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS profiles (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    created_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS learning_state (
                    profile_id INTEGER PRIMARY KEY,
                    level INTEGER NOT NULL,
                    teaching_mode INTEGER NOT NULL,
                    cumulative_correct INTEGER NOT NULL,
                    streak INTEGER NOT NULL,
                    best_streak INTEGER NOT NULL,
                    level_baseline INTEGER NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS command_stats (
                    profile_id INTEGER NOT NULL,
                    command TEXT NOT NULL,
                    correct INTEGER NOT NULL,
                    prompted INTEGER NOT NULL,
                    last_seen_at TEXT NOT NULL,
                    PRIMARY KEY (profile_id, command)
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS outcomes (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    profile_id INTEGER NOT NULL,
                    command TEXT NOT NULL,
                    is_correct INTEGER NOT NULL,
                    created_at TEXT NOT NULL
                )
                """)
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS sessions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    profile_id INTEGER NOT NULL,
                    started_at TEXT NOT NULL
                )
                """)

    def list_profiles(self) -> list[Profile]:
        """Return profiles ordered by name."""
        rows = self._conn.execute("SELECT id, name FROM profiles ORDER BY name").fetchall()
        return [Profile(id=int(row["id"]), name=str(row["name"])) for row in rows]

    def create_profile(self, name: str) -> Profile:
        """Create a new profile."""
        with self._conn:
            cursor = self._conn.execute(
                "INSERT INTO profiles (name, created_at) VALUES (?, ?)",
                (name, _now()),
            )
        row_id = cursor.lastrowid
        if row_id is None:
            raise RuntimeError("Could not create profile.")
        return Profile(id=int(row_id), name=name)

    def get_profile_by_name(self, name: str) -> Profile | None:
        row = self._conn.execute("SELECT id, name FROM profiles WHERE name = ?", (name,)).fetchone()
        if row is None:
            return None
        return Profile(id=int(row["id"]), name=str(row["name"]))

    def get_or_create_profile(self, name: str) -> Profile:
        """Return the named profile, creating it on first use."""
        existing = self.get_profile_by_name(name)
        if existing is not None:
            return existing
        return self.create_profile(name)

    def reset_progress(self, profile_id: int) -> None:
        """Clear progression, statistics, and history but keep the profile."""
        with self._conn:
            self._delete_progress(profile_id)

    def _delete_progress(self, profile_id: int) -> None:
        for table in ("learning_state", "command_stats", "outcomes", "sessions"):
            self._conn.execute(f"DELETE FROM {table} WHERE profile_id = ?", (profile_id,))

    def load_profile(self, profile_id: int, default: LearningProfile | None = None) -> LearningProfile:
        """Return stored progression, or `default` when none is stored or it is malformed."""
        fresh = default or LearningProfile()
        row = self._conn.execute(
            """
            SELECT level, teaching_mode, cumulative_correct, streak, best_streak, level_baseline
            FROM learning_state
            WHERE profile_id = ?
            """,
            (profile_id,),
        ).fetchone()
        if row is None:
            return fresh
        try:
            profile = LearningProfile(
                level=int(row["level"]),
                teaching_mode=TeachingMode(int(row["teaching_mode"])),
                cumulative_correct=int(row["cumulative_correct"]),
                streak=int(row["streak"]),
                best_streak=int(row["best_streak"]),
                level_baseline=int(row["level_baseline"]),
            )
        except (TypeError, ValueError) as exc:
            logger.warning("Ignoring malformed learning state for profile %s: %s", profile_id, exc)
            return fresh
        if not _profile_is_valid(profile):
            logger.warning("Ignoring out-of-range learning state for profile %s: %r", profile_id, profile)
            return fresh
        return profile

    def save_profile(self, profile_id: int, profile: LearningProfile) -> None:
        """Upsert the progression snapshot for a profile."""
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO learning_state (
                    profile_id,
                    level,
                    teaching_mode,
                    cumulative_correct,
                    streak,
                    best_streak,
                    level_baseline,
                    updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(profile_id) DO UPDATE SET
                    level = excluded.level,
                    teaching_mode = excluded.teaching_mode,
                    cumulative_correct = excluded.cumulative_correct,
                    streak = excluded.streak,
                    best_streak = excluded.best_streak,
                    level_baseline = excluded.level_baseline,
                    updated_at = excluded.updated_at
                """,
                (
                    profile_id,
                    profile.level,
                    int(profile.teaching_mode),
                    profile.cumulative_correct,
                    profile.streak,
                    profile.best_streak,
                    profile.level_baseline,
                    _now(),
                ),
            )

    def record_outcome(self, profile_id: int, command: str, correct: bool) -> None:
        """Record a prompt (incorrect) or a successful correction for a command.

        A prompt counts toward `prompted`; a correction counts toward `correct`.
        """
        now = _now()
        with self._conn:
            self._conn.execute(
                "INSERT INTO outcomes (profile_id, command, is_correct, created_at) VALUES (?, ?, ?, ?)",
                (profile_id, command, int(correct), now),
            )
            self._conn.execute(
                """
                INSERT INTO command_stats (profile_id, command, correct, prompted, last_seen_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(profile_id, command) DO UPDATE SET
                    correct = command_stats.correct + excluded.correct,
                    prompted = command_stats.prompted + excluded.prompted,
                    last_seen_at = excluded.last_seen_at
                """,
                (profile_id, command, int(correct), int(not correct), now),
            )

    def record_session(self, profile_id: int) -> None:
        """Count one more practice session for a profile."""
        with self._conn:
            self._conn.execute(
                "INSERT INTO sessions (profile_id, started_at) VALUES (?, ?)",
                (profile_id, _now()),
            )

    def list_command_stats(self, profile_id: int) -> list[CommandStats]:
        """Return per-command statistics, most practiced first."""
        rows = self._conn.execute(
            """
            SELECT command, correct, prompted, last_seen_at
            FROM command_stats
            WHERE profile_id = ?
            ORDER BY prompted DESC, command ASC
            """,
            (profile_id,),
        ).fetchall()
        return [
            CommandStats(
                command=str(row["command"]),
                correct=int(row["correct"]),
                prompted=int(row["prompted"]),
                last_seen_at=str(row["last_seen_at"]),
            )
            for row in rows
        ]

    def lifetime_stats(self, profile_id: int) -> LifetimeStats:
        """Return totals for the profile."""
        row = self._conn.execute(
            """
            SELECT
                COALESCE(SUM(CASE WHEN is_correct = 1 THEN 1 ELSE 0 END), 0) AS correct,
                COALESCE(SUM(CASE WHEN is_correct = 0 THEN 1 ELSE 0 END), 0) AS incorrect
            FROM outcomes
            WHERE profile_id = ?
            """,
            (profile_id,),
        ).fetchone()
        sessions = self._conn.execute("SELECT COUNT(*) FROM sessions WHERE profile_id = ?", (profile_id,)).fetchone()
        return LifetimeStats(
            correct=int(row["correct"]),
            incorrect=int(row["incorrect"]),
            best_streak=self.load_profile(profile_id).best_streak,
            total_sessions=int(sessions[0]),
        )

    def list_outcome_rows(self, profile_id: int) -> list[dict[str, object]]:
        """Return raw outcome rows for export."""
        rows = self._conn.execute(
            "SELECT command, is_correct, created_at FROM outcomes WHERE profile_id = ? ORDER BY id",
            (profile_id,),
        ).fetchall()
        return [
            {"command": str(row["command"]), "is_correct": int(row["is_correct"]), "created_at": str(row["created_at"])}
            for row in rows
        ]

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def _profile_is_valid(profile: LearningProfile) -> bool:
    if not MIN_LEARNING_LEVEL <= profile.level <= MAX_LEARNING_LEVEL:
        return False
    counters = (profile.cumulative_correct, profile.streak, profile.best_streak, profile.level_baseline)
    return all(value >= 0 for value in counters)


def _now() -> str:
    return datetime.now(UTC).isoformat()
