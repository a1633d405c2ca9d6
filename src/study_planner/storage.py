from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Iterable, Optional

from .models import (
    Category,
    Difficulty,
    FocusSession,
    Milestone,
    Priority,
    Roadmap,
    SessionType,
    Step,
    StudySession,
    StudySettings,
    Subtask,
    Task,
    User,
)

# cycled through for categories created on the fly
_CATEGORY_COLORS = ("#6366f1", "#22c55e", "#f59e0b", "#ef4444", "#06b6d4", "#a855f7")


def _to_iso_dt(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    return dt.isoformat(timespec="seconds")


def _from_iso_dt(s: Optional[str]) -> Optional[datetime]:
    if s is None:
        return None
    return datetime.fromisoformat(s)


class Storage:
    """
    Thin sqlite stand-in for the document store. It persists and fetches
    rows only; every derived number is computed by the planner modules.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = str(db_path)
        self._init()

    @contextmanager
    def _conn(self) -> Iterable[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        finally:
            conn.close()

    def _init(self) -> None:
        with self._conn() as conn:
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS users (
                  telegram_user_id INTEGER PRIMARY KEY,
                  timezone TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS user_settings (
                  telegram_user_id INTEGER PRIMARY KEY,
                  study_hours_per_day INTEGER NOT NULL,
                  focus_duration_minutes INTEGER NOT NULL,
                  short_break_minutes INTEGER NOT NULL,
                  long_break_minutes INTEGER NOT NULL,
                  sessions_before_long_break INTEGER NOT NULL,
                  preferred_study_start_time TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS categories (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  telegram_user_id INTEGER NOT NULL,
                  name TEXT NOT NULL,
                  color TEXT NOT NULL,
                  UNIQUE (telegram_user_id, name)
                );
                CREATE TABLE IF NOT EXISTS tasks (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  telegram_user_id INTEGER NOT NULL,
                  category_id INTEGER NULL REFERENCES categories(id),
                  title TEXT NOT NULL,
                  priority TEXT NOT NULL,
                  due_date TEXT NULL,
                  is_completed INTEGER NOT NULL DEFAULT 0,
                  completed_at TEXT NULL,
                  created_at TEXT NOT NULL
                );
                CREATE INDEX IF NOT EXISTS idx_tasks_user ON tasks(telegram_user_id);
                CREATE TABLE IF NOT EXISTS roadmaps (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  telegram_user_id INTEGER NOT NULL,
                  title TEXT NOT NULL,
                  description TEXT NULL,
                  duration_weeks INTEGER NOT NULL,
                  created_at TEXT NOT NULL,
                  updated_at TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS milestones (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  roadmap_id INTEGER NOT NULL REFERENCES roadmaps(id) ON DELETE CASCADE,
                  title TEXT NOT NULL,
                  description TEXT NULL,
                  position INTEGER NOT NULL,
                  color TEXT NOT NULL
                );
                CREATE TABLE IF NOT EXISTS steps (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  milestone_id INTEGER NOT NULL REFERENCES milestones(id) ON DELETE CASCADE,
                  title TEXT NOT NULL,
                  difficulty TEXT NOT NULL,
                  resource_url TEXT NULL,
                  is_completed INTEGER NOT NULL DEFAULT 0,
                  completed_at TEXT NULL,
                  position INTEGER NOT NULL
                );
                CREATE TABLE IF NOT EXISTS focus_sessions (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  telegram_user_id INTEGER NOT NULL,
                  task_id INTEGER NULL,
                  duration_minutes INTEGER NOT NULL,
                  session_type TEXT NOT NULL,
                  started_at TEXT NOT NULL,
                  completed_at TEXT NULL,
                  is_completed INTEGER NOT NULL DEFAULT 0
                );
                CREATE TABLE IF NOT EXISTS study_sessions (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  telegram_user_id INTEGER NOT NULL,
                  task_id INTEGER NULL,
                  step_id INTEGER NULL,
                  title TEXT NOT NULL,
                  scheduled_date TEXT NOT NULL,
                  start_time TEXT NOT NULL,
                  duration_minutes INTEGER NOT NULL,
                  is_completed INTEGER NOT NULL DEFAULT 0
                );
                CREATE INDEX IF NOT EXISTS idx_study_sessions_user_day
                ON study_sessions(telegram_user_id, scheduled_date);
                CREATE TABLE IF NOT EXISTS subtasks (
                  id INTEGER PRIMARY KEY AUTOINCREMENT,
                  task_id INTEGER NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
                  title TEXT NOT NULL,
                  is_completed INTEGER NOT NULL DEFAULT 0,
                  position INTEGER NOT NULL
                );
                """
            )

    # users / settings

    def upsert_user(self, user: User) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO users(telegram_user_id, timezone) VALUES(?, ?)
                ON CONFLICT(telegram_user_id) DO UPDATE SET timezone=excluded.timezone
                """,
                (user.telegram_user_id, user.timezone),
            )

    def get_user(self, telegram_user_id: int) -> Optional[User]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM users WHERE telegram_user_id=?", (telegram_user_id,)
            ).fetchone()
        if row is None:
            return None
        return User(telegram_user_id=int(row["telegram_user_id"]), timezone=str(row["timezone"]))

    def get_settings(self, telegram_user_id: int) -> Optional[StudySettings]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM user_settings WHERE telegram_user_id=?", (telegram_user_id,)
            ).fetchone()
        if row is None:
            return None
        return StudySettings(
            study_hours_per_day=int(row["study_hours_per_day"]),
            focus_duration_minutes=int(row["focus_duration_minutes"]),
            short_break_minutes=int(row["short_break_minutes"]),
            long_break_minutes=int(row["long_break_minutes"]),
            sessions_before_long_break=int(row["sessions_before_long_break"]),
            preferred_study_start_time=str(row["preferred_study_start_time"]),
        )

    def save_settings(self, telegram_user_id: int, s: StudySettings) -> None:
        with self._conn() as conn:
            conn.execute(
                """
                INSERT INTO user_settings(
                  telegram_user_id, study_hours_per_day, focus_duration_minutes,
                  short_break_minutes, long_break_minutes, sessions_before_long_break,
                  preferred_study_start_time
                )
                VALUES(?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(telegram_user_id) DO UPDATE SET
                  study_hours_per_day=excluded.study_hours_per_day,
                  focus_duration_minutes=excluded.focus_duration_minutes,
                  short_break_minutes=excluded.short_break_minutes,
                  long_break_minutes=excluded.long_break_minutes,
                  sessions_before_long_break=excluded.sessions_before_long_break,
                  preferred_study_start_time=excluded.preferred_study_start_time
                """,
                (
                    telegram_user_id,
                    s.study_hours_per_day,
                    s.focus_duration_minutes,
                    s.short_break_minutes,
                    s.long_break_minutes,
                    s.sessions_before_long_break,
                    s.preferred_study_start_time,
                ),
            )

    # tasks

    def get_or_create_category(self, telegram_user_id: int, name: str) -> Category:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM categories WHERE telegram_user_id=? AND name=?",
                (telegram_user_id, name),
            ).fetchone()
            if row is not None:
                return Category(id=int(row["id"]), name=str(row["name"]), color=str(row["color"]))
            (count,) = conn.execute(
                "SELECT COUNT(*) FROM categories WHERE telegram_user_id=?", (telegram_user_id,)
            ).fetchone()
            color = _CATEGORY_COLORS[int(count) % len(_CATEGORY_COLORS)]
            cur = conn.execute(
                "INSERT INTO categories(telegram_user_id, name, color) VALUES(?, ?, ?)",
                (telegram_user_id, name, color),
            )
            return Category(id=int(cur.lastrowid), name=name, color=color)

    def add_task(
        self,
        telegram_user_id: int,
        title: str,
        priority: Priority,
        due_date: Optional[datetime],
        created_at: datetime,
        category_id: Optional[int] = None,
    ) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """
                INSERT INTO tasks(telegram_user_id, category_id, title, priority, due_date, created_at)
                VALUES(?, ?, ?, ?, ?, ?)
                """,
                (
                    telegram_user_id,
                    category_id,
                    title,
                    str(priority),
                    _to_iso_dt(due_date),
                    _to_iso_dt(created_at),
                ),
            )
            return int(cur.lastrowid)

    def list_tasks(self, telegram_user_id: int) -> list[Task]:
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT t.*, c.name AS category_name, c.color AS category_color
                FROM tasks t LEFT JOIN categories c ON c.id = t.category_id
                WHERE t.telegram_user_id=?
                ORDER BY t.id ASC
                """,
                (telegram_user_id,),
            ).fetchall()
        return [self._row_to_task(r) for r in rows]

    def set_task_completed(
        self, telegram_user_id: int, task_id: int, done: bool, at: datetime
    ) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                """
                UPDATE tasks SET is_completed=?, completed_at=?
                WHERE telegram_user_id=? AND id=?
                """,
                (int(done), _to_iso_dt(at) if done else None, telegram_user_id, task_id),
            )
            return cur.rowcount > 0

    # roadmaps

    def create_roadmap(
        self,
        telegram_user_id: int,
        title: str,
        now: datetime,
        description: Optional[str] = None,
        duration_weeks: int = 4,
    ) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """
                INSERT INTO roadmaps(telegram_user_id, title, description, duration_weeks, created_at, updated_at)
                VALUES(?, ?, ?, ?, ?, ?)
                """,
                (telegram_user_id, title, description, duration_weeks, _to_iso_dt(now), _to_iso_dt(now)),
            )
            return int(cur.lastrowid)

    def get_active_roadmap(self, telegram_user_id: int) -> Optional[Roadmap]:
        """Most recently updated roadmap with its milestones and steps joined in."""
        with self._conn() as conn:
            rm = conn.execute(
                """
                SELECT * FROM roadmaps WHERE telegram_user_id=?
                ORDER BY updated_at DESC, id DESC LIMIT 1
                """,
                (telegram_user_id,),
            ).fetchone()
            if rm is None:
                return None
            ms = conn.execute(
                "SELECT * FROM milestones WHERE roadmap_id=? ORDER BY position ASC, id ASC",
                (rm["id"],),
            ).fetchall()
            steps = conn.execute(
                """
                SELECT s.* FROM steps s JOIN milestones m ON m.id = s.milestone_id
                WHERE m.roadmap_id=? ORDER BY s.position ASC, s.id ASC
                """,
                (rm["id"],),
            ).fetchall()

        by_milestone: dict[int, list[Step]] = {}
        for s in steps:
            by_milestone.setdefault(int(s["milestone_id"]), []).append(self._row_to_step(s))
        milestones = tuple(
            Milestone(
                id=int(m["id"]),
                title=str(m["title"]),
                position=int(m["position"]),
                steps=tuple(by_milestone.get(int(m["id"]), [])),
                color=str(m["color"]),
                description=m["description"],
            )
            for m in ms
        )
        return Roadmap(
            id=int(rm["id"]),
            title=str(rm["title"]),
            milestones=milestones,
            description=rm["description"],
            duration_weeks=int(rm["duration_weeks"]),
        )

    def add_milestone(
        self, roadmap_id: int, title: str, now: datetime, color: str = "#6366f1"
    ) -> int:
        with self._conn() as conn:
            (pos,) = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM milestones WHERE roadmap_id=?",
                (roadmap_id,),
            ).fetchone()
            cur = conn.execute(
                "INSERT INTO milestones(roadmap_id, title, position, color) VALUES(?, ?, ?, ?)",
                (roadmap_id, title, int(pos), color),
            )
            self._touch_roadmap(conn, roadmap_id, now)
            return int(cur.lastrowid)

    def add_step(
        self,
        telegram_user_id: int,
        milestone_id: int,
        title: str,
        difficulty: Difficulty,
        now: datetime,
        resource_url: Optional[str] = None,
    ) -> Optional[int]:
        with self._conn() as conn:
            roadmap_id = self._owned_roadmap_for_milestone(conn, telegram_user_id, milestone_id)
            if roadmap_id is None:
                return None
            (pos,) = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM steps WHERE milestone_id=?",
                (milestone_id,),
            ).fetchone()
            cur = conn.execute(
                """
                INSERT INTO steps(milestone_id, title, difficulty, resource_url, position)
                VALUES(?, ?, ?, ?, ?)
                """,
                (milestone_id, title, str(difficulty), resource_url, int(pos)),
            )
            self._touch_roadmap(conn, roadmap_id, now)
            return int(cur.lastrowid)

    def set_step_completed(
        self, telegram_user_id: int, step_id: int, done: bool, now: datetime
    ) -> bool:
        with self._conn() as conn:
            row = conn.execute("SELECT milestone_id FROM steps WHERE id=?", (step_id,)).fetchone()
            if row is None:
                return False
            roadmap_id = self._owned_roadmap_for_milestone(
                conn, telegram_user_id, int(row["milestone_id"])
            )
            if roadmap_id is None:
                return False
            conn.execute(
                "UPDATE steps SET is_completed=?, completed_at=? WHERE id=?",
                (int(done), _to_iso_dt(now) if done else None, step_id),
            )
            self._touch_roadmap(conn, roadmap_id, now)
            return True

    @staticmethod
    def _owned_roadmap_for_milestone(
        conn: sqlite3.Connection, telegram_user_id: int, milestone_id: int
    ) -> Optional[int]:
        row = conn.execute(
            """
            SELECT r.id FROM milestones m JOIN roadmaps r ON r.id = m.roadmap_id
            WHERE m.id=? AND r.telegram_user_id=?
            """,
            (milestone_id, telegram_user_id),
        ).fetchone()
        return int(row["id"]) if row is not None else None

    @staticmethod
    def _touch_roadmap(conn: sqlite3.Connection, roadmap_id: int, now: datetime) -> None:
        conn.execute(
            "UPDATE roadmaps SET updated_at=? WHERE id=?", (_to_iso_dt(now), roadmap_id)
        )

    # focus sessions

    def add_focus_session(
        self,
        telegram_user_id: int,
        task_id: Optional[int],
        duration_minutes: int,
        session_type: SessionType,
        started_at: datetime,
        completed_at: Optional[datetime] = None,
    ) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """
                INSERT INTO focus_sessions(
                  telegram_user_id, task_id, duration_minutes, session_type,
                  started_at, completed_at, is_completed
                )
                VALUES(?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    telegram_user_id,
                    task_id,
                    int(duration_minutes),
                    str(session_type),
                    _to_iso_dt(started_at),
                    _to_iso_dt(completed_at),
                    int(completed_at is not None),
                ),
            )
            return int(cur.lastrowid)

    def list_focus_sessions(self, telegram_user_id: int) -> list[FocusSession]:
        with self._conn() as conn:
            rows = conn.execute(
                "SELECT * FROM focus_sessions WHERE telegram_user_id=? ORDER BY id ASC",
                (telegram_user_id,),
            ).fetchall()
        return [
            FocusSession(
                id=int(r["id"]),
                task_id=int(r["task_id"]) if r["task_id"] is not None else None,
                duration_minutes=int(r["duration_minutes"]),
                session_type=SessionType(str(r["session_type"])),
                started_at=_from_iso_dt(str(r["started_at"])),
                completed_at=_from_iso_dt(r["completed_at"]),
                is_completed=bool(r["is_completed"]),
            )
            for r in rows
        ]

    def get_step(self, telegram_user_id: int, step_id: int) -> Optional[Step]:
        with self._conn() as conn:
            row = conn.execute(
                """
                SELECT s.* FROM steps s
                JOIN milestones m ON m.id = s.milestone_id
                JOIN roadmaps r ON r.id = m.roadmap_id
                WHERE s.id=? AND r.telegram_user_id=?
                """,
                (step_id, telegram_user_id),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_step(row)

    # weekly planner

    def add_study_session(
        self,
        telegram_user_id: int,
        scheduled_date: date,
        start_time: str,
        duration_minutes: int,
        title: str,
        task_id: Optional[int] = None,
        step_id: Optional[int] = None,
    ) -> int:
        with self._conn() as conn:
            cur = conn.execute(
                """
                INSERT INTO study_sessions(
                  telegram_user_id, task_id, step_id, title,
                  scheduled_date, start_time, duration_minutes
                )
                VALUES(?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    telegram_user_id,
                    task_id,
                    step_id,
                    title,
                    scheduled_date.isoformat(),
                    start_time,
                    int(duration_minutes),
                ),
            )
            return int(cur.lastrowid)

    def list_study_sessions(
        self, telegram_user_id: int, start: date, end: date
    ) -> list[StudySession]:
        """Sessions with start <= scheduled_date <= end."""
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT * FROM study_sessions
                WHERE telegram_user_id=? AND scheduled_date BETWEEN ? AND ?
                ORDER BY scheduled_date ASC, id ASC
                """,
                (telegram_user_id, start.isoformat(), end.isoformat()),
            ).fetchall()
        return [
            StudySession(
                id=int(r["id"]),
                scheduled_date=date.fromisoformat(str(r["scheduled_date"])),
                start_time=str(r["start_time"]),
                duration_minutes=int(r["duration_minutes"]),
                title=str(r["title"]),
                is_completed=bool(r["is_completed"]),
                task_id=int(r["task_id"]) if r["task_id"] is not None else None,
                step_id=int(r["step_id"]) if r["step_id"] is not None else None,
            )
            for r in rows
        ]

    def set_study_session_completed(
        self, telegram_user_id: int, session_id: int, done: bool
    ) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                "UPDATE study_sessions SET is_completed=? WHERE telegram_user_id=? AND id=?",
                (int(done), telegram_user_id, session_id),
            )
            return cur.rowcount > 0

    def delete_study_session(self, telegram_user_id: int, session_id: int) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                "DELETE FROM study_sessions WHERE telegram_user_id=? AND id=?",
                (telegram_user_id, session_id),
            )
            return cur.rowcount > 0

    # subtasks

    def add_subtask(self, telegram_user_id: int, task_id: int, title: str) -> Optional[int]:
        with self._conn() as conn:
            owned = conn.execute(
                "SELECT 1 FROM tasks WHERE id=? AND telegram_user_id=?",
                (task_id, telegram_user_id),
            ).fetchone()
            if owned is None:
                return None
            (pos,) = conn.execute(
                "SELECT COALESCE(MAX(position), -1) + 1 FROM subtasks WHERE task_id=?",
                (task_id,),
            ).fetchone()
            cur = conn.execute(
                "INSERT INTO subtasks(task_id, title, position) VALUES(?, ?, ?)",
                (task_id, title, int(pos)),
            )
            return int(cur.lastrowid)

    def list_subtasks(self, telegram_user_id: int, task_id: int) -> list[Subtask]:
        with self._conn() as conn:
            rows = conn.execute(
                """
                SELECT s.* FROM subtasks s JOIN tasks t ON t.id = s.task_id
                WHERE s.task_id=? AND t.telegram_user_id=?
                ORDER BY s.position ASC, s.id ASC
                """,
                (task_id, telegram_user_id),
            ).fetchall()
        return [
            Subtask(
                id=int(r["id"]),
                task_id=int(r["task_id"]),
                title=str(r["title"]),
                is_completed=bool(r["is_completed"]),
                position=int(r["position"]),
            )
            for r in rows
        ]

    def set_subtask_completed(self, telegram_user_id: int, subtask_id: int, done: bool) -> bool:
        with self._conn() as conn:
            cur = conn.execute(
                """
                UPDATE subtasks SET is_completed=?
                WHERE id=? AND task_id IN (SELECT id FROM tasks WHERE telegram_user_id=?)
                """,
                (int(done), subtask_id, telegram_user_id),
            )
            return cur.rowcount > 0

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        category = None
        if row["category_id"] is not None:
            category = Category(
                id=int(row["category_id"]),
                name=str(row["category_name"]),
                color=str(row["category_color"]),
            )
        return Task(
            id=int(row["id"]),
            title=str(row["title"]),
            priority=Priority(str(row["priority"])),
            due_date=_from_iso_dt(row["due_date"]),
            is_completed=bool(row["is_completed"]),
            category=category,
            completed_at=_from_iso_dt(row["completed_at"]),
            created_at=_from_iso_dt(row["created_at"]),
        )

    @staticmethod
    def _row_to_step(row: sqlite3.Row) -> Step:
        return Step(
            id=int(row["id"]),
            title=str(row["title"]),
            difficulty=Difficulty(str(row["difficulty"])),
            is_completed=bool(row["is_completed"]),
            position=int(row["position"]),
            resource_url=row["resource_url"],
        )
