from __future__ import annotations

from datetime import date, datetime, timedelta

from study_planner.focus import next_session, session_duration, sessions_until_long_break
from study_planner.models import Category, FocusSession, Priority, SessionType, StudySettings, Task
from study_planner.stats import (
    days_left_label,
    focus_streak,
    progress_by_category,
    progress_by_priority,
    task_overview,
    total_focus_minutes,
    upcoming_deadlines,
)

NOW = datetime(2026, 10, 18, 12, 0)


def test_pomodoro_cycle() -> None:
    s = StudySettings(sessions_before_long_break=2)
    nxt, n = next_session(SessionType.FOCUS, 0, s)
    assert (nxt, n) == (SessionType.SHORT_BREAK, 1)
    nxt, n = next_session(nxt, n, s)
    assert (nxt, n) == (SessionType.FOCUS, 1)
    nxt, n = next_session(nxt, n, s)
    assert (nxt, n) == (SessionType.LONG_BREAK, 2)
    assert session_duration(nxt, s) == 15


def test_pomodoro_zero_cadence_never_long_break() -> None:
    s = StudySettings(sessions_before_long_break=0)
    for done in range(6):
        assert next_session(SessionType.FOCUS, done, s)[0] is SessionType.SHORT_BREAK
    assert sessions_until_long_break(3, s) == 0


def test_sessions_until_long_break() -> None:
    s = StudySettings()
    assert sessions_until_long_break(0, s) == 4
    assert sessions_until_long_break(3, s) == 1
    assert sessions_until_long_break(4, s) == 4


def test_daily_goal() -> None:
    assert StudySettings().daily_goal_minutes == 240


def test_task_overview() -> None:
    tasks = [
        Task(id=1, title="today open", due_date=NOW.replace(hour=18)),
        Task(id=2, title="today done", due_date=NOW.replace(hour=8), is_completed=True),
        Task(id=3, title="overdue", due_date=NOW - timedelta(days=2)),
        Task(id=4, title="old done", due_date=NOW - timedelta(days=2), is_completed=True),
        Task(id=5, title="no due"),
    ]
    o = task_overview(tasks, NOW)
    assert (o.pending_today, o.completed_today, o.overdue) == (1, 1, 1)
    assert (o.total_completed, o.total, o.completion_rate) == (2, 5, 40)


def test_upcoming_deadlines_soonest_first_and_limited() -> None:
    tasks = [
        Task(id=i, title=f"t{i}", due_date=NOW + timedelta(days=10 - i)) for i in range(8)
    ]
    tasks.append(Task(id=100, title="earlier today", due_date=NOW.replace(hour=7)))
    tasks.append(Task(id=101, title="past", due_date=NOW - timedelta(days=1)))
    tasks.append(Task(id=102, title="done", due_date=NOW, is_completed=True))
    out = upcoming_deadlines(tasks, NOW)
    assert [t.id for t in out] == [100, 7, 6, 5, 4]


def test_days_left_label() -> None:
    assert days_left_label(NOW + timedelta(hours=3), NOW) == "Today"
    assert days_left_label(NOW + timedelta(days=1, hours=1), NOW) == "Tomorrow"
    assert days_left_label(NOW + timedelta(days=4), NOW) == "4 days left"


def test_progress_by_priority_and_category() -> None:
    math = Category(id=1, name="Math", color="#22c55e")
    art = Category(id=2, name="Art", color="#ef4444")
    tasks = [
        Task(id=1, title="a", priority=Priority.HIGH, is_completed=True, category=math),
        Task(id=2, title="b", priority=Priority.HIGH, category=art),
        Task(id=3, title="c", priority=Priority.LOW, category=math),
        Task(id=4, title="d", priority=Priority.LOW),
    ]
    pr = progress_by_priority(tasks)
    assert [(b.label, b.total, b.completed, b.percentage) for b in pr] == [
        ("high", 2, 1, 50),
        ("medium", 0, 0, 0),
        ("low", 2, 0, 0),
    ]
    cats = progress_by_category(tasks)
    assert [(b.label, b.total, b.percentage, b.color) for b in cats] == [
        ("Math", 2, 50, "#22c55e"),
        ("Art", 1, 0, "#ef4444"),
    ]


def _session(day: date, *, done: bool = True, kind: SessionType = SessionType.FOCUS) -> FocusSession:
    start = datetime.combine(day, datetime.min.time()).replace(hour=10)
    return FocusSession(
        id=0,
        task_id=None,
        duration_minutes=25,
        session_type=kind,
        started_at=start,
        completed_at=start + timedelta(minutes=25) if done else None,
        is_completed=done,
    )


def test_focus_minutes_count_completed_focus_only() -> None:
    today = NOW.date()
    sessions = [
        _session(today),
        _session(today),
        _session(today, done=False),
        _session(today, kind=SessionType.SHORT_BREAK),
    ]
    assert total_focus_minutes(sessions) == 50


def test_focus_streak() -> None:
    today = NOW.date()
    day = timedelta(days=1)
    assert focus_streak([], today) == 0
    assert focus_streak([_session(today), _session(today - day)], today) == 2
    # nothing yet today: the streak still counts up to yesterday
    assert focus_streak([_session(today - day), _session(today - 2 * day)], today) == 2
    # gap
    assert focus_streak([_session(today), _session(today - 2 * day)], today) == 1
    assert focus_streak([_session(today - 3 * day)], today) == 0


def test_session_duration_has_a_one_minute_floor() -> None:
    s = StudySettings(focus_duration_minutes=0, short_break_minutes=-3, long_break_minutes=0)
    assert session_duration(SessionType.FOCUS, s) == 1
    assert session_duration(SessionType.SHORT_BREAK, s) == 1
    assert session_duration(SessionType.LONG_BREAK, s) == 1
