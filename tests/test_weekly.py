from __future__ import annotations

from datetime import date, datetime

from study_planner.bot import format_week
from study_planner.models import Difficulty, Priority, StudySession, Subtask
from study_planner.parsing import parse_session_line
from study_planner.storage import Storage
from study_planner.weekly import (
    MAX_DAILY_MINUTES,
    daily_load,
    ordered_subtasks,
    sessions_by_day,
    subtask_progress,
    week_overview,
    week_start,
)

TODAY = date(2026, 10, 18)  # a Sunday
NOW = datetime(2026, 10, 18, 9, 30)


def _s(id: int, day: date, start: str, minutes: int = 60) -> StudySession:
    return StudySession(id=id, scheduled_date=day, start_time=start, duration_minutes=minutes, title=f"s{id}")


def test_week_starts_on_monday() -> None:
    assert week_start(TODAY) == date(2026, 10, 12)
    assert week_start(date(2026, 10, 12)) == date(2026, 10, 12)
    assert week_start(date(2026, 10, 13)) == date(2026, 10, 12)


def test_sessions_by_day_in_time_order() -> None:
    mon, tue = date(2026, 10, 19), date(2026, 10, 20)
    grouped = sessions_by_day([_s(1, mon, "14:00"), _s(2, tue, "08:00"), _s(3, mon, "9:30"), _s(4, mon, "14:00")])
    assert [s.id for s in grouped[mon]] == [3, 1, 4]
    assert [s.id for s in grouped[tue]] == [2]


def test_daily_load_and_overload_threshold() -> None:
    mon, tue = date(2026, 10, 19), date(2026, 10, 20)
    sessions = [_s(1, mon, "08:00", 240), _s(2, mon, "13:00", 240), _s(3, tue, "08:00", 481)]
    assert daily_load(sessions) == {mon: 480, tue: 481}

    days = week_overview(sessions, mon)
    assert len(days) == 7
    assert [d.day for d in days][:2] == [mon, tue]
    # exactly eight hours is still fine
    assert days[0].minutes == MAX_DAILY_MINUTES and not days[0].overloaded
    assert days[1].overloaded
    assert days[2].sessions == () and days[2].minutes == 0


def test_week_overview_ignores_sessions_outside_the_week() -> None:
    mon = date(2026, 10, 19)
    days = week_overview([_s(1, date(2026, 10, 26), "09:00")], mon)
    assert sum(d.minutes for d in days) == 0


def test_format_week_flags_overloaded_days() -> None:
    mon = date(2026, 10, 19)
    text = format_week(week_overview([_s(7, mon, "08:00", 500)], mon))
    assert text.startswith("Week of 2026-10-19:")
    assert "500 min (overloaded!)" in text
    assert "7. 08:00 s7 (500 min)" in text


def test_subtasks_ordering_and_progress() -> None:
    subs = [
        Subtask(id=1, task_id=1, title="outline", is_completed=True, position=2),
        Subtask(id=2, task_id=1, title="sources", position=0),
        Subtask(id=3, task_id=1, title="draft", is_completed=True, position=1),
    ]
    assert [s.id for s in ordered_subtasks(subs)] == [2, 3, 1]
    assert subtask_progress(subs) == (2, 3, 67)
    assert subtask_progress([]) == (0, 0, 0)


def test_parse_session_line() -> None:
    p = parse_session_line("2026-10-20 14:00 45m Calculus review", TODAY)
    assert p is not None
    assert (p.scheduled_date, p.start_time, p.duration_minutes, p.title) == (
        date(2026, 10, 20),
        "14:00",
        45,
        "Calculus review",
    )

    p = parse_session_line("tomorrow 9:30 1h 30m Essay outline", TODAY)
    assert p is not None
    assert (p.scheduled_date, p.start_time, p.duration_minutes, p.title) == (
        date(2026, 10, 19),
        "09:30",
        90,
        "Essay outline",
    )

    p = parse_session_line("today 18:00 Flashcards", TODAY)
    assert p is not None and p.duration_minutes == 60 and p.scheduled_date == TODAY


def test_parse_session_line_rejects_bad_input() -> None:
    assert parse_session_line("", TODAY) is None
    assert parse_session_line("Flashcards", TODAY) is None
    assert parse_session_line("today 18:00 45m", TODAY) is None
    assert parse_session_line("today 25:00 Flashcards", TODAY) is None
    assert parse_session_line("2026-02-30 10:00 Flashcards", TODAY) is None


def test_storage_study_sessions(tmp_path) -> None:
    st = Storage(tmp_path / "db.sqlite3")
    mon = date(2026, 10, 19)
    a = st.add_study_session(1, mon, "14:00", 45, "Calculus")
    b = st.add_study_session(1, date(2026, 10, 25), "09:00", 60, "Essay")
    st.add_study_session(1, date(2026, 10, 26), "09:00", 60, "next week")
    st.add_study_session(2, mon, "10:00", 30, "someone else")

    week = st.list_study_sessions(1, mon, date(2026, 10, 25))
    assert [s.id for s in week] == [a, b]
    assert week[0] == StudySession(id=a, scheduled_date=mon, start_time="14:00", duration_minutes=45, title="Calculus")

    assert st.set_study_session_completed(1, a, True)
    assert not st.set_study_session_completed(2, a, True)
    assert st.list_study_sessions(1, mon, mon)[0].is_completed

    assert not st.delete_study_session(2, b)
    assert st.delete_study_session(1, b)
    assert [s.id for s in st.list_study_sessions(1, mon, date(2026, 10, 25))] == [a]


def test_storage_subtasks(tmp_path) -> None:
    st = Storage(tmp_path / "db.sqlite3")
    task = st.add_task(1, "Essay", Priority.HIGH, None, NOW)
    assert st.add_subtask(2, task, "not yours") is None

    first = st.add_subtask(1, task, "Find sources")
    second = st.add_subtask(1, task, "Outline")
    assert first is not None and second is not None
    subs = st.list_subtasks(1, task)
    assert [(s.id, s.position) for s in subs] == [(first, 0), (second, 1)]
    assert st.list_subtasks(2, task) == []

    assert not st.set_subtask_completed(2, second, True)
    assert st.set_subtask_completed(1, second, True)
    assert subtask_progress(st.list_subtasks(1, task)) == (1, 2, 50)
    assert st.set_subtask_completed(1, second, False)
    assert subtask_progress(st.list_subtasks(1, task)) == (0, 2, 0)


def test_storage_get_step_checks_ownership(tmp_path) -> None:
    st = Storage(tmp_path / "db.sqlite3")
    rid = st.create_roadmap(1, "Learn Python", NOW)
    m = st.add_milestone(rid, "Basics", NOW)
    step_id = st.add_step(1, m, "Syntax", Difficulty.BEGINNER, NOW)
    assert step_id is not None

    step = st.get_step(1, step_id)
    assert step is not None and step.title == "Syntax"
    assert st.get_step(2, step_id) is None
    assert st.get_step(1, 9999) is None
