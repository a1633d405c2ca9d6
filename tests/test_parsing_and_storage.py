from __future__ import annotations

from datetime import datetime

import pytest

from study_planner.bot import apply_setting, format_plan
from study_planner.models import Difficulty, Priority, SessionType, StudySettings, User
from study_planner.parsing import parse_difficulty, parse_task_line
from study_planner.planner import allocate
from study_planner.roadmap import aggregate
from study_planner.storage import Storage

NOW = datetime(2026, 10, 18, 9, 30)


def test_parse_task_line_full() -> None:
    p = parse_task_line("Read chapter 3 !high @2026-10-20 #Math")
    assert p is not None
    assert p.title == "Read chapter 3"
    assert p.priority == Priority.HIGH
    assert p.due_date == datetime(2026, 10, 20)
    assert p.category_name == "Math"


def test_parse_task_line_defaults_and_time() -> None:
    p = parse_task_line("Lab report @2026-10-21T17:00")
    assert p is not None
    assert p.priority == Priority.MEDIUM
    assert p.due_date == datetime(2026, 10, 21, 17, 0)
    assert p.category_name is None

    p = parse_task_line("Flashcards")
    assert p is not None and p.due_date is None


def test_parse_task_line_rejects_empty() -> None:
    assert parse_task_line("   ") is None
    assert parse_task_line("!low #Math") is None


def test_parse_difficulty() -> None:
    assert parse_difficulty("adv") == Difficulty.ADVANCED
    assert parse_difficulty("Intermediate") == Difficulty.INTERMEDIATE
    assert parse_difficulty("") == Difficulty.BEGINNER
    assert parse_difficulty("expert") == Difficulty.BEGINNER


def test_apply_setting() -> None:
    s = apply_setting(StudySettings(), "focus_duration_minutes", "50")
    assert s.focus_duration_minutes == 50
    s = apply_setting(s, "preferred_study_start_time", "7:30")
    assert s.preferred_study_start_time == "07:30"
    with pytest.raises(ValueError):
        apply_setting(s, "theme", "dark")
    with pytest.raises(ValueError):
        apply_setting(s, "sessions_before_long_break", "0")
    with pytest.raises(ValueError):
        apply_setting(s, "study_hours_per_day", "lots")


def test_storage_tasks_feed_the_planner(tmp_path) -> None:
    st = Storage(tmp_path / "db.sqlite3")
    st.upsert_user(User(telegram_user_id=1, timezone="Europe/Berlin"))
    assert st.get_user(1) == User(telegram_user_id=1, timezone="Europe/Berlin")
    assert st.get_settings(1) is None

    math = st.get_or_create_category(1, "Math")
    assert st.get_or_create_category(1, "Math") == math
    low = st.add_task(1, "Flashcards", Priority.LOW, None, NOW)
    high = st.add_task(1, "Exam prep", Priority.HIGH, datetime(2026, 10, 20), NOW, category_id=math.id)
    done = st.add_task(1, "Old", Priority.HIGH, None, NOW)
    assert st.set_task_completed(1, done, True, NOW)
    assert not st.set_task_completed(2, low, True, NOW)

    tasks = st.list_tasks(1)
    assert [t.id for t in tasks] == [low, high, done]
    assert tasks[1].category == math
    assert tasks[2].is_completed and tasks[2].completed_at == NOW

    st.save_settings(1, StudySettings(study_hours_per_day=1, preferred_study_start_time="08:00"))
    settings = st.get_settings(1)
    assert settings is not None
    blocks = allocate(tasks, settings)
    assert [(b.task_id, b.start_time) for b in blocks] == [(high, "08:00"), (low, "08:30")]
    assert "Exam prep [Math]" in format_plan(blocks)


def test_storage_roadmap_round_trip(tmp_path) -> None:
    st = Storage(tmp_path / "db.sqlite3")
    assert st.get_active_roadmap(1) is None

    rid = st.create_roadmap(1, "Learn Python", NOW)
    m1 = st.add_milestone(rid, "Basics", NOW)
    m2 = st.add_milestone(rid, "Web", NOW)
    s1 = st.add_step(1, m1, "Syntax", Difficulty.BEGINNER, NOW)
    st.add_step(1, m2, "Flask", Difficulty.INTERMEDIATE, NOW, resource_url="https://flask.palletsprojects.com")
    assert s1 is not None
    assert st.add_step(2, m1, "not yours", Difficulty.BEGINNER, NOW) is None

    assert st.set_step_completed(1, s1, True, NOW)
    assert not st.set_step_completed(2, s1, True, NOW)
    assert not st.set_step_completed(1, 9999, True, NOW)

    roadmap = st.get_active_roadmap(1)
    assert roadmap is not None and roadmap.id == rid
    assert [m.position for m in roadmap.milestones] == [0, 1]
    assert roadmap.milestones[1].steps[0].difficulty == Difficulty.INTERMEDIATE

    stats = aggregate(roadmap.milestones)
    assert (stats.total_steps, stats.completed_steps, stats.progress_percent) == (2, 1, 50)
    assert stats.next_milestone is not None and stats.next_milestone.id == m2


def test_storage_focus_sessions(tmp_path) -> None:
    st = Storage(tmp_path / "db.sqlite3")
    st.add_focus_session(1, None, 25, SessionType.FOCUS, NOW, NOW.replace(minute=55))
    st.add_focus_session(1, 3, 25, SessionType.FOCUS, NOW)
    sessions = st.list_focus_sessions(1)
    assert [s.is_completed for s in sessions] == [True, False]
    assert sessions[1].task_id == 3
    assert sessions[0].session_type is SessionType.FOCUS
