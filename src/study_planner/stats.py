from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Sequence

from .models import FocusSession, Priority, SessionType, Task
from .roadmap import percent


@dataclass(frozen=True)
class TaskOverview:
    pending_today: int
    completed_today: int
    overdue: int
    total_completed: int
    total: int
    completion_rate: int


@dataclass(frozen=True)
class Breakdown:
    label: str
    total: int
    completed: int
    percentage: int
    color: Optional[str] = None


def task_overview(tasks: Sequence[Task], now: datetime) -> TaskOverview:
    today = now.date()
    due_today = [t for t in tasks if t.due_date is not None and t.due_date.date() == today]
    overdue = [
        t
        for t in tasks
        if not t.is_completed and t.due_date is not None and t.due_date.date() < today
    ]
    done = sum(1 for t in tasks if t.is_completed)
    return TaskOverview(
        pending_today=sum(1 for t in due_today if not t.is_completed),
        completed_today=sum(1 for t in due_today if t.is_completed),
        overdue=len(overdue),
        total_completed=done,
        total=len(tasks),
        completion_rate=percent(done, len(tasks)),
    )


def upcoming_deadlines(tasks: Sequence[Task], now: datetime, limit: int = 5) -> list[Task]:
    """Incomplete tasks due today or later, soonest first."""
    today = now.date()
    upcoming = [
        t
        for t in tasks
        if not t.is_completed and t.due_date is not None and t.due_date.date() >= today
    ]
    upcoming.sort(key=lambda t: t.due_date)
    return upcoming[: max(0, limit)]


def days_left_label(due: datetime, now: datetime) -> str:
    # whole days, truncated toward zero
    days = int((due - now).total_seconds() / 86400)
    if days == 0:
        return "Today"
    if days == 1:
        return "Tomorrow"
    return f"{days} days left"


def progress_by_priority(tasks: Sequence[Task]) -> list[Breakdown]:
    out: list[Breakdown] = []
    for p in (Priority.HIGH, Priority.MEDIUM, Priority.LOW):
        group = [t for t in tasks if t.priority == p]
        done = sum(1 for t in group if t.is_completed)
        out.append(
            Breakdown(label=str(p), total=len(group), completed=done, percentage=percent(done, len(group)))
        )
    return out


def progress_by_category(tasks: Sequence[Task]) -> list[Breakdown]:
    groups: dict[int, list[Task]] = {}
    for t in tasks:
        if t.category is not None:
            groups.setdefault(t.category.id, []).append(t)

    out: list[Breakdown] = []
    for group in groups.values():
        cat = group[0].category
        assert cat is not None
        done = sum(1 for t in group if t.is_completed)
        out.append(
            Breakdown(
                label=cat.name,
                total=len(group),
                completed=done,
                percentage=percent(done, len(group)),
                color=cat.color,
            )
        )
    return out


def _completed_focus(sessions: Sequence[FocusSession]) -> list[FocusSession]:
    return [s for s in sessions if s.is_completed and s.session_type == SessionType.FOCUS]


def total_focus_minutes(sessions: Sequence[FocusSession]) -> int:
    return sum(s.duration_minutes for s in _completed_focus(sessions))


def focus_streak(sessions: Sequence[FocusSession], today: date) -> int:
    """
    Consecutive days with at least one completed focus session.
    The streak may end yesterday: a day without a session yet does not
    break it until the day is over.
    """
    days = {(s.completed_at or s.started_at).date() for s in _completed_focus(sessions)}
    if not days:
        return 0

    cur = today if today in days else today - timedelta(days=1)
    streak = 0
    while cur in days:
        streak += 1
        cur -= timedelta(days=1)
    return streak
