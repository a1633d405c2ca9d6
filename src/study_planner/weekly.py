from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Sequence

from .models import StudySession, Subtask
from .planner import parse_clock
from .roadmap import percent

# eight hours of booked study in one day earns a warning
MAX_DAILY_MINUTES = 480


@dataclass(frozen=True)
class DayLoad:
    day: date
    sessions: tuple[StudySession, ...]
    minutes: int

    @property
    def overloaded(self) -> bool:
        return self.minutes > MAX_DAILY_MINUTES


def week_start(day: date) -> date:
    """Monday of the week containing day."""
    return day - timedelta(days=day.weekday())


def week_days(start: date) -> list[date]:
    return [start + timedelta(days=i) for i in range(7)]


def sessions_by_day(sessions: Sequence[StudySession]) -> dict[date, list[StudySession]]:
    out: dict[date, list[StudySession]] = {}
    for s in sessions:
        out.setdefault(s.scheduled_date, []).append(s)
    for day_sessions in out.values():
        # stable: equal start times keep booking order
        day_sessions.sort(key=lambda s: parse_clock(s.start_time))
    return out


def daily_load(sessions: Sequence[StudySession]) -> dict[date, int]:
    out: dict[date, int] = {}
    for s in sessions:
        out[s.scheduled_date] = out.get(s.scheduled_date, 0) + max(0, s.duration_minutes)
    return out


def week_overview(sessions: Sequence[StudySession], start: date) -> list[DayLoad]:
    """Seven days from start, each with its sessions in time order and booked minutes."""
    grouped = sessions_by_day(sessions)
    load = daily_load(sessions)
    return [
        DayLoad(day=d, sessions=tuple(grouped.get(d, [])), minutes=load.get(d, 0))
        for d in week_days(start)
    ]


def ordered_subtasks(subtasks: Sequence[Subtask]) -> list[Subtask]:
    return sorted(subtasks, key=lambda s: s.position)


def subtask_progress(subtasks: Sequence[Subtask]) -> tuple[int, int, int]:
    """(completed, total, percent)."""
    done = sum(1 for s in subtasks if s.is_completed)
    return (done, len(subtasks), percent(done, len(subtasks)))
