from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import StrEnum
from typing import Optional


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Difficulty(StrEnum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class SessionType(StrEnum):
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


@dataclass(frozen=True)
class User:
    telegram_user_id: int
    timezone: str  # IANA TZ, e.g. "Europe/Berlin"


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    color: str  # hex, e.g. "#6366f1"


@dataclass(frozen=True)
class Task:
    id: int
    title: str
    priority: Priority = Priority.MEDIUM
    due_date: Optional[datetime] = None
    is_completed: bool = False
    category: Optional[Category] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


@dataclass(frozen=True)
class StudySettings:
    study_hours_per_day: int = 4
    focus_duration_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    sessions_before_long_break: int = 4
    preferred_study_start_time: str = "09:00"  # HH:mm

    @property
    def daily_goal_minutes(self) -> int:
        return self.study_hours_per_day * 60


@dataclass(frozen=True)
class StudyBlock:
    task_id: int
    task_title: str
    priority: Priority
    duration_minutes: int
    start_time: str  # HH:mm, not wrapped past 24:00
    category_name: Optional[str] = None
    category_color: Optional[str] = None


@dataclass(frozen=True)
class Step:
    id: int
    title: str
    difficulty: Difficulty = Difficulty.BEGINNER
    is_completed: bool = False
    position: int = 0
    resource_url: Optional[str] = None


@dataclass(frozen=True)
class Milestone:
    id: int
    title: str
    position: int = 0
    steps: tuple[Step, ...] = ()
    color: str = "#6366f1"
    description: Optional[str] = None


@dataclass(frozen=True)
class Roadmap:
    id: int
    title: str
    milestones: tuple[Milestone, ...] = ()
    description: Optional[str] = None
    duration_weeks: int = 4


@dataclass(frozen=True)
class RoadmapStats:
    total_steps: int
    completed_steps: int
    progress_percent: int
    next_milestone: Optional[Milestone]


@dataclass(frozen=True)
class MilestoneProgress:
    milestone: Milestone
    total_steps: int
    completed_steps: int
    progress_percent: int

    @property
    def remaining_steps(self) -> int:
        return self.total_steps - self.completed_steps


@dataclass(frozen=True)
class FocusSession:
    id: int
    task_id: Optional[int]
    duration_minutes: int
    session_type: SessionType
    started_at: datetime
    completed_at: Optional[datetime] = None
    is_completed: bool = False


@dataclass(frozen=True)
class Subtask:
    id: int
    task_id: int
    title: str
    is_completed: bool = False
    position: int = 0


@dataclass(frozen=True)
class StudySession:
    """A study slot booked on the weekly planner."""

    id: int
    scheduled_date: date
    start_time: str  # HH:mm
    duration_minutes: int
    title: str = ""
    is_completed: bool = False
    task_id: Optional[int] = None
    step_id: Optional[int] = None
