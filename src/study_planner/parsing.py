from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from .models import Difficulty, Priority
from .planner import format_clock, parse_clock


@dataclass(frozen=True)
class ParsedTaskInput:
    title: str
    priority: Priority
    due_date: Optional[datetime]
    category_name: Optional[str]


_RE_PRIORITY = re.compile(r"(?i)(?:^|\s)!(high|medium|low)\b")
_RE_DUE = re.compile(r"(?:^|\s)@(\d{4}-\d{2}-\d{2})(?:[T ](\d{1,2}):(\d{2}))?(?=\s|$)")
_RE_CATEGORY = re.compile(r"(?:^|\s)#(\w+)")


def parse_task_line(line: str) -> Optional[ParsedTaskInput]:
    """
    Accepts lines like:
    - "Read chapter 3 !high @2026-10-20 #Math"
    - "Lab report @2026-10-21T17:00"
    - "Flashcards"
    Priority defaults to medium; no @date means no deadline.
    """
    raw = line.strip()
    if not raw:
        return None

    priority = Priority.MEDIUM
    pm = _RE_PRIORITY.search(raw)
    if pm:
        priority = Priority(pm.group(1).lower())
        raw = _RE_PRIORITY.sub(" ", raw)

    due: Optional[datetime] = None
    dm = _RE_DUE.search(raw)
    if dm:
        try:
            due = datetime.fromisoformat(dm.group(1))
            if dm.group(2) is not None:
                hh, mm = int(dm.group(2)), int(dm.group(3))
                if 0 <= hh <= 23 and 0 <= mm <= 59:
                    due = due.replace(hour=hh, minute=mm)
        except ValueError:
            due = None
        raw = _RE_DUE.sub(" ", raw)

    category: Optional[str] = None
    cm = _RE_CATEGORY.search(raw)
    if cm:
        category = cm.group(1)
        raw = _RE_CATEGORY.sub(" ", raw)

    title = re.sub(r"\s+", " ", raw).strip(" -\t")
    if not title:
        return None

    return ParsedTaskInput(title=title, priority=priority, due_date=due, category_name=category)


def parse_difficulty(text: str) -> Difficulty:
    """Prefix match: "adv" -> advanced. Beginner when unknown."""
    word = (text or "").strip().lower()
    if word:
        for d in Difficulty:
            if d.value.startswith(word):
                return d
    return Difficulty.BEGINNER


@dataclass(frozen=True)
class ParsedSessionInput:
    scheduled_date: date
    start_time: str  # HH:mm
    duration_minutes: int
    title: str


_RE_MINUTES = re.compile(r"(?i)(?:^|\s)(\d+)\s*(m|min)\b")
_RE_HOURS = re.compile(r"(?i)(?:^|\s)(\d+)\s*(h|hr)\b")
_RE_SESSION_HEAD = re.compile(r"(?i)^\s*(today|tomorrow|\d{4}-\d{2}-\d{2})\s+(\d{1,2}:\d{2})\b")


def parse_session_line(line: str, today: date) -> Optional[ParsedSessionInput]:
    """
    Accepts lines like:
    - "2026-10-20 14:00 45m Calculus review"
    - "tomorrow 9:30 1h 30m Essay outline"
    - "today 18:00 Flashcards"
    If no duration is present, defaults to 60 minutes.
    """
    head = _RE_SESSION_HEAD.match(line or "")
    if not head:
        return None

    word = head.group(1).lower()
    try:
        if word == "today":
            day = today
        elif word == "tomorrow":
            day = today + timedelta(days=1)
        else:
            day = date.fromisoformat(word)
        start = format_clock(parse_clock(head.group(2)))
    except ValueError:
        return None

    raw = line[head.end():]
    minutes = 0
    for m in _RE_MINUTES.finditer(raw):
        minutes += int(m.group(1))
    for h in _RE_HOURS.finditer(raw):
        minutes += int(h.group(1)) * 60

    title = _RE_MINUTES.sub(" ", raw)
    title = _RE_HOURS.sub(" ", title)
    title = re.sub(r"\s+", " ", title).strip(" -\t")

    if not title:
        return None
    if minutes <= 0:
        minutes = 60

    return ParsedSessionInput(scheduled_date=day, start_time=start, duration_minutes=minutes, title=title)
