from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Optional, Sequence

from .models import Priority, StudyBlock, StudySettings, Task

log = logging.getLogger(__name__)

_RE_CLOCK = re.compile(r"^\s*(\d{1,2}):(\d{2})(?::(\d{2}))?\s*$")

_URGENCY = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


def parse_clock(text: str) -> int:
    """Minutes since midnight for "HH:mm" or "HH:mm:ss"."""
    m = _RE_CLOCK.match(text or "")
    if not m:
        raise ValueError(f"Invalid clock time: {text!r}")
    hh, mm = int(m.group(1)), int(m.group(2))
    if hh > 23 or mm > 59:
        raise ValueError(f"Invalid clock time: {text!r}")
    return hh * 60 + mm


def format_clock(minutes: int) -> str:
    # no day rollover: 25:10 stays 25:10
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def block_end_time(block: StudyBlock) -> str:
    h, m = block.start_time.split(":")
    return format_clock(int(h) * 60 + int(m) + block.duration_minutes)


def urgency_rank(p: Priority) -> int:
    return _URGENCY[p]


def _comparable_due(due: datetime) -> datetime:
    # aware values compare as naive UTC so naive and aware dates sort together
    if due.tzinfo is not None and due.utcoffset() is not None:
        return due.astimezone(timezone.utc).replace(tzinfo=None)
    return due.replace(tzinfo=None)


def task_sort_key(t: Task) -> tuple[int, int, datetime]:
    # tasks without a due date go after every dated task of the same priority
    if t.due_date is None:
        return (urgency_rank(t.priority), 1, datetime.min)
    return (urgency_rank(t.priority), 0, _comparable_due(t.due_date))


def eligible_tasks(tasks: Sequence[Task]) -> list[Task]:
    return [t for t in tasks if not t.is_completed]


def select_focus_task(tasks: Sequence[Task]) -> Optional[Task]:
    """The task the allocator would place first, or None."""
    eligible = eligible_tasks(tasks)
    if not eligible:
        return None
    # min() keeps the first of equal keys, same as the stable sort in allocate()
    return min(eligible, key=task_sort_key)


def allocate(tasks: Sequence[Task], settings: StudySettings) -> list[StudyBlock]:
    """
    Greedy daily study plan:
    - Sort incomplete tasks by (priority, due date, no due date last), stable
    - One focus block per task starting at the preferred start time
    - Short break after each block, long break every N-th block
    - Stop as soon as the next block would exceed the daily study budget
    """
    focus = max(1, int(settings.focus_duration_minutes))
    short_break = max(1, int(settings.short_break_minutes))
    long_break = max(1, int(settings.long_break_minutes))
    cadence = int(settings.sessions_before_long_break)
    budget = settings.study_hours_per_day * 60

    ordered = sorted(eligible_tasks(tasks), key=task_sort_key)

    cursor = parse_clock(settings.preferred_study_start_time)
    used = 0
    placed = 0
    blocks: list[StudyBlock] = []
    for t in ordered:
        if used + focus > budget:
            break
        blocks.append(
            StudyBlock(
                task_id=t.id,
                task_title=t.title,
                priority=t.priority,
                duration_minutes=focus,
                start_time=format_clock(cursor),
                category_name=t.category.name if t.category else None,
                category_color=t.category.color if t.category else None,
            )
        )
        used += focus
        placed += 1
        # cadence <= 0: never a long break
        if cadence > 0 and placed % cadence == 0:
            pause = long_break
        else:
            pause = short_break
        cursor += focus + pause

    log.debug(
        "allocated %d blocks (%d min), %d tasks left out",
        len(blocks),
        used,
        len(ordered) - len(blocks),
    )
    return blocks
