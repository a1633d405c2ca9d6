from __future__ import annotations

from .models import SessionType, StudySettings


def session_duration(session_type: SessionType, settings: StudySettings) -> int:
    minutes = {
        SessionType.FOCUS: settings.focus_duration_minutes,
        SessionType.SHORT_BREAK: settings.short_break_minutes,
        SessionType.LONG_BREAK: settings.long_break_minutes,
    }[session_type]
    # same floor as the allocator
    return max(1, int(minutes))


def next_session(
    current: SessionType, completed_focus: int, settings: StudySettings
) -> tuple[SessionType, int]:
    """
    Pomodoro cycle. Returns (next session type, completed focus count).
    A finished focus session bumps the count; every N-th one earns a long
    break. Any break is followed by focus.
    """
    if current is not SessionType.FOCUS:
        return (SessionType.FOCUS, completed_focus)
    count = completed_focus + 1
    cadence = settings.sessions_before_long_break
    if cadence > 0 and count % cadence == 0:
        return (SessionType.LONG_BREAK, count)
    return (SessionType.SHORT_BREAK, count)


def sessions_until_long_break(completed_focus: int, settings: StudySettings) -> int:
    cadence = settings.sessions_before_long_break
    if cadence <= 0:
        return 0
    return cadence - completed_focus % cadence
