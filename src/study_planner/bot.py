from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import fields, replace
from datetime import date, datetime, timedelta
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from zoneinfo import ZoneInfo

from telegram import Update
from telegram.ext import (
    AIORateLimiter,
    Application,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from .focus import next_session, session_duration, sessions_until_long_break
from .models import Priority, SessionType, StudyBlock, StudySettings, User
from .parsing import parse_difficulty, parse_session_line, parse_task_line
from .planner import allocate, block_end_time, format_clock, parse_clock, select_focus_task
from .roadmap import aggregate, ordered_steps, roadmap_progress
from .stats import (
    days_left_label,
    focus_streak,
    progress_by_category,
    progress_by_priority,
    task_overview,
    total_focus_minutes,
    upcoming_deadlines,
)
from .storage import Storage
from .weekly import (
    MAX_DAILY_MINUTES,
    DayLoad,
    daily_load,
    ordered_subtasks,
    subtask_progress,
    week_overview,
    week_start,
)

log = logging.getLogger("study_planner")


HELP = (
    "Commands:\n"
    "/start - register\n"
    "/timezone Europe/Berlin - set your time zone\n"
    "/add Read chapter 3 !high @2026-10-20 #Math - add a task (or /add, then one per line)\n"
    "/tasks - list open tasks\n"
    "/done <id> - mark a task completed, /undo <id> to reopen\n"
    "/plan - today's study plan\n"
    "/focus - the task to work on now\n"
    "/pomodoro - log a finished focus session\n"
    "/settings [field value] - show or change study settings\n"
    "/newroadmap <title> - start a learning roadmap\n"
    "/milestone <title> - add a milestone to the current roadmap\n"
    "/step <milestone id> [beginner|intermediate|advanced] <title> - add a step\n"
    "/stepdone <id> - mark a step completed\n"
    "/roadmap - roadmap progress\n"
    "/stats - dashboard numbers\n"
    "/steptask <step id> [!high] [@YYYY-MM-DD] - turn a roadmap step into a task\n"
    "/subtask <task id> <title> - add a subtask, /subtasks <task id> to list, /subdone <id>\n"
    "/session <date|today|tomorrow> <HH:MM> [45m] <title> - book a study session\n"
    "/week [YYYY-MM-DD] - weekly planner, /sessiondone <id>, /sessiondel <id>\n"
)

_SETTING_FIELDS = {f.name for f in fields(StudySettings)}


def _env(name: str, default: str = "") -> str:
    return os.getenv(name, default).strip()


def _format_priority(p: Priority) -> str:
    return {Priority.HIGH: "high", Priority.MEDIUM: "medium", Priority.LOW: "low"}[p]


def _parse_id(args: list[str]) -> Optional[int]:
    if not args:
        return None
    try:
        return int(args[0])
    except ValueError:
        return None


def apply_setting(settings: StudySettings, name: str, value: str) -> StudySettings:
    """Validated copy of settings with one field changed; ValueError when invalid."""
    if name not in _SETTING_FIELDS:
        raise ValueError(f"unknown setting {name!r}")
    if name == "preferred_study_start_time":
        return replace(settings, preferred_study_start_time=format_clock(parse_clock(value)))
    number = int(value)
    if number <= 0:
        raise ValueError(f"{name} must be positive")
    return replace(settings, **{name: number})


def format_plan(blocks: list[StudyBlock]) -> str:
    lines = ["Today's study plan:"]
    for b in blocks:
        cat = f" [{b.category_name}]" if b.category_name else ""
        lines.append(
            f"- {b.start_time}-{block_end_time(b)} ({_format_priority(b.priority)}) "
            f"{b.task_title}{cat} (id {b.task_id})"
        )
    return "\n".join(lines)


def format_week(days: list[DayLoad]) -> str:
    lines = [f"Week of {days[0].day.isoformat()}:"]
    for d in days:
        warn = " (overloaded!)" if d.overloaded else ""
        lines.append(f"{d.day.strftime('%a %d %b')}: {d.minutes} min{warn}")
        for s in d.sessions:
            mark = "x" if s.is_completed else " "
            lines.append(f"   [{mark}] {s.id}. {s.start_time} {s.title} ({s.duration_minutes} min)")
    return "\n".join(lines)


class BotApp:
    def __init__(self, db_path: str) -> None:
        self.storage = Storage(db_path)
        self.scheduler = AsyncIOScheduler()

        # in-memory flag: who is currently entering tasks
        self._awaiting_tasks: set[int] = set()
        # in-memory pomodoro counter per user, reset on restart
        self._focus_counts: dict[int, int] = {}

    def user_or_default(self, user_id: int) -> User:
        u = self.storage.get_user(user_id)
        if u:
            return u
        u = User(telegram_user_id=user_id, timezone="UTC")
        self.storage.upsert_user(u)
        return u

    def settings_or_default(self, user_id: int) -> StudySettings:
        return self.storage.get_settings(user_id) or StudySettings()

    async def on_startup(self, app: Application) -> None:
        # needs the running event loop
        self.scheduler.start()

    def _tz(self, user_id: int) -> ZoneInfo:
        return ZoneInfo(self.user_or_default(user_id).timezone)

    def _now(self, user_id: int) -> datetime:
        # stored datetimes are naive local wall-clock time
        return datetime.now(self._tz(user_id)).replace(tzinfo=None)

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        self.user_or_default(int(update.effective_user.id))
        await update.message.reply_text(
            "Hi! I plan your study day.\n\n"
            "1) Set your time zone with /timezone Europe/Berlin\n"
            "2) Add tasks with /add, then ask for /plan\n\n"
            + HELP
        )

    async def cmd_help(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        if update.message:
            await update.message.reply_text(HELP)

    async def cmd_timezone(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        if not context.args:
            await update.message.reply_text("Give an IANA time zone, e.g. /timezone Europe/Berlin")
            return
        tz_name = context.args[0].strip()
        try:
            ZoneInfo(tz_name)
        except Exception:
            await update.message.reply_text("Unknown time zone. Examples: Europe/Berlin, America/New_York, UTC")
            return
        self.storage.upsert_user(User(telegram_user_id=user_id, timezone=tz_name))
        await update.message.reply_text(f"Time zone set to {tz_name}")

    async def cmd_add(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        self.user_or_default(user_id)
        if context.args:
            added = self._add_tasks(user_id, [" ".join(context.args)])
            if not added:
                await update.message.reply_text("That does not look like a task.")
                return
            await update.message.reply_text(f"Added task {added[0]}.")
            return
        self._awaiting_tasks.add(user_id)
        await update.message.reply_text(
            "Send your tasks, one per line.\n"
            "Optional: !high/!medium/!low, @YYYY-MM-DD deadline, #Category.\n"
            "Example:\n"
            "Read chapter 3 !high @2026-10-20 #Math\n"
            "Flashcards #Spanish"
        )

    def _add_tasks(self, user_id: int, lines: list[str]) -> list[int]:
        now = self._now(user_id)
        ids: list[int] = []
        for line in lines:
            p = parse_task_line(line)
            if p is None:
                continue
            category_id = None
            if p.category_name:
                category_id = self.storage.get_or_create_category(user_id, p.category_name).id
            ids.append(
                self.storage.add_task(
                    telegram_user_id=user_id,
                    title=p.title,
                    priority=p.priority,
                    due_date=p.due_date,
                    created_at=now,
                    category_id=category_id,
                )
            )
        return ids

    async def on_text(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        if user_id not in self._awaiting_tasks:
            return

        ids = self._add_tasks(user_id, (update.message.text or "").splitlines())
        if not ids:
            await update.message.reply_text("No tasks found. Try again, one per line.")
            return
        self._awaiting_tasks.discard(user_id)
        await update.message.reply_text(f"Added {len(ids)} task(s). /plan builds today's schedule.")

    async def cmd_tasks(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        open_tasks = [t for t in self.storage.list_tasks(user_id) if not t.is_completed]
        if not open_tasks:
            await update.message.reply_text("No open tasks. Use /add.")
            return
        lines = []
        for t in open_tasks:
            due = f" @{t.due_date.strftime('%Y-%m-%d')}" if t.due_date else ""
            cat = f" #{t.category.name}" if t.category else ""
            lines.append(f"{t.id}. ({_format_priority(t.priority)}) {t.title}{due}{cat}")
        await update.message.reply_text("\n".join(lines))

    async def _set_done(self, update: Update, context: ContextTypes.DEFAULT_TYPE, done: bool) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        task_id = _parse_id(context.args or [])
        if task_id is None:
            await update.message.reply_text("Usage: /done <id>" if done else "Usage: /undo <id>")
            return
        if not self.storage.set_task_completed(user_id, task_id, done, self._now(user_id)):
            await update.message.reply_text(f"Task {task_id} not found.")
            return
        await update.message.reply_text("Marked as completed." if done else "Task reopened.")

    async def cmd_done(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._set_done(update, context, True)

    async def cmd_undo(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._set_done(update, context, False)

    async def cmd_plan(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        settings = self.settings_or_default(user_id)
        blocks = allocate(self.storage.list_tasks(user_id), settings)
        if not blocks:
            await update.message.reply_text(
                "Nothing to plan: no open tasks, or the daily study time is shorter than one focus block."
            )
            return
        await update.message.reply_text(format_plan(blocks))
        self._schedule_today_reminders(
            telegram_user_id=user_id,
            tz=self._tz(user_id),
            blocks=blocks,
            app=context.application,
        )

    async def cmd_focus(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        settings = self.settings_or_default(user_id)
        task = select_focus_task(self.storage.list_tasks(user_id))
        count = self._focus_counts.get(user_id, 0)
        left = sessions_until_long_break(count, settings)
        if task is None:
            await update.message.reply_text("Nothing to focus on. Enjoy the break!")
            return
        await update.message.reply_text(
            f"Focus on: {task.title} (id {task.id}, {_format_priority(task.priority)})\n"
            f"{settings.focus_duration_minutes} min, {left} session(s) until a long break."
        )

    async def cmd_pomodoro(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        settings = self.settings_or_default(user_id)
        task = select_focus_task(self.storage.list_tasks(user_id))
        now = self._now(user_id)
        minutes = session_duration(SessionType.FOCUS, settings)
        self.storage.add_focus_session(
            telegram_user_id=user_id,
            task_id=task.id if task else None,
            duration_minutes=minutes,
            session_type=SessionType.FOCUS,
            started_at=now - timedelta(minutes=minutes),
            completed_at=now,
        )
        nxt, count = next_session(SessionType.FOCUS, self._focus_counts.get(user_id, 0), settings)
        self._focus_counts[user_id] = count
        label = "long break" if nxt is SessionType.LONG_BREAK else "short break"
        await update.message.reply_text(
            f"Session #{count} logged. Take a {label}: {session_duration(nxt, settings)} min."
        )

    async def cmd_settings(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        settings = self.settings_or_default(user_id)
        args = context.args or []
        if len(args) >= 2:
            try:
                settings = apply_setting(settings, args[0], args[1])
            except ValueError as e:
                await update.message.reply_text(f"Not changed: {e}")
                return
            self.storage.save_settings(user_id, settings)
        elif args:
            await update.message.reply_text("Usage: /settings <field> <value>")
            return
        lines = [f"{f}: {getattr(settings, f)}" for f in sorted(_SETTING_FIELDS)]
        await update.message.reply_text("\n".join(lines))

    async def cmd_newroadmap(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        title = " ".join(context.args or []).strip()
        if not title:
            await update.message.reply_text("Usage: /newroadmap <title>")
            return
        rid = self.storage.create_roadmap(user_id, title, self._now(user_id))
        await update.message.reply_text(f"Roadmap {rid} created. Add milestones with /milestone.")

    async def cmd_milestone(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        title = " ".join(context.args or []).strip()
        if not title:
            await update.message.reply_text("Usage: /milestone <title>")
            return
        roadmap = self.storage.get_active_roadmap(user_id)
        if roadmap is None:
            await update.message.reply_text("No roadmap yet. Start one with /newroadmap.")
            return
        mid = self.storage.add_milestone(roadmap.id, title, self._now(user_id))
        await update.message.reply_text(f"Milestone {mid} added to {roadmap.title}.")

    async def cmd_step(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        args = list(context.args or [])
        milestone_id = _parse_id(args)
        if milestone_id is None or len(args) < 2:
            await update.message.reply_text("Usage: /step <milestone id> [difficulty] <title>")
            return
        rest = args[1:]
        difficulty = parse_difficulty("")
        if len(rest) > 1 and rest[0].lower() in {"beginner", "intermediate", "advanced"}:
            difficulty = parse_difficulty(rest.pop(0))
        sid = self.storage.add_step(
            user_id, milestone_id, " ".join(rest), difficulty, self._now(user_id)
        )
        if sid is None:
            await update.message.reply_text(f"Milestone {milestone_id} not found.")
            return
        await update.message.reply_text(f"Step {sid} added ({difficulty}).")

    async def cmd_stepdone(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        step_id = _parse_id(context.args or [])
        if step_id is None:
            await update.message.reply_text("Usage: /stepdone <id>")
            return
        if not self.storage.set_step_completed(user_id, step_id, True, self._now(user_id)):
            await update.message.reply_text(f"Step {step_id} not found.")
            return
        await update.message.reply_text("Step completed. /roadmap shows your progress.")

    async def cmd_roadmap(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        roadmap = self.storage.get_active_roadmap(user_id)
        if roadmap is None:
            await update.message.reply_text("No roadmap yet. Start one with /newroadmap.")
            return
        stats = aggregate(roadmap.milestones)
        lines = [
            f"{roadmap.title}: {stats.completed_steps}/{stats.total_steps} steps ({stats.progress_percent}%)"
        ]
        for mp in roadmap_progress(roadmap.milestones):
            m = mp.milestone
            lines.append(f"{m.id}. {m.title} - {mp.progress_percent}%")
            for s in ordered_steps(m):
                mark = "x" if s.is_completed else " "
                lines.append(f"   [{mark}] {s.id}. {s.title} ({s.difficulty})")
        nxt = stats.next_milestone
        if nxt is None:
            lines.append("Next milestone: all done!")
        else:
            remaining = sum(1 for s in nxt.steps if not s.is_completed)
            lines.append(f"Next milestone: {nxt.title} ({remaining} steps remaining)")
        await update.message.reply_text("\n".join(lines))

    async def cmd_stats(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        now = self._now(user_id)
        tasks = self.storage.list_tasks(user_id)
        sessions = self.storage.list_focus_sessions(user_id)
        o = task_overview(tasks, now)
        lines = [
            f"Due today: {o.pending_today} open, {o.completed_today} done",
            f"Overdue: {o.overdue}",
            f"Completion rate: {o.completion_rate}% ({o.total_completed}/{o.total})",
            f"Focus: {total_focus_minutes(sessions)} min, streak {focus_streak(sessions, now.date())} day(s)",
        ]
        upcoming = upcoming_deadlines(tasks, now)
        if upcoming:
            lines.append("Upcoming deadlines:")
            for t in upcoming:
                assert t.due_date is not None
                lines.append(f"- {t.title}: {days_left_label(t.due_date, now)}")
        lines.append("By priority:")
        for b in progress_by_priority(tasks):
            lines.append(f"- {b.label}: {b.completed}/{b.total} ({b.percentage}%)")
        by_category = progress_by_category(tasks)
        if by_category:
            lines.append("By category:")
            for b in by_category:
                lines.append(f"- {b.label}: {b.completed}/{b.total} ({b.percentage}%)")
        await update.message.reply_text("\n".join(lines))

    async def cmd_session(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        today = self._now(user_id).date()
        p = parse_session_line(" ".join(context.args or []), today)
        if p is None:
            await update.message.reply_text(
                "Usage: /session <YYYY-MM-DD|today|tomorrow> <HH:MM> [45m|1h] <title>"
            )
            return
        sid = self.storage.add_study_session(
            user_id, p.scheduled_date, p.start_time, p.duration_minutes, p.title
        )
        day_sessions = self.storage.list_study_sessions(user_id, p.scheduled_date, p.scheduled_date)
        minutes = daily_load(day_sessions).get(p.scheduled_date, 0)
        msg = f"Session {sid} booked: {p.scheduled_date.isoformat()} {p.start_time}, {p.duration_minutes} min."
        if minutes > MAX_DAILY_MINUTES:
            msg += f"\nHeads up: {minutes} min planned that day, more than {MAX_DAILY_MINUTES // 60}h."
        await update.message.reply_text(msg)

    async def cmd_week(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        day = self._now(user_id).date()
        if context.args:
            try:
                day = date.fromisoformat(context.args[0])
            except ValueError:
                await update.message.reply_text("Usage: /week [YYYY-MM-DD]")
                return
        start = week_start(day)
        days = week_overview(
            self.storage.list_study_sessions(user_id, start, start + timedelta(days=6)), start
        )
        await update.message.reply_text(format_week(days))

    async def _session_id_command(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE, delete: bool
    ) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        session_id = _parse_id(context.args or [])
        if session_id is None:
            await update.message.reply_text(
                "Usage: /sessiondel <id>" if delete else "Usage: /sessiondone <id>"
            )
            return
        if delete:
            ok = self.storage.delete_study_session(user_id, session_id)
        else:
            ok = self.storage.set_study_session_completed(user_id, session_id, True)
        if not ok:
            await update.message.reply_text(f"Session {session_id} not found.")
            return
        await update.message.reply_text("Session removed." if delete else "Session completed.")

    async def cmd_sessiondone(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._session_id_command(update, context, False)

    async def cmd_sessiondel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        await self._session_id_command(update, context, True)

    async def cmd_subtask(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        args = list(context.args or [])
        task_id = _parse_id(args)
        title = " ".join(args[1:]).strip()
        if task_id is None or not title:
            await update.message.reply_text("Usage: /subtask <task id> <title>")
            return
        sub_id = self.storage.add_subtask(user_id, task_id, title)
        if sub_id is None:
            await update.message.reply_text(f"Task {task_id} not found.")
            return
        await update.message.reply_text(f"Subtask {sub_id} added.")

    async def cmd_subtasks(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        task_id = _parse_id(context.args or [])
        if task_id is None:
            await update.message.reply_text("Usage: /subtasks <task id>")
            return
        subtasks = self.storage.list_subtasks(user_id, task_id)
        if not subtasks:
            await update.message.reply_text("No subtasks. Add one with /subtask.")
            return
        done, total, pct = subtask_progress(subtasks)
        lines = [f"Task {task_id}: {done}/{total} subtasks ({pct}%)"]
        for s in ordered_subtasks(subtasks):
            mark = "x" if s.is_completed else " "
            lines.append(f"[{mark}] {s.id}. {s.title}")
        await update.message.reply_text("\n".join(lines))

    async def cmd_subdone(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        sub_id = _parse_id(context.args or [])
        if sub_id is None:
            await update.message.reply_text("Usage: /subdone <id>")
            return
        if not self.storage.set_subtask_completed(user_id, sub_id, True):
            await update.message.reply_text(f"Subtask {sub_id} not found.")
            return
        await update.message.reply_text("Subtask completed.")

    async def cmd_steptask(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        assert update.effective_user and update.message
        user_id = int(update.effective_user.id)
        args = list(context.args or [])
        step_id = _parse_id(args)
        if step_id is None:
            await update.message.reply_text("Usage: /steptask <step id> [!high|!medium|!low] [@YYYY-MM-DD]")
            return
        step = self.storage.get_step(user_id, step_id)
        if step is None:
            await update.message.reply_text(f"Step {step_id} not found.")
            return
        added = self._add_tasks(user_id, [" ".join([step.title, *args[1:]])])
        if not added:
            await update.message.reply_text("Could not turn that step into a task.")
            return
        await update.message.reply_text(f"Step {step_id} added as task {added[0]}.")

    def _schedule_today_reminders(
        self,
        *,
        telegram_user_id: int,
        tz: ZoneInfo,
        blocks: list[StudyBlock],
        app: Application,
    ) -> None:
        # replace any reminders from an earlier /plan today
        prefix = f"reminder:{telegram_user_id}:"
        for job in list(self.scheduler.get_jobs()):
            if job.id.startswith(prefix):
                job.remove()

        now = datetime.now(tz)
        midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
        for b in blocks:
            h, m = b.start_time.split(":")
            start = midnight + timedelta(minutes=int(h) * 60 + int(m))
            for kind, when in [
                ("before", start - timedelta(minutes=5)),
                ("start", start),
            ]:
                if when <= now:
                    continue
                self.scheduler.add_job(
                    func=lambda chat_id=telegram_user_id, block=b, k=kind: asyncio.create_task(
                        app.bot.send_message(
                            chat_id=chat_id,
                            text=(
                                f"Reminder ({'in 5 minutes' if k == 'before' else 'now'}): "
                                f"{block.task_title} for {block.duration_minutes} min"
                            ),
                        )
                    ),
                    trigger="date",
                    run_date=when,
                    id=f"{prefix}{b.task_id}:{kind}",
                    replace_existing=True,
                )
        log.info("user %s: %d study blocks planned", telegram_user_id, len(blocks))


def build_application(bot_app: BotApp) -> Application:
    token = _env("TELEGRAM_TOKEN")
    if not token:
        raise RuntimeError("TELEGRAM_TOKEN is required")

    app = (
        Application.builder()
        .token(token)
        .rate_limiter(AIORateLimiter())
        .post_init(bot_app.on_startup)
        .build()
    )

    for name, handler in [
        ("start", bot_app.cmd_start),
        ("help", bot_app.cmd_help),
        ("timezone", bot_app.cmd_timezone),
        ("add", bot_app.cmd_add),
        ("tasks", bot_app.cmd_tasks),
        ("done", bot_app.cmd_done),
        ("undo", bot_app.cmd_undo),
        ("plan", bot_app.cmd_plan),
        ("focus", bot_app.cmd_focus),
        ("pomodoro", bot_app.cmd_pomodoro),
        ("settings", bot_app.cmd_settings),
        ("newroadmap", bot_app.cmd_newroadmap),
        ("milestone", bot_app.cmd_milestone),
        ("step", bot_app.cmd_step),
        ("stepdone", bot_app.cmd_stepdone),
        ("roadmap", bot_app.cmd_roadmap),
        ("stats", bot_app.cmd_stats),
        ("session", bot_app.cmd_session),
        ("week", bot_app.cmd_week),
        ("sessiondone", bot_app.cmd_sessiondone),
        ("sessiondel", bot_app.cmd_sessiondel),
        ("subtask", bot_app.cmd_subtask),
        ("subtasks", bot_app.cmd_subtasks),
        ("subdone", bot_app.cmd_subdone),
        ("steptask", bot_app.cmd_steptask),
    ]:
        app.add_handler(CommandHandler(name, handler))
    app.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, bot_app.on_text))
    return app


def main() -> None:
    logging.basicConfig(level=_env("LOG_LEVEL", "INFO").upper())
    db_path = _env("DB_PATH", "study_planner.sqlite3")
    bot_app = BotApp(db_path=db_path)
    app = build_application(bot_app)
    app.run_polling(allowed_updates=Update.ALL_TYPES)


if __name__ == "__main__":
    main()
