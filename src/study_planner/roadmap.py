from __future__ import annotations

from typing import Optional, Sequence

from .models import Milestone, MilestoneProgress, RoadmapStats, Step


def percent(done: int, total: int) -> int:
    """Whole percent, half rounded up; 0 when there is nothing to count."""
    if total <= 0:
        return 0
    return (done * 200 + total) // (total * 2)


def ordered_milestones(milestones: Sequence[Milestone]) -> list[Milestone]:
    # sorted() is stable: equal positions keep fetch order
    return sorted(milestones, key=lambda m: m.position)


def ordered_steps(milestone: Milestone) -> list[Step]:
    return sorted(milestone.steps, key=lambda s: s.position)


def milestone_progress(milestone: Milestone) -> MilestoneProgress:
    total = len(milestone.steps)
    done = sum(1 for s in milestone.steps if s.is_completed)
    return MilestoneProgress(
        milestone=milestone,
        total_steps=total,
        completed_steps=done,
        progress_percent=percent(done, total),
    )


def roadmap_progress(milestones: Sequence[Milestone]) -> list[MilestoneProgress]:
    return [milestone_progress(m) for m in ordered_milestones(milestones)]


def next_milestone(milestones: Sequence[Milestone]) -> Optional[Milestone]:
    for m in ordered_milestones(milestones):
        if any(not s.is_completed for s in m.steps):
            return m
    return None


def aggregate(milestones: Sequence[Milestone]) -> RoadmapStats:
    """
    Roadmap summary for progress bars and the "what's next" card.
    Milestones without steps count for nothing and are never "next".
    """
    steps = [s for m in milestones for s in m.steps]
    total = len(steps)
    done = sum(1 for s in steps if s.is_completed)
    return RoadmapStats(
        total_steps=total,
        completed_steps=done,
        progress_percent=percent(done, total),
        next_milestone=next_milestone(milestones),
    )
