"""Due-item scanning: open tasks and milestones due inside a time window."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, time, timedelta, tzinfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.db.models import Milestone, Task


@dataclass
class DueItems:
    tasks: list[Task] = field(default_factory=list)
    milestones: list[Milestone] = field(default_factory=list)


def tomorrow_window(now: datetime, zone: tzinfo) -> tuple[datetime, datetime]:
    """The whole next calendar day in ``zone``, as ``[start, end)``."""
    tomorrow = now.astimezone(zone).date() + timedelta(days=1)
    start = datetime.combine(tomorrow, time.min, tzinfo=zone)
    end = datetime.combine(tomorrow + timedelta(days=1), time.min, tzinfo=zone)
    return start, end


def upcoming_window(now: datetime, days: int = 7) -> tuple[datetime, datetime]:
    """From ``now`` until ``days`` days later, as ``[start, end)``."""
    return now, now + timedelta(days=days)


async def find_due_items(
    db: AsyncSession,
    window_start: datetime,
    window_end: datetime,
    project_id: int | None = None,
) -> DueItems:
    """Tasks not done and milestones still open with ``due_at`` in ``[start, end)``."""
    task_stmt = (
        select(Task)
        .where(
            Task.status != "done",
            Task.due_at.is_not(None),
            Task.due_at >= window_start,
            Task.due_at < window_end,
        )
        .order_by(Task.due_at, Task.id)
    )
    milestone_stmt = (
        select(Milestone)
        .where(
            Milestone.status == "open",
            Milestone.due_at.is_not(None),
            Milestone.due_at >= window_start,
            Milestone.due_at < window_end,
        )
        .order_by(Milestone.due_at, Milestone.id)
    )
    if project_id is not None:
        task_stmt = task_stmt.where(Task.project_id == project_id)
        milestone_stmt = milestone_stmt.where(Milestone.project_id == project_id)

    tasks = (await db.execute(task_stmt)).unique().scalars().all()
    milestones = (await db.execute(milestone_stmt)).unique().scalars().all()
    return DueItems(tasks=list(tasks), milestones=list(milestones))
