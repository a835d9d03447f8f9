"""Recipient resolution for due-item reminders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.db.models import Membership, Milestone, Task, TaskAssignee, User, UserPreferences

RecipientMode = Literal["assignees", "all"]


@dataclass(frozen=True)
class Recipient:
    user_id: int
    email: str | None
    name: str | None
    email_due: bool


def _recipient_query():  # noqa: ANN202
    return select(User.id, User.email, User.name, UserPreferences.email_due).outerjoin(
        UserPreferences, UserPreferences.user_id == User.id
    )


def _to_recipients(rows) -> list[Recipient]:  # noqa: ANN001
    # A missing preference row means the user never opted out.
    return [
        Recipient(user_id=uid, email=email, name=name, email_due=email_due is not False)
        for uid, email, name, email_due in rows
    ]


async def resolve_recipients(
    db: AsyncSession,
    item: Task | Milestone,
    mode: RecipientMode = "assignees",
) -> list[Recipient]:
    """Expand a task or milestone into its reminder recipients.

    Tasks go to their assignees (``mode="assignees"``) or the whole owning
    team (``mode="all"``). Milestones have no assignees and always go to the
    whole team.
    """
    if isinstance(item, Task) and mode == "assignees":
        subject_ids = select(TaskAssignee.user_id).where(TaskAssignee.task_id == item.id)
    else:
        subject_ids = select(Membership.user_id).where(Membership.team_id == item.project.team_id)

    result = await db.execute(
        _recipient_query().where(User.id.in_(subject_ids)).order_by(User.id)
    )
    return _to_recipients(result.all())


async def resolve_recipient_ids(
    db: AsyncSession,
    team_id: int,
    user_ids: list[int],
) -> list[Recipient]:
    """Resolve an explicit id list, keeping only members of ``team_id``."""
    if not user_ids:
        return []
    members = select(Membership.user_id).where(Membership.team_id == team_id)
    result = await db.execute(
        _recipient_query()
        .where(User.id.in_(user_ids), User.id.in_(members))
        .order_by(User.id)
    )
    return _to_recipients(result.all())


async def get_membership_role(db: AsyncSession, team_id: int, user_id: int) -> str | None:
    """The user's role on the team, or None if not a member."""
    result = await db.execute(
        select(Membership.role).where(Membership.team_id == team_id, Membership.user_id == user_id)
    )
    return result.scalar_one_or_none()


# --- Recipient pickers ---


async def get_team_roster(db: AsyncSession, team_id: int) -> list[tuple[User, str]]:
    """Every member of the team with their role, ordered by user id."""
    result = await db.execute(
        select(User, Membership.role)
        .join(Membership, Membership.user_id == User.id)
        .where(Membership.team_id == team_id)
        .order_by(User.id)
    )
    return [(user, role) for user, role in result.all()]


async def get_task_assignees(db: AsyncSession, task_id: int) -> list[User]:
    result = await db.execute(
        select(User)
        .join(TaskAssignee, TaskAssignee.user_id == User.id)
        .where(TaskAssignee.task_id == task_id)
        .order_by(User.id)
    )
    return list(result.scalars().all())
