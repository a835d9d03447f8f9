"""Reminder endpoints: manual dispatch and the recipient pickers behind it."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.auth.dependencies import get_current_user_id
from tasknest.config import get_settings
from tasknest.database import get_session
from tasknest.db.models import Project, Task
from tasknest.dependencies import get_email_service
from tasknest.email.service import EmailService
from tasknest.errors import NotFound, PermissionDenied
from tasknest.reminders.dispatcher import dispatch_manual, summary_message
from tasknest.reminders.recipients import (
    get_membership_role,
    get_task_assignees,
    get_team_roster,
)
from tasknest.reminders.scanner import find_due_items, upcoming_window
from tasknest.reminders.schemas import (
    IsAdminResponse,
    MemberResponse,
    SendReminderRequest,
    SendReminderResponse,
    UpcomingItemsResponse,
    UpcomingMilestone,
    UpcomingTask,
)

router = APIRouter(prefix="/api/v1", tags=["Reminders"])


async def _project_for_member(db: AsyncSession, project_id: int, user_id: int) -> Project:
    """Load a project the caller belongs to, else 404/403."""
    project = await db.get(Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    if await get_membership_role(db, project.team_id, user_id) is None:
        raise PermissionDenied("Not a member of this team")
    return project


@router.post(
    "/reminders/{entity_type}/{entity_id}",
    response_model=SendReminderResponse,
)
async def send_reminder(
    entity_type: Literal["task", "milestone"],
    entity_id: int,
    body: SendReminderRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    email: EmailService = Depends(get_email_service),
):
    """Send a reminder about one task or milestone (team admins only)."""
    result = await dispatch_manual(db, email, entity_type, entity_id, body.recipient_ids, user_id)
    return SendReminderResponse(sent=result.sent, total=result.total, message=summary_message(result))


@router.get("/projects/{project_id}/upcoming", response_model=UpcomingItemsResponse)
async def get_upcoming_items(
    project_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Open tasks and milestones due in the coming week, for the bulk-reminder picker."""
    await _project_for_member(db, project_id, user_id)
    start, end = upcoming_window(datetime.now(timezone.utc), get_settings().upcoming_window_days)
    due = await find_due_items(db, start, end, project_id=project_id)
    return UpcomingItemsResponse(
        tasks=[
            UpcomingTask(
                id=t.id,
                title=t.title,
                due_at=t.due_at,
                status=t.status,
                assignee_ids=[a.user_id for a in t.assignees],
            )
            for t in due.tasks
        ],
        milestones=[
            UpcomingMilestone(id=m.id, title=m.title, due_at=m.due_at, status=m.status)
            for m in due.milestones
        ],
    )


@router.get("/projects/{project_id}/members", response_model=list[MemberResponse])
async def get_project_members(
    project_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Everyone on the project's team, with their role."""
    project = await _project_for_member(db, project_id, user_id)
    roster = await get_team_roster(db, project.team_id)
    return [MemberResponse(id=u.id, name=u.name, email=u.email, role=role) for u, role in roster]


@router.get("/projects/{project_id}/is-admin", response_model=IsAdminResponse)
async def is_project_admin(
    project_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Whether the caller may send reminders for this project. False for unknown projects."""
    project = await db.get(Project, project_id)
    if project is None:
        return IsAdminResponse(is_admin=False)
    role = await get_membership_role(db, project.team_id, user_id)
    return IsAdminResponse(is_admin=role == "admin")


@router.get("/tasks/{task_id}/assignees", response_model=list[MemberResponse])
async def list_task_assignees(
    task_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """The task's assignees, for the single-task reminder picker."""
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    await _project_for_member(db, task.project_id, user_id)
    users = await get_task_assignees(db, task_id)
    return [MemberResponse(id=u.id, name=u.name, email=u.email) for u in users]
