"""Notification inbox and email preference endpoints."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.auth.dependencies import get_current_user_id
from tasknest.database import get_session
from tasknest.db.models import Notification, Task, User
from tasknest.dependencies import get_email_service
from tasknest.email.service import EmailService
from tasknest.errors import NotFound, PermissionDenied
from tasknest.notifications.payloads import link_for, parse_payload, render_message
from tasknest.notifications.schemas import (
    CountResponse,
    EmailPreferences,
    MentionRequest,
    MentionResponse,
    NotificationListResponse,
    NotificationResponse,
    UnreadCountResponse,
)
from tasknest.notifications.service import (
    delete_all_read,
    delete_notification,
    get_notifications,
    get_preferences,
    get_unread_count,
    mark_all_as_read,
    mark_as_read,
    notify_mention,
    update_preferences,
)
from tasknest.reminders.recipients import get_membership_role

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


def _to_response(n: Notification) -> NotificationResponse:
    try:
        payload = parse_payload(n.payload or {})
        message, link = render_message(payload), link_for(payload)
    except ValidationError:
        # Rows written before a payload variant changed shape still list.
        logger.warning("Notification %s has an unreadable %s payload", n.id, n.kind)
        message, link = "You have a new notification", "/dashboard"
    return NotificationResponse(
        id=n.id,
        kind=n.kind,
        payload=n.payload or {},
        message=message,
        link=link,
        read=n.read_at is not None,
        read_at=n.read_at,
        created_at=n.created_at,
    )


@router.get("/notifications", response_model=NotificationListResponse)
async def list_notifications(
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """List the caller's notifications, newest first."""
    notifications, total = await get_notifications(db, user_id, limit, offset)
    return NotificationListResponse(
        notifications=[_to_response(n) for n in notifications],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/notifications/unread-count", response_model=UnreadCountResponse)
async def get_unread_notification_count(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Get unread notification count."""
    count = await get_unread_count(db, user_id)
    return UnreadCountResponse(unread_count=count)


@router.post("/notifications/read-all", response_model=CountResponse)
async def mark_all_read(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Mark all notifications as read."""
    count = await mark_all_as_read(db, user_id)
    await db.commit()
    return CountResponse(count=count)


@router.post("/notifications/{notification_id}/read", status_code=200)
async def mark_notification_read(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Mark a notification as read."""
    await mark_as_read(db, user_id, notification_id)
    await db.commit()
    return {"detail": "Notification marked as read"}


@router.delete("/notifications/read", response_model=CountResponse)
async def clear_read_notifications(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Delete every read notification."""
    count = await delete_all_read(db, user_id)
    await db.commit()
    return CountResponse(count=count)


@router.delete("/notifications/{notification_id}", status_code=204)
async def remove_notification(
    notification_id: int,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
) -> None:
    """Delete one notification."""
    await delete_notification(db, user_id, notification_id)
    await db.commit()


# --- Email preferences ---


@router.get("/settings/email-preferences", response_model=EmailPreferences)
async def read_email_preferences(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Get email preferences, creating the default row on first read."""
    prefs = await get_preferences(db, user_id, create=True)
    await db.commit()
    return EmailPreferences(**prefs)


@router.put("/settings/email-preferences", response_model=EmailPreferences)
async def write_email_preferences(
    body: EmailPreferences,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Replace all three email preference flags."""
    prefs = await update_preferences(
        db,
        user_id,
        email_mentions=body.email_mentions,
        email_due=body.email_due,
        email_digest=body.email_digest,
    )
    await db.commit()
    return EmailPreferences(**prefs)


# --- Mentions ---


@router.post("/tasks/{task_id}/mentions", response_model=MentionResponse, status_code=201)
async def mention_user(
    task_id: int,
    body: MentionRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
    email: EmailService = Depends(get_email_service),
):
    """Notify a teammate that they were mentioned in a task comment."""
    task = await db.get(Task, task_id)
    if task is None:
        raise NotFound("Task not found")
    team_id = task.project.team_id
    if await get_membership_role(db, team_id, user_id) is None:
        raise PermissionDenied("Not a member of this team")
    if await get_membership_role(db, team_id, body.recipient_id) is None:
        raise NotFound("Recipient is not a member of this team")

    mentioner = await db.get(User, user_id)
    mentioner_name = (mentioner and (mentioner.name or mentioner.email)) or "A teammate"
    emailed = await notify_mention(
        db,
        email,
        recipient_id=body.recipient_id,
        task_id=task.id,
        body=body.body,
        mentioned_by=user_id,
        mentioner_name=mentioner_name,
        project_id=task.project_id,
        task_title=task.title,
    )
    return MentionResponse(emailed=emailed)
