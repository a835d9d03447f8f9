"""Notification store and email preferences.

Notifications are persisted per user with a payload tagged by ``kind``.
Email preferences are opt-out: a user without a ``user_prefs`` row gets
every email.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.config import get_settings
from tasknest.db.models import Notification, User, UserPreferences
from tasknest.db.upsert import insert_if_absent, upsert
from tasknest.email import templates
from tasknest.email.service import EmailService
from tasknest.errors import DeliveryFailure, NotFound
from tasknest.notifications.payloads import MentionPayload, NotificationPayload

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = {
    "email_mentions": True,
    "email_due": True,
    "email_digest": True,
}


def build_notification(
    user_id: int,
    payload: NotificationPayload,
    now: datetime | None = None,
) -> Notification:
    """Build (but do not add) a notification row for a typed payload."""
    return Notification(
        user_id=user_id,
        kind=payload.kind,
        payload=payload.model_dump(mode="json"),
        created_at=now or datetime.now(timezone.utc),
    )


async def create_notification(
    db: AsyncSession,
    user_id: int,
    payload: NotificationPayload,
    now: datetime | None = None,
) -> Notification:
    """Persist a notification (flushed, not committed)."""
    notification = build_notification(user_id, payload, now)
    db.add(notification)
    await db.flush()
    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[Notification], int]:
    """Get user's notifications (most recent first) and the total count."""
    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read_at.is_(None))
    )
    return result.scalar_one()


async def mark_as_read(
    db: AsyncSession, user_id: int, notification_id: int, now: datetime | None = None
) -> None:
    """Mark a single notification as read.

    Raises:
        NotFound: If the notification does not exist or belongs to someone else.
    """
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read_at=now or datetime.now(timezone.utc))
    )
    if result.rowcount == 0:
        msg = "Notification not found"
        raise NotFound(msg)


async def mark_all_as_read(db: AsyncSession, user_id: int, now: datetime | None = None) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read_at.is_(None))
        .values(read_at=now or datetime.now(timezone.utc))
    )
    return result.rowcount


async def delete_notification(db: AsyncSession, user_id: int, notification_id: int) -> None:
    """Delete one of the user's notifications."""
    result = await db.execute(
        delete(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    if result.rowcount == 0:
        msg = "Notification not found"
        raise NotFound(msg)


async def delete_all_read(db: AsyncSession, user_id: int) -> int:
    """Delete every read notification. Returns count deleted."""
    result = await db.execute(
        delete(Notification).where(
            Notification.user_id == user_id, Notification.read_at.is_not(None)
        )
    )
    return result.rowcount


# --- Preferences ---


async def get_preferences(db: AsyncSession, user_id: int, create: bool = False) -> dict[str, bool]:
    """Get a user's email preferences, falling back to defaults.

    With ``create=True`` a default row is inserted when none exists.
    """
    result = await db.execute(select(UserPreferences).where(UserPreferences.user_id == user_id))
    prefs = result.scalar_one_or_none()
    if prefs is None:
        if create:
            await insert_if_absent(
                db, UserPreferences, ["user_id"], {"user_id": user_id, **DEFAULT_PREFERENCES}
            )
        return dict(DEFAULT_PREFERENCES)
    return {
        "email_mentions": prefs.email_mentions,
        "email_due": prefs.email_due,
        "email_digest": prefs.email_digest,
    }


async def update_preferences(
    db: AsyncSession,
    user_id: int,
    email_mentions: bool,
    email_due: bool,
    email_digest: bool,
) -> dict[str, bool]:
    """Upsert all three email preference flags."""
    values = {
        "user_id": user_id,
        "email_mentions": email_mentions,
        "email_due": email_due,
        "email_digest": email_digest,
        "updated_at": datetime.now(timezone.utc),
    }
    await upsert(
        db,
        UserPreferences,
        ["user_id"],
        values,
        ["email_mentions", "email_due", "email_digest", "updated_at"],
    )
    return {k: v for k, v in values.items() if k in DEFAULT_PREFERENCES}


# --- Mentions ---


async def notify_mention(
    db: AsyncSession,
    email: EmailService,
    recipient_id: int,
    task_id: int,
    body: str,
    mentioned_by: int,
    mentioner_name: str,
    project_id: int | None = None,
    task_title: str | None = None,
) -> bool:
    """Create a mention notification and email it when ``email_mentions`` allows.

    The notification is committed before the email is attempted, so a
    recipient never gets mail without the matching inbox entry. Returns
    True if the email was delivered.
    """
    payload = MentionPayload(
        task_id=task_id,
        project_id=project_id,
        title=task_title,
        body=body,
        mentioned_by=mentioned_by,
        mentioner_name=mentioner_name,
    )
    await create_notification(db, recipient_id, payload)
    await db.commit()

    prefs = await get_preferences(db, recipient_id)
    if not prefs["email_mentions"]:
        return False

    user = await db.get(User, recipient_id)
    if user is None or not user.email:
        return False

    site = get_settings().site_url
    path = f"/projects/{project_id}/tasks" if project_id is not None else "/dashboard"
    subject, html_body, text_body = templates.mention(task_title, body, mentioner_name, f"{site}{path}")
    try:
        return await email.send_email(user.email, subject, html_body, text_body)
    except DeliveryFailure:
        logger.warning("Mention email to user %s failed", recipient_id, exc_info=True)
        return False
