"""Weekly activity digest: one notification and at most one email per active user."""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.config import get_settings
from tasknest.db.models import ActivityEvent, User, UserPreferences
from tasknest.email import templates
from tasknest.email.service import EmailService
from tasknest.errors import DeliveryFailure
from tasknest.notifications.payloads import WeeklyDigestPayload
from tasknest.notifications.service import build_notification

logger = logging.getLogger(__name__)

DIGEST_WINDOW = timedelta(days=7)


async def collect_weekly_counts(
    db: AsyncSession, since: datetime, until: datetime
) -> dict[int, Counter[str]]:
    """Count events per user and kind in ``[since, until)``."""
    result = await db.execute(
        select(ActivityEvent.user_id, ActivityEvent.kind).where(
            ActivityEvent.created_at >= since,
            ActivityEvent.created_at < until,
        )
    )
    counts: dict[int, Counter[str]] = defaultdict(Counter)
    for user_id, kind in result.all():
        counts[user_id][kind] += 1
    return counts


async def send_weekly_digests(
    db: AsyncSession,
    email: EmailService,
    now: datetime | None = None,
) -> int:
    """Create digests for everyone active in the last 7 days.

    Emails go only to users whose ``email_digest`` preference is on (missing
    preference rows count as on). A failed email is logged and does not stop
    the remaining users. Returns the number of digests created.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    counts = await collect_weekly_counts(db, now - DIGEST_WINDOW, now)
    if not counts:
        logger.info("Weekly digest: no activity in window")
        return 0

    user_ids = list(counts)
    users_result = await db.execute(
        select(User.id, User.email, UserPreferences.email_digest)
        .outerjoin(UserPreferences, UserPreferences.user_id == User.id)
        .where(User.id.in_(user_ids))
    )
    contacts = {uid: (address, wants is not False) for uid, address, wants in users_result.all()}

    site = get_settings().site_url
    emailed = 0
    for user_id in user_ids:
        kinds = counts[user_id]
        completed = kinds["task_completed"]
        checkins = kinds["checkin"]
        payload = WeeklyDigestPayload(
            count=sum(kinds.values()),
            tasks_completed=completed,
            checkins=checkins,
        )
        db.add(build_notification(user_id, payload, now))

        address, wants_digest = contacts.get(user_id, (None, False))
        if not (address and wants_digest):
            continue
        subject, html_body, text_body = templates.weekly_digest(completed, checkins, f"{site}/dashboard")
        try:
            if await email.send_email(address, subject, html_body, text_body):
                emailed += 1
        except DeliveryFailure:
            logger.warning("Weekly digest email to user %s failed", user_id, exc_info=True)

    await db.commit()
    logger.info("Weekly digest complete: %d digests, %d emails", len(user_ids), emailed)
    return len(user_ids)
