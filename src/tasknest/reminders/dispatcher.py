"""Reminder fan-out: in-app notification, preference gate, email, audit log.

Every (item, recipient) pair is an independent unit. All units of a batch
run concurrently and each yields a ``ReminderOutcome``; the ``sent`` and
``total`` figures are computed from the collected outcomes, so one failing
recipient never stops the others.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.config import get_settings
from tasknest.db.models import Milestone, ReminderLog, Task, User
from tasknest.email import templates
from tasknest.email.service import EmailService
from tasknest.errors import DeliveryFailure, NotFound, PermissionDenied
from tasknest.gamification.streak_service import get_day_zone
from tasknest.notifications.payloads import (
    DueTomorrowPayload,
    ManualReminderPayload,
    link_for,
)
from tasknest.notifications.service import build_notification
from tasknest.reminders.recipients import (
    Recipient,
    get_membership_role,
    resolve_recipient_ids,
    resolve_recipients,
)
from tasknest.reminders.scanner import find_due_items, tomorrow_window

logger = logging.getLogger(__name__)

ReminderKind = Literal["due_tomorrow", "manual_reminder"]
EntityType = Literal["task", "milestone"]

FALLBACK_SENDER_NAME = "A team admin"


@dataclass(frozen=True)
class Sender:
    """Who a reminder comes from. ``user_id`` is None for scheduled runs."""

    user_id: int | None
    name: str


@dataclass
class ReminderBatch:
    item: Task | Milestone
    recipients: list[Recipient] = field(default_factory=list)


@dataclass(frozen=True)
class ReminderOutcome:
    entity_type: str
    entity_id: int
    recipient_id: int
    sent: bool
    delivered: bool = False
    error: str | None = None


@dataclass
class DispatchResult:
    sent: int
    total: int
    outcomes: list[ReminderOutcome] = field(default_factory=list)


@dataclass
class DueRunResult:
    tasks_processed: int
    milestones_processed: int
    emails_sent: int


def summary_message(result: DispatchResult) -> str:
    # Opt-outs and transport failures are not told apart here.
    return (
        f"Sent {result.sent} of {result.total} reminders; "
        "recipients with notifications disabled were skipped"
    )


def _entity_type(item: Task | Milestone) -> EntityType:
    return "task" if isinstance(item, Task) else "milestone"


def _build_payload(
    item: Task | Milestone,
    sender: Sender,
    kind: ReminderKind,
) -> DueTomorrowPayload | ManualReminderPayload:
    common = {
        "entity_type": _entity_type(item),
        "entity_id": item.id,
        "title": item.title,
        "due_at": item.due_at,
        "project_id": item.project_id,
        "project_name": item.project.name,
        "sender_name": sender.name,
    }
    if kind == "manual_reminder":
        if sender.user_id is None:
            msg = "Manual reminders need a sending user"
            raise ValueError(msg)
        return ManualReminderPayload(sent_by=sender.user_id, **common)
    return DueTomorrowPayload(**common)


async def _remind_one(
    db: AsyncSession,
    email: EmailService,
    item: Task | Milestone,
    payload: DueTomorrowPayload | ManualReminderPayload,
    recipient: Recipient,
    sender: Sender,
    url: str,
    now: datetime,
) -> ReminderOutcome:
    entity_type = _entity_type(item)
    db.add(build_notification(recipient.user_id, payload, now))

    if not recipient.email_due:
        return ReminderOutcome(entity_type, item.id, recipient.user_id, sent=False)

    db.add(
        ReminderLog(
            entity_type=entity_type,
            entity_id=item.id,
            recipient_id=recipient.user_id,
            sent_by=sender.user_id,
            created_at=now,
        )
    )

    if not recipient.email:
        return ReminderOutcome(entity_type, item.id, recipient.user_id, sent=True)

    subject, html_body, text_body = templates.due_reminder(
        entity_type, item.title, item.due_at, item.project.name, sender.name, url
    )
    try:
        delivered = await email.send_email(recipient.email, subject, html_body, text_body)
    except DeliveryFailure as exc:
        logger.warning(
            "Reminder email for %s %s to user %s failed: %s",
            entity_type,
            item.id,
            recipient.user_id,
            exc.detail,
        )
        return ReminderOutcome(entity_type, item.id, recipient.user_id, sent=True, error=exc.detail)
    return ReminderOutcome(entity_type, item.id, recipient.user_id, sent=True, delivered=delivered)


async def dispatch(
    db: AsyncSession,
    email: EmailService,
    batches: list[ReminderBatch],
    sender: Sender,
    kind: ReminderKind = "due_tomorrow",
    now: datetime | None = None,
) -> DispatchResult:
    """Fan reminders out to every recipient of every batch and commit.

    ``sent`` counts recipients who passed the ``email_due`` gate, whether or
    not the transport accepted the email. ``total`` counts every recipient
    considered.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    site = get_settings().site_url

    units = []
    keys = []
    for batch in batches:
        payload = _build_payload(batch.item, sender, kind)
        url = f"{site}{link_for(payload)}"
        for recipient in batch.recipients:
            units.append(_remind_one(db, email, batch.item, payload, recipient, sender, url, now))
            keys.append((_entity_type(batch.item), batch.item.id, recipient.user_id))

    results = await asyncio.gather(*units, return_exceptions=True)

    outcomes: list[ReminderOutcome] = []
    for (entity_type, entity_id, recipient_id), result in zip(keys, results):
        if isinstance(result, BaseException):
            logger.error(
                "Reminder for %s %s to user %s raised",
                entity_type,
                entity_id,
                recipient_id,
                exc_info=result,
            )
            outcomes.append(
                ReminderOutcome(entity_type, entity_id, recipient_id, sent=True, error=repr(result))
            )
        else:
            outcomes.append(result)

    await db.commit()

    sent = sum(1 for outcome in outcomes if outcome.sent)
    logger.info("Dispatched %s reminders: sent %d of %d", kind, sent, len(outcomes))
    return DispatchResult(sent=sent, total=len(outcomes), outcomes=outcomes)


async def _load_entity(db: AsyncSession, entity_type: str, entity_id: int) -> Task | Milestone:
    model = {"task": Task, "milestone": Milestone}.get(entity_type)
    if model is None:
        msg = f"Unknown entity type: {entity_type}"
        raise NotFound(msg)
    item = await db.get(model, entity_id)
    if item is None:
        msg = f"{entity_type.capitalize()} not found"
        raise NotFound(msg)
    return item


async def dispatch_manual(
    db: AsyncSession,
    email: EmailService,
    entity_type: str,
    entity_id: int,
    recipient_ids: list[int],
    caller_id: int,
    now: datetime | None = None,
) -> DispatchResult:
    """Admin-triggered reminder for one task or milestone.

    Raises:
        NotFound: If the entity does not exist.
        PermissionDenied: If the caller is not an admin of the owning team.

    Both checks run before anything is written. Requested ids that are not
    members of the team are skipped but still counted in ``total``.
    """
    item = await _load_entity(db, entity_type, entity_id)
    team_id = item.project.team_id

    role = await get_membership_role(db, team_id, caller_id)
    if role != "admin":
        msg = "Only admins can send reminders"
        raise PermissionDenied(msg)

    caller = await db.get(User, caller_id)
    sender_name = (caller and (caller.name or caller.email)) or FALLBACK_SENDER_NAME

    requested = list(dict.fromkeys(recipient_ids))
    recipients = await resolve_recipient_ids(db, team_id, requested)
    result = await dispatch(
        db,
        email,
        [ReminderBatch(item=item, recipients=recipients)],
        Sender(user_id=caller_id, name=sender_name),
        kind="manual_reminder",
        now=now,
    )
    result.total = len(requested)
    return result


async def run_due_tomorrow(
    db: AsyncSession,
    email: EmailService,
    now: datetime | None = None,
    zone: tzinfo | None = None,
) -> DueRunResult:
    """Scheduled scan: remind assignees of tasks and teams of milestones due tomorrow."""
    if now is None:
        now = datetime.now(timezone.utc)
    start, end = tomorrow_window(now, zone or get_day_zone())
    due = await find_due_items(db, start, end)

    batches = [
        ReminderBatch(item=task, recipients=await resolve_recipients(db, task, "assignees"))
        for task in due.tasks
    ]
    batches += [
        ReminderBatch(item=milestone, recipients=await resolve_recipients(db, milestone, "all"))
        for milestone in due.milestones
    ]

    sender = Sender(user_id=None, name=get_settings().reminder_sender_name)
    result = await dispatch(db, email, batches, sender, kind="due_tomorrow", now=now)
    emails_sent = sum(1 for outcome in result.outcomes if outcome.delivered)
    logger.info(
        "Due-tomorrow run: %d tasks, %d milestones, %d emails",
        len(due.tasks),
        len(due.milestones),
        emails_sent,
    )
    return DueRunResult(
        tasks_processed=len(due.tasks),
        milestones_processed=len(due.milestones),
        emails_sent=emails_sent,
    )
