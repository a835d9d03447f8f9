"""Notification payloads: one pydantic model per notification kind.

The ``kind`` field is the discriminator, so a stored ``payload_json`` can be
parsed back into exactly one variant with ``parse_payload``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

EntityType = Literal["task", "milestone"]


class DueTomorrowPayload(BaseModel):
    kind: Literal["due_tomorrow"] = "due_tomorrow"
    entity_type: EntityType
    entity_id: int
    title: str
    due_at: datetime | None
    project_id: int
    project_name: str
    sender_name: str
    days_until_due: int = 1


class ManualReminderPayload(BaseModel):
    kind: Literal["manual_reminder"] = "manual_reminder"
    entity_type: EntityType
    entity_id: int
    title: str
    due_at: datetime | None
    project_id: int
    project_name: str
    sender_name: str
    sent_by: int


class MentionPayload(BaseModel):
    kind: Literal["mention"] = "mention"
    task_id: int
    project_id: int | None = None
    title: str | None = None
    body: str
    mentioned_by: int
    mentioner_name: str


class AssignmentPayload(BaseModel):
    kind: Literal["assignment"] = "assignment"
    task_id: int
    project_id: int
    title: str
    assigned_by: int
    assigner_name: str


class WeeklyDigestPayload(BaseModel):
    kind: Literal["weekly_digest"] = "weekly_digest"
    count: int
    tasks_completed: int = 0
    checkins: int = 0


NotificationPayload = Annotated[
    Union[
        DueTomorrowPayload,
        ManualReminderPayload,
        MentionPayload,
        AssignmentPayload,
        WeeklyDigestPayload,
    ],
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter[NotificationPayload] = TypeAdapter(NotificationPayload)


def parse_payload(data: dict) -> NotificationPayload:
    """Validate a stored payload dict into its typed variant."""
    return _payload_adapter.validate_python(data)


def _entity_label(entity_type: str) -> str:
    return "Task" if entity_type == "task" else "Milestone"


def render_message(payload: NotificationPayload) -> str:
    """Human-readable one-liner for the inbox."""
    if isinstance(payload, DueTomorrowPayload):
        label = _entity_label(payload.entity_type)
        if payload.days_until_due == 1:
            return f'{label} "{payload.title}" is due tomorrow'
        if payload.days_until_due == 0:
            return f'{label} "{payload.title}" is due today'
        return f'{label} "{payload.title}" is due in {payload.days_until_due} days'
    if isinstance(payload, ManualReminderPayload):
        return f'{payload.sender_name} sent you a reminder about {payload.entity_type} "{payload.title}"'
    if isinstance(payload, MentionPayload):
        if payload.title:
            return f'{payload.mentioner_name} mentioned you in "{payload.title}"'
        return f"{payload.mentioner_name} mentioned you in a comment"
    if isinstance(payload, AssignmentPayload):
        return f'{payload.assigner_name} assigned you to "{payload.title}"'
    return f"Your weekly summary is ready ({payload.count} activities)"


def link_for(payload: NotificationPayload) -> str:
    """Relative UI path the notification should open."""
    if isinstance(payload, (DueTomorrowPayload, ManualReminderPayload)):
        section = "tasks" if payload.entity_type == "task" else "milestones"
        return f"/projects/{payload.project_id}/{section}"
    if isinstance(payload, (MentionPayload, AssignmentPayload)) and payload.project_id is not None:
        return f"/projects/{payload.project_id}/tasks"
    return "/dashboard"
