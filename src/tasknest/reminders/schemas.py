"""Pydantic schemas for reminder endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class SendReminderRequest(BaseModel):
    recipient_ids: list[int] = Field(..., min_length=1, max_length=200)


class SendReminderResponse(BaseModel):
    sent: int
    total: int
    message: str


class UpcomingTask(BaseModel):
    id: int
    title: str
    due_at: datetime | None
    status: str
    assignee_ids: list[int] = []


class UpcomingMilestone(BaseModel):
    id: int
    title: str
    due_at: datetime | None
    status: str


class UpcomingItemsResponse(BaseModel):
    tasks: list[UpcomingTask]
    milestones: list[UpcomingMilestone]


class MemberResponse(BaseModel):
    id: int
    name: str | None = None
    email: str | None = None
    role: str | None = None


class IsAdminResponse(BaseModel):
    is_admin: bool


class CronReminderResponse(BaseModel):
    """Camel-cased to match what the external scheduler already parses."""

    success: bool
    tasksProcessed: int  # noqa: N815
    milestonesProcessed: int  # noqa: N815
    emailsSent: int  # noqa: N815
