"""Pydantic schemas for notification and preference endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: int
    kind: str
    payload: dict[str, Any]
    message: str
    link: str
    read: bool
    read_at: datetime | None = None
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    limit: int
    offset: int


class UnreadCountResponse(BaseModel):
    unread_count: int


class CountResponse(BaseModel):
    count: int


class EmailPreferences(BaseModel):
    email_mentions: bool = True
    email_due: bool = True
    email_digest: bool = True


class MentionRequest(BaseModel):
    recipient_id: int
    body: str = Field(..., min_length=1, max_length=2000)


class MentionResponse(BaseModel):
    notified: bool = True
    emailed: bool
