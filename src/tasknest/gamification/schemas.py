"""Pydantic request/response models for gamification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field


# --- Activity ---


class RecordActivityRequest(BaseModel):
    kind: Literal["checkin", "task_completed"]
    team_id: int | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


class StreakResponse(BaseModel):
    current_days: int = 0
    longest_days: int = 0
    updated_at: datetime | None = None


class RecordActivityResponse(BaseModel):
    recorded: bool = True
    streak: StreakResponse | None = None


# --- Rewards ---


class RewardResponse(BaseModel):
    kind: str
    awarded_at: datetime


class RewardsResponse(BaseModel):
    rewards: list[RewardResponse]
    total: int
