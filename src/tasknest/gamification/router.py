"""Gamification API endpoints: activity, streak, rewards."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.auth.dependencies import get_current_user_id
from tasknest.database import get_session
from tasknest.gamification.reward_service import get_rewards
from tasknest.gamification.schemas import (
    RecordActivityRequest,
    RecordActivityResponse,
    RewardResponse,
    RewardsResponse,
    StreakResponse,
)
from tasknest.gamification.streak_service import get_streak, record_activity

router = APIRouter(prefix="/api/v1", tags=["Gamification"])


@router.post("/activity", response_model=RecordActivityResponse, status_code=201)
async def post_activity(
    body: RecordActivityRequest,
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Record a check-in or task completion and advance the streak.

    ``streak`` is null when the event was stored but streak bookkeeping
    failed; the event itself is never lost.
    """
    state = await record_activity(db, user_id, body.kind, body.payload or None, body.team_id)
    if state is None:
        return RecordActivityResponse(streak=None)
    return RecordActivityResponse(
        streak=StreakResponse(
            current_days=state.current_days,
            longest_days=state.longest_days,
            updated_at=state.updated_at,
        )
    )


@router.get("/me/streak", response_model=StreakResponse)
async def get_my_streak(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """Get the caller's streak (zeros if they have never been active)."""
    state = await get_streak(db, user_id)
    if state is None:
        return StreakResponse()
    return StreakResponse(
        current_days=state.current_days,
        longest_days=state.longest_days,
        updated_at=state.updated_at,
    )


@router.get("/me/rewards", response_model=RewardsResponse)
async def get_my_rewards(
    user_id: int = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_session),
):
    """List the caller's badges."""
    rewards = await get_rewards(db, user_id)
    return RewardsResponse(
        rewards=[RewardResponse(kind=r.kind, awarded_at=r.awarded_at) for r in rewards],
        total=len(rewards),
    )
