"""Badge grants with duplicate prevention."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.db.models import Reward, Streak
from tasknest.db.upsert import insert_if_absent

logger = logging.getLogger(__name__)

# --- Streak badge thresholds (all are checked, not just the highest) ---
STREAK_BADGE_MAP = {
    7: "streak_7",
    30: "streak_30",
}


async def grant_reward(
    db: AsyncSession,
    user_id: int,
    kind: str,
    now: datetime | None = None,
) -> bool:
    """Grant a badge once. Returns True if newly granted, False if already held."""
    inserted = await insert_if_absent(
        db,
        Reward,
        ["user_id", "kind"],
        {"user_id": user_id, "kind": kind, "awarded_at": now or datetime.now(timezone.utc)},
    )
    if inserted:
        logger.info("Granted reward %s to user %s", kind, user_id)
    return inserted


async def evaluate_rewards(
    db: AsyncSession,
    user_id: int,
    current_days: int | None = None,
    now: datetime | None = None,
) -> list[str]:
    """Grant every streak badge whose threshold ``current_days`` meets.

    When ``current_days`` is omitted the stored streak is used. Returns the
    badge kinds granted by this call.
    """
    if current_days is None:
        result = await db.execute(select(Streak.current_days).where(Streak.user_id == user_id))
        current_days = result.scalar_one_or_none() or 0

    awarded = []
    for threshold, kind in STREAK_BADGE_MAP.items():
        if current_days >= threshold and await grant_reward(db, user_id, kind, now):
            awarded.append(kind)
    return awarded


async def get_rewards(db: AsyncSession, user_id: int) -> list[Reward]:
    """List a user's badges, newest first."""
    result = await db.execute(
        select(Reward).where(Reward.user_id == user_id).order_by(Reward.awarded_at.desc())
    )
    return list(result.scalars().all())
