"""Daily activity streaks: event ingestion, streak advance, and rollover."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any
from zoneinfo import ZoneInfo

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.config import get_settings
from tasknest.db.models import ActivityEvent, Streak
from tasknest.db.upsert import insert_if_absent
from tasknest.errors import ConstraintViolation
from tasknest.gamification.reward_service import evaluate_rewards

logger = logging.getLogger(__name__)

ACTIVITY_KINDS = frozenset({"checkin", "task_completed"})

# A streak survives one missed calendar day.
GRACE_WINDOW = timedelta(hours=48)

_MAX_CAS_ATTEMPTS = 3


@dataclass(frozen=True)
class StreakState:
    current_days: int
    longest_days: int
    updated_at: datetime


def get_day_zone() -> tzinfo:
    """Zone whose midnight separates streak days (UTC unless configured)."""
    name = get_settings().streak_timezone
    if name.upper() == "UTC":
        return timezone.utc
    return ZoneInfo(name)


def local_day(dt: datetime, zone: tzinfo) -> date:
    """Calendar day of ``dt`` in ``zone``."""
    return dt.astimezone(zone).date()


def is_within_grace(now: datetime, last_event_at: datetime | None) -> bool:
    """True if the previous event is recent enough to continue the streak.

    A user with no earlier event is within grace.
    """
    if last_event_at is None:
        return True
    return now - last_event_at <= GRACE_WINDOW


def advance_streak(
    state: StreakState | None,
    now: datetime,
    last_event_at: datetime | None,
    zone: tzinfo,
) -> StreakState:
    """Compute the streak after one qualifying event at ``now``.

    Returns ``state`` unchanged when the streak was already advanced today.
    """
    if state is None:
        return StreakState(current_days=1, longest_days=1, updated_at=now)

    if local_day(state.updated_at, zone) >= local_day(now, zone):
        return state

    current = state.current_days + 1 if is_within_grace(now, last_event_at) else 1
    return replace(
        state,
        current_days=current,
        longest_days=max(state.longest_days, current),
        updated_at=now,
    )


async def append_event(
    db: AsyncSession,
    user_id: int,
    kind: str,
    payload: dict[str, Any] | None = None,
    team_id: int | None = None,
    now: datetime | None = None,
) -> ActivityEvent:
    """Append an activity event (flushed, not committed)."""
    if kind not in ACTIVITY_KINDS:
        msg = f"Invalid activity kind: {kind}. Must be one of {sorted(ACTIVITY_KINDS)}"
        raise ValueError(msg)
    event = ActivityEvent(
        user_id=user_id,
        team_id=team_id,
        kind=kind,
        payload=payload,
        created_at=now or datetime.now(timezone.utc),
    )
    db.add(event)
    await db.flush()
    return event


async def get_streak(db: AsyncSession, user_id: int) -> StreakState | None:
    """Read the user's streak row without going through the identity map."""
    result = await db.execute(
        select(Streak.current_days, Streak.longest_days, Streak.updated_at).where(
            Streak.user_id == user_id
        )
    )
    row = result.one_or_none()
    if row is None:
        return None
    return StreakState(current_days=row[0], longest_days=row[1], updated_at=row[2])


async def _last_event_before(db: AsyncSession, user_id: int, event: ActivityEvent) -> datetime | None:
    result = await db.execute(
        select(ActivityEvent.created_at)
        .where(ActivityEvent.user_id == user_id, ActivityEvent.id != event.id)
        .order_by(ActivityEvent.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def update_streak(
    db: AsyncSession,
    user_id: int,
    event: ActivityEvent,
    zone: tzinfo | None = None,
) -> StreakState:
    """Advance the user's streak for ``event`` with a compare-and-set write.

    The row is only overwritten if ``updated_at`` still holds the value that
    was read, so two concurrent calls cannot both increment from the same
    starting point. A lost race is retried from a fresh read.
    """
    zone = zone or get_day_zone()
    now = event.created_at
    last_event_at = await _last_event_before(db, user_id, event)

    for _ in range(_MAX_CAS_ATTEMPTS):
        state = await get_streak(db, user_id)
        new_state = advance_streak(state, now, last_event_at, zone)

        if state is None:
            inserted = await insert_if_absent(
                db,
                Streak,
                ["user_id"],
                {
                    "user_id": user_id,
                    "current_days": new_state.current_days,
                    "longest_days": new_state.longest_days,
                    "updated_at": new_state.updated_at,
                },
            )
            if inserted:
                return new_state
            continue

        if new_state is state:
            return state

        result = await db.execute(
            update(Streak)
            .where(Streak.user_id == user_id, Streak.updated_at == state.updated_at)
            .values(
                current_days=new_state.current_days,
                longest_days=new_state.longest_days,
                updated_at=new_state.updated_at,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 1:
            return new_state

    msg = f"Streak for user {user_id} changed concurrently {_MAX_CAS_ATTEMPTS} times"
    raise ConstraintViolation(msg)


async def record_activity(
    db: AsyncSession,
    user_id: int,
    kind: str,
    payload: dict[str, Any] | None = None,
    team_id: int | None = None,
    now: datetime | None = None,
    zone: tzinfo | None = None,
) -> StreakState | None:
    """Record a qualifying action, then advance the streak and grant badges.

    The event is committed first. Streak and reward bookkeeping run
    afterwards; if they fail the error is logged, the bookkeeping is rolled
    back, and None is returned so the triggering action still succeeds.
    """
    event = await append_event(db, user_id, kind, payload, team_id, now)
    await db.commit()
    event_id = event.id

    try:
        state = await update_streak(db, user_id, event, zone)
        await evaluate_rewards(db, user_id, state.current_days, now=event.created_at)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Streak bookkeeping failed for user %s (event %s)", user_id, event_id)
        return None
    return state


async def rollover_streaks(db: AsyncSession, now: datetime | None = None) -> int:
    """Zero out streaks of users with no event inside the grace window.

    ``longest_days`` and ``updated_at`` are left as they are. Returns the
    number of streaks reset.
    """
    if now is None:
        now = datetime.now(timezone.utc)
    cutoff = now - GRACE_WINDOW

    last_event = (
        select(ActivityEvent.user_id, func.max(ActivityEvent.created_at).label("last_at"))
        .group_by(ActivityEvent.user_id)
        .subquery()
    )
    result = await db.execute(
        select(Streak.user_id, Streak.current_days, last_event.c.last_at)
        .outerjoin(last_event, last_event.c.user_id == Streak.user_id)
        .where(Streak.current_days != 0)
    )

    reset = 0
    for user_id, current_days, last_at in result.all():
        if last_at is not None and _as_aware(last_at) >= cutoff:
            continue
        # Matches nothing if a concurrent event already moved the streak on.
        updated = await db.execute(
            update(Streak)
            .where(Streak.user_id == user_id, Streak.current_days == current_days)
            .values(current_days=0)
            .execution_options(synchronize_session=False)
        )
        reset += updated.rowcount

    await db.commit()
    logger.info("Streak rollover complete: reset %d streaks", reset)
    return reset


def _as_aware(value: datetime | str) -> datetime:
    # func.max() loses the column type on some backends
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
