"""Scheduled engagement jobs, run by arq or triggered over HTTP.

Each job opens its own session from the ``Database`` in ``ctx`` so no
connection outlives a run. Failures are logged and re-raised; nothing is
retried automatically.
"""

from __future__ import annotations

import logging
from typing import Any

from arq import cron
from arq.connections import RedisSettings

from tasknest.config import get_settings
from tasknest.database import Database
from tasknest.email.service import EmailService
from tasknest.gamification.digest_service import send_weekly_digests
from tasknest.gamification.streak_service import get_day_zone, rollover_streaks
from tasknest.reminders.dispatcher import run_due_tomorrow

logger = logging.getLogger(__name__)


async def startup(ctx: dict[str, Any]) -> None:
    """Build the database handle and email service for this worker process."""
    settings = get_settings()
    ctx["database"] = Database.from_url(settings.database_url)
    ctx["email"] = EmailService(settings=settings)
    logger.info("Engagement worker started")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Clean up on worker shutdown."""
    database: Database | None = ctx.get("database")
    if database:
        await database.dispose()
    logger.info("Engagement worker shut down")


async def due_tomorrow_job(ctx: dict[str, Any]) -> dict[str, int]:
    """Daily: remind assignees and teams about items due tomorrow."""
    database: Database = ctx["database"]
    try:
        async with database.session() as db:
            result = await run_due_tomorrow(db, ctx["email"])
    except Exception:
        logger.exception("Due-tomorrow job failed")
        raise
    return {
        "tasks_processed": result.tasks_processed,
        "milestones_processed": result.milestones_processed,
        "emails_sent": result.emails_sent,
    }


async def streak_rollover_job(ctx: dict[str, Any]) -> int:
    """Daily: zero streaks of users inactive beyond the grace window."""
    database: Database = ctx["database"]
    try:
        async with database.session() as db:
            return await rollover_streaks(db)
    except Exception:
        logger.exception("Streak rollover job failed")
        raise


async def weekly_digest_job(ctx: dict[str, Any]) -> int:
    """Weekly: one digest notification and email per active user."""
    database: Database = ctx["database"]
    try:
        async with database.session() as db:
            return await send_weekly_digests(db, ctx["email"])
    except Exception:
        logger.exception("Weekly digest job failed")
        raise


JOBS = {
    "due-tomorrow": due_tomorrow_job,
    "streak-rollover": streak_rollover_job,
    "weekly-digest": weekly_digest_job,
}

_settings = get_settings()


class WorkerSettings:
    """arq worker settings for the engagement scheduler.

    arq's cron jobs are unique by default, so a run is skipped while the
    previous one of the same job is still in flight.
    """

    functions = [due_tomorrow_job, streak_rollover_job, weekly_digest_job]
    cron_jobs = [
        cron(due_tomorrow_job, hour=_settings.due_reminder_hour, minute=0),
        cron(streak_rollover_job, hour=_settings.streak_rollover_hour, minute=5),
        cron(weekly_digest_job, weekday="mon", hour=_settings.weekly_digest_hour, minute=0),
    ]
    on_startup = startup
    on_shutdown = shutdown
    redis_settings = RedisSettings.from_dsn(_settings.arq_redis_url)
    # Cron hours fall on the same day boundary as the due-tomorrow window.
    timezone = get_day_zone()
    max_jobs = 3
    job_timeout = 600
    allow_abort_jobs = True
