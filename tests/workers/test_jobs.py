"""arq job wiring and direct job runs against the test database."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.database import Database
from tasknest.db.models import Streak
from tasknest.email.service import EmailService
from tasknest.gamification.streak_service import get_day_zone
from tasknest.workers.jobs import (
    JOBS,
    WorkerSettings,
    due_tomorrow_job,
    streak_rollover_job,
)
from tests.helpers import TeamFixture


def test_every_job_is_registered_and_scheduled() -> None:
    assert set(JOBS.values()) == set(WorkerSettings.functions)
    assert {job.coroutine for job in WorkerSettings.cron_jobs} == set(WorkerSettings.functions)


def test_digest_runs_on_mondays() -> None:
    digest = next(job for job in WorkerSettings.cron_jobs if job.name.endswith("weekly_digest_job"))
    assert digest.weekday in ("mon", 0)


@pytest.mark.asyncio
async def test_due_tomorrow_job_with_nothing_due(
    database: Database, email_service: EmailService, team: TeamFixture
) -> None:
    result = await due_tomorrow_job({"database": database, "email": email_service})
    assert result == {"tasks_processed": 0, "milestones_processed": 0, "emails_sent": 0}


@pytest.mark.asyncio
async def test_rollover_job_resets_stale_streak(
    database: Database, db_session: AsyncSession, email_service: EmailService, team: TeamFixture
) -> None:
    stale = datetime.now(timezone.utc) - timedelta(days=5)
    db_session.add(Streak(user_id=team.members[0].id, current_days=4, longest_days=4, updated_at=stale))
    await db_session.commit()

    reset = await streak_rollover_job({"database": database, "email": email_service})

    assert reset == 1
    current = await db_session.scalar(
        select(Streak.current_days).where(Streak.user_id == team.members[0].id)
    )
    assert current == 0


@pytest.mark.asyncio
async def test_job_failure_is_reraised(database: Database, email_service: EmailService) -> None:
    with patch("tasknest.workers.jobs.run_due_tomorrow", AsyncMock(side_effect=RuntimeError("boom"))):
        with pytest.raises(RuntimeError, match="boom"):
            await due_tomorrow_job({"database": database, "email": email_service})


def test_cron_hours_use_day_zone() -> None:
    assert WorkerSettings.timezone == get_day_zone()
