"""Scheduler-facing endpoints: /api/cron/reminders and /api/jobs/{job_name}."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.db.models import ActivityEvent, Milestone, Notification, Task, TaskAssignee
from tests.helpers import TeamFixture

CRON_HEADERS = {"Authorization": "Bearer test-cron-secret"}


async def _due_tomorrow(db: AsyncSession, team: TeamFixture) -> None:
    due = datetime.now(timezone.utc) + timedelta(days=1)
    task = Task(project_id=team.project.id, title="Submit draft", due_at=due)
    db.add_all([task, Milestone(project_id=team.project.id, title="Review", due_at=due)])
    await db.flush()
    db.add(TaskAssignee(task_id=task.id, user_id=team.members[0].id))
    await db.commit()


@pytest.mark.asyncio
async def test_cron_requires_secret(client: AsyncClient) -> None:
    assert (await client.get("/api/cron/reminders")).status_code == 401
    wrong = await client.get("/api/cron/reminders", headers={"Authorization": "Bearer nope"})
    assert wrong.status_code == 401


@pytest.mark.asyncio
async def test_cron_reminders_reports_counts(
    client: AsyncClient, db_session: AsyncSession, team: TeamFixture, email_provider
) -> None:
    await _due_tomorrow(db_session, team)

    response = await client.get("/api/cron/reminders", headers=CRON_HEADERS)

    assert response.status_code == 200
    # One assignee for the task, the whole four-person team for the milestone.
    assert response.json() == {
        "success": True,
        "tasksProcessed": 1,
        "milestonesProcessed": 1,
        "emailsSent": 5,
    }
    assert email_provider.send.await_count == 5


@pytest.mark.asyncio
async def test_cron_reminders_nothing_due(client: AsyncClient, team: TeamFixture) -> None:
    response = await client.get("/api/cron/reminders", headers=CRON_HEADERS)
    assert response.json() == {
        "success": True,
        "tasksProcessed": 0,
        "milestonesProcessed": 0,
        "emailsSent": 0,
    }


@pytest.mark.asyncio
async def test_job_trigger_runs_due_tomorrow(
    client: AsyncClient, db_session: AsyncSession, team: TeamFixture
) -> None:
    await _due_tomorrow(db_session, team)

    response = await client.post("/api/jobs/due-tomorrow", headers=CRON_HEADERS)

    assert response.status_code == 200
    assert response.text == "ok"
    count = await db_session.scalar(select(func.count()).select_from(Notification))
    assert count == 5


@pytest.mark.asyncio
async def test_job_trigger_weekly_digest(
    client: AsyncClient, db_session: AsyncSession, team: TeamFixture
) -> None:
    db_session.add(
        ActivityEvent(
            user_id=team.members[0].id,
            kind="checkin",
            created_at=datetime.now(timezone.utc) - timedelta(days=1),
        )
    )
    await db_session.commit()

    response = await client.post("/api/jobs/weekly-digest", headers=CRON_HEADERS)

    assert response.text == "ok"
    kinds = (await db_session.execute(select(Notification.kind))).scalars().all()
    assert kinds == ["weekly_digest"]


@pytest.mark.asyncio
async def test_job_failure_returns_500(client: AsyncClient) -> None:
    with patch("tasknest.workers.jobs.rollover_streaks", AsyncMock(side_effect=RuntimeError("db gone"))):
        response = await client.post("/api/jobs/streak-rollover", headers=CRON_HEADERS)
    assert response.status_code == 500
    assert response.text == "db gone"


@pytest.mark.asyncio
async def test_unknown_job_is_404(client: AsyncClient) -> None:
    response = await client.post("/api/jobs/compact-logs", headers=CRON_HEADERS)
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_jobs_require_secret(client: AsyncClient) -> None:
    response = await client.post("/api/jobs/due-tomorrow")
    assert response.status_code == 401
