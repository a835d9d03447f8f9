"""HTTP API: manual reminders and the pickers that feed them."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.db.models import Milestone, Notification, Task, TaskAssignee
from tests.helpers import TeamFixture, auth_header


@pytest.fixture
async def task(db_session: AsyncSession, team: TeamFixture) -> Task:
    task = Task(
        project_id=team.project.id,
        title="Draft chapter 2",
        due_at=datetime.now(timezone.utc) + timedelta(days=2),
    )
    db_session.add(task)
    await db_session.flush()
    db_session.add_all(
        [
            TaskAssignee(task_id=task.id, user_id=team.members[0].id),
            TaskAssignee(task_id=task.id, user_id=team.members[2].id),
        ]
    )
    await db_session.commit()
    return task


@pytest.mark.asyncio
async def test_admin_sends_reminder(
    client: AsyncClient, db_session: AsyncSession, team: TeamFixture, task: Task, email_provider
) -> None:
    ids = [team.members[0].id, team.members[1].id, team.outsider.id]
    response = await client.post(
        f"/api/v1/reminders/task/{task.id}",
        json={"recipient_ids": ids},
        headers=auth_header(team.admin.id),
    )

    assert response.status_code == 200
    assert response.json() == {
        "sent": 2,
        "total": 3,
        "message": "Sent 2 of 3 reminders; recipients with notifications disabled were skipped",
    }
    assert email_provider.send.await_count == 2
    count = await db_session.scalar(select(func.count()).select_from(Notification))
    assert count == 2


@pytest.mark.asyncio
async def test_member_cannot_send(client: AsyncClient, team: TeamFixture, task: Task) -> None:
    response = await client.post(
        f"/api/v1/reminders/task/{task.id}",
        json={"recipient_ids": [team.members[1].id]},
        headers=auth_header(team.members[0].id),
    )
    assert response.status_code == 403
    assert response.json() == {"detail": "Only admins can send reminders"}


@pytest.mark.asyncio
async def test_missing_milestone_is_404(client: AsyncClient, team: TeamFixture) -> None:
    response = await client.post(
        "/api/v1/reminders/milestone/9999",
        json={"recipient_ids": [team.members[0].id]},
        headers=auth_header(team.admin.id),
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_empty_recipient_list_is_422(client: AsyncClient, team: TeamFixture, task: Task) -> None:
    response = await client.post(
        f"/api/v1/reminders/task/{task.id}",
        json={"recipient_ids": []},
        headers=auth_header(team.admin.id),
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_upcoming_lists_open_items(
    client: AsyncClient, db_session: AsyncSession, team: TeamFixture, task: Task
) -> None:
    now = datetime.now(timezone.utc)
    db_session.add_all(
        [
            Task(project_id=team.project.id, title="Done already", status="done", due_at=now + timedelta(days=1)),
            Task(project_id=team.project.id, title="Far off", due_at=now + timedelta(days=30)),
            Milestone(project_id=team.project.id, title="Defense", due_at=now + timedelta(days=3)),
        ]
    )
    await db_session.commit()

    response = await client.get(
        f"/api/v1/projects/{team.project.id}/upcoming", headers=auth_header(team.members[1].id)
    )

    assert response.status_code == 200
    data = response.json()
    assert [t["title"] for t in data["tasks"]] == ["Draft chapter 2"]
    assert sorted(data["tasks"][0]["assignee_ids"]) == [team.members[0].id, team.members[2].id]
    assert [m["title"] for m in data["milestones"]] == ["Defense"]


@pytest.mark.asyncio
async def test_upcoming_for_outsider_is_403(client: AsyncClient, team: TeamFixture) -> None:
    response = await client.get(
        f"/api/v1/projects/{team.project.id}/upcoming", headers=auth_header(team.outsider.id)
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_members_roster(client: AsyncClient, team: TeamFixture) -> None:
    response = await client.get(
        f"/api/v1/projects/{team.project.id}/members", headers=auth_header(team.members[0].id)
    )
    assert response.status_code == 200
    roster = {m["email"]: m["role"] for m in response.json()}
    assert roster == {
        "ada@example.com": "admin",
        "bo@example.com": "member",
        "cy@example.com": "member",
        "di@example.com": "member",
    }


@pytest.mark.asyncio
async def test_is_admin(client: AsyncClient, team: TeamFixture) -> None:
    url = f"/api/v1/projects/{team.project.id}/is-admin"
    assert (await client.get(url, headers=auth_header(team.admin.id))).json() == {"is_admin": True}
    assert (await client.get(url, headers=auth_header(team.members[0].id))).json() == {"is_admin": False}
    assert (await client.get(url, headers=auth_header(team.outsider.id))).json() == {"is_admin": False}

    unknown = await client.get("/api/v1/projects/9999/is-admin", headers=auth_header(team.admin.id))
    assert unknown.json() == {"is_admin": False}


@pytest.mark.asyncio
async def test_task_assignees(client: AsyncClient, team: TeamFixture, task: Task) -> None:
    response = await client.get(f"/api/v1/tasks/{task.id}/assignees", headers=auth_header(team.admin.id))
    assert response.status_code == 200
    assert [a["name"] for a in response.json()] == ["Bo", "Di"]

    missing = await client.get("/api/v1/tasks/9999/assignees", headers=auth_header(team.admin.id))
    assert missing.status_code == 404
