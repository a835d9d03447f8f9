"""Reminder dispatcher: preference gate, failure isolation, admin-only manual sends."""

from __future__ import annotations

import asyncio
from datetime import timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.config import Settings
from tasknest.db.models import Milestone, Notification, ReminderLog, Task, TaskAssignee, UserPreferences
from tasknest.email.service import EmailService, UnconfiguredProvider
from tasknest.errors import DeliveryFailure, NotFound, PermissionDenied
from tasknest.reminders.dispatcher import (
    ReminderBatch,
    Sender,
    dispatch,
    dispatch_manual,
    run_due_tomorrow,
)
from tasknest.reminders.recipients import resolve_recipient_ids, resolve_recipients
from tasknest.reminders.scanner import find_due_items
from tests.helpers import TeamFixture, utc

NOW = utc(2026, 3, 2, 8)
TOMORROW_NOON = utc(2026, 3, 3, 12)


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def _task(db: AsyncSession, team: TeamFixture, assignees, due_at=TOMORROW_NOON, status="todo") -> Task:
    task = Task(project_id=team.project.id, title="Write methods", status=status, due_at=due_at)
    db.add(task)
    await db.flush()
    for user in assignees:
        db.add(TaskAssignee(task_id=task.id, user_id=user.id))
    await db.commit()
    return await db.get(Task, task.id, populate_existing=True)


async def _opt_out(db: AsyncSession, *users) -> None:
    for user in users:
        db.add(UserPreferences(user_id=user.id, email_due=False))
    await db.commit()


class TestResolveRecipients:
    @pytest.mark.asyncio
    async def test_task_assignees_with_preferences(self, db_session: AsyncSession, team: TeamFixture):
        task = await _task(db_session, team, team.members)
        await _opt_out(db_session, team.members[1])

        recipients = await resolve_recipients(db_session, task, "assignees")

        assert [r.user_id for r in recipients] == [m.id for m in team.members]
        assert [r.email_due for r in recipients] == [True, False, True]

    @pytest.mark.asyncio
    async def test_task_all_mode_is_whole_team(self, db_session: AsyncSession, team: TeamFixture):
        task = await _task(db_session, team, team.members[:1])
        recipients = await resolve_recipients(db_session, task, "all")
        assert {r.user_id for r in recipients} == {team.admin.id, *(m.id for m in team.members)}

    @pytest.mark.asyncio
    async def test_milestone_always_whole_team(self, db_session: AsyncSession, team: TeamFixture):
        milestone = Milestone(project_id=team.project.id, title="Beta", due_at=TOMORROW_NOON)
        db_session.add(milestone)
        await db_session.commit()
        milestone = await db_session.get(Milestone, milestone.id, populate_existing=True)

        recipients = await resolve_recipients(db_session, milestone, "assignees")
        assert len(recipients) == 4
        assert team.outsider.id not in {r.user_id for r in recipients}

    @pytest.mark.asyncio
    async def test_explicit_ids_restricted_to_team(self, db_session: AsyncSession, team: TeamFixture):
        ids = [team.members[0].id, team.outsider.id]
        recipients = await resolve_recipient_ids(db_session, team.team.id, ids)
        assert [r.user_id for r in recipients] == [team.members[0].id]


class TestScanner:
    @pytest.mark.asyncio
    async def test_window_bounds_and_status(self, db_session: AsyncSession, team: TeamFixture):
        await _task(db_session, team, [], due_at=utc(2026, 3, 3, 0, 0))
        await _task(db_session, team, [], due_at=utc(2026, 3, 4, 0, 0))
        await _task(db_session, team, [], due_at=TOMORROW_NOON, status="done")
        db_session.add_all([
            Milestone(project_id=team.project.id, title="open", due_at=TOMORROW_NOON),
            Milestone(project_id=team.project.id, title="closed", status="done", due_at=TOMORROW_NOON),
        ])
        await db_session.commit()

        due = await find_due_items(db_session, utc(2026, 3, 3), utc(2026, 3, 4))

        assert [t.due_at for t in due.tasks] == [utc(2026, 3, 3, 0, 0)]
        assert [m.title for m in due.milestones] == ["open"]


class TestDispatch:
    @pytest.mark.asyncio
    async def test_two_opt_outs_of_three(
        self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService, email_provider
    ):
        task = await _task(db_session, team, team.members)
        await _opt_out(db_session, team.members[1], team.members[2])
        recipients = await resolve_recipients(db_session, task, "assignees")

        result = await dispatch(
            db_session, email_service, [ReminderBatch(task, recipients)], Sender(None, "TaskNest"), now=NOW
        )

        assert (result.sent, result.total) == (1, 3)
        assert await _count(db_session, Notification) == 3
        assert await _count(db_session, ReminderLog) == 1
        email_provider.send.assert_awaited_once()
        assert email_provider.send.await_args.args[0] == team.members[0].email

    @pytest.mark.asyncio
    async def test_payload_carries_render_fields(
        self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService
    ):
        task = await _task(db_session, team, team.members[:1])
        recipients = await resolve_recipients(db_session, task, "assignees")
        await dispatch(db_session, email_service, [ReminderBatch(task, recipients)], Sender(None, "TaskNest"), now=NOW)

        notification = (await db_session.execute(select(Notification))).scalar_one()
        assert notification.kind == "due_tomorrow"
        assert notification.payload["title"] == "Write methods"
        assert notification.payload["project_id"] == team.project.id
        assert notification.payload["project_name"] == "Thesis"
        assert notification.payload["sender_name"] == "TaskNest"

    @pytest.mark.asyncio
    async def test_failed_email_isolated(
        self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService, email_provider
    ):
        task = await _task(db_session, team, team.members)
        broken = team.members[0].email

        async def flaky(to_email, *_args):
            if to_email == broken:
                raise DeliveryFailure("bounced")
            return True

        email_provider.send.side_effect = flaky
        recipients = await resolve_recipients(db_session, task, "assignees")

        result = await dispatch(
            db_session, email_service, [ReminderBatch(task, recipients)], Sender(None, "TaskNest"), now=NOW
        )

        assert (result.sent, result.total) == (3, 3)
        assert email_provider.send.await_count == 3
        assert await _count(db_session, Notification) == 3
        assert await _count(db_session, ReminderLog) == 3
        failed = [o for o in result.outcomes if o.error]
        assert [o.recipient_id for o in failed] == [team.members[0].id]
        assert all(o.delivered for o in result.outcomes if not o.error)

    @pytest.mark.asyncio
    async def test_hung_transport_does_not_stall_batch(
        self, db_session: AsyncSession, team: TeamFixture, email_provider
    ):
        async def hang(to_email, *_args):
            if to_email == team.members[1].email:
                await asyncio.sleep(5)
            return True

        email_provider.send.side_effect = hang
        service = EmailService(provider=email_provider, settings=Settings(email_timeout_seconds=0.05))
        task = await _task(db_session, team, team.members)
        recipients = await resolve_recipients(db_session, task, "assignees")

        result = await dispatch(db_session, service, [ReminderBatch(task, recipients)], Sender(None, "TaskNest"), now=NOW)

        assert result.sent == 3
        assert [o.recipient_id for o in result.outcomes if o.error] == [team.members[1].id]


class TestDispatchManual:
    @pytest.mark.asyncio
    async def test_non_admin_rejected_without_writes(
        self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService, email_provider
    ):
        task = await _task(db_session, team, team.members)

        with pytest.raises(PermissionDenied):
            await dispatch_manual(
                db_session, email_service, "task", task.id, [m.id for m in team.members], team.members[0].id
            )

        assert await _count(db_session, Notification) == 0
        assert await _count(db_session, ReminderLog) == 0
        email_provider.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_of_another_team_rejected(
        self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService
    ):
        task = await _task(db_session, team, team.members)
        with pytest.raises(PermissionDenied):
            await dispatch_manual(db_session, email_service, "task", task.id, [team.members[0].id], team.outsider.id)

    @pytest.mark.asyncio
    async def test_unknown_entity(self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService):
        with pytest.raises(NotFound):
            await dispatch_manual(db_session, email_service, "milestone", 999, [1], team.admin.id)

    @pytest.mark.asyncio
    async def test_admin_sends_manual_reminder(
        self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService, email_provider
    ):
        task = await _task(db_session, team, team.members)
        await _opt_out(db_session, team.members[2])
        ids = [m.id for m in team.members] + [team.outsider.id, team.members[0].id]

        result = await dispatch_manual(db_session, email_service, "task", task.id, ids, team.admin.id, now=NOW)

        # four distinct ids requested; the outsider is skipped, one member opted out
        assert (result.sent, result.total) == (2, 4)
        assert email_provider.send.await_count == 2
        logs = (await db_session.execute(select(ReminderLog.sent_by))).scalars().all()
        assert logs == [team.admin.id, team.admin.id]
        payload = (await db_session.execute(select(Notification.payload))).scalars().first()
        assert payload["kind"] == "manual_reminder"
        assert payload["sender_name"] == "Ada"
        assert payload["sent_by"] == team.admin.id


class TestDueTomorrowRun:
    @pytest.mark.asyncio
    async def test_tasks_and_milestones(
        self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService, email_provider
    ):
        await _task(db_session, team, team.members[:2])
        await _task(db_session, team, [team.members[2]], due_at=utc(2026, 3, 5, 12))
        db_session.add(Milestone(project_id=team.project.id, title="Beta", due_at=TOMORROW_NOON))
        await db_session.commit()

        result = await run_due_tomorrow(db_session, email_service, now=NOW, zone=timezone.utc)

        assert result.tasks_processed == 1
        assert result.milestones_processed == 1
        # two assignees plus the four team members
        assert result.emails_sent == 6
        assert await _count(db_session, Notification) == 6
        sent_by = (await db_session.execute(select(ReminderLog.sent_by))).scalars().all()
        assert sent_by == [None] * 6

    @pytest.mark.asyncio
    async def test_unconfigured_provider_sends_nothing(self, db_session: AsyncSession, team: TeamFixture):
        await _task(db_session, team, team.members)
        service = EmailService(provider=UnconfiguredProvider("no key"), settings=Settings())

        result = await run_due_tomorrow(db_session, service, now=NOW, zone=timezone.utc)

        assert result.tasks_processed == 1
        assert result.emails_sent == 0
        # recipients still pass the preference gate and get the in-app reminder
        assert await _count(db_session, Notification) == 3
        assert await _count(db_session, ReminderLog) == 3

    @pytest.mark.asyncio
    async def test_nothing_due(self, db_session: AsyncSession, team: TeamFixture, email_service: EmailService):
        result = await run_due_tomorrow(db_session, email_service, now=NOW, zone=timezone.utc)
        assert (result.tasks_processed, result.milestones_processed, result.emails_sent) == (0, 0, 0)
