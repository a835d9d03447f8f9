"""Scheduler-facing HTTP trigger for the due-tomorrow reminder scan."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tasknest.auth.dependencies import verify_cron_secret
from tasknest.database import get_session
from tasknest.dependencies import get_email_service
from tasknest.email.service import EmailService
from tasknest.reminders.dispatcher import run_due_tomorrow
from tasknest.reminders.schemas import CronReminderResponse

router = APIRouter(prefix="/api/cron", tags=["Cron"], dependencies=[Depends(verify_cron_secret)])


@router.get("/reminders", response_model=CronReminderResponse)
async def cron_reminders(
    db: AsyncSession = Depends(get_session),
    email: EmailService = Depends(get_email_service),
):
    """Remind everyone with a task or milestone due tomorrow."""
    result = await run_due_tomorrow(db, email)
    return CronReminderResponse(
        success=True,
        tasksProcessed=result.tasks_processed,
        milestonesProcessed=result.milestones_processed,
        emailsSent=result.emails_sent,
    )
