"""HTTP triggers for the scheduled jobs, for schedulers that cannot run arq."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from tasknest.auth.dependencies import verify_cron_secret
from tasknest.database import get_database
from tasknest.dependencies import get_email_service
from tasknest.errors import NotFound
from tasknest.workers.jobs import JOBS

router = APIRouter(prefix="/api/jobs", tags=["Jobs"], dependencies=[Depends(verify_cron_secret)])


@router.post("/{job_name}", response_class=PlainTextResponse)
async def trigger_job(job_name: str, request: Request) -> PlainTextResponse:
    """Run one job to completion. Answers ``ok``, or the error text with a 500."""
    job = JOBS.get(job_name)
    if job is None:
        raise NotFound(f"Unknown job: {job_name}")

    ctx = {"database": get_database(request), "email": get_email_service(request)}
    try:
        await job(ctx)
    except Exception as exc:
        return PlainTextResponse(str(exc) or exc.__class__.__name__, status_code=500)
    return PlainTextResponse("ok")
