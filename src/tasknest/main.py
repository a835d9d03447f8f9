"""FastAPI application factory."""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from tasknest.config import get_settings
from tasknest.database import Database
from tasknest.email.service import EmailService
from tasknest.gamification.router import router as gamification_router
from tasknest.health.router import router as health_router
from tasknest.middleware import setup_middleware
from tasknest.notifications.router import router as notifications_router
from tasknest.redis_client import close_redis, create_redis
from tasknest.reminders.cron_router import router as cron_router
from tasknest.reminders.router import router as reminders_router
from tasknest.workers.router import router as jobs_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle.

    Anything already attached to ``app.state`` (tests do this) is kept and
    left for its owner to close.
    """
    settings = get_settings()
    owned_database = None
    owned_redis = None
    if getattr(app.state, "database", None) is None:
        owned_database = app.state.database = Database.from_url(settings.database_url)
    if getattr(app.state, "redis", None) is None:
        owned_redis = app.state.redis = create_redis(settings.redis_url)
    if getattr(app.state, "email", None) is None:
        app.state.email = EmailService(settings=settings)

    yield

    if owned_database is not None:
        await owned_database.dispose()
    await close_redis(owned_redis)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="TaskNest Engagement API",
        description="Streaks, rewards, reminders and notifications for TaskNest teams",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(gamification_router)
    app.include_router(notifications_router)
    app.include_router(reminders_router)
    app.include_router(cron_router)
    app.include_router(jobs_router)

    return app


app = create_app()
