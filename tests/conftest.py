"""Shared test fixtures.

Every test gets a fresh in-memory SQLite database with the full schema,
and an email service whose transport is an ``AsyncMock``.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

os.environ["TASKNEST_JWT_SECRET"] = "test-jwt-secret-with-enough-length-for-hs256"
os.environ["TASKNEST_CRON_SECRET"] = "test-cron-secret"
os.environ["TASKNEST_LOG_FORMAT"] = "console"
os.environ["TASKNEST_STREAK_TIMEZONE"] = "UTC"

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.pool import StaticPool

from tasknest.config import get_settings

get_settings.cache_clear()

from tasknest.database import Database  # noqa: E402
from tasknest.db.base import Base  # noqa: E402
from tasknest.db.models import Membership, Project, Team, User  # noqa: E402
from tasknest.email.service import BaseEmailProvider, EmailService  # noqa: E402
from tasknest.main import create_app  # noqa: E402
from tests.helpers import TeamFixture  # noqa: E402


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[Database, None]:
    """Fresh in-memory database with every table created."""
    db = Database(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with db.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database: Database) -> AsyncGenerator[AsyncSession, None]:
    """Get a direct database session for test setup and assertions."""
    async with database.session() as session:
        yield session


@pytest.fixture
def email_provider() -> MagicMock:
    """Transport double; inspect ``send.await_args_list`` for delivered mail."""
    provider = MagicMock(spec=BaseEmailProvider)
    provider.name = "mock"
    provider.send = AsyncMock(return_value=True)
    return provider


@pytest.fixture
def email_service(email_provider: MagicMock) -> EmailService:
    return EmailService(provider=email_provider, settings=get_settings())


@pytest.fixture
def app(database: Database, email_service: EmailService) -> FastAPI:
    """App wired to the test database, mock email transport and a fake redis."""
    application = create_app()
    application.state.database = database
    application.state.email = email_service
    redis = MagicMock()
    redis.ping = AsyncMock(return_value=True)
    application.state.redis = redis
    return application


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async HTTP test client (lifespan is not run)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def team(db_session: AsyncSession) -> TeamFixture:
    """One team with an admin, three members, and one user from another team."""
    home = Team(name="Capstone")
    other = Team(name="Other")
    db_session.add_all([home, other])
    await db_session.flush()

    project = Project(team_id=home.id, name="Thesis")
    admin = User(email="ada@example.com", name="Ada")
    members = [
        User(email="bo@example.com", name="Bo"),
        User(email="cy@example.com", name="Cy"),
        User(email="di@example.com", name="Di"),
    ]
    outsider = User(email="ez@example.com", name="Ez")
    db_session.add_all([project, admin, *members, outsider])
    await db_session.flush()

    db_session.add(Membership(team_id=home.id, user_id=admin.id, role="admin"))
    for member in members:
        db_session.add(Membership(team_id=home.id, user_id=member.id, role="member"))
    db_session.add(Membership(team_id=other.id, user_id=outsider.id, role="admin"))
    await db_session.commit()

    return TeamFixture(team=home, project=project, admin=admin, members=members, outsider=outsider)
