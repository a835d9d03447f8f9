"""Small helpers shared by test modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from tasknest.auth.jwt import create_access_token
from tasknest.db.models import Project, Team, User


def auth_header(user_id: int) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@dataclass
class TeamFixture:
    team: Team
    project: Project
    admin: User
    members: list[User]
    outsider: User
