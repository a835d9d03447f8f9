"""ORM models.

Users, teams, projects, tasks and milestones belong to the CRUD side of the
product and are only read here. The engagement tables (events, streaks,
rewards, notifications, reminder logs, preferences) are owned by this service.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    BigInteger,
    Boolean,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tasknest.db.base import Base, BigIntPK, JSONDocument, TZDateTime, utcnow

# ---------------------------------------------------------------------------
# Read-only: users, teams, projects
# ---------------------------------------------------------------------------


class User(Base):
    """Maps to the 'users' table."""

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True, unique=True)
    name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, nullable=False, default=utcnow)

    preferences: Mapped[UserPreferences | None] = relationship(
        "UserPreferences", back_populates="user", uselist=False
    )


class Team(Base):
    """Maps to the 'teams' table."""

    __tablename__ = "teams"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)


class Membership(Base):
    """Team roster entry: role is 'admin' or 'member'."""

    __tablename__ = "memberships"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="memberships_team_id_user_id_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default="member")

    user: Mapped[User] = relationship("User", lazy="joined")


class Project(Base):
    """Maps to the 'projects' table."""

    __tablename__ = "projects"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    team_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)


# ---------------------------------------------------------------------------
# Read-only: tasks and milestones
# ---------------------------------------------------------------------------


class Task(Base):
    """Maps to the 'tasks' table."""

    __tablename__ = "tasks"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="todo")
    due_at: Mapped[datetime | None] = mapped_column(TZDateTime, nullable=True)

    project: Mapped[Project] = relationship("Project", lazy="joined")
    assignees: Mapped[list[TaskAssignee]] = relationship("TaskAssignee", lazy="selectin")


class TaskAssignee(Base):
    """Maps to the 'task_assignees' join table."""

    __tablename__ = "task_assignees"

    task_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True
    )
    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )


class Milestone(Base):
    """Maps to the 'milestones' table: status is 'open' or 'done'."""

    __tablename__ = "milestones"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    project_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(300), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="open")
    due_at: Mapped[datetime | None] = mapped_column(TZDateTime, nullable=True)

    project: Mapped[Project] = relationship("Project", lazy="joined")


# ---------------------------------------------------------------------------
# Engagement: events, streaks, rewards
# ---------------------------------------------------------------------------


class ActivityEvent(Base):
    """Append-only record of qualifying user actions."""

    __tablename__ = "events"
    __table_args__ = (Index("idx_events_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    team_id: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True
    )
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any] | None] = mapped_column("payload_json", JSONDocument, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, nullable=False, default=utcnow)


class Streak(Base):
    """Daily activity streak: single row per user."""

    __tablename__ = "streaks"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    current_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_days: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    updated_at: Mapped[datetime] = mapped_column(TZDateTime, nullable=False, default=utcnow)


class Reward(Base):
    """Badges earned by users: UNIQUE(user_id, kind) prevents duplicates."""

    __tablename__ = "rewards"
    __table_args__ = (
        UniqueConstraint("user_id", "kind", name="rewards_user_id_kind_key"),
    )

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    awarded_at: Mapped[datetime] = mapped_column(TZDateTime, nullable=False, default=utcnow)


# ---------------------------------------------------------------------------
# Notifications, reminder audit, preferences
# ---------------------------------------------------------------------------


class Notification(Base):
    """Persisted in-app inbox entry. The payload shape is selected by ``kind``."""

    __tablename__ = "notifications"
    __table_args__ = (Index("idx_notifications_user_created", "user_id", "created_at"),)

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    payload: Mapped[dict[str, Any]] = mapped_column("payload_json", JSONDocument, nullable=False, default=dict)
    read_at: Mapped[datetime | None] = mapped_column(TZDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(TZDateTime, nullable=False, default=utcnow)


class ReminderLog(Base):
    """Append-only audit of reminder sends. ``sent_by`` is NULL for scheduled sends."""

    __tablename__ = "reminder_logs"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, autoincrement=True)
    entity_type: Mapped[str] = mapped_column(String(16), nullable=False)
    entity_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    recipient_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    sent_by: Mapped[int | None] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(TZDateTime, nullable=False, default=utcnow)


class UserPreferences(Base):
    """Per-user email opt-outs. Every flag defaults to on."""

    __tablename__ = "user_prefs"

    user_id: Mapped[int] = mapped_column(
        BigInteger, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    email_mentions: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_due: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_digest: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    updated_at: Mapped[datetime | None] = mapped_column(TZDateTime, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="preferences")

