"""Engagement tables.

Creates events, streaks, rewards, notifications, reminder_logs and
user_prefs. The roster and task tables belong to the main TaskNest app;
they are created here only when absent so a fresh development database
can run the engine on its own.

Revision ID: 001_engagement_tables
Revises:
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_engagement_tables"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Roster and work items (owned by the main app) ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS users (
            id BIGSERIAL PRIMARY KEY,
            email VARCHAR(320) UNIQUE,
            name VARCHAR(100),
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS teams (
            id BIGSERIAL PRIMARY KEY,
            name VARCHAR(100) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS memberships (
            id BIGSERIAL PRIMARY KEY,
            team_id BIGINT NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            role VARCHAR(16) NOT NULL DEFAULT 'member',
            CONSTRAINT memberships_team_id_user_id_key UNIQUE (team_id, user_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS projects (
            id BIGSERIAL PRIMARY KEY,
            team_id BIGINT NOT NULL REFERENCES teams(id) ON DELETE CASCADE,
            name VARCHAR(200) NOT NULL
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS tasks (
            id BIGSERIAL PRIMARY KEY,
            project_id BIGINT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            title VARCHAR(300) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'todo',
            due_at TIMESTAMPTZ
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS task_assignees (
            task_id BIGINT NOT NULL REFERENCES tasks(id) ON DELETE CASCADE,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            PRIMARY KEY (task_id, user_id)
        )
    """)
    op.execute("""
        CREATE TABLE IF NOT EXISTS milestones (
            id BIGSERIAL PRIMARY KEY,
            project_id BIGINT NOT NULL REFERENCES projects(id) ON DELETE CASCADE,
            title VARCHAR(300) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'open',
            due_at TIMESTAMPTZ
        )
    """)
    op.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due_at ON tasks(due_at)")
    op.execute("CREATE INDEX IF NOT EXISTS idx_milestones_due_at ON milestones(due_at)")

    # --- Activity events ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS events (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            team_id BIGINT REFERENCES teams(id) ON DELETE SET NULL,
            kind VARCHAR(32) NOT NULL CHECK (kind IN ('checkin', 'task_completed')),
            payload_json JSONB,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_events_user_created
        ON events(user_id, created_at)
    """)

    # --- Streaks ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS streaks (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            current_days INTEGER NOT NULL DEFAULT 0,
            longest_days INTEGER NOT NULL DEFAULT 0,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (current_days <= longest_days)
        )
    """)

    # --- Rewards ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS rewards (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            kind VARCHAR(32) NOT NULL,
            awarded_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT rewards_user_id_kind_key UNIQUE (user_id, kind)
        )
    """)

    # --- Notifications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS notifications (
            id BIGSERIAL PRIMARY KEY,
            user_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            kind VARCHAR(32) NOT NULL,
            payload_json JSONB NOT NULL DEFAULT '{}',
            read_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_user_created
        ON notifications(user_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_notifications_unread
        ON notifications(user_id) WHERE read_at IS NULL
    """)

    # --- Reminder audit ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS reminder_logs (
            id BIGSERIAL PRIMARY KEY,
            entity_type VARCHAR(16) NOT NULL CHECK (entity_type IN ('task', 'milestone')),
            entity_id BIGINT NOT NULL,
            recipient_id BIGINT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            sent_by BIGINT REFERENCES users(id) ON DELETE SET NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_reminder_logs_entity
        ON reminder_logs(entity_type, entity_id)
    """)

    # --- Email preferences ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS user_prefs (
            user_id BIGINT PRIMARY KEY REFERENCES users(id) ON DELETE CASCADE,
            email_mentions BOOLEAN NOT NULL DEFAULT true,
            email_due BOOLEAN NOT NULL DEFAULT true,
            email_digest BOOLEAN NOT NULL DEFAULT true,
            updated_at TIMESTAMPTZ
        )
    """)


def downgrade() -> None:
    # Only the engagement tables; the main app owns the rest.
    op.execute("DROP TABLE IF EXISTS user_prefs CASCADE")
    op.execute("DROP TABLE IF EXISTS reminder_logs CASCADE")
    op.execute("DROP TABLE IF EXISTS notifications CASCADE")
    op.execute("DROP TABLE IF EXISTS rewards CASCADE")
    op.execute("DROP TABLE IF EXISTS streaks CASCADE")
    op.execute("DROP TABLE IF EXISTS events CASCADE")
