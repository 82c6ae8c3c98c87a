"""Initial schema - conversations, tasks and meetings

Revision ID: 001
Revises: None
Create Date: 2026-09-28

"""
from typing import Sequence, Union

from alembic import op
from sqlalchemy import text

revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()

    # One conversation document per user; pending_action is JSON or NULL
    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS conversations (
            user_id TEXT PRIMARY KEY,
            messages TEXT NOT NULL DEFAULT '[]',
            pending_action TEXT,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS tasks (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            action_id TEXT NOT NULL UNIQUE,
            title TEXT NOT NULL,
            description TEXT DEFAULT '',
            schedule_type TEXT NOT NULL DEFAULT 'one-day',
            start_date_iso TEXT,
            schedule_days TEXT DEFAULT '[]',
            fixed_time TEXT,
            minutes_before_start INTEGER,
            is_routine INTEGER DEFAULT 0,
            priority TEXT DEFAULT 'medium',
            is_completed INTEGER DEFAULT 0,
            created_at TEXT NOT NULL
        )
    """))

    conn.execute(text("""
        CREATE TABLE IF NOT EXISTS meetings (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL,
            action_id TEXT NOT NULL UNIQUE,
            title TEXT NOT NULL,
            description TEXT DEFAULT '',
            start_time TEXT NOT NULL,
            end_time TEXT NOT NULL,
            duration INTEGER NOT NULL DEFAULT 30,
            minutes_before_start INTEGER,
            is_recurring INTEGER DEFAULT 0,
            recurrence_pattern TEXT,
            location TEXT DEFAULT '',
            attendees TEXT DEFAULT '[]',
            created_at TEXT NOT NULL
        )
    """))

    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_tasks_user ON tasks (user_id)"))
    conn.execute(text("CREATE INDEX IF NOT EXISTS ix_meetings_user ON meetings (user_id)"))


def downgrade() -> None:
    conn = op.get_bind()
    conn.execute(text("DROP TABLE IF EXISTS meetings"))
    conn.execute(text("DROP TABLE IF EXISTS tasks"))
    conn.execute(text("DROP TABLE IF EXISTS conversations"))
