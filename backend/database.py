import json
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Optional

import config
from errors import ConcurrentUpdateError, StorageError
from models import Conversation, Meeting, MeetingSlots, Task, TaskSlots

logger = logging.getLogger(__name__)

DATABASE_PATH = config.DATABASE_PATH


@contextmanager
def get_db():
    """Context manager for database connections."""
    conn = sqlite3.connect(DATABASE_PATH)
    conn.row_factory = sqlite3.Row
    try:
        yield conn
    finally:
        conn.close()


def init_db():
    """Initialize database by running Alembic migrations."""
    import subprocess
    import os

    # Run alembic upgrade from the backend directory
    backend_dir = os.path.dirname(os.path.abspath(__file__))
    subprocess.run(
        ["alembic", "upgrade", "head"],
        cwd=backend_dir,
        check=True
    )


# Conversation operations
def _row_to_conversation(row) -> Conversation:
    pending = json.loads(row["pending_action"]) if row["pending_action"] else None
    return Conversation(
        user_id=row["user_id"],
        messages=json.loads(row["messages"]),
        pending_action=pending,
        version=row["version"],
    )


def get_conversation(user_id: str) -> Optional[Conversation]:
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM conversations WHERE user_id = ?", (user_id,)
        ).fetchone()
        if row:
            return _row_to_conversation(row)
    return None


def save_conversation(conversation: Conversation) -> Conversation:
    """
    Write the whole conversation document back.

    The write only succeeds if the stored version still matches the version
    that was read (0 = not stored yet). Returns the conversation at its new
    version; raises ConcurrentUpdateError if another turn got there first.
    """
    now = datetime.now().isoformat()
    messages_json = json.dumps([m.model_dump() for m in conversation.messages])
    pending_json = (
        conversation.pending_action.model_dump_json() if conversation.pending_action else None
    )
    expected = conversation.version

    with get_db() as conn:
        if expected == 0:
            try:
                conn.execute(
                    """INSERT INTO conversations
                       (user_id, messages, pending_action, version, created_at, updated_at)
                       VALUES (?, ?, ?, 1, ?, ?)""",
                    (conversation.user_id, messages_json, pending_json, now, now)
                )
            except sqlite3.IntegrityError as e:
                raise ConcurrentUpdateError(conversation.user_id, expected) from e
        else:
            cursor = conn.execute(
                """UPDATE conversations
                   SET messages = ?, pending_action = ?, version = version + 1, updated_at = ?
                   WHERE user_id = ? AND version = ?""",
                (messages_json, pending_json, now, conversation.user_id, expected)
            )
            if cursor.rowcount == 0:
                raise ConcurrentUpdateError(conversation.user_id, expected)
        conn.commit()

    return conversation.model_copy(update={"version": expected + 1})


def delete_conversation(user_id: str) -> bool:
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM conversations WHERE user_id = ?", (user_id,))
        conn.commit()
        return cursor.rowcount > 0


# Finalized records
def _row_to_task(row) -> Task:
    return Task(
        id=row["id"],
        user_id=row["user_id"],
        action_id=row["action_id"],
        title=row["title"],
        description=row["description"] or "",
        schedule_type=row["schedule_type"],
        start_date_iso=row["start_date_iso"],
        schedule_days=json.loads(row["schedule_days"] or "[]"),
        fixed_time=row["fixed_time"],
        minutes_before_start=row["minutes_before_start"],
        is_routine=bool(row["is_routine"]),
        priority=row["priority"],
        is_completed=bool(row["is_completed"]),
        created_at=row["created_at"],
    )


def _row_to_meeting(row) -> Meeting:
    return Meeting(
        id=row["id"],
        user_id=row["user_id"],
        action_id=row["action_id"],
        title=row["title"],
        description=row["description"] or "",
        start_time=row["start_time"],
        end_time=row["end_time"],
        duration=row["duration"],
        minutes_before_start=row["minutes_before_start"],
        is_recurring=bool(row["is_recurring"]),
        recurrence_pattern=row["recurrence_pattern"],
        location=row["location"] or "",
        attendees=json.loads(row["attendees"] or "[]"),
        created_at=row["created_at"],
    )


def find_task_by_action_db(action_id: str) -> Optional[Task]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM tasks WHERE action_id = ?", (action_id,)).fetchone()
        if row:
            return _row_to_task(row)
    return None


def find_meeting_by_action_db(action_id: str) -> Optional[Meeting]:
    with get_db() as conn:
        row = conn.execute("SELECT * FROM meetings WHERE action_id = ?", (action_id,)).fetchone()
        if row:
            return _row_to_meeting(row)
    return None


def create_task_db(
    slots: TaskSlots,
    user_id: str,
    action_id: str,
    minutes_before_start: Optional[int] = None,
) -> Task:
    """Create a task from a confirmed slot set.
    A second call with the same action_id returns the task already stored.
    fixed_time takes precedence over minutes_before_start.
    """
    try:
        existing = find_task_by_action_db(action_id)
    except sqlite3.Error as e:
        raise StorageError(f"Could not read tasks: {e}") from e
    if existing:
        logger.info("Task for action %s already exists, not creating again", action_id)
        return existing

    fixed_time = slots.schedule_time.fixed_time
    lead = None if fixed_time else minutes_before_start
    task = Task(
        id=str(uuid.uuid4()),
        user_id=user_id,
        action_id=action_id,
        title=slots.title,
        description=slots.description or "",
        schedule_type=slots.schedule_type,
        start_date_iso=slots.start_date_iso,
        schedule_days=slots.schedule_days,
        fixed_time=fixed_time,
        minutes_before_start=lead,
        is_routine=slots.is_routine,
        priority=slots.priority,
        created_at=datetime.now().isoformat(),
    )
    try:
        with get_db() as conn:
            conn.execute(
                """INSERT INTO tasks
                   (id, user_id, action_id, title, description, schedule_type, start_date_iso,
                    schedule_days, fixed_time, minutes_before_start, is_routine, priority,
                    is_completed, created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?)""",
                (task.id, user_id, action_id, task.title, task.description, task.schedule_type,
                 task.start_date_iso, json.dumps(task.schedule_days), task.fixed_time,
                 task.minutes_before_start, int(task.is_routine), task.priority, task.created_at)
            )
            conn.commit()
    except sqlite3.IntegrityError as e:
        # Lost a race with another commit of the same action
        existing = find_task_by_action_db(action_id)
        if existing is None:
            raise StorageError(f"Could not save task: {e}") from e
        return existing
    except sqlite3.Error as e:
        raise StorageError(f"Could not save task: {e}") from e
    return task


def build_recurrence_pattern(slots: MeetingSlots) -> Optional[str]:
    """Weekly RRULE for a recurring meeting, defaulting to the start weekday."""
    if not slots.is_recurring:
        return None
    days = slots.schedule_days
    if not days:
        start = slots.start_datetime()
        if start is None:
            return None
        # isoweekday: Monday=1 .. Sunday=7
        days = [["MO", "TU", "WE", "TH", "FR", "SA", "SU"][start.isoweekday() - 1]]
    return "FREQ=WEEKLY;BYDAY=" + ",".join(days)


def create_meeting_db(
    slots: MeetingSlots,
    user_id: str,
    action_id: str,
    minutes_before_start: Optional[int] = None,
) -> Meeting:
    """Create a meeting from a confirmed slot set; end_time = start + duration.
    A second call with the same action_id returns the meeting already stored.
    """
    try:
        existing = find_meeting_by_action_db(action_id)
    except sqlite3.Error as e:
        raise StorageError(f"Could not read meetings: {e}") from e
    if existing:
        logger.info("Meeting for action %s already exists, not creating again", action_id)
        return existing

    start = slots.start_datetime()
    end = start + timedelta(minutes=slots.duration)
    meeting = Meeting(
        id=str(uuid.uuid4()),
        user_id=user_id,
        action_id=action_id,
        title=slots.title,
        description=slots.description or "",
        start_time=start.isoformat(),
        end_time=end.isoformat(),
        duration=slots.duration,
        minutes_before_start=minutes_before_start,
        is_recurring=slots.is_recurring,
        recurrence_pattern=build_recurrence_pattern(slots),
        location=slots.location or "",
        attendees=slots.attendees,
        created_at=datetime.now().isoformat(),
    )
    try:
        with get_db() as conn:
            conn.execute(
                """INSERT INTO meetings
                   (id, user_id, action_id, title, description, start_time, end_time, duration,
                    minutes_before_start, is_recurring, recurrence_pattern, location, attendees,
                    created_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (meeting.id, user_id, action_id, meeting.title, meeting.description,
                 meeting.start_time, meeting.end_time, meeting.duration,
                 meeting.minutes_before_start, int(meeting.is_recurring),
                 meeting.recurrence_pattern, meeting.location, json.dumps(meeting.attendees),
                 meeting.created_at)
            )
            conn.commit()
    except sqlite3.IntegrityError as e:
        existing = find_meeting_by_action_db(action_id)
        if existing is None:
            raise StorageError(f"Could not save meeting: {e}") from e
        return existing
    except sqlite3.Error as e:
        raise StorageError(f"Could not save meeting: {e}") from e
    return meeting


def get_tasks(user_id: str) -> list[Task]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM tasks WHERE user_id = ? ORDER BY start_date_iso, created_at",
            (user_id,)
        ).fetchall()
        return [_row_to_task(row) for row in rows]


def get_meetings(user_id: str) -> list[Meeting]:
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM meetings WHERE user_id = ? ORDER BY start_time",
            (user_id,)
        ).fetchall()
        return [_row_to_meeting(row) for row in rows]
