"""
Tests for database.py - conversation documents, version checks and record creation.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import (
    build_recurrence_pattern,
    create_meeting_db,
    create_task_db,
    delete_conversation,
    get_conversation,
    get_meetings,
    get_tasks,
    save_conversation,
)
from errors import ConcurrentUpdateError
from models import (
    ActionType,
    Conversation,
    DialogueState,
    MeetingSlots,
    Message,
    PendingAction,
    TaskSlots,
)


class TestConversations:
    def test_missing_conversation(self, test_db):
        assert get_conversation("user-1") is None

    def test_save_and_load(self, test_db):
        pending = PendingAction(
            type=ActionType.CREATE_TASK,
            state=DialogueState.COLLECTING_FIELDS,
            data=TaskSlots(title="Buy groceries"),
            missing_fields=["start_date_iso"],
        )
        conversation = Conversation(
            user_id="user-1",
            messages=[Message(role="user", content="add a task")],
            pending_action=pending,
        )
        saved = save_conversation(conversation)
        assert saved.version == 1

        loaded = get_conversation("user-1")
        assert loaded.version == 1
        assert loaded.messages[0].content == "add a task"
        assert loaded.pending_action == pending

    def test_update_bumps_version(self, test_db):
        saved = save_conversation(Conversation(user_id="user-1"))
        saved.messages.append(Message(role="user", content="hi"))
        saved = save_conversation(saved)

        assert saved.version == 2
        assert get_conversation("user-1").version == 2

    def test_stale_write_rejected(self, test_db):
        save_conversation(Conversation(user_id="user-1"))
        first = get_conversation("user-1")
        second = get_conversation("user-1")

        first.messages.append(Message(role="user", content="first"))
        save_conversation(first)

        second.messages.append(Message(role="user", content="second"))
        with pytest.raises(ConcurrentUpdateError):
            save_conversation(second)

        assert [m.content for m in get_conversation("user-1").messages] == ["first"]

    def test_double_create_rejected(self, test_db):
        save_conversation(Conversation(user_id="user-1"))
        with pytest.raises(ConcurrentUpdateError):
            save_conversation(Conversation(user_id="user-1"))

    def test_clearing_pending_action(self, test_db):
        pending = PendingAction(
            type=ActionType.CREATE_TASK,
            state=DialogueState.CONFIRMING,
            data=TaskSlots(title="Call John", start_date_iso="2026-10-20T17:00:00Z"),
        )
        saved = save_conversation(Conversation(user_id="user-1", pending_action=pending))
        saved.pending_action = None
        save_conversation(saved)

        assert get_conversation("user-1").pending_action is None

    def test_delete(self, test_db):
        save_conversation(Conversation(user_id="user-1"))
        assert delete_conversation("user-1") is True
        assert get_conversation("user-1") is None
        assert delete_conversation("user-1") is False


class TestTasks:
    def test_create_task(self, test_db):
        slots = TaskSlots(
            title="Call John",
            description="Discuss the offer",
            start_date_iso="2026-10-20T17:00:00Z",
            priority="high",
        )
        task = create_task_db(slots, "user-1", "action-1", minutes_before_start=15)

        assert task.title == "Call John"
        assert task.description == "Discuss the offer"
        assert task.start_date_iso == "2026-10-20T17:00:00Z"
        assert task.minutes_before_start == 15
        assert task.priority == "high"
        assert get_tasks("user-1") == [task]

    def test_same_action_creates_once(self, test_db):
        slots = TaskSlots(title="Call John", start_date_iso="2026-10-20T17:00:00Z")
        first = create_task_db(slots, "user-1", "action-1")
        second = create_task_db(slots, "user-1", "action-1")

        assert second.id == first.id
        assert len(get_tasks("user-1")) == 1

    def test_fixed_time_drops_lead_time(self, test_db):
        slots = TaskSlots(title="Standup", is_routine=True, schedule_time={"fixed_time": "09:00"})
        task = create_task_db(slots, "user-1", "action-1", minutes_before_start=15)

        assert task.fixed_time == "09:00"
        assert task.minutes_before_start is None
        assert task.schedule_days == ["SU", "MO", "TU", "WE", "TH", "FR", "SA"]
        assert task.is_routine is True

    def test_tasks_scoped_to_user(self, test_db):
        slots = TaskSlots(title="Call John", start_date_iso="2026-10-20T17:00:00Z")
        create_task_db(slots, "user-1", "action-1")
        assert get_tasks("user-2") == []


class TestMeetings:
    def test_end_time_is_start_plus_duration(self, test_db):
        slots = MeetingSlots(title="Sync", start_date_iso="2026-10-20T10:00:00Z", duration=45)
        meeting = create_meeting_db(slots, "user-1", "action-1", minutes_before_start=10)

        assert meeting.start_time == "2026-10-20T10:00:00+00:00"
        assert meeting.end_time == "2026-10-20T10:45:00+00:00"
        assert meeting.duration == 45
        assert get_meetings("user-1") == [meeting]

    def test_same_action_creates_once(self, test_db):
        slots = MeetingSlots(title="Sync", start_date_iso="2026-10-20T10:00:00Z")
        create_meeting_db(slots, "user-1", "action-1")
        create_meeting_db(slots, "user-1", "action-1")
        assert len(get_meetings("user-1")) == 1

    def test_attendees_round_trip(self, test_db):
        slots = MeetingSlots(
            title="Planning",
            start_date_iso="2026-10-20T10:00:00Z",
            attendees=["Ana", "Ben"],
            location="Room 4",
        )
        create_meeting_db(slots, "user-1", "action-1")
        stored = get_meetings("user-1")[0]
        assert stored.attendees == ["Ana", "Ben"]
        assert stored.location == "Room 4"


class TestRecurrencePattern:
    def test_not_recurring(self):
        slots = MeetingSlots(title="Sync", start_date_iso="2026-10-20T10:00:00Z")
        assert build_recurrence_pattern(slots) is None

    def test_defaults_to_start_weekday(self):
        # 2026-10-20 is a Tuesday
        slots = MeetingSlots(title="Sync", start_date_iso="2026-10-20T10:00:00Z", is_recurring=True)
        assert build_recurrence_pattern(slots) == "FREQ=WEEKLY;BYDAY=TU"

    def test_uses_schedule_days(self):
        slots = MeetingSlots(
            title="Sync",
            start_date_iso="2026-10-20T10:00:00Z",
            schedule_type="specific-days",
            schedule_days=["MO", "WE"],
        )
        assert slots.is_recurring is True
        assert build_recurrence_pattern(slots) == "FREQ=WEEKLY;BYDAY=MO,WE"
