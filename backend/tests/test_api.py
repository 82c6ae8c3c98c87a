"""
Tests for FastAPI endpoints in main.py.
/chat runs against the scripted gateway from conftest, so no Claude calls are made.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
import main
from errors import ConcurrentUpdateError
from models import MeetingSlots, TaskSlots
from nlu import IntentResult


def chat(client, message, user_id="user-1"):
    return client.post("/chat", json={"user_id": user_id, "message": message})


class TestChatEndpoint:
    def test_plain_chat(self, app_client, gateway):
        gateway.intents.append(IntentResult(intent="none", confidence=95))
        gateway.replies.append("Hello! What can I do for you?")

        response = chat(app_client, "hi")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["response"] == "Hello! What can I do for you?"
        assert body["action"] is None

    def test_task_created_over_two_turns(self, app_client, gateway):
        gateway.intents.append(IntentResult(
            intent="task",
            data={"title": "Call John", "start_date_iso": "2026-10-20T17:00:00Z"},
            confidence=90,
        ))

        first = chat(app_client, "create a task: call John tomorrow 5pm").json()
        assert first["action"] == "confirm_action"
        assert first["response"].startswith('I\'ll create a task "Call John" on Tue, Oct 20, 2026 at 17:00')

        second = chat(app_client, "yes").json()
        assert second["action"] == "create_task_success"
        assert second["response"] == '✅ Task "Call John" has been created!'

        tasks = app_client.get("/tasks", params={"user_id": "user-1"}).json()
        assert len(tasks) == 1
        assert tasks[0]["minutes_before_start"] == 15

    def test_empty_message_rejected(self, app_client):
        response = chat(app_client, "")
        assert response.status_code == 422

    def test_missing_api_key(self, app_client):
        main.app.dependency_overrides[main.get_controller] = lambda: None

        response = chat(app_client, "hi")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["response"] == "API key not configured"

    def test_concurrent_turn_is_409(self, app_client, gateway, monkeypatch):
        gateway.intents.append(IntentResult(intent="none", confidence=95))

        def stale_save(conversation):
            raise ConcurrentUpdateError(conversation.user_id, conversation.version)

        monkeypatch.setattr(database, "save_conversation", stale_save)
        response = chat(app_client, "hi")

        assert response.status_code == 409
        assert response.json()["success"] is False

    def test_unexpected_error_is_500(self, app_client, gateway, monkeypatch):
        def broken_load(user_id):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(database, "get_conversation", broken_load)
        response = chat(app_client, "hi")

        assert response.status_code == 500
        assert response.json() == {"success": False, "response": "Error processing your request"}


class TestConversationEndpoints:
    def test_empty_history(self, app_client):
        response = app_client.get("/conversation", params={"user_id": "nobody"})
        assert response.status_code == 200
        assert response.json() == {"messages": [], "pending_action": None}

    def test_history_includes_pending_action(self, app_client, gateway):
        gateway.intents.append(IntentResult(intent="task", data={"title": "Buy milk"}, confidence=90))
        chat(app_client, "add a task to buy milk")

        body = app_client.get("/conversation", params={"user_id": "user-1"}).json()

        assert [m["role"] for m in body["messages"]] == ["system", "user", "assistant"]
        assert body["pending_action"]["state"] == "collecting_fields"
        assert body["pending_action"]["missing_fields"] == ["start_date_iso"]

    def test_clear(self, app_client, gateway):
        gateway.intents.append(IntentResult(intent="none", confidence=95))
        chat(app_client, "hi")

        response = app_client.delete("/conversation", params={"user_id": "user-1"})

        assert response.json() == {"success": True, "message": "Conversation cleared"}
        assert database.get_conversation("user-1") is None

    def test_user_id_required(self, app_client):
        assert app_client.get("/conversation").status_code == 422


class TestRecordEndpoints:
    def test_tasks_scoped_by_user(self, app_client):
        database.create_task_db(TaskSlots(title="Mine", start_date_iso="2026-10-20T17:00:00Z"), "user-1", "a-1")
        database.create_task_db(TaskSlots(title="Theirs", start_date_iso="2026-10-20T17:00:00Z"), "user-2", "a-2")

        tasks = app_client.get("/tasks", params={"user_id": "user-1"}).json()

        assert [t["title"] for t in tasks] == ["Mine"]

    def test_meetings(self, app_client):
        slots = MeetingSlots(title="Sync", start_date_iso="2026-10-20T10:00:00Z", attendees=["Ana"])
        database.create_meeting_db(slots, "user-1", "a-1", minutes_before_start=10)

        meetings = app_client.get("/meetings", params={"user_id": "user-1"}).json()

        assert len(meetings) == 1
        assert meetings[0]["end_time"] == "2026-10-20T10:30:00+00:00"
        assert meetings[0]["attendees"] == ["Ana"]
