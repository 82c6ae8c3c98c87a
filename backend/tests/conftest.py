"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database per test and a scripted NLU gateway.
"""
import pytest
import sqlite3
import sys
import os

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import database
from errors import GatewayError


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE conversations (
            user_id TEXT PRIMARY KEY,
            messages TEXT NOT NULL DEFAULT '[]',
            pending_action TEXT,
            version INTEGER NOT NULL DEFAULT 1,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE tasks (
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
        );

        CREATE TABLE meetings (
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
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


class FakeGateway:
    """
    Scripted stand-in for nlu.NLUGateway.

    Each queue holds results (or exceptions to raise) in call order. An empty
    queue raises GatewayError, like a failed model call.
    """

    def __init__(self):
        self.intents = []
        self.extractions = []
        self.confirmations = []
        self.routine_checks = []
        self.schedule_choices = []
        self.day_extractions = []
        self.replies = []
        self.calls = []

    def _next(self, queue, name):
        self.calls.append(name)
        if not queue:
            raise GatewayError(f"no scripted {name} result")
        item = queue.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    async def detect_intent(self, message, now=None):
        return self._next(self.intents, "detect_intent")

    async def extract_fields(self, message, missing_fields, existing, action_type):
        return self._next(self.extractions, "extract_fields")

    async def classify_confirmation(self, message, existing, action_type):
        return self._next(self.confirmations, "classify_confirmation")

    async def check_routine(self, title, description):
        return self._next(self.routine_checks, "check_routine")

    async def choose_routine_schedule(self, message):
        return self._next(self.schedule_choices, "choose_routine_schedule")

    async def extract_days(self, message):
        return self._next(self.day_extractions, "extract_days")

    async def reply(self, messages):
        self.calls.append("reply")
        if self.replies:
            return self.replies.pop(0)
        return "Happy to help!"


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app_client(test_db, gateway, monkeypatch):
    """
    Create a test client for the FastAPI app with the scripted gateway.
    Mocks init_db to skip alembic migrations.
    """
    from fastapi.testclient import TestClient
    import main
    from dialogue import DialogueController

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(database, "init_db", lambda: None)
    main.app.dependency_overrides[main.get_controller] = lambda: DialogueController(gateway)

    with TestClient(main.app) as client:
        yield client

    main.app.dependency_overrides.clear()
