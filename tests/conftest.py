"""Pytest fixtures and configuration for toManage tests."""

import pytest
import uuid
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from unittest.mock import MagicMock
from cryptography.fernet import Fernet

from tomanage.database.database import Base
from tomanage.database.repository import TaskRepository
from tomanage.errors import ExternalServiceError
from tomanage.models.task import Priority, Task
from tomanage.services.storage import StorageService
from tomanage.services.task_service import TaskService, UserLockRegistry


# Use in-memory SQLite database for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


class FakeTickTickClient:
    """In-memory stand-in for TickTickClient that records every call."""

    def __init__(self):
        self.records = []
        self.created = []
        self.updated = []
        self.completed = []
        self.deleted = []
        self.list_calls = 0
        self.fail_fetch = False
        self.fail_push = False

    def list_tasks(self):
        self.list_calls += 1
        if self.fail_fetch:
            raise ExternalServiceError("TickTick request failed: GET /project")
        return [dict(record) for record in self.records]

    def create_task(self, payload):
        if self.fail_push:
            raise ExternalServiceError("TickTick request failed: POST /task")
        self.created.append(payload)
        return {**payload, "id": f"tt-{len(self.created)}", "projectId": "inbox"}

    def update_task(self, task_id, payload):
        if self.fail_push:
            raise ExternalServiceError(f"TickTick request failed: POST /task/{task_id}")
        self.updated.append((task_id, payload))
        return {**payload, "id": task_id}

    def complete_task(self, project_id, task_id):
        self.completed.append((project_id, task_id))

    def delete_task(self, project_id, task_id):
        self.deleted.append((project_id, task_id))


@pytest.fixture
def now():
    """Fixed clock reading: Monday 2026-01-26 09:00 UTC."""
    return datetime(2026, 1, 26, 9, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def token_encryption_key(monkeypatch):
    """Every test gets a fresh Fernet key for encrypted token storage."""
    key = Fernet.generate_key().decode("utf-8")
    monkeypatch.setenv("TOKEN_ENCRYPTION_KEY", key)
    return key


@pytest.fixture(scope="function")
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    import tomanage.database.models  # noqa: F401

    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False
    )
    Base.metadata.create_all(bind=engine)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(session_factory):
    """Create a database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def task_repository(db_session):
    """Create a TaskRepository instance for testing."""
    return TaskRepository(db_session)


@pytest.fixture
def test_user_id():
    """Test user ID for multi-user testing."""
    return "test-user-123"


@pytest.fixture
def storage(session_factory):
    return StorageService(session_factory)


@pytest.fixture
def fake_ticktick():
    return FakeTickTickClient()


@pytest.fixture
def task_service(session_factory, storage, fake_ticktick):
    """TaskService whose TickTick client is the in-memory fake."""
    return TaskService(
        session_factory,
        storage,
        UserLockRegistry(),
        client_factory=lambda token: fake_ticktick,
    )


@pytest.fixture
def connected_user(storage, test_user_id):
    """A user with a stored TickTick access token."""
    storage.set_ticktick_token(test_user_id, "test_access_token_value")
    return test_user_id


@pytest.fixture
def sample_task_base(now):
    """Base task data for creating test tasks.

    Returns a dict with default task attributes that can be overridden.
    """
    return {
        "id": str(uuid.uuid4()),
        "title": "Test Task",
        "description": "Test notes",
        "completed": False,
        "priority": Priority.NONE,
        "tags": [],
        "due_date": None,
        "created_at": now,
        "updated_at": now,
    }


@pytest.fixture
def sample_task(sample_task_base):
    """Create a sample Task object for testing."""
    return Task(**sample_task_base)


@pytest.fixture
def ai_client():
    """AI client mock; unconfigured so recommendations stay rule-based."""
    client = MagicMock()
    client.is_configured = False
    return client


@pytest.fixture
def test_client(session_factory, ai_client, fake_ticktick):
    """Create a FastAPI test client wired to the test database and fakes."""
    from tomanage.api.app import create_app

    app = create_app(
        session_factory=session_factory,
        ai_client=ai_client,
        ticktick_client_factory=lambda token: fake_ticktick,
    )
    with TestClient(app) as client:
        yield client
