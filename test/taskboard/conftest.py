"""
Shared fixtures for the Taskboard test suite.

Provides an isolated temporary SQLite database, a couple of seeded users, a
factory for in-memory Task records and a FastAPI TestClient wired to the
temporary database through dependency overrides.
"""

import os
import sys
import tempfile
import uuid
from datetime import datetime
from pathlib import Path
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

sys.path.insert(0, str(Path(__file__).parent.parent.parent / "src"))

from taskboard.api import app
from taskboard.config import Settings
from taskboard.database import TaskDatabase
from taskboard.dependencies import get_database, get_settings
from taskboard.entities import Task, TaskPriority, TaskStatus
from taskboard.service import hash_password


@pytest.fixture
def db():
    """Create a temporary database, removed after the test."""
    with tempfile.NamedTemporaryFile(delete=False, suffix=".db") as f:
        db_path = f.name

    database = TaskDatabase(db_path)
    yield database
    database.close()
    for suffix in ("", "-wal", "-shm"):
        Path(db_path + suffix).unlink(missing_ok=True)


@pytest.fixture
def alice(db):
    return db.create_user("alice", "alice@example.com", "Alice", "Smith", hash_password("secret123"))


@pytest.fixture
def bob(db):
    return db.create_user("bob", "bob@example.com", "Bob", "Jones", hash_password("secret123"))


@pytest.fixture
def make_task():
    """Factory for in-memory Task records; unspecified fields get plain defaults."""
    owner = uuid.uuid4()

    def factory(**overrides) -> Task:
        values = dict(
            id=uuid.uuid4(),
            title="Untitled",
            description=None,
            status=TaskStatus.PENDING,
            priority=TaskPriority.MEDIUM,
            owner_id=owner,
            is_active=True,
            due_date=None,
            created_at=datetime(2024, 1, 1, 12, 0),
            updated_at=datetime(2024, 1, 1, 12, 0),
        )
        values.update(overrides)
        return Task(**values)

    return factory


@pytest.fixture
def client(db):
    """TestClient bound to the temporary database; lifespan startup is skipped."""
    app.dependency_overrides[get_database] = lambda: db
    app.dependency_overrides[get_settings] = lambda: Settings(database_path=str(db.db_path))
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def clean_env():
    """Remove Taskboard environment variables so defaults apply; restored afterwards."""
    with patch.dict(os.environ):
        for name in ("DATABASE_PATH", "LOG_LEVEL", "DEFAULT_PAGE_SIZE", "MAX_PAGE_SIZE",
                     "DEFAULT_HOST", "DEFAULT_PORT"):
            os.environ.pop(name, None)
        yield os.environ
