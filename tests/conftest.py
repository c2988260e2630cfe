"""Shared test fixtures and configuration for the test suite."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient

# Add the parent directory to the path for imports
import sys

sys.path.append(str(Path(__file__).parent.parent))

from todo_service.config import Settings
from todo_service.main import create_app
from todo_service.models.task import Task
from todo_service.services.persistence import MemorySlot
from todo_service.services.todo_store import TodoStore


class FakeClock:
    """Deterministic clock; every call returns the current fake time."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FailingSlot(MemorySlot):
    """Slot whose writes always fail."""

    name = "failing"

    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Create test settings with temporary directories."""
    return Settings(
        environment="test",
        log_level="DEBUG",
        log_dir=tmp_path / "logs",
        log_to_file=False,
        storage_backend="memory",
        storage_path=tmp_path / "storage.json",
        seed_defaults=False,
    )


@pytest.fixture
def clock() -> FakeClock:
    """Clock starting at a fixed instant."""
    return FakeClock(datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def slot() -> MemorySlot:
    return MemorySlot()


@pytest.fixture
def todo_store(test_settings, slot, clock) -> TodoStore:
    """Create an empty todo store backed by a memory slot."""
    return TodoStore(test_settings, slot, clock=clock)


@pytest.fixture
def abc_store(todo_store, clock) -> TodoStore:
    """Store holding todos a, b, c in that order."""
    for text in ("c", "b", "a"):
        todo_store.create_task(text)
        clock.advance(minutes=1)
    return todo_store


@pytest.fixture
def seeded_store(test_settings, clock) -> TodoStore:
    """Store started from an empty slot with example todos enabled."""
    settings = test_settings.model_copy(update={"seed_defaults": True})
    return TodoStore(settings, MemorySlot(), clock=clock)


@pytest.fixture
def failing_store(test_settings, clock) -> TodoStore:
    """Store whose persistence writes fail."""
    return TodoStore(test_settings, FailingSlot(), clock=clock)


@pytest.fixture
def sample_task() -> Task:
    """Create a sample todo for testing."""
    return Task(text="Test Todo", description="This is a test todo")


@pytest.fixture
def client(test_settings) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    app = create_app(test_settings)
    with TestClient(app) as test_client:
        yield test_client


# Test data fixtures
@pytest.fixture
def sample_task_data():
    """Sample todo data for testing."""
    return {
        "text": "Review the quarterly report",
        "description": "Focus on the revenue section",
        "priority": "high",
        "category": "work",
    }


@pytest.fixture
def sample_tasks_bulk():
    """Sample bulk todo data for testing."""
    return [
        {"text": "Buy milk", "priority": "low", "category": "shopping"},
        {"text": "Write report", "priority": "high", "category": "work"},
        {"text": "Call mom", "priority": "medium", "category": "personal"},
    ]
