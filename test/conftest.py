"""Pytest configuration for the thought processing test suite."""

import os
import sys
from pathlib import Path
from typing import Generator

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


def _ensure_test_env() -> None:
    """Seed required environment variables for tests."""
    os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
    os.environ.setdefault("GATEWAY_BACKEND", "llm")
    os.environ.setdefault("LOG_LEVEL", "INFO")


_ensure_test_env()

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
sys.path.insert(0, str(SRC))


@pytest.fixture
def sqlite_session_factory() -> Generator[sessionmaker, None, None]:
    """Provide a sqlite session factory and ensure engine cleanup."""
    from models import Base

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine)
    yield factory
    engine.dispose()


class StubGateway:
    """Gateway stub returning queued response bodies or raising queued errors."""

    def __init__(self, responses=None) -> None:
        """Initialize the stub with responses consumed one per call."""
        self.responses = list(responses or [])
        self.requests = []

    async def process_thought(self, request):
        """Record the request and return the next configured response."""
        self.requests.append(request)
        response = self.responses.pop(0) if self.responses else {"result": {"actions": []}}
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def add_thought(sqlite_session_factory):
    """Return a helper that stores a thought and returns its identifier."""
    from datetime import datetime, timedelta, timezone

    from models import Thought

    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    counter = {"value": 0}

    def _add(text: str, tags=None, **fields) -> str:
        counter["value"] += 1
        fields.setdefault("created_at", base + timedelta(minutes=counter["value"]))
        with sqlite_session_factory() as session:
            thought = Thought(text=text, tags=list(tags or []), **fields)
            session.add(thought)
            session.commit()
            return thought.id

    return _add


@pytest.fixture
def stub_gateway() -> StubGateway:
    """Provide a gateway stub with no queued responses."""
    return StubGateway()


@pytest.fixture
def pipeline(sqlite_session_factory, stub_gateway):
    """Wire the processing collaborators against the sqlite session factory."""
    from types import SimpleNamespace

    from thoughts.activity_log import ActivityLog
    from thoughts.approval import ApprovalService
    from thoughts.executor import ActionExecutor
    from thoughts.processor import ThoughtProcessor
    from thoughts.queue_repository import ProcessQueueRepository
    from thoughts.settings_store import SettingsStore

    queue = ProcessQueueRepository(sqlite_session_factory)
    activity_log = ActivityLog(sqlite_session_factory, limit=1000)
    settings_store = SettingsStore(sqlite_session_factory)
    settings_store.update(openaiApiKey="sk-test", allowBackgroundProcessing=True)
    executor = ActionExecutor(sqlite_session_factory, log_hook=activity_log.record_event)
    approval = ApprovalService(sqlite_session_factory, executor)
    processor = ThoughtProcessor(
        sqlite_session_factory,
        queue=queue,
        gateway=stub_gateway,
        settings_store=settings_store,
        activity_log=activity_log,
        approval=approval,
        batch_pause_seconds=0,
    )
    return SimpleNamespace(
        session_factory=sqlite_session_factory,
        queue=queue,
        activity_log=activity_log,
        settings_store=settings_store,
        executor=executor,
        approval=approval,
        processor=processor,
        gateway=stub_gateway,
    )
