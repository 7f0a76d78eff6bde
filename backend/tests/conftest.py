"""Shared pytest fixtures for backend tests."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
for path in (ROOT_DIR, ROOT_DIR / "src"):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from huddle.realtime import ChatMessage, Hub, StoreUnavailable

from app.main import app
from app.models import Base
from app.services.hub import configure_hub
from app.services.message_store import SqlMessageStore


class RecordingTransport:
    """Transport double that keeps every payload handed to it."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.failing: set[str] = set()

    def send(self, connection_id: str, payload: dict[str, Any]) -> None:
        if connection_id in self.failing:
            raise ConnectionError(f"{connection_id} is unreachable")
        self.sent.append((connection_id, payload))

    def events_for(self, connection_id: str, event_type: str | None = None) -> list[dict[str, Any]]:
        return [
            payload
            for target, payload in self.sent
            if target == connection_id and (event_type is None or payload["type"] == event_type)
        ]

    def types_for(self, connection_id: str) -> list[str]:
        return [payload["type"] for payload in self.events_for(connection_id)]

    def recipients_of(self, event_type: str) -> list[str]:
        return [target for target, payload in self.sent if payload["type"] == event_type]

    def clear(self) -> None:
        self.sent.clear()


class MemoryStore:
    """In-memory message store that can be switched into a failing state."""

    def __init__(self) -> None:
        self.messages: list[Any] = []
        self.fail_appends = False
        self.fail_queries = False

    async def append(self, message):
        if self.fail_appends:
            raise StoreUnavailable()
        stored = message.with_id(len(self.messages) + 1)
        self.messages.append(stored)
        return stored

    async def query_recent(self, room: str, limit: int) -> list[ChatMessage]:
        if self.fail_queries:
            raise StoreUnavailable("Message history is unavailable")
        matching = [message for message in self.messages if message.room == room]
        return matching[-limit:]


@pytest.fixture()
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture()
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture()
def hub(transport, store) -> Hub:
    """Hub wired to recording doubles with a short typing timeout."""

    return Hub(transport, store, typing_timeout_seconds=0.05)


@pytest.fixture()
def test_engine() -> Iterator[Engine]:
    """Provide an in-memory SQLite engine for isolated tests."""

    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture()
def session_factory(test_engine) -> sessionmaker[Session]:
    """Return a session factory bound to the test engine."""

    return sessionmaker(bind=test_engine, future=True)


@pytest.fixture()
def db_session(session_factory) -> Iterator[Session]:
    """Yield a SQLAlchemy session for unit tests."""

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client(session_factory) -> Iterator[TestClient]:
    """Yield a FastAPI TestClient whose hub persists into the test database."""

    configure_hub(store=SqlMessageStore(session_factory))
    with TestClient(app) as test_client:
        yield test_client
