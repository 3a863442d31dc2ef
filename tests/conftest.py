"""Pytest configuration and fixtures."""

from datetime import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from raffle import main
from raffle.channel import StaticChannelChecker
from raffle.config import get_settings
from raffle.database import Base, get_db
from raffle.store import ParticipantStore

ADMIN_SECRET = "test-admin-secret"
ADMIN_HEADERS = {"X-Admin-Secret": ADMIN_SECRET}


@pytest.fixture
def engine():
    """Fresh in-memory database per test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return ParticipantStore(db)


@pytest.fixture
def checker():
    return StaticChannelChecker("@test_channel")


@pytest.fixture
def add_participant(store):
    """Register a participant directly through the store."""
    counter = {"n": 0}

    def _add(phone, channel_joined=False, received_at=None):
        counter["n"] += 1
        received_at = received_at or datetime(2025, 3, 1, 19, 0, counter["n"])
        participant, _ = store.add_if_absent(phone, "9", received_at, channel_joined=channel_joined)
        return participant

    return _add


@pytest.fixture
def client(session_factory, checker, monkeypatch):
    monkeypatch.setenv("ADMIN_SECRET", ADMIN_SECRET)
    get_settings.cache_clear()

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db] = override_get_db
    main.app.dependency_overrides[main.get_channel_checker] = lambda: checker

    # Not used as a context manager: startup would touch the configured database
    yield TestClient(main.app)

    main.app.dependency_overrides.clear()
    get_settings.cache_clear()
