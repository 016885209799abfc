"""Shared test fixtures for API and aggregation tests."""
from datetime import datetime

import pytest
from unittest.mock import MagicMock
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from vesseliq.main import app, limiter
from vesseliq.database import get_db
from vesseliq.models import Base  # noqa: F401 -- registers all models
from vesseliq.modules.fallback_scores import FallbackScoreProvider


FIXED_NOW = datetime(2025, 6, 1, 12, 0, 0)


class StubFallbackProvider(FallbackScoreProvider):
    """Deterministic fallback: a constant score and a fixed clock."""

    def __init__(self, value: float = 0.5, now: datetime = FIXED_NOW):
        self.value = value
        self._now = now
        self.calls = []

    def score(self, vessel_id):
        self.calls.append(vessel_id)
        return self.value

    def now(self):
        return self._now


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    """Each test starts with an empty rate-limit window."""
    limiter.reset()
    yield


@pytest.fixture
def stub_provider():
    return StubFallbackProvider()


@pytest.fixture
def mock_db():
    """MagicMock database session — returns None / empty lists for all queries by default."""
    session = MagicMock()
    session.query.return_value.filter.return_value.first.return_value = None
    session.query.return_value.filter.return_value.all.return_value = []
    session.query.return_value.order_by.return_value.all.return_value = []
    session.query.return_value.filter.return_value.order_by.return_value.all.return_value = []
    return session


@pytest.fixture
def api_client(mock_db):
    """TestClient with DB dependency overridden to use a MagicMock session."""
    def override_get_db():
        yield mock_db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def db_engine():
    """In-memory SQLite engine shared across threads (TestClient runs sync routes off-thread)."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragmas(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(db_engine):
    """SQLite session with all tables created, fresh per test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def sqlite_client(db):
    """TestClient whose get_db yields the in-memory SQLite session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()
