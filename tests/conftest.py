"""
Pytest fixtures for Chat Train tests.

Uses an in-memory SQLite DB for speed and isolation.
StaticPool keeps a single connection so the :memory: database (and tables) persist.
"""

import json
import os
import tempfile
from pathlib import Path

# Must be set before the app modules read them at import time
os.environ.setdefault("CHATTRAIN_DB_PATH", ":memory:")
os.environ.setdefault("CHATTRAIN_RATE_LIMIT_REQUESTS", "0")
os.environ.setdefault("CHATTRAIN_LOG_DIR", str(Path(tempfile.gettempdir()) / "chattrain-test-logs"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from backend.database import Base, enable_sqlite_foreign_keys, get_db
from backend.main import app
from backend.models_db import TrainerModel

TEST_DB = "sqlite:///:memory:"
SAMPLE_FLOW_PATH = Path(__file__).resolve().parent.parent / "flows" / "sample_onboarding_v1.json"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh in-memory DB and tables per test."""
    test_engine = create_engine(
        TEST_DB,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,  # single connection so :memory: DB and tables persist
    )
    enable_sqlite_foreign_keys(test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """ORM session on the test DB, for service-level tests."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def trainer(db_session):
    row = TrainerModel(id="trainer-1", name="Sales Coach", type="sales")
    db_session.add(row)
    db_session.commit()
    return row


@pytest.fixture
def client(db_engine):
    """FastAPI TestClient with test DB."""
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def sample_flow_body() -> dict:
    """The onboarding sample flow (valid, seven nodes), without its trainer block."""
    data = json.loads(SAMPLE_FLOW_PATH.read_text(encoding="utf-8"))
    data.pop("trainer")
    return data


@pytest.fixture
def minimal_flow_body() -> dict:
    """Start -> question -> end, wire format."""
    return {
        "name": "Minimal",
        "nodes": [
            {"id": "n1", "type": "start", "label": "Begin"},
            {"id": "n2", "type": "question", "label": "Ready?", "data": {"choices": ["Yes", "No"]}},
            {"id": "n3", "type": "end", "label": "Finish"},
        ],
        "edges": [
            {"id": "e1", "from": "n1", "to": "n2", "condition": {"type": "auto", "logic": "and"}},
            {"id": "e2", "from": "n2", "to": "n3"},
        ],
        "settings": {"maxDepth": 10, "allowLoops": False},
    }
