"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import TEST_INTERNAL_JOB_TOKEN, TEST_NOW

# Force an in-memory SQLite DB when pytest runs; don't inherit from .env
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["INTERNAL_JOB_TOKEN"] = TEST_INTERNAL_JOB_TOKEN
os.environ.pop("CLASSIFICATION_THRESHOLDS", None)
os.environ.pop("QUESTIONNAIRE_PATH", None)


@pytest.fixture(autouse=True)
def _clear_config_caches() -> None:
    """Clear cached settings, questionnaire, policy and stats before and after each test.

    Tests that monkeypatch env vars or point QUESTIONNAIRE_PATH at a temp file
    must not leak cached configuration into later tests.
    """
    from app.config import get_settings
    from app.qualification.loader import load_questionnaire
    from app.services.lead_stats import lead_stats_cache
    from app.services.qualification.classification_policy import get_classification_policy

    def _clear() -> None:
        get_settings.cache_clear()
        load_questionnaire.cache_clear()
        get_classification_policy.cache_clear()
        lead_stats_cache.clear()

    _clear()
    yield
    _clear()


@pytest.fixture
def db() -> Session:
    """Session on a fresh schema. Tables are dropped after each test."""
    import app.models  # noqa: F401
    from app.db.session import Base, SessionLocal, engine

    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client (no DB override)."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def api_client(db: Session) -> TestClient:
    """TestClient with get_db bound to the test session and a fixed request clock."""
    from app.api.deps import get_clock
    from app.db.session import get_db
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: TEST_NOW
    c = TestClient(app, headers={"X-Internal-Token": TEST_INTERNAL_JOB_TOKEN})
    yield c
    app.dependency_overrides.pop(get_db, None)
    app.dependency_overrides.pop(get_clock, None)


@pytest.fixture
def seeded_strategies(db: Session) -> list[str]:
    """Default cadence strategies stored for every tier."""
    from app.services.cadence.strategy_store import seed_default_strategies

    return seed_default_strategies(db)
