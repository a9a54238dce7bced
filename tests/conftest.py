"""Shared fixtures: an in-memory SQLite ledger and an API client pointed at it."""

from collections.abc import Callable, Iterator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from smsledger.api.dependencies import get_session_factory, get_settings
from smsledger.core.db import init_db
from smsledger.core.settings import Settings
from smsledger.services.ledger import LedgerStore, PreferencesStore


@pytest.fixture
def session_factory() -> Callable[[], Session]:
    """Session factory over a fresh in-memory database with all tables created."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    return sessionmaker(autoflush=False, bind=engine)


@pytest.fixture
def settings() -> Settings:
    """Settings independent of any local .env file."""
    return Settings(_env_file=None, database_url="sqlite://", message_source="fixture")


@pytest.fixture
def ledger(session_factory: Callable[[], Session]) -> LedgerStore:
    """Ledger store over the in-memory database."""
    return LedgerStore(session_factory)


@pytest.fixture
def preferences(session_factory: Callable[[], Session], settings: Settings) -> PreferencesStore:
    """Preferences store seeded with the default keyword blocklist."""
    return PreferencesStore(session_factory, settings.default_blocked_keywords)


@pytest.fixture
def client(session_factory: Callable[[], Session], settings: Settings) -> Iterator[TestClient]:
    """API client whose routes use the in-memory database."""
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()
