"""FastAPI dependencies for DI (settings, sessions, stores, message source).

Every route reaches the database through `get_session_factory`, so tests can point the whole API at another engine
with a single dependency override.
"""

from collections.abc import Callable, Iterator

from fastapi import Depends
from sqlalchemy.orm import Session

from smsledger.core.db import JobStore, SessionLocal
from smsledger.core.settings import Settings, get_settings
from smsledger.services.ledger import LedgerStore, PreferencesStore
from smsledger.services.message_source import MessageSource, build_source


def get_session_factory() -> Callable[[], Session]:
    """Provide the session factory bound to the configured database."""
    return SessionLocal


def get_db_conn(session_factory: Callable[[], Session] = Depends(get_session_factory)) -> Iterator[JobStore]:
    """Provide a JobStore for the duration of one request."""
    store = JobStore(session_factory())
    try:
        yield store
    finally:
        store.close()


def get_ledger(session_factory: Callable[[], Session] = Depends(get_session_factory)) -> LedgerStore:
    """Provide the ledger store."""
    return LedgerStore(session_factory)


def get_preferences_store(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
    settings: Settings = Depends(get_settings),
) -> PreferencesStore:
    """Provide the preferences store seeded with the built-in keyword blocklist."""
    return PreferencesStore(session_factory, settings.default_blocked_keywords)


def get_message_source(settings: Settings = Depends(get_settings)) -> MessageSource:
    """Provide the message source named in the settings."""
    return build_source(settings)
