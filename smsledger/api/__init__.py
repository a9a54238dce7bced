"""API package: provides FastAPI dependencies and route definitions for the sync service."""

from .dependencies import get_db_conn, get_message_source, get_session_factory, get_settings  # noqa: F401
from .routes import router  # noqa: F401
