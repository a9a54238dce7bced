"""Core package: provides models, database helpers, settings, and shared utilities."""

from .db import JobStore  # noqa: F401
from .models import JobStatus, ParsedTransaction, SyncProgress  # noqa: F401
from .settings import Settings  # noqa: F401
from .utils import get_logger  # noqa: F401
