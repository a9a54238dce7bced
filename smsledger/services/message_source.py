"""Message sources: where a sync run reads its batch of raw inbox messages from.

This module defines the abstract MessageSource, a fixed fixture inbox for environments without device access, a
CSV inbox-export source parsed with pandas, and a registry that selects a source by its configured name.
"""

import io
from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar

import pandas as pd

from smsledger.core.models import RawMessage
from smsledger.core.settings import Settings
from smsledger.core.utils import get_logger

INBOX = "inbox"
ANDROID_INBOX_TYPE = "1"
SENDER_COLUMNS = ("address", "sender")
BODY_COLUMNS = ("body", "message", "text")
TIMESTAMP_COLUMNS = ("date", "timestamp")
BOX_COLUMNS = ("type", "box")

# 2026-02-12 08:30:00 UTC
FIXTURE_ANCHOR_MS = 1_770_885_000_000
DAY_MS = 86_400_000

logger = get_logger("sms-ledger.source")


class InboxAccessDeniedError(PermissionError):
    """Raised when the message source refuses to let the inbox be read."""


class MessageSource(ABC):
    """Abstract base class for all message sources."""

    name: ClassVar[str] = ""

    @abstractmethod
    def has_read_access(self) -> bool:
        """Check (and if needed request) permission to read the inbox."""

    @abstractmethod
    def list_messages(self, box: str = INBOX, max_count: int = 1000) -> list[RawMessage]:
        """Return up to max_count messages from the given box, newest first."""


class FixtureMessageSource(MessageSource):
    """Fixed sample inbox used when no device inbox is reachable."""

    name = "fixture"

    def __init__(self, *, granted: bool = True, anchor_ms: int = FIXTURE_ANCHOR_MS) -> None:
        """Initialize the fixture inbox around a fixed anchor time."""
        self.granted = granted
        self.anchor_ms = anchor_ms

    def has_read_access(self) -> bool:
        """Report the configured permission state."""
        return self.granted

    def list_messages(self, box: str = INBOX, max_count: int = 1000) -> list[RawMessage]:
        """Return the sample messages."""
        if box != INBOX:
            return []
        anchor = self.anchor_ms
        messages = [
            RawMessage(
                sender="HDFCBK",
                body="Rs. 1500.00 debited from a/c 1234 on 12-02-26 to ZOMATO. UPI Ref: 12345678.",
                timestamp=anchor - 100_000,
            ),
            RawMessage(
                sender="SBIUPI",
                body="Dear User, INR 450.00 debited from A/c X6789 via UPI for UBER RIDES.",
                timestamp=anchor - 500_000,
            ),
            RawMessage(
                sender="AMZPAY",
                body="Paid Rs. 2000.00 for electricity bill via Amazon Pay. Txn ID: 998877.",
                timestamp=anchor - DAY_MS,
            ),
            RawMessage(sender="MOM", body="Hello beta, sent you some money.", timestamp=anchor - 1_000),
            RawMessage(
                sender="HDFCBK",
                body="Rs. 50000.00 credited to a/c 1234 on 30-01-26. Salary for Jan.",
                timestamp=str(anchor - 13 * DAY_MS),
            ),
        ]
        return messages[:max_count]


class CsvMessageSource(MessageSource):
    """Inbox export file (CSV) with sender, body and timestamp columns."""

    name = "csv"

    def __init__(self, path: str | Path | None = None, data: bytes | None = None) -> None:
        """Initialize the source from a file path or from raw CSV bytes."""
        self.path = Path(path) if path else None
        self.data = data

    def has_read_access(self) -> bool:
        """Readable when CSV bytes were given or the export file exists."""
        if self.data is not None:
            return True
        return self.path is not None and self.path.is_file()

    def list_messages(self, box: str = INBOX, max_count: int = 1000) -> list[RawMessage]:
        """Parse the export and return up to max_count messages of the box, most recent first."""
        handle = io.BytesIO(self.data) if self.data is not None else self.path
        try:
            data_frame = pd.read_csv(handle, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            logger.warning("Inbox export is empty")
            return []
        data_frame.columns = [str(col).strip().lower() for col in data_frame.columns]
        sender_col = _pick_column(data_frame, SENDER_COLUMNS)
        body_col = _pick_column(data_frame, BODY_COLUMNS)
        ts_col = _pick_column(data_frame, TIMESTAMP_COLUMNS)
        if not (sender_col and body_col and ts_col):
            msg = f"Inbox export needs sender, body and timestamp columns, got {list(data_frame.columns)}"
            raise ValueError(msg)
        box_col = _pick_column(data_frame, BOX_COLUMNS)
        if box_col:
            wanted = {box, ANDROID_INBOX_TYPE} if box == INBOX else {box}
            data_frame = data_frame[data_frame[box_col].str.strip().str.lower().isin(wanted)]
        order = pd.to_numeric(data_frame[ts_col], errors="coerce")
        data_frame = data_frame.assign(_order=order).sort_values("_order", ascending=False, na_position="last")
        logger.info(f"Loaded {len(data_frame)} {box} messages from export")
        return [
            RawMessage(sender=row[sender_col], body=row[body_col], timestamp=row[ts_col])
            for row in data_frame.head(max_count).to_dict(orient="records")
        ]


def _pick_column(data_frame: pd.DataFrame, candidates: tuple[str, ...]) -> str | None:
    for candidate in candidates:
        if candidate in data_frame.columns:
            return candidate
    return None


class SourceRegistry:
    """Registry for message source classes."""

    _registry: ClassVar[dict[str, type[MessageSource]]] = {}

    @classmethod
    def register(cls, name: str, source_cls: type[MessageSource]) -> None:
        """Register a message source class with a given name."""
        cls._registry[name] = source_cls

    @classmethod
    def get(cls, name: str) -> type[MessageSource]:
        """Retrieve a message source class by name."""
        return cls._registry[name]

    @classmethod
    def available(cls) -> list[str]:
        """List all available message source names."""
        return list(cls._registry.keys())


SourceRegistry.register(FixtureMessageSource.name, FixtureMessageSource)
SourceRegistry.register(CsvMessageSource.name, CsvMessageSource)


def build_source(settings: Settings) -> MessageSource:
    """Instantiate the message source named in the settings."""
    source_cls = SourceRegistry.get(settings.message_source)
    if source_cls is CsvMessageSource:
        return CsvMessageSource(path=settings.inbox_export_file)
    return source_cls()

