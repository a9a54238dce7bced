"""Pydantic models for the SMS ledger sync service.

This module defines the value objects that flow through the message-to-ledger pipeline: raw inbox messages, parsed
transactions, account mappings, sync preferences, progress counters and background job status.
"""

from enum import StrEnum

from pydantic import BaseModel, Field

UNKNOWN_MERCHANT = "Unknown Merchant"
UNKNOWN_ACCOUNT = "Unknown"


class Direction(StrEnum):
    """Money flow direction of a parsed transaction."""

    DEBIT = "debit"
    CREDIT = "credit"


class RawMessage(BaseModel):
    """An inbound short message as delivered by a message source."""

    sender: str
    body: str
    timestamp: int | float | str


class ParsedTransaction(BaseModel):
    """Structured transaction extracted from a single message."""

    amount: float = Field(gt=0)
    direction: Direction
    counterparty_name: str = UNKNOWN_MERCHANT
    account_suffix: str = UNKNOWN_ACCOUNT
    resolved_account_name: str | None = None
    timestamp: int
    original_text: str
    is_transfer_like: bool = False
    destination_account_suffix: str | None = None


class BankAccountMapping(BaseModel):
    """A user-labeled bank account identified by the trailing digits of its number."""

    last4: str
    name: str


class SyncPreferences(BaseModel):
    """User preferences consulted by a sync run."""

    bank_accounts: list[BankAccountMapping] = Field(default_factory=list)
    custom_bank_identifiers: list[str] = Field(default_factory=list)
    blocked_senders: list[str] = Field(default_factory=list)
    blocked_keywords: list[str] = Field(default_factory=list)


class SyncProgress(BaseModel):
    """Running counters for one sync batch."""

    total: int = 0
    processed: int = 0
    added: int = 0
    failed: int = 0


class JobStatus(BaseModel):
    """Pydantic model representing the status of a background sync job."""

    status: str
    created_at: str
    completed_at: str | None = None
    error: str | None = None
    total: int = 0
    processed: int = 0
    added: int = 0
    failed: int = 0


class ParseRequest(BaseModel):
    """A single message submitted for a parse preview."""

    sender: str
    body: str
    timestamp: int


class ParsePreview(BaseModel):
    """Result of running one message through extraction, categorization and fingerprinting."""

    transaction: ParsedTransaction | None = None
    category: str | None = None
    fingerprint: str | None = None
