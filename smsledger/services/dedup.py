"""Deduplication gate: stable fingerprints for parsed transactions and ledger lookups for prior entries."""

import hashlib

from smsledger.core.models import Direction, ParsedTransaction
from smsledger.services.ledger import LedgerStore

DEFAULT_WINDOW_MS = 60_000
DEFAULT_PREVIEW_LEN = 50


def format_amount(amount: float) -> str:
    """Render an amount the same way for every observation: whole numbers without a fractional part."""
    if float(amount).is_integer():
        return str(int(amount))
    return repr(float(amount))


def fingerprint(parsed: ParsedTransaction, window_ms: int = DEFAULT_WINDOW_MS) -> str:
    """Compute the SHA-256 fingerprint of merchant, amount and timestamp bucket.

    Timestamps are floored to `window_ms` (one minute by default), so re-scans that see a slightly different delivery
    time for the same bank event still produce the same digest.
    """
    bucket = parsed.timestamp // window_ms
    raw = f"{parsed.counterparty_name}-{format_amount(parsed.amount)}-{bucket}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def dedup_token(digest: str) -> str:
    """Return the literal token embedded in ledger descriptions."""
    return f"[HASH:{digest}]"


def build_description(parsed: ParsedTransaction, digest: str, preview_len: int = DEFAULT_PREVIEW_LEN) -> str:
    """Build the ledger description: a preview of the message followed by the dedup token."""
    return f"{parsed.original_text[:preview_len]}... {dedup_token(digest)}"


class DeduplicationGate:
    """Checks the ledger for a prior entry carrying the same fingerprint."""

    def __init__(self, ledger: LedgerStore) -> None:
        """Initialize the gate over a ledger store."""
        self.ledger = ledger

    def is_duplicate(self, digest: str, amount: float, direction: Direction) -> bool:
        """Check the direction's ledger partition for an entry with this fingerprint and exactly this amount."""
        matches = self.ledger.find_by_description_contains_and_amount(direction, f"HASH:{digest}", amount)
        return len(matches) > 0
