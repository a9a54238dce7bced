"""Sync orchestration: drives a batch of inbox messages through the pipeline into the ledger."""

import threading
from collections.abc import Callable
from enum import StrEnum

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from smsledger.core.db import JobStore, SessionLocal
from smsledger.core.models import Direction, ParsedTransaction, RawMessage, SyncPreferences, SyncProgress
from smsledger.core.settings import Settings
from smsledger.core.utils import coerce_timestamp, get_logger
from smsledger.parsing.accounts import is_self_transfer
from smsledger.parsing.categorizer import categorize
from smsledger.parsing.extractor import FieldExtractor
from smsledger.parsing.sender_filter import is_bank_sender, is_blocked
from smsledger.services.dedup import DeduplicationGate, build_description, fingerprint
from smsledger.services.ledger import LedgerStore, PreferencesStore
from smsledger.services.message_source import INBOX, InboxAccessDeniedError, MessageSource

logger = get_logger("sms-ledger.worker")

ProgressCallback = Callable[[SyncProgress], None]


class Outcome(StrEnum):
    """What happened to a single message."""

    ADDED = "added"
    SKIPPED = "skipped"
    DUPLICATE = "duplicate"
    FAILED = "failed"


class SyncRunner:
    """SyncRunner reads a message batch and writes new transactions to the ledger, one message at a time."""

    def __init__(
        self,
        source: MessageSource,
        ledger: LedgerStore,
        preferences: PreferencesStore,
        settings: Settings,
        extractor: FieldExtractor | None = None,
    ) -> None:
        """Initialize SyncRunner with its message source, stores and settings."""
        self.source = source
        self.ledger = ledger
        self.preferences = preferences
        self.settings = settings
        self.extractor = extractor or FieldExtractor()
        self.gate = DeduplicationGate(ledger)

    def sync(
        self,
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SyncProgress:
        """Run one batch and return the final counters.

        Raises:
            InboxAccessDeniedError: If the message source denies read access.

        """
        if not self.source.has_read_access():
            msg = "SMS permission denied"
            logger.error(msg)
            raise InboxAccessDeniedError(msg)

        messages = self.source.list_messages(box=INBOX, max_count=self.settings.max_messages)
        progress = SyncProgress(total=len(messages))
        logger.info(f"Starting sync of {progress.total} messages from '{self.source.name}'")
        if progress.total == 0:
            self._notify(progress_callback, progress)
            return progress

        prefs = self.preferences.load()
        every = max(1, self.settings.progress_every)
        for raw in messages:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(f"Sync cancelled after {progress.processed}/{progress.total} messages")
                break
            outcome = self._process(raw, prefs)
            progress.processed += 1
            if outcome is Outcome.ADDED:
                progress.added += 1
            elif outcome is Outcome.FAILED:
                progress.failed += 1
            if progress.processed % every == 0 or progress.processed == progress.total:
                self._notify(progress_callback, progress)

        logger.info(
            f"Sync complete: {progress.processed}/{progress.total} processed, {progress.added} added, "
            f"{progress.failed} failed writes",
        )
        return progress

    def _process(self, raw: RawMessage, prefs: SyncPreferences) -> Outcome:
        """Run one message through filter, extraction, dedup and the ledger write."""
        timestamp = coerce_timestamp(raw.timestamp)
        if timestamp is None:
            logger.debug(f"Skipping message from {raw.sender}: invalid timestamp {raw.timestamp!r}")
            return Outcome.SKIPPED
        if is_blocked(raw.sender, raw.body, prefs.blocked_senders, prefs.blocked_keywords):
            logger.debug(f"Skipping blocked message from {raw.sender}")
            return Outcome.SKIPPED
        if self.settings.require_bank_sender and not is_bank_sender(raw.sender, prefs.custom_bank_identifiers):
            logger.debug(f"Skipping non-bank sender {raw.sender}")
            return Outcome.SKIPPED

        parsed = self.extractor.extract(raw.sender, raw.body, timestamp, prefs.bank_accounts)
        if parsed is None:
            return Outcome.SKIPPED
        if self.settings.skip_self_transfers and is_self_transfer(parsed, prefs.bank_accounts):
            logger.debug(f"Skipping self transfer {parsed.account_suffix} -> {parsed.destination_account_suffix}")
            return Outcome.SKIPPED

        digest = fingerprint(parsed, self.settings.dedup_window_ms)
        if self.gate.is_duplicate(digest, parsed.amount, parsed.direction):
            logger.debug(f"Duplicate transaction {digest[:12]} skipped")
            return Outcome.DUPLICATE

        try:
            self._write(parsed, digest)
        except IntegrityError:
            logger.warning(f"Transaction {digest[:12]} was inserted concurrently, skipping")
            return Outcome.DUPLICATE
        except SQLAlchemyError:
            logger.exception(f"Failed to write transaction {digest[:12]} from {raw.sender}")
            return Outcome.FAILED
        return Outcome.ADDED

    def _write(self, parsed: ParsedTransaction, digest: str) -> None:
        description = build_description(parsed, digest, self.settings.description_preview_len)
        account = parsed.resolved_account_name or self.settings.default_account
        label = categorize(parsed)
        if parsed.direction is Direction.DEBIT:
            self.ledger.insert_expense(parsed.amount, label, description, parsed.timestamp, account, digest)
        else:
            self.ledger.insert_income(parsed.amount, label, description, parsed.timestamp, account, digest)
        logger.info(f"Added {parsed.direction} {parsed.amount} '{label}' ({parsed.counterparty_name})")

    @staticmethod
    def _notify(callback: ProgressCallback | None, progress: SyncProgress) -> None:
        if callback is None:
            return
        try:
            callback(progress.model_copy())
        except Exception:
            logger.exception("Progress callback failed")


def sync_all_transactions(
    source: MessageSource,
    ledger: LedgerStore,
    preferences: PreferencesStore,
    settings: Settings,
    on_progress: ProgressCallback | None = None,
) -> SyncProgress:
    """Top-level function to run one sync batch."""
    runner = SyncRunner(source, ledger, preferences, settings)
    return runner.sync(on_progress)


def run_sync_job(
    job_id: str,
    source: MessageSource,
    settings: Settings,
    session_factory: Callable[[], Session] = SessionLocal,
) -> None:
    """Run a sync as a background job, mirroring its counters into the jobs table."""
    logger.info(f"Starting sync job: {job_id}, source: {source.name}")
    ledger = LedgerStore(session_factory)
    preferences = PreferencesStore(session_factory, settings.default_blocked_keywords)
    jobs = JobStore(session_factory())
    try:
        jobs.mark_in_progress(job_id)
        try:
            progress = sync_all_transactions(
                source,
                ledger,
                preferences,
                settings,
                on_progress=lambda p: jobs.update_progress(job_id, p),
            )
        except Exception as exc:
            logger.exception(f"Error processing sync job {job_id}")
            jobs.mark_failed(job_id, str(exc))
        else:
            jobs.mark_completed(job_id, progress)
            logger.info(f"Sync job {job_id} completed: {progress.added} added")
    finally:
        jobs.close()
