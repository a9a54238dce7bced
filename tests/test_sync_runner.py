"""Tests for the sync orchestrator over the fixture inbox and hand-built batches."""

import threading
from collections.abc import Callable

import pytest
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smsledger.core.db import Expense, Income, JobStore
from smsledger.core.models import Direction, RawMessage, SyncProgress
from smsledger.core.settings import Settings
from smsledger.services.ledger import BLOCKED_KEYWORD, BLOCKED_SENDER, LedgerStore, PreferencesStore
from smsledger.services.message_source import FixtureMessageSource, InboxAccessDeniedError, MessageSource
from smsledger.workers.sync_runner import SyncRunner, run_sync_job, sync_all_transactions

TS = 1_770_885_000_000
FIXTURE_SIZE = 5
FIXTURE_PARSEABLE = 4


class ListSource(MessageSource):
    """In-memory message source for tests."""

    name = "list"

    def __init__(self, messages: list[RawMessage], *, granted: bool = True) -> None:
        """Hold the given messages."""
        self.messages = messages
        self.granted = granted

    def has_read_access(self) -> bool:
        """Report the configured permission state."""
        return self.granted

    def list_messages(self, box: str = "inbox", max_count: int = 1000) -> list[RawMessage]:
        """Return the held messages."""
        _ = box
        return self.messages[:max_count]


class FlakyLedger(LedgerStore):
    """Ledger that fails to write expenses of one amount."""

    def __init__(self, session_factory: Callable[[], Session], failing_amount: float) -> None:
        """Initialize with the amount whose writes fail."""
        super().__init__(session_factory)
        self.failing_amount = failing_amount

    def insert_expense(self, amount: float, *args: object, **kwargs: object) -> str:
        """Fail for the configured amount, write otherwise."""
        if amount == self.failing_amount:
            msg = "disk I/O error"
            raise SQLAlchemyError(msg)
        return super().insert_expense(amount, *args, **kwargs)


def _debit(amount: int, merchant: str, offset_ms: int = 0) -> RawMessage:
    return RawMessage(
        sender="HDFCBK",
        body=f"Rs. {amount}.00 debited from a/c 1234 to {merchant}. Ref 1.",
        timestamp=TS - offset_ms,
    )


def test_fixture_sync_is_idempotent(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """The first run adds every parseable fixture message, the second adds nothing."""
    first = sync_all_transactions(FixtureMessageSource(), ledger, preferences, settings)
    if first != SyncProgress(total=FIXTURE_SIZE, processed=FIXTURE_SIZE, added=FIXTURE_PARSEABLE):
        msg = f"Unexpected first run: {first}"
        raise AssertionError(msg)
    second = sync_all_transactions(FixtureMessageSource(), ledger, preferences, settings)
    if second != SyncProgress(total=FIXTURE_SIZE, processed=FIXTURE_SIZE, added=0):
        msg = f"Unexpected second run: {second}"
        raise AssertionError(msg)
    if (ledger.count(Direction.DEBIT), ledger.count(Direction.CREDIT)) != (3, 1):
        msg = "Expected three expenses and one income entry"
        raise AssertionError(msg)


def test_ledger_entries_carry_category_account_and_token(
    session_factory: Callable[[], Session],
    ledger: LedgerStore,
    preferences: PreferencesStore,
    settings: Settings,
) -> None:
    """Entries get categories, resolved account names and the fingerprint token."""
    preferences.add_bank_account("1234", "HDFC Salary")
    sync_all_transactions(FixtureMessageSource(), ledger, preferences, settings)
    with session_factory() as session:
        expenses = {row.category: row for row in session.query(Expense)}
        incomes = list(session.query(Income))
    if set(expenses) != {"Food", "Transport", "Bills"}:
        msg = f"Unexpected categories: {sorted(expenses)}"
        raise AssertionError(msg)
    if (expenses["Food"].account, expenses["Transport"].account) != ("HDFC Salary", "Cash"):
        msg = "Expected resolved account for a/c 1234 and the default account otherwise"
        raise AssertionError(msg)
    food = expenses["Food"]
    if f"[HASH:{food.fingerprint}]" not in food.description:
        msg = f"Expected the fingerprint token in {food.description!r}"
        raise AssertionError(msg)
    if len(incomes) != 1 or incomes[0].source != "Salary" or incomes[0].amount != 50000.0:
        msg = f"Unexpected income entries: {incomes}"
        raise AssertionError(msg)


def test_progress_cadence(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """Progress is reported every fifth message and on the last one."""
    messages = [_debit(100 + i, f"SHOP{i}") for i in range(12)]
    seen: list[SyncProgress] = []
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, settings, seen.append)
    if [p.processed for p in seen] != [5, 10, 12]:
        msg = f"Unexpected progress reports: {seen}"
        raise AssertionError(msg)
    if progress != SyncProgress(total=12, processed=12, added=12):
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)
    if seen[0].added != 5:  # noqa: PLR2004
        msg = "Reports must be snapshots taken at the time of the call"
        raise AssertionError(msg)


def test_empty_batch_reports_zero(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """An empty inbox reports zero counters once and returns."""
    seen: list[SyncProgress] = []
    progress = sync_all_transactions(ListSource([]), ledger, preferences, settings, seen.append)
    if progress != SyncProgress() or seen != [SyncProgress()]:
        msg = f"Unexpected empty batch result: {progress}, {seen}"
        raise AssertionError(msg)


def test_access_denied(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """A denied inbox raises before any progress is reported."""
    seen: list[SyncProgress] = []
    with pytest.raises(InboxAccessDeniedError):
        sync_all_transactions(FixtureMessageSource(granted=False), ledger, preferences, settings, seen.append)
    if seen:
        msg = "No progress may be reported when access is denied"
        raise AssertionError(msg)


def test_invalid_timestamps_are_skipped(
    ledger: LedgerStore,
    preferences: PreferencesStore,
    settings: Settings,
) -> None:
    """Messages with unusable timestamps count as processed but are never added."""
    messages = [
        RawMessage(sender="HDFCBK", body="Rs. 10.00 debited from a/c 1234 to A.", timestamp="yesterday"),
        RawMessage(sender="HDFCBK", body="Rs. 20.00 debited from a/c 1234 to B.", timestamp="nan"),
        RawMessage(sender="HDFCBK", body="Rs. 30.00 debited from a/c 1234 to C.", timestamp=f" {TS} "),
    ]
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, settings)
    if progress != SyncProgress(total=3, processed=3, added=1):
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)


def test_oversized_timestamp_does_not_abort_batch(
    ledger: LedgerStore,
    preferences: PreferencesStore,
    settings: Settings,
) -> None:
    """A timestamp too large for the ledger column skips that message and the batch carries on."""
    messages = [
        RawMessage(sender="HDFCBK", body="Rs. 10.00 debited from a/c 1234 to A.", timestamp="9" * 30),
        RawMessage(sender="HDFCBK", body="Rs. 20.00 debited from a/c 1234 to B.", timestamp=TS),
    ]
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, settings)
    if progress != SyncProgress(total=2, processed=2, added=1, failed=0):
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)


def test_blocklists(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """Blocked senders, user keywords and the default keywords are all skipped."""
    preferences.add_rule(BLOCKED_SENDER, "cred")
    preferences.add_rule(BLOCKED_KEYWORD, "lottery")
    messages = [
        RawMessage(sender="VM-CREDIN", body="Rs. 10.00 debited from a/c 1234 to CRED.", timestamp=TS),
        RawMessage(sender="HDFCBK", body="Rs. 20.00 debited for LOTTERY ticket.", timestamp=TS),
        RawMessage(sender="HDFCBK", body="Rs. 30.00 debited. Your loan EMI is due.", timestamp=TS),
        _debit(40, "DMART"),
    ]
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, settings)
    if progress != SyncProgress(total=4, processed=4, added=1):
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)


def test_require_bank_sender(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """With bank-sender filtering on, unknown senders are skipped."""
    strict = settings.model_copy(update={"require_bank_sender": True})
    messages = [
        RawMessage(sender="FRIEND", body="Rs. 10.00 debited from a/c 1234 to A.", timestamp=TS),
        _debit(20, "B"),
    ]
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, strict)
    if progress.added != 1:
        msg = f"Expected only the bank message to be added, got {progress}"
        raise AssertionError(msg)


def test_self_transfers_skipped_only_when_enabled(
    ledger: LedgerStore,
    preferences: PreferencesStore,
    settings: Settings,
) -> None:
    """Own-account transfers are recorded by default and skipped only with the opt-in setting."""
    preferences.add_bank_account("1234", "HDFC Salary")
    preferences.add_bank_account("5678", "SBI Savings")
    body = "Rs. 25,000.00 debited from a/c 1234 via NEFT transfer to a/c XX5678 on 12-02-26."
    messages = [RawMessage(sender="HDFCBK", body=body, timestamp=TS)]
    skipping = settings.model_copy(update={"skip_self_transfers": True})
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, skipping)
    if progress != SyncProgress(total=1, processed=1, added=0):
        msg = f"Expected the self transfer to be skipped, got {progress}"
        raise AssertionError(msg)
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, settings)
    if progress != SyncProgress(total=1, processed=1, added=1):
        msg = f"Expected the self transfer to be recorded by default, got {progress}"
        raise AssertionError(msg)


def test_duplicates_within_one_batch(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """The same event seen twice in one minute is recorded once."""
    messages = [_debit(500, "ZOMATO", offset_ms=1_000), _debit(500, "ZOMATO", offset_ms=2_000)]
    progress = sync_all_transactions(ListSource(messages), ledger, preferences, settings)
    if progress != SyncProgress(total=2, processed=2, added=1):
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)


def test_write_failures_do_not_abort_batch(
    session_factory: Callable[[], Session],
    preferences: PreferencesStore,
    settings: Settings,
) -> None:
    """A failed insert is counted and the rest of the batch still runs."""
    ledger = FlakyLedger(session_factory, failing_amount=200.0)
    messages = [_debit(100, "A"), _debit(200, "B"), _debit(300, "C")]
    progress = SyncRunner(ListSource(messages), ledger, preferences, settings).sync()
    if progress != SyncProgress(total=3, processed=3, added=2, failed=1):
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)


def test_failing_progress_callback_is_ignored(
    ledger: LedgerStore,
    preferences: PreferencesStore,
    settings: Settings,
) -> None:
    """Callback errors are logged and never stop the sync."""

    def explode(_: SyncProgress) -> None:
        msg = "listener gone"
        raise RuntimeError(msg)

    progress = sync_all_transactions(FixtureMessageSource(), ledger, preferences, settings, explode)
    if progress.added != FIXTURE_PARSEABLE:
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)


def test_cancellation(ledger: LedgerStore, preferences: PreferencesStore, settings: Settings) -> None:
    """A set cancel event stops the loop before the next message."""
    cancel = threading.Event()
    messages = [_debit(100 + i, f"SHOP{i}") for i in range(10)]

    def stop_after_first_report(progress: SyncProgress) -> None:
        if progress.processed == 5:  # noqa: PLR2004
            cancel.set()

    runner = SyncRunner(ListSource(messages), ledger, preferences, settings)
    progress = runner.sync(stop_after_first_report, cancel)
    if progress != SyncProgress(total=10, processed=5, added=5):
        msg = f"Unexpected summary: {progress}"
        raise AssertionError(msg)


def test_run_sync_job_records_counters(session_factory: Callable[[], Session], settings: Settings) -> None:
    """A background job ends completed with the final counters."""
    jobs = JobStore(session_factory())
    jobs.create_job("job-1", "fixture")
    run_sync_job("job-1", FixtureMessageSource(), settings, session_factory)
    status = jobs.get_job_status("job-1")
    jobs.close()
    if status is None or status["status"] != "completed":
        msg = f"Unexpected job status: {status}"
        raise AssertionError(msg)
    if (status["total"], status["processed"], status["added"], status["failed"]) != (5, 5, 4, 0):
        msg = f"Unexpected job counters: {status}"
        raise AssertionError(msg)


def test_run_sync_job_records_access_error(session_factory: Callable[[], Session], settings: Settings) -> None:
    """A denied inbox leaves the job in error with the message."""
    jobs = JobStore(session_factory())
    jobs.create_job("job-2", "fixture")
    run_sync_job("job-2", FixtureMessageSource(granted=False), settings, session_factory)
    status = jobs.get_job_status("job-2")
    jobs.close()
    if status is None or status["status"] != "error" or "permission" not in (status["error"] or ""):
        msg = f"Unexpected job status: {status}"
        raise AssertionError(msg)
