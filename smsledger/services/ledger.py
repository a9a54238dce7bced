"""LedgerStore and PreferencesStore: SQLAlchemy-backed persistence used by the sync pipeline."""

import uuid
from collections.abc import Callable

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from smsledger.core.db import BankAccount, Expense, Income, SenderRule
from smsledger.core.models import BankAccountMapping, Direction, SyncPreferences
from smsledger.core.utils import get_logger, now_ms

CUSTOM_IDENTIFIER = "custom_identifier"
BLOCKED_SENDER = "blocked_sender"
BLOCKED_KEYWORD = "blocked_keyword"
RULE_KINDS = (CUSTOM_IDENTIFIER, BLOCKED_SENDER, BLOCKED_KEYWORD)

logger = get_logger("sms-ledger.ledger")


class LedgerStore:
    """Expense and income ledger with one committed transaction per inserted row."""

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        """Initialize the LedgerStore with a SQLAlchemy session factory."""
        self.session_factory = session_factory

    def insert_expense(
        self,
        amount: float,
        category: str,
        description: str,
        date: int,
        account: str,
        fingerprint: str | None = None,
    ) -> str:
        """Insert an expense entry and return its id."""
        return self._insert(
            Expense,
            amount=amount,
            category=category,
            description=description,
            date=date,
            account=account,
            fingerprint=fingerprint,
        )

    def insert_income(
        self,
        amount: float,
        source: str,
        description: str,
        date: int,
        account: str,
        fingerprint: str | None = None,
    ) -> str:
        """Insert an income entry and return its id."""
        return self._insert(
            Income,
            amount=amount,
            source=source,
            description=description,
            date=date,
            account=account,
            fingerprint=fingerprint,
        )

    def find_by_description_contains_and_amount(self, direction: Direction, token: str, amount: float) -> list[str]:
        """Return ids of entries in the direction's partition whose description contains token and amount matches."""
        model = Expense if direction is Direction.DEBIT else Income
        stmt = select(model.id).where(model.description.contains(token), model.amount == amount)
        with self.session_factory() as session:
            return list(session.scalars(stmt))

    def count(self, direction: Direction) -> int:
        """Count the entries of one partition."""
        model = Expense if direction is Direction.DEBIT else Income
        with self.session_factory() as session:
            return session.scalar(select(func.count()).select_from(model)) or 0

    def _insert(self, model: type[Expense] | type[Income], **fields: object) -> str:
        entry_id = str(uuid.uuid4())
        stamp = now_ms()
        with self.session_factory() as session:
            session.add(model(id=entry_id, created_at=stamp, updated_at=stamp, **fields))
            try:
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise
        logger.debug(f"Inserted {model.__tablename__} entry {entry_id}")
        return entry_id


class PreferencesStore:
    """Registered bank accounts and sender rules consulted by each sync run."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        default_blocked_keywords: list[str] | None = None,
    ) -> None:
        """Initialize the PreferencesStore with a session factory and the built-in keyword blocklist."""
        self.session_factory = session_factory
        self.default_blocked_keywords = list(default_blocked_keywords or [])

    def load(self) -> SyncPreferences:
        """Load the current preferences, merging the built-in blocked keywords."""
        with self.session_factory() as session:
            bank_accounts = [
                BankAccountMapping(last4=row.last4, name=row.name) for row in session.scalars(select(BankAccount))
            ]
            rules: dict[str, list[str]] = {kind: [] for kind in RULE_KINDS}
            for rule in session.scalars(select(SenderRule).order_by(SenderRule.id)):
                rules.setdefault(rule.kind, []).append(rule.value)
        keywords = list(dict.fromkeys([*self.default_blocked_keywords, *rules[BLOCKED_KEYWORD]]))
        return SyncPreferences(
            bank_accounts=bank_accounts,
            custom_bank_identifiers=rules[CUSTOM_IDENTIFIER],
            blocked_senders=rules[BLOCKED_SENDER],
            blocked_keywords=keywords,
        )

    def add_bank_account(self, last4: str, name: str) -> None:
        """Register a bank account by its trailing digits."""
        with self.session_factory() as session:
            session.add(BankAccount(last4=last4, name=name))
            session.commit()

    def add_rule(self, kind: str, value: str) -> None:
        """Add a custom bank identifier, blocked sender or blocked keyword if not already present."""
        if kind not in RULE_KINDS:
            msg = f"Unknown sender rule kind: {kind}"
            raise ValueError(msg)
        with self.session_factory() as session:
            exists = session.scalars(
                select(SenderRule).where(SenderRule.kind == kind, SenderRule.value == value),
            ).first()
            if not exists:
                session.add(SenderRule(kind=kind, value=value))
                session.commit()
