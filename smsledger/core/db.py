"""DB connection, ORM models and job helpers for the SMS ledger sync service."""

from typing import Any

from sqlalchemy import (
    Column,
    Float,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    select,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from smsledger.core.models import SyncProgress
from smsledger.core.utils import utcnow_iso

Base = declarative_base()


class Expense(Base):
    """A debit ledger entry."""

    __tablename__ = "expenses"
    id = Column(String, primary_key=True)
    amount = Column(Float, nullable=False)
    category = Column(String, nullable=False)
    description = Column(Text)
    date = Column(Integer, nullable=False)
    account = Column(String, default="Cash")
    fingerprint = Column(String, unique=True, index=True)
    created_at = Column(Integer, nullable=False)
    updated_at = Column(Integer, nullable=False)


class Income(Base):
    """A credit ledger entry."""

    __tablename__ = "income"
    id = Column(String, primary_key=True)
    amount = Column(Float, nullable=False)
    source = Column(String, nullable=False)
    description = Column(Text)
    date = Column(Integer, nullable=False)
    account = Column(String, default="Cash")
    fingerprint = Column(String, unique=True, index=True)
    created_at = Column(Integer, nullable=False)
    updated_at = Column(Integer, nullable=False)


class BankAccount(Base):
    """A registered bank account, matched against account suffixes found in messages."""

    __tablename__ = "bank_accounts"
    id = Column(Integer, primary_key=True)
    last4 = Column(String, nullable=False)
    name = Column(String, nullable=False)


class SenderRule(Base):
    """A user sender rule: custom bank identifier, blocked sender or blocked keyword."""

    __tablename__ = "sender_rules"
    __table_args__ = (UniqueConstraint("kind", "value"),)
    id = Column(Integer, primary_key=True)
    kind = Column(String, nullable=False, index=True)
    value = Column(String, nullable=False)


jobs_table = Table(
    "jobs",
    Base.metadata,
    Column("id", String, primary_key=True),
    Column("status", String, nullable=False),
    Column("created_at", String, nullable=False),
    Column("completed_at", String, nullable=True),
    Column("source", String, nullable=False),
    Column("error", Text, nullable=True),
    Column("total", Integer, nullable=False, default=0),
    Column("processed", Integer, nullable=False, default=0),
    Column("added", Integer, nullable=False, default=0),
    Column("failed", Integer, nullable=False, default=0),
)


def get_engine(database_url: str | None = None) -> Engine:
    """Create a SQLAlchemy engine using the given or configured database URL."""
    if database_url is None:
        from smsledger.core.settings import get_settings

        database_url = get_settings().database_url
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    return create_engine(database_url, connect_args=connect_args)


def init_db(engine: Engine) -> None:
    """Create the ledger, preference and job tables if they do not exist."""
    Base.metadata.create_all(engine)


engine = get_engine()
SessionLocal = sessionmaker(autoflush=False, bind=engine)


class JobStore:
    """Helper class for background sync job bookkeeping using SQLAlchemy."""

    def __init__(self, session: Session) -> None:
        """Initialize the JobStore with a SQLAlchemy session."""
        self.session = session

    def create_job(self, job_id: str, source: str) -> None:
        """Insert a pending job row."""
        self.session.execute(
            jobs_table.insert().values(id=job_id, status="pending", created_at=utcnow_iso(), source=source),
        )
        self.session.commit()

    def mark_in_progress(self, job_id: str) -> None:
        """Flag a job as running."""
        self._update(job_id, status="in_progress")

    def update_progress(self, job_id: str, progress: SyncProgress) -> None:
        """Mirror the sync counters of a running job."""
        self._update(job_id, **progress.model_dump())

    def mark_completed(self, job_id: str, progress: SyncProgress) -> None:
        """Flag a job as completed with its final counters."""
        self._update(job_id, status="completed", completed_at=utcnow_iso(), **progress.model_dump())

    def mark_failed(self, job_id: str, error: str) -> None:
        """Flag a job as failed with the error message."""
        self._update(job_id, status="error", completed_at=utcnow_iso(), error=error)

    def get_job_status(self, job_id: str) -> dict[str, Any] | None:
        """Retrieve the status, counters and metadata for a job by its ID."""
        stmt = select(
            jobs_table.c.status,
            jobs_table.c.created_at,
            jobs_table.c.completed_at,
            jobs_table.c.error,
            jobs_table.c.total,
            jobs_table.c.processed,
            jobs_table.c.added,
            jobs_table.c.failed,
        ).where(jobs_table.c.id == job_id)
        result = self.session.execute(stmt).first()
        if not result:
            return None
        return dict(result._mapping)  # noqa: SLF001

    def _update(self, job_id: str, **values: object) -> None:
        stmt = update(jobs_table).where(jobs_table.c.id == job_id).values(**values)
        self.session.execute(stmt)
        self.session.commit()

    def close(self) -> None:
        """Close the SQLAlchemy session."""
        self.session.close()
