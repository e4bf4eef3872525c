"""SQLAlchemy models for cashledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    JSON,
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    Table,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()

MONEY = Numeric(12, 2)


class Account(Base):
    """Customer cash account model."""

    __tablename__ = "accounts"

    id = Column(Integer, primary_key=True)
    account_number = Column(String, unique=True, nullable=False)
    name = Column(String, nullable=False)
    parent_account_number = Column(String, ForeignKey("accounts.account_number"), nullable=True)
    balance = Column(MONEY, nullable=False, default=0)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    parent = relationship("Account", remote_side=[account_number], backref="sub_accounts")
    entries = relationship("LedgerEntry", back_populates="account")
    loans = relationship("Loan", back_populates="account")


class LedgerEntry(Base):
    """Ledger leg model. Rows are never deleted; voiding changes status."""

    __tablename__ = "ledger_entries"

    id = Column(Integer, primary_key=True)
    account_number = Column(String, ForeignKey("accounts.account_number"), nullable=False, index=True)
    kind = Column(String, nullable=False)
    amount = Column(MONEY, nullable=False)
    timestamp = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False, index=True)
    status = Column(String, nullable=False, default="completed")
    memo = Column(String, nullable=True)
    related_loan_id = Column(Integer, ForeignKey("loans.id"), nullable=True)
    transaction_ref = Column(String, nullable=True, index=True)
    audit_details = Column(JSON, nullable=False, default=dict)

    # Relationships
    account = relationship("Account", back_populates="entries")


class Loan(Base):
    """Loan model. ``amount`` is the remaining principal."""

    __tablename__ = "loans"

    id = Column(Integer, primary_key=True)
    account_number = Column(String, ForeignKey("accounts.account_number"), nullable=False, index=True)
    amount = Column(MONEY, nullable=False)
    original_amount = Column(MONEY, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(String, nullable=False, default="active")
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Relationships
    account = relationship("Account", back_populates="loans")


check_tags = Table(
    "check_hold_tags",
    Base.metadata,
    Column("check_id", Integer, ForeignKey("checks_in.id"), primary_key=True),
    Column("tag_id", Integer, ForeignKey("hold_tags.id"), primary_key=True),
)


class HoldTag(Base):
    """Free-form label grouping held checks."""

    __tablename__ = "hold_tags"

    id = Column(Integer, primary_key=True)
    tag = Column(String, unique=True, nullable=False)


class CheckIn(Base):
    """Deposited check model."""

    __tablename__ = "checks_in"

    id = Column(Integer, primary_key=True)
    account_number = Column(String, ForeignKey("accounts.account_number"), nullable=False, index=True)
    check_number = Column(String, nullable=True)
    amount = Column(MONEY, nullable=False)
    cleared_amount = Column(MONEY, nullable=False, default=0)
    deposit_date = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)
    status = Column(String, nullable=False, default="pending")
    has_account_number = Column(Boolean, default=True, nullable=False)
    entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=True)

    # Relationships
    tags = relationship("HoldTag", secondary=check_tags, order_by="HoldTag.tag")


class CheckOut(Base):
    """Check written out of an account."""

    __tablename__ = "checks_out"

    id = Column(Integer, primary_key=True)
    account_number = Column(String, ForeignKey("accounts.account_number"), nullable=False, index=True)
    check_number = Column(Integer, unique=True, nullable=False)
    pay_to_order_of = Column(String, nullable=True)
    amount = Column(MONEY, nullable=False)
    memo = Column(String, nullable=True)
    is_rush = Column(Boolean, default=False, nullable=False)
    is_printed = Column(Boolean, default=False, nullable=False)
    status = Column(String, nullable=False, default="pending")
    entry_id = Column(Integer, ForeignKey("ledger_entries.id"), nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are thread-local; the connection pool hands connections across threads
        connect_args = {"check_same_thread": False, "timeout": 30}
    engine = create_engine(database_url, echo=False, connect_args=connect_args)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)
