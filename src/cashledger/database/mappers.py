"""Mapper functions to convert between domain models and SQLAlchemy models.

This layer isolates the conversion logic, making it easy to change when
the database schema changes.
"""

from decimal import Decimal

from cashledger.domain import entities as domain
from cashledger.database.models import (
    Account as ORMAccount,
    LedgerEntry as ORMLedgerEntry,
    Loan as ORMLoan,
    CheckIn as ORMCheckIn,
    CheckOut as ORMCheckOut,
)


def _money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0))


def account_to_domain(orm_account: ORMAccount) -> domain.Account:
    """Convert SQLAlchemy Account model to domain Account entity."""
    return domain.Account(
        id=orm_account.id,
        account_number=orm_account.account_number,
        name=orm_account.name,
        balance=_money(orm_account.balance),
        parent_account_number=orm_account.parent_account_number,
        created_at=orm_account.created_at,
    )


def entry_to_domain(orm_entry: ORMLedgerEntry) -> domain.LedgerEntry:
    """Convert SQLAlchemy LedgerEntry model to domain LedgerEntry entity."""
    return domain.LedgerEntry(
        id=orm_entry.id,
        account_number=orm_entry.account_number,
        kind=domain.EntryKind(orm_entry.kind),
        amount=_money(orm_entry.amount),
        timestamp=orm_entry.timestamp,
        status=domain.EntryStatus(orm_entry.status),
        memo=orm_entry.memo,
        related_loan_id=orm_entry.related_loan_id,
        transaction_ref=orm_entry.transaction_ref,
        audit_details=dict(orm_entry.audit_details or {}),
    )


def loan_to_domain(orm_loan: ORMLoan) -> domain.Loan:
    """Convert SQLAlchemy Loan model to domain Loan entity."""
    return domain.Loan(
        id=orm_loan.id,
        account_number=orm_loan.account_number,
        amount=_money(orm_loan.amount),
        original_amount=_money(orm_loan.original_amount),
        due_date=orm_loan.due_date,
        status=domain.LoanStatus(orm_loan.status),
        created_at=orm_loan.created_at,
    )


def check_in_to_domain(orm_check: ORMCheckIn) -> domain.HeldCheck:
    """Convert SQLAlchemy CheckIn model to domain HeldCheck entity."""
    return domain.HeldCheck(
        id=orm_check.id,
        account_number=orm_check.account_number,
        check_number=orm_check.check_number,
        amount=_money(orm_check.amount),
        cleared_amount=_money(orm_check.cleared_amount),
        tags=frozenset(t.tag for t in orm_check.tags),
        deposit_date=orm_check.deposit_date,
        status=domain.CheckStatus(orm_check.status),
        has_account_number=orm_check.has_account_number,
        entry_id=orm_check.entry_id,
    )


def check_out_to_domain(orm_check: ORMCheckOut) -> domain.CheckOut:
    """Convert SQLAlchemy CheckOut model to domain CheckOut entity."""
    return domain.CheckOut(
        id=orm_check.id,
        account_number=orm_check.account_number,
        check_number=orm_check.check_number,
        pay_to_order_of=orm_check.pay_to_order_of,
        amount=_money(orm_check.amount),
        memo=orm_check.memo,
        is_rush=orm_check.is_rush,
        is_printed=orm_check.is_printed,
        status=orm_check.status,
        entry_id=orm_check.entry_id,
        created_at=orm_check.created_at,
    )
