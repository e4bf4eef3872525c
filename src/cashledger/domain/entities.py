"""Domain model entities for cashledger.

These are pure data classes representing business concepts, independent of
database schema. Money is always a ``Decimal``; ledger amounts are positive
and the direction of a movement is carried by the entry kind.
"""

from dataclasses import dataclass, field
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional


class EntryKind(str, Enum):
    """Kind of a ledger leg."""

    CREDIT = "credit"
    DEBIT = "debit"
    FEE = "fee"
    TRANSFER = "transfer"


class EntryStatus(str, Enum):
    """Lifecycle state of a ledger leg."""

    PENDING = "pending"
    COMPLETED = "completed"
    BOUNCED = "bounced"
    VOIDED = "voided"


class LoanStatus(str, Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"
    PAID = "paid"


class CheckStatus(str, Enum):
    """State of a deposited check."""

    PENDING = "pending"
    HOLD = "hold"
    CLEARED = "cleared"
    BOUNCED = "bounced"
    VOIDED = "voided"


@dataclass(frozen=True)
class Account:
    """Customer cash account domain entity."""

    id: int
    account_number: str
    name: str
    balance: Decimal
    parent_account_number: Optional[str]
    created_at: datetime


@dataclass(frozen=True)
class LedgerEntry:
    """One leg of a committed transaction."""

    id: int
    account_number: str
    kind: EntryKind
    amount: Decimal
    timestamp: datetime
    status: EntryStatus
    memo: Optional[str]
    related_loan_id: Optional[int]
    transaction_ref: Optional[str]
    audit_details: dict[str, Any] = field(default_factory=dict)

    @property
    def balance_effect(self) -> Decimal:
        """Signed change this entry applied to its account balance."""
        if self.kind == EntryKind.CREDIT:
            return self.amount
        if self.kind == EntryKind.TRANSFER and self.audit_details.get("direction") == "in":
            return self.amount
        return -self.amount


@dataclass(frozen=True)
class Loan:
    """Loan domain entity. ``amount`` is the remaining principal."""

    id: int
    account_number: str
    amount: Decimal
    original_amount: Decimal
    due_date: date
    status: LoanStatus
    created_at: datetime


@dataclass(frozen=True)
class HeldCheck:
    """Deposited check, possibly on hold."""

    id: int
    account_number: str
    check_number: Optional[str]
    amount: Decimal
    cleared_amount: Decimal
    tags: frozenset[str]
    deposit_date: datetime
    status: CheckStatus
    has_account_number: bool
    entry_id: Optional[int]

    @property
    def remaining(self) -> Decimal:
        """Amount still held back from the depositor."""
        return self.amount - self.cleared_amount


@dataclass(frozen=True)
class CheckOut:
    """Check written out of an account."""

    id: int
    account_number: str
    check_number: int
    pay_to_order_of: Optional[str]
    amount: Decimal
    memo: Optional[str]
    is_rush: bool
    is_printed: bool
    status: str
    entry_id: Optional[int]
    created_at: datetime
