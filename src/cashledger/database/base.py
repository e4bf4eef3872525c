"""Abstract database interface."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Optional, Any, Iterable
from datetime import date, datetime
from decimal import Decimal

# Import entities directly to avoid circular import through domain/__init__.py
from cashledger.domain.entities import (
    Account,
    CheckOut,
    HeldCheck,
    LedgerEntry,
    Loan,
)


class Database(ABC):
    """Abstract database interface for cashledger.

    Every write method joins the current unit of work when one is open and
    commits on its own otherwise. All writes made inside one
    ``unit_of_work()`` block are committed together or rolled back together.
    """

    @abstractmethod
    def connect(self) -> None:
        """Connect to the database."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the database."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize database schema (create tables)."""
        pass

    @abstractmethod
    def unit_of_work(self) -> AbstractContextManager[None]:
        """Open an atomic unit of work. Nested blocks join the outer one.

        Raises:
            PersistenceError: If the storage layer fails; nothing is kept
        """
        pass

    # Account operations
    @abstractmethod
    def create_account(
        self, account_number: str, name: str, parent_account_number: Optional[str] = None
    ) -> int:
        """Create a new account with a zero balance. Returns account ID."""
        pass

    @abstractmethod
    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by ID."""
        pass

    @abstractmethod
    def get_account_by_number(self, account_number: str, for_update: bool = False) -> Optional[Account]:
        """Get account by account number.

        Args:
            account_number: Account number
            for_update: Lock the row until the unit of work ends (where the engine supports it)
        """
        pass

    @abstractmethod
    def list_accounts(self, parent_account_number: Optional[str] = None) -> list[Account]:
        """List accounts, optionally only the sub-accounts of a parent."""
        pass

    @abstractmethod
    def adjust_balance(self, account_number: str, delta: Decimal) -> Decimal:
        """Add ``delta`` to an account balance. Returns the new balance."""
        pass

    # Ledger entry operations
    @abstractmethod
    def create_entry(
        self,
        account_number: str,
        kind: str,
        amount: Decimal,
        status: str = "completed",
        memo: Optional[str] = None,
        related_loan_id: Optional[int] = None,
        transaction_ref: Optional[str] = None,
        audit_details: Optional[dict[str, Any]] = None,
        timestamp: Optional[datetime] = None,
    ) -> int:
        """Create a ledger entry. Returns entry ID."""
        pass

    @abstractmethod
    def get_entry(self, entry_id: int, for_update: bool = False) -> Optional[LedgerEntry]:
        """Get ledger entry by ID."""
        pass

    @abstractmethod
    def update_entry(
        self, entry_id: int, status: Optional[str] = None, audit_details: Optional[dict[str, Any]] = None
    ) -> None:
        """Update entry status and/or replace its audit details."""
        pass

    @abstractmethod
    def list_entries(
        self,
        account_number: Optional[str] = None,
        transaction_ref: Optional[str] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[LedgerEntry]:
        """List ledger entries, newest first, with optional filters."""
        pass

    @abstractmethod
    def sum_debit_activity(self, account_number: str, since: datetime) -> Decimal:
        """Sum non-voided withdrawals and outgoing transfers since a point in time."""
        pass

    # Loan operations
    @abstractmethod
    def create_loan(self, account_number: str, amount: Decimal, due_date: date) -> int:
        """Create an active loan. Returns loan ID."""
        pass

    @abstractmethod
    def get_loan(self, loan_id: int, for_update: bool = False) -> Optional[Loan]:
        """Get loan by ID."""
        pass

    @abstractmethod
    def update_loan(self, loan_id: int, amount: Decimal, status: str) -> None:
        """Set a loan's remaining amount and status."""
        pass

    @abstractmethod
    def list_loans(
        self, account_numbers: Optional[Iterable[str]] = None, open_only: bool = False
    ) -> list[Loan]:
        """List loans ordered by due date, optionally only unpaid ones."""
        pass

    # Deposited check operations
    @abstractmethod
    def create_check_in(
        self,
        account_number: str,
        amount: Decimal,
        check_number: Optional[str] = None,
        has_account_number: bool = True,
        status: str = "pending",
        cleared_amount: Decimal = Decimal("0"),
        entry_id: Optional[int] = None,
        deposit_date: Optional[datetime] = None,
    ) -> int:
        """Record a deposited check. Returns check ID."""
        pass

    @abstractmethod
    def get_check_in(self, check_id: int, for_update: bool = False) -> Optional[HeldCheck]:
        """Get deposited check by ID."""
        pass

    @abstractmethod
    def update_check_in(
        self, check_id: int, cleared_amount: Optional[Decimal] = None, status: Optional[str] = None
    ) -> None:
        """Update cleared amount and/or status of a deposited check."""
        pass

    @abstractmethod
    def set_check_tags(self, check_id: int, tags: Iterable[str]) -> None:
        """Replace the hold tags of a deposited check, registering new tags."""
        pass

    @abstractmethod
    def list_checks_in(
        self,
        tag: Optional[str] = None,
        account_number: Optional[str] = None,
        statuses: Optional[Iterable[str]] = None,
        check_ids: Optional[Iterable[int]] = None,
    ) -> list[HeldCheck]:
        """List deposited checks, oldest deposit first (ties by ID)."""
        pass

    @abstractmethod
    def list_hold_tags(self) -> list[str]:
        """List every registered hold tag."""
        pass

    @abstractmethod
    def count_bounced_checks(self, account_number: str, since: datetime) -> int:
        """Count bounced checks deposited to an account since a point in time."""
        pass

    # Written check operations
    @abstractmethod
    def create_check_out(
        self,
        account_number: str,
        amount: Decimal,
        pay_to_order_of: Optional[str] = None,
        memo: Optional[str] = None,
        is_rush: bool = False,
        entry_id: Optional[int] = None,
    ) -> int:
        """Record a written check with the next check number. Returns check ID."""
        pass

    @abstractmethod
    def get_check_out(self, check_id: int) -> Optional[CheckOut]:
        """Get written check by ID."""
        pass

    @abstractmethod
    def list_checks_out(self, account_number: Optional[str] = None) -> list[CheckOut]:
        """List written checks by check number."""
        pass

    @abstractmethod
    def update_check_out(self, check_id: int, status: Optional[str] = None, is_printed: Optional[bool] = None) -> None:
        """Update status and/or printed flag of a written check."""
        pass
