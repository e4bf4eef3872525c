"""Account domain service."""

import logging
from decimal import Decimal
from typing import Optional
from cashledger.database.base import Database
from cashledger.domain.entities import Account as AccountEntity
from cashledger.domain.errors import (
    ConflictError,
    NotFoundError,
    ValidationError,
    account_not_found,
    duplicate_account_number,
)

logger = logging.getLogger(__name__)


class AccountService:
    """Service for managing accounts and sub-accounts."""

    def __init__(self, db: Database):
        """Initialize account service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_account(
        self, account_number: str, name: str, parent_account_number: Optional[str] = None
    ) -> int:
        """Create a new account with a zero balance.

        Args:
            account_number: Unique account number
            name: Account holder name
            parent_account_number: Makes the new account a sub-account of this one

        Returns:
            Account ID

        Raises:
            ValidationError: If number or name is blank, or the parent is itself a sub-account
            ConflictError: If the account number already exists
            NotFoundError: If the parent account does not exist
        """
        account_number = (account_number or "").strip()
        name = (name or "").strip()
        if not account_number:
            raise ValidationError("Account number is required")
        if not name:
            raise ValidationError("Account name is required")

        if self.db.get_account_by_number(account_number) is not None:
            raise ConflictError(duplicate_account_number(account_number))

        if parent_account_number is not None:
            parent = self.db.get_account_by_number(parent_account_number)
            if parent is None:
                raise NotFoundError(account_not_found(parent_account_number))
            if parent.parent_account_number is not None:
                raise ValidationError(
                    f"Account {parent_account_number} is a sub-account and cannot have sub-accounts"
                )

        account_id = self.db.create_account(
            account_number=account_number, name=name, parent_account_number=parent_account_number
        )
        logger.info("account created number=%s parent=%s", account_number, parent_account_number)
        return account_id

    def ensure_account(self, account_number: str, name: str) -> AccountEntity:
        """Return the account with this number, creating it if missing."""
        account = self.db.get_account_by_number(account_number)
        if account is None:
            self.db.create_account(account_number=account_number, name=name)
            account = self.db.get_account_by_number(account_number)
        return account

    def get_account(self, account_id: int) -> Optional[AccountEntity]:
        """Get account by ID.

        Args:
            account_id: Account ID

        Returns:
            Account entity or None if not found
        """
        return self.db.get_account(account_id)

    def get_account_by_number(self, account_number: str) -> Optional[AccountEntity]:
        return self.db.get_account_by_number(account_number)

    def require_account(self, account_number: str) -> AccountEntity:
        """Get account by number, raising NotFoundError if missing."""
        account = self.db.get_account_by_number(account_number)
        if account is None:
            raise NotFoundError(account_not_found(account_number))
        return account

    def list_accounts(self) -> list[AccountEntity]:
        """List all accounts.

        Returns:
            List of account entities
        """
        return self.db.list_accounts()

    def list_sub_accounts(self, account_number: str) -> list[AccountEntity]:
        """List the direct sub-accounts of an account."""
        self.require_account(account_number)
        return self.db.list_accounts(parent_account_number=account_number)

    def family_account_numbers(self, account_number: str) -> list[str]:
        """Return the account number followed by its direct sub-account numbers."""
        return [account_number] + [a.account_number for a in self.list_sub_accounts(account_number)]

    def family_balance(self, account_number: str) -> Decimal:
        """Sum of the account's balance and its direct sub-accounts' balances."""
        account = self.require_account(account_number)
        subs = self.db.list_accounts(parent_account_number=account_number)
        return account.balance + sum((a.balance for a in subs), Decimal("0"))
