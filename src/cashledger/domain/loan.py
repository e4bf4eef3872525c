"""Loan ledger: loan creation, repayment and the overpayment cascade."""

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from cashledger.database.base import Database
from cashledger.domain.account import AccountService
from cashledger.domain.entities import EntryKind, Loan, LoanStatus
from cashledger.domain.errors import NotFoundError, ValidationError, loan_not_found
from cashledger.domain.locking import AccountLocks
from cashledger.domain.requests import RepaymentResult

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
PAID_EPSILON = Decimal("0.001")


class LoanLedger:
    """Service for loans owed by accounts.

    A repayment reduces one loan and never takes it below zero. With
    :meth:`repay`, money left over after the first loan can go to the next
    open loan of the same account family (one hop only); whatever remains
    after that stays on the paying account's balance.
    """

    def __init__(self, db: Database, accounts: AccountService, locks: AccountLocks):
        """Initialize loan ledger.

        Args:
            db: Database instance
            accounts: Account service used to resolve account families
            locks: Per-account lock registry
        """
        self.db = db
        self.accounts = accounts
        self.locks = locks

    def get_loan(self, loan_id: int) -> Loan:
        """Get loan by ID, raising NotFoundError if missing."""
        loan = self.db.get_loan(loan_id)
        if loan is None:
            raise NotFoundError(loan_not_found(loan_id))
        return loan

    def create_loan(
        self, account_number: str, amount: Decimal, due_date: date, transaction_ref: Optional[str] = None
    ) -> Loan:
        """Create a loan and credit its amount to the account.

        Args:
            account_number: Borrowing account
            amount: Loan principal, greater than zero
            due_date: When the loan falls due
            transaction_ref: Groups the disbursement leg with a larger commit

        Returns:
            The new loan

        Raises:
            ValidationError: If amount is not positive
            NotFoundError: If the account does not exist
        """
        if amount <= 0:
            raise ValidationError(f"Loan amount must be greater than zero (got {amount})")
        self.accounts.require_account(account_number)

        with self.locks.hold(account_number), self.db.unit_of_work():
            loan_id = self.db.create_loan(account_number=account_number, amount=amount, due_date=due_date)
            self.db.create_entry(
                account_number=account_number,
                kind=EntryKind.CREDIT.value,
                amount=amount,
                memo="Loan disbursement",
                related_loan_id=loan_id,
                transaction_ref=transaction_ref,
                audit_details={"loan_disbursement": True, "due_date": due_date.isoformat()},
            )
            self.db.adjust_balance(account_number, amount)

        logger.info("loan created id=%s account=%s amount=%s due=%s", loan_id, account_number, amount, due_date)
        return self.get_loan(loan_id)

    def open_loans(self, account_number: str) -> list[Loan]:
        """Unpaid loans of the account and its direct sub-accounts, oldest due date first."""
        numbers = self.accounts.family_account_numbers(account_number)
        return self.db.list_loans(account_numbers=numbers, open_only=True)

    def list_loans(self, account_number: Optional[str] = None) -> list[Loan]:
        """List loans of an account family, or every loan."""
        if account_number is None:
            return self.db.list_loans()
        return self.db.list_loans(account_numbers=self.accounts.family_account_numbers(account_number))

    def apply_repayment(
        self,
        loan_id: int,
        payment: Decimal,
        payer_account_number: Optional[str] = None,
        transaction_ref: Optional[str] = None,
    ) -> RepaymentResult:
        """Apply a payment to a single loan.

        The applied part is written as a repayment debit on the paying account.
        The excess is only reported; the caller decides where it goes.

        Args:
            loan_id: Loan to reduce
            payment: Amount offered, greater than zero
            payer_account_number: Account the money is taken from (defaults to the loan's account)
            transaction_ref: Groups the repayment leg with a larger commit

        Returns:
            RepaymentResult with applied, excess and the updated loan

        Raises:
            ValidationError: If payment is not positive or the loan is already paid
            NotFoundError: If the loan does not exist
        """
        if payment <= 0:
            raise ValidationError(f"Repayment amount must be greater than zero (got {payment})")
        loan = self.get_loan(loan_id)
        payer = payer_account_number or loan.account_number

        with self.locks.hold(payer, loan.account_number), self.db.unit_of_work():
            loan = self.db.get_loan(loan_id, for_update=True)
            if loan.status == LoanStatus.PAID:
                raise ValidationError(f"Loan {loan_id} is already paid")
            applied, entry_id = self._reduce(loan, payment, payer, transaction_ref)
            updated = self.db.get_loan(loan_id)

        return RepaymentResult(
            payment=payment,
            applied=applied,
            excess=payment - applied,
            loan=updated,
            entry_ids=(entry_id,),
        )

    def _reduce(
        self, loan: Loan, payment: Decimal, payer: str, transaction_ref: Optional[str]
    ) -> tuple[Decimal, int]:
        """Reduce one loan and write the repayment leg. Returns (applied, entry ID)."""
        applied = min(payment, loan.amount)
        remaining = loan.amount - applied
        if remaining <= PAID_EPSILON:
            remaining = ZERO
            status = LoanStatus.PAID
        else:
            status = loan.status
        self.db.update_loan(loan.id, amount=remaining, status=status.value)
        entry_id = self.db.create_entry(
            account_number=payer,
            kind=EntryKind.DEBIT.value,
            amount=applied,
            memo="Loan repayment",
            related_loan_id=loan.id,
            transaction_ref=transaction_ref,
            audit_details={"loan_repayment": True, "loan_account": loan.account_number},
        )
        self.db.adjust_balance(payer, -applied)
        logger.info(
            "loan repayment loan=%s payer=%s applied=%s remaining=%s status=%s",
            loan.id,
            payer,
            applied,
            remaining,
            status.value,
        )
        return applied, entry_id

    def repay(
        self,
        loan_id: int,
        payment: Decimal,
        apply_excess_to_next_loan: bool = False,
        payer_account_number: Optional[str] = None,
        transaction_ref: Optional[str] = None,
        receive_payment: bool = True,
    ) -> RepaymentResult:
        """Repay a loan, cascading any excess at most one loan further.

        Args:
            loan_id: First loan to reduce
            payment: Amount paid, greater than zero
            apply_excess_to_next_loan: Send the excess to the next open loan of the family
            payer_account_number: Paying account (defaults to the loan's account)
            transaction_ref: Groups every leg with a larger commit
            receive_payment: Write a credit leg for money arriving from outside. Off when
                the payment is already on the balance (credited by the same transaction)

        Returns:
            RepaymentResult; ``loan_reduction_total + credited_to_balance == payment``
        """
        if payment <= 0:
            raise ValidationError(f"Repayment amount must be greater than zero (got {payment})")
        loan = self.get_loan(loan_id)
        if loan.status == LoanStatus.PAID:
            raise ValidationError(f"Loan {loan_id} is already paid")
        payer = payer_account_number or loan.account_number
        family = self.accounts.family_account_numbers(payer)

        entry_ids: list[int] = []
        with self.locks.hold(payer, loan.account_number, *family), self.db.unit_of_work():
            if receive_payment:
                entry_ids.append(
                    self.db.create_entry(
                        account_number=payer,
                        kind=EntryKind.CREDIT.value,
                        amount=payment,
                        memo="Loan payment received",
                        related_loan_id=loan_id,
                        transaction_ref=transaction_ref,
                        audit_details={"loan_payment": True},
                    )
                )
                self.db.adjust_balance(payer, payment)

            loan = self.db.get_loan(loan_id, for_update=True)
            applied, entry_id = self._reduce(loan, payment, payer, transaction_ref)
            entry_ids.append(entry_id)
            excess = payment - applied

            next_loan = None
            applied_to_next = ZERO
            if excess > 0 and apply_excess_to_next_loan:
                candidates = [
                    candidate
                    for candidate in self.db.list_loans(account_numbers=family, open_only=True)
                    if candidate.id != loan_id
                ]
                if candidates:
                    next_loan = self.db.get_loan(candidates[0].id, for_update=True)
                    applied_to_next, entry_id = self._reduce(next_loan, excess, payer, transaction_ref)
                    entry_ids.append(entry_id)
                    next_loan = self.db.get_loan(next_loan.id)

            updated = self.db.get_loan(loan_id)

        credited = payment - applied - applied_to_next
        logger.info(
            "loan repaid loan=%s payment=%s applied=%s next_loan=%s applied_to_next=%s to_balance=%s",
            loan_id,
            payment,
            applied,
            next_loan.id if next_loan else None,
            applied_to_next,
            credited,
        )
        return RepaymentResult(
            payment=payment,
            applied=applied,
            excess=excess,
            loan=updated,
            next_loan=next_loan,
            applied_to_next=applied_to_next,
            credited_to_balance=credited,
            entry_ids=tuple(entry_ids),
        )

    def restore_repayment(self, loan_id: int, amount: Decimal, today: Optional[date] = None) -> Loan:
        """Add a voided repayment back onto its loan and reopen it."""
        today = today or date.today()
        loan = self.db.get_loan(loan_id, for_update=True)
        if loan is None:
            raise NotFoundError(loan_not_found(loan_id))
        if loan.status == LoanStatus.PAID:
            status = LoanStatus.OVERDUE if loan.due_date < today else LoanStatus.ACTIVE
        else:
            status = loan.status
        self.db.update_loan(loan_id, amount=loan.amount + amount, status=status.value)
        return self.db.get_loan(loan_id)

    def mark_overdue(self, today: Optional[date] = None) -> list[Loan]:
        """Flag active loans whose due date has passed as overdue.

        Returns:
            The loans that changed status
        """
        today = today or date.today()
        changed = []
        with self.db.unit_of_work():
            for loan in self.db.list_loans(open_only=True):
                if loan.status == LoanStatus.ACTIVE and loan.due_date < today:
                    self.db.update_loan(loan.id, amount=loan.amount, status=LoanStatus.OVERDUE.value)
                    changed.append(loan.id)
        if changed:
            logger.info("loans marked overdue ids=%s", ",".join(str(i) for i in changed))
        return [self.get_loan(loan_id) for loan_id in changed]
