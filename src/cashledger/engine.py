"""Ledger engine facade.

Wires the services around one database and one configuration and exposes
the operations callers need. The CLI talks only to this class.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Callable, Iterable, Optional

from cashledger.config import EngineConfig
from cashledger.database.base import Database
from cashledger.domain.account import AccountService
from cashledger.domain.composer import TransactionComposer
from cashledger.domain.entities import Loan
from cashledger.domain.fee_schedule import FeeSchedule
from cashledger.domain.fees import FeeContext, FeeResult, compute_fee
from cashledger.domain.hold import HoldLedger
from cashledger.domain.loan import LoanLedger
from cashledger.domain.locking import AccountLocks
from cashledger.domain.requests import (
    Decision,
    Proposal,
    ReleaseResult,
    RepaymentResult,
    TransactionRequest,
    TransactionResult,
    VoidResult,
)

logger = logging.getLogger(__name__)


class LedgerEngine:
    """Entry point for every ledger operation."""

    def __init__(
        self,
        db: Database,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the engine.

        Args:
            db: Database instance
            config: Engine configuration; defaults have every fee disabled
            clock: Returns the current UTC time; replaceable in tests
        """
        self.db = db
        self.config = config or EngineConfig()
        self.locks = AccountLocks(timeout=self.config.lock_timeout_seconds)
        self.accounts = AccountService(db)
        self.loans = LoanLedger(db, self.accounts, self.locks)
        self.holds = HoldLedger(db, self.locks, self.config.hold_policy)
        self.composer = TransactionComposer(
            db, self.accounts, self.loans, self.holds, self.locks, self.config, clock=clock
        )

    @staticmethod
    def compute_fee(schedule: FeeSchedule, context: FeeContext) -> FeeResult:
        return compute_fee(schedule, context)

    def quote_fee(self, request: TransactionRequest) -> FeeResult:
        """Fee the configured schedule would charge for a request."""
        return self.composer.quote(request)

    def propose_transaction(self, request: TransactionRequest) -> Proposal:
        return self.composer.propose(request)

    def commit_transaction(self, proposal_id: str, decision: Optional[Decision] = None) -> TransactionResult:
        return self.composer.commit(proposal_id, decision)

    def submit(self, request: TransactionRequest) -> TransactionResult:
        """Propose and commit a request that needs no decision.

        Raises:
            ValidationError: If the proposal needs a decision (shortfall)
        """
        proposal = self.propose_transaction(request)
        return self.commit_transaction(proposal.id, Decision())

    def place_hold(self, check_id: int, tags: Iterable[str] = ()):
        return self.holds.place(check_id, tags)

    def release_hold(self, check_ids: Iterable[int]) -> ReleaseResult:
        return self.holds.release_full(check_ids)

    def release_partial_hold(self, tag: str, amount: Decimal) -> ReleaseResult:
        return self.holds.release_partial(tag, amount)

    def release_all_for_tag(self, tag: str) -> ReleaseResult:
        return self.holds.release_all_for_tag(tag)

    def create_loan(self, account_number: str, amount: Decimal, due_date: date) -> Loan:
        return self.loans.create_loan(account_number, amount, due_date)

    def apply_loan_repayment(
        self, loan_id: int, amount: Decimal, apply_excess_to_next_loan: bool = False
    ) -> RepaymentResult:
        """Take a payment from outside and apply it to a loan (one-hop cascade)."""
        return self.loans.repay(loan_id, amount, apply_excess_to_next_loan=apply_excess_to_next_loan)

    def mark_overdue_loans(self, today: Optional[date] = None) -> list[Loan]:
        return self.loans.mark_overdue(today)

    def void_transaction(self, entry_id: int) -> VoidResult:
        return self.composer.void(entry_id)

    def bounce_check(self, check_id: int, fee: Optional[Decimal] = None) -> TransactionResult:
        return self.composer.bounce_check(check_id, fee)

    def charge_reprint_fee(self, check_out_id: int) -> TransactionResult:
        return self.composer.charge_reprint_fee(check_out_id)
