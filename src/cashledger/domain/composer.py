"""Transaction composer.

Turns a :class:`TransactionRequest` into ledger entries in two phases.
:meth:`TransactionComposer.propose` validates the request, prices it and
reports whether the caller must decide something (cover a shortfall with a
loan, or route the deposit to an open loan). It writes nothing and holds no
lock afterwards. :meth:`TransactionComposer.commit` then writes every leg in a
single unit of work under the per-account locks, after re-checking the
balance the proposal was based on.
"""

import logging
import threading
import uuid
from datetime import datetime, timedelta, UTC
from decimal import Decimal
from typing import Callable, Optional

from cashledger.config import EngineConfig
from cashledger.database.base import Database
from cashledger.domain.account import AccountService
from cashledger.domain.entities import (
    Account,
    CheckStatus,
    EntryKind,
    EntryStatus,
    LedgerEntry,
)
from cashledger.domain.errors import (
    ConcurrencyConflict,
    NotFoundError,
    ProposalExpired,
    ValidationError,
    account_not_found,
    amount_over_limit,
    check_not_found,
    entry_not_found,
)
from cashledger.domain.fees import FeeContext, FeeResult, compute_fee, waiver_window_days
from cashledger.domain.hold import HoldLedger
from cashledger.domain.loan import LoanLedger
from cashledger.domain.locking import AccountLocks
from cashledger.domain.requests import (
    Decision,
    LoanOption,
    Proposal,
    ProposalOutcome,
    TransactionRequest,
    TransactionResult,
    VoidResult,
)

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


class TransactionComposer:
    """Validates, prices and commits teller transactions."""

    def __init__(
        self,
        db: Database,
        accounts: AccountService,
        loans: LoanLedger,
        holds: HoldLedger,
        locks: AccountLocks,
        config: EngineConfig,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize transaction composer.

        Args:
            db: Database instance
            accounts: Account service
            loans: Loan ledger used for shortfall loans and repayments
            holds: Hold ledger used for held check deposits
            locks: Per-account lock registry
            config: Engine configuration (fee schedule, limits, fees account)
            clock: Returns the current UTC time; replaceable in tests
        """
        self.db = db
        self.accounts = accounts
        self.loans = loans
        self.holds = holds
        self.locks = locks
        self.config = config
        self.clock = clock or (lambda: datetime.now(UTC))
        self._proposals: dict[str, Proposal] = {}
        self._proposals_lock = threading.Lock()

    # Validation and pricing

    def validate(self, request: TransactionRequest) -> Account:
        """Check a request against the accounts and limits.

        Returns:
            The source account

        Raises:
            NotFoundError: If the source account does not exist
            ValidationError: If the request is empty, over the limit, or has a bad transfer
        """
        account = self.accounts.require_account(request.account_number)
        limit = self.config.max_transaction_amount

        if request.total_credit == 0 and request.total_debit == 0 and request.transfer_amount == 0:
            raise ValidationError("Nothing to do: enter a deposit, a withdrawal or a transfer")
        if request.total_credit > limit:
            raise ValidationError(amount_over_limit(limit))
        if request.total_debit + request.transfer_amount > limit:
            raise ValidationError(amount_over_limit(limit))

        if request.transfer is not None:
            recipient = (request.transfer.to_account or "").strip()
            if not recipient:
                raise ValidationError("Transfer needs a recipient account")
            if recipient == request.account_number:
                raise ValidationError("Cannot transfer to the same account")
            if self.db.get_account_by_number(recipient) is None:
                raise ValidationError(account_not_found(recipient))

        return account

    def _fee_context(self, request: TransactionRequest, now: datetime) -> FeeContext:
        trailing = ZERO
        window = waiver_window_days(self.config.fee_schedule)
        if window is not None:
            trailing = self.db.sum_debit_activity(request.account_number, since=now - timedelta(days=window))

        rush_checks = [c for c in request.debit_checks if c.is_rush]
        return FeeContext(
            cash_debit_total=sum((c.amount for c in request.debit_cash), ZERO),
            rush_cash_total=sum((c.amount for c in request.debit_cash if c.is_rush), ZERO),
            check_debit_count=len(request.debit_checks),
            rush_check_count=len(rush_checks),
            rush_check_total=sum((c.amount for c in rush_checks), ZERO),
            missing_account_check_count=sum(1 for c in request.credit_checks if not c.has_account_number),
            is_rush=request.is_rush,
            trailing_debit_total=trailing,
        )

    def quote(self, request: TransactionRequest) -> FeeResult:
        """Price a request without proposing it."""
        self.validate(request)
        return compute_fee(self.config.fee_schedule, self._fee_context(request, self.clock()))

    @staticmethod
    def _prospective(request: TransactionRequest, balance: Decimal, fee: FeeResult) -> Decimal:
        charged = fee.amount if request.apply_fee else ZERO
        outgoing = request.total_debit + charged + request.transfer_amount
        return balance + request.available_credit - outgoing

    # Proposal store

    def _store(self, proposal: Proposal) -> None:
        with self._proposals_lock:
            self._purge_expired()
            self._proposals[proposal.id] = proposal

    def _purge_expired(self) -> None:
        now = self.clock()
        ttl = timedelta(seconds=self.config.proposal_ttl_seconds)
        for proposal_id in [pid for pid, p in self._proposals.items() if now - p.created_at > ttl]:
            del self._proposals[proposal_id]

    def get_proposal(self, proposal_id: str) -> Proposal:
        """Get a live proposal.

        Raises:
            ProposalExpired: If the proposal is unknown, consumed or too old
        """
        with self._proposals_lock:
            proposal = self._proposals.get(proposal_id)
            if proposal is None:
                raise ProposalExpired(f"Proposal {proposal_id} is unknown or was already used")
            age = self.clock() - proposal.created_at
            if age > timedelta(seconds=self.config.proposal_ttl_seconds):
                del self._proposals[proposal_id]
                raise ProposalExpired(f"Proposal {proposal_id} expired; propose the transaction again")
            return proposal

    def _discard(self, proposal_id: str) -> None:
        with self._proposals_lock:
            self._proposals.pop(proposal_id, None)

    # Phase 1

    def propose(self, request: TransactionRequest) -> Proposal:
        """Validate and price a request without changing anything.

        Args:
            request: Requested movements for one account

        Returns:
            Proposal with outcome OK, SHORTFALL (with the amount missing) or
            REPAYMENT_OFFER (with the oldest open loan of the account family)

        Raises:
            NotFoundError: If the account does not exist
            ValidationError: If the request is invalid
        """
        account = self.validate(request)
        now = self.clock()
        fee = compute_fee(self.config.fee_schedule, self._fee_context(request, now))
        prospective = self._prospective(request, account.balance, fee)

        outcome = ProposalOutcome.OK
        shortfall = ZERO
        loan = None
        if prospective < 0:
            outcome = ProposalOutcome.SHORTFALL
            shortfall = -prospective
        elif request.available_credit > 0:
            open_loans = self.loans.open_loans(request.account_number)
            if open_loans:
                outcome = ProposalOutcome.REPAYMENT_OFFER
                loan = open_loans[0]

        hold_recommended = bool(request.credit_checks) and self.holds.should_recommend_hold(
            request.account_number, now
        )

        proposal = Proposal(
            id=str(uuid.uuid4()),
            request=request,
            outcome=outcome,
            fee=fee,
            current_balance=account.balance,
            prospective_balance=prospective,
            created_at=now,
            shortfall=shortfall,
            loan=loan,
            hold_recommended=hold_recommended,
        )
        self._store(proposal)
        logger.debug(
            "proposal id=%s account=%s outcome=%s fee=%s prospective=%s",
            proposal.id,
            request.account_number,
            outcome.value,
            fee.amount,
            prospective,
        )
        return proposal

    # Phase 2

    def _check_decision(self, proposal: Proposal, decision: Decision) -> None:
        if proposal.outcome == ProposalOutcome.SHORTFALL and decision.create_loan is None:
            raise ValidationError(
                f"Transaction is short by ${proposal.shortfall:,.2f}; choose a loan option or abort"
            )
        if proposal.outcome != ProposalOutcome.SHORTFALL and decision.create_loan is not None:
            raise ValidationError("There is no shortfall to cover with a loan")
        if decision.apply_credit_to_loan and proposal.outcome != ProposalOutcome.REPAYMENT_OFFER:
            raise ValidationError("There is no open loan to apply this deposit to")

    def commit(self, proposal_id: str, decision: Optional[Decision] = None) -> TransactionResult:
        """Commit a proposal with the caller's decision.

        Every leg is written in one unit of work; if anything fails, nothing
        is kept.

        Args:
            proposal_id: ID returned by :meth:`propose`
            decision: Answer to the proposal's decision point (none needed for OK)

        Returns:
            TransactionResult with the new balance and the written entry IDs

        Raises:
            ProposalExpired: If the proposal is unknown, consumed or too old
            ValidationError: If the decision does not fit the proposal
            ConcurrencyConflict: If the account changed so the proposal no longer holds
            PersistenceError: If the database write fails
        """
        decision = decision or Decision()
        proposal = self.get_proposal(proposal_id)
        request = proposal.request

        if decision.abort:
            self._discard(proposal_id)
            logger.info("proposal aborted id=%s account=%s", proposal_id, request.account_number)
            return TransactionResult(
                transaction_ref="",
                entry_ids=(),
                new_balance=proposal.current_balance,
                aborted=True,
            )

        self._check_decision(proposal, decision)

        source = request.account_number
        recipient = request.transfer.to_account if request.transfer is not None else None
        charged = proposal.fee.amount if request.apply_fee else ZERO
        lock_accounts = [*self.accounts.family_account_numbers(source), recipient]
        if charged > 0:
            lock_accounts.append(self.config.fees_account_number)

        transaction_ref = str(uuid.uuid4())
        loan_id = None
        repayment = None
        held_check_ids: list[int] = []

        with self.locks.hold(*lock_accounts), self.db.unit_of_work():
            account = self.db.get_account_by_number(source, for_update=True)
            if account is None:
                raise NotFoundError(account_not_found(source))
            if recipient is not None and self.db.get_account_by_number(recipient, for_update=True) is None:
                raise ValidationError(account_not_found(recipient))

            prospective = self._prospective(request, account.balance, proposal.fee)
            if proposal.outcome == ProposalOutcome.SHORTFALL:
                if account.balance != proposal.current_balance:
                    raise ConcurrencyConflict(
                        f"Balance of account {source} changed since the proposal; propose again"
                    )
            elif prospective < 0:
                raise ConcurrencyConflict(
                    f"Account {source} no longer covers this transaction; propose again"
                )

            if decision.create_loan is not None:
                if decision.create_loan.option == LoanOption.FULL:
                    loan_amount = request.total_debit + charged + request.transfer_amount
                else:
                    loan_amount = -prospective
                loan = self.loans.create_loan(
                    source, loan_amount, decision.create_loan.due_date, transaction_ref=transaction_ref
                )
                loan_id = loan.id

            self._write_credits(request, transaction_ref, held_check_ids)
            self._write_debits(request, transaction_ref)
            if request.transfer is not None:
                self._write_transfer(source, recipient, request.transfer.amount, transaction_ref)
            if charged > 0:
                self._charge_fee(source, charged, proposal.fee.memo, transaction_ref, proposal.fee)

            if decision.apply_credit_to_loan:
                balance = self.db.get_account_by_number(source).balance
                payment = min(request.available_credit, balance)
                open_loans = self.loans.open_loans(source)
                if payment > 0 and open_loans:
                    repayment = self.loans.repay(
                        open_loans[0].id,
                        payment,
                        apply_excess_to_next_loan=decision.apply_excess_to_next_loan,
                        payer_account_number=source,
                        transaction_ref=transaction_ref,
                        receive_payment=False,
                    )

            new_balance = self.db.get_account_by_number(source).balance
            entry_ids = tuple(sorted(e.id for e in self.db.list_entries(transaction_ref=transaction_ref)))

        self._discard(proposal_id)
        logger.info(
            "transaction committed ref=%s account=%s entries=%d fee=%s balance=%s loan=%s",
            transaction_ref,
            source,
            len(entry_ids),
            charged,
            new_balance,
            loan_id,
        )
        return TransactionResult(
            transaction_ref=transaction_ref,
            entry_ids=entry_ids,
            new_balance=new_balance,
            fee=charged,
            loan_id=loan_id,
            repayment=repayment,
            held_check_ids=tuple(held_check_ids),
        )

    def _write_credits(self, request: TransactionRequest, transaction_ref: str, held_check_ids: list[int]) -> None:
        source = request.account_number
        if request.credit_cash > 0:
            self.db.create_entry(
                account_number=source,
                kind=EntryKind.CREDIT.value,
                amount=request.credit_cash,
                memo="Cash deposit",
                transaction_ref=transaction_ref,
            )
            self.db.adjust_balance(source, request.credit_cash)

        for check in request.credit_checks:
            details = {"check_number": check.check_number, "has_account_number": check.has_account_number}
            if check.on_hold:
                details["on_hold"] = True
            entry_id = self.db.create_entry(
                account_number=source,
                kind=EntryKind.CREDIT.value,
                amount=check.amount,
                status=EntryStatus.PENDING.value if check.on_hold else EntryStatus.COMPLETED.value,
                memo=f"Check deposit {check.check_number}" if check.check_number else "Check deposit",
                transaction_ref=transaction_ref,
                audit_details=details,
            )
            check_id = self.db.create_check_in(
                account_number=source,
                amount=check.amount,
                check_number=check.check_number,
                has_account_number=check.has_account_number,
                entry_id=entry_id,
            )
            self.db.update_entry(entry_id, audit_details={**details, "check_in_id": check_id})
            if check.on_hold:
                self.holds.place(check_id, check.hold_tags)
                held_check_ids.append(check_id)
            else:
                self.db.adjust_balance(source, check.amount)

    def _write_debits(self, request: TransactionRequest, transaction_ref: str) -> None:
        source = request.account_number
        for cash in request.debit_cash:
            self.db.create_entry(
                account_number=source,
                kind=EntryKind.DEBIT.value,
                amount=cash.amount,
                memo="Cash withdrawal (rush)" if cash.is_rush else "Cash withdrawal",
                transaction_ref=transaction_ref,
                audit_details={"is_rush": cash.is_rush},
            )
            self.db.adjust_balance(source, -cash.amount)

        for check in request.debit_checks:
            memo = f"Check to {check.pay_to_order_of}" if check.pay_to_order_of else "Check written"
            entry_id = self.db.create_entry(
                account_number=source,
                kind=EntryKind.DEBIT.value,
                amount=check.amount,
                memo=memo,
                transaction_ref=transaction_ref,
            )
            check_out_id = self.db.create_check_out(
                account_number=source,
                amount=check.amount,
                pay_to_order_of=check.pay_to_order_of,
                memo=check.memo,
                is_rush=check.is_rush,
                entry_id=entry_id,
            )
            check_out = self.db.get_check_out(check_out_id)
            self.db.update_entry(
                entry_id,
                audit_details={
                    "check_out_id": check_out_id,
                    "check_number": check_out.check_number,
                    "is_rush": check.is_rush,
                },
            )
            self.db.adjust_balance(source, -check.amount)

    def _write_transfer(self, source: str, recipient: str, amount: Decimal, transaction_ref: str) -> None:
        out_id = self.db.create_entry(
            account_number=source,
            kind=EntryKind.TRANSFER.value,
            amount=amount,
            memo=f"Transfer to {recipient}",
            transaction_ref=transaction_ref,
            audit_details={"direction": "out", "counterparty": recipient},
        )
        in_id = self.db.create_entry(
            account_number=recipient,
            kind=EntryKind.TRANSFER.value,
            amount=amount,
            memo=f"Transfer from {source}",
            transaction_ref=transaction_ref,
            audit_details={"direction": "in", "counterparty": source, "paired_entry_id": out_id},
        )
        self.db.update_entry(
            out_id, audit_details={"direction": "out", "counterparty": recipient, "paired_entry_id": in_id}
        )
        self.db.adjust_balance(source, -amount)
        self.db.adjust_balance(recipient, amount)

    def _charge_fee(
        self,
        account_number: str,
        amount: Decimal,
        memo: str,
        transaction_ref: str,
        fee: Optional[FeeResult] = None,
    ) -> int:
        """Write a fee leg and the matching credit to the fees account. Returns the fee entry ID."""
        fees_account = self.accounts.ensure_account(self.config.fees_account_number, "Fee income").account_number
        components = [
            {"rule": c.rule, "amount": str(c.amount), "description": c.description}
            for c in (fee.components if fee is not None else ())
        ]
        fee_entry_id = self.db.create_entry(
            account_number=account_number,
            kind=EntryKind.FEE.value,
            amount=amount,
            memo=memo or "Fee",
            transaction_ref=transaction_ref,
            audit_details={"components": components},
        )
        income_id = self.db.create_entry(
            account_number=fees_account,
            kind=EntryKind.CREDIT.value,
            amount=amount,
            memo=f"Fee from {account_number}",
            transaction_ref=transaction_ref,
            audit_details={"fee_entry_id": fee_entry_id},
        )
        self.db.update_entry(fee_entry_id, audit_details={"components": components, "fees_credit_entry_id": income_id})
        self.db.adjust_balance(account_number, -amount)
        self.db.adjust_balance(fees_account, amount)
        return fee_entry_id

    # Corrections

    def void(self, entry_id: int) -> VoidResult:
        """Void a ledger entry by applying the inverse balance adjustment.

        The entry stays in the ledger with status ``voided``. A transfer leg
        voids its paired leg too; a fee leg also takes the fee back out of the
        fees account; a loan repayment leg goes back onto its loan. Voiding a
        check deposit also voids the hold releases already credited for it, and
        voiding a hold release puts that amount back on hold.

        Raises:
            NotFoundError: If the entry does not exist
            ValidationError: If the entry is already voided or cannot be voided
        """
        entry = self.db.get_entry(entry_id)
        if entry is None:
            raise NotFoundError(entry_not_found(entry_id))
        self._check_voidable(entry)

        linked = self._linked_entry(entry)
        lock_accounts = [entry.account_number] + ([linked.account_number] if linked else [])
        if entry.related_loan_id is not None:
            lock_accounts.append(self.loans.get_loan(entry.related_loan_id).account_number)

        with self.locks.hold(*lock_accounts), self.db.unit_of_work():
            entry = self.db.get_entry(entry_id, for_update=True)
            self._check_voidable(entry)
            now = self.clock()

            adjustment = self._reverse(entry, now)
            if linked is not None:
                self._reverse(self.db.get_entry(linked.id, for_update=True), now)

            if entry.audit_details.get("loan_repayment"):
                self.loans.restore_repayment(entry.related_loan_id, entry.amount, today=now.date())
            check_in_id = entry.audit_details.get("check_in_id")
            if check_in_id is not None:
                for release in self._hold_releases(entry.account_number, check_in_id):
                    adjustment += self._reverse(release, now)
                self.db.update_check_in(check_in_id, status=CheckStatus.VOIDED.value)
            release = entry.audit_details.get("hold_release")
            if release is not None:
                check = self.db.get_check_in(release["check_id"], for_update=True)
                self.db.update_check_in(
                    check.id, cleared_amount=check.cleared_amount - entry.amount, status=CheckStatus.HOLD.value
                )
            check_out_id = entry.audit_details.get("check_out_id")
            if check_out_id is not None:
                self.db.update_check_out(check_out_id, status="voided")

            new_balance = self.db.get_account_by_number(entry.account_number).balance
            updated = self.db.get_entry(entry_id)

        logger.info(
            "entry voided id=%s account=%s kind=%s adjustment=%s linked=%s",
            entry_id,
            entry.account_number,
            entry.kind.value,
            adjustment,
            linked.id if linked else None,
        )
        return VoidResult(entry=updated, adjustment=adjustment, new_balance=new_balance)

    def _check_voidable(self, entry: LedgerEntry) -> None:
        if entry.status == EntryStatus.VOIDED:
            raise ValidationError(f"Ledger entry {entry.id} is already voided")
        if entry.status == EntryStatus.BOUNCED:
            raise ValidationError(f"Ledger entry {entry.id} belongs to a bounced check and was already reversed")
        if entry.audit_details.get("loan_disbursement"):
            raise ValidationError(f"Ledger entry {entry.id} is a loan disbursement; repay the loan instead")
        if entry.audit_details.get("fee_entry_id") is not None:
            raise ValidationError(
                f"Ledger entry {entry.id} is fee income; void fee entry {entry.audit_details['fee_entry_id']} instead"
            )
        if entry.audit_details.get("reversal_type"):
            raise ValidationError(f"Ledger entry {entry.id} reverses a bounced check and cannot be voided")
        release = entry.audit_details.get("hold_release")
        if release is not None:
            check = self.db.get_check_in(release["check_id"])
            if check is not None and check.status not in (CheckStatus.HOLD, CheckStatus.CLEARED):
                raise ValidationError(
                    f"Ledger entry {entry.id} releases check {check.id}, which is {check.status.value}"
                )

    def _hold_releases(self, account_number: str, check_id: int) -> list[LedgerEntry]:
        """Completed hold-release credits of one deposited check."""
        return [
            e
            for e in self.db.list_entries(account_number=account_number)
            if e.status == EntryStatus.COMPLETED
            and (e.audit_details.get("hold_release") or {}).get("check_id") == check_id
        ]

    def _linked_entry(self, entry: LedgerEntry) -> Optional[LedgerEntry]:
        if entry.kind == EntryKind.TRANSFER:
            linked_id = entry.audit_details.get("paired_entry_id")
        elif entry.kind == EntryKind.FEE:
            linked_id = entry.audit_details.get("fees_credit_entry_id")
        else:
            return None
        if linked_id is None:
            return None
        return self.db.get_entry(linked_id)

    def _reverse(self, entry: LedgerEntry, now: datetime) -> Decimal:
        """Undo one entry's balance effect and mark it voided. Returns the adjustment."""
        adjustment = -entry.balance_effect if entry.status == EntryStatus.COMPLETED else ZERO
        if adjustment != 0:
            self.db.adjust_balance(entry.account_number, adjustment)
        self.db.update_entry(
            entry.id,
            status=EntryStatus.VOIDED.value,
            audit_details={
                **entry.audit_details,
                "voided_at": now.isoformat(),
                "void_adjustment": str(adjustment),
                "previous_status": entry.status.value,
            },
        )
        return adjustment

    def bounce_check(self, check_id: int, fee: Optional[Decimal] = None) -> TransactionResult:
        """Record that a deposited check bounced.

        Takes back whatever part of the check already reached the balance and
        charges the bounced-check fee. The balance may go negative.

        Args:
            check_id: Deposited check ID
            fee: Fee to charge instead of the schedule's bounced-check fee

        Raises:
            NotFoundError: If the check does not exist
            ValidationError: If the check already bounced or was voided, or fee is negative
        """
        check = self.db.get_check_in(check_id)
        if check is None:
            raise NotFoundError(check_not_found(check_id))
        if check.status in (CheckStatus.BOUNCED, CheckStatus.VOIDED):
            raise ValidationError(f"Check {check_id} is {check.status.value} and cannot bounce")

        schedule = self.config.fee_schedule
        if fee is None:
            fee = schedule.bounced_check.fee if schedule.enabled and schedule.bounced_check.enabled else ZERO
        if fee < 0:
            raise ValidationError(f"Bounced check fee must not be negative (got {fee})")

        transaction_ref = str(uuid.uuid4())
        with self.locks.hold(check.account_number, self.config.fees_account_number), self.db.unit_of_work():
            check = self.db.get_check_in(check_id, for_update=True)
            entry = self.db.get_entry(check.entry_id) if check.entry_id is not None else None
            if entry is not None and entry.status == EntryStatus.COMPLETED:
                available = check.amount
            else:
                available = check.cleared_amount

            self.db.update_check_in(check_id, status=CheckStatus.BOUNCED.value)
            if entry is not None:
                self.db.update_entry(entry.id, status=EntryStatus.BOUNCED.value)
            if available > 0:
                self.db.create_entry(
                    account_number=check.account_number,
                    kind=EntryKind.DEBIT.value,
                    amount=available,
                    memo=f"Bounced check {check.check_number or check.id} reversal",
                    transaction_ref=transaction_ref,
                    audit_details={"reversal_type": "bounced_check", "check_in_id": check_id},
                )
                self.db.adjust_balance(check.account_number, -available)
            if fee > 0:
                self._charge_fee(check.account_number, fee, "Bounced check fee", transaction_ref)

            new_balance = self.db.get_account_by_number(check.account_number).balance
            entry_ids = tuple(sorted(e.id for e in self.db.list_entries(transaction_ref=transaction_ref)))

        logger.info(
            "check bounced id=%s account=%s reversed=%s fee=%s", check_id, check.account_number, available, fee
        )
        return TransactionResult(transaction_ref=transaction_ref, entry_ids=entry_ids, new_balance=new_balance, fee=fee)

    def charge_reprint_fee(self, check_out_id: int) -> TransactionResult:
        """Charge the reprint fee for a written check and mark it printed.

        When the schedule has no reprint fee, nothing is charged.

        Raises:
            NotFoundError: If the written check does not exist
        """
        check = self.db.get_check_out(check_out_id)
        if check is None:
            raise NotFoundError(check_not_found(check_out_id))

        fee = compute_fee(self.config.fee_schedule, FeeContext(is_reprint=True))
        transaction_ref = str(uuid.uuid4())
        with self.locks.hold(check.account_number, self.config.fees_account_number), self.db.unit_of_work():
            if fee.amount > 0:
                self._charge_fee(check.account_number, fee.amount, fee.memo, transaction_ref, fee)
            self.db.update_check_out(check_out_id, is_printed=True)
            new_balance = self.db.get_account_by_number(check.account_number).balance
            entry_ids = tuple(sorted(e.id for e in self.db.list_entries(transaction_ref=transaction_ref)))

        logger.info("check reprinted id=%s number=%s fee=%s", check_out_id, check.check_number, fee.amount)
        return TransactionResult(
            transaction_ref=transaction_ref, entry_ids=entry_ids, new_balance=new_balance, fee=fee.amount
        )
