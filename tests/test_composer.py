"""Tests for proposing and committing transactions."""

import pytest
from decimal import Decimal
from sqlalchemy.exc import SQLAlchemyError

from cashledger.config import EngineConfig
from cashledger.domain.entities import CheckStatus, EntryKind, EntryStatus, LoanStatus
from cashledger.domain.errors import (
    ConcurrencyConflict,
    NotFoundError,
    PersistenceError,
    ProposalExpired,
    ValidationError,
)
from cashledger.domain.fee_schedule import fee_schedule_from_dict
from cashledger.domain.requests import (
    CashLeg,
    CheckLeg,
    CheckOutLeg,
    Decision,
    LoanChoice,
    LoanOption,
    ProposalOutcome,
    TransactionRequest,
    TransferLeg,
)
from cashledger.engine import LedgerEngine


def balance(engine, number):
    return engine.accounts.require_account(number).balance


def withdrawal(number, *amounts, **kwargs):
    return TransactionRequest(number, debit_cash=tuple(CashLeg(Decimal(a)) for a in amounts), **kwargs)


class TestValidation:
    """Tests for request validation."""

    def test_unknown_account(self, engine):
        with pytest.raises(NotFoundError, match="Account 9999 not found"):
            engine.propose_transaction(TransactionRequest("9999", credit_cash=Decimal("10")))

    def test_empty_request(self, engine, sample_account):
        with pytest.raises(ValidationError, match="Nothing to do"):
            engine.propose_transaction(TransactionRequest("1001"))

    def test_credit_over_limit(self, engine, sample_account):
        with pytest.raises(ValidationError, match="cannot exceed \\$25,000.00"):
            engine.propose_transaction(TransactionRequest("1001", credit_cash=Decimal("25000.01")))

    def test_debit_side_counts_transfer(self, engine, sample_account, second_account):
        """Withdrawals and the transfer together must stay under the cap."""
        request = TransactionRequest(
            "1001",
            debit_cash=(CashLeg(Decimal("20000")),),
            transfer=TransferLeg("2002", Decimal("5000.01")),
        )
        with pytest.raises(ValidationError, match="cannot exceed"):
            engine.propose_transaction(request)

    def test_amount_at_limit_is_allowed(self, engine, sample_account):
        proposal = engine.propose_transaction(TransactionRequest("1001", credit_cash=Decimal("25000")))
        assert proposal.outcome == ProposalOutcome.OK

    def test_transfer_to_self(self, engine, sample_account):
        request = TransactionRequest("1001", transfer=TransferLeg("1001", Decimal("10")))
        with pytest.raises(ValidationError, match="same account"):
            engine.propose_transaction(request)

    def test_transfer_without_recipient(self, engine, sample_account):
        request = TransactionRequest("1001", transfer=TransferLeg(None, Decimal("10")))
        with pytest.raises(ValidationError, match="needs a recipient"):
            engine.propose_transaction(request)

    def test_transfer_to_unknown_account(self, engine, sample_account):
        request = TransactionRequest("1001", transfer=TransferLeg("4242", Decimal("10")))
        with pytest.raises(ValidationError, match="Account 4242 not found"):
            engine.propose_transaction(request)

    def test_non_positive_leg(self):
        with pytest.raises(ValidationError, match="greater than zero"):
            CashLeg(Decimal("0"))
        with pytest.raises(ValidationError, match="greater than zero"):
            CheckOutLeg(Decimal("-5"))

    def test_tags_without_hold(self):
        with pytest.raises(ValidationError, match="not on hold"):
            CheckLeg(Decimal("10"), hold_tags=("payroll",))

    def test_propose_writes_nothing(self, engine, sample_account, temp_db):
        before = len(temp_db.list_entries(account_number="1001"))
        engine.propose_transaction(withdrawal("1001", "40"))
        assert len(temp_db.list_entries(account_number="1001")) == before
        assert balance(engine, "1001") == Decimal("100.00")


class TestCommit:
    """Tests for committing proposals that need no decision."""

    def test_withdrawal(self, engine, sample_account, temp_db):
        proposal = engine.propose_transaction(withdrawal("1001", "40"))
        assert proposal.outcome == ProposalOutcome.OK
        assert proposal.prospective_balance == Decimal("60.00")

        result = engine.commit_transaction(proposal.id)

        assert result.new_balance == Decimal("60.00")
        assert len(result.entry_ids) == 1
        entry = temp_db.get_entry(result.entry_ids[0])
        assert entry.kind == EntryKind.DEBIT
        assert entry.amount == Decimal("40.00")
        assert entry.transaction_ref == result.transaction_ref

    def test_mixed_transaction(self, engine, sample_account, temp_db):
        """Cash in, cash out and a written check are committed together."""
        request = TransactionRequest(
            "1001",
            credit_cash=Decimal("50"),
            debit_cash=(CashLeg(Decimal("30")),),
            debit_checks=(CheckOutLeg(Decimal("45.50"), pay_to_order_of="City Water"),),
        )
        result = engine.submit(request)

        assert result.new_balance == Decimal("74.50")
        assert len(result.entry_ids) == 3
        checks = temp_db.list_checks_out(account_number="1001")
        assert len(checks) == 1
        assert checks[0].check_number == 1001
        assert checks[0].pay_to_order_of == "City Water"

    def test_written_check_numbers_increase(self, engine, sample_account, temp_db):
        engine.submit(TransactionRequest("1001", debit_checks=(CheckOutLeg(Decimal("5")), CheckOutLeg(Decimal("6")))))
        numbers = [c.check_number for c in temp_db.list_checks_out(account_number="1001")]
        assert numbers == [1001, 1002]

    def test_transfer(self, engine, sample_account, second_account, temp_db):
        result = engine.submit(TransactionRequest("1001", transfer=TransferLeg("2002", Decimal("30"))))

        assert result.new_balance == Decimal("70.00")
        assert balance(engine, "2002") == Decimal("30.00")
        out_entry, in_entry = (temp_db.get_entry(i) for i in result.entry_ids)
        assert out_entry.audit_details["direction"] == "out"
        assert in_entry.audit_details["direction"] == "in"
        assert out_entry.audit_details["paired_entry_id"] == in_entry.id
        assert in_entry.audit_details["paired_entry_id"] == out_entry.id
        assert in_entry.account_number == "2002"

    def test_commit_consumes_proposal(self, engine, sample_account):
        proposal = engine.propose_transaction(withdrawal("1001", "10"))
        engine.commit_transaction(proposal.id)
        with pytest.raises(ProposalExpired):
            engine.commit_transaction(proposal.id)
        assert balance(engine, "1001") == Decimal("90.00")

    def test_abort(self, engine, sample_account, temp_db):
        proposal = engine.propose_transaction(withdrawal("1001", "150"))
        result = engine.commit_transaction(proposal.id, Decision(abort=True))

        assert result.aborted
        assert result.entry_ids == ()
        assert balance(engine, "1001") == Decimal("100.00")
        with pytest.raises(ProposalExpired):
            engine.commit_transaction(proposal.id)

    def test_expired_proposal(self, engine, sample_account, clock):
        proposal = engine.propose_transaction(withdrawal("1001", "10"))
        clock.advance(301)
        with pytest.raises(ProposalExpired, match="expired"):
            engine.commit_transaction(proposal.id)
        assert balance(engine, "1001") == Decimal("100.00")

    def test_proposal_within_ttl(self, engine, sample_account, clock):
        proposal = engine.propose_transaction(withdrawal("1001", "10"))
        clock.advance(299)
        assert engine.commit_transaction(proposal.id).new_balance == Decimal("90.00")

    def test_unknown_proposal(self, engine):
        with pytest.raises(ProposalExpired, match="unknown"):
            engine.commit_transaction("no-such-proposal")

    def test_balance_dropped_since_proposal(self, engine, sample_account):
        """An OK proposal that no longer fits the balance is rejected at commit."""
        proposal = engine.propose_transaction(withdrawal("1001", "80"))
        engine.submit(withdrawal("1001", "50"))

        with pytest.raises(ConcurrencyConflict):
            engine.commit_transaction(proposal.id)
        assert balance(engine, "1001") == Decimal("50.00")

    def test_failed_write_keeps_nothing(self, engine, sample_account, temp_db, monkeypatch):
        """A database failure in the middle of a commit rolls back every leg."""

        def broken_create_check_out(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(temp_db, "create_check_out", broken_create_check_out)
        request = TransactionRequest(
            "1001", credit_cash=Decimal("50"), debit_checks=(CheckOutLeg(Decimal("20")),)
        )

        with pytest.raises(PersistenceError, match="no changes were saved"):
            engine.submit(request)

        assert balance(engine, "1001") == Decimal("100.00")
        assert len(temp_db.list_entries(account_number="1001")) == 1


class TestShortfall:
    """Tests for the shortfall decision point."""

    def test_shortfall_reported(self, engine, sample_account):
        proposal = engine.propose_transaction(withdrawal("1001", "150"))
        assert proposal.outcome == ProposalOutcome.SHORTFALL
        assert proposal.shortfall == Decimal("50.00")
        assert proposal.needs_decision

    def test_shortfall_needs_decision(self, engine, sample_account):
        proposal = engine.propose_transaction(withdrawal("1001", "150"))
        with pytest.raises(ValidationError, match="short by \\$50.00"):
            engine.commit_transaction(proposal.id, Decision())

    def test_loan_for_shortfall(self, engine, sample_account, due_date, temp_db):
        proposal = engine.propose_transaction(withdrawal("1001", "150"))
        result = engine.commit_transaction(proposal.id, Decision(create_loan=LoanChoice(due_date)))

        assert result.new_balance == Decimal("0.00")
        loan = engine.loans.get_loan(result.loan_id)
        assert loan.amount == Decimal("50.00")
        assert loan.status == LoanStatus.ACTIVE
        assert loan.due_date == due_date
        assert len(result.entry_ids) == 2
        disbursement = next(
            temp_db.get_entry(i) for i in result.entry_ids if temp_db.get_entry(i).related_loan_id is not None
        )
        assert disbursement.kind == EntryKind.CREDIT
        assert disbursement.audit_details["loan_disbursement"] is True

    def test_loan_for_full_amount(self, engine, sample_account, due_date):
        proposal = engine.propose_transaction(withdrawal("1001", "150"))
        result = engine.commit_transaction(
            proposal.id, Decision(create_loan=LoanChoice(due_date, option=LoanOption.FULL))
        )

        assert engine.loans.get_loan(result.loan_id).amount == Decimal("150.00")
        assert result.new_balance == Decimal("100.00")

    def test_loan_without_shortfall(self, engine, sample_account, due_date):
        proposal = engine.propose_transaction(withdrawal("1001", "10"))
        with pytest.raises(ValidationError, match="no shortfall"):
            engine.commit_transaction(proposal.id, Decision(create_loan=LoanChoice(due_date)))

    def test_balance_changed_since_shortfall(self, engine, sample_account, due_date, fund):
        proposal = engine.propose_transaction(withdrawal("1001", "150"))
        fund(engine, "1001", "10")

        with pytest.raises(ConcurrencyConflict, match="changed since the proposal"):
            engine.commit_transaction(proposal.id, Decision(create_loan=LoanChoice(due_date)))
        assert engine.loans.list_loans("1001") == []

    def test_submit_rejects_shortfall(self, engine, sample_account):
        with pytest.raises(ValidationError, match="short by"):
            engine.submit(withdrawal("1001", "100.01"))


class TestRepaymentOffer:
    """Tests for routing deposits to open loans."""

    @pytest.fixture
    def borrower(self, engine, sample_account, due_date):
        return engine.create_loan("1001", Decimal("50"), due_date)

    def test_offer_made_for_deposit(self, engine, borrower):
        proposal = engine.propose_transaction(TransactionRequest("1001", credit_cash=Decimal("30")))
        assert proposal.outcome == ProposalOutcome.REPAYMENT_OFFER
        assert proposal.loan.id == borrower.id

    def test_no_offer_without_deposit(self, engine, borrower):
        proposal = engine.propose_transaction(withdrawal("1001", "10"))
        assert proposal.outcome == ProposalOutcome.OK

    def test_no_offer_for_held_checks_only(self, engine, borrower):
        """Held funds cannot repay a loan until released."""
        request = TransactionRequest("1001", credit_checks=(CheckLeg(Decimal("30"), on_hold=True),))
        proposal = engine.propose_transaction(request)
        assert proposal.outcome == ProposalOutcome.OK
        assert proposal.loan is None

    def test_offer_for_cleared_part_of_mixed_deposit(self, engine, borrower):
        request = TransactionRequest(
            "1001",
            credit_checks=(CheckLeg(Decimal("30"), on_hold=True), CheckLeg(Decimal("10"))),
        )
        proposal = engine.propose_transaction(request)
        result = engine.commit_transaction(proposal.id, Decision(apply_credit_to_loan=True))

        assert proposal.outcome == ProposalOutcome.REPAYMENT_OFFER
        assert result.repayment.applied == Decimal("10.00")
        assert engine.loans.get_loan(borrower.id).amount == Decimal("40.00")

    def test_accept_offer(self, engine, borrower, temp_db):
        proposal = engine.propose_transaction(TransactionRequest("1001", credit_cash=Decimal("30")))
        result = engine.commit_transaction(proposal.id, Decision(apply_credit_to_loan=True))

        assert result.repayment.applied == Decimal("30.00")
        assert engine.loans.get_loan(borrower.id).amount == Decimal("20.00")
        assert result.new_balance == Decimal("150.00")
        repayment_entry = temp_db.get_entry(result.repayment.entry_ids[0])
        assert repayment_entry.kind == EntryKind.DEBIT
        assert repayment_entry.related_loan_id == borrower.id

    def test_decline_offer(self, engine, borrower):
        proposal = engine.propose_transaction(TransactionRequest("1001", credit_cash=Decimal("30")))
        result = engine.commit_transaction(proposal.id, Decision(apply_credit_to_loan=False))

        assert result.repayment is None
        assert result.new_balance == Decimal("180.00")
        assert engine.loans.get_loan(borrower.id).amount == Decimal("50.00")

    def test_deposit_larger_than_loan(self, engine, borrower):
        """Only what the loan needs is taken; the rest stays on the balance."""
        proposal = engine.propose_transaction(TransactionRequest("1001", credit_cash=Decimal("80")))
        result = engine.commit_transaction(proposal.id, Decision(apply_credit_to_loan=True))

        assert result.repayment.applied == Decimal("50.00")
        assert result.repayment.credited_to_balance == Decimal("30.00")
        assert engine.loans.get_loan(borrower.id).status == LoanStatus.PAID
        assert result.new_balance == Decimal("180.00")

    def test_apply_to_loan_without_offer(self, engine, sample_account):
        proposal = engine.propose_transaction(TransactionRequest("1001", credit_cash=Decimal("30")))
        with pytest.raises(ValidationError, match="no open loan"):
            engine.commit_transaction(proposal.id, Decision(apply_credit_to_loan=True))


class TestFees:
    """Tests for fee legs written by commits."""

    def test_fee_charged_and_credited(self, fee_engine, sample_account, temp_db):
        result = fee_engine.submit(withdrawal("1001", "20"))

        assert result.fee == Decimal("2.00")
        assert result.new_balance == Decimal("78.00")
        assert balance(fee_engine, "FEES") == Decimal("2.00")

        fee_entry = next(
            e for e in (temp_db.get_entry(i) for i in result.entry_ids) if e.kind == EntryKind.FEE
        )
        income = temp_db.get_entry(fee_entry.audit_details["fees_credit_entry_id"])
        assert income.account_number == "FEES"
        assert income.audit_details["fee_entry_id"] == fee_entry.id
        assert fee_entry.audit_details["components"][0]["rule"] == "cash_debit"

    def test_fee_can_be_skipped(self, fee_engine, sample_account):
        result = fee_engine.submit(withdrawal("1001", "20", apply_fee=False))
        assert result.fee == 0
        assert result.new_balance == Decimal("80.00")

    def test_fee_counts_toward_shortfall(self, fee_engine, sample_account):
        proposal = fee_engine.propose_transaction(withdrawal("1001", "99"))
        assert proposal.outcome == ProposalOutcome.SHORTFALL
        assert proposal.shortfall == Decimal("1.00")

    def test_missing_account_number_fee(self, fee_engine, sample_account):
        request = TransactionRequest("1001", credit_checks=(CheckLeg(Decimal("40"), has_account_number=False),))
        result = fee_engine.submit(request)
        assert result.fee == Decimal("3.00")
        assert result.new_balance == Decimal("137.00")

    def test_quote_matches_commit(self, fee_engine, sample_account):
        request = TransactionRequest("1001", debit_checks=(CheckOutLeg(Decimal("5")),) * 6)
        quoted = fee_engine.quote_fee(request)
        assert quoted.amount == Decimal("1.50")
        assert fee_engine.submit(request).fee == quoted.amount

    def test_conditional_waiver_uses_recent_debits(self, temp_db, clock, sample_account):
        schedule = fee_schedule_from_dict(
            {
                "enabled": True,
                "cash_debit": {
                    "enabled": True,
                    "fee_value": 2,
                    "waiver": {"mode": "conditional", "threshold_amount": 50, "period_days": 30},
                },
            }
        )
        engine = LedgerEngine(temp_db, EngineConfig(fee_schedule=schedule), clock=clock)

        assert engine.submit(withdrawal("1001", "40")).fee == 0
        assert engine.submit(withdrawal("1001", "20")).fee == 0
        # 60 withdrawn in the window, over the threshold
        assert engine.submit(withdrawal("1001", "10")).fee == Decimal("2.00")


class TestHeldChecks:
    """Tests for depositing checks on hold."""

    def test_held_check_does_not_raise_balance(self, engine, sample_account, temp_db):
        check = CheckLeg(Decimal("200"), check_number="5521", on_hold=True, hold_tags=("payroll",))
        result = engine.submit(TransactionRequest("1001", credit_checks=(check,)))

        assert result.new_balance == Decimal("100.00")
        assert len(result.held_check_ids) == 1
        held = temp_db.get_check_in(result.held_check_ids[0])
        assert held.status == CheckStatus.HOLD
        assert held.tags == frozenset({"payroll"})
        assert temp_db.get_entry(held.entry_id).status == EntryStatus.PENDING

    def test_cleared_check_raises_balance(self, engine, sample_account, temp_db):
        result = engine.submit(TransactionRequest("1001", credit_checks=(CheckLeg(Decimal("25")),)))
        assert result.new_balance == Decimal("125.00")
        assert result.held_check_ids == ()

    def test_held_check_does_not_cover_withdrawal(self, engine, sample_account):
        request = TransactionRequest(
            "1001",
            credit_checks=(CheckLeg(Decimal("200"), on_hold=True),),
            debit_cash=(CashLeg(Decimal("150")),),
        )
        proposal = engine.propose_transaction(request)
        assert proposal.outcome == ProposalOutcome.SHORTFALL
        assert proposal.shortfall == Decimal("50.00")
