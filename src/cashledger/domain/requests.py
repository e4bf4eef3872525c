"""Transaction request, proposal and decision types.

A teller action is described by a :class:`TransactionRequest` made of typed
legs. Legs validate themselves on construction so a malformed request never
reaches the composer.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from cashledger.domain.entities import HeldCheck, LedgerEntry, Loan
from cashledger.domain.errors import ValidationError
from cashledger.domain.fees import FeeResult

ZERO = Decimal("0")


def _positive(amount: Decimal, what: str) -> Decimal:
    amount = Decimal(amount)
    if not amount.is_finite() or amount <= 0:
        raise ValidationError(f"{what} must be greater than zero (got {amount})")
    return amount


@dataclass(frozen=True)
class CashLeg:
    """Cash withdrawal."""

    amount: Decimal
    is_rush: bool = False

    def __post_init__(self):
        object.__setattr__(self, "amount", _positive(self.amount, "Cash withdrawal amount"))


@dataclass(frozen=True)
class CheckLeg:
    """Check deposited into the account."""

    amount: Decimal
    check_number: Optional[str] = None
    has_account_number: bool = True
    on_hold: bool = False
    hold_tags: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "amount", _positive(self.amount, "Check deposit amount"))
        tags = tuple(sorted({tag.strip() for tag in self.hold_tags if tag and tag.strip()}))
        object.__setattr__(self, "hold_tags", tags)
        if tags and not self.on_hold:
            raise ValidationError("Hold tags given for a check that is not on hold")


@dataclass(frozen=True)
class CheckOutLeg:
    """Check written out of the account."""

    amount: Decimal
    pay_to_order_of: Optional[str] = None
    memo: Optional[str] = None
    is_rush: bool = False

    def __post_init__(self):
        object.__setattr__(self, "amount", _positive(self.amount, "Check amount"))


@dataclass(frozen=True)
class TransferLeg:
    to_account: Optional[str]
    amount: Decimal

    def __post_init__(self):
        object.__setattr__(self, "amount", _positive(self.amount, "Transfer amount"))


@dataclass(frozen=True)
class TransactionRequest:
    """Money movements requested for one account in one teller action."""

    account_number: str
    credit_cash: Decimal = ZERO
    credit_checks: tuple[CheckLeg, ...] = ()
    debit_cash: tuple[CashLeg, ...] = ()
    debit_checks: tuple[CheckOutLeg, ...] = ()
    transfer: Optional[TransferLeg] = None
    apply_fee: bool = True

    def __post_init__(self):
        credit_cash = Decimal(self.credit_cash)
        if not credit_cash.is_finite() or credit_cash < 0:
            raise ValidationError(f"Cash deposit must not be negative (got {credit_cash})")
        object.__setattr__(self, "credit_cash", credit_cash)
        object.__setattr__(self, "credit_checks", tuple(self.credit_checks))
        object.__setattr__(self, "debit_cash", tuple(self.debit_cash))
        object.__setattr__(self, "debit_checks", tuple(self.debit_checks))

    @property
    def total_credit(self) -> Decimal:
        return self.credit_cash + sum((c.amount for c in self.credit_checks), ZERO)

    @property
    def available_credit(self) -> Decimal:
        """Credit that reaches the balance now (held checks excluded)."""
        return self.credit_cash + sum((c.amount for c in self.credit_checks if not c.on_hold), ZERO)

    @property
    def total_debit(self) -> Decimal:
        cash = sum((c.amount for c in self.debit_cash), ZERO)
        checks = sum((c.amount for c in self.debit_checks), ZERO)
        return cash + checks

    @property
    def transfer_amount(self) -> Decimal:
        return self.transfer.amount if self.transfer is not None else ZERO

    @property
    def is_rush(self) -> bool:
        return any(c.is_rush for c in self.debit_cash) or any(c.is_rush for c in self.debit_checks)


class ProposalOutcome(str, Enum):
    OK = "ok"
    SHORTFALL = "shortfall"
    REPAYMENT_OFFER = "repayment_offer"


@dataclass(frozen=True)
class Proposal:
    """Read-only evaluation of a request, awaiting a commit decision."""

    id: str
    request: TransactionRequest
    outcome: ProposalOutcome
    fee: FeeResult
    current_balance: Decimal
    prospective_balance: Decimal
    created_at: datetime
    shortfall: Decimal = ZERO
    loan: Optional[Loan] = None
    hold_recommended: bool = False

    @property
    def needs_decision(self) -> bool:
        return self.outcome != ProposalOutcome.OK


class LoanOption(str, Enum):
    SHORTFALL = "shortfall"
    FULL = "full"


@dataclass(frozen=True)
class LoanChoice:
    """Cover a shortfall with a new loan."""

    due_date: date
    option: LoanOption = LoanOption.SHORTFALL


@dataclass(frozen=True)
class Decision:
    """Caller's answer to a proposal's decision point."""

    create_loan: Optional[LoanChoice] = None
    apply_credit_to_loan: bool = False
    apply_excess_to_next_loan: bool = False
    abort: bool = False


@dataclass(frozen=True)
class RepaymentResult:
    """Outcome of a repayment, including the one-hop overpayment cascade."""

    payment: Decimal
    applied: Decimal
    excess: Decimal
    loan: Loan
    next_loan: Optional[Loan] = None
    applied_to_next: Decimal = ZERO
    credited_to_balance: Decimal = ZERO
    entry_ids: tuple[int, ...] = ()

    @property
    def loan_reduction_total(self) -> Decimal:
        return self.applied + self.applied_to_next


@dataclass(frozen=True)
class TransactionResult:
    transaction_ref: str
    entry_ids: tuple[int, ...]
    new_balance: Decimal
    fee: Decimal = ZERO
    loan_id: Optional[int] = None
    repayment: Optional[RepaymentResult] = None
    held_check_ids: tuple[int, ...] = ()
    aborted: bool = False


@dataclass(frozen=True)
class ReleaseResult:
    credited_accounts: dict[str, Decimal] = field(default_factory=dict)
    checks: tuple[HeldCheck, ...] = ()

    @property
    def total_released(self) -> Decimal:
        return sum(self.credited_accounts.values(), ZERO)


@dataclass(frozen=True)
class VoidResult:
    entry: LedgerEntry
    adjustment: Decimal
    new_balance: Decimal
