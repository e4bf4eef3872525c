"""Fee calculation.

``compute_fee`` evaluates a :class:`FeeSchedule` against a :class:`FeeContext`
and returns the fee together with an audit memo. It reads nothing but its
arguments, so the same schedule and context always give the same result.
Persisting the fee leg is the caller's job.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_EVEN
from typing import Optional

from cashledger.domain.fee_schedule import FeeSchedule, FeeType, Tier, WaiverMode

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0")
HUNDRED = Decimal("100")


def quantize_money(amount: Decimal) -> Decimal:
    """Round to cents, half to even."""
    return amount.quantize(CENT, rounding=ROUND_HALF_EVEN)


@dataclass(frozen=True)
class FeeContext:
    """Everything about a proposed transaction that fees depend on.

    ``trailing_debit_total`` is the account's non-voided debit activity over
    the cash-debit waiver window; the caller computes it.
    """

    cash_debit_total: Decimal = ZERO
    rush_cash_total: Decimal = ZERO
    check_debit_count: int = 0
    rush_check_count: int = 0
    rush_check_total: Decimal = ZERO
    missing_account_check_count: int = 0
    is_reprint: bool = False
    is_rush: bool = False
    trailing_debit_total: Decimal = ZERO


@dataclass(frozen=True)
class FeeComponent:
    rule: str
    amount: Decimal
    description: str


@dataclass(frozen=True)
class FeeResult:
    amount: Decimal
    memo: str
    components: tuple[FeeComponent, ...] = ()


NO_FEE = FeeResult(amount=Decimal("0.00"), memo="")


def _money(amount: Decimal) -> str:
    return f"${quantize_money(amount):,.2f}"


def lookup_tier(tiers: tuple[Tier, ...], value: Decimal, rule: str) -> Optional[Tier]:
    """Return the tier whose inclusive range contains ``value``.

    No matching tier is not an error: the rule contributes nothing and a
    warning is logged so the schedule can be fixed.
    """
    for tier in tiers:
        if tier.contains(value):
            return tier
    logger.warning("no %s fee tier matches %s; charging no fee for this rule", rule, value)
    return None


def _cash_debit_component(schedule: FeeSchedule, context: FeeContext) -> tuple[Optional[FeeComponent], str]:
    rule = schedule.cash_debit
    if not rule.enabled or context.cash_debit_total <= 0:
        return None, ""

    waiver = rule.waiver
    if waiver.mode == WaiverMode.NEVER:
        return None, "Cash withdrawal fee waived"
    if waiver.mode == WaiverMode.CONDITIONAL and context.trailing_debit_total < waiver.threshold_amount:
        return None, (
            f"Cash withdrawal fee waived ({waiver.period_days}-day debits "
            f"{_money(context.trailing_debit_total)} below {_money(waiver.threshold_amount)})"
        )

    if rule.fee_type == FeeType.PERCENT:
        amount = context.cash_debit_total * rule.fee_value / HUNDRED
        description = f"Cash withdrawal fee {rule.fee_value}% of {_money(context.cash_debit_total)}"
    else:
        amount = rule.fee_value
        description = f"Cash withdrawal fee {_money(amount)}"
    return FeeComponent("cash_debit", amount, description), ""


def _check_count_component(
    rule_name: str, label: str, enabled: bool, tiers: tuple[Tier, ...], count: int
) -> Optional[FeeComponent]:
    if not enabled or count <= 0:
        return None
    tier = lookup_tier(tiers, Decimal(count), rule_name)
    if tier is None:
        return None
    return FeeComponent(rule_name, tier.fee, f"{label}: {count} check(s), {_money(tier.fee)}")


def _tiered_amount(tier: Tier, base: Decimal) -> Decimal:
    if tier.fee_type == FeeType.PERCENT:
        return base * tier.fee / HUNDRED
    return tier.fee


def _rush_components(schedule: FeeSchedule, context: FeeContext) -> tuple[Optional[FeeComponent], Optional[FeeComponent]]:
    rush = schedule.rush
    if not rush.enabled or not context.is_rush:
        return None, None

    cash_component = None
    cash_base = context.rush_cash_total
    if cash_base > 0:
        tier = lookup_tier(rush.cash_tiers, cash_base, "rush_cash")
        if tier is not None:
            amount = _tiered_amount(tier, cash_base)
            cash_component = FeeComponent("rush_cash", amount, f"Rush cash fee {_money(amount)}")

    check_component = None
    if context.rush_check_count > 0:
        tier = lookup_tier(rush.check_tiers, Decimal(context.rush_check_count), "rush_check")
        if tier is not None:
            amount = _tiered_amount(tier, context.rush_check_total)
            check_component = FeeComponent(
                "rush_check", amount, f"Rush check fee {_money(amount)} ({context.rush_check_count} check(s))"
            )

    return cash_component, check_component


def compute_fee(schedule: FeeSchedule, context: FeeContext) -> FeeResult:
    """Compute the fee for a proposed transaction.

    Each enabled rule group is evaluated on its own and contributes an
    additive component. Rush components either stack on top of the standard
    cash and check components or, when the rush rule has ``overwrite`` set,
    replace them. The total is rounded to cents half-to-even.

    Args:
        schedule: Validated fee schedule
        context: Proposed transaction facts

    Returns:
        Fee amount, memo listing the rules that fired, and the components
    """
    if not schedule.enabled:
        return NO_FEE

    notes: list[str] = []

    cash, waiver_note = _cash_debit_component(schedule, context)
    check = _check_count_component(
        "check_debit",
        "Check fee",
        schedule.check_debit.enabled,
        schedule.check_debit.tiers,
        context.check_debit_count,
    )
    missing = _check_count_component(
        "check_credit_missing_account",
        "Missing account number fee",
        schedule.check_credit_missing_account.enabled,
        schedule.check_credit_missing_account.tiers,
        context.missing_account_check_count,
    )
    reprint = None
    if schedule.check_reprint.enabled and context.is_reprint:
        reprint = FeeComponent(
            "check_reprint", schedule.check_reprint.fee, f"Check reprint fee {_money(schedule.check_reprint.fee)}"
        )

    rush_cash, rush_check = _rush_components(schedule, context)
    if schedule.rush.overwrite:
        if rush_cash is not None and cash is not None:
            notes.append("rush cash fee replaces cash withdrawal fee")
            cash = None
        if rush_check is not None and check is not None:
            notes.append("rush check fee replaces check fee")
            check = None

    components = tuple(c for c in (cash, check, missing, reprint, rush_cash, rush_check) if c is not None)
    total = quantize_money(sum((c.amount for c in components), ZERO))

    parts = [c.description for c in components]
    if waiver_note:
        parts.append(waiver_note)
    parts.extend(notes)
    memo = "; ".join(parts)

    return FeeResult(amount=total, memo=memo, components=components)


def waiver_window_days(schedule: FeeSchedule) -> Optional[int]:
    """Days of trailing debit activity the schedule needs, or None if unused."""
    rule = schedule.cash_debit
    if schedule.enabled and rule.enabled and rule.waiver.mode == WaiverMode.CONDITIONAL:
        return rule.waiver.period_days
    return None
