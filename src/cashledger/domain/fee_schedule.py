"""Fee schedule configuration.

A ``FeeSchedule`` is an immutable tree of rule groups. It is built once from a
plain mapping (usually the ``transaction_fees`` section of the YAML config)
by :func:`fee_schedule_from_dict`, which validates tier tables so that a
malformed schedule is rejected at load time rather than when a fee is
computed.

The mapping layout mirrors the settings document the tellers edit::

    enabled: true
    cash_debit:
      enabled: true
      fee_type: flat          # or percent
      fee_value: 2.50
      waiver: {mode: conditional, threshold_amount: 100, period_days: 30}
    check_debit:
      enabled: true
      tiers: [{from: 1, to: 5, fee: 1.00}, {from: 6, to: 10, fee: 0.75}]
    check_credit_missing_account_number:
      enabled: true
      tiers: [{from: 1, to: 5, fee: 2.00}]
    check_reprint: {enabled: true, fee: 3.00}
    rush_fee:
      enabled: true
      overwrite: false
      cash: {tiers: [{from: 0, to: 100, fee: 5, fee_type: flat}]}
      check: {tiers: [{from: 1, to: 5, fee: 4, fee_type: flat}]}
    bounced_check: {enabled: true, fee: 25.00}
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Optional

from cashledger.domain.errors import ConfigurationError


class FeeType(str, Enum):
    FLAT = "flat"
    PERCENT = "percent"


class WaiverMode(str, Enum):
    """When the cash-debit fee is charged."""

    ALWAYS = "always"  # always charge
    NEVER = "never"  # never charge
    CONDITIONAL = "conditional"  # waive when trailing debit activity is below threshold


@dataclass(frozen=True)
class Tier:
    """Inclusive ``[start, end]`` range with its fee."""

    start: Decimal
    end: Decimal
    fee: Decimal
    fee_type: FeeType = FeeType.FLAT

    def contains(self, value: Decimal) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class WaiverRule:
    mode: WaiverMode = WaiverMode.ALWAYS
    threshold_amount: Decimal = Decimal("0")
    period_days: int = 30


@dataclass(frozen=True)
class CashDebitRule:
    enabled: bool = False
    fee_type: FeeType = FeeType.FLAT
    fee_value: Decimal = Decimal("0")
    waiver: WaiverRule = field(default_factory=WaiverRule)


@dataclass(frozen=True)
class TieredRule:
    """Fee looked up from a tier table by check count; the tier fee is charged once."""

    enabled: bool = False
    tiers: tuple[Tier, ...] = ()


@dataclass(frozen=True)
class FlatRule:
    enabled: bool = False
    fee: Decimal = Decimal("0")


@dataclass(frozen=True)
class RushRule:
    """Expedited-processing fees.

    Cash tiers are keyed by the rush cash amount, check tiers by the number of
    rush checks. ``overwrite`` replaces the matching standard fee instead of
    stacking on top of it.
    """

    enabled: bool = False
    overwrite: bool = False
    cash_tiers: tuple[Tier, ...] = ()
    check_tiers: tuple[Tier, ...] = ()


@dataclass(frozen=True)
class FeeSchedule:
    enabled: bool = False
    cash_debit: CashDebitRule = field(default_factory=CashDebitRule)
    check_debit: TieredRule = field(default_factory=TieredRule)
    check_credit_missing_account: TieredRule = field(default_factory=TieredRule)
    check_reprint: FlatRule = field(default_factory=FlatRule)
    rush: RushRule = field(default_factory=RushRule)
    bounced_check: FlatRule = field(default_factory=FlatRule)


def _decimal(value: Any, where: str) -> Decimal:
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError) as e:
        raise ConfigurationError(f"{where}: '{value}' is not a number") from e
    if not result.is_finite():
        raise ConfigurationError(f"{where}: '{value}' is not a finite number")
    return result


def _non_negative(value: Any, where: str) -> Decimal:
    result = _decimal(value, where)
    if result < 0:
        raise ConfigurationError(f"{where}: must not be negative (got {result})")
    return result


def _fee_type(value: Any, where: str) -> FeeType:
    try:
        return FeeType(value or FeeType.FLAT.value)
    except ValueError as e:
        raise ConfigurationError(f"{where}: unknown fee type '{value}'") from e


COUNT_STEP = Decimal("1")
AMOUNT_STEP = Decimal("0.01")


def validate_tiers(tiers: tuple[Tier, ...], where: str, step: Decimal = COUNT_STEP) -> None:
    """Reject inverted, overlapping or gapped tier ranges.

    Tiers must be contiguous: each tier starts exactly ``step`` after the
    previous one ends (1 for check counts, one cent for dollar amounts).
    Values below the first tier or above the last one match nothing and
    cost nothing.

    Raises:
        ConfigurationError: If a tier has ``from > to`` or two tiers overlap or leave a gap
    """
    for tier in tiers:
        if tier.start > tier.end:
            raise ConfigurationError(f"{where}: tier from {tier.start} is greater than to {tier.end}")
    ordered = sorted(tiers, key=lambda t: t.start)
    for previous, current in zip(ordered, ordered[1:]):
        if current.start <= previous.end:
            raise ConfigurationError(
                f"{where}: tiers {previous.start}-{previous.end} and {current.start}-{current.end} overlap"
            )
        if current.start - previous.end > step:
            raise ConfigurationError(
                f"{where}: gap between tiers {previous.start}-{previous.end} and {current.start}-{current.end}"
            )


def parse_tiers(
    raw: Any, where: str, allow_fee_type: bool = False, step: Decimal = COUNT_STEP
) -> tuple[Tier, ...]:
    """Parse and validate a list of ``{from, to, fee[, fee_type]}`` mappings."""
    if raw is None:
        return ()
    if not isinstance(raw, (list, tuple)):
        raise ConfigurationError(f"{where}: tiers must be a list")

    tiers = []
    for index, item in enumerate(raw):
        tier_where = f"{where}[{index}]"
        if not isinstance(item, Mapping):
            raise ConfigurationError(f"{tier_where}: tier must be a mapping")
        missing = [key for key in ("from", "to", "fee") if key not in item]
        if missing:
            raise ConfigurationError(f"{tier_where}: missing {', '.join(missing)}")
        fee_type = _fee_type(item.get("fee_type"), tier_where) if allow_fee_type else FeeType.FLAT
        tiers.append(
            Tier(
                start=_non_negative(item["from"], f"{tier_where}.from"),
                end=_non_negative(item["to"], f"{tier_where}.to"),
                fee=_non_negative(item["fee"], f"{tier_where}.fee"),
                fee_type=fee_type,
            )
        )
    result = tuple(sorted(tiers, key=lambda t: t.start))
    validate_tiers(result, where, step)
    return result


def _section(raw: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = raw.get(key) or {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f"{key}: section must be a mapping")
    return value


def _waiver(raw: Mapping[str, Any]) -> WaiverRule:
    mode_value = raw.get("mode", WaiverMode.ALWAYS.value)
    try:
        mode = WaiverMode(mode_value)
    except ValueError as e:
        raise ConfigurationError(f"cash_debit.waiver.mode: unknown waiver mode '{mode_value}'") from e

    period_days = raw.get("period_days", 30)
    if not isinstance(period_days, int) or period_days <= 0:
        raise ConfigurationError(f"cash_debit.waiver.period_days: must be a positive integer (got {period_days})")

    return WaiverRule(
        mode=mode,
        threshold_amount=_non_negative(raw.get("threshold_amount", 0), "cash_debit.waiver.threshold_amount"),
        period_days=period_days,
    )


def fee_schedule_from_dict(raw: Optional[Mapping[str, Any]]) -> FeeSchedule:
    """Build a validated ``FeeSchedule`` from a settings mapping.

    Missing sections fall back to disabled defaults.

    Args:
        raw: Settings mapping, or None for an all-disabled schedule

    Returns:
        Immutable fee schedule

    Raises:
        ConfigurationError: If any section is malformed
    """
    if raw is None:
        return FeeSchedule()
    if not isinstance(raw, Mapping):
        raise ConfigurationError("transaction_fees: must be a mapping")

    cash = _section(raw, "cash_debit")
    check_debit = _section(raw, "check_debit")
    missing = _section(raw, "check_credit_missing_account_number")
    reprint = _section(raw, "check_reprint")
    rush = _section(raw, "rush_fee")
    bounced = _section(raw, "bounced_check")

    return FeeSchedule(
        enabled=bool(raw.get("enabled", False)),
        cash_debit=CashDebitRule(
            enabled=bool(cash.get("enabled", False)),
            fee_type=_fee_type(cash.get("fee_type"), "cash_debit.fee_type"),
            fee_value=_non_negative(cash.get("fee_value", 0), "cash_debit.fee_value"),
            waiver=_waiver(_section(cash, "waiver")),
        ),
        check_debit=TieredRule(
            enabled=bool(check_debit.get("enabled", False)),
            tiers=parse_tiers(check_debit.get("tiers"), "check_debit.tiers"),
        ),
        check_credit_missing_account=TieredRule(
            enabled=bool(missing.get("enabled", False)),
            tiers=parse_tiers(missing.get("tiers"), "check_credit_missing_account_number.tiers"),
        ),
        check_reprint=FlatRule(
            enabled=bool(reprint.get("enabled", False)),
            fee=_non_negative(reprint.get("fee", 0), "check_reprint.fee"),
        ),
        rush=RushRule(
            enabled=bool(rush.get("enabled", False)),
            overwrite=bool(rush.get("overwrite", False)),
            cash_tiers=parse_tiers(
                _section(rush, "cash").get("tiers"), "rush_fee.cash.tiers", allow_fee_type=True, step=AMOUNT_STEP
            ),
            check_tiers=parse_tiers(_section(rush, "check").get("tiers"), "rush_fee.check.tiers", allow_fee_type=True),
        ),
        bounced_check=FlatRule(
            enabled=bool(bounced.get("enabled", False)),
            fee=_non_negative(bounced.get("fee", 0), "bounced_check.fee"),
        ),
    )
