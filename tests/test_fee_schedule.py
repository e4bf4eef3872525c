"""Tests for fee schedule parsing and validation."""

import pytest
from decimal import Decimal

from cashledger.domain.errors import ConfigurationError
from cashledger.domain.fee_schedule import (
    FeeType,
    WaiverMode,
    fee_schedule_from_dict,
    parse_tiers,
)


class TestFeeScheduleFromDict:
    """Tests for building a schedule from settings."""

    def test_full_schedule(self):
        """All sections are parsed into typed values."""
        schedule = fee_schedule_from_dict(
            {
                "enabled": True,
                "cash_debit": {
                    "enabled": True,
                    "fee_type": "percent",
                    "fee_value": "1.5",
                    "waiver": {"mode": "conditional", "threshold_amount": 500, "period_days": 14},
                },
                "check_debit": {"enabled": True, "tiers": [{"from": 6, "to": 10, "fee": 1}, {"from": 1, "to": 5, "fee": 2}]},
                "check_reprint": {"enabled": True, "fee": "3.00"},
                "rush_fee": {"enabled": True, "overwrite": True, "cash": {"tiers": [{"from": 0, "to": 50, "fee": 4}]}},
                "bounced_check": {"enabled": True, "fee": 30},
            }
        )

        assert schedule.enabled
        assert schedule.cash_debit.fee_type == FeeType.PERCENT
        assert schedule.cash_debit.fee_value == Decimal("1.5")
        assert schedule.cash_debit.waiver.mode == WaiverMode.CONDITIONAL
        assert schedule.cash_debit.waiver.threshold_amount == Decimal("500")
        assert schedule.cash_debit.waiver.period_days == 14
        # Tiers come back sorted
        assert [t.start for t in schedule.check_debit.tiers] == [Decimal("1"), Decimal("6")]
        assert schedule.check_reprint.fee == Decimal("3.00")
        assert schedule.rush.overwrite is True
        assert schedule.rush.cash_tiers[0].fee == Decimal("4")
        assert schedule.bounced_check.fee == Decimal("30")

    def test_missing_sections_are_disabled(self):
        schedule = fee_schedule_from_dict({"enabled": True})
        assert not schedule.cash_debit.enabled
        assert not schedule.check_debit.enabled
        assert schedule.check_debit.tiers == ()
        assert not schedule.rush.enabled
        assert schedule.cash_debit.waiver.mode == WaiverMode.ALWAYS

    def test_not_a_mapping(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            fee_schedule_from_dict(["enabled"])

    def test_unknown_fee_type(self):
        with pytest.raises(ConfigurationError, match="unknown fee type 'tiered'"):
            fee_schedule_from_dict({"cash_debit": {"fee_type": "tiered"}})

    def test_unknown_waiver_mode(self):
        with pytest.raises(ConfigurationError, match="unknown waiver mode 'sometimes'"):
            fee_schedule_from_dict({"cash_debit": {"waiver": {"mode": "sometimes"}}})

    def test_negative_fee_value(self):
        with pytest.raises(ConfigurationError, match="must not be negative"):
            fee_schedule_from_dict({"cash_debit": {"fee_value": -1}})

    def test_non_numeric_fee(self):
        with pytest.raises(ConfigurationError, match="is not a number"):
            fee_schedule_from_dict({"check_reprint": {"fee": "three"}})

    def test_bad_waiver_period(self):
        with pytest.raises(ConfigurationError, match="period_days"):
            fee_schedule_from_dict({"cash_debit": {"waiver": {"mode": "conditional", "period_days": 0}}})


class TestTierValidation:
    """Tests for tier table validation."""

    def test_inverted_tier(self):
        with pytest.raises(ConfigurationError, match="greater than to"):
            parse_tiers([{"from": 5, "to": 1, "fee": 1}], "check_debit.tiers")

    def test_overlapping_tiers(self):
        with pytest.raises(ConfigurationError, match="overlap"):
            parse_tiers(
                [{"from": 1, "to": 5, "fee": 1}, {"from": 5, "to": 10, "fee": 2}],
                "check_debit.tiers",
            )

    def test_gap_between_tiers(self):
        with pytest.raises(ConfigurationError, match="gap"):
            parse_tiers(
                [{"from": 1, "to": 5, "fee": 1}, {"from": 7, "to": 10, "fee": 2}],
                "check_debit.tiers",
            )

    def test_adjacent_amount_tiers(self):
        """Amount tiers may start one cent after the previous tier ends."""
        tiers = parse_tiers(
            [{"from": 0, "to": 100, "fee": 5}, {"from": "100.01", "to": 500, "fee": 8}],
            "rush_fee.cash.tiers",
            step=Decimal("0.01"),
        )
        assert len(tiers) == 2

    def test_missing_keys(self):
        with pytest.raises(ConfigurationError, match="missing fee"):
            parse_tiers([{"from": 1, "to": 5}], "check_debit.tiers")

    def test_tiers_must_be_list(self):
        with pytest.raises(ConfigurationError, match="must be a list"):
            parse_tiers({"from": 1}, "check_debit.tiers")

    def test_negative_bound(self):
        with pytest.raises(ConfigurationError, match="must not be negative"):
            parse_tiers([{"from": -1, "to": 5, "fee": 1}], "check_debit.tiers")

    def test_fee_type_only_where_allowed(self):
        """Per-tier fee_type is read for rush tiers and ignored elsewhere."""
        raw = [{"from": 0, "to": 100, "fee": 2, "fee_type": "percent"}]
        assert parse_tiers(raw, "rush", allow_fee_type=True)[0].fee_type == FeeType.PERCENT
        assert parse_tiers(raw, "check_debit.tiers")[0].fee_type == FeeType.FLAT

    def test_error_names_the_section(self):
        with pytest.raises(ConfigurationError, match=r"check_credit_missing_account_number\.tiers"):
            fee_schedule_from_dict(
                {"check_credit_missing_account_number": {"tiers": [{"from": 3, "to": 1, "fee": 1}]}}
            )
