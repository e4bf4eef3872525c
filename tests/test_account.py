"""Tests for account commands."""

import pytest
from decimal import Decimal
from cashledger.cli.main import cli
from cashledger.domain.errors import ConflictError, NotFoundError, ValidationError
from cashledger.utils.account_resolver import resolve_account


def test_account_create(cli_runner, temp_db):
    """Test creating an account."""
    result = cli_runner.invoke(
        cli, ["--db-path", temp_db.database_path, "account", "create", "1001", "Jane Doe"]
    )

    assert result.exit_code == 0
    assert "Created account 1001 'Jane Doe'" in result.output
    assert "ID:" in result.output


def test_account_create_sub_account(cli_runner, temp_db, sample_account):
    """Test creating a sub-account with --parent."""
    result = cli_runner.invoke(
        cli,
        ["--db-path", temp_db.database_path, "account", "create", "1001-A", "Jane Savings", "--parent", "1001"],
    )

    assert result.exit_code == 0
    assert "Sub-account of 1001" in result.output
    assert temp_db.get_account_by_number("1001-A").parent_account_number == "1001"


def test_account_create_duplicate(cli_runner, temp_db):
    """Test creating duplicate account number fails."""
    result1 = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "create", "1001", "A"])
    assert result1.exit_code == 0

    result2 = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "create", "1001", "B"])

    assert result2.exit_code == 1
    assert "already exists" in result2.output.lower()


def test_account_list_empty(cli_runner, temp_db):
    """Test listing accounts when none exist."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])

    assert result.exit_code == 0
    assert "No accounts found" in result.output


def test_account_list_with_data(cli_runner, temp_db, sample_account):
    """Test listing accounts with data."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "list"])

    assert result.exit_code == 0
    assert "Jane Doe" in result.output
    assert "$      100.00" in result.output


def test_account_show_by_name(cli_runner, temp_db, sample_account):
    """Test showing an account looked up by holder name."""
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "show", "jane doe"])

    assert result.exit_code == 0
    assert "Account 1001: Jane Doe" in result.output
    assert "Balance: $100.00" in result.output
    assert "Cash deposit" in result.output


def test_account_show_unknown(cli_runner, temp_db):
    result = cli_runner.invoke(cli, ["--db-path", temp_db.database_path, "account", "show", "9999"])

    assert result.exit_code == 1
    assert "Account 9999 not found" in result.output


class TestAccountService:
    """Tests for account rules enforced by the service."""

    def test_blank_number(self, engine):
        with pytest.raises(ValidationError, match="number is required"):
            engine.accounts.create_account("  ", "Jane Doe")

    def test_blank_name(self, engine):
        with pytest.raises(ValidationError, match="name is required"):
            engine.accounts.create_account("1001", "")

    def test_duplicate_number(self, engine, sample_account):
        with pytest.raises(ConflictError):
            engine.accounts.create_account("1001", "Someone Else")

    def test_missing_parent(self, engine):
        with pytest.raises(NotFoundError):
            engine.accounts.create_account("1001-A", "Savings", parent_account_number="1001")

    def test_sub_accounts_cannot_nest(self, engine, sample_account):
        engine.accounts.create_account("1001-A", "Savings", parent_account_number="1001")
        with pytest.raises(ValidationError, match="cannot have sub-accounts"):
            engine.accounts.create_account("1001-A-1", "Deeper", parent_account_number="1001-A")

    def test_family_balance(self, engine, sample_account, fund):
        engine.accounts.create_account("1001-A", "Savings", parent_account_number="1001")
        fund(engine, "1001-A", "25.00")

        assert engine.accounts.family_account_numbers("1001") == ["1001", "1001-A"]
        assert engine.accounts.family_balance("1001") == Decimal("125.00")

    def test_ensure_account_is_idempotent(self, engine):
        first = engine.accounts.ensure_account("FEES", "Fee income")
        second = engine.accounts.ensure_account("FEES", "Other name")
        assert first.id == second.id
        assert second.name == "Fee income"


class TestResolveAccount:
    """Tests for resolving account references."""

    def test_by_number(self, engine, sample_account):
        assert resolve_account(engine.accounts, "1001").name == "Jane Doe"

    def test_by_name_case_insensitive(self, engine, sample_account):
        assert resolve_account(engine.accounts, "JANE DOE").account_number == "1001"

    def test_number_wins_over_name(self, engine, sample_account):
        engine.accounts.create_account("2002", "1001")
        assert resolve_account(engine.accounts, "1001").name == "Jane Doe"

    def test_ambiguous_name(self, engine, sample_account):
        engine.accounts.create_account("3003", "Jane Doe")
        with pytest.raises(ValidationError, match="matches several accounts"):
            resolve_account(engine.accounts, "Jane Doe")

    def test_no_match(self, engine):
        with pytest.raises(NotFoundError):
            resolve_account(engine.accounts, "Nobody")
