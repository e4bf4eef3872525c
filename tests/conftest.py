"""Shared pytest fixtures for cashledger tests."""

import tempfile
import os
from datetime import date, datetime, timedelta, UTC
from decimal import Decimal
import pytest

from cashledger.config import EngineConfig
from cashledger.database.factories import create_sqlite_database
from cashledger.domain.fee_schedule import fee_schedule_from_dict
from cashledger.domain.requests import TransactionRequest
from cashledger.engine import LedgerEngine
from cashledger.logging_config import reset_logging


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo any logging setup a CLI invocation did."""
    yield
    reset_logging()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


class FakeClock:
    """Settable UTC clock for proposal expiry tests."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime.now(UTC)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fee_config():
    """Engine configuration with a representative fee schedule."""
    schedule = fee_schedule_from_dict(
        {
            "enabled": True,
            "cash_debit": {"enabled": True, "fee_type": "flat", "fee_value": "2.00"},
            "check_debit": {
                "enabled": True,
                "tiers": [{"from": 1, "to": 5, "fee": 1}, {"from": 6, "to": 10, "fee": "1.50"}],
            },
            "check_credit_missing_account_number": {"enabled": True, "tiers": [{"from": 1, "to": 10, "fee": 3}]},
            "check_reprint": {"enabled": True, "fee": "5.00"},
            "bounced_check": {"enabled": True, "fee": "25.00"},
        }
    )
    return EngineConfig(fee_schedule=schedule)


@pytest.fixture
def engine(temp_db, clock):
    """LedgerEngine with default configuration (no fees)."""
    return LedgerEngine(temp_db, EngineConfig(), clock=clock)


@pytest.fixture
def fee_engine(temp_db, clock, fee_config):
    """LedgerEngine with fees enabled."""
    return LedgerEngine(temp_db, fee_config, clock=clock)


def _fund(engine: LedgerEngine, account_number: str, amount: str) -> None:
    engine.submit(TransactionRequest(account_number, credit_cash=Decimal(amount), apply_fee=False))


@pytest.fixture
def fund():
    """Deposit cash without fees: fund(engine, account_number, amount)."""
    return _fund


@pytest.fixture
def sample_account(engine):
    """Account 1001 with a $100.00 balance."""
    engine.accounts.create_account("1001", "Jane Doe")
    _fund(engine, "1001", "100.00")
    return engine.accounts.require_account("1001")


@pytest.fixture
def second_account(engine):
    """Empty account 2002."""
    engine.accounts.create_account("2002", "John Roe")
    return engine.accounts.require_account("2002")


@pytest.fixture
def due_date():
    return date.today() + timedelta(days=30)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


@pytest.fixture
def config_file(tmp_path):
    """Write a YAML config file and return a function producing its path."""

    def write(text: str) -> str:
        path = tmp_path / "cashledger.yaml"
        path.write_text(text)
        return str(path)

    return write
