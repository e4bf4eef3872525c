"""Shared domain error messages and error types."""

from decimal import Decimal


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """

    retryable = False


class ValidationError(DomainError):
    """Invalid input or failed validation in domain logic."""


class NotFoundError(DomainError):
    """Requested domain entity does not exist."""


class ConflictError(DomainError):
    """Domain conflict, such as uniqueness violations."""


class ProposalExpired(ValidationError):
    """Proposal is unknown, already consumed, or timed out."""


class ConcurrencyConflict(DomainError):
    """Another mutation on the same account is in flight or changed its state."""

    retryable = True


class PersistenceError(DomainError):
    """The storage layer failed; nothing from the failed unit of work was kept."""

    retryable = True


class ConfigurationError(DomainError):
    """Malformed fee schedule or engine configuration."""


def account_not_found(account: str | int) -> str:
    """Return message for missing account."""
    return f"Account {account} not found"


def loan_not_found(loan_id: int) -> str:
    """Return message for missing loan."""
    return f"Loan {loan_id} not found"


def check_not_found(check_id: int) -> str:
    """Return message for missing deposited check."""
    return f"Check {check_id} not found"


def entry_not_found(entry_id: int) -> str:
    """Return message for missing ledger entry."""
    return f"Ledger entry {entry_id} not found"


def duplicate_account_number(account_number: str) -> str:
    """Return message for duplicate account number."""
    return f"Account with number '{account_number}' already exists"


def amount_over_limit(limit: Decimal) -> str:
    """Return message when a transaction side exceeds the per-transaction cap."""
    return f"Transactions cannot exceed ${limit:,.2f}"


def lock_timeout(account_numbers: tuple[str, ...]) -> str:
    """Return message when account locks could not be acquired in time."""
    return f"Account(s) {', '.join(account_numbers)} busy with another transaction; retry"
