"""CLI helper for account resolution."""

from __future__ import annotations

import click
from cashledger.domain.account import AccountService
from cashledger.domain.errors import DomainError
from cashledger.utils.account_resolver import resolve_account
from cashledger.cli.error_handling import handle_domain_error


def resolve_account_number_or_exit(ctx: click.Context, account_service: AccountService, account: str) -> str:
    """Resolve an account number or name, or exit with a CLI error.

    This keeps error messaging and exit behavior consistent across commands.
    """
    try:
        return resolve_account(account_service, account).account_number
    except DomainError as exc:
        handle_domain_error(ctx, exc)
