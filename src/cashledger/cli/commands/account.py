"""Account management commands."""

import click
from cashledger.cli.account_resolution import resolve_account_number_or_exit
from cashledger.cli.error_handling import handle_domain_error
from cashledger.domain.errors import DomainError


@click.group()
def account_group():
    """Manage accounts."""
    pass


@account_group.command("create")
@click.argument("account_number", metavar="ACCOUNT_NUMBER")
@click.argument("name", metavar="NAME")
@click.option("--parent", help="Parent account number (creates a sub-account)")
@click.pass_context
def create_account(ctx, account_number: str, name: str, parent: str | None):
    """Create a new account with a zero balance.

    Examples:
        cashledger account create 1001 "Jane Doe"
        cashledger account create 1001-A "Jane Doe (savings)" --parent 1001
    """
    engine = ctx.obj["engine"]

    try:
        account_id = engine.accounts.create_account(
            account_number=account_number, name=name, parent_account_number=parent
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created account {account_number} '{name}' (ID: {account_id})")
    if parent:
        click.echo(f"Sub-account of {parent}")


@account_group.command("list")
@click.pass_context
def list_accounts(ctx):
    """List all accounts."""
    engine = ctx.obj["engine"]

    accounts = engine.accounts.list_accounts()
    if not accounts:
        click.echo("No accounts found.")
        return

    click.echo("\nAccounts:")
    click.echo("-" * 70)
    for acc in accounts:
        parent = f" (sub of {acc.parent_account_number})" if acc.parent_account_number else ""
        click.echo(f"{acc.account_number:12s} | {acc.name:25s} | ${acc.balance:>12,.2f}{parent}")


@account_group.command("show")
@click.argument("account", metavar="ACCOUNT")
@click.option("--limit", type=int, default=10, show_default=True, help="Number of recent entries to show")
@click.pass_context
def show_account(ctx, account: str, limit: int):
    """Show balance, sub-accounts, open loans and recent entries.

    ACCOUNT can be an account number or holder name.
    """
    engine = ctx.obj["engine"]
    account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)
    acc = engine.accounts.require_account(account_number)

    click.echo(f"Account {acc.account_number}: {acc.name}")
    click.echo(f"  Balance: ${acc.balance:,.2f}")
    if acc.parent_account_number:
        click.echo(f"  Parent: {acc.parent_account_number}")

    subs = engine.accounts.list_sub_accounts(account_number)
    if subs:
        click.echo(f"  Family balance: ${engine.accounts.family_balance(account_number):,.2f}")
        click.echo("  Sub-accounts:")
        for sub in subs:
            click.echo(f"    {sub.account_number:12s} {sub.name:25s} ${sub.balance:,.2f}")

    loans = engine.loans.open_loans(account_number)
    if loans:
        click.echo("  Open loans:")
        for loan in loans:
            click.echo(
                f"    #{loan.id} {loan.account_number} ${loan.amount:,.2f} of ${loan.original_amount:,.2f} "
                f"due {loan.due_date} ({loan.status.value})"
            )

    entries = engine.db.list_entries(account_number=account_number)[:limit]
    if entries:
        click.echo("  Recent entries:")
        for entry in entries:
            click.echo(
                f"    {entry.id:5d} {entry.timestamp:%Y-%m-%d %H:%M} {entry.kind.value:8s} "
                f"{entry.balance_effect:>+12,.2f} {entry.status.value:9s} {entry.memo or ''}"
            )


def register_commands(cli):
    """Register account commands with main CLI."""
    cli.add_command(account_group, name="account")
