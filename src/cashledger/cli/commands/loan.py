"""Loan commands."""

import click
from cashledger.cli.account_resolution import resolve_account_number_or_exit
from cashledger.cli.commands.transact import DEFAULT_LOAN_DUE, parse_amount_or_exit
from cashledger.cli.error_handling import handle_domain_error
from cashledger.domain.errors import DomainError
from cashledger.utils.date_parser import parse_date


@click.group()
def loan_group():
    """Manage loans."""
    pass


@loan_group.command("create")
@click.argument("account", metavar="ACCOUNT")
@click.argument("amount", metavar="AMOUNT")
@click.option("--due", default=DEFAULT_LOAN_DUE, show_default=True, help="Due date (YYYY-MM-DD or 'in 2 months')")
@click.pass_context
def create_loan(ctx, account: str, amount: str, due: str):
    """Lend money to an account; the amount is credited to its balance.

    Example:
        cashledger loan create 1001 500 --due 2026-12-31
    """
    engine = ctx.obj["engine"]
    account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)
    value = parse_amount_or_exit(ctx, amount)
    try:
        due_date = parse_date(due)
    except ValueError as e:
        click.echo(f"Error: Invalid date format: {e}", err=True)
        ctx.exit(1)

    try:
        loan = engine.create_loan(account_number, value, due_date)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created loan #{loan.id} for {account_number}: ${loan.amount:,.2f} due {loan.due_date}")


@loan_group.command("list")
@click.argument("account", metavar="ACCOUNT", required=False)
@click.option("--open", "open_only", is_flag=True, help="Only loans that are not paid")
@click.pass_context
def list_loans(ctx, account: str | None, open_only: bool):
    """List loans, optionally for one account and its sub-accounts."""
    engine = ctx.obj["engine"]
    if account is not None:
        account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)
        loans = engine.loans.open_loans(account_number) if open_only else engine.loans.list_loans(account_number)
    else:
        loans = [loan for loan in engine.loans.list_loans() if not open_only or loan.status.value != "paid"]

    if not loans:
        click.echo("No loans found.")
        return

    click.echo("\nLoans:")
    click.echo("-" * 70)
    for loan in loans:
        click.echo(
            f"#{loan.id:<4d} | {loan.account_number:12s} | ${loan.amount:>10,.2f} of ${loan.original_amount:>10,.2f} "
            f"| due {loan.due_date} | {loan.status.value}"
        )


@loan_group.command("pay")
@click.argument("loan_id", type=int)
@click.argument("amount", metavar="AMOUNT")
@click.option(
    "--excess-to-next-loan",
    is_flag=True,
    help="Apply any excess to the account's next open loan instead of its balance",
)
@click.pass_context
def pay_loan(ctx, loan_id: int, amount: str, excess_to_next_loan: bool):
    """Take a payment toward a loan.

    Money beyond what the loan owes goes to the next open loan (with
    --excess-to-next-loan) and then to the account balance.
    """
    engine = ctx.obj["engine"]
    value = parse_amount_or_exit(ctx, amount)
    try:
        result = engine.apply_loan_repayment(loan_id, value, apply_excess_to_next_loan=excess_to_next_loan)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Applied ${result.applied:,.2f} to loan #{result.loan.id} (remaining ${result.loan.amount:,.2f})")
    if result.loan.status.value == "paid":
        click.echo(f"Loan #{result.loan.id} is paid off")
    if result.next_loan is not None:
        click.echo(
            f"Applied ${result.applied_to_next:,.2f} to loan #{result.next_loan.id} "
            f"(remaining ${result.next_loan.amount:,.2f})"
        )
    if result.credited_to_balance > 0:
        click.echo(f"Credited ${result.credited_to_balance:,.2f} to the account balance")


@loan_group.command("mark-overdue")
@click.pass_context
def mark_overdue(ctx):
    """Flag active loans past their due date as overdue."""
    engine = ctx.obj["engine"]
    loans = engine.mark_overdue_loans()
    if not loans:
        click.echo("No loans are past due.")
        return
    for loan in loans:
        click.echo(f"Loan #{loan.id} ({loan.account_number}) due {loan.due_date} is overdue")


def register_commands(cli):
    """Register loan commands with main CLI."""
    cli.add_command(loan_group, name="loan")
