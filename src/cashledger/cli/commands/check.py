"""Commands for deposited and written checks."""

import click
from cashledger.cli.account_resolution import resolve_account_number_or_exit
from cashledger.cli.commands.transact import parse_amount_or_exit
from cashledger.cli.error_handling import handle_domain_error
from cashledger.domain.errors import DomainError


@click.group()
def check_group():
    """Bounce deposited checks and reprint written ones."""
    pass


@check_group.command("bounce")
@click.argument("check_id", type=int)
@click.option("--fee", help="Fee to charge instead of the configured bounced-check fee")
@click.pass_context
def bounce(ctx, check_id: int, fee: str | None):
    """Record that a deposited check bounced."""
    engine = ctx.obj["engine"]
    fee_amount = parse_amount_or_exit(ctx, fee, allow_zero=True) if fee is not None else None
    try:
        result = engine.bounce_check(check_id, fee_amount)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Check {check_id} marked bounced")
    if result.fee > 0:
        click.echo(f"  Bounced check fee: ${result.fee:,.2f}")
    click.echo(f"  New balance: ${result.new_balance:,.2f}")


@check_group.command("reprint")
@click.argument("check_id", type=int)
@click.pass_context
def reprint(ctx, check_id: int):
    """Charge the reprint fee for a written check."""
    engine = ctx.obj["engine"]
    try:
        result = engine.charge_reprint_fee(check_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    if result.fee > 0:
        click.echo(f"Reprint fee charged: ${result.fee:,.2f}")
    else:
        click.echo("No reprint fee configured")
    click.echo(f"  New balance: ${result.new_balance:,.2f}")


@check_group.command("written")
@click.argument("account", metavar="ACCOUNT")
@click.pass_context
def list_written(ctx, account: str):
    """List checks written from an account."""
    engine = ctx.obj["engine"]
    account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)
    checks = engine.db.list_checks_out(account_number=account_number)
    if not checks:
        click.echo("No written checks found.")
        return
    for check in checks:
        rush = " rush" if check.is_rush else ""
        click.echo(
            f"{check.id:5d} | #{check.check_number} | ${check.amount:>10,.2f} | "
            f"{check.pay_to_order_of or '-':20s} | {check.status}{rush}"
        )


def register_commands(cli):
    """Register check commands with main CLI."""
    cli.add_command(check_group, name="check")
