"""Fee commands."""

import click
from cashledger.cli.commands.transact import LEG_KEYS, build_request, leg_options
from cashledger.cli.error_handling import handle_domain_error
from cashledger.domain.errors import DomainError


@click.group()
def fee_group():
    """Inspect fees."""
    pass


@fee_group.command("quote")
@click.argument("account", metavar="ACCOUNT")
@leg_options
@click.pass_context
def quote(ctx, account: str, **params):
    """Show the fee a transaction would be charged, without recording it.

    Example:
        cashledger fee quote 1001 --cash-out 300 --check-out 50 --check-out 20
    """
    engine = ctx.obj["engine"]
    request = build_request(ctx, account, {key: params[key] for key in LEG_KEYS})
    try:
        result = engine.quote_fee(request)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(f"Fee: ${result.amount:,.2f}")
    for component in result.components:
        click.echo(f"  {component.description}")
    if result.memo and not result.components:
        click.echo(f"  {result.memo}")


def register_commands(cli):
    """Register fee commands with main CLI."""
    cli.add_command(fee_group, name="fee")
