"""Void command."""

import click
from cashledger.cli.error_handling import handle_domain_error
from cashledger.domain.errors import DomainError, NotFoundError, entry_not_found


@click.command("void")
@click.argument("entry_id", type=int)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def void_entry(ctx, entry_id: int, yes: bool):
    """Void a ledger entry, reversing its effect on the balance.

    The entry is kept and marked voided.
    """
    engine = ctx.obj["engine"]
    entry = engine.db.get_entry(entry_id)
    if entry is None:
        handle_domain_error(ctx, NotFoundError(entry_not_found(entry_id)))

    if not yes and not click.confirm(
        f"Void entry {entry_id} ({entry.kind.value} ${entry.amount:,.2f} on {entry.account_number})?"
    ):
        click.echo("Cancelled.")
        return

    try:
        result = engine.void_transaction(entry_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Voided entry {entry_id}; adjustment ${result.adjustment:,.2f}")
    click.echo(f"  New balance of {result.entry.account_number}: ${result.new_balance:,.2f}")


def register_commands(cli):
    """Register void command with main CLI."""
    cli.add_command(void_entry)
