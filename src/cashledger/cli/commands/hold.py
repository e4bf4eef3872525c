"""Commands for holds on deposited checks."""

import click
from cashledger.cli.account_resolution import resolve_account_number_or_exit
from cashledger.cli.commands.transact import parse_amount_or_exit
from cashledger.cli.error_handling import handle_domain_error
from cashledger.domain.errors import DomainError


@click.group()
def hold_group():
    """Manage held checks."""
    pass


def _echo_release(result) -> None:
    if not result.credited_accounts:
        click.echo("Nothing to release.")
        return
    for account_number, amount in sorted(result.credited_accounts.items()):
        click.echo(f"Released ${amount:,.2f} to {account_number}")
    for check in result.checks:
        state = "cleared" if check.status.value == "cleared" else f"${check.remaining:,.2f} still held"
        click.echo(f"  Check {check.id}: {state}")


@hold_group.command("list")
@click.option("--tag", help="Only checks with this tag")
@click.option("--account", help="Only checks deposited to this account")
@click.pass_context
def list_held(ctx, tag: str | None, account: str | None):
    """List checks on hold, oldest deposit first."""
    engine = ctx.obj["engine"]
    account_number = None
    if account is not None:
        account_number = resolve_account_number_or_exit(ctx, engine.accounts, account)

    checks = engine.holds.held_checks(tag=tag, account_number=account_number)
    if not checks:
        click.echo("No checks on hold.")
        return

    click.echo("\nHeld checks:")
    click.echo("-" * 80)
    for check in checks:
        tags = ", ".join(sorted(check.tags)) or "-"
        click.echo(
            f"{check.id:5d} | {check.account_number:12s} | ${check.amount:>10,.2f} | "
            f"held ${check.remaining:>10,.2f} | {check.deposit_date:%Y-%m-%d} | {tags}"
        )


@hold_group.command("place")
@click.argument("check_id", type=int)
@click.argument("tags", nargs=-1)
@click.pass_context
def place_hold(ctx, check_id: int, tags: tuple[str, ...]):
    """Add tags to a held check."""
    engine = ctx.obj["engine"]
    try:
        check = engine.place_hold(check_id, tags)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Check {check.id} on hold; tags: {', '.join(sorted(check.tags)) or '-'}")


@hold_group.command("release")
@click.argument("check_ids", nargs=-1, type=int, required=True)
@click.pass_context
def release(ctx, check_ids: tuple[int, ...]):
    """Release held checks in full."""
    engine = ctx.obj["engine"]
    try:
        result = engine.release_hold(check_ids)
    except DomainError as e:
        handle_domain_error(ctx, e)
    _echo_release(result)


@hold_group.command("release-partial")
@click.argument("tag")
@click.argument("amount", metavar="AMOUNT", required=False)
@click.option("--all", "release_all", is_flag=True, help="Release every check carrying the tag")
@click.pass_context
def release_partial(ctx, tag: str, amount: str | None, release_all: bool):
    """Release AMOUNT across the checks tagged TAG, oldest deposit first.

    Examples:
        cashledger hold release-partial payroll 500
        cashledger hold release-partial payroll --all
    """
    engine = ctx.obj["engine"]
    if release_all == (amount is not None):
        click.echo("Error: give either AMOUNT or --all", err=True)
        ctx.exit(1)

    try:
        if release_all:
            result = engine.release_all_for_tag(tag)
        else:
            result = engine.release_partial_hold(tag, parse_amount_or_exit(ctx, amount))
    except DomainError as e:
        handle_domain_error(ctx, e)
    _echo_release(result)


@hold_group.command("tags")
@click.pass_context
def list_tags(ctx):
    """List every hold tag in use."""
    engine = ctx.obj["engine"]
    tags = engine.holds.list_tags()
    if not tags:
        click.echo("No hold tags found.")
        return
    for tag in tags:
        held = engine.holds.held_checks(tag=tag)
        total = sum((c.remaining for c in held), 0)
        click.echo(f"{tag}: {len(held)} check(s), ${total:,.2f} held")


def register_commands(cli):
    """Register hold commands with main CLI."""
    cli.add_command(hold_group, name="hold")
