"""Main CLI entry point."""

import click
from cashledger.config import load_config
from cashledger.database.factories import create_sqlite_database
from cashledger.domain.errors import ConfigurationError
from cashledger.engine import LedgerEngine
from cashledger.logging_config import configure_logging

# Import and register all commands at module level
from cashledger.cli.commands import (
    account,
    check,
    fee,
    hold,
    loan,
    transact,
    void,
)


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CASHLEDGER_DB_PATH environment variable)",
    envvar="CASHLEDGER_DB_PATH",
)
@click.option(
    "--config",
    "config_path",
    type=click.Path(),
    help="Path to YAML config file (overrides CASHLEDGER_CONFIG environment variable)",
    envvar="CASHLEDGER_CONFIG",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="CASHLEDGER_LOG_LEVEL",
    help="Logging level for messages written to stderr",
)
@click.pass_context
def cli(ctx, db_path: str | None, config_path: str | None, log_level: str):
    """Cashledger - teller ledger for cash accounts.

    Record deposits, withdrawals, transfers and checks, charge fees, manage
    holds on deposited checks, and lend to cover shortfalls.
    """
    ctx.ensure_object(dict)
    configure_logging(log_level)

    # Initialize database connection only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            config = load_config(config_path)
        except ConfigurationError as e:
            click.echo(f"Error: {e}", err=True)
            ctx.exit(1)
        db = create_sqlite_database(database_path=db_path)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["engine"] = LedgerEngine(db, config)
        ctx.call_on_close(db.disconnect)


# Register all commands
account.register_commands(cli)
transact.register_commands(cli)
loan.register_commands(cli)
hold.register_commands(cli)
check.register_commands(cli)
void.register_commands(cli)
fee.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
