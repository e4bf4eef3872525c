"""CLI error handling helpers."""

import click

from cashledger.domain.errors import DomainError


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    message = f"Error: {error}"
    if getattr(error, "retryable", False):
        message += " (temporary; try again)"
    click.echo(message, err=True)
    ctx.exit(1)
