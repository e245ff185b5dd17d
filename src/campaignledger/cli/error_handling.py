"""CLI error handling helpers."""

import logging

import click

from campaignledger.domain.errors import DomainError, TransientStoreError

logger = logging.getLogger(__name__)


def handle_domain_error(ctx: click.Context, error: DomainError | ValueError) -> None:
    """Render a domain error and exit with failure."""
    logger.debug("Command failed: %r", error)
    click.echo(f"Error: {error}", err=True)
    if isinstance(error, TransientStoreError):
        click.echo("The store was busy or unavailable; nothing was changed. Retry the command.", err=True)
    ctx.exit(1)
