"""Main CLI entry point."""

import logging

import click

from campaignledger.cli.error_handling import handle_domain_error
from campaignledger.config import LedgerSettings
from campaignledger.database.factories import create_sqlite_database
from campaignledger.domain.errors import DomainError

# Import and register all commands at module level
from campaignledger.cli.commands import (
    campaign,
    changelog,
    check,
    invoice,
    line_item,
    metrics,
)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.option(
    "--db-path",
    type=click.Path(),
    help="Path to database file (overrides CAMPAIGNLEDGER_DB_PATH environment variable)",
    envvar="CAMPAIGNLEDGER_DB_PATH",
)
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    show_default=True,
    envvar="CAMPAIGNLEDGER_LOG_LEVEL",
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx, db_path: str | None, log_level: str):
    """Campaignledger - Campaign billing ledger.

    Group campaign line items into invoices, adjust amounts, move line items
    between invoices, and review the change log of every financial edit.
    """
    logging.basicConfig(level=log_level.upper(), format=LOG_FORMAT)
    ctx.ensure_object(dict)

    # Initialize the store only when actually running a command
    # (not when showing help)
    if ctx.invoked_subcommand is not None:
        try:
            settings = LedgerSettings.from_env()
        except DomainError as e:
            handle_domain_error(ctx, e)
        db = create_sqlite_database(database_path=db_path, settings=settings)
        db.connect()
        db.initialize_schema()
        ctx.obj["db"] = db
        ctx.obj["settings"] = settings


# Register all commands
campaign.register_commands(cli)
line_item.register_commands(cli)
invoice.register_commands(cli)
changelog.register_commands(cli)
metrics.register_commands(cli)
check.register_commands(cli)


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
