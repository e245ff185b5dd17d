"""CLI helpers for date parsing and date range resolution."""

from datetime import date

import click

from campaignledger.utils.date_parser import PERIODS, get_date_range, parse_date


def parse_cli_date(ctx: click.Context, value: str | None, label: str) -> date | None:
    """Parse an optional date option, exiting with an error message if invalid."""
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


def resolve_cli_date_range(
    ctx: click.Context,
    *,
    start_date: str | None,
    end_date: str | None,
    period: str | None,
) -> tuple[date | None, date | None]:
    """Resolve a CLI date range from a period preset or explicit dates."""
    if period and (start_date or end_date):
        click.echo(
            "Error: --period cannot be combined with --start-date or --end-date.",
            err=True,
        )
        ctx.exit(1)

    if period:
        return get_date_range(period)

    start = parse_cli_date(ctx, start_date, "start date")
    end = parse_cli_date(ctx, end_date, "end date")
    if start and end and start > end:
        click.echo(f"Error: Start date {start} is after end date {end}.", err=True)
        ctx.exit(1)
    return start, end


def date_range_options(func):
    """Attach --start-date, --end-date and --period options to a command."""
    func = click.option(
        "--period",
        type=click.Choice(PERIODS),
        help="Preset date range (e.g. last-30-days, this-quarter)",
    )(func)
    func = click.option("--end-date", help="End date (YYYY-MM-DD or relative, e.g. 'today')")(func)
    func = click.option("--start-date", help="Start date (YYYY-MM-DD or relative, e.g. 'last month')")(func)
    return func
