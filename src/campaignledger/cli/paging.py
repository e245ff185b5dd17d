"""Shared output helpers for paged list commands."""

from decimal import Decimal

import click

from campaignledger.domain.entities import Page


def format_money(amount: Decimal, currency: str = "") -> str:
    text = f"{amount:,.2f}"
    return f"{text} {currency}" if currency else text


def page_size_option(func):
    return click.option(
        "--page-size",
        type=click.IntRange(min=1),
        default=None,
        help="Results per page (defaults to CAMPAIGNLEDGER_PAGE_SIZE)",
    )(click.option("--cursor", help="Cursor printed by the previous page")(func))


def echo_page_footer(page: Page, total: int, search_active: bool = False) -> None:
    """Print the match count, truncation warnings and the next page cursor."""
    suffix = " (before text search)" if search_active else ""
    click.echo(f"\n{total} matching{suffix}, {len(page.items)} shown")
    for name in page.truncated_filters:
        click.echo(f"Warning: too many values for '{name}'; only the first ones were applied", err=True)
    if page.next_cursor:
        click.echo(f"Next page: --cursor {page.next_cursor}")
