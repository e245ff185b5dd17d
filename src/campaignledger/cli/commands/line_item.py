"""Line item commands."""

import click

from campaignledger.cli.date_filters import date_range_options, resolve_cli_date_range
from campaignledger.cli.error_handling import handle_domain_error
from campaignledger.cli.paging import echo_page_footer, format_money, page_size_option
from campaignledger.domain.catalog import CatalogService
from campaignledger.domain.entities import Collection
from campaignledger.domain.errors import DomainError
from campaignledger.domain.filters import NOT_INVOICED, LineItemFilters
from campaignledger.domain.ledger import LedgerService
from campaignledger.domain.query import QueryService
from campaignledger.utils.money import parse_amount


def _parse_amount_option(ctx, value: str, label: str):
    try:
        return parse_amount(value)
    except ValueError as e:
        click.echo(f"Error: Invalid {label}: {e}", err=True)
        ctx.exit(1)


@click.group()
def line_item_group():
    """Manage line items."""
    pass


@line_item_group.command("create")
@click.argument("campaign_id", metavar="CAMPAIGN_ID")
@click.argument("name", metavar="NAME")
@click.option("--booked", required=True, help="Booked (planned) amount")
@click.option("--actual", required=True, help="Actual (delivered) amount")
@click.option("--adjustment", default="0", show_default=True, help="Signed adjustment")
@click.pass_context
def create_line_item(ctx, campaign_id: str, name: str, booked: str, actual: str, adjustment: str):
    """Create an unbilled line item in a campaign.

    Examples:
        campaignledger line-item create CAMPAIGN_ID "Homepage banner" --booked 10000 --actual 11000
        campaignledger line-item create CAMPAIGN_ID "Video" --booked 5000 --actual 4800 --adjustment "(200)"
    """
    service = CatalogService(ctx.obj["db"])
    booked_amount = _parse_amount_option(ctx, booked, "booked amount")
    actual_amount = _parse_amount_option(ctx, actual, "actual amount")
    adjustments = _parse_amount_option(ctx, adjustment, "adjustment")

    try:
        line_item_id = service.create_line_item(campaign_id, name, booked_amount, actual_amount, adjustments)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created line item '{name}' (ID: {line_item_id})")


@line_item_group.command("list")
@click.option("--campaign", "campaign_id", help="Campaign ID")
@click.option("--invoice", "invoice_id", help="Invoice ID")
@click.option("--uninvoiced", is_flag=True, help="Only line items not on any invoice")
@click.option("--search", default="", help="Case-insensitive text in the line item name")
@date_range_options
@page_size_option
@click.pass_context
def list_line_items(ctx, campaign_id, invoice_id, uninvoiced, search, start_date, end_date, period, cursor, page_size):
    """List line items, newest first. The date range applies to creation time."""
    if uninvoiced and invoice_id:
        click.echo("Error: --uninvoiced cannot be combined with --invoice.", err=True)
        ctx.exit(1)

    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
    filters = LineItemFilters(
        campaign_id=campaign_id,
        invoice_id=NOT_INVOICED if uninvoiced else invoice_id,
        search=search,
        created_from=start,
        created_to=end,
    )
    queries = QueryService(ctx.obj["db"], default_page_size=ctx.obj["settings"].default_page_size)

    try:
        filter_spec = filters.to_filter_spec()
        page = queries.query(Collection.LINE_ITEMS, filter_spec, page_size=page_size, cursor=cursor)
        total = queries.count(Collection.LINE_ITEMS, filter_spec)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not page.items:
        click.echo("No line items found.")
    else:
        click.echo("\nLine items:")
        click.echo("-" * 110)
        for item in page.items:
            click.echo(
                f"{item.id} | {item.name[:28]:28s} | booked {format_money(item.booked_amount):>12s} | "
                f"actual {format_money(item.actual_amount):>12s} | adj {format_money(item.adjustments):>10s} | "
                f"total {format_money(item.total):>12s}"
            )
    echo_page_footer(page, total, search_active=bool(search.strip()))


@line_item_group.command("adjust")
@click.argument("line_item_id", metavar="LINE_ITEM_ID")
@click.argument("amount", metavar="AMOUNT")
@click.option("--comment", default="", help="Reason for the adjustment")
@click.option("--user", "user_name", default="System", show_default=True, help="Who made the change")
@click.pass_context
def adjust_line_item(ctx, line_item_id: str, amount: str, comment: str, user_name: str):
    """Set a line item's adjustment and recompute its invoice totals.

    Only allowed while the invoice is a draft or overdue. Use "--" before a
    negative amount, or write it in parentheses.

    Examples:
        campaignledger line-item adjust LINE_ITEM_ID 750 --comment "Make-good"
        campaignledger line-item adjust LINE_ITEM_ID -- -200
    """
    new_adjustment = _parse_amount_option(ctx, amount, "adjustment")
    service = LedgerService(ctx.obj["db"], settings=ctx.obj["settings"])

    try:
        entry = service.update_line_item_adjustments(line_item_id, new_adjustment, comment=comment, user_name=user_name)
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo(
        f"Adjustment of '{entry.line_item_name}' changed from {format_money(entry.previous_amount)} "
        f"to {format_money(entry.new_amount)} ({entry.change_type.value})"
    )


def register_commands(cli: click.Group) -> None:
    """Register line item commands with main CLI."""
    cli.add_command(line_item_group, name="line-item")
