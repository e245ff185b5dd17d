"""Campaign commands."""

import click

from campaignledger.cli.date_filters import date_range_options, parse_cli_date, resolve_cli_date_range
from campaignledger.cli.error_handling import handle_domain_error
from campaignledger.cli.paging import echo_page_footer, format_money, page_size_option
from campaignledger.domain.catalog import CatalogService
from campaignledger.domain.entities import CampaignStatus, Collection
from campaignledger.domain.errors import DomainError
from campaignledger.domain.filters import CAMPAIGN_DATE_FIELDS, CampaignFilters
from campaignledger.domain.query import QueryService

CAMPAIGN_STATUSES = [status.value for status in CampaignStatus]


@click.group()
def campaign_group():
    """Manage campaigns."""
    pass


@campaign_group.command("create")
@click.argument("name", metavar="NAME")
@click.option("--status", type=click.Choice(CAMPAIGN_STATUSES), default="draft", show_default=True)
@click.option("--start-date", help="Start date (YYYY-MM-DD)")
@click.option("--end-date", help="End date (YYYY-MM-DD)")
@click.pass_context
def create_campaign(ctx, name: str, status: str, start_date: str | None, end_date: str | None):
    """Create a new campaign.

    Examples:
        campaignledger campaign create "Spring Launch" --status active
        campaignledger campaign create "Q3 Brand" --start-date 2024-07-01 --end-date 2024-09-30
    """
    service = CatalogService(ctx.obj["db"])
    start = parse_cli_date(ctx, start_date, "start date")
    end = parse_cli_date(ctx, end_date, "end date")

    try:
        campaign_id = service.create_campaign(name, CampaignStatus(status), start, end)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Created campaign '{name}' (ID: {campaign_id})")


@campaign_group.command("list")
@click.option("--status", "statuses", multiple=True, type=click.Choice(CAMPAIGN_STATUSES), help="Repeatable")
@click.option("--search", default="", help="Case-insensitive text in the campaign name")
@click.option("--date-field", type=click.Choice(CAMPAIGN_DATE_FIELDS), default="created_at", show_default=True)
@date_range_options
@page_size_option
@click.pass_context
def list_campaigns(ctx, statuses, search, date_field, start_date, end_date, period, cursor, page_size):
    """List campaigns, newest first."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
    filters = CampaignFilters(
        statuses=tuple(CampaignStatus(s) for s in statuses),
        search=search,
        date_field=date_field,
        date_from=start,
        date_to=end,
    )
    queries = QueryService(ctx.obj["db"], default_page_size=ctx.obj["settings"].default_page_size)

    try:
        filter_spec = filters.to_filter_spec()
        page = queries.query(Collection.CAMPAIGNS, filter_spec, page_size=page_size, cursor=cursor)
        total = queries.count(Collection.CAMPAIGNS, filter_spec)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not page.items:
        click.echo("No campaigns found.")
    else:
        click.echo("\nCampaigns:")
        click.echo("-" * 100)
        for c in page.items:
            dates = f"{c.start_date or '?'} .. {c.end_date or '?'}"
            click.echo(
                f"{c.id} | {c.name[:30]:30s} | {c.status.value:9s} | {dates:24s} | "
                f"{len(c.line_item_ids)} items, {len(c.invoice_ids)} invoices"
            )
    echo_page_footer(page, total, search_active=bool(search.strip()))


@campaign_group.command("show")
@click.argument("campaign_id", metavar="CAMPAIGN_ID")
@click.pass_context
def show_campaign(ctx, campaign_id: str):
    """Show a campaign with its line items and invoices."""
    db = ctx.obj["db"]
    service = CatalogService(db)
    try:
        campaign = service.get_campaign(campaign_id)
        line_items = service.get_line_items(campaign_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    invoices = QueryService(db).get_by_ids(Collection.INVOICES, campaign.invoice_ids)

    click.echo(f"\nCampaign: {campaign.name} (ID: {campaign.id})")
    click.echo(f"  Status: {campaign.status.value}")
    click.echo(f"  Dates: {campaign.start_date or '-'} to {campaign.end_date or '-'}")

    click.echo(f"\nLine items ({len(line_items)}):")
    for item in line_items:
        click.echo(
            f"  {item.id} | {item.name[:30]:30s} | booked {format_money(item.booked_amount):>12s} | "
            f"actual {format_money(item.actual_amount):>12s} | adj {format_money(item.adjustments):>10s} | "
            f"{'invoice ' + item.invoice_id if item.invoice_id else 'not invoiced'}"
        )

    click.echo(f"\nInvoices ({len(invoices)}):")
    for inv in invoices:
        click.echo(
            f"  {inv.invoice_number} | {inv.status.value:9s} | "
            f"{format_money(inv.total_amount, inv.currency)} | {len(inv.line_item_ids)} items"
        )


def register_commands(cli: click.Group) -> None:
    """Register campaign commands with main CLI."""
    cli.add_command(campaign_group, name="campaign")
