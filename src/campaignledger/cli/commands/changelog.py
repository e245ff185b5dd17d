"""Change log commands."""

import click

from campaignledger.cli.date_filters import date_range_options, resolve_cli_date_range
from campaignledger.cli.error_handling import handle_domain_error
from campaignledger.cli.paging import echo_page_footer, format_money, page_size_option
from campaignledger.domain.audit import AuditTrailService
from campaignledger.domain.entities import ChangeType, Collection, EntityType
from campaignledger.domain.errors import DomainError
from campaignledger.domain.filters import ChangeLogFilters
from campaignledger.domain.query import QueryService


@click.group()
def changelog_group():
    """Review the change log."""
    pass


@changelog_group.command("list")
@click.option("--invoice", "invoice_id", help="Invoice ID")
@click.option("--line-item", "line_item_id", help="Line item ID")
@click.option("--campaign", "campaign_id", help="Campaign ID")
@click.option(
    "--change-type",
    "change_types",
    multiple=True,
    type=click.Choice([t.value for t in ChangeType]),
    help="Repeatable",
)
@click.option("--entity-type", type=click.Choice([t.value for t in EntityType]))
@date_range_options
@page_size_option
@click.pass_context
def list_changes(
    ctx, invoice_id, line_item_id, campaign_id, change_types, entity_type, start_date, end_date, period, cursor, page_size
):
    """List change log entries, newest first."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
    filters = ChangeLogFilters(
        invoice_id=invoice_id,
        line_item_id=line_item_id,
        campaign_id=campaign_id,
        change_types=tuple(ChangeType(t) for t in change_types),
        entity_type=EntityType(entity_type) if entity_type else None,
        start=start,
        end=end,
    )
    queries = QueryService(ctx.obj["db"], default_page_size=ctx.obj["settings"].default_page_size)
    audit = AuditTrailService(ctx.obj["db"], queries)

    try:
        page = audit.search(filters, page_size=page_size, cursor=cursor)
        total = queries.count(Collection.CHANGE_LOGS, filters.to_filter_spec())
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not page.items:
        click.echo("No change log entries found.")
    else:
        click.echo("\nChange log:")
        click.echo("-" * 120)
        for entry in page.items:
            invoice = entry.invoice_number or "-"
            if entry.previous_invoice_number:
                invoice = f"{entry.previous_invoice_number} -> {invoice}"
            click.echo(
                f"{entry.timestamp:%Y-%m-%d %H:%M} | {entry.change_type.value:18s} | "
                f"{entry.line_item_name[:24]:24s} | {invoice:22s} | "
                f"{format_money(entry.previous_amount):>10s} -> {format_money(entry.new_amount):>10s} | "
                f"{entry.user_name} | {entry.comment}"
            )
    echo_page_footer(page, total)


def register_commands(cli: click.Group) -> None:
    """Register change log commands with main CLI."""
    cli.add_command(changelog_group, name="changelog")
