"""Invoice commands."""

from datetime import date, timedelta

import click

from campaignledger.cli.date_filters import date_range_options, parse_cli_date, resolve_cli_date_range
from campaignledger.cli.error_handling import handle_domain_error
from campaignledger.cli.paging import echo_page_footer, format_money, page_size_option
from campaignledger.domain.audit import AuditTrailService
from campaignledger.domain.entities import Collection, InvoiceStatus
from campaignledger.domain.errors import DomainError, NotFoundError, invoice_not_found
from campaignledger.domain.filters import INVOICE_DATE_FIELDS, InvoiceFilters
from campaignledger.domain.ledger import LedgerService
from campaignledger.domain.query import QueryService

INVOICE_STATUSES = [status.value for status in InvoiceStatus]
DEFAULT_PAYMENT_TERMS_DAYS = 30


def _ledger(ctx) -> LedgerService:
    return LedgerService(ctx.obj["db"], settings=ctx.obj["settings"])


def _echo_totals(totals, currency: str = "") -> None:
    click.echo(
        f"  Booked {format_money(totals.booked_amount, currency)} | "
        f"Actual {format_money(totals.actual_amount, currency)} | "
        f"Adjustments {format_money(totals.total_adjustments, currency)} | "
        f"Total {format_money(totals.total_amount, currency)}"
    )


@click.group()
def invoice_group():
    """Manage invoices."""
    pass


@invoice_group.command("create")
@click.argument("campaign_id", metavar="CAMPAIGN_ID")
@click.argument("line_item_ids", metavar="LINE_ITEM_ID...", nargs=-1, required=True)
@click.option("--client-name", required=True, help="Client name")
@click.option("--client-email", required=True, help="Client email")
@click.option("--issue-date", default="today", show_default=True, help="Issue date")
@click.option("--due-date", help=f"Due date (defaults to {DEFAULT_PAYMENT_TERMS_DAYS} days after issue)")
@click.option("--currency", default="USD", show_default=True)
@click.pass_context
def create_invoice(ctx, campaign_id, line_item_ids, client_name, client_email, issue_date, due_date, currency):
    """Create a draft invoice from unbilled line items of a campaign.

    Examples:
        campaignledger invoice create CAMPAIGN_ID L1 L2 --client-name "Acme" --client-email billing@acme.test
    """
    issued = parse_cli_date(ctx, issue_date, "issue date")
    due = parse_cli_date(ctx, due_date, "due date") or issued + timedelta(days=DEFAULT_PAYMENT_TERMS_DAYS)
    service = _ledger(ctx)

    try:
        invoice_id = service.create_invoice_from_line_items(
            campaign_id=campaign_id,
            line_item_ids=list(line_item_ids),
            client_name=client_name,
            client_email=client_email,
            issue_date=issued,
            due_date=due,
            currency=currency,
        )
    except DomainError as e:
        handle_domain_error(ctx, e)

    invoice = ctx.obj["db"].get_by_id(Collection.INVOICES, invoice_id)
    click.echo(f"Created invoice {invoice.invoice_number} (ID: {invoice_id}) with {len(line_item_ids)} line items")
    _echo_totals(invoice, invoice.currency)


@invoice_group.command("add")
@click.argument("invoice_id", metavar="INVOICE_ID")
@click.argument("line_item_ids", metavar="LINE_ITEM_ID...", nargs=-1, required=True)
@click.pass_context
def add_line_items(ctx, invoice_id, line_item_ids):
    """Add unbilled line items to an invoice."""
    try:
        totals = _ledger(ctx).add_line_items_to_invoice(invoice_id, list(line_item_ids))
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Added {len(line_item_ids)} line items to invoice {invoice_id}")
    _echo_totals(totals)


@invoice_group.command("move")
@click.argument("from_invoice_id", metavar="FROM_INVOICE_ID")
@click.argument("to_invoice_id", metavar="TO_INVOICE_ID")
@click.argument("line_item_ids", metavar="LINE_ITEM_ID...", nargs=-1, required=True)
@click.option("--user", "user_name", default="System", show_default=True, help="Who made the change")
@click.pass_context
def move_line_items(ctx, from_invoice_id, to_invoice_id, line_item_ids, user_name):
    """Move line items from one invoice to another of the same campaign."""
    try:
        entries = _ledger(ctx).move_line_items_to_invoice(
            from_invoice_id, to_invoice_id, list(line_item_ids), user_name=user_name
        )
    except DomainError as e:
        handle_domain_error(ctx, e)
    for entry in entries:
        click.echo(f"Moved '{entry.line_item_name}': {entry.comment}")


@invoice_group.command("remove")
@click.argument("invoice_id", metavar="INVOICE_ID")
@click.argument("line_item_ids", metavar="LINE_ITEM_ID...", nargs=-1, required=True)
@click.pass_context
def remove_line_items(ctx, invoice_id, line_item_ids):
    """Take line items off an invoice; they become unbilled again."""
    try:
        totals = _ledger(ctx).remove_line_items_from_invoice(invoice_id, list(line_item_ids))
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Removed {len(line_item_ids)} line items from invoice {invoice_id}")
    _echo_totals(totals)


@invoice_group.command("recompute")
@click.argument("invoice_id", metavar="INVOICE_ID")
@click.pass_context
def recompute_totals(ctx, invoice_id):
    """Recompute an invoice's totals from its line items."""
    try:
        totals = _ledger(ctx).recompute_invoice_totals(invoice_id)
    except DomainError as e:
        handle_domain_error(ctx, e)
    click.echo(f"Totals of invoice {invoice_id}:")
    _echo_totals(totals)


@invoice_group.command("status")
@click.argument("invoice_id", metavar="INVOICE_ID")
@click.argument("status", type=click.Choice(INVOICE_STATUSES))
@click.option("--paid-date", help="Payment date (required for 'paid')")
@click.pass_context
def set_status(ctx, invoice_id, status, paid_date):
    """Set an invoice's status.

    Examples:
        campaignledger invoice status INVOICE_ID sent
        campaignledger invoice status INVOICE_ID paid --paid-date today
    """
    paid = parse_cli_date(ctx, paid_date, "paid date")
    if paid_date and status != InvoiceStatus.PAID.value:
        click.echo("Error: --paid-date only applies to status 'paid'.", err=True)
        ctx.exit(1)

    try:
        invoice = _ledger(ctx).update_invoice_status(invoice_id, InvoiceStatus(status), paid_date=paid)
    except DomainError as e:
        handle_domain_error(ctx, e)
    suffix = f" (paid {invoice.paid_date})" if invoice.paid_date else ""
    click.echo(f"Invoice {invoice.invoice_number} is now {invoice.status.value}{suffix}")


@invoice_group.command("list")
@click.option("--campaign", "campaign_id", help="Campaign ID")
@click.option("--status", "statuses", multiple=True, type=click.Choice(INVOICE_STATUSES), help="Repeatable")
@click.option("--client", "client_search", default="", help="Case-insensitive text in client name or number")
@click.option("--date-field", type=click.Choice(INVOICE_DATE_FIELDS), default="issue_date", show_default=True)
@click.option("--sort", "sort_field", help="Field to sort by when no date range is given")
@date_range_options
@page_size_option
@click.pass_context
def list_invoices(
    ctx, campaign_id, statuses, client_search, date_field, sort_field, start_date, end_date, period, cursor, page_size
):
    """List invoices, newest first."""
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
    filters = InvoiceFilters(
        campaign_id=campaign_id,
        statuses=tuple(InvoiceStatus(s) for s in statuses),
        client_search=client_search,
        date_field=date_field,
        date_from=start,
        date_to=end,
        sort_field=sort_field,
    )
    queries = QueryService(ctx.obj["db"], default_page_size=ctx.obj["settings"].default_page_size)

    try:
        filter_spec = filters.to_filter_spec()
        page = queries.query(Collection.INVOICES, filter_spec, page_size=page_size, cursor=cursor)
        total = queries.count(Collection.INVOICES, filter_spec)
    except DomainError as e:
        handle_domain_error(ctx, e)

    if not page.items:
        click.echo("No invoices found.")
    else:
        click.echo("\nInvoices:")
        click.echo("-" * 110)
        today = date.today()
        for inv in page.items:
            late = " LATE" if inv.status == InvoiceStatus.SENT and inv.due_date < today else ""
            click.echo(
                f"{inv.invoice_number} | {inv.id} | {inv.client_name[:20]:20s} | {inv.status.value:9s} | "
                f"due {inv.due_date}{late} | {format_money(inv.total_amount, inv.currency):>16s}"
            )
    echo_page_footer(page, total, search_active=bool(client_search.strip()))


@invoice_group.command("show")
@click.argument("invoice_id", metavar="INVOICE_ID")
@click.pass_context
def show_invoice(ctx, invoice_id):
    """Show an invoice with its line items and change log."""
    db = ctx.obj["db"]
    queries = QueryService(db)
    invoice = queries.get_by_id(Collection.INVOICES, invoice_id)
    if invoice is None:
        handle_domain_error(ctx, NotFoundError(invoice_not_found(invoice_id)))

    click.echo(f"\nInvoice {invoice.invoice_number} (ID: {invoice.id})")
    click.echo(f"  Campaign: {invoice.campaign_id}")
    click.echo(f"  Client: {invoice.client_name} <{invoice.client_email}>")
    click.echo(f"  Status: {invoice.status.value}")
    click.echo(f"  Issued {invoice.issue_date}, due {invoice.due_date}, paid {invoice.paid_date or '-'}")
    _echo_totals(invoice, invoice.currency)

    line_items = queries.get_by_ids(Collection.LINE_ITEMS, invoice.line_item_ids)
    click.echo(f"\nLine items ({len(line_items)}):")
    for item in line_items:
        click.echo(
            f"  {item.id} | {item.name[:30]:30s} | booked {format_money(item.booked_amount):>12s} | "
            f"actual {format_money(item.actual_amount):>12s} | adj {format_money(item.adjustments):>10s}"
        )

    entries = AuditTrailService(db, queries).for_invoice(invoice.id)
    if entries:
        click.echo(f"\nChange log ({len(entries)}):")
        for entry in entries:
            click.echo(
                f"  {entry.timestamp:%Y-%m-%d %H:%M} | {entry.change_type.value:18s} | "
                f"{entry.line_item_name[:24]:24s} | {format_money(entry.difference):>10s} | {entry.comment}"
            )


def register_commands(cli: click.Group) -> None:
    """Register invoice commands with main CLI."""
    cli.add_command(invoice_group, name="invoice")
