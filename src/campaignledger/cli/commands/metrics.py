"""Dashboard metrics command."""

import click

from campaignledger.cli.date_filters import date_range_options, resolve_cli_date_range
from campaignledger.cli.error_handling import handle_domain_error
from campaignledger.cli.paging import format_money
from campaignledger.domain.errors import DomainError
from campaignledger.domain.metrics import DashboardMetricsService
from campaignledger.domain.query import QueryService


@click.command("metrics")
@date_range_options
@click.pass_context
def show_metrics(ctx, start_date, end_date, period):
    """Show dashboard metrics.

    The date range limits the metrics to documents created within it.

    Examples:
        campaignledger metrics
        campaignledger metrics --period this-quarter
    """
    start, end = resolve_cli_date_range(ctx, start_date=start_date, end_date=end_date, period=period)
    service = DashboardMetricsService(QueryService(ctx.obj["db"]))

    try:
        m = service.get_metrics(date_range=(start, end))
    except DomainError as e:
        handle_domain_error(ctx, e)

    click.echo("\nRevenue:")
    click.echo(f"  Collected:       {format_money(m.total_revenue):>16s}")
    click.echo(f"  Outstanding:     {format_money(m.outstanding_revenue):>16s}")
    click.echo(f"  Overdue:         {format_money(m.overdue_revenue):>16s} ({m.overdue_count} invoices)")
    click.echo(f"  Collection rate: {m.collection_rate:>15}%")

    click.echo("\nVariance:")
    click.echo(f"  Booked:          {format_money(m.total_booked):>16s}")
    click.echo(f"  Actual:          {format_money(m.total_actual):>16s}")
    click.echo(f"  Variance:        {format_money(m.total_variance):>16s}")
    click.echo(f"  Adjustments:     {format_money(m.total_adjustments):>16s}")

    click.echo("\nCounts:")
    click.echo(f"  Active campaigns: {m.active_campaigns}")
    click.echo(f"  Campaigns by status: {_counts(m.campaigns_by_status)}")
    click.echo(f"  Invoices by status: {_counts(m.invoices_by_status)}")
    click.echo(f"  Line items not invoiced: {m.uninvoiced_line_items}")

    if m.revenue_by_month:
        click.echo("\nRevenue by month:")
        for month in m.revenue_by_month:
            click.echo(f"  {month.month}: {format_money(month.revenue):>16s} ({month.count} invoices)")

    if m.top_campaigns:
        click.echo("\nTop campaigns:")
        for campaign in m.top_campaigns:
            click.echo(f"  {campaign.name[:30]:30s} {format_money(campaign.revenue):>16s}")

    if m.recent_payments:
        click.echo("\nRecent payments:")
        for payment in m.recent_payments:
            click.echo(
                f"  {payment.paid_date} | {payment.invoice_number} | {payment.client_name[:20]:20s} | "
                f"{format_money(payment.amount):>14s}"
            )

    click.echo("\nThis week:")
    click.echo(
        f"  Invoices due: {m.invoices_due_this_week} ({format_money(m.invoices_due_this_week_amount)})"
    )
    click.echo(f"  Campaigns ending: {m.campaigns_ending_this_week}")


def _counts(counts: dict[str, int]) -> str:
    if not counts:
        return "-"
    return ", ".join(f"{status} {count}" for status, count in sorted(counts.items()))


def register_commands(cli: click.Group) -> None:
    """Register metrics command with main CLI."""
    cli.add_command(show_metrics)
