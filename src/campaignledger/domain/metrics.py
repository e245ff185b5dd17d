"""Dashboard metrics domain service."""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

from campaignledger.domain.entities import (
    Campaign,
    CampaignStatus,
    Collection,
    Invoice,
    InvoiceStatus,
    LineItem,
)
from campaignledger.domain.query import QueryService
from campaignledger.domain.query_planner import FilterSpec, RangeFilter
from campaignledger.utils.money import ZERO, round_money, sum_money

logger = logging.getLogger(__name__)

DUE_SOON_DAYS = 7
TOP_CAMPAIGNS = 5
RECENT_PAYMENTS = 5
REVENUE_MONTHS = 12


@dataclass(frozen=True)
class MonthlyRevenue:
    month: str
    revenue: Decimal
    count: int


@dataclass(frozen=True)
class CampaignRevenue:
    id: str
    name: str
    revenue: Decimal


@dataclass(frozen=True)
class Payment:
    id: str
    invoice_number: str
    client_name: str
    amount: Decimal
    paid_date: date


@dataclass(frozen=True)
class DashboardMetrics:
    """Aggregated figures for the dashboard.

    Revenue figures use invoice ``total_amount``. ``collection_rate`` is the
    percentage of non-cancelled invoiced value that has been paid.
    """

    total_revenue: Decimal
    outstanding_revenue: Decimal
    overdue_revenue: Decimal
    overdue_count: int
    collection_rate: Decimal
    total_booked: Decimal
    total_actual: Decimal
    total_variance: Decimal
    total_adjustments: Decimal
    active_campaigns: int
    campaigns_by_status: dict[str, int]
    invoices_by_status: dict[str, int]
    uninvoiced_line_items: int
    revenue_by_month: tuple[MonthlyRevenue, ...]
    top_campaigns: tuple[CampaignRevenue, ...]
    recent_payments: tuple[Payment, ...]
    invoices_due_this_week: int
    invoices_due_this_week_amount: Decimal
    campaigns_ending_this_week: int


def compute_dashboard_metrics(
    invoices: Iterable[Invoice],
    campaigns: Iterable[Campaign],
    line_items: Iterable[LineItem],
    today: date,
) -> DashboardMetrics:
    """Aggregate dashboard metrics from already loaded documents."""
    invoices = list(invoices)
    campaigns = list(campaigns)
    line_items = list(line_items)
    week_ahead = today + timedelta(days=DUE_SOON_DAYS)

    paid = [inv for inv in invoices if inv.status == InvoiceStatus.PAID]
    outstanding = [inv for inv in invoices if inv.status in (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)]
    overdue = [inv for inv in invoices if inv.status == InvoiceStatus.OVERDUE]

    total_revenue = sum_money(inv.total_amount for inv in paid)
    total_invoiced = sum_money(inv.total_amount for inv in invoices if inv.status != InvoiceStatus.CANCELLED)
    collection_rate = round_money(total_revenue / total_invoiced * 100) if total_invoiced > 0 else ZERO

    total_booked = sum_money(inv.booked_amount for inv in invoices)
    total_actual = sum_money(inv.actual_amount for inv in invoices)

    monthly: dict[str, list[Invoice]] = {}
    for inv in paid:
        if inv.paid_date is not None:
            monthly.setdefault(inv.paid_date.strftime("%Y-%m"), []).append(inv)
    revenue_by_month = tuple(
        MonthlyRevenue(month, sum_money(inv.total_amount for inv in group), len(group))
        for month, group in sorted(monthly.items())[-REVENUE_MONTHS:]
    )

    names = {campaign.id: campaign.name for campaign in campaigns}
    by_campaign: dict[str, list[Decimal]] = {}
    for inv in paid:
        by_campaign.setdefault(inv.campaign_id, []).append(inv.total_amount)
    top_campaigns = sorted(
        (CampaignRevenue(cid, names.get(cid, cid), sum_money(amounts)) for cid, amounts in by_campaign.items()),
        key=lambda c: c.revenue,
        reverse=True,
    )[:TOP_CAMPAIGNS]

    recent_payments = tuple(
        Payment(inv.id, inv.invoice_number, inv.client_name, inv.total_amount, inv.paid_date)
        for inv in sorted(
            (inv for inv in paid if inv.paid_date is not None),
            key=lambda inv: inv.paid_date,
            reverse=True,
        )[:RECENT_PAYMENTS]
    )

    due_soon = [
        inv
        for inv in invoices
        if inv.status == InvoiceStatus.SENT and today <= inv.due_date <= week_ahead
    ]
    ending_soon = [
        c
        for c in campaigns
        if c.status == CampaignStatus.ACTIVE and c.end_date is not None and today <= c.end_date <= week_ahead
    ]

    return DashboardMetrics(
        total_revenue=total_revenue,
        outstanding_revenue=sum_money(inv.total_amount for inv in outstanding),
        overdue_revenue=sum_money(inv.total_amount for inv in overdue),
        overdue_count=len(overdue),
        collection_rate=collection_rate,
        total_booked=total_booked,
        total_actual=total_actual,
        total_variance=total_actual - total_booked,
        total_adjustments=sum_money(inv.total_adjustments for inv in invoices),
        active_campaigns=sum(1 for c in campaigns if c.status == CampaignStatus.ACTIVE),
        campaigns_by_status=dict(Counter(c.status.value for c in campaigns)),
        invoices_by_status=dict(Counter(inv.status.value for inv in invoices)),
        uninvoiced_line_items=sum(1 for item in line_items if item.invoice_id is None),
        revenue_by_month=revenue_by_month,
        top_campaigns=tuple(top_campaigns),
        recent_payments=recent_payments,
        invoices_due_this_week=len(due_soon),
        invoices_due_this_week_amount=sum_money(inv.total_amount for inv in due_soon),
        campaigns_ending_this_week=len(ending_soon),
    )


class DashboardMetricsService:
    """Service for computing dashboard metrics from the store."""

    def __init__(self, query_service: QueryService):
        """Initialize metrics service.

        Args:
            query_service: Read service used to load documents
        """
        self.queries = query_service

    def get_metrics(
        self,
        date_range: Optional[tuple[Optional[date], Optional[date]]] = None,
        today: Optional[date] = None,
    ) -> DashboardMetrics:
        """Compute metrics, optionally over documents created within a date range.

        Args:
            date_range: Optional (start, end) creation date bounds, inclusive
            today: Reference date for the "this week" figures

        Returns:
            DashboardMetrics
        """
        filter_spec = FilterSpec()
        if date_range is not None and (date_range[0] or date_range[1]):
            filter_spec = FilterSpec(range=RangeFilter("created_at", date_range[0], date_range[1]))

        invoices = list(self.queries.iter_all(Collection.INVOICES, filter_spec))
        campaigns = list(self.queries.iter_all(Collection.CAMPAIGNS, filter_spec))
        line_items = list(self.queries.iter_all(Collection.LINE_ITEMS, filter_spec))
        logger.debug(
            "Computing metrics over %d invoices, %d campaigns, %d line items",
            len(invoices),
            len(campaigns),
            len(line_items),
        )
        return compute_dashboard_metrics(invoices, campaigns, line_items, today or date.today())
