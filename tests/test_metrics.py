"""Tests for dashboard metrics."""

from datetime import date, datetime, UTC
from decimal import Decimal

import pytest

from campaignledger.domain.entities import (
    Campaign,
    CampaignStatus,
    Invoice,
    InvoiceStatus,
    LineItem,
)
from campaignledger.domain.metrics import DashboardMetricsService, compute_dashboard_metrics
from campaignledger.utils.money import ZERO

TODAY = date(2024, 6, 10)
CREATED = datetime(2024, 1, 1, tzinfo=UTC)


def _campaign(cid, name, status=CampaignStatus.ACTIVE, end_date=None):
    return Campaign(cid, name, status, None, end_date, (), (), CREATED, CREATED)


def _invoice(iid, campaign_id, status, total, due_date=date(2024, 7, 1), paid_date=None, adjustments="0"):
    total = Decimal(total)
    adjustments = Decimal(adjustments)
    return Invoice(
        id=iid,
        campaign_id=campaign_id,
        invoice_number=f"INV-{iid}",
        client_name=f"Client {iid}",
        client_email="billing@example.test",
        currency="USD",
        line_item_ids=(),
        booked_amount=total,
        actual_amount=total - adjustments,
        total_adjustments=adjustments,
        total_amount=total,
        issue_date=date(2024, 1, 15),
        due_date=due_date,
        paid_date=paid_date,
        status=status,
        created_at=CREATED,
        updated_at=CREATED,
    )


def _line_item(lid, invoice_id=None):
    return LineItem(lid, "c1", f"Item {lid}", Decimal("1"), Decimal("1"), ZERO, invoice_id, CREATED, CREATED)


@pytest.fixture
def sample():
    campaigns = [
        _campaign("c1", "Spring", end_date=date(2024, 6, 15)),
        _campaign("c2", "Summer", end_date=date(2024, 8, 1)),
        _campaign("c3", "Old", status=CampaignStatus.COMPLETED, end_date=date(2024, 6, 12)),
    ]
    invoices = [
        _invoice("1", "c1", InvoiceStatus.PAID, "1000", paid_date=date(2024, 4, 20)),
        _invoice("2", "c1", InvoiceStatus.PAID, "500", paid_date=date(2024, 5, 3), adjustments="50"),
        _invoice("3", "c2", InvoiceStatus.PAID, "2000", paid_date=date(2024, 5, 30)),
        _invoice("4", "c2", InvoiceStatus.SENT, "300", due_date=date(2024, 6, 14)),
        _invoice("5", "c2", InvoiceStatus.SENT, "700", due_date=date(2024, 6, 30)),
        _invoice("6", "c1", InvoiceStatus.OVERDUE, "400", due_date=date(2024, 5, 1)),
        _invoice("7", "c3", InvoiceStatus.CANCELLED, "900"),
        _invoice("8", "c3", InvoiceStatus.DRAFT, "100"),
    ]
    line_items = [_line_item("a", "1"), _line_item("b"), _line_item("c")]
    return invoices, campaigns, line_items


def test_revenue_figures(sample):
    metrics = compute_dashboard_metrics(*sample, today=TODAY)

    assert metrics.total_revenue == Decimal("3500.00")
    assert metrics.outstanding_revenue == Decimal("1400.00")
    assert metrics.overdue_revenue == Decimal("400.00")
    assert metrics.overdue_count == 1
    # 3500 paid of 5000 non-cancelled
    assert metrics.collection_rate == Decimal("70.00")
    assert metrics.total_adjustments == Decimal("50.00")
    assert metrics.total_variance == metrics.total_actual - metrics.total_booked


def test_status_breakdowns(sample):
    metrics = compute_dashboard_metrics(*sample, today=TODAY)

    assert metrics.active_campaigns == 2
    assert metrics.campaigns_by_status == {"active": 2, "completed": 1}
    assert metrics.invoices_by_status == {"paid": 3, "sent": 2, "overdue": 1, "cancelled": 1, "draft": 1}
    assert metrics.uninvoiced_line_items == 2


def test_revenue_by_month_and_top_campaigns(sample):
    metrics = compute_dashboard_metrics(*sample, today=TODAY)

    assert [(m.month, m.revenue, m.count) for m in metrics.revenue_by_month] == [
        ("2024-04", Decimal("1000.00"), 1),
        ("2024-05", Decimal("2500.00"), 2),
    ]
    assert [(c.name, c.revenue) for c in metrics.top_campaigns] == [
        ("Summer", Decimal("2000.00")),
        ("Spring", Decimal("1500.00")),
    ]
    assert [p.invoice_number for p in metrics.recent_payments] == ["INV-3", "INV-2", "INV-1"]


def test_week_ahead_figures(sample):
    metrics = compute_dashboard_metrics(*sample, today=TODAY)

    assert metrics.invoices_due_this_week == 1
    assert metrics.invoices_due_this_week_amount == Decimal("300.00")
    # The completed campaign ending this week is not counted.
    assert metrics.campaigns_ending_this_week == 1


def test_revenue_by_month_keeps_last_twelve_months():
    invoices = [
        _invoice(str(n), "c1", InvoiceStatus.PAID, "10", paid_date=date(2023 + (n - 1) // 12, (n - 1) % 12 + 1, 5))
        for n in range(1, 16)
    ]

    metrics = compute_dashboard_metrics(invoices, [], [], today=TODAY)

    assert len(metrics.revenue_by_month) == 12
    assert metrics.revenue_by_month[0].month == "2023-04"
    assert metrics.revenue_by_month[-1].month == "2024-03"
    assert len(metrics.recent_payments) == 5


def test_empty_ledger():
    metrics = compute_dashboard_metrics([], [], [], today=TODAY)

    assert metrics.total_revenue == ZERO
    assert metrics.collection_rate == ZERO
    assert metrics.revenue_by_month == ()
    assert metrics.top_campaigns == ()


def test_service_reads_from_store(query_service, ledger_service, invoice, line_items):
    ledger_service.update_invoice_status(invoice.id, InvoiceStatus.PAID, paid_date=date(2024, 5, 2))
    service = DashboardMetricsService(query_service)

    metrics = service.get_metrics(today=TODAY)

    assert metrics.total_revenue == Decimal("16100.00")
    assert metrics.collection_rate == Decimal("100.00")
    assert metrics.invoices_by_status == {"paid": 1}
    assert metrics.uninvoiced_line_items == 0
    assert [(c.name, c.revenue) for c in metrics.top_campaigns] == [("Campaign C", Decimal("16100.00"))]


def test_service_date_range_excludes_older_documents(query_service, invoice):
    service = DashboardMetricsService(query_service)

    metrics = service.get_metrics(date_range=(date(2000, 1, 1), date(2000, 12, 31)), today=TODAY)

    assert metrics.invoices_by_status == {}
    assert metrics.active_campaigns == 0
