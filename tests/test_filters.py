"""Tests for the per-collection filter models."""

from datetime import date
from types import SimpleNamespace

import pytest

from campaignledger.domain.entities import (
    CampaignStatus,
    ChangeType,
    EntityType,
    InvoiceStatus,
)
from campaignledger.domain.errors import ValidationError
from campaignledger.domain.filters import (
    NOT_INVOICED,
    CampaignFilters,
    ChangeLogFilters,
    InvoiceFilters,
    LineItemFilters,
)
from campaignledger.domain.query_planner import RangeFilter


def test_campaign_filters_defaults_are_empty():
    spec = CampaignFilters().to_filter_spec()

    assert spec.equals == {}
    assert spec.range is None
    assert spec.client_only == {}


def test_campaign_filters_statuses_and_search():
    spec = CampaignFilters(
        statuses=(CampaignStatus.ACTIVE, CampaignStatus.DRAFT),
        search="  spring ",
        date_field="start_date",
        date_from=date(2024, 3, 1),
    ).to_filter_spec()

    assert spec.equals == {"status": (CampaignStatus.ACTIVE, CampaignStatus.DRAFT)}
    assert spec.range == RangeFilter("start_date", date(2024, 3, 1), None)
    assert spec.client_only["search"](SimpleNamespace(name="Spring Sale"))


def test_campaign_filters_reject_unknown_date_field():
    with pytest.raises(ValidationError, match="Unknown date field"):
        CampaignFilters(date_field="paid_date").to_filter_spec()


def test_invoice_single_status_wins_over_statuses():
    spec = InvoiceFilters(
        status=InvoiceStatus.PAID,
        statuses=(InvoiceStatus.SENT, InvoiceStatus.OVERDUE),
    ).to_filter_spec()

    assert spec.equals == {"status": InvoiceStatus.PAID}


def test_invoice_filters_default_to_issue_date_range():
    spec = InvoiceFilters(
        campaign_id="c1",
        statuses=(InvoiceStatus.SENT, InvoiceStatus.OVERDUE),
        date_from=date(2024, 1, 1),
        date_to=date(2024, 3, 31),
    ).to_filter_spec()

    assert spec.equals == {"campaign_id": "c1", "status": (InvoiceStatus.SENT, InvoiceStatus.OVERDUE)}
    assert spec.range == RangeFilter("issue_date", date(2024, 1, 1), date(2024, 3, 31))


def test_invoice_client_search_matches_name_or_number():
    predicate = InvoiceFilters(client_search="0042").to_filter_spec().client_only["client"]

    assert predicate(SimpleNamespace(client_name="Acme", invoice_number="INV-000042"))
    assert not predicate(SimpleNamespace(client_name="Acme", invoice_number="INV-000043"))


def test_line_item_not_invoiced_matches_null():
    spec = LineItemFilters(campaign_id="c1", invoice_id=NOT_INVOICED).to_filter_spec()

    assert spec.equals == {"campaign_id": "c1", "invoice_id": None}


def test_line_item_invoice_and_created_range():
    spec = LineItemFilters(invoice_id="i1", created_from=date(2024, 1, 1)).to_filter_spec()

    assert spec.equals == {"invoice_id": "i1"}
    assert spec.range == RangeFilter("created_at", date(2024, 1, 1), None)


def test_change_log_line_item_filter_pins_entity_type():
    spec = ChangeLogFilters(
        line_item_id="l1",
        entity_type=EntityType.INVOICE,
        change_types=(ChangeType.ADJUSTMENT_CREATED, ChangeType.ADJUSTMENT_UPDATED),
        start=date(2024, 5, 1),
    ).to_filter_spec()

    assert spec.equals == {
        "entity_id": "l1",
        "entity_type": EntityType.LINE_ITEM,
        "change_type": (ChangeType.ADJUSTMENT_CREATED, ChangeType.ADJUSTMENT_UPDATED),
    }
    assert spec.range == RangeFilter("timestamp", date(2024, 5, 1), None)


def test_change_log_invoice_and_campaign():
    spec = ChangeLogFilters(invoice_id="i1", campaign_id="c1").to_filter_spec()

    assert spec.equals == {"invoice_id": "i1", "campaign_id": "c1"}
    assert spec.range is None
