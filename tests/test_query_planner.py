"""Tests for the query planner."""

import logging
from datetime import date, datetime, time, timedelta, timezone, UTC
from types import SimpleNamespace

import pytest

from campaignledger.database.query import RangeConstraint
from campaignledger.domain.entities import Collection, InvoiceStatus
from campaignledger.domain.errors import ValidationError
from campaignledger.domain.query_planner import (
    FilterSpec,
    QueryPlanner,
    RangeFilter,
    StoreCapabilities,
    TextContains,
)


@pytest.fixture
def planner():
    return QueryPlanner(StoreCapabilities(max_any_of=10))


def test_plan_without_filters_uses_default_order(planner):
    planned = planner.plan(Collection.INVOICES)

    assert planned.store_query.order_by == "created_at"
    assert planned.store_query.descending is True
    assert planned.store_query.equals == ()
    assert planned.store_query.limit is None
    assert planned.residual == ()


def test_change_logs_default_to_timestamp_order(planner):
    assert planner.plan(Collection.CHANGE_LOGS).store_query.order_by == "timestamp"


def test_single_value_becomes_equality(planner):
    planned = planner.plan(Collection.INVOICES, FilterSpec(equals={"status": InvoiceStatus.PAID}))

    assert planned.store_query.equals == (("status", InvoiceStatus.PAID),)
    assert planned.store_query.any_of == ()


def test_one_element_set_collapses_to_equality(planner):
    planned = planner.plan(Collection.INVOICES, FilterSpec(equals={"status": {InvoiceStatus.SENT}}))

    assert planned.store_query.equals == (("status", InvoiceStatus.SENT),)
    assert planned.store_query.any_of == ()


def test_value_set_is_deduplicated_into_any_of(planner):
    spec = FilterSpec(equals={"status": [InvoiceStatus.SENT, InvoiceStatus.PAID, InvoiceStatus.SENT]})

    planned = planner.plan(Collection.INVOICES, spec)

    assert planned.store_query.any_of == (("status", (InvoiceStatus.PAID, InvoiceStatus.SENT)),)
    assert planned.truncated_filters == ()


def test_empty_value_set_is_ignored(planner):
    planned = planner.plan(Collection.INVOICES, FilterSpec(equals={"status": ()}))

    assert planned.store_query.equals == ()
    assert planned.store_query.any_of == ()


def test_none_value_is_kept_as_null_match(planner):
    planned = planner.plan(Collection.LINE_ITEMS, FilterSpec(equals={"invoice_id": None}))

    assert planned.store_query.equals == (("invoice_id", None),)


def test_oversized_value_set_is_truncated_and_reported(caplog):
    planner = QueryPlanner(StoreCapabilities(max_any_of=3))
    spec = FilterSpec(equals={"campaign_id": [f"c{n}" for n in range(5)]})

    with caplog.at_level(logging.WARNING, logger="campaignledger.domain.query_planner"):
        planned = planner.plan(Collection.LINE_ITEMS, spec)

    (name, values) = planned.store_query.any_of[0]
    assert name == "campaign_id"
    assert values == ("c0", "c1", "c2")
    assert planned.truncated_filters == ("campaign_id",)
    assert "only the first 3" in caplog.text


def test_date_range_on_timestamp_covers_whole_days(planner):
    spec = FilterSpec(range=RangeFilter("created_at", date(2024, 1, 1), date(2024, 1, 31)))

    planned = planner.plan(Collection.INVOICES, spec)

    assert planned.store_query.range == RangeConstraint(
        "created_at",
        datetime(2024, 1, 1, 0, 0),
        datetime.combine(date(2024, 1, 31), time.max),
    )


def test_aware_timestamp_bounds_become_naive_utc(planner):
    offset = timezone(timedelta(hours=1))
    spec = FilterSpec(
        range=RangeFilter("created_at", datetime(2024, 3, 2, 0, 0, tzinfo=offset), datetime(2024, 3, 2, 12, 0, tzinfo=UTC))
    )

    planned = planner.plan(Collection.LINE_ITEMS, spec)

    assert planned.store_query.range == RangeConstraint(
        "created_at", datetime(2024, 3, 1, 23, 0), datetime(2024, 3, 2, 12, 0)
    )


def test_date_range_on_date_field_is_kept(planner):
    spec = FilterSpec(range=RangeFilter("issue_date", date(2024, 1, 1), None))

    planned = planner.plan(Collection.INVOICES, spec)

    assert planned.store_query.range == RangeConstraint("issue_date", date(2024, 1, 1), None)
    assert planned.store_query.order_by == "issue_date"


def test_range_forces_order_by_range_field(planner, caplog):
    spec = FilterSpec(range=RangeFilter("due_date", None, date(2024, 6, 30)), sort_field="created_at")

    with caplog.at_level(logging.INFO, logger="campaignledger.domain.query_planner"):
        planned = planner.plan(Collection.INVOICES, spec)

    assert planned.store_query.order_by == "due_date"
    assert "instead of 'created_at'" in caplog.text


def test_open_range_is_dropped(planner):
    planned = planner.plan(Collection.INVOICES, FilterSpec(range=RangeFilter("due_date")))

    assert planned.store_query.range is None
    assert planned.store_query.order_by == "created_at"


def test_inverted_range_is_rejected(planner):
    spec = FilterSpec(range=RangeFilter("issue_date", date(2024, 2, 1), date(2024, 1, 1)))

    with pytest.raises(ValidationError, match="starts after it ends"):
        planner.plan(Collection.INVOICES, spec)


def test_sort_field_without_range(planner):
    spec = FilterSpec(sort_field="due_date", descending=False)

    planned = planner.plan(Collection.INVOICES, spec)

    assert planned.store_query.order_by == "due_date"
    assert planned.store_query.descending is False


@pytest.mark.parametrize("page_size", [0, -5])
def test_non_positive_page_size_is_rejected(planner, page_size):
    with pytest.raises(ValidationError):
        planner.plan(Collection.INVOICES, page_size=page_size)


def test_page_size_and_cursor_pass_through(planner):
    planned = planner.plan(Collection.INVOICES, page_size=25, cursor="abc")

    assert planned.store_query.limit == 25
    assert planned.store_query.start_after == "abc"


def test_plan_is_pure(planner):
    spec = FilterSpec(equals={"status": {InvoiceStatus.SENT, InvoiceStatus.OVERDUE}})

    assert planner.plan(Collection.INVOICES, spec, 10) == planner.plan(Collection.INVOICES, spec, 10)


def test_client_only_filters_become_residual(planner):
    spec = FilterSpec(client_only={"client": TextContains(("client_name", "invoice_number"), "acme")})
    planned = planner.plan(Collection.INVOICES, spec)
    items = [
        SimpleNamespace(client_name="ACME Corp", invoice_number="INV-000001"),
        SimpleNamespace(client_name="Globex", invoice_number="INV-000002"),
        SimpleNamespace(client_name="Initech", invoice_number="ACME-7"),
    ]

    kept = planned.apply_residual(items)

    assert [item.client_name for item in kept] == ["ACME Corp", "Initech"]


def test_text_contains_ignores_missing_fields():
    predicate = TextContains(("name",), "banner")

    assert predicate(SimpleNamespace(name="Homepage Banner"))
    assert not predicate(SimpleNamespace(name=None))
    assert not predicate(SimpleNamespace())


def test_count_query_has_no_limit(planner):
    spec = FilterSpec(equals={"status": InvoiceStatus.DRAFT})

    store_query = planner.count_query(Collection.INVOICES, spec)

    assert store_query.limit is None
    assert store_query.start_after is None
    assert store_query.equals == (("status", InvoiceStatus.DRAFT),)


def test_fingerprint_ignores_set_order():
    first = FilterSpec(equals={"status": [InvoiceStatus.SENT, InvoiceStatus.PAID]})
    second = FilterSpec(equals={"status": {InvoiceStatus.PAID, InvoiceStatus.SENT}})

    assert first.fingerprint() == second.fingerprint()


def test_fingerprint_changes_with_filters():
    base = FilterSpec(equals={"status": InvoiceStatus.SENT})

    assert base.fingerprint() != FilterSpec(equals={"status": InvoiceStatus.PAID}).fingerprint()
    assert base.fingerprint() != FilterSpec(equals={"status": InvoiceStatus.SENT}, descending=False).fingerprint()
