"""Per-collection filter models.

Each model lets the caller pick exactly one date field for its date range,
which is how only one range filter ever reaches the planner.
"""

from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Optional, Union

from campaignledger.domain.entities import (
    CampaignStatus,
    ChangeType,
    EntityType,
    InvoiceStatus,
)
from campaignledger.domain.errors import ValidationError
from campaignledger.domain.query_planner import FilterSpec, RangeFilter, TextContains


class InvoiceMembership(Enum):
    NOT_INVOICED = "not_invoiced"


# Line item filter value selecting items that belong to no invoice.
NOT_INVOICED = InvoiceMembership.NOT_INVOICED

CAMPAIGN_DATE_FIELDS = ("created_at", "start_date", "end_date")
INVOICE_DATE_FIELDS = ("issue_date", "due_date", "paid_date", "created_at")


def _date_range(field_name: str, date_from: Optional[date], date_to: Optional[date]) -> Optional[RangeFilter]:
    if date_from is None and date_to is None:
        return None
    return RangeFilter(field_name, date_from, date_to)


def _check_date_field(field_name: str, allowed: tuple[str, ...]) -> None:
    if field_name not in allowed:
        raise ValidationError(f"Unknown date field '{field_name}'. Expected one of: {', '.join(allowed)}")


@dataclass(frozen=True)
class CampaignFilters:
    statuses: tuple[CampaignStatus, ...] = ()
    search: str = ""
    date_field: str = "created_at"
    date_from: Optional[date] = None
    date_to: Optional[date] = None

    def to_filter_spec(self) -> FilterSpec:
        _check_date_field(self.date_field, CAMPAIGN_DATE_FIELDS)
        equals = {}
        if self.statuses:
            equals["status"] = tuple(self.statuses)
        client_only = {}
        if self.search.strip():
            client_only["search"] = TextContains(("name",), self.search.strip())
        return FilterSpec(
            equals=equals,
            range=_date_range(self.date_field, self.date_from, self.date_to),
            client_only=client_only,
        )


@dataclass(frozen=True)
class InvoiceFilters:
    """Invoice list filters.

    ``status`` and ``statuses`` are alternatives; a single status wins when
    both are given. The client search matches client name or invoice number.
    """

    campaign_id: Optional[str] = None
    status: Optional[InvoiceStatus] = None
    statuses: tuple[InvoiceStatus, ...] = ()
    client_search: str = ""
    date_field: str = "issue_date"
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_field: Optional[str] = None

    def to_filter_spec(self) -> FilterSpec:
        _check_date_field(self.date_field, INVOICE_DATE_FIELDS)
        equals = {}
        if self.campaign_id:
            equals["campaign_id"] = self.campaign_id
        if self.status is not None:
            equals["status"] = self.status
        elif self.statuses:
            equals["status"] = tuple(self.statuses)
        client_only = {}
        if self.client_search.strip():
            client_only["client"] = TextContains(("client_name", "invoice_number"), self.client_search.strip())
        return FilterSpec(
            equals=equals,
            range=_date_range(self.date_field, self.date_from, self.date_to),
            client_only=client_only,
            sort_field=self.sort_field,
        )


@dataclass(frozen=True)
class LineItemFilters:
    campaign_id: Optional[str] = None
    invoice_id: Union[str, InvoiceMembership, None] = None
    search: str = ""
    created_from: Optional[date] = None
    created_to: Optional[date] = None

    def to_filter_spec(self) -> FilterSpec:
        equals = {}
        if self.campaign_id:
            equals["campaign_id"] = self.campaign_id
        if self.invoice_id is NOT_INVOICED:
            equals["invoice_id"] = None
        elif self.invoice_id:
            equals["invoice_id"] = self.invoice_id
        client_only = {}
        if self.search.strip():
            client_only["search"] = TextContains(("name",), self.search.strip())
        return FilterSpec(
            equals=equals,
            range=_date_range("created_at", self.created_from, self.created_to),
            client_only=client_only,
        )


@dataclass(frozen=True)
class ChangeLogFilters:
    invoice_id: Optional[str] = None
    line_item_id: Optional[str] = None
    campaign_id: Optional[str] = None
    change_types: tuple[ChangeType, ...] = ()
    entity_type: Optional[EntityType] = None
    start: Optional[date] = None
    end: Optional[date] = None

    def to_filter_spec(self) -> FilterSpec:
        equals = {}
        if self.invoice_id:
            equals["invoice_id"] = self.invoice_id
        if self.line_item_id:
            equals["entity_id"] = self.line_item_id
            equals["entity_type"] = EntityType.LINE_ITEM
        elif self.entity_type is not None:
            equals["entity_type"] = self.entity_type
        if self.campaign_id:
            equals["campaign_id"] = self.campaign_id
        if self.change_types:
            equals["change_type"] = tuple(self.change_types)
        return FilterSpec(equals=equals, range=_date_range("timestamp", self.start, self.end))
