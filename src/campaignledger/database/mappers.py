"""Mapper functions to convert SQLAlchemy rows into domain entities.

Amounts come back from the store as Decimals at the column scale, list
columns become tuples so the frozen entities stay hashable, and naive
timestamps are read as UTC.
"""

from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from campaignledger.domain import entities as domain
from campaignledger.domain.entities import Collection
from campaignledger.database.models import (
    Campaign as ORMCampaign,
    ChangeLog as ORMChangeLog,
    Invoice as ORMInvoice,
    LineItem as ORMLineItem,
)


def _money(value) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(value).quantize(Decimal("0.01"))


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite keeps no offset; stored timestamps are UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=UTC)


def campaign_to_domain(orm_campaign: ORMCampaign) -> domain.Campaign:
    """Convert SQLAlchemy Campaign model to domain Campaign entity."""
    return domain.Campaign(
        id=orm_campaign.id,
        name=orm_campaign.name,
        status=domain.CampaignStatus(orm_campaign.status),
        start_date=orm_campaign.start_date,
        end_date=orm_campaign.end_date,
        invoice_ids=tuple(orm_campaign.invoice_ids or ()),
        line_item_ids=tuple(orm_campaign.line_item_ids or ()),
        created_at=_utc(orm_campaign.created_at),
        updated_at=_utc(orm_campaign.updated_at),
        version=orm_campaign.version,
    )


def line_item_to_domain(orm_line_item: ORMLineItem) -> domain.LineItem:
    """Convert SQLAlchemy LineItem model to domain LineItem entity."""
    return domain.LineItem(
        id=orm_line_item.id,
        campaign_id=orm_line_item.campaign_id,
        name=orm_line_item.name,
        booked_amount=_money(orm_line_item.booked_amount),
        actual_amount=_money(orm_line_item.actual_amount),
        adjustments=_money(orm_line_item.adjustments),
        invoice_id=orm_line_item.invoice_id,
        created_at=_utc(orm_line_item.created_at),
        updated_at=_utc(orm_line_item.updated_at),
        version=orm_line_item.version,
    )


def invoice_to_domain(orm_invoice: ORMInvoice) -> domain.Invoice:
    """Convert SQLAlchemy Invoice model to domain Invoice entity."""
    return domain.Invoice(
        id=orm_invoice.id,
        campaign_id=orm_invoice.campaign_id,
        invoice_number=orm_invoice.invoice_number,
        client_name=orm_invoice.client_name,
        client_email=orm_invoice.client_email,
        currency=orm_invoice.currency,
        line_item_ids=tuple(orm_invoice.line_item_ids or ()),
        booked_amount=_money(orm_invoice.booked_amount),
        actual_amount=_money(orm_invoice.actual_amount),
        total_adjustments=_money(orm_invoice.total_adjustments),
        total_amount=_money(orm_invoice.total_amount),
        issue_date=orm_invoice.issue_date,
        due_date=orm_invoice.due_date,
        paid_date=orm_invoice.paid_date,
        status=domain.InvoiceStatus(orm_invoice.status),
        created_at=_utc(orm_invoice.created_at),
        updated_at=_utc(orm_invoice.updated_at),
        version=orm_invoice.version,
    )


def change_log_to_domain(orm_entry: ORMChangeLog) -> domain.ChangeLogEntry:
    """Convert SQLAlchemy ChangeLog model to domain ChangeLogEntry entity."""
    return domain.ChangeLogEntry(
        id=orm_entry.id,
        entity_type=domain.EntityType(orm_entry.entity_type),
        entity_id=orm_entry.entity_id,
        change_type=domain.ChangeType(orm_entry.change_type),
        previous_amount=_money(orm_entry.previous_amount),
        new_amount=_money(orm_entry.new_amount),
        difference=_money(orm_entry.difference),
        booked_amount_at_time=_money(orm_entry.booked_amount_at_time),
        actual_amount_at_time=_money(orm_entry.actual_amount_at_time),
        comment=orm_entry.comment or "",
        timestamp=_utc(orm_entry.timestamp),
        invoice_id=orm_entry.invoice_id,
        invoice_number=orm_entry.invoice_number,
        campaign_id=orm_entry.campaign_id,
        line_item_name=orm_entry.line_item_name,
        previous_invoice_id=orm_entry.previous_invoice_id,
        previous_invoice_number=orm_entry.previous_invoice_number,
        user_name=orm_entry.user_name or "System",
    )


MAPPERS = {
    Collection.CAMPAIGNS: campaign_to_domain,
    Collection.INVOICES: invoice_to_domain,
    Collection.LINE_ITEMS: line_item_to_domain,
    Collection.CHANGE_LOGS: change_log_to_domain,
}


def to_domain(collection: Collection, orm_object):
    """Convert a row of any collection to its domain entity."""
    return MAPPERS[collection](orm_object)
