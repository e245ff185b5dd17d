"""Append-only change log of adjustments and line item moves."""

import logging
from datetime import datetime, UTC
from decimal import Decimal
from typing import Optional

from campaignledger.database.base import Database
from campaignledger.database.batch import WriteBatch
from campaignledger.domain.entities import (
    ChangeLogEntry,
    ChangeType,
    Collection,
    EntityType,
    Invoice,
    LineItem,
    Page,
)
from campaignledger.domain.filters import ChangeLogFilters
from campaignledger.domain.query import QueryService
from campaignledger.domain.query_planner import FilterSpec
from campaignledger.utils.money import ZERO, round_money

logger = logging.getLogger(__name__)

SYSTEM_USER = "System"


def adjustment_change_type(previous_amount: Decimal, new_amount: Decimal) -> ChangeType:
    """Classify an adjustment edit by its previous and new values."""
    if previous_amount == 0:
        return ChangeType.ADJUSTMENT_CREATED
    if new_amount == 0:
        return ChangeType.ADJUSTMENT_DELETED
    return ChangeType.ADJUSTMENT_UPDATED


def _entry_fields(entry: ChangeLogEntry) -> dict:
    return {
        "entity_type": entry.entity_type,
        "entity_id": entry.entity_id,
        "change_type": entry.change_type,
        "previous_amount": entry.previous_amount,
        "new_amount": entry.new_amount,
        "difference": entry.difference,
        "booked_amount_at_time": entry.booked_amount_at_time,
        "actual_amount_at_time": entry.actual_amount_at_time,
        "comment": entry.comment,
        "user_name": entry.user_name,
        "timestamp": entry.timestamp,
        "invoice_id": entry.invoice_id,
        "invoice_number": entry.invoice_number,
        "campaign_id": entry.campaign_id,
        "line_item_name": entry.line_item_name,
        "previous_invoice_id": entry.previous_invoice_id,
        "previous_invoice_number": entry.previous_invoice_number,
    }


class AuditTrailService:
    """Service for building, recording and reading change log entries.

    Entries are only ever created. Mutations stage their entries into the
    same batch as the change they describe, so an entry exists if and only
    if its change was committed.
    """

    def __init__(self, db: Database, query_service: Optional[QueryService] = None):
        """Initialize audit trail service.

        Args:
            db: Database instance
            query_service: Read service; one over ``db`` is created when omitted
        """
        self.db = db
        self.queries = query_service or QueryService(db)

    def adjustment_entry(
        self,
        line_item: LineItem,
        new_adjustment: Decimal,
        invoice: Optional[Invoice] = None,
        comment: str = "",
        user_name: str = SYSTEM_USER,
        timestamp: Optional[datetime] = None,
    ) -> ChangeLogEntry:
        """Build the entry for changing a line item's adjustment.

        The booked and actual amounts are captured as they are at this moment.
        """
        previous_amount = round_money(line_item.adjustments)
        new_amount = round_money(new_adjustment)
        return ChangeLogEntry(
            id=self.db.new_id(),
            entity_type=EntityType.LINE_ITEM,
            entity_id=line_item.id,
            change_type=adjustment_change_type(previous_amount, new_amount),
            previous_amount=previous_amount,
            new_amount=new_amount,
            difference=new_amount - previous_amount,
            booked_amount_at_time=line_item.booked_amount,
            actual_amount_at_time=line_item.actual_amount,
            comment=comment,
            timestamp=timestamp or datetime.now(UTC),
            invoice_id=invoice.id if invoice else None,
            invoice_number=invoice.invoice_number if invoice else None,
            campaign_id=line_item.campaign_id,
            line_item_name=line_item.name,
            user_name=user_name or SYSTEM_USER,
        )

    def move_entry(
        self,
        line_item: LineItem,
        from_invoice: Invoice,
        to_invoice: Invoice,
        user_name: str = SYSTEM_USER,
        timestamp: Optional[datetime] = None,
    ) -> ChangeLogEntry:
        """Build the entry for moving a line item between invoices.

        The entry is attributed to the destination invoice and keeps the
        source invoice for traceability. Amounts are unchanged by a move.
        """
        adjustments = round_money(line_item.adjustments)
        return ChangeLogEntry(
            id=self.db.new_id(),
            entity_type=EntityType.LINE_ITEM,
            entity_id=line_item.id,
            change_type=ChangeType.LINE_ITEM_MOVED,
            previous_amount=adjustments,
            new_amount=adjustments,
            difference=ZERO,
            booked_amount_at_time=line_item.booked_amount,
            actual_amount_at_time=line_item.actual_amount,
            comment=f"Line item moved from invoice {from_invoice.invoice_number} to {to_invoice.invoice_number}",
            timestamp=timestamp or datetime.now(UTC),
            invoice_id=to_invoice.id,
            invoice_number=to_invoice.invoice_number,
            campaign_id=line_item.campaign_id,
            line_item_name=line_item.name,
            previous_invoice_id=from_invoice.id,
            previous_invoice_number=from_invoice.invoice_number,
            user_name=user_name or SYSTEM_USER,
        )

    def stage(self, batch: WriteBatch, entry: ChangeLogEntry) -> WriteBatch:
        """Add the entry to a mutation batch."""
        return batch.create(Collection.CHANGE_LOGS, entry.id, _entry_fields(entry))

    def append(self, entry: ChangeLogEntry) -> str:
        """Record a standalone entry. Returns its id."""
        self.db.commit_batch(self.stage(WriteBatch(), entry))
        logger.info("Recorded %s for %s %s", entry.change_type.value, entry.entity_type.value, entry.entity_id)
        return entry.id

    def get_entry(self, entry_id: str) -> Optional[ChangeLogEntry]:
        return self.queries.get_by_id(Collection.CHANGE_LOGS, entry_id)

    def search(
        self,
        filters: Optional[ChangeLogFilters] = None,
        page_size: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> Page:
        """Page through entries, newest first."""
        filter_spec = (filters or ChangeLogFilters()).to_filter_spec()
        return self.queries.query(Collection.CHANGE_LOGS, filter_spec, page_size=page_size, cursor=cursor)

    def _all(self, filters: ChangeLogFilters) -> list[ChangeLogEntry]:
        return list(self.queries.iter_all(Collection.CHANGE_LOGS, filters.to_filter_spec()))

    def for_invoice(self, invoice_id: str) -> list[ChangeLogEntry]:
        """All entries attributed to an invoice, newest first."""
        return self._all(ChangeLogFilters(invoice_id=invoice_id))

    def for_line_item(self, line_item_id: str) -> list[ChangeLogEntry]:
        return self._all(ChangeLogFilters(line_item_id=line_item_id))

    def for_campaign(self, campaign_id: str) -> list[ChangeLogEntry]:
        return self._all(ChangeLogFilters(campaign_id=campaign_id))

    def recent(self, limit: int = 10) -> list[ChangeLogEntry]:
        """The most recent entries across the whole ledger."""
        page = self.queries.query(Collection.CHANGE_LOGS, FilterSpec(), page_size=limit)
        return list(page.items)
