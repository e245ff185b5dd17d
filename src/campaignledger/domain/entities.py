"""Domain model entities for campaignledger.

These are pure data classes representing the ledger documents, independent
of how the store persists them. Every document carries a ``version`` that
the store increments on each write; mutations use it for conditional writes.
"""

from dataclasses import dataclass
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Optional


class Collection(str, Enum):
    """Document collections held by the store."""

    CAMPAIGNS = "campaigns"
    INVOICES = "invoices"
    LINE_ITEMS = "line_items"
    CHANGE_LOGS = "change_logs"


class CampaignStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InvoiceStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


class EntityType(str, Enum):
    LINE_ITEM = "line_item"
    INVOICE = "invoice"


class ChangeType(str, Enum):
    ADJUSTMENT_CREATED = "adjustment_created"
    ADJUSTMENT_UPDATED = "adjustment_updated"
    ADJUSTMENT_DELETED = "adjustment_deleted"
    LINE_ITEM_MOVED = "line_item_moved"


@dataclass(frozen=True)
class Campaign:
    """Campaign domain entity.

    ``invoice_ids`` and ``line_item_ids`` are back-references only; the
    invoice and line item documents own their campaign association.
    """

    id: str
    name: str
    status: CampaignStatus
    start_date: Optional[date]
    end_date: Optional[date]
    invoice_ids: tuple[str, ...]
    line_item_ids: tuple[str, ...]
    created_at: datetime
    updated_at: datetime
    version: int = 1


@dataclass(frozen=True)
class LineItem:
    """Line item domain entity."""

    id: str
    campaign_id: str
    name: str
    booked_amount: Decimal
    actual_amount: Decimal
    adjustments: Decimal
    invoice_id: Optional[str]
    created_at: datetime
    updated_at: datetime
    version: int = 1

    @property
    def total(self) -> Decimal:
        return self.actual_amount + self.adjustments


@dataclass(frozen=True)
class Invoice:
    """Invoice domain entity.

    The four amount fields are denormalized sums over the member line items.
    """

    id: str
    campaign_id: str
    invoice_number: str
    client_name: str
    client_email: str
    currency: str
    line_item_ids: tuple[str, ...]
    booked_amount: Decimal
    actual_amount: Decimal
    total_adjustments: Decimal
    total_amount: Decimal
    issue_date: date
    due_date: date
    paid_date: Optional[date]
    status: InvoiceStatus
    created_at: datetime
    updated_at: datetime
    version: int = 1


@dataclass(frozen=True)
class ChangeLogEntry:
    """Immutable audit record of one adjustment change or line item move."""

    id: str
    entity_type: EntityType
    entity_id: str
    change_type: ChangeType
    previous_amount: Decimal
    new_amount: Decimal
    difference: Decimal
    booked_amount_at_time: Decimal
    actual_amount_at_time: Decimal
    comment: str
    timestamp: datetime
    invoice_id: Optional[str]
    invoice_number: Optional[str]
    campaign_id: str
    line_item_name: str
    previous_invoice_id: Optional[str] = None
    previous_invoice_number: Optional[str] = None
    user_name: str = "System"


@dataclass(frozen=True)
class InvoiceTotals:
    """Recomputed amount fields of an invoice."""

    booked_amount: Decimal
    actual_amount: Decimal
    total_adjustments: Decimal
    total_amount: Decimal


@dataclass(frozen=True)
class Page:
    """One page of query results.

    ``next_cursor`` is None once the store returned fewer documents than
    requested. ``truncated_filters`` names any-of filters that were cut down
    to the store's cap.
    """

    items: tuple
    next_cursor: Optional[str]
    truncated_filters: tuple[str, ...] = ()
