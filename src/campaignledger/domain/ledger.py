"""Ledger mutation engine.

Every operation reads the documents it touches, validates them, and then
issues one atomic batch. Updates in the batch are conditional on the
versions that were read, so a concurrent writer makes the batch fail with
ConflictError instead of silently losing an update; callers retry the
whole operation. Nothing here retries on its own.
"""

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from campaignledger.config import LedgerSettings
from campaignledger.database.base import Database
from campaignledger.database.batch import WriteBatch
from campaignledger.domain.audit import SYSTEM_USER, AuditTrailService
from campaignledger.domain.entities import (
    ChangeLogEntry,
    Collection,
    Invoice,
    InvoiceStatus,
    InvoiceTotals,
    LineItem,
)
from campaignledger.domain.errors import (
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
    adjustment_edit_blocked,
    campaign_not_found,
    format_ids,
    invoice_not_found,
    line_item_not_found,
)
from campaignledger.utils.money import Number, round_money, sum_money

logger = logging.getLogger(__name__)


def compute_invoice_totals(line_items: Iterable[LineItem]) -> InvoiceTotals:
    """Sum line item amounts into invoice totals.

    Each sum is rounded to cents (halves away from zero) and the total is
    the rounded actual amount plus the rounded adjustments.
    """
    items = list(line_items)
    actual = sum_money(item.actual_amount for item in items)
    adjustments = sum_money(item.adjustments for item in items)
    return InvoiceTotals(
        booked_amount=sum_money(item.booked_amount for item in items),
        actual_amount=actual,
        total_adjustments=adjustments,
        total_amount=actual + adjustments,
    )


def _totals_fields(totals: InvoiceTotals) -> dict:
    return {
        "booked_amount": totals.booked_amount,
        "actual_amount": totals.actual_amount,
        "total_adjustments": totals.total_adjustments,
        "total_amount": totals.total_amount,
    }


def _invoice_totals(invoice: Invoice) -> InvoiceTotals:
    return InvoiceTotals(
        booked_amount=invoice.booked_amount,
        actual_amount=invoice.actual_amount,
        total_adjustments=invoice.total_adjustments,
        total_amount=invoice.total_amount,
    )


def _require_unique(line_item_ids: Sequence[str]) -> list[str]:
    ids = list(line_item_ids)
    if not ids:
        raise ValidationError("At least one line item is required")
    duplicates = sorted({i for i in ids if ids.count(i) > 1})
    if duplicates:
        raise ValidationError(f"Line items listed more than once: {format_ids(duplicates)}", duplicates)
    return ids


class LedgerService:
    """Service for invoice membership, adjustments and totals."""

    def __init__(
        self,
        db: Database,
        audit: Optional[AuditTrailService] = None,
        settings: Optional[LedgerSettings] = None,
    ):
        """Initialize ledger service.

        Args:
            db: Database instance
            audit: Change log recorder; one over ``db`` is created when omitted
            settings: Invoice numbering and adjustment edit policy
        """
        self.db = db
        self.audit = audit or AuditTrailService(db)
        self.settings = settings or LedgerSettings()

    # Reads used for validation
    def _get_invoice(self, invoice_id: str) -> Invoice:
        invoice = self.db.get_by_id(Collection.INVOICES, invoice_id)
        if invoice is None:
            raise NotFoundError(invoice_not_found(invoice_id), Collection.INVOICES.value, invoice_id)
        return invoice

    def _get_line_items(self, line_item_ids: Sequence[str]) -> list[LineItem]:
        items = self.db.get_by_ids(Collection.LINE_ITEMS, line_item_ids)
        found = {item.id for item in items}
        missing = [i for i in line_item_ids if i not in found]
        if missing:
            raise ValidationError(f"Line items not found: {format_ids(missing)}", missing)
        return items

    def _member_items(self, invoice: Invoice) -> list[LineItem]:
        """Line items listed on the invoice that also point back at it."""
        items = self.db.get_by_ids(Collection.LINE_ITEMS, invoice.line_item_ids)
        members = [item for item in items if item.invoice_id == invoice.id]
        if len(members) != len(invoice.line_item_ids):
            stale = sorted(set(invoice.line_item_ids) - {item.id for item in members})
            logger.warning(
                "Invoice %s lists line items that do not reference it: %s",
                invoice.invoice_number,
                format_ids(stale),
            )
        return members

    def _next_invoice_number(self) -> str:
        prefix = self.settings.invoice_prefix
        return f"{prefix}-{self.db.next_sequence(prefix):06d}"

    def create_invoice_from_line_items(
        self,
        campaign_id: str,
        line_item_ids: Sequence[str],
        client_name: str,
        client_email: str,
        issue_date: date,
        due_date: date,
        currency: str = "USD",
    ) -> str:
        """Create a draft invoice holding unbilled line items of one campaign.

        Totals are computed here from the line items; callers cannot supply them.

        Args:
            campaign_id: Campaign the invoice belongs to
            line_item_ids: Unbilled line items of that campaign
            client_name: Client name
            client_email: Client email
            issue_date: Issue date
            due_date: Due date
            currency: Currency code

        Returns:
            New invoice ID

        Raises:
            NotFoundError: If the campaign doesn't exist
            ValidationError: If a line item is missing, belongs to another
                campaign or is already invoiced, or a required field is empty
            ConflictError: If a line item or the campaign changed concurrently
        """
        ids = _require_unique(line_item_ids)
        for label, value in (("Client name", client_name), ("Client email", client_email), ("Currency", currency)):
            if not value or not value.strip():
                raise ValidationError(f"{label} is required")
        if issue_date is None or due_date is None:
            raise ValidationError("Issue date and due date are required")

        campaign = self.db.get_by_id(Collection.CAMPAIGNS, campaign_id)
        if campaign is None:
            raise NotFoundError(campaign_not_found(campaign_id), Collection.CAMPAIGNS.value, campaign_id)

        items = self._get_line_items(ids)
        foreign = [item.id for item in items if item.campaign_id != campaign_id]
        if foreign:
            raise ValidationError(
                f"Line items belong to a different campaign than {campaign.name}: {format_ids(foreign)}",
                foreign,
            )
        invoiced = [item.id for item in items if item.invoice_id is not None]
        if invoiced:
            raise ValidationError(f"Line items are already invoiced: {format_ids(invoiced)}", invoiced)

        totals = compute_invoice_totals(items)
        invoice_id = self.db.new_id()
        invoice_number = self._next_invoice_number()

        batch = WriteBatch()
        batch.create(
            Collection.INVOICES,
            invoice_id,
            {
                "campaign_id": campaign_id,
                "invoice_number": invoice_number,
                "client_name": client_name.strip(),
                "client_email": client_email.strip(),
                "currency": currency.strip().upper(),
                "line_item_ids": ids,
                **_totals_fields(totals),
                "issue_date": issue_date,
                "due_date": due_date,
                "paid_date": None,
                "status": InvoiceStatus.DRAFT,
            },
        )
        for item in items:
            batch.update(Collection.LINE_ITEMS, item.id, {"invoice_id": invoice_id}, expected_version=item.version)
        batch.array_union(Collection.CAMPAIGNS, campaign_id, "invoice_ids", [invoice_id])
        self.db.commit_batch(batch)

        logger.info(
            "Created invoice %s for campaign %s with %d line items, total %s",
            invoice_number,
            campaign_id,
            len(ids),
            totals.total_amount,
        )
        return invoice_id

    def add_line_items_to_invoice(self, invoice_id: str, line_item_ids: Sequence[str]) -> InvoiceTotals:
        """Add unbilled line items of the invoice's campaign to the invoice.

        The invoice totals are recomputed in the same batch.

        Returns:
            The invoice's new totals

        Raises:
            NotFoundError: If the invoice doesn't exist
            ValidationError: If a line item is already on this invoice, is
                missing, belongs to another campaign or is on another invoice
            ConflictError: If the invoice or a line item changed concurrently
        """
        ids = _require_unique(line_item_ids)
        invoice = self._get_invoice(invoice_id)

        already = [i for i in ids if i in invoice.line_item_ids]
        if already:
            raise ValidationError(
                f"Line items are already in invoice {invoice.invoice_number}: {format_ids(already)}",
                already,
            )

        items = self._get_line_items(ids)
        foreign = [item.id for item in items if item.campaign_id != invoice.campaign_id]
        if foreign:
            raise ValidationError(
                f"Line items belong to a different campaign than invoice {invoice.invoice_number}: "
                f"{format_ids(foreign)}",
                foreign,
            )
        invoiced = [item.id for item in items if item.invoice_id is not None]
        if invoiced:
            raise ValidationError(f"Line items are already on another invoice: {format_ids(invoiced)}", invoiced)

        members = self._member_items(invoice)
        totals = compute_invoice_totals(members + items)

        batch = WriteBatch()
        batch.update(
            Collection.INVOICES,
            invoice.id,
            {"line_item_ids": list(invoice.line_item_ids) + ids, **_totals_fields(totals)},
            expected_version=invoice.version,
        )
        for item in items:
            batch.update(Collection.LINE_ITEMS, item.id, {"invoice_id": invoice.id}, expected_version=item.version)
        self.db.commit_batch(batch)

        logger.info("Added %d line items to invoice %s", len(ids), invoice.invoice_number)
        return totals

    def move_line_items_to_invoice(
        self,
        from_invoice_id: str,
        to_invoice_id: str,
        line_item_ids: Sequence[str],
        user_name: str = SYSTEM_USER,
    ) -> list[ChangeLogEntry]:
        """Move line items between two invoices of the same campaign.

        Membership of both invoices, the items' invoice references, both
        invoices' totals and one change log entry per moved item are written
        in a single batch.

        Returns:
            The change log entries recorded for the move

        Raises:
            NotFoundError: If either invoice doesn't exist
            ValidationError: If the invoices are the same or belong to
                different campaigns, or an item is not on the source invoice
                or already on the destination invoice
            ConflictError: If a touched document changed concurrently
        """
        ids = _require_unique(line_item_ids)
        if from_invoice_id == to_invoice_id:
            raise ValidationError("Source and destination invoice are the same")

        from_invoice = self._get_invoice(from_invoice_id)
        to_invoice = self._get_invoice(to_invoice_id)
        if from_invoice.campaign_id != to_invoice.campaign_id:
            raise ValidationError(
                f"Invoices {from_invoice.invoice_number} and {to_invoice.invoice_number} "
                f"belong to different campaigns"
            )

        not_in_source = [i for i in ids if i not in from_invoice.line_item_ids]
        if not_in_source:
            raise ValidationError(
                f"Line items are not in invoice {from_invoice.invoice_number}: {format_ids(not_in_source)}",
                not_in_source,
            )
        in_destination = [i for i in ids if i in to_invoice.line_item_ids]
        if in_destination:
            raise ValidationError(
                f"Line items are already in invoice {to_invoice.invoice_number}: {format_ids(in_destination)}",
                in_destination,
            )

        items = self._get_line_items(ids)
        moved = set(ids)
        source_members = [item for item in self._member_items(from_invoice) if item.id not in moved]
        destination_members = self._member_items(to_invoice) + items
        from_totals = compute_invoice_totals(source_members)
        to_totals = compute_invoice_totals(destination_members)

        batch = WriteBatch()
        batch.update(
            Collection.INVOICES,
            from_invoice.id,
            {
                "line_item_ids": [i for i in from_invoice.line_item_ids if i not in moved],
                **_totals_fields(from_totals),
            },
            expected_version=from_invoice.version,
        )
        batch.update(
            Collection.INVOICES,
            to_invoice.id,
            {"line_item_ids": list(to_invoice.line_item_ids) + ids, **_totals_fields(to_totals)},
            expected_version=to_invoice.version,
        )
        entries = []
        for item in items:
            batch.update(Collection.LINE_ITEMS, item.id, {"invoice_id": to_invoice.id}, expected_version=item.version)
            entry = self.audit.move_entry(item, from_invoice, to_invoice, user_name=user_name)
            self.audit.stage(batch, entry)
            entries.append(entry)
        self.db.commit_batch(batch)

        logger.info(
            "Moved %d line items from invoice %s to %s",
            len(ids),
            from_invoice.invoice_number,
            to_invoice.invoice_number,
        )
        return entries

    def remove_line_items_from_invoice(self, invoice_id: str, line_item_ids: Sequence[str]) -> InvoiceTotals:
        """Take line items off an invoice, leaving them unbilled.

        Returns:
            The invoice's new totals

        Raises:
            NotFoundError: If the invoice doesn't exist
            ValidationError: If a line item is not on the invoice
            ConflictError: If the invoice or a line item changed concurrently
        """
        ids = _require_unique(line_item_ids)
        invoice = self._get_invoice(invoice_id)

        not_members = [i for i in ids if i not in invoice.line_item_ids]
        if not_members:
            raise ValidationError(
                f"Line items are not in invoice {invoice.invoice_number}: {format_ids(not_members)}",
                not_members,
            )

        removed = set(ids)
        members = self._member_items(invoice)
        totals = compute_invoice_totals(item for item in members if item.id not in removed)

        batch = WriteBatch()
        batch.update(
            Collection.INVOICES,
            invoice.id,
            {"line_item_ids": [i for i in invoice.line_item_ids if i not in removed], **_totals_fields(totals)},
            expected_version=invoice.version,
        )
        # Stale entries on the invoice may have no line item document left.
        for item in self.db.get_by_ids(Collection.LINE_ITEMS, ids):
            if item.invoice_id == invoice.id:
                batch.update(Collection.LINE_ITEMS, item.id, {"invoice_id": None}, expected_version=item.version)
        self.db.commit_batch(batch)

        logger.info("Removed %d line items from invoice %s", len(ids), invoice.invoice_number)
        return totals

    def update_line_item_adjustments(
        self,
        line_item_id: str,
        new_adjustment: Number,
        comment: str = "",
        user_name: str = SYSTEM_USER,
    ) -> ChangeLogEntry:
        """Set a line item's adjustment and recompute its invoice's totals.

        Only allowed while the owning invoice has an editable status (draft
        or overdue unless configured otherwise). The change log entry, the
        new adjustment and the invoice totals are written in one batch.
        Unbilled line items have no invoice to gate or recompute.

        Returns:
            The change log entry recorded for the edit

        Raises:
            NotFoundError: If the line item or its invoice doesn't exist
            PermissionDeniedError: If the invoice status forbids adjustment edits
            ValidationError: If the adjustment is not a valid amount
            ConflictError: If the line item or invoice changed concurrently
        """
        try:
            amount = round_money(new_adjustment)
        except ValueError as e:
            raise ValidationError(str(e))

        item = self.db.get_by_id(Collection.LINE_ITEMS, line_item_id)
        if item is None:
            raise NotFoundError(line_item_not_found(line_item_id), Collection.LINE_ITEMS.value, line_item_id)

        invoice = None
        if item.invoice_id is not None:
            invoice = self._get_invoice(item.invoice_id)
            if invoice.status not in self.settings.editable_statuses:
                raise PermissionDeniedError(
                    adjustment_edit_blocked(invoice.invoice_number, invoice.status.value),
                    invoice.id,
                    invoice.status.value,
                )

        entry = self.audit.adjustment_entry(item, amount, invoice, comment=comment, user_name=user_name)

        batch = WriteBatch()
        self.audit.stage(batch, entry)
        batch.update(Collection.LINE_ITEMS, item.id, {"adjustments": amount}, expected_version=item.version)
        if invoice is not None:
            updated = replace(item, adjustments=amount)
            members = [updated if member.id == item.id else member for member in self._member_items(invoice)]
            totals = compute_invoice_totals(members)
            batch.update(Collection.INVOICES, invoice.id, _totals_fields(totals), expected_version=invoice.version)
        self.db.commit_batch(batch)

        logger.info(
            "Adjustment on line item %s changed from %s to %s",
            item.id,
            entry.previous_amount,
            entry.new_amount,
        )
        return entry

    def recompute_invoice_totals(self, invoice_id: str) -> InvoiceTotals:
        """Recompute the invoice's amounts from its current line items.

        Returns:
            The recomputed totals (written only when they differ)

        Raises:
            NotFoundError: If the invoice doesn't exist
            ConflictError: If the invoice changed concurrently
        """
        invoice = self._get_invoice(invoice_id)
        totals = compute_invoice_totals(self._member_items(invoice))
        if totals == _invoice_totals(invoice):
            return totals

        batch = WriteBatch().update(
            Collection.INVOICES, invoice.id, _totals_fields(totals), expected_version=invoice.version
        )
        self.db.commit_batch(batch)
        logger.info("Recomputed totals of invoice %s: %s", invoice.invoice_number, totals.total_amount)
        return totals

    def update_invoice_status(
        self,
        invoice_id: str,
        new_status: InvoiceStatus,
        paid_date: Optional[date] = None,
    ) -> Invoice:
        """Set an invoice's status.

        Paid requires a paid date; every other status clears it. Any status
        may follow any other.

        Returns:
            The updated invoice

        Raises:
            NotFoundError: If the invoice doesn't exist
            ValidationError: If the status is unknown or paid without a date
            ConflictError: If the invoice changed concurrently
        """
        try:
            status = InvoiceStatus(new_status)
        except ValueError:
            raise ValidationError(f"Unknown invoice status '{new_status}'")
        if status == InvoiceStatus.PAID and paid_date is None:
            raise ValidationError("A paid date is required when marking an invoice paid")

        invoice = self._get_invoice(invoice_id)
        stored_paid_date = paid_date if status == InvoiceStatus.PAID else None

        batch = WriteBatch().update(
            Collection.INVOICES,
            invoice.id,
            {"status": status, "paid_date": stored_paid_date},
            expected_version=invoice.version,
        )
        self.db.commit_batch(batch)
        logger.info("Invoice %s status changed from %s to %s", invoice.invoice_number, invoice.status.value, status.value)
        return self._get_invoice(invoice.id)
