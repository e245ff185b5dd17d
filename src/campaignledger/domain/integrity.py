"""Consistency checks over the stored ledger."""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from campaignledger.database.base import Database
from campaignledger.domain.entities import Collection, Invoice, LineItem
from campaignledger.domain.errors import NotFoundError, invoice_not_found
from campaignledger.domain.ledger import compute_invoice_totals
from campaignledger.domain.query import QueryService
from campaignledger.domain.query_planner import FilterSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InvariantViolation:
    """One broken ledger invariant.

    ``rule`` is one of ``totals``, ``total_amount``, ``membership``,
    ``dangling_reference`` or ``campaign_mismatch``.
    """

    rule: str
    entity_id: str
    message: str


class LedgerIntegrityChecker:
    """Verifies invoice totals and invoice membership.

    Invoice totals must equal the rounded sums over the line items that
    reference the invoice, and a line item's invoice reference must be
    matched by exactly one invoice listing it.
    """

    def __init__(self, db: Database, query_service: Optional[QueryService] = None):
        self.db = db
        self.queries = query_service or QueryService(db)

    def _invoices(self, campaign_id: Optional[str]) -> list[Invoice]:
        equals = {"campaign_id": campaign_id} if campaign_id else {}
        return list(self.queries.iter_all(Collection.INVOICES, FilterSpec(equals=equals)))

    def _line_items(self, campaign_id: Optional[str]) -> list[LineItem]:
        equals = {"campaign_id": campaign_id} if campaign_id else {}
        return list(self.queries.iter_all(Collection.LINE_ITEMS, FilterSpec(equals=equals)))

    def check_invoice(self, invoice: Invoice, line_items: Iterable[LineItem]) -> list[InvariantViolation]:
        """Check one invoice against the line items that reference it."""
        violations = []
        referencing = [item for item in line_items if item.invoice_id == invoice.id]

        expected = compute_invoice_totals(referencing)
        for name in ("booked_amount", "actual_amount", "total_adjustments", "total_amount"):
            stored = getattr(invoice, name)
            wanted = getattr(expected, name)
            if stored != wanted:
                violations.append(
                    InvariantViolation(
                        "totals",
                        invoice.id,
                        f"Invoice {invoice.invoice_number} {name} is {stored}, line items sum to {wanted}",
                    )
                )
        if invoice.total_amount != invoice.actual_amount + invoice.total_adjustments:
            violations.append(
                InvariantViolation(
                    "total_amount",
                    invoice.id,
                    f"Invoice {invoice.invoice_number} total {invoice.total_amount} is not "
                    f"actual {invoice.actual_amount} plus adjustments {invoice.total_adjustments}",
                )
            )

        referencing_ids = {item.id for item in referencing}
        listed_ids = set(invoice.line_item_ids)
        for item_id in sorted(listed_ids - referencing_ids):
            violations.append(
                InvariantViolation(
                    "membership",
                    item_id,
                    f"Invoice {invoice.invoice_number} lists line item {item_id}, which does not reference it",
                )
            )
        for item_id in sorted(referencing_ids - listed_ids):
            violations.append(
                InvariantViolation(
                    "membership",
                    item_id,
                    f"Line item {item_id} references invoice {invoice.invoice_number}, which does not list it",
                )
            )
        for item in referencing:
            if item.campaign_id != invoice.campaign_id:
                violations.append(
                    InvariantViolation(
                        "campaign_mismatch",
                        item.id,
                        f"Line item {item.id} is on invoice {invoice.invoice_number} of another campaign",
                    )
                )
        return violations

    def check(self, campaign_id: Optional[str] = None) -> list[InvariantViolation]:
        """Check every invoice and line item, optionally of one campaign."""
        invoices = self._invoices(campaign_id)
        line_items = self._line_items(campaign_id)
        invoice_ids = {invoice.id for invoice in invoices}

        violations = []
        for item in line_items:
            if item.invoice_id is not None and item.invoice_id not in invoice_ids:
                if self.db.get_by_id(Collection.INVOICES, item.invoice_id) is None:
                    violations.append(
                        InvariantViolation(
                            "dangling_reference",
                            item.id,
                            f"Line item {item.id} references missing invoice {item.invoice_id}",
                        )
                    )
                else:
                    violations.append(
                        InvariantViolation(
                            "campaign_mismatch",
                            item.id,
                            f"Line item {item.id} is on invoice {item.invoice_id} of another campaign",
                        )
                    )

        listed_by: dict[str, list[str]] = {}
        for invoice in invoices:
            for item_id in invoice.line_item_ids:
                listed_by.setdefault(item_id, []).append(invoice.invoice_number)
            violations.extend(self.check_invoice(invoice, line_items))
        for item_id, numbers in sorted(listed_by.items()):
            if len(numbers) > 1:
                violations.append(
                    InvariantViolation(
                        "membership",
                        item_id,
                        f"Line item {item_id} is listed by several invoices: {', '.join(numbers)}",
                    )
                )

        if violations:
            logger.warning("Ledger check found %d violations", len(violations))
        return violations

    def check_invoice_by_id(self, invoice_id: str) -> list[InvariantViolation]:
        """Check one stored invoice.

        Raises:
            NotFoundError: If the invoice doesn't exist
        """
        invoice = self.db.get_by_id(Collection.INVOICES, invoice_id)
        if invoice is None:
            raise NotFoundError(invoice_not_found(invoice_id), Collection.INVOICES.value, invoice_id)
        line_items = self.queries.iter_all(Collection.LINE_ITEMS, FilterSpec(equals={"invoice_id": invoice.id}))
        listed = self.db.get_by_ids(Collection.LINE_ITEMS, invoice.line_item_ids)
        by_id = {item.id: item for item in list(line_items) + listed}
        return self.check_invoice(invoice, by_id.values())
