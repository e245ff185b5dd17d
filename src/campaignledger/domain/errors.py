"""Shared domain error messages and error types."""

from typing import Iterable, Optional


class DomainError(ValueError):
    """Base class for domain-level errors.

    Subclasses provide semantic categories while preserving ValueError
    compatibility for existing error handling.
    """


class ValidationError(DomainError):
    """A precondition was violated.

    ``entity_ids`` lists the offending documents (for example the line items
    that are already invoiced) so callers can render a specific message.
    """

    def __init__(self, message: str, entity_ids: Iterable[str] = ()):
        super().__init__(message)
        self.entity_ids = tuple(entity_ids)


class NotFoundError(DomainError):
    """Referenced document does not exist."""

    def __init__(self, message: str, collection: Optional[str] = None, entity_id: Optional[str] = None):
        super().__init__(message)
        self.collection = collection
        self.entity_id = entity_id


class PermissionDeniedError(DomainError):
    """Status-gated operation attempted on an invoice in a non-editable status."""

    def __init__(self, message: str, invoice_id: str, status: str):
        super().__init__(message)
        self.invoice_id = invoice_id
        self.status = status


class ConflictError(DomainError):
    """A conditional write found a newer version than the one it read."""

    def __init__(self, message: str, collection: Optional[str] = None, entity_id: Optional[str] = None):
        super().__init__(message)
        self.collection = collection
        self.entity_id = entity_id


class TransientStoreError(DomainError):
    """The store was unavailable or timed out; the whole call may be retried."""


def invoice_not_found(invoice_id: str) -> str:
    """Return message for missing invoice."""
    return f"Invoice {invoice_id} not found"


def campaign_not_found(campaign_id: str) -> str:
    """Return message for missing campaign."""
    return f"Campaign {campaign_id} not found"


def line_item_not_found(line_item_id: str) -> str:
    """Return message for missing line item."""
    return f"Line item {line_item_id} not found"


def format_ids(ids: Iterable[str]) -> str:
    """Return a comma separated list of ids for messages."""
    return ", ".join(ids)


def adjustment_edit_blocked(invoice_number: str, status: str) -> str:
    """Return message when an invoice status forbids adjustment edits."""
    return (
        f"Adjustments cannot be edited on invoice {invoice_number} "
        f"while its status is '{status}'"
    )


def version_conflict(collection: str, entity_id: str, expected: int, actual: int) -> str:
    """Return message for a failed conditional write."""
    return (
        f"{collection} document {entity_id} changed concurrently "
        f"(expected version {expected}, found {actual}); retry the operation"
    )
