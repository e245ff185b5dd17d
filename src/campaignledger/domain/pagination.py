"""Immutable cursor pagination state.

Callers thread a ``PaginationState`` through their queries explicitly. The
state remembers the cursor that opens every page visited so far, which is
what lets a caller step back without the store supporting reverse scans.
"""

from dataclasses import dataclass, replace
from typing import Optional

from campaignledger.domain.errors import ValidationError


@dataclass(frozen=True)
class PaginationState:
    page_size: int = 10
    page_index: int = 0
    cursors: tuple[Optional[str], ...] = (None,)
    filter_fingerprint: Optional[str] = None

    def __post_init__(self):
        if self.page_size < 1:
            raise ValidationError(f"Page size must be positive, got {self.page_size}")
        if not 0 <= self.page_index < len(self.cursors):
            raise ValidationError(f"Page {self.page_index} has no cursor")

    @property
    def cursor(self) -> Optional[str]:
        """Cursor that fetches the current page."""
        return self.cursors[self.page_index]

    @property
    def has_previous(self) -> bool:
        return self.page_index > 0

    def next_page(self, next_cursor: Optional[str]) -> "PaginationState":
        """Advance using the cursor returned with the current page.

        Raises:
            ValidationError: If the current page was the last one
        """
        if next_cursor is None:
            raise ValidationError("Already on the last page")
        return replace(
            self,
            page_index=self.page_index + 1,
            cursors=self.cursors[: self.page_index + 1] + (next_cursor,),
        )

    def previous_page(self) -> "PaginationState":
        if not self.has_previous:
            return self
        return replace(self, page_index=self.page_index - 1)

    def reset(self) -> "PaginationState":
        """Back to the first page, discarding stored cursors."""
        return replace(self, page_index=0, cursors=(None,))

    def with_page_size(self, page_size: int) -> "PaginationState":
        # Cursors of the old page size point at other boundaries.
        return replace(self, page_size=page_size, page_index=0, cursors=(None,))

    def for_filters(self, fingerprint: str) -> "PaginationState":
        """Return this state if the filters are unchanged, else a reset state."""
        if fingerprint == self.filter_fingerprint:
            return self
        return replace(self, page_index=0, cursors=(None,), filter_fingerprint=fingerprint)
