"""Read API over the entity store."""

import logging
from typing import Iterator, Optional, Sequence

from campaignledger.database.base import Database
from campaignledger.domain.entities import Collection, Page
from campaignledger.domain.query_planner import FilterSpec, QueryPlanner, StoreCapabilities

logger = logging.getLogger(__name__)


class QueryService:
    """Service for reading documents through the query planner."""

    def __init__(self, db: Database, planner: Optional[QueryPlanner] = None, default_page_size: int = 10):
        """Initialize query service.

        Args:
            db: Database instance
            planner: Planner to use; by default one sized to the store's any-of cap
            default_page_size: Page size when a query does not name one
        """
        self.db = db
        self.planner = planner or QueryPlanner(StoreCapabilities(max_any_of=db.max_any_of))
        self.default_page_size = default_page_size

    def get_by_id(self, collection: Collection, doc_id: str):
        """Get one document, or None if it does not exist."""
        return self.db.get_by_id(Collection(collection), doc_id)

    def get_by_ids(self, collection: Collection, doc_ids: Sequence[str]) -> list:
        """Get documents in request order; missing ids are left out."""
        return self.db.get_by_ids(Collection(collection), doc_ids)

    def count(self, collection: Collection, filter_spec: Optional[FilterSpec] = None) -> int:
        """Count documents matching the store-side constraints.

        Client-only filters are ignored, so the count can exceed the number
        of documents a query would return when the filter spec has any.
        """
        return self.db.count(self.planner.count_query(Collection(collection), filter_spec))

    def query(
        self,
        collection: Collection,
        filter_spec: Optional[FilterSpec] = None,
        page_size: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> Page:
        """Fetch one page.

        A page can hold fewer than ``page_size`` items while ``next_cursor``
        is still set: the residual filters ran after the store filled it.

        Raises:
            ValidationError: If the cursor is malformed or the page size invalid
            TransientStoreError: If the store is unavailable
        """
        planned = self.planner.plan(
            Collection(collection),
            filter_spec,
            page_size=self.default_page_size if page_size is None else page_size,
            cursor=cursor,
        )
        page = self.db.query(planned.store_query)
        items = planned.apply_residual(page.items)
        if len(items) != len(page.items):
            logger.debug("Residual filters kept %d of %d documents", len(items), len(page.items))
        return Page(items=items, next_cursor=page.next_cursor, truncated_filters=planned.truncated_filters)

    def iter_all(
        self,
        collection: Collection,
        filter_spec: Optional[FilterSpec] = None,
        batch_size: int = 100,
    ) -> Iterator:
        """Yield every matching document, walking the pages in order."""
        cursor = None
        while True:
            page = self.query(collection, filter_spec, page_size=batch_size, cursor=cursor)
            yield from page.items
            if page.next_cursor is None:
                return
            cursor = page.next_cursor
