"""Abstract entity store interface."""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Sequence

from campaignledger.database.batch import WriteBatch
from campaignledger.database.query import StoreQuery
from campaignledger.domain.entities import Collection, CampaignStatus, Page


class Database(ABC):
    """Abstract document store for campaignledger.

    Reads return domain entities. Writes go through ``commit_batch`` only,
    which is atomic across every document in the batch.
    """

    max_any_of: int = 10

    @abstractmethod
    def connect(self) -> None:
        """Connect to the store."""
        pass

    @abstractmethod
    def disconnect(self) -> None:
        """Disconnect from the store."""
        pass

    @abstractmethod
    def initialize_schema(self) -> None:
        """Initialize store schema (create collections)."""
        pass

    # Reads
    @abstractmethod
    def get_by_id(self, collection: Collection, doc_id: str):
        """Get one document. Returns None when it does not exist."""
        pass

    @abstractmethod
    def get_by_ids(self, collection: Collection, doc_ids: Sequence[str]) -> list:
        """Get documents in request order, omitting ids that do not exist."""
        pass

    @abstractmethod
    def query(self, store_query: StoreQuery) -> Page:
        """Run a paged query. The page's cursor points after its last document."""
        pass

    @abstractmethod
    def count(self, store_query: StoreQuery) -> int:
        """Count documents matching the query's constraints (limit and cursor ignored)."""
        pass

    # Writes
    @abstractmethod
    def commit_batch(self, batch: WriteBatch) -> None:
        """Commit every operation of the batch, or none of them.

        Raises:
            ConflictError: If a conditional update found another version
            NotFoundError: If an updated document does not exist
            TransientStoreError: If the store failed or timed out
        """
        pass

    @abstractmethod
    def next_sequence(self, name: str) -> int:
        """Atomically increment and return a named counter."""
        pass

    @abstractmethod
    def new_id(self) -> str:
        """Generate a document id."""
        pass

    # Externally owned documents
    @abstractmethod
    def insert_campaign(
        self,
        name: str,
        status: CampaignStatus = CampaignStatus.DRAFT,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        created_at: Optional[datetime] = None,
    ) -> str:
        """Create a campaign. Returns its id."""
        pass

    @abstractmethod
    def insert_line_item(
        self,
        campaign_id: str,
        name: str,
        booked_amount: Decimal,
        actual_amount: Decimal,
        adjustments: Decimal = Decimal("0"),
        created_at: Optional[datetime] = None,
    ) -> str:
        """Create an unbilled line item and back-reference it from its campaign. Returns its id."""
        pass
