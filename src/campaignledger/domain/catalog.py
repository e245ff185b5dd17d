"""Campaign and line item domain service.

Campaigns and unbilled line items are owned by the systems that feed the
ledger; this service creates them so the ledger can be seeded and
exercised, and offers the plain lookups the command line needs.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from campaignledger.database.base import Database
from campaignledger.domain.entities import (
    Campaign as CampaignEntity,
    CampaignStatus,
    Collection,
    LineItem as LineItemEntity,
)
from campaignledger.domain.errors import (
    NotFoundError,
    ValidationError,
    campaign_not_found,
)
from campaignledger.utils.money import Number, round_money

logger = logging.getLogger(__name__)


class CatalogService:
    """Service for managing campaigns and their line items."""

    def __init__(self, db: Database):
        """Initialize catalog service.

        Args:
            db: Database instance
        """
        self.db = db

    def create_campaign(
        self,
        name: str,
        status: CampaignStatus = CampaignStatus.DRAFT,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        created_at: Optional[datetime] = None,
    ) -> str:
        """Create a campaign.

        Args:
            name: Campaign name
            status: Campaign status
            start_date: Optional start date
            end_date: Optional end date
            created_at: Creation time, now when omitted

        Returns:
            Campaign ID

        Raises:
            ValidationError: If the name is empty, the status unknown or
                the end date precedes the start date
        """
        if not name or not name.strip():
            raise ValidationError("Campaign name is required")
        try:
            status = CampaignStatus(status)
        except ValueError:
            raise ValidationError(f"Unknown campaign status '{status}'")
        if start_date and end_date and end_date < start_date:
            raise ValidationError(f"Campaign ends ({end_date}) before it starts ({start_date})")

        campaign_id = self.db.insert_campaign(
            name=name.strip(),
            status=status,
            start_date=start_date,
            end_date=end_date,
            created_at=created_at,
        )
        logger.info("Created campaign %s (%s)", name.strip(), campaign_id)
        return campaign_id

    def create_line_item(
        self,
        campaign_id: str,
        name: str,
        booked_amount: Number,
        actual_amount: Number,
        adjustments: Number = Decimal("0"),
        created_at: Optional[datetime] = None,
    ) -> str:
        """Create an unbilled line item under a campaign.

        Returns:
            Line item ID

        Raises:
            NotFoundError: If the campaign doesn't exist
            ValidationError: If the name is empty or an amount is invalid
        """
        if not name or not name.strip():
            raise ValidationError("Line item name is required")
        try:
            booked = round_money(booked_amount)
            actual = round_money(actual_amount)
            adjustment = round_money(adjustments)
        except ValueError as e:
            raise ValidationError(str(e))

        line_item_id = self.db.insert_line_item(
            campaign_id=campaign_id,
            name=name.strip(),
            booked_amount=booked,
            actual_amount=actual,
            adjustments=adjustment,
            created_at=created_at,
        )
        logger.info("Created line item %s in campaign %s", name.strip(), campaign_id)
        return line_item_id

    def get_campaign(self, campaign_id: str) -> CampaignEntity:
        """Get campaign by ID.

        Raises:
            NotFoundError: If the campaign doesn't exist
        """
        campaign = self.db.get_by_id(Collection.CAMPAIGNS, campaign_id)
        if campaign is None:
            raise NotFoundError(campaign_not_found(campaign_id), Collection.CAMPAIGNS.value, campaign_id)
        return campaign

    def get_line_items(self, campaign_id: str) -> list[LineItemEntity]:
        """Line items of a campaign, in the order they were added."""
        campaign = self.get_campaign(campaign_id)
        return self.db.get_by_ids(Collection.LINE_ITEMS, campaign.line_item_ids)
