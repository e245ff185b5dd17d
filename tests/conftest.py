"""Shared pytest fixtures for campaignledger tests."""

import os
import tempfile
from datetime import date, datetime
from decimal import Decimal

import pytest

from campaignledger.config import LedgerSettings
from campaignledger.database.factories import create_sqlite_database
from campaignledger.domain.audit import AuditTrailService
from campaignledger.domain.catalog import CatalogService
from campaignledger.domain.entities import CampaignStatus, Collection
from campaignledger.domain.ledger import LedgerService
from campaignledger.domain.query import QueryService


@pytest.fixture
def settings():
    """Default settings, independent of the environment running the tests."""
    return LedgerSettings()


@pytest.fixture
def temp_db(settings):
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    db = create_sqlite_database(database_path=db_path, settings=settings)
    # Store the path for tests that need it
    db.database_path = db_path
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def catalog_service(temp_db):
    """Create a CatalogService with a temporary database."""
    return CatalogService(temp_db)


@pytest.fixture
def query_service(temp_db):
    """Create a QueryService with a temporary database."""
    return QueryService(temp_db)


@pytest.fixture
def audit_service(temp_db, query_service):
    """Create an AuditTrailService with a temporary database."""
    return AuditTrailService(temp_db, query_service)


@pytest.fixture
def ledger_service(temp_db, audit_service, settings):
    """Create a LedgerService with a temporary database."""
    return LedgerService(temp_db, audit=audit_service, settings=settings)


@pytest.fixture
def campaign(catalog_service, temp_db):
    """Create an active sample campaign."""
    campaign_id = catalog_service.create_campaign(
        "Campaign C",
        status=CampaignStatus.ACTIVE,
        start_date=date(2024, 1, 1),
        end_date=date(2024, 12, 31),
    )
    return temp_db.get_by_id(Collection.CAMPAIGNS, campaign_id)


@pytest.fixture
def other_campaign(catalog_service, temp_db):
    """Create a second campaign."""
    campaign_id = catalog_service.create_campaign("Campaign D", status=CampaignStatus.ACTIVE)
    return temp_db.get_by_id(Collection.CAMPAIGNS, campaign_id)


@pytest.fixture
def line_items(catalog_service, campaign):
    """Two unbilled line items: L1 (10000/11000/+500) and L2 (5000/4800/-200)."""
    l1 = catalog_service.create_line_item(
        campaign.id,
        "L1 Homepage takeover",
        Decimal("10000"),
        Decimal("11000"),
        Decimal("500"),
        created_at=datetime(2024, 3, 1, 9, 0),
    )
    l2 = catalog_service.create_line_item(
        campaign.id,
        "L2 Pre-roll video",
        Decimal("5000"),
        Decimal("4800"),
        Decimal("-200"),
        created_at=datetime(2024, 3, 2, 9, 0),
    )
    return l1, l2


@pytest.fixture
def invoice(ledger_service, temp_db, campaign, line_items):
    """A draft invoice holding both sample line items."""
    invoice_id = ledger_service.create_invoice_from_line_items(
        campaign_id=campaign.id,
        line_item_ids=list(line_items),
        client_name="Acme Corp",
        client_email="billing@acme.test",
        issue_date=date(2024, 4, 1),
        due_date=date(2024, 5, 1),
        currency="USD",
    )
    return temp_db.get_by_id(Collection.INVOICES, invoice_id)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()
