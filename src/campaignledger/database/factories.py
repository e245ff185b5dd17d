"""Database factory functions for creating store instances."""

import logging
from typing import Optional

from campaignledger.config import LedgerSettings, default_database_path
from campaignledger.database.sqlalchemy_db import SQLAlchemyDatabase

logger = logging.getLogger(__name__)


def create_sqlite_database(
    database_path: Optional[str] = None,
    settings: Optional[LedgerSettings] = None,
) -> SQLAlchemyDatabase:
    """Create a SQLite store instance.

    Args:
        database_path: Path to SQLite database file. If None, uses the
            CAMPAIGNLEDGER_DB_PATH setting, then defaults to
            ~/.campaignledger/ledger.db
        settings: Store capabilities; read from the environment when omitted

    Returns:
        SQLAlchemyDatabase instance configured for SQLite
    """
    if settings is None:
        settings = LedgerSettings.from_env()

    if database_path is None:
        database_path = settings.database_path

    if database_path is None:
        database_path = default_database_path()

    logger.debug("Opening ledger store at %s", database_path)
    database_url = f"sqlite:///{database_path}"
    return SQLAlchemyDatabase(database_url, settings=settings)
