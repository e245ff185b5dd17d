"""Entity store layer for campaignledger."""

from campaignledger.database.base import Database
from campaignledger.database.batch import WriteBatch
from campaignledger.database.factories import create_sqlite_database
from campaignledger.database.query import RangeConstraint, StoreQuery

__all__ = ["Database", "WriteBatch", "StoreQuery", "RangeConstraint", "create_sqlite_database"]
