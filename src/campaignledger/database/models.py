"""SQLAlchemy models for the campaignledger store.

Each table holds one document collection. List fields are JSON columns so
documents keep their own back-reference lists, as they would in a document
store; there are no foreign keys between collections.
"""

from datetime import datetime, UTC
from typing import Optional

from sqlalchemy import (
    JSON,
    Column,
    Date,
    DateTime,
    Integer,
    Numeric,
    String,
    create_engine,
    event,
)
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from campaignledger.domain.entities import Collection

Base = declarative_base()

MONEY = Numeric(14, 2)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Campaign(Base):
    """Campaign document."""

    __tablename__ = "campaigns"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    status = Column(String, nullable=False, index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    invoice_ids = Column(JSON, nullable=False, default=list)
    line_item_ids = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)


class LineItem(Base):
    """Line item document."""

    __tablename__ = "line_items"

    id = Column(String, primary_key=True)
    campaign_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    booked_amount = Column(MONEY, nullable=False)
    actual_amount = Column(MONEY, nullable=False)
    adjustments = Column(MONEY, nullable=False, default=0)
    invoice_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)


class Invoice(Base):
    """Invoice document."""

    __tablename__ = "invoices"

    id = Column(String, primary_key=True)
    campaign_id = Column(String, nullable=False, index=True)
    invoice_number = Column(String, nullable=False, unique=True)
    client_name = Column(String, nullable=False)
    client_email = Column(String, nullable=False)
    currency = Column(String, nullable=False)
    line_item_ids = Column(JSON, nullable=False, default=list)
    booked_amount = Column(MONEY, nullable=False, default=0)
    actual_amount = Column(MONEY, nullable=False, default=0)
    total_adjustments = Column(MONEY, nullable=False, default=0)
    total_amount = Column(MONEY, nullable=False, default=0)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    status = Column(String, nullable=False, index=True)
    created_at = Column(DateTime, default=_utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=_utcnow, nullable=False)
    version = Column(Integer, nullable=False, default=1)


class ChangeLog(Base):
    """Change log entry document. Rows are inserted, never updated."""

    __tablename__ = "change_logs"

    id = Column(String, primary_key=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String, nullable=False, index=True)
    change_type = Column(String, nullable=False)
    previous_amount = Column(MONEY, nullable=False)
    new_amount = Column(MONEY, nullable=False)
    difference = Column(MONEY, nullable=False)
    booked_amount_at_time = Column(MONEY, nullable=False)
    actual_amount_at_time = Column(MONEY, nullable=False)
    comment = Column(String, nullable=False, default="")
    user_name = Column(String, nullable=False, default="System")
    timestamp = Column(DateTime, default=_utcnow, nullable=False, index=True)
    invoice_id = Column(String, nullable=True, index=True)
    invoice_number = Column(String, nullable=True)
    campaign_id = Column(String, nullable=False, index=True)
    line_item_name = Column(String, nullable=False)
    previous_invoice_id = Column(String, nullable=True)
    previous_invoice_number = Column(String, nullable=True)
    version = Column(Integer, nullable=False, default=1)


class Sequence(Base):
    """Named counters used for document numbers."""

    __tablename__ = "sequences"

    name = Column(String, primary_key=True)
    current_value = Column(Integer, nullable=False, default=0)


MODELS = {
    Collection.CAMPAIGNS: Campaign,
    Collection.INVOICES: Invoice,
    Collection.LINE_ITEMS: LineItem,
    Collection.CHANGE_LOGS: ChangeLog,
}

# Columns the store can filter and order on; list columns are not indexable.
QUERYABLE_FIELDS = {
    collection: frozenset(
        column.name
        for column in model.__table__.columns
        if not isinstance(column.type, JSON)
    )
    for collection, model in MODELS.items()
}


def create_session_factory(database_url: str, timeout: Optional[float] = None) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory and the schema."""
    connect_args = {}
    if timeout is not None and database_url.startswith("sqlite"):
        connect_args["timeout"] = timeout
    engine = create_engine(database_url, echo=False, connect_args=connect_args)

    if engine.dialect.name == "sqlite":
        # Let SQLAlchemy own transaction boundaries so a batch starts with
        # BEGIN IMMEDIATE and holds the write lock for its whole read-modify-write.
        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
