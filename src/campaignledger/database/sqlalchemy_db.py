"""Generic SQLAlchemy store implementation."""

import logging
import uuid
from contextlib import contextmanager
from datetime import date, datetime, UTC
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Optional, Sequence as SequenceType

from sqlalchemy import and_, func, or_, select, update
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session

from campaignledger.config import LedgerSettings
from campaignledger.database.base import Database
from campaignledger.database.batch import BatchOperation, OperationKind, WriteBatch
from campaignledger.database.mappers import to_domain
from campaignledger.database.models import (
    MODELS,
    QUERYABLE_FIELDS,
    Sequence,
    create_session_factory,
)
from campaignledger.database.query import StoreQuery, decode_cursor, encode_cursor
from campaignledger.domain.entities import CampaignStatus, Collection, Page
from campaignledger.domain.errors import (
    ConflictError,
    DomainError,
    NotFoundError,
    TransientStoreError,
    ValidationError,
    campaign_not_found,
    version_conflict,
)

logger = logging.getLogger(__name__)


def _storable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(UTC).replace(tzinfo=None)
    if isinstance(value, tuple):
        return [_storable(v) for v in value]
    if isinstance(value, list):
        return [_storable(v) for v in value]
    return value


class SQLAlchemyDatabase(Database):
    """SQLAlchemy-based implementation of the Database interface.

    Every call opens its own short session so reads never see a stale
    identity map. Batches run in a single transaction; on SQLite that
    transaction starts with BEGIN IMMEDIATE and so serializes writers.
    """

    def __init__(self, database_url: str, settings: Optional[LedgerSettings] = None):
        """Initialize SQLAlchemy store.

        Args:
            database_url: SQLAlchemy database URL (e.g., 'sqlite:///path/to.db')
            settings: Store capabilities and timeouts; defaults when omitted
        """
        self.database_url = database_url
        self.settings = settings or LedgerSettings()
        self.max_any_of = self.settings.max_any_of
        self.session_factory = create_session_factory(database_url, timeout=self.settings.store_timeout)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        """Open a session, translating driver failures into domain errors."""
        session = self.session_factory()
        try:
            yield session
        except IntegrityError as e:
            session.rollback()
            # Only uniqueness failures are conflicts; NOT NULL and CHECK failures are bad input
            if "UNIQUE constraint failed" in str(e.orig):
                raise ConflictError(f"Write rejected by the store: {e.orig}") from e
            raise ValidationError(f"Write rejected by the store: {e.orig}") from e
        except DBAPIError as e:
            session.rollback()
            raise TransientStoreError(f"Store unavailable: {e.orig}") from e
        finally:
            session.close()

    def connect(self) -> None:
        """Connect to the store."""
        # Connection is lazy, so this is a no-op
        pass

    def disconnect(self) -> None:
        """Disconnect from the store."""
        self.session_factory.kw["bind"].dispose()

    def initialize_schema(self) -> None:
        """Initialize store schema (create tables)."""
        # Schema is created automatically by create_session_factory
        pass

    def new_id(self) -> str:
        return uuid.uuid4().hex

    # Reads
    def get_by_id(self, collection: Collection, doc_id: str):
        """Get one document. Returns None when it does not exist."""
        model = MODELS[collection]
        with self._session() as session:
            row = session.get(model, doc_id)
            if row is None:
                logger.debug("%s/%s not found", collection.value, doc_id)
                return None
            return to_domain(collection, row)

    def get_by_ids(self, collection: Collection, doc_ids: SequenceType[str]) -> list:
        """Get documents in request order, omitting ids that do not exist."""
        unique_ids = list(dict.fromkeys(doc_ids))
        if not unique_ids:
            return []

        model = MODELS[collection]
        with self._session() as session:
            rows = session.execute(select(model).where(model.id.in_(unique_ids))).scalars().all()
            found = {row.id: to_domain(collection, row) for row in rows}

        missing = [doc_id for doc_id in unique_ids if doc_id not in found]
        if missing:
            logger.debug("%s: %d of %d ids not found", collection.value, len(missing), len(unique_ids))
        return [found[doc_id] for doc_id in unique_ids if doc_id in found]

    def _check_capabilities(self, store_query: StoreQuery) -> None:
        """Reject queries the store could not execute."""
        allowed = QUERYABLE_FIELDS[store_query.collection]
        fields = [name for name, _ in store_query.equals] + [name for name, _ in store_query.any_of]
        if store_query.range is not None:
            fields.append(store_query.range.field)
        fields.append(store_query.order_by)
        for name in fields:
            if name not in allowed:
                raise ValidationError(f"Field '{name}' cannot be queried on {store_query.collection.value}")

        for name, values in store_query.any_of:
            if len(values) > self.max_any_of:
                raise ValidationError(
                    f"Any-of filter on '{name}' has {len(values)} values; the store accepts at most {self.max_any_of}"
                )

        if store_query.range is not None and store_query.range.field != store_query.order_by:
            raise ValidationError(
                f"Range filter on '{store_query.range.field}' requires ordering by that field, "
                f"not '{store_query.order_by}'"
            )

        if store_query.limit is not None and store_query.limit < 1:
            raise ValidationError(f"Page size must be positive, got {store_query.limit}")

    def _conditions(self, store_query: StoreQuery) -> list:
        model = MODELS[store_query.collection]
        conditions = []
        for name, value in store_query.equals:
            column = getattr(model, name)
            if value is None:
                conditions.append(column.is_(None))
            else:
                conditions.append(column == _storable(value))
        for name, values in store_query.any_of:
            column = getattr(model, name)
            conditions.append(column.in_([_storable(v) for v in values]))
        if store_query.range is not None:
            column = getattr(model, store_query.range.field)
            if store_query.range.lower is not None:
                conditions.append(column >= _storable(store_query.range.lower))
            if store_query.range.upper is not None:
                conditions.append(column <= _storable(store_query.range.upper))
        return conditions

    def _keyset_condition(self, store_query: StoreQuery):
        """Condition selecting rows strictly after the cursor in query order.

        SQLite sorts NULLs first ascending and last descending; the
        condition follows the same placement.
        """
        order_field, value, doc_id = decode_cursor(store_query.start_after)
        if order_field != store_query.order_by:
            raise ValidationError(
                f"Cursor was issued for ordering by '{order_field}', not '{store_query.order_by}'"
            )
        model = MODELS[store_query.collection]
        column = getattr(model, store_query.order_by)

        if store_query.descending:
            if value is None:
                return and_(column.is_(None), model.id < doc_id)
            return or_(
                column < value,
                and_(column == value, model.id < doc_id),
                column.is_(None),
            )

        if value is None:
            return or_(and_(column.is_(None), model.id > doc_id), column.is_not(None))
        return or_(column > value, and_(column == value, model.id > doc_id))

    def query(self, store_query: StoreQuery) -> Page:
        """Run a paged query. The page's cursor points after its last document."""
        self._check_capabilities(store_query)
        model = MODELS[store_query.collection]
        column = getattr(model, store_query.order_by)

        statement = select(model).where(*self._conditions(store_query))
        if store_query.start_after:
            statement = statement.where(self._keyset_condition(store_query))
        if store_query.descending:
            statement = statement.order_by(column.desc(), model.id.desc())
        else:
            statement = statement.order_by(column.asc(), model.id.asc())
        if store_query.limit is not None:
            statement = statement.limit(store_query.limit)

        with self._session() as session:
            rows = session.execute(statement).scalars().all()
            items = tuple(to_domain(store_query.collection, row) for row in rows)
            next_cursor = None
            if store_query.limit is not None and len(rows) == store_query.limit:
                last = rows[-1]
                next_cursor = encode_cursor(store_query.order_by, getattr(last, store_query.order_by), last.id)

        logger.debug("Query on %s returned %d documents", store_query.collection.value, len(items))
        return Page(items=items, next_cursor=next_cursor)

    def count(self, store_query: StoreQuery) -> int:
        """Count documents matching the query's constraints (limit and cursor ignored)."""
        self._check_capabilities(store_query)
        model = MODELS[store_query.collection]
        statement = select(func.count()).select_from(model).where(*self._conditions(store_query))
        with self._session() as session:
            return session.execute(statement).scalar_one()

    # Writes
    def commit_batch(self, batch: WriteBatch) -> None:
        """Commit every operation of the batch in one transaction, or none of them."""
        if not batch:
            return
        now = datetime.now(UTC)
        with self._session() as session:
            try:
                for operation in batch.operations:
                    self._apply_operation(session, operation, now)
                session.commit()
            except DomainError:
                session.rollback()
                raise
        logger.debug("Committed batch of %d operations", len(batch))

    def _check_fields(self, operation: BatchOperation) -> None:
        columns = MODELS[operation.collection].__table__.columns
        for name in operation.fields:
            if name in ("id", "version") or name not in columns:
                raise ValueError(f"Field '{name}' cannot be written on {operation.collection.value}")

    def _apply_operation(self, session: Session, operation: BatchOperation, now: datetime) -> None:
        self._check_fields(operation)
        model = MODELS[operation.collection]
        if operation.collection == Collection.CHANGE_LOGS and operation.kind != OperationKind.CREATE:
            raise ValidationError("Change log entries are append-only")

        if operation.kind == OperationKind.CREATE:
            if session.get(model, operation.doc_id) is not None:
                raise ConflictError(
                    f"{operation.collection.value} document {operation.doc_id} already exists",
                    collection=operation.collection.value,
                    entity_id=operation.doc_id,
                )
            values = {name: _storable(value) for name, value in operation.fields.items()}
            session.add(model(id=operation.doc_id, version=1, **values))
            session.flush()
            return

        columns = [model.version]
        list_field = None
        if operation.kind in (OperationKind.ARRAY_UNION, OperationKind.ARRAY_REMOVE):
            (list_field,) = operation.fields
            columns.append(getattr(model, list_field))

        current = session.execute(select(*columns).where(model.id == operation.doc_id)).first()
        if current is None:
            raise NotFoundError(
                f"{operation.collection.value} document {operation.doc_id} not found",
                collection=operation.collection.value,
                entity_id=operation.doc_id,
            )
        version = current[0]
        if operation.expected_version is not None and version != operation.expected_version:
            raise ConflictError(
                version_conflict(operation.collection.value, operation.doc_id, operation.expected_version, version),
                collection=operation.collection.value,
                entity_id=operation.doc_id,
            )

        if operation.kind == OperationKind.UPDATE:
            values = {name: _storable(value) for name, value in operation.fields.items()}
        else:
            existing = list(current[1] or [])
            changes = [_storable(v) for v in operation.fields[list_field]]
            if operation.kind == OperationKind.ARRAY_UNION:
                merged = existing + [v for v in dict.fromkeys(changes) if v not in existing]
            else:
                merged = [v for v in existing if v not in changes]
            values = {list_field: merged}

        if "updated_at" in model.__table__.columns:
            values.setdefault("updated_at", now)
        result = session.execute(
            update(model)
            .where(model.id == operation.doc_id, model.version == version)
            .values(version=version + 1, **values)
        )
        if result.rowcount != 1:
            raise ConflictError(
                f"{operation.collection.value} document {operation.doc_id} changed during the batch",
                collection=operation.collection.value,
                entity_id=operation.doc_id,
            )

    def next_sequence(self, name: str) -> int:
        """Atomically increment and return a named counter."""
        with self._session() as session:
            row = session.get(Sequence, name)
            if row is None:
                row = Sequence(name=name, current_value=0)
                session.add(row)
            row.current_value += 1
            value = row.current_value
            session.commit()
        return value

    # Externally owned documents
    def insert_campaign(
        self,
        name: str,
        status: CampaignStatus = CampaignStatus.DRAFT,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        created_at: Optional[datetime] = None,
    ) -> str:
        """Create a campaign. Returns its id."""
        campaign_id = self.new_id()
        created_at = created_at or datetime.now(UTC)
        batch = WriteBatch().create(
            Collection.CAMPAIGNS,
            campaign_id,
            {
                "name": name,
                "status": status,
                "start_date": start_date,
                "end_date": end_date,
                "invoice_ids": [],
                "line_item_ids": [],
                "created_at": created_at,
                "updated_at": created_at,
            },
        )
        self.commit_batch(batch)
        return campaign_id

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
        if self.get_by_id(Collection.CAMPAIGNS, campaign_id) is None:
            raise NotFoundError(campaign_not_found(campaign_id), Collection.CAMPAIGNS.value, campaign_id)

        line_item_id = self.new_id()
        created_at = created_at or datetime.now(UTC)
        batch = WriteBatch()
        batch.create(
            Collection.LINE_ITEMS,
            line_item_id,
            {
                "campaign_id": campaign_id,
                "name": name,
                "booked_amount": booked_amount,
                "actual_amount": actual_amount,
                "adjustments": adjustments,
                "invoice_id": None,
                "created_at": created_at,
                "updated_at": created_at,
            },
        )
        batch.array_union(Collection.CAMPAIGNS, campaign_id, "line_item_ids", [line_item_id])
        self.commit_batch(batch)
        return line_item_id
