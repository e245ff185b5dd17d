"""Translate filter specifications into store-native queries.

The store can only express exact matches, any-of lists up to a capped
length, and a single range constraint whose field must also be the
order-by field. Everything else (case-insensitive substring search, for
instance) becomes a residual predicate applied to each fetched page.

Planning is a pure function of the filter specification and cursor; the
planner holds no pagination state of its own.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, UTC
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Optional

from campaignledger.database.query import RangeConstraint, StoreQuery
from campaignledger.domain.entities import Collection
from campaignledger.domain.errors import ValidationError

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], bool]

# Fields stored as timestamps; date bounds on them cover whole days.
DATETIME_FIELDS = frozenset({"created_at", "updated_at", "timestamp"})

DEFAULT_ORDER_FIELD = {
    Collection.CAMPAIGNS: "created_at",
    Collection.INVOICES: "created_at",
    Collection.LINE_ITEMS: "created_at",
    Collection.CHANGE_LOGS: "timestamp",
}


@dataclass(frozen=True)
class StoreCapabilities:
    """What the backing store can express in one query."""

    max_any_of: int = 10


@dataclass(frozen=True)
class RangeFilter:
    """Inclusive range on one field. Either end may be open."""

    field: str
    start: Optional[date] = None
    end: Optional[date] = None


@dataclass(frozen=True)
class TextContains:
    """Case-insensitive substring match over one or more text fields."""

    fields: tuple[str, ...]
    text: str

    def __call__(self, item: Any) -> bool:
        needle = self.text.casefold()
        for name in self.fields:
            value = getattr(item, name, None)
            if value is not None and needle in str(value).casefold():
                return True
        return False


@dataclass(frozen=True)
class FilterSpec:
    """A caller's filter request.

    ``equals`` maps a field to a single value (exact match, ``None`` matches
    null) or to a set/list/tuple of values (any-of). There is room for one
    range filter only. ``client_only`` predicates are applied to fetched
    pages because the store cannot evaluate them.
    """

    equals: Mapping[str, Any] = field(default_factory=dict)
    range: Optional[RangeFilter] = None
    client_only: Mapping[str, Predicate] = field(default_factory=dict)
    sort_field: Optional[str] = None
    descending: bool = True

    def fingerprint(self) -> str:
        """Stable identity of the filter set, used to detect filter changes."""

        def normalize(value: Any) -> Any:
            if isinstance(value, Enum):
                return value.value
            if isinstance(value, (set, frozenset, list, tuple)):
                return sorted(str(normalize(v)) for v in value)
            if isinstance(value, (date, datetime)):
                return value.isoformat()
            return value if value is None or isinstance(value, (int, str)) else str(value)

        payload = {
            "equals": {name: normalize(value) for name, value in sorted(self.equals.items())},
            "range": None
            if self.range is None
            else [self.range.field, normalize(self.range.start), normalize(self.range.end)],
            "client_only": {name: repr(predicate) for name, predicate in sorted(self.client_only.items())},
            "sort": [self.sort_field, self.descending],
        }
        return json.dumps(payload, sort_keys=True, default=str)


@dataclass(frozen=True)
class PlannedQuery:
    """The store query plus whatever the store could not evaluate."""

    store_query: StoreQuery
    residual: tuple[Predicate, ...] = ()
    truncated_filters: tuple[str, ...] = ()

    def matches(self, item: Any) -> bool:
        return all(predicate(item) for predicate in self.residual)

    def apply_residual(self, items: Iterable[Any]) -> tuple:
        """Filter a fetched page down to the items every residual predicate accepts."""
        if not self.residual:
            return tuple(items)
        return tuple(item for item in items if self.matches(item))


def _is_value_set(value: Any) -> bool:
    return isinstance(value, (set, frozenset, list, tuple))


def _dedupe(values: Iterable[Any]) -> list:
    unique = []
    for value in values:
        if value not in unique:
            unique.append(value)
    # Sets have no order; sort them so plans are reproducible.
    try:
        return sorted(unique, key=lambda v: (v is None, str(getattr(v, "value", v))))
    except TypeError:
        return unique


def _range_bound(field_name: str, value: Any, end: bool) -> Any:
    if value is None:
        return None
    if field_name in DATETIME_FIELDS:
        if isinstance(value, datetime):
            # Stored timestamps are naive UTC
            if value.tzinfo is not None:
                return value.astimezone(UTC).replace(tzinfo=None)
            return value
        return datetime.combine(value, time.max if end else time.min)
    if isinstance(value, datetime):
        return value.date()
    return value


class QueryPlanner:
    """Plans store queries under the store's capabilities."""

    def __init__(self, capabilities: Optional[StoreCapabilities] = None):
        self.capabilities = capabilities or StoreCapabilities()

    def _constraints(
        self, filter_spec: FilterSpec
    ) -> tuple[tuple, tuple, Optional[RangeConstraint], tuple[str, ...]]:
        equals = []
        any_of = []
        truncated = []

        for name, value in sorted(filter_spec.equals.items()):
            if not _is_value_set(value):
                equals.append((name, value))
                continue

            values = _dedupe(value)
            if not values:
                continue
            if len(values) == 1:
                equals.append((name, values[0]))
                continue
            if len(values) > self.capabilities.max_any_of:
                logger.warning(
                    "Filter on '%s' has %d values; only the first %d are applied",
                    name,
                    len(values),
                    self.capabilities.max_any_of,
                )
                values = values[: self.capabilities.max_any_of]
                truncated.append(name)
            any_of.append((name, tuple(values)))

        range_constraint = None
        if filter_spec.range is not None:
            spec_range = filter_spec.range
            lower = _range_bound(spec_range.field, spec_range.start, end=False)
            upper = _range_bound(spec_range.field, spec_range.end, end=True)
            if lower is not None and upper is not None and lower > upper:
                raise ValidationError(
                    f"Range on '{spec_range.field}' starts after it ends ({spec_range.start} > {spec_range.end})"
                )
            if lower is not None or upper is not None:
                range_constraint = RangeConstraint(spec_range.field, lower, upper)

        return tuple(equals), tuple(any_of), range_constraint, tuple(truncated)

    def _order_field(self, collection: Collection, filter_spec: FilterSpec, range_constraint) -> str:
        if range_constraint is not None:
            if filter_spec.sort_field and filter_spec.sort_field != range_constraint.field:
                logger.info(
                    "Sorting by '%s' instead of '%s': the store orders by the range field",
                    range_constraint.field,
                    filter_spec.sort_field,
                )
            return range_constraint.field
        return filter_spec.sort_field or DEFAULT_ORDER_FIELD[collection]

    def plan(
        self,
        collection: Collection,
        filter_spec: Optional[FilterSpec] = None,
        page_size: Optional[int] = None,
        cursor: Optional[str] = None,
    ) -> PlannedQuery:
        """Plan one page fetch.

        Args:
            collection: Collection to query
            filter_spec: Filters to apply; none means all documents
            page_size: Documents per page; None fetches everything
            cursor: Token from the previous page, None for the first page

        Returns:
            PlannedQuery with the store query and residual predicates

        Raises:
            ValidationError: If the page size is not positive or a range is inverted
        """
        filter_spec = filter_spec or FilterSpec()
        if page_size is not None and page_size < 1:
            raise ValidationError(f"Page size must be positive, got {page_size}")

        equals, any_of, range_constraint, truncated = self._constraints(filter_spec)
        store_query = StoreQuery(
            collection=Collection(collection),
            equals=equals,
            any_of=any_of,
            range=range_constraint,
            order_by=self._order_field(Collection(collection), filter_spec, range_constraint),
            descending=filter_spec.descending,
            limit=page_size,
            start_after=cursor,
        )
        return PlannedQuery(
            store_query=store_query,
            residual=tuple(predicate for _, predicate in sorted(filter_spec.client_only.items())),
            truncated_filters=truncated,
        )

    def count_query(self, collection: Collection, filter_spec: Optional[FilterSpec] = None) -> StoreQuery:
        """Build the unpaginated count query for the same store constraints.

        Client-only filters are not part of it, so counts are approximate
        whenever the filter spec has any.
        """
        planned = self.plan(collection, filter_spec)
        return planned.store_query
