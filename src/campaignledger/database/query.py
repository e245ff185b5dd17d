"""Store-native query description and opaque cursor encoding."""

import base64
import binascii
import json
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from campaignledger.domain.entities import Collection
from campaignledger.domain.errors import ValidationError


@dataclass(frozen=True)
class RangeConstraint:
    """Inclusive bounds on one field. Either bound may be open."""

    field: str
    lower: Any = None
    upper: Any = None


@dataclass(frozen=True)
class StoreQuery:
    """A query the backing store can execute as-is.

    Mirrors the store's capabilities: exact matches, any-of lists, at most
    one range constraint, and an ordering that must lead with the range
    field when one is present.
    """

    collection: Collection
    equals: tuple[tuple[str, Any], ...] = ()
    any_of: tuple[tuple[str, tuple[Any, ...]], ...] = ()
    range: Optional[RangeConstraint] = None
    order_by: str = "created_at"
    descending: bool = True
    limit: Optional[int] = None
    start_after: Optional[str] = None


def _encode_value(value: Any) -> dict[str, Any]:
    if value is None:
        return {"t": "none"}
    if isinstance(value, datetime):
        return {"t": "datetime", "v": value.isoformat()}
    if isinstance(value, date):
        return {"t": "date", "v": value.isoformat()}
    if isinstance(value, Decimal):
        return {"t": "decimal", "v": str(value)}
    if isinstance(value, bool):
        return {"t": "bool", "v": value}
    if isinstance(value, int):
        return {"t": "int", "v": value}
    return {"t": "str", "v": str(value)}


def _decode_value(payload: dict[str, Any]) -> Any:
    kind = payload["t"]
    if kind == "none":
        return None
    raw = payload["v"]
    if kind == "datetime":
        return datetime.fromisoformat(raw)
    if kind == "date":
        return date.fromisoformat(raw)
    if kind == "decimal":
        return Decimal(raw)
    if kind in ("bool", "int"):
        return raw
    if kind == "str":
        return str(raw)
    raise ValueError(f"unknown cursor value type {kind!r}")


def encode_cursor(order_by: str, value: Any, doc_id: str) -> str:
    """Build the opaque token positioned after one document."""
    payload = {"f": order_by, "k": _encode_value(value), "id": doc_id}
    raw = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii")


def decode_cursor(cursor: str) -> tuple[str, Any, str]:
    """Return (order field, order value, document id) from a cursor.

    Raises:
        ValidationError: If the cursor was not produced by encode_cursor
    """
    try:
        payload = json.loads(base64.urlsafe_b64decode(cursor.encode("ascii")))
        return payload["f"], _decode_value(payload["k"]), payload["id"]
    except (binascii.Error, UnicodeError, ValueError, KeyError, TypeError):
        raise ValidationError(f"Malformed page cursor: {cursor!r}")
