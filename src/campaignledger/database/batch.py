"""Atomic multi-document write batches."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from campaignledger.domain.entities import Collection


class OperationKind(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    ARRAY_UNION = "array_union"
    ARRAY_REMOVE = "array_remove"


@dataclass
class BatchOperation:
    """A single document write inside a batch.

    For UPDATE, ``expected_version`` makes the write conditional: the store
    rejects the whole batch if the document's version differs. For the array
    operations ``fields`` maps one list field to the values to add or remove.
    """

    kind: OperationKind
    collection: Collection
    doc_id: str
    fields: dict[str, Any] = field(default_factory=dict)
    expected_version: Optional[int] = None


class WriteBatch:
    """Collects document writes that the store commits all-or-nothing.

    Updates to the same document are merged into one operation so a single
    expected version guards all of them.
    """

    def __init__(self) -> None:
        self._operations: list[BatchOperation] = []

    @property
    def operations(self) -> tuple[BatchOperation, ...]:
        return tuple(self._operations)

    def __len__(self) -> int:
        return len(self._operations)

    def __bool__(self) -> bool:
        return bool(self._operations)

    def _find(self, kind: OperationKind, collection: Collection, doc_id: str) -> Optional[BatchOperation]:
        for operation in self._operations:
            if operation.kind == kind and operation.collection == collection and operation.doc_id == doc_id:
                return operation
        return None

    def create(self, collection: Collection, doc_id: str, fields: dict[str, Any]) -> "WriteBatch":
        """Insert a new document. Fails the batch if the id already exists."""
        if self._find(OperationKind.CREATE, collection, doc_id) is not None:
            raise ValueError(f"Document {collection.value}/{doc_id} is already created in this batch")
        self._operations.append(BatchOperation(OperationKind.CREATE, collection, doc_id, dict(fields)))
        return self

    def update(
        self,
        collection: Collection,
        doc_id: str,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> "WriteBatch":
        """Set fields on an existing document, optionally conditional on its version."""
        existing = self._find(OperationKind.UPDATE, collection, doc_id)
        if existing is None:
            self._operations.append(
                BatchOperation(OperationKind.UPDATE, collection, doc_id, dict(fields), expected_version)
            )
            return self

        if (
            expected_version is not None
            and existing.expected_version is not None
            and expected_version != existing.expected_version
        ):
            raise ValueError(
                f"Conflicting expected versions for {collection.value}/{doc_id}: "
                f"{existing.expected_version} and {expected_version}"
            )
        existing.fields.update(fields)
        if existing.expected_version is None:
            existing.expected_version = expected_version
        return self

    def array_union(self, collection: Collection, doc_id: str, field_name: str, values: Iterable[str]) -> "WriteBatch":
        """Append values missing from a list field, keeping its order."""
        self._operations.append(
            BatchOperation(OperationKind.ARRAY_UNION, collection, doc_id, {field_name: list(values)})
        )
        return self

    def array_remove(self, collection: Collection, doc_id: str, field_name: str, values: Iterable[str]) -> "WriteBatch":
        """Remove every occurrence of values from a list field."""
        self._operations.append(
            BatchOperation(OperationKind.ARRAY_REMOVE, collection, doc_id, {field_name: list(values)})
        )
        return self
