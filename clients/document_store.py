"""
Document store abstraction with atomic multi-document write batches.

Collections are addressed by path strings ("tickets", "tickets/<id>/service_items").
Reads return plain dicts with the document id under "id". Writes go through a
WriteBatch: every operation in one batch is applied all-or-nothing on commit.
There is no isolation across concurrent batches (last write wins per document).

Usage:
    batch = store.batch()
    batch.set("tickets", ticket_id, {...})
    batch.update("tickets/abc/service_items", "svc_1", {"is_completed": True})
    batch.delete("appointments", "abc__svc_1")
    batch.commit()
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

logger = logging.getLogger(__name__)

# Hard per-batch operation ceiling
MAX_BATCH_OPERATIONS = 500

FILTER_OPERATORS = {"==", "!=", "<", "<=", ">", ">=", "in"}


class _ServerTimestamp:
    """Placeholder resolved to the store's clock when a batch commits."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"

    def __deepcopy__(self, memo):
        return self


SERVER_TIMESTAMP = _ServerTimestamp()


class DocumentStoreError(Exception):
    """A store operation failed. Nothing from the failing batch was applied."""


class DocumentNotFoundError(DocumentStoreError):
    """An update targeted a document that does not exist."""


class BatchTooLargeError(DocumentStoreError):
    """A batch exceeded the per-batch operation ceiling."""


@dataclass(frozen=True)
class WriteOp:
    """One pending write inside a batch."""

    kind: str  # "set" | "update" | "delete"
    collection: str
    doc_id: str
    data: dict[str, Any] = field(default_factory=dict)
    merge: bool = False

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.doc_id}"


def _check_key(collection: str, doc_id: str) -> None:
    if not collection or not doc_id:
        raise ValueError("Collection and document id are required")
    if "/" in doc_id:
        raise ValueError(f"Document id must not contain '/': {doc_id!r}")


class WriteBatch:
    """
    Accumulates writes and applies them atomically on commit().

    A batch can be committed once. Empty batches commit as a no-op.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: list[WriteOp] = []
        self._committed = False

    def __len__(self) -> int:
        return len(self._ops)

    @property
    def operations(self) -> Sequence[WriteOp]:
        return tuple(self._ops)

    def _append(self, op: WriteOp) -> "WriteBatch":
        if self._committed:
            raise RuntimeError("Batch already committed")
        self._ops.append(op)
        return self

    def set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False) -> "WriteBatch":
        """Create or overwrite a document. merge=True only replaces the given fields."""
        _check_key(collection, doc_id)
        return self._append(WriteOp("set", collection, doc_id, dict(data), merge))

    def update(self, collection: str, doc_id: str, data: dict[str, Any]) -> "WriteBatch":
        """Replace the given fields of an existing document. Missing document fails the batch."""
        _check_key(collection, doc_id)
        return self._append(WriteOp("update", collection, doc_id, dict(data)))

    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        """Delete a document. Deleting an absent document is a no-op."""
        _check_key(collection, doc_id)
        return self._append(WriteOp("delete", collection, doc_id))

    def commit(self) -> None:
        """
        Apply all operations atomically.

        Raises:
            BatchTooLargeError: More than MAX_BATCH_OPERATIONS operations
            DocumentNotFoundError: An update targeted a missing document
            DocumentStoreError: The store rejected or failed the write
        """
        if self._committed:
            raise RuntimeError("Batch already committed")
        if len(self._ops) > MAX_BATCH_OPERATIONS:
            raise BatchTooLargeError(
                f"Batch has {len(self._ops)} operations; the limit is {MAX_BATCH_OPERATIONS}"
            )

        self._committed = True
        if not self._ops:
            return

        self._store._apply(tuple(self._ops))
        logger.debug(f"Committed batch of {len(self._ops)} operations")


class DocumentStore(ABC):
    """Interface every store backend implements."""

    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""
        return WriteBatch(self)

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Point read. Returns the document (with "id") or None."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Iterable[tuple[str, str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        """
        Equality/range query within one collection.

        Args:
            collection: Collection path
            filters: (field, operator, value) tuples, all must match
            order_by: Field to sort on
            descending: Sort direction
            limit: Maximum results

        Returns:
            List of documents (each with "id"). Empty list if none match.
        """

    @abstractmethod
    def _apply(self, ops: Sequence[WriteOp]) -> None:
        """Apply a committed batch all-or-nothing."""


def check_filters(filters: Iterable[tuple[str, str, Any]]) -> list[tuple[str, str, Any]]:
    """Validate filter tuples; returns them as a list."""
    checked = []
    for field_name, op, value in filters:
        if op not in FILTER_OPERATORS:
            raise ValueError(
                f"Unsupported filter operator '{op}'. "
                f"Valid operators: {', '.join(sorted(FILTER_OPERATORS))}"
            )
        if op == "in" and not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("'in' filter requires a list of values")
        checked.append((field_name, op, value))
    return checked


def resolve_server_timestamps(data: dict[str, Any], timestamp: Any) -> dict[str, Any]:
    """Replace SERVER_TIMESTAMP placeholders with the commit timestamp."""
    return {
        key: timestamp if value is SERVER_TIMESTAMP else value
        for key, value in data.items()
    }
