"""
In-memory document store.

Same contract as the Postgres-backed store: batches are all-or-nothing and
SERVER_TIMESTAMP resolves to one instant per commit. Used by the test suite
and for running the services without a database.
"""

import copy
import logging
import threading
from typing import Any, Callable, Iterable, Sequence

from clients.document_store import (
    DocumentNotFoundError,
    DocumentStore,
    WriteOp,
    check_filters,
    resolve_server_timestamps,
)
from utils.timezone import now_utc

logger = logging.getLogger(__name__)


def _matches(doc: dict[str, Any], field_name: str, op: str, value: Any) -> bool:
    if op == "==":
        return doc.get(field_name) == value
    if op == "!=":
        return field_name in doc and doc[field_name] != value
    if op == "in":
        return doc.get(field_name) in value

    current = doc.get(field_name)
    # Range filters never match missing or null fields
    if current is None:
        return False
    try:
        if op == "<":
            return current < value
        if op == "<=":
            return current <= value
        if op == ">":
            return current > value
        return current >= value
    except TypeError:
        return False


class InMemoryDocumentStore(DocumentStore):
    """Thread-safe dict-of-dicts store. Commits copy, mutate, then swap."""

    def __init__(self, clock: Callable[[], Any] = now_utc):
        self._clock = clock
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = threading.RLock()
        self.commit_count = 0

    def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self._lock:
            doc = self._collections.get(collection, {}).get(doc_id)
            if doc is None:
                return None
            return {"id": doc_id, **copy.deepcopy(doc)}

    def query(
        self,
        collection: str,
        filters: Iterable[tuple[str, str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        checked = check_filters(filters)
        with self._lock:
            docs = [
                {"id": doc_id, **copy.deepcopy(doc)}
                for doc_id, doc in self._collections.get(collection, {}).items()
                if all(_matches(doc, f, op, v) for f, op, v in checked)
            ]

        if order_by is not None:
            # Documents without the field are not part of an ordered result
            docs = [d for d in docs if d.get(order_by) is not None]
            docs.sort(key=lambda d: d[order_by], reverse=descending)

        if limit is not None:
            docs = docs[:limit]
        return docs

    def _apply(self, ops: Sequence[WriteOp]) -> None:
        with self._lock:
            timestamp = self._clock()
            staged = {name: dict(docs) for name, docs in self._collections.items()}

            for op in ops:
                docs = staged.setdefault(op.collection, {})
                if op.kind == "delete":
                    docs.pop(op.doc_id, None)
                    continue

                data = copy.deepcopy(resolve_server_timestamps(op.data, timestamp))
                if op.kind == "update":
                    if op.doc_id not in docs:
                        raise DocumentNotFoundError(f"Document {op.path} not found")
                    docs[op.doc_id] = {**docs[op.doc_id], **data}
                elif op.merge and op.doc_id in docs:
                    docs[op.doc_id] = {**docs[op.doc_id], **data}
                else:
                    docs[op.doc_id] = data

            self._collections = {name: docs for name, docs in staged.items() if docs}
            self.commit_count += 1

    def document_count(self, collection: str) -> int:
        """Number of documents currently in a collection."""
        with self._lock:
            return len(self._collections.get(collection, {}))
