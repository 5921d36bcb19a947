"""
PostgreSQL-backed document store with connection pooling.

Uses psycopg2 with ThreadedConnectionPool. All collections share one JSONB
table keyed by (collection, id); each write batch is one transaction, so a
batch is applied all-or-nothing. SERVER_TIMESTAMP resolves to the
transaction's now(), i.e. the database server's clock.

Datetimes are stored as {"$date": "<fixed-width ISO UTC>"} so that JSONB
comparison and ordering on them is chronological.
"""

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

from clients.document_store import (
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    WriteOp,
    check_filters,
    resolve_server_timestamps,
)

logger = logging.getLogger(__name__)

_DATE_KEY = "$date"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

SCHEMA = """
CREATE TABLE IF NOT EXISTS documents (
    collection TEXT NOT NULL,
    id TEXT NOT NULL,
    data JSONB NOT NULL,
    PRIMARY KEY (collection, id)
)
"""

_SQL_OPERATORS = {"==": "=", "!=": "<>", "<": "<", "<=": "<=", ">": ">", ">=": ">="}


def encode_value(value: Any) -> Any:
    """Convert a Python value into its JSON representation."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            raise ValueError("Cannot store naive datetime. Datetime must be timezone-aware.")
        return {_DATE_KEY: value.astimezone(timezone.utc).strftime(_DATE_FORMAT)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: encode_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [encode_value(v) for v in value]
    return value


def decode_value(value: Any) -> Any:
    """Inverse of encode_value."""
    if isinstance(value, dict):
        if set(value) == {_DATE_KEY}:
            return datetime.strptime(value[_DATE_KEY], _DATE_FORMAT).replace(tzinfo=timezone.utc)
        return {k: decode_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [decode_value(v) for v in value]
    return value


def _row_to_document(row: Dict[str, Any]) -> Dict[str, Any]:
    return {"id": row["id"], **decode_value(row["data"])}


class PostgresDocumentStore(DocumentStore):
    """
    Document store over a single PostgreSQL table.

    Usage:
        store = PostgresDocumentStore(database_url)
        store.ensure_schema()
        ticket = store.get("tickets", ticket_id)
    """

    # Class-level connection pools shared across instances
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()

    def __init__(self, database_url: str):
        self._database_url = database_url
        self._ensure_connection_pool()

    def _ensure_connection_pool(self) -> None:
        """Create connection pool if it doesn't exist."""
        with self._pools_lock:
            if self._database_url not in self._connection_pools:
                try:
                    pool = psycopg2.pool.ThreadedConnectionPool(
                        minconn=2,
                        maxconn=20,
                        dsn=self._database_url,
                        connect_timeout=30,
                    )
                except psycopg2.Error as e:
                    raise DocumentStoreError(f"Could not connect to document store: {e}") from e

                self._connection_pools[self._database_url] = pool
                logger.info("Connection pool created")

    @contextmanager
    def get_connection(self):
        """Borrow a pooled connection; always returned to the pool."""
        if self._database_url not in self._connection_pools:
            self._ensure_connection_pool()

        pool = self._connection_pools[self._database_url]
        conn = None

        try:
            conn = pool.getconn()
            if conn is None:
                raise DocumentStoreError("Could not get connection from pool")
            yield conn

        finally:
            if conn:
                pool.putconn(conn)

    def ensure_schema(self) -> None:
        """Create the documents table if missing."""
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(SCHEMA)
                conn.commit()
        except psycopg2.Error as e:
            raise DocumentStoreError(f"Could not create schema: {e}") from e

    def _fetch(self, query: str, params: tuple) -> List[Dict[str, Any]]:
        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                    cur.execute(query, params)
                    rows = [dict(row) for row in cur.fetchall()]
                conn.rollback()
                return rows
        except psycopg2.Error as e:
            raise DocumentStoreError(f"Document store read failed: {e}") from e

    def get(self, collection: str, doc_id: str) -> Dict[str, Any] | None:
        rows = self._fetch(
            "SELECT id, data FROM documents WHERE collection = %s AND id = %s",
            (collection, doc_id)
        )
        return _row_to_document(rows[0]) if rows else None

    def query(
        self,
        collection: str,
        filters: Iterable[tuple[str, str, Any]] = (),
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> List[Dict[str, Any]]:
        where = ["collection = %s"]
        params: list[Any] = [collection]

        for field_name, op, value in check_filters(filters):
            if op == "in":
                if not value:
                    return []
                placeholders = ", ".join(["%s::jsonb"] * len(value))
                where.append(f"data->%s IN ({placeholders})")
                params.append(field_name)
                params.extend(json.dumps(encode_value(v)) for v in value)
            elif value is None and op == "==":
                where.append("(data->%s IS NULL OR data->%s = 'null'::jsonb)")
                params.extend([field_name, field_name])
            else:
                where.append(f"data->%s {_SQL_OPERATORS[op]} %s::jsonb")
                params.extend([field_name, json.dumps(encode_value(value))])
                if op not in ("==", "!="):
                    # Range filters never match null fields
                    where.append("jsonb_typeof(data->%s) = jsonb_typeof(%s::jsonb)")
                    params.extend([field_name, json.dumps(encode_value(value))])

        sql = f"SELECT id, data FROM documents WHERE {' AND '.join(where)}"

        if order_by is not None:
            sql += " AND data->%s IS NOT NULL AND data->%s <> 'null'::jsonb"
            params.extend([order_by, order_by])
            sql += f" ORDER BY data->%s {'DESC' if descending else 'ASC'}, id ASC"
            params.append(order_by)
        else:
            sql += " ORDER BY id ASC"

        if limit is not None:
            sql += " LIMIT %s"
            params.append(limit)

        return [_row_to_document(row) for row in self._fetch(sql, tuple(params))]

    def _apply(self, ops: Sequence[WriteOp]) -> None:
        try:
            with self.get_connection() as conn:
                try:
                    with conn.cursor() as cur:
                        cur.execute("SELECT now()")
                        timestamp = cur.fetchone()[0]

                        for op in ops:
                            self._apply_one(cur, op, timestamp)

                    conn.commit()
                except Exception:
                    conn.rollback()
                    raise
        except psycopg2.Error as e:
            raise DocumentStoreError(f"Batch commit failed: {e}") from e

    def _apply_one(self, cur, op: WriteOp, timestamp: datetime) -> None:
        if op.kind == "delete":
            cur.execute(
                "DELETE FROM documents WHERE collection = %s AND id = %s",
                (op.collection, op.doc_id)
            )
            return

        payload = json.dumps(encode_value(resolve_server_timestamps(op.data, timestamp)))

        if op.kind == "update":
            cur.execute(
                """
                UPDATE documents SET data = data || %s::jsonb
                WHERE collection = %s AND id = %s
                """,
                (payload, op.collection, op.doc_id)
            )
            if cur.rowcount == 0:
                raise DocumentNotFoundError(f"Document {op.path} not found")
            return

        conflict = "documents.data || EXCLUDED.data" if op.merge else "EXCLUDED.data"
        cur.execute(
            f"""
            INSERT INTO documents (collection, id, data)
            VALUES (%s, %s, %s::jsonb)
            ON CONFLICT (collection, id) DO UPDATE SET data = {conflict}
            """,
            (op.collection, op.doc_id, payload)
        )

    def close(self) -> None:
        """Close connection pool."""
        with self._pools_lock:
            if self._database_url in self._connection_pools:
                self._connection_pools[self._database_url].closeall()
                del self._connection_pools[self._database_url]

    @classmethod
    def close_all_pools(cls) -> None:
        """Close all connection pools."""
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
