"""
PostgreSQL record store.

``replace`` runs DELETE + INSERT inside a single transaction. MVCC gives
concurrent readers either the old set or the new one; a transaction-scoped
advisory lock serializes concurrent replaces so they resolve last-writer-wins
instead of merging batches.

``percentage`` is a generated column, so the database never stores a value
that disagrees with the two scores.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Iterator, List, Optional, Sequence, Tuple

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool

from gradebook.config import get_settings
from gradebook.domain.models import ClearResult, Record, RecordCandidate, ReplaceResult
from gradebook.errors import IngestionFailed, InvalidInput, StoreUnavailable
from gradebook.infrastructure.db_factory import (
    TRANSIENT_ERRORS,
    get_pool,
    get_sync_connection,
    pooled_connection,
)
from gradebook.store.abstract import AbstractRecordStore
from gradebook.utils.logging import get_logger

log = get_logger(__name__)

TABLE = "public.student_records"

# Arbitrary constant shared by every process replacing this table.
REPLACE_LOCK_KEY = 0x67726164

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {TABLE} (
    seq            BIGSERIAL UNIQUE,
    id             UUID PRIMARY KEY,
    external_id    TEXT NOT NULL,
    name           TEXT NOT NULL CHECK (length(btrim(name)) > 0),
    total_score    INTEGER NOT NULL CHECK (total_score > 0),
    obtained_score INTEGER NOT NULL CHECK (obtained_score >= 0),
    percentage     NUMERIC(12, 2) GENERATED ALWAYS AS
                       (round(obtained_score::numeric * 100 / total_score, 2)) STORED,
    created_at     TIMESTAMPTZ NOT NULL
);
CREATE INDEX IF NOT EXISTS student_records_listing_idx
    ON {TABLE} (created_at DESC, seq ASC);
"""

_COLUMNS = "id, external_id, name, total_score, obtained_score, created_at"

_INSERT_SQL = (
    f"INSERT INTO {TABLE} (id, external_id, name, total_score, obtained_score, created_at) "
    "VALUES (%s, %s, %s, %s, %s, %s)"
)

_PAGE_SQL = f"""
WITH total AS (SELECT count(*) AS n FROM {TABLE}),
page AS (
    SELECT {_COLUMNS}, seq FROM {TABLE}
    ORDER BY created_at DESC, seq ASC
    OFFSET %s LIMIT %s
)
SELECT total.n AS total_count, page.*
FROM total LEFT JOIN page ON true
ORDER BY page.created_at DESC, page.seq ASC
"""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_id(record_id: str) -> Optional[uuid.UUID]:
    try:
        return uuid.UUID(str(record_id))
    except ValueError:
        return None


def _to_record(row: dict) -> Record:
    return Record(
        id=str(row["id"]),
        external_id=row["external_id"],
        name=row["name"],
        total_score=row["total_score"],
        obtained_score=row["obtained_score"],
        created_at=row["created_at"],
    )


def _chunks(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(items), size):
        yield items[start : start + size]


class PostgresRecordStore(AbstractRecordStore):
    """
    Record store backed by a psycopg ConnectionPool.
    """

    name: str = "postgres"
    description: str = "Single-transaction DELETE + INSERT under an advisory lock."

    def __init__(
        self,
        dsn_override: Optional[str] = None,
        pool: Optional[ConnectionPool] = None,
        insert_batch_size: Optional[int] = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        settings = get_settings()
        self._dsn_override = dsn_override
        self._pool: Optional[ConnectionPool] = pool
        self._owns_pool = False
        self.insert_batch_size = insert_batch_size or settings.insert_batch_size
        self._clock = clock

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool
        if self._dsn_override:
            settings = get_settings()
            self._pool = ConnectionPool(
                conninfo=self._dsn_override,
                min_size=settings.db_pool_min_size,
                max_size=settings.db_pool_max_size,
                kwargs={"autocommit": True, "connect_timeout": settings.db_connect_timeout},
                timeout=float(settings.db_connect_timeout),
                open=True,
            )
            self._owns_pool = True
        else:
            self._pool = get_pool()
        return self._pool

    def _connection(self):
        return pooled_connection(self._get_pool())

    def ensure_schema(self) -> None:
        """Create the records table and its listing index if missing."""
        try:
            conn = get_sync_connection(self._dsn_override)
        except TRANSIENT_ERRORS as exc:
            raise StoreUnavailable(f"Database not available: {exc}") from exc
        try:
            conn.execute(SCHEMA_SQL)
        finally:
            conn.close()
        log.info("Schema ensured", extra={"table": TABLE})

    def replace(self, candidates: Sequence[RecordCandidate]) -> ReplaceResult:
        created_at = self._clock()
        params = [
            (uuid.uuid4(), c.external_id, c.name, c.total_score, c.obtained_score, created_at)
            for c in candidates
        ]
        with self._connection() as conn:
            try:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute("SELECT pg_advisory_xact_lock(%s)", (REPLACE_LOCK_KEY,))
                        cur.execute(f"DELETE FROM {TABLE}")
                        removed = cur.rowcount
                        for chunk in _chunks(params, self.insert_batch_size):
                            cur.executemany(_INSERT_SQL, chunk)
            except TRANSIENT_ERRORS:
                raise
            except psycopg.Error as exc:
                log.exception("Replace rolled back", extra={"rows": len(params)})
                raise IngestionFailed(f"Could not replace dataset: {exc}") from exc

        log.info(
            "Dataset replaced",
            extra={"inserted": len(params), "removed": removed, "created_at": created_at.isoformat()},
        )
        return ReplaceResult(inserted_count=len(params))

    def clear_all(self) -> ClearResult:
        with self._connection() as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    cur.execute("SELECT pg_advisory_xact_lock(%s)", (REPLACE_LOCK_KEY,))
                    cur.execute(f"DELETE FROM {TABLE}")
                    removed = cur.rowcount
        log.info("Store cleared", extra={"removed": removed})
        return ClearResult(removed_count=removed)

    def count(self) -> int:
        with self._connection() as conn:
            row = conn.execute(f"SELECT count(*) FROM {TABLE}").fetchone()
        return int(row[0])

    def page(self, offset: int, limit: int) -> Tuple[int, List[Record]]:
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(_PAGE_SQL, (offset, limit))
                rows = cur.fetchall()
        total = int(rows[0]["total_count"]) if rows else 0
        records = [_to_record(row) for row in rows if row["id"] is not None]
        return total, records

    def get(self, record_id: str) -> Optional[Record]:
        key = _parse_id(record_id)
        if key is None:
            return None
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(f"SELECT {_COLUMNS} FROM {TABLE} WHERE id = %s", (key,))
                row = cur.fetchone()
        return _to_record(row) if row else None

    def update(
        self, record_id: str, name: str, total_score: int, obtained_score: int
    ) -> Optional[Record]:
        key = _parse_id(record_id)
        if key is None:
            return None
        with self._connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                try:
                    cur.execute(
                        f"UPDATE {TABLE} SET name = %s, total_score = %s, obtained_score = %s "
                        f"WHERE id = %s RETURNING {_COLUMNS}",
                        (name, total_score, obtained_score, key),
                    )
                except (psycopg.DataError, psycopg.IntegrityError) as exc:
                    # out-of-range scores or a failed CHECK constraint
                    raise InvalidInput(
                        f"Invalid student fields: {exc}",
                        fields={"obtained_score": "out of storable range"},
                    ) from exc
                row = cur.fetchone()
        return _to_record(row) if row else None

    def delete(self, record_id: str) -> bool:
        key = _parse_id(record_id)
        if key is None:
            return False
        with self._connection() as conn:
            cur = conn.execute(f"DELETE FROM {TABLE} WHERE id = %s", (key,))
            return cur.rowcount > 0

    def stats(self) -> Tuple[int, Optional[datetime]]:
        with self._connection() as conn:
            row = conn.execute(f"SELECT count(*), max(created_at) FROM {TABLE}").fetchone()
        return int(row[0]), row[1]

    def close(self) -> None:
        if self._owns_pool and self._pool is not None:
            self._pool.close()
            self._pool = None
            self._owns_pool = False


__all__ = ["PostgresRecordStore", "SCHEMA_SQL", "TABLE"]
