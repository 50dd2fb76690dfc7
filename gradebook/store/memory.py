"""
In-process record store built on a generation pointer.

``replace`` assembles the complete new generation without holding the lock and
then publishes it by swapping a single reference. Readers always work on one
generation, so they observe either the whole previous batch or the whole new
one. Concurrent replaces resolve last-writer-wins at the swap.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from gradebook.domain.models import ClearResult, Record, RecordCandidate, ReplaceResult
from gradebook.errors import IngestionFailed
from gradebook.store.abstract import AbstractRecordStore
from gradebook.utils.logging import get_logger

log = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class _Generation:
    number: int
    # insertion-ordered: id -> record
    records: Dict[str, Record] = field(default_factory=dict)

    def ordered(self) -> List[Record]:
        # sorted() is stable with reverse=True, so ties keep insertion order
        return sorted(self.records.values(), key=lambda r: r.created_at, reverse=True)


class MemoryRecordStore(AbstractRecordStore):
    """
    Thread-safe in-memory store.

    Useful for tests, demos and single-process deployments without Postgres.
    """

    name: str = "memory"
    description: str = "In-process generation pointer swap (threading.Lock)."

    def __init__(
        self,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._lock = threading.Lock()
        self._generation_seq = 0
        self._current = _Generation(number=0)

    @property
    def generation(self) -> int:
        """Number of the currently published generation."""
        with self._lock:
            return self._current.number

    def _next_generation_number(self) -> int:
        with self._lock:
            self._generation_seq += 1
            return self._generation_seq

    def replace(self, candidates: Sequence[RecordCandidate]) -> ReplaceResult:
        number = self._next_generation_number()
        try:
            created_at = self._clock()
            staged = _Generation(number=number)
            for candidate in candidates:
                record = Record(
                    id=self._id_factory(),
                    external_id=candidate.external_id,
                    name=candidate.name,
                    total_score=candidate.total_score,
                    obtained_score=candidate.obtained_score,
                    created_at=created_at,
                )
                if record.id in staged.records:
                    raise ValueError(f"duplicate record id {record.id!r}")
                staged.records[record.id] = record
        except Exception as exc:
            log.exception("Replace aborted; current generation kept", extra={"generation": number})
            raise IngestionFailed(f"Could not stage new dataset: {exc}") from exc

        with self._lock:
            previous = self._current
            self._current = staged
        log.info(
            "Generation published",
            extra={
                "generation": staged.number,
                "previous_generation": previous.number,
                "inserted": len(staged.records),
                "retired": len(previous.records),
            },
        )
        return ReplaceResult(inserted_count=len(staged.records))

    def clear_all(self) -> ClearResult:
        number = self._next_generation_number()
        with self._lock:
            removed = len(self._current.records)
            self._current = _Generation(number=number)
        log.info("Store cleared", extra={"generation": number, "removed": removed})
        return ClearResult(removed_count=removed)

    def count(self) -> int:
        with self._lock:
            return len(self._current.records)

    def page(self, offset: int, limit: int) -> Tuple[int, List[Record]]:
        with self._lock:
            ordered = self._current.ordered()
        return len(ordered), ordered[offset : offset + limit]

    def get(self, record_id: str) -> Optional[Record]:
        with self._lock:
            return self._current.records.get(record_id)

    def update(
        self, record_id: str, name: str, total_score: int, obtained_score: int
    ) -> Optional[Record]:
        with self._lock:
            existing = self._current.records.get(record_id)
            if existing is None:
                return None
            updated = existing.with_scores(name, total_score, obtained_score)
            self._current.records[record_id] = updated
            return updated

    def delete(self, record_id: str) -> bool:
        with self._lock:
            return self._current.records.pop(record_id, None) is not None

    def stats(self) -> Tuple[int, Optional[datetime]]:
        with self._lock:
            records = self._current.records.values()
            return len(records), max((r.created_at for r in records), default=None)


__all__ = ["MemoryRecordStore"]
