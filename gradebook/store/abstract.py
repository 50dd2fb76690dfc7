"""
Abstract record-store interfaces for Gradebook Ingest.

Concrete backends (in-memory generation pointer, PostgreSQL transaction) must
implement the RecordStore protocol. Whatever the backend, ``replace`` has to
look atomic to concurrent readers: a reader sees the full old set or the full
new set, never an empty or mixed one.

Listing order is ``created_at`` descending, ties broken by insertion order.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

from gradebook.domain.models import ClearResult, Record, RecordCandidate, ReplaceResult


@runtime_checkable
class RecordStore(Protocol):
    """
    Persistence boundary used by the query service.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier of the backend.
    description : str
        A human-friendly summary of how atomic replace is achieved.
    """

    name: str
    description: str

    def replace(self, candidates: Sequence[RecordCandidate]) -> ReplaceResult:
        """
        Swap the whole collection for ``candidates``.

        Each candidate gets a fresh id; the batch shares one ``created_at``.

        Raises
        ------
        IngestionFailed
            If the new set could not be committed; the old set stays visible.
        StoreUnavailable
            If the backend cannot be reached.
        """
        ...

    def clear_all(self) -> ClearResult:
        """Remove every record."""
        ...

    def count(self) -> int:
        ...

    def page(self, offset: int, limit: int) -> Tuple[int, List[Record]]:
        """
        Total count plus the records in listing order after skipping ``offset``,
        at most ``limit`` of them, both read from the same snapshot.
        """
        ...

    def get(self, record_id: str) -> Optional[Record]:
        ...

    def update(
        self, record_id: str, name: str, total_score: int, obtained_score: int
    ) -> Optional[Record]:
        """Edit one record in place; returns None if the id is unknown."""
        ...

    def delete(self, record_id: str) -> bool:
        """Delete one record; returns False if the id is unknown."""
        ...

    def stats(self) -> Tuple[int, Optional[datetime]]:
        """Record count and newest ``created_at`` (None when empty), from one snapshot."""
        ...

    def close(self) -> None:
        ...


class AbstractRecordStore(abc.ABC):
    """
    Optional ABC helper for class-based store implementations.

    Subclasses set ``name`` and ``description`` and implement the operations.
    """

    name: str
    description: str

    @abc.abstractmethod
    def replace(self, candidates: Sequence[RecordCandidate]) -> ReplaceResult:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def clear_all(self) -> ClearResult:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def count(self) -> int:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def page(self, offset: int, limit: int) -> Tuple[int, List[Record]]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def get(self, record_id: str) -> Optional[Record]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def update(
        self, record_id: str, name: str, total_score: int, obtained_score: int
    ) -> Optional[Record]:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def delete(self, record_id: str) -> bool:  # pragma: no cover
        raise NotImplementedError

    @abc.abstractmethod
    def stats(self) -> Tuple[int, Optional[datetime]]:  # pragma: no cover
        raise NotImplementedError

    def close(self) -> None:
        """Release backend resources. No-op by default."""

    def __enter__(self) -> "AbstractRecordStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["RecordStore", "AbstractRecordStore"]
