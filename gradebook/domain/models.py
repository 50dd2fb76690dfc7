"""
Domain models for Gradebook Ingest.

Defines the canonical student-grade record and the result payloads returned by
the core operations. ``percentage`` is a computed field on every model that
carries scores, so no code path can set it independently of the two scores.
"""
from __future__ import annotations

from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import List, Optional, TypedDict

from pydantic import BaseModel, Field, computed_field

_TWO_PLACES = Decimal("0.01")

# Storage limits: scores are 32-bit integers, percentage is NUMERIC(12, 2).
MAX_SCORE = 2**31 - 1
MAX_PERCENTAGE = Decimal("9999999999.99")


def compute_percentage(obtained_score: int, total_score: int) -> Decimal:
    """
    Percentage of ``obtained_score`` over ``total_score``, rounded half-up to
    two decimals.

    Computed on exact decimals so values such as 2/3 land on ``66.67`` without
    float artefacts.

    Raises
    ------
    ValueError
        If ``total_score`` is not positive.
    """
    if total_score <= 0:
        raise ValueError("total_score must be positive")
    raw = Decimal(obtained_score) * 100 / Decimal(total_score)
    return raw.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP)


class RecordCandidate(BaseModel):
    """
    A validated row that has not been persisted yet.
    """

    external_id: str = Field(..., min_length=1, description="Student id from the source file.")
    name: str = Field(..., min_length=1, description="Student name.")
    total_score: int = Field(..., gt=0, le=MAX_SCORE, description="Maximum achievable score.")
    obtained_score: int = Field(..., ge=0, le=MAX_SCORE, description="Score obtained by the student.")

    model_config = {
        "frozen": True,
        "populate_by_name": True,
    }

    @computed_field  # type: ignore[misc]
    @property
    def percentage(self) -> Decimal:
        return compute_percentage(self.obtained_score, self.total_score)


class Record(RecordCandidate):
    """
    A persisted student-grade record.
    """

    id: str = Field(..., description="Opaque identifier assigned by the store.")
    created_at: datetime = Field(..., description="Creation timestamp (UTC).")

    def with_scores(self, name: str, total_score: int, obtained_score: int) -> "Record":
        """Return a copy with edited name/scores; id and created_at are kept."""
        return Record(
            id=self.id,
            external_id=self.external_id,
            name=name,
            total_score=total_score,
            obtained_score=obtained_score,
            created_at=self.created_at,
        )


class Page(BaseModel):
    """One page of records ordered by ``created_at`` descending."""

    records: List[Record]
    current_page: int = Field(..., ge=1)
    total_pages: int = Field(..., ge=0)
    total_count: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    has_next: bool
    has_prev: bool


class Summary(BaseModel):
    """Dataset size and timestamp of the most recent upload."""

    total_count: int = Field(..., ge=0)
    last_upload: Optional[datetime] = None


class IngestResult(TypedDict):
    inserted_count: int
    rejected_count: int
    total_rows: int
    duration_seconds: float


class ReplaceResult(TypedDict):
    inserted_count: int


class ClearResult(TypedDict):
    removed_count: int


class DeleteResult(TypedDict):
    deleted: bool
    id: str


__all__ = [
    "MAX_SCORE",
    "MAX_PERCENTAGE",
    "compute_percentage",
    "RecordCandidate",
    "Record",
    "Page",
    "Summary",
    "IngestResult",
    "ReplaceResult",
    "ClearResult",
    "DeleteResult",
]
