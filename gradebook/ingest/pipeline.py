"""
Ingestion pipeline: bytes -> decoded rows -> canonical rows -> validated batch.

This stage is pure; persisting the batch is the store's job (see
``gradebook.service.GradebookService.ingest``).
"""

from __future__ import annotations

from typing import Any, Dict, Iterator

from gradebook.ingest.decoder import TableKind, decode_rows
from gradebook.ingest.normalizer import CanonicalField, normalize_row
from gradebook.ingest.validator import ValidationOutcome, validate_rows
from gradebook.utils.logging import get_logger

log = get_logger(__name__)


def normalized_rows(data: bytes, kind: TableKind | str) -> Iterator[Dict[CanonicalField, Any]]:
    """Decode ``data`` and lazily re-key every row by canonical field."""
    return (normalize_row(row) for row in decode_rows(data, kind))


def prepare_batch(
    data: bytes, kind: TableKind | str, *, enforce_score_bound: bool = False
) -> ValidationOutcome:
    """
    Run decode, normalize and validate over one upload.

    Raises
    ------
    UnsupportedFormat, DecodeError
        From the decoder.
    NoValidRecords
        If every row was rejected.
    """
    table_kind = TableKind.parse(kind)
    outcome = validate_rows(
        normalized_rows(data, table_kind), enforce_score_bound=enforce_score_bound
    )
    log.info(
        "Batch prepared",
        extra={
            "kind": table_kind.value,
            "total_rows": outcome.total_rows,
            "valid_rows": len(outcome.candidates),
            "rejected_rows": outcome.rejected_count,
        },
    )
    return outcome


__all__ = ["normalized_rows", "prepare_batch"]
