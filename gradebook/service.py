"""
Gradebook service: the contract surface the request layer calls into.

Usage:
    from gradebook.service import GradebookService
    from gradebook.store import MemoryRecordStore

    service = GradebookService(MemoryRecordStore())
    result = service.ingest(data, "csv")
    page = service.list(page=1, limit=50)

Ingestion decodes, normalizes and validates an upload, then hands the batch to
the store's atomic ``replace``. Queries and single-record edits go straight to
the store. Every failure is a ``GradebookError`` subclass carrying its kind.
"""

from __future__ import annotations

import math
import time
from pathlib import Path
from typing import Any, Optional

from gradebook.config import Settings, get_settings
from gradebook.domain.models import ClearResult, DeleteResult, IngestResult, Page, Record, Summary
from gradebook.errors import InvalidInput, NotFound, StoreUnavailable
from gradebook.ingest.decoder import TableKind, kind_from_filename
from gradebook.ingest.pipeline import prepare_batch
from gradebook.ingest.validator import check_update_fields
from gradebook.store import RecordStore, create_store
from gradebook.utils.logging import get_logger

log = get_logger(__name__)


class GradebookService:
    """Ingestion and paginated query operations over one record store."""

    def __init__(self, store: Optional[RecordStore] = None, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.store = store if store is not None else create_store(self.settings.store_backend)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------
    def ingest(self, data: bytes, kind: TableKind | str) -> IngestResult:
        """
        Replace the whole dataset with the valid rows of one upload.

        Raises
        ------
        UnsupportedFormat, DecodeError, NoValidRecords
            Whole-batch input failures; the store is not touched.
        IngestionFailed
            If the store could not commit; the previous dataset stays.
        StoreUnavailable
            If the backend is unreachable. ``candidates`` holds the parsed
            upload so it is not lost.
        """
        start = time.perf_counter()
        outcome = prepare_batch(
            data, kind, enforce_score_bound=self.settings.enforce_score_bound
        )
        try:
            replaced = self.store.replace(outcome.candidates)
        except StoreUnavailable as exc:
            log.warning(
                "Store unavailable; returning parsed rows unpersisted",
                extra={"valid_rows": len(outcome.candidates)},
            )
            raise exc.with_candidates(outcome.candidates) from exc.__cause__

        duration = time.perf_counter() - start
        result = IngestResult(
            inserted_count=replaced["inserted_count"],
            rejected_count=outcome.rejected_count,
            total_rows=outcome.total_rows,
            duration_seconds=round(duration, 4),
        )
        log.info("Ingestion complete", extra=dict(result))
        return result

    def ingest_file(self, path: Path | str, kind: Optional[TableKind | str] = None) -> IngestResult:
        """Ingest a file from disk; the kind defaults to the file extension."""
        file_path = Path(path)
        table_kind = TableKind.parse(kind) if kind else kind_from_filename(file_path.name)
        log.info("Ingesting file", extra={"path": str(file_path), "kind": table_kind.value})
        return self.ingest(file_path.read_bytes(), table_kind)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list(self, page: int = 1, limit: Optional[int] = None) -> Page:
        """
        One page of records, most recent first.

        A page past the end returns no records with correct counts.
        """
        limit = self.settings.default_page_size if limit is None else limit
        problems = {}
        if not isinstance(page, int) or isinstance(page, bool) or page < 1:
            problems["page"] = "must be an integer >= 1"
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 1:
            problems["limit"] = "must be an integer >= 1"
        elif limit > self.settings.max_page_size:
            problems["limit"] = f"must not exceed {self.settings.max_page_size}"
        if problems:
            raise InvalidInput("Invalid pagination parameters", fields=problems)

        total_count, records = self.store.page((page - 1) * limit, limit)
        total_pages = math.ceil(total_count / limit)
        return Page(
            records=records,
            current_page=page,
            total_pages=total_pages,
            total_count=total_count,
            limit=limit,
            has_next=page < total_pages,
            has_prev=page > 1,
        )

    def get(self, record_id: str) -> Record:
        record = self.store.get(record_id)
        if record is None:
            raise NotFound(record_id)
        return record

    def update(
        self, record_id: str, name: Any, total_score: Any, obtained_score: Any
    ) -> Record:
        """
        Edit name and scores of one record; ``percentage`` is re-derived and
        ``created_at`` is kept.
        """
        clean_name, total, obtained = check_update_fields(
            name,
            total_score,
            obtained_score,
            enforce_score_bound=self.settings.enforce_score_bound,
        )
        record = self.store.update(record_id, clean_name, total, obtained)
        if record is None:
            raise NotFound(record_id)
        log.info("Record updated", extra={"record_id": record_id})
        return record

    def delete(self, record_id: str) -> DeleteResult:
        if not self.store.delete(record_id):
            raise NotFound(record_id)
        log.info("Record deleted", extra={"record_id": record_id})
        return DeleteResult(deleted=True, id=str(record_id))

    def clear_all(self) -> ClearResult:
        result = self.store.clear_all()
        log.info("All records cleared", extra=dict(result))
        return result

    def summary(self) -> Summary:
        total_count, last_upload = self.store.stats()
        return Summary(total_count=total_count, last_upload=last_upload)

    def close(self) -> None:
        self.store.close()


__all__ = ["GradebookService"]
