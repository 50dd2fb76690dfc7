"""
Error taxonomy for Gradebook Ingest.

Every failure that crosses the core boundary is a GradebookError carrying a
machine-readable ``kind`` plus a human-readable message, so the request layer
can map it to a structured response without inspecting exception types.
Per-row validation problems during ingestion never become exceptions; only
whole-batch failures do.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence


class GradebookError(Exception):
    """Base exception for all Gradebook failures."""

    kind: str = "GradebookError"
    retryable: bool = False

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    def to_dict(self) -> Dict[str, Any]:
        """Structured error payload: ``{"error": {"kind", "message", ...}}``."""
        payload: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        payload.update(self.details)
        return {"error": payload}


class UnsupportedFormat(GradebookError):
    """Raised when the declared container kind is not xlsx or csv."""

    kind = "UnsupportedFormat"


class DecodeError(GradebookError):
    """Raised when file bytes cannot be parsed as the declared kind."""

    kind = "DecodeError"


class NoValidRecords(GradebookError):
    """Raised when a batch yields zero acceptable rows."""

    kind = "NoValidRecords"

    def __init__(self, total_rows: int, rejected_count: int) -> None:
        super().__init__(
            f"No valid student rows found ({rejected_count} of {total_rows} rejected)",
            total_rows=total_rows,
            rejected_count=rejected_count,
        )
        self.total_rows = total_rows
        self.rejected_count = rejected_count


class IngestionFailed(GradebookError):
    """Raised when a replace could not commit; the store is left unchanged."""

    kind = "IngestionFailed"


class InvalidInput(GradebookError):
    """Raised when caller-supplied fields violate record constraints."""

    kind = "InvalidInput"

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None) -> None:
        super().__init__(message, fields=dict(fields or {}))
        self.fields: Dict[str, str] = dict(fields or {})


class NotFound(GradebookError):
    """Raised when a record id does not exist."""

    kind = "NotFound"

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Student record '{record_id}' not found", record_id=str(record_id))
        self.record_id = str(record_id)


class StoreUnavailable(GradebookError):
    """
    Raised when the persistence backend cannot be reached.

    Callers should retry rather than treat this as a data problem. During
    ingestion the decoded-but-unpersisted candidates are attached so an upload
    is not lost.
    """

    kind = "StoreUnavailable"
    retryable = True

    def __init__(self, message: str, candidates: Optional[Sequence[Any]] = None) -> None:
        super().__init__(message)
        self.candidates: tuple = tuple(candidates or ())

    def with_candidates(self, candidates: Sequence[Any]) -> "StoreUnavailable":
        """Return a copy of this error carrying the parsed upload."""
        err = StoreUnavailable(self.message, candidates=candidates)
        err.__cause__ = self.__cause__
        return err

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["error"]["retryable"] = True
        if self.candidates:
            payload["parsed_records"] = [
                c.model_dump(mode="json") if hasattr(c, "model_dump") else c
                for c in self.candidates
            ]
        return payload


__all__ = [
    "GradebookError",
    "UnsupportedFormat",
    "DecodeError",
    "NoValidRecords",
    "IngestionFailed",
    "InvalidInput",
    "NotFound",
    "StoreUnavailable",
]
