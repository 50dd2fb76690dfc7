"""
Domain package for Gradebook Ingest.

Exports the record models and result payloads shared by ingestion, the stores
and the query service. Keep this package focused on data definitions.
"""

from gradebook.domain.models import (
    ClearResult,
    DeleteResult,
    IngestResult,
    Page,
    Record,
    RecordCandidate,
    ReplaceResult,
    Summary,
    compute_percentage,
)

__all__ = [
    "ClearResult",
    "DeleteResult",
    "IngestResult",
    "Page",
    "Record",
    "RecordCandidate",
    "ReplaceResult",
    "Summary",
    "compute_percentage",
]
