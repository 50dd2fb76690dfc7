"""
Gradebook Ingest - score-sheet ingestion and paginated record store.

This package turns uploaded spreadsheets and CSV files of student scores into
canonical records and serves them back page by page:

- Tabular decoding of .xlsx (first worksheet) and delimited text
- Header-variant normalization onto a fixed canonical field set
- Permissive per-row validation with derived percentages
- Atomic replace of the stored dataset (generation pointer or transaction)
- Paginated listing plus single-record lookup, update and delete
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from gradebook.config import Settings, get_settings
from gradebook.domain.models import Page, Record, RecordCandidate, Summary
from gradebook.errors import (
    DecodeError,
    GradebookError,
    IngestionFailed,
    InvalidInput,
    NoValidRecords,
    NotFound,
    StoreUnavailable,
    UnsupportedFormat,
)
from gradebook.ingest import TableKind, kind_from_filename
from gradebook.service import GradebookService
from gradebook.store import (
    MemoryRecordStore,
    PostgresRecordStore,
    RecordStore,
    available_backends,
    create_store,
)
from gradebook.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Service
    "GradebookService",
    "TableKind",
    "kind_from_filename",
    # Models
    "Page",
    "Record",
    "RecordCandidate",
    "Summary",
    # Stores
    "RecordStore",
    "MemoryRecordStore",
    "PostgresRecordStore",
    "available_backends",
    "create_store",
    # Errors
    "GradebookError",
    "UnsupportedFormat",
    "DecodeError",
    "NoValidRecords",
    "IngestionFailed",
    "InvalidInput",
    "NotFound",
    "StoreUnavailable",
    # Logging
    "configure_logging",
    "get_logger",
]
