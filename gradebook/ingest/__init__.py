"""
Ingestion package for Gradebook Ingest.

Decoder, field normalizer and validator stages that turn an uploaded sheet
into a batch of record candidates. Nothing in here touches storage.
"""

from gradebook.ingest.decoder import TableKind, decode_rows, kind_from_filename
from gradebook.ingest.normalizer import FIELD_VARIANTS, CanonicalField, normalize_row
from gradebook.ingest.pipeline import normalized_rows, prepare_batch
from gradebook.ingest.validator import (
    ValidationOutcome,
    build_candidate,
    check_update_fields,
    parse_score,
    validate_rows,
)

__all__ = [
    "TableKind",
    "decode_rows",
    "kind_from_filename",
    "FIELD_VARIANTS",
    "CanonicalField",
    "normalize_row",
    "normalized_rows",
    "prepare_batch",
    "ValidationOutcome",
    "build_candidate",
    "check_update_fields",
    "parse_score",
    "validate_rows",
]
