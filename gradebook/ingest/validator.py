"""
Record validator/transformer.

Turns normalized rows into ``RecordCandidate`` objects. Malformed rows are
skipped and counted rather than failing the upload; only a batch with zero
acceptable rows is an error.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from gradebook.domain.models import (
    MAX_PERCENTAGE,
    MAX_SCORE,
    RecordCandidate,
    compute_percentage,
)
from gradebook.errors import InvalidInput, NoValidRecords
from gradebook.ingest.normalizer import CanonicalField
from gradebook.utils.logging import get_logger

log = get_logger(__name__)

# Plain integral notation only; exponents such as "1e9" are not scores.
_INTEGRAL_TEXT = re.compile(r"[+-]?(\d+)(?:\.0*)?")
# Longest digit run worth converting; anything longer is never a score.
_PARSE_DIGIT_LIMIT = 2 * len(str(MAX_SCORE))


@dataclass(frozen=True)
class ValidationOutcome:
    """Valid candidates of one batch plus the rejection tally."""

    candidates: Tuple[RecordCandidate, ...]
    rejected_count: int
    total_rows: int


def parse_score(value: Any) -> Optional[int]:
    """
    Parse an integer score from a cell value.

    Accepts ints, integral floats (spreadsheets store ``85`` as ``85.0``) and
    strings holding an integral number in plain notation (``"85"``,
    ``"85.0"``). Returns None for anything else, including fractional values,
    exponent notation, booleans, blanks and non-finite numbers. Values far
    beyond any storable score are also None; values just past ``MAX_SCORE``
    are returned so the range check can name them.
    """
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            return None
        return int(value)
    if isinstance(value, Decimal):
        if not value.is_finite() or value.adjusted() >= _PARSE_DIGIT_LIMIT:
            return None
        if value != value.to_integral_value():
            return None
        return int(value)
    if isinstance(value, str):
        match = _INTEGRAL_TEXT.fullmatch(value.strip())
        if match is None or len(match.group(1).lstrip("0")) > _PARSE_DIGIT_LIMIT:
            return None
        try:
            return int(Decimal(match.group(0)))
        except InvalidOperation:
            return None
    return None


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and value.is_integer():
        # numeric id cells come back from spreadsheets as floats
        value = int(value)
    text = str(value).strip()
    return text or None


def _score_problems(
    total_score: Optional[int], obtained_score: Optional[int], enforce_score_bound: bool
) -> Dict[str, str]:
    problems: Dict[str, str] = {}
    if total_score is None:
        problems[CanonicalField.TOTAL_SCORE.value] = "must be an integer"
    elif total_score <= 0:
        problems[CanonicalField.TOTAL_SCORE.value] = "must be greater than 0"
    elif total_score > MAX_SCORE:
        problems[CanonicalField.TOTAL_SCORE.value] = f"must not exceed {MAX_SCORE}"
    if obtained_score is None:
        problems[CanonicalField.OBTAINED_SCORE.value] = "must be an integer"
    elif obtained_score < 0:
        problems[CanonicalField.OBTAINED_SCORE.value] = "must not be negative"
    elif obtained_score > MAX_SCORE:
        problems[CanonicalField.OBTAINED_SCORE.value] = f"must not exceed {MAX_SCORE}"
    elif CanonicalField.TOTAL_SCORE.value not in problems:
        if enforce_score_bound and obtained_score > total_score:
            problems[CanonicalField.OBTAINED_SCORE.value] = "must not exceed total_score"
        elif compute_percentage(obtained_score, total_score) > MAX_PERCENTAGE:
            problems[CanonicalField.OBTAINED_SCORE.value] = (
                f"gives a percentage above {MAX_PERCENTAGE}"
            )
    return problems


def row_problems(
    row: Mapping[CanonicalField, Any], *, enforce_score_bound: bool = False
) -> Dict[str, str]:
    """Map of field name -> reason for every requirement ``row`` violates."""
    problems: Dict[str, str] = {}
    for field in (CanonicalField.EXTERNAL_ID, CanonicalField.NAME):
        if _clean_text(row.get(field)) is None:
            problems[field.value] = "is required"
    problems.update(
        _score_problems(
            parse_score(row.get(CanonicalField.TOTAL_SCORE)),
            parse_score(row.get(CanonicalField.OBTAINED_SCORE)),
            enforce_score_bound,
        )
    )
    return problems


def build_candidate(
    row: Mapping[CanonicalField, Any], *, enforce_score_bound: bool = False
) -> Optional[RecordCandidate]:
    """
    Build a candidate from a normalized row, or return None if the row is not
    acceptable.
    """
    if row_problems(row, enforce_score_bound=enforce_score_bound):
        return None
    return _candidate(row)


def _candidate(row: Mapping[CanonicalField, Any]) -> RecordCandidate:
    return RecordCandidate(
        external_id=_clean_text(row[CanonicalField.EXTERNAL_ID]),
        name=_clean_text(row[CanonicalField.NAME]),
        total_score=parse_score(row[CanonicalField.TOTAL_SCORE]),
        obtained_score=parse_score(row[CanonicalField.OBTAINED_SCORE]),
    )


def validate_rows(
    rows: Iterable[Mapping[CanonicalField, Any]], *, enforce_score_bound: bool = False
) -> ValidationOutcome:
    """
    Validate every normalized row of a batch.

    Raises
    ------
    NoValidRecords
        If not a single row is acceptable.
    """
    candidates = []
    rejected = 0
    total = 0
    for total, row in enumerate(rows, start=1):
        problems = row_problems(row, enforce_score_bound=enforce_score_bound)
        if problems:
            rejected += 1
            log.debug("Row rejected", extra={"row_number": total, "problems": problems})
            continue
        candidates.append(_candidate(row))

    if not candidates:
        raise NoValidRecords(total_rows=total, rejected_count=rejected)
    return ValidationOutcome(candidates=tuple(candidates), rejected_count=rejected, total_rows=total)


def check_update_fields(
    name: Any, total_score: Any, obtained_score: Any, *, enforce_score_bound: bool = False
) -> Tuple[str, int, int]:
    """
    Apply the ingestion field rules to an update request.

    Returns the cleaned ``(name, total_score, obtained_score)``.

    Raises
    ------
    InvalidInput
        Listing every field that is missing or out of range.
    """
    clean_name = _clean_text(name)
    total = parse_score(total_score)
    obtained = parse_score(obtained_score)

    problems: Dict[str, str] = {}
    if clean_name is None:
        problems[CanonicalField.NAME.value] = "is required"
    problems.update(_score_problems(total, obtained, enforce_score_bound))
    if problems:
        detail = ", ".join(f"{k} {v}" for k, v in problems.items())
        raise InvalidInput(f"Invalid student fields: {detail}", fields=problems)
    return clean_name, total, obtained


__all__ = [
    "ValidationOutcome",
    "parse_score",
    "row_problems",
    "build_candidate",
    "validate_rows",
    "check_update_fields",
]
