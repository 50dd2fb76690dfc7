"""
Field normalizer: map variant header spellings onto the canonical field set.

Uploaded sheets name the same column in different ways (``Student_ID``,
``student_id``, ``Student ID``...). The accepted spellings live in one explicit
lookup table; everything else is dropped.
"""

from __future__ import annotations

import enum
from typing import Any, Dict, Mapping, Tuple


class CanonicalField(str, enum.Enum):
    EXTERNAL_ID = "external_id"
    NAME = "name"
    TOTAL_SCORE = "total_score"
    OBTAINED_SCORE = "obtained_score"


def _spellings(*words: str) -> Tuple[str, ...]:
    """Title_Snake, snake_case and ``Title Space`` spellings of a header."""
    title = [w.capitalize() if w.lower() != "id" else "ID" for w in words]
    forms = ("_".join(title), "_".join(w.lower() for w in words), " ".join(title))
    return tuple(dict.fromkeys(forms))


# Ordered: the first present spelling wins when several appear in one row.
FIELD_VARIANTS: Dict[CanonicalField, Tuple[str, ...]] = {
    CanonicalField.EXTERNAL_ID: _spellings("student", "id") + _spellings("external", "id"),
    CanonicalField.NAME: _spellings("student", "name") + _spellings("name"),
    CanonicalField.TOTAL_SCORE: _spellings("total", "marks") + _spellings("total", "score"),
    CanonicalField.OBTAINED_SCORE: (
        _spellings("marks", "obtained") + _spellings("obtained", "score")
    ),
}


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def normalize_row(
    row: Mapping[str, Any],
    variants: Mapping[CanonicalField, Tuple[str, ...]] = FIELD_VARIANTS,
) -> Dict[CanonicalField, Any]:
    """
    Re-key ``row`` by canonical field.

    For each canonical field the accepted spellings are tried in declaration
    order; the first one holding a non-blank value wins. Fields with no
    matching spelling are left out of the result and unrecognised headers are
    dropped.
    """
    normalized: Dict[CanonicalField, Any] = {}
    for field, spellings in variants.items():
        for header in spellings:
            value = row.get(header)
            if _present(value):
                normalized[field] = value
                break
    return normalized


__all__ = ["CanonicalField", "FIELD_VARIANTS", "normalize_row"]
