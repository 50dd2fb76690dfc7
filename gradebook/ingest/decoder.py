"""
Tabular decoder: raw upload bytes -> lazy sequence of header-keyed rows.

Two container kinds are recognised:

- ``xlsx``: an Office Open XML workbook; only the first worksheet is read.
- ``csv``: delimited text; encoding and delimiter are detected from the bytes.

The first non-empty row supplies the header labels. The header and first data
row are read eagerly so that an unreadable container, a missing header, or a
file with no data rows fails immediately with ``DecodeError``; the remaining
rows are produced lazily.
"""

from __future__ import annotations

import csv
import enum
import io
import zipfile
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from gradebook.errors import DecodeError, UnsupportedFormat
from gradebook.utils.logging import get_logger

log = get_logger(__name__)

CSV_ENCODINGS: Tuple[str, ...] = ("utf-8-sig", "utf-8", "cp1251")
CSV_DELIMITERS = ",;\t|"
_SNIFF_SAMPLE_CHARS = 65536

Row = Dict[str, Any]


class TableKind(str, enum.Enum):
    """Supported upload container kinds."""

    XLSX = "xlsx"
    CSV = "csv"

    @classmethod
    def parse(cls, value: "TableKind | str") -> "TableKind":
        """
        Resolve a declared kind from a kind name, a dotted extension or a MIME
        type (case-insensitive).

        Raises
        ------
        UnsupportedFormat
            If the value names neither supported kind.
        """
        if isinstance(value, cls):
            return value
        key = str(value or "").strip().lower()
        kind = _KIND_ALIASES.get(key) or _KIND_ALIASES.get(key.lstrip("."))
        if kind is None:
            raise UnsupportedFormat(
                f"Unsupported file format '{value}'. Only Excel (.xlsx) and CSV files are allowed",
                declared_kind=str(value),
            )
        return kind


_KIND_ALIASES: Dict[str, TableKind] = {
    "xlsx": TableKind.XLSX,
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": TableKind.XLSX,
    "csv": TableKind.CSV,
    "text/csv": TableKind.CSV,
    "application/csv": TableKind.CSV,
}


def kind_from_filename(filename: str) -> TableKind:
    """Resolve the container kind from a file name's extension."""
    _, dot, ext = str(filename).rpartition(".")
    if not dot:
        raise UnsupportedFormat(
            f"Cannot determine file format of '{filename}'. "
            "Only Excel (.xlsx) and CSV files are allowed",
            filename=str(filename),
        )
    return TableKind.parse(ext)


# =========================
# Cell readers: bytes -> iterator of raw cell tuples
# =========================
def _xlsx_cells(data: bytes) -> Iterator[Sequence[Any]]:
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, ValueError, OSError) as exc:
        raise DecodeError(f"Could not read spreadsheet: {exc}") from exc

    try:
        if not wb.worksheets:
            raise DecodeError("Spreadsheet contains no worksheets")
        sheet = wb.worksheets[0]
        try:
            for values in sheet.iter_rows(values_only=True):
                yield values
        except (zipfile.BadZipFile, KeyError, ValueError, TypeError) as exc:
            raise DecodeError(f"Spreadsheet is corrupt: {exc}") from exc
    finally:
        wb.close()


def _decode_text(data: bytes) -> str:
    last_err: Optional[UnicodeDecodeError] = None
    for enc in CSV_ENCODINGS:
        try:
            return data.decode(enc)
        except UnicodeDecodeError as exc:
            last_err = exc
    raise DecodeError(f"Could not decode CSV text: {last_err}") from last_err


def _guess_delimiter(sample_text: str) -> str:
    try:
        dialect = csv.Sniffer().sniff(sample_text, delimiters=CSV_DELIMITERS)
        if dialect.delimiter:
            return dialect.delimiter
    except csv.Error:
        pass

    # fallback: delimiter with the highest average count per line
    lines = [ln for ln in sample_text.splitlines() if ln.strip()][:20]
    if not lines:
        return ","
    scores = {d: sum(ln.count(d) for ln in lines) / len(lines) for d in CSV_DELIMITERS}
    best = max(scores.items(), key=lambda item: item[1])[0]
    return best if scores[best] > 0 else ","


def _csv_cells(data: bytes) -> Iterator[Sequence[Any]]:
    if b"\x00" in data:
        raise DecodeError("CSV content contains NUL bytes; is this a binary file?")
    text = _decode_text(data)
    delimiter = _guess_delimiter(text[:_SNIFF_SAMPLE_CHARS])
    log.debug("CSV delimiter detected", extra={"delimiter": delimiter})
    reader = csv.reader(io.StringIO(text, newline=""), delimiter=delimiter)
    try:
        for values in reader:
            yield values
    except csv.Error as exc:
        raise DecodeError(f"CSV is malformed at line {reader.line_num}: {exc}") from exc


_CELL_READERS: Dict[TableKind, Callable[[bytes], Iterator[Sequence[Any]]]] = {
    TableKind.XLSX: _xlsx_cells,
    TableKind.CSV: _csv_cells,
}


# =========================
# Rows
# =========================
def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _header_labels(values: Sequence[Any]) -> List[Optional[str]]:
    labels: List[Optional[str]] = []
    for value in values:
        label = None if _is_blank(value) else str(value).strip()
        labels.append(label)
    return labels


def _to_row(headers: List[Optional[str]], values: Sequence[Any]) -> Row:
    row: Row = {}
    for label, value in zip(headers, values):
        if label is None or label in row:
            continue
        row[label] = value
    return row


def _non_blank(cells: Iterator[Sequence[Any]]) -> Iterator[Sequence[Any]]:
    for values in cells:
        if values and not all(_is_blank(v) for v in values):
            yield values


def _rows(
    headers: List[Optional[str]], first: Sequence[Any], cells: Iterator[Sequence[Any]]
) -> Iterator[Row]:
    yield _to_row(headers, first)
    for values in cells:
        yield _to_row(headers, values)


def decode_rows(data: bytes, kind: TableKind | str) -> Iterator[Row]:
    """
    Decode ``data`` as ``kind`` and return an iterator of header-keyed rows.

    Parameters
    ----------
    data : bytes
        Raw upload content.
    kind : TableKind | str
        Declared container kind (see ``TableKind.parse``).

    Returns
    -------
    Iterator[dict]
        Lazy, finite, single-pass iterator; each item maps header label to
        cell value. Fully blank rows are skipped and blank-header columns are
        dropped.

    Raises
    ------
    UnsupportedFormat
        If ``kind`` is not a supported container kind.
    DecodeError
        If the bytes are not a readable container of that kind, or there is
        no header row or no data row. Later parse failures surface as
        ``DecodeError`` while iterating.
    """
    table_kind = TableKind.parse(kind)
    if not data:
        raise DecodeError("Uploaded file is empty")

    cells = _non_blank(_CELL_READERS[table_kind](data))
    header_values = next(cells, None)
    if header_values is None:
        raise DecodeError("No header row found in file")
    headers = _header_labels(header_values)

    first = next(cells, None)
    if first is None:
        raise DecodeError("No data found in file")

    log.debug(
        "Decoded table header",
        extra={"kind": table_kind.value, "headers": [h for h in headers if h]},
    )
    return _rows(headers, first, cells)


__all__ = ["TableKind", "kind_from_filename", "decode_rows", "CSV_ENCODINGS"]
