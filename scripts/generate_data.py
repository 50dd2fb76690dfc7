"""
Sample score-sheet generator for Gradebook Ingest.

Writes deterministic pseudo-random student score sheets as CSV or XLSX, using a
randomly chosen header spelling for every column so the normalizer gets
exercised. Optionally injects malformed rows and pushes the file through the
ingestion service.
"""

from __future__ import annotations

import csv
import json
import random
import sys
import time
from pathlib import Path
from typing import Any, List, Optional

import typer
from openpyxl import Workbook

from gradebook.ingest.normalizer import FIELD_VARIANTS, CanonicalField

app = typer.Typer(help="Generate sample student score sheets (CSV or XLSX).")

FIRST_NAMES = ["Alice", "Bob", "Chen", "Dana", "Emeka", "Fatima", "Goran", "Hana", "Ivan", "Jia"]
LAST_NAMES = ["Smith", "Okafor", "Ivanova", "Kim", "Garcia", "Nguyen", "Müller", "Rossi"]
TOTAL_CHOICES = [50, 100, 150, 200]


def _pick_headers(rng: random.Random) -> List[str]:
    return [rng.choice(FIELD_VARIANTS[field]) for field in CanonicalField]


def _valid_row(rng: random.Random, index: int) -> List[Any]:
    total = rng.choice(TOTAL_CHOICES)
    name = f"{rng.choice(FIRST_NAMES)} {rng.choice(LAST_NAMES)}"
    return [f"S{index:05d}", name, total, rng.randint(0, total)]


def _invalid_row(rng: random.Random, index: int) -> List[Any]:
    row = _valid_row(rng, index)
    defect = rng.choice(["no_id", "no_name", "zero_total", "text_score", "blank_score"])
    if defect == "no_id":
        row[0] = ""
    elif defect == "no_name":
        row[1] = "   "
    elif defect == "zero_total":
        row[2] = 0
    elif defect == "text_score":
        row[3] = "absent"
    else:
        row[3] = None
    return row


def _generate_rows(rows: int, invalid_ratio: float, seed: int) -> tuple[List[str], List[List[Any]], int]:
    rng = random.Random(seed)
    headers = _pick_headers(rng)
    data: List[List[Any]] = []
    invalid = 0
    for i in range(1, rows + 1):
        if rng.random() < invalid_ratio:
            data.append(_invalid_row(rng, i))
            invalid += 1
        else:
            data.append(_valid_row(rng, i))
    return headers, data, invalid


def _write_csv(path: Path, headers: List[str], data: List[List[Any]]) -> None:
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(headers)
        writer.writerows(["" if v is None else v for v in row] for row in data)


def _write_xlsx(path: Path, headers: List[str], data: List[List[Any]]) -> None:
    wb = Workbook(write_only=True)
    ws = wb.create_sheet("Scores")
    ws.append(headers)
    for row in data:
        ws.append(row)
    wb.save(path)


def generate_sheet(
    path: Path, rows: int, invalid_ratio: float = 0.0, seed: int = 42
) -> int:
    """
    Write a sample sheet to ``path`` (format chosen by extension).

    Returns the number of rows deliberately made invalid.
    """
    headers, data, invalid = _generate_rows(rows, invalid_ratio, seed)
    if path.suffix.lower() == ".xlsx":
        _write_xlsx(path, headers, data)
    else:
        _write_csv(path, headers, data)
    return invalid


@app.command()
def main(
    output: Path = typer.Argument(..., help="Output file (.csv or .xlsx)."),
    rows: int = typer.Option(100, "--rows", "-r", help="Number of student rows."),
    invalid_ratio: float = typer.Option(
        0.0, "--invalid-ratio", min=0.0, max=1.0, help="Fraction of rows to make invalid."
    ),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    ingest: bool = typer.Option(False, "--ingest", help="Ingest the file after writing it."),
    backend: Optional[str] = typer.Option(None, "--backend", "-b", help="Store backend for --ingest."),
) -> None:
    """
    Generate a sample score sheet and optionally ingest it.
    """
    start = time.perf_counter()
    output.parent.mkdir(parents=True, exist_ok=True)
    invalid = generate_sheet(output, rows=rows, invalid_ratio=invalid_ratio, seed=seed)
    typer.echo(
        f"Wrote {rows:,} rows ({invalid:,} invalid) -> {output} "
        f"in {time.perf_counter() - start:.2f}s"
    )

    if not ingest:
        return

    from gradebook.errors import GradebookError, StoreUnavailable
    from gradebook.main import EXIT_STORE_UNAVAILABLE
    from gradebook.service import GradebookService
    from gradebook.store import create_store

    try:
        service = GradebookService(create_store(backend))
        try:
            result = service.ingest_file(output)
        finally:
            service.close()
    except GradebookError as exc:
        typer.echo(json.dumps(exc.to_dict(), indent=2, default=str), err=True)
        code = EXIT_STORE_UNAVAILABLE if isinstance(exc, StoreUnavailable) else 1
        raise typer.Exit(code=code)
    typer.echo(
        f"Ingested {result['inserted_count']:,} rows, rejected {result['rejected_count']:,} "
        f"in {result['duration_seconds']:.2f}s"
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
