from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any, Optional

import typer

from gradebook.config import get_settings
from gradebook.errors import GradebookError, StoreUnavailable
from gradebook.reporter import print_page, print_summary
from gradebook.service import GradebookService
from gradebook.store import PostgresRecordStore, available_backends, create_store
from gradebook.utils.logging import configure_logging

app = typer.Typer(help="Gradebook Ingest CLI: upload score sheets and browse the stored records.")

# EX_TEMPFAIL: the caller may retry later
EXIT_STORE_UNAVAILABLE = 75


def _service(backend: Optional[str]) -> GradebookService:
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        store = create_store(backend)
    except GradebookError as exc:
        _fail(exc)
    return GradebookService(store, settings=settings)


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _fail(exc: GradebookError) -> None:
    typer.echo(json.dumps(exc.to_dict(), indent=2, default=str), err=True)
    code = EXIT_STORE_UNAVAILABLE if isinstance(exc, StoreUnavailable) else 1
    raise typer.Exit(code=code)


BackendOption = typer.Option(
    None,
    "--backend",
    "-b",
    help="Store backend (memory, postgres). Defaults to STORE_BACKEND.",
)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"backend={settings.store_backend} page_size={settings.default_page_size} "
        f"max_page_size={settings.max_page_size} enforce_score_bound={settings.enforce_score_bound}"
    )


@app.command()
def backends() -> None:
    """List available store backends."""
    typer.echo("Available backends: " + ", ".join(available_backends()))


@app.command("init-db")
def init_db() -> None:
    """
    Create the student_records table in PostgreSQL if it does not exist.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    try:
        PostgresRecordStore().ensure_schema()
    except GradebookError as exc:
        _fail(exc)
    typer.echo("Schema ready.")


@app.command()
def ingest(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, help="Excel (.xlsx) or CSV file."),
    kind: Optional[str] = typer.Option(
        None, "--kind", "-k", help="Declared format (xlsx, csv). Defaults to the file extension."
    ),
    backend: Optional[str] = BackendOption,
) -> None:
    """
    Replace the stored dataset with the valid rows of FILE.
    """
    service = _service(backend)
    try:
        result = service.ingest_file(file, kind)
    except GradebookError as exc:
        _fail(exc)
    finally:
        service.close()
    _echo_json({"message": "File uploaded and processed successfully", **result})


@app.command("list")
def list_records(
    page: int = typer.Option(1, "--page", "-p", min=1, help="Page number (1-based)."),
    limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Records per page."),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
    backend: Optional[str] = BackendOption,
) -> None:
    """
    Show one page of records, most recent first.
    """
    service = _service(backend)
    try:
        result = service.list(page=page, limit=limit)
    except GradebookError as exc:
        _fail(exc)
    finally:
        service.close()
    if as_json:
        _echo_json(result.model_dump(mode="json"))
    else:
        print_page(result)


@app.command()
def show(record_id: str, backend: Optional[str] = BackendOption) -> None:
    """Show a single record by id."""
    service = _service(backend)
    try:
        record = service.get(record_id)
    except GradebookError as exc:
        _fail(exc)
    finally:
        service.close()
    _echo_json(record.model_dump(mode="json"))


@app.command()
def update(
    record_id: str,
    name: str = typer.Option(..., "--name", help="Student name."),
    total: str = typer.Option(..., "--total", help="Total marks."),
    obtained: str = typer.Option(..., "--obtained", help="Marks obtained."),
    backend: Optional[str] = BackendOption,
) -> None:
    """Edit a record's name and scores; the percentage is recomputed."""
    service = _service(backend)
    try:
        record = service.update(record_id, name, total, obtained)
    except GradebookError as exc:
        _fail(exc)
    finally:
        service.close()
    _echo_json(record.model_dump(mode="json"))


@app.command()
def delete(record_id: str, backend: Optional[str] = BackendOption) -> None:
    """Delete a single record by id."""
    service = _service(backend)
    try:
        result = service.delete(record_id)
    except GradebookError as exc:
        _fail(exc)
    finally:
        service.close()
    _echo_json({"message": "Student deleted successfully", **result})


@app.command()
def clear(
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation."),
    backend: Optional[str] = BackendOption,
) -> None:
    """Delete every stored record."""
    if not yes:
        typer.confirm("Delete ALL student records?", abort=True)
    service = _service(backend)
    try:
        result = service.clear_all()
    except GradebookError as exc:
        _fail(exc)
    finally:
        service.close()
    _echo_json(result)


@app.command()
def summary(
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table."),
    backend: Optional[str] = BackendOption,
) -> None:
    """Show total record count and the last upload time."""
    service = _service(backend)
    try:
        result = service.summary()
    except GradebookError as exc:
        _fail(exc)
    finally:
        service.close()
    if as_json:
        _echo_json(result.model_dump(mode="json"))
    else:
        print_summary(result)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
