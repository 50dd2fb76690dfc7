"""
Pytest configuration for Gradebook Ingest.

Provides fixtures for:
- Settings overrides and in-memory services for unit tests
- Building CSV / XLSX upload bytes in memory
- Database connection management for integration tests
"""

from __future__ import annotations

import csv
import io
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator, Iterable, List, Sequence

import psycopg
import pytest
from openpyxl import Workbook

from gradebook.config import Settings
from gradebook.service import GradebookService
from gradebook.store.memory import MemoryRecordStore
from gradebook.store.postgres import TABLE, PostgresRecordStore

SCENARIO_A_HEADERS = ["Student_ID", "Student_Name", "Total_Marks", "Marks_Obtained"]


def make_csv_bytes(headers: Sequence[str], rows: Iterable[Sequence[Any]], delimiter: str = ",") -> bytes:
    buffer = io.StringIO()
    writer = csv.writer(buffer, delimiter=delimiter, lineterminator="\n")
    writer.writerow(headers)
    writer.writerows(rows)
    return buffer.getvalue().encode("utf-8")


def make_xlsx_bytes(
    headers: Sequence[str],
    rows: Iterable[Sequence[Any]],
    extra_sheets: Sequence[tuple[str, List[List[Any]]]] = (),
) -> bytes:
    wb = Workbook()
    ws = wb.active
    ws.title = "Scores"
    ws.append(list(headers))
    for row in rows:
        ws.append(list(row))
    for title, sheet_rows in extra_sheets:
        other = wb.create_sheet(title)
        for row in sheet_rows:
            other.append(row)
    buffer = io.BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


class StepClock:
    """Deterministic clock: every call returns a timestamp one second later."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current = self.current + timedelta(seconds=1)
        return self.current


@pytest.fixture
def csv_bytes() -> Callable[..., bytes]:
    return make_csv_bytes


@pytest.fixture
def xlsx_bytes() -> Callable[..., bytes]:
    return make_xlsx_bytes


@pytest.fixture
def unit_settings() -> Settings:
    """Settings for unit tests: in-memory backend, small page limits."""
    return Settings(
        store_backend="memory",
        default_page_size=50,
        max_page_size=200,
        enforce_score_bound=False,
        log_level="DEBUG",
    )


@pytest.fixture
def clock() -> StepClock:
    return StepClock()


@pytest.fixture
def memory_store(clock: StepClock) -> MemoryRecordStore:
    return MemoryRecordStore(clock=clock)


@pytest.fixture
def service(memory_store: MemoryRecordStore, unit_settings: Settings) -> GradebookService:
    return GradebookService(memory_store, settings=unit_settings)


# ---------------------------------------------------------------------------
# Integration (PostgreSQL)
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "gradebook"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return test_settings.dsn


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            conn.execute("SELECT 1;").fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped autocommit connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="session")
def pg_store(
    db_connection: psycopg.Connection, test_dsn: str
) -> Generator[PostgresRecordStore, None, None]:
    """Session-wide Postgres store with the schema created."""
    store = PostgresRecordStore(dsn_override=test_dsn)
    store.ensure_schema()
    try:
        yield store
    finally:
        store.close()


@pytest.fixture
def clean_records_table(db_connection: psycopg.Connection, pg_store: PostgresRecordStore):
    """
    Empty the records table before and after each test function.
    """
    db_connection.execute(f"TRUNCATE TABLE {TABLE} RESTART IDENTITY;")
    yield pg_store
    db_connection.execute(f"TRUNCATE TABLE {TABLE} RESTART IDENTITY;")
