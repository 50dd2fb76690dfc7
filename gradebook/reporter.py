from __future__ import annotations

from typing import Optional

from rich import box
from rich.console import Console
from rich.table import Table

from gradebook.domain.models import Page, Record, Summary


def _score_style(record: Record) -> str:
    if record.percentage >= 75:
        return "bold green"
    if record.percentage >= 40:
        return "yellow"
    return "red"


def print_page(page: Page, console: Optional[Console] = None) -> None:
    """
    Render one page of student records as a rich table.

    The caption carries the pagination state so an empty page past the end
    still tells the reader where they are.
    """
    console = console or Console()

    caption = (
        f"Page {page.current_page} of {max(page.total_pages, 1)} │ "
        f"{page.total_count:,} record(s) │ limit {page.limit}"
    )
    if page.has_prev:
        caption += " │ ◀ prev"
    if page.has_next:
        caption += " │ next ▶"

    if not page.records:
        console.print("[yellow]No records on this page.[/yellow]")
        console.print(f"[dim]{caption}[/dim]")
        return

    table = Table(
        title="Student Records",
        box=box.ROUNDED,
        caption=caption,
    )

    table.add_column("ID", style="dim", no_wrap=True)
    table.add_column("Student ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="magenta")
    table.add_column("Total", justify="right")
    table.add_column("Obtained", justify="right")
    table.add_column("Percentage", justify="right")
    table.add_column("Created", justify="right", style="blue")

    for record in page.records:
        table.add_row(
            record.id,
            record.external_id,
            record.name,
            f"{record.total_score:,}",
            f"{record.obtained_score:,}",
            f"[{_score_style(record)}]{record.percentage:.2f}%[/]",
            record.created_at.strftime("%Y-%m-%d %H:%M:%S"),
        )

    console.print(table)


def print_summary(summary: Summary, console: Optional[Console] = None) -> None:
    """Render the dataset summary (record count and last upload time)."""
    console = console or Console()

    table = Table(title="Upload History", box=box.ROUNDED, show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="bold")

    table.add_row("Total students", f"{summary.total_count:,}")
    last_upload = (
        summary.last_upload.strftime("%Y-%m-%d %H:%M:%S %Z") if summary.last_upload else "never"
    )
    table.add_row("Last upload", last_upload)

    console.print(table)


__all__ = ["print_page", "print_summary"]
