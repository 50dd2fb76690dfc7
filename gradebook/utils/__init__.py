"""
Utilities package for Gradebook Ingest.

Exports shared helpers for cross-cutting concerns (currently logging).
Keep this package lightweight and free of domain-specific logic.
"""

from gradebook.utils.logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
]
