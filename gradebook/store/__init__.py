"""
Store package for Gradebook Ingest.

Re-exports the store interfaces and concrete backends, plus a small registry so
callers can pick a backend by name (``STORE_BACKEND`` setting by default).
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

from gradebook.config import get_settings
from gradebook.errors import InvalidInput
from gradebook.store.abstract import AbstractRecordStore, RecordStore
from gradebook.store.memory import MemoryRecordStore
from gradebook.store.postgres import PostgresRecordStore


def _store_factories() -> Dict[str, Callable[..., RecordStore]]:
    """Registry of available store backends."""
    return {
        "memory": MemoryRecordStore,
        "postgres": PostgresRecordStore,
    }


def available_backends() -> List[str]:
    """List available store backend names."""
    return sorted(_store_factories().keys())


def create_store(name: Optional[str] = None, **kwargs: Any) -> RecordStore:
    """
    Instantiate a store backend.

    Parameters
    ----------
    name : str | None
        Backend name; defaults to ``settings.store_backend``.
    **kwargs
        Passed through to the backend constructor.

    Raises
    ------
    InvalidInput
        If no backend is registered under that name.
    """
    backend = name or get_settings().store_backend
    factories = _store_factories()
    if backend not in factories:
        raise InvalidInput(
            f"Unknown store backend '{backend}'. Available: {', '.join(factories)}",
            fields={"backend": "unknown store backend"},
        )
    return factories[backend](**kwargs)


__all__ = [
    "AbstractRecordStore",
    "RecordStore",
    "MemoryRecordStore",
    "PostgresRecordStore",
    "available_backends",
    "create_store",
]
