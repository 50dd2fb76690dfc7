"""
Infrastructure package for Gradebook Ingest.

Centralizes database connectivity concerns (DSN, pooling, retries). Keep this
layer focused on I/O and resource management, decoupled from store and
service logic.
"""

from gradebook.infrastructure.db_factory import (
    PoolManager,
    get_pool,
    get_sync_connection,
    pooled_connection,
)

__all__ = [
    "PoolManager",
    "get_pool",
    "get_sync_connection",
    "pooled_connection",
]
