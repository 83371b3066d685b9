"""
Data storage layer.

Holds the simulation actor's durable state blob and the append-only
simulation history. All storage uses DuckDB.
"""

from functools import lru_cache

from trafficsim.config import get_settings

from .base import HISTORY_RETENTION_LIMIT, StorageBackend
from .duckdb_storage import DuckDBStorage, StorageError


@lru_cache
def get_storage() -> StorageBackend:
    """
    Get cached storage backend instance (singleton).

    Returns:
        StorageBackend implementation instance
    """
    settings = get_settings()
    return DuckDBStorage(db_path=settings.db_path)


__all__ = [
    "HISTORY_RETENTION_LIMIT",
    "StorageBackend",
    "StorageError",
    "DuckDBStorage",
    "get_storage",
]
