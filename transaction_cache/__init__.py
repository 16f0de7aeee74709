"""
Transaction Cache Package - avoid refetching histories.

- TransactionCache: TTL + bounded store of fetched transactions
- ExportHistory: "already exported this range" bookkeeping
- Storage backends: MemoryStore, JsonFileStore
"""

from transaction_cache.cache import (
    DEFAULT_TTL_SECONDS,
    MAX_ENTRIES,
    STORAGE_KEY,
    TransactionCache,
    build_cache_key,
)
from transaction_cache.export_history import ExportHistory, build_export_key
from transaction_cache.storage import JsonFileStore, KeyValueStore, MemoryStore


__all__ = [
    "DEFAULT_TTL_SECONDS",
    "MAX_ENTRIES",
    "STORAGE_KEY",
    "ExportHistory",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "TransactionCache",
    "build_cache_key",
    "build_export_key",
]
