"""
Transaction Cache - bounded, TTL-expiring store of fetched histories.

Keys are ``chain:address[:from][:to]`` (chain and address lowercased).
All entries live as one JSON map under STORAGE_KEY:

    {key: {"transactions": [...], "cachedAt": <epoch s>, "ttl": <s>}}

Reads drop expired entries (lazy pruning). Writes prune expired entries
and, if the map is still full, evict the entry written longest ago.
"""

import json
import logging
import time
from datetime import datetime
from typing import Any, Callable, Optional, Sequence, Union

from chain_adapters.models import Transaction, format_iso8601
from transaction_cache.storage import KeyValueStore, MemoryStore


logger = logging.getLogger(__name__)

STORAGE_KEY = "awakenfetch_tx_cache"
DEFAULT_TTL_SECONDS = 30 * 60
MAX_ENTRIES = 50

DateLike = Union[str, datetime, None]


def _date_part(value: DateLike) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return format_iso8601(value)
    return str(value)


def build_cache_key(
    chain_id: str,
    address: str,
    from_date: DateLike = None,
    to_date: DateLike = None,
) -> str:
    """Cache key for one chain/address/window."""
    parts = [chain_id.lower(), address.strip().lower()]
    for value in (from_date, to_date):
        part = _date_part(value)
        if part:
            parts.append(part)
    return ":".join(parts)


class TransactionCache:
    """
    TTL + bounded cache over a KeyValueStore.

    Usage:
        cache = TransactionCache(JsonFileStore(".cache/awakenfetch.json"))
        key = build_cache_key("kaspa", address)
        transactions = cache.get(key)
        if transactions is None:
            transactions = await adapter.fetch_transactions(address)
            cache.set(key, transactions)
    """

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        default_ttl: float = DEFAULT_TTL_SECONDS,
        max_entries: int = MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._store = store if store is not None else MemoryStore()
        self._default_ttl = default_ttl
        self._max_entries = max_entries
        self._clock = clock

    # ─────────────────────────────────────────────────────────────
    # Storage
    # ─────────────────────────────────────────────────────────────

    def _read(self) -> dict[str, dict[str, Any]]:
        raw = self._store.get_item(STORAGE_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Corrupt transaction cache, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, entries: dict[str, dict[str, Any]]) -> None:
        try:
            self._store.set_item(STORAGE_KEY, json.dumps(entries))
        except OSError as e:
            logger.warning(f"Failed to persist transaction cache: {e}")

    def _is_expired(self, entry: dict[str, Any], now: float) -> bool:
        return now - float(entry.get("cachedAt", 0)) > float(entry.get("ttl", 0))

    # ─────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────

    def get(self, key: str) -> Optional[list[Transaction]]:
        """Cached transactions, or None on a miss or expired entry."""
        entries = self._read()
        entry = entries.get(key)
        if entry is None:
            return None

        if self._is_expired(entry, self._clock()):
            del entries[key]
            self._write(entries)
            logger.debug(f"Cache entry expired: {key}")
            return None

        try:
            return [Transaction.from_dict(item) for item in entry.get("transactions", [])]
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Dropping undecodable cache entry {key}: {e}")
            del entries[key]
            self._write(entries)
            return None

    def set(
        self,
        key: str,
        transactions: Sequence[Transaction],
        ttl: Optional[float] = None,
    ) -> None:
        """Write an entry, evicting the oldest one if the cache is full."""
        entries = self._read()
        now = self._clock()

        for existing in [k for k, entry in entries.items() if self._is_expired(entry, now)]:
            del entries[existing]

        if key not in entries and len(entries) >= self._max_entries:
            oldest = min(entries, key=lambda k: float(entries[k].get("cachedAt", 0)))
            del entries[oldest]
            logger.debug(f"Cache full, evicted {oldest}")

        entries[key] = {
            "transactions": [tx.to_dict() for tx in transactions],
            "cachedAt": now,
            "ttl": self._default_ttl if ttl is None else ttl,
        }
        self._write(entries)

    def remove(self, key: str) -> None:
        """Delete one entry."""
        entries = self._read()
        if key in entries:
            del entries[key]
            self._write(entries)

    def clear(self) -> None:
        """Delete every entry."""
        self._store.remove_item(STORAGE_KEY)

    def keys(self) -> list[str]:
        """Stored keys, including expired ones not yet pruned."""
        return list(self._read())

    def __len__(self) -> int:
        return len(self._read())
