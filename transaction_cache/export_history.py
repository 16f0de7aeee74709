"""
Export History - remembers which chain/address/range was already exported.

Keys are ``chain:address:from:to:variant`` with a lowercased address.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from chain_adapters.models import format_iso8601
from transaction_cache.storage import KeyValueStore, MemoryStore


logger = logging.getLogger(__name__)

STORAGE_KEY = "awakenfetch_export_history"
VARIANTS = ("standard", "perps")


def build_export_key(
    chain_id: str,
    address: str,
    from_date: str,
    to_date: str,
    variant: str = "standard",
) -> str:
    """Export history key for one chain/address/range/variant."""
    if variant not in VARIANTS:
        raise ValueError(f"Unknown export variant: {variant}")
    return f"{chain_id}:{address.lower()}:{from_date}:{to_date}:{variant}"


class ExportHistory:
    """Persistent record of completed exports."""

    def __init__(
        self,
        store: Optional[KeyValueStore] = None,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self._store = store if store is not None else MemoryStore()
        self._clock = clock

    def _read(self) -> dict[str, dict[str, str]]:
        raw = self._store.get_item(STORAGE_KEY)
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"Corrupt export history, starting empty: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def has_been_exported(self, key: str) -> bool:
        return key in self._read()

    def get_record(self, key: str) -> Optional[dict[str, str]]:
        """``{"exportedAt": <ISO-8601>}`` or None."""
        return self._read().get(key)

    def record_export(self, key: str) -> None:
        history = self._read()
        history[key] = {"exportedAt": format_iso8601(self._clock())}
        self._store.set_item(STORAGE_KEY, json.dumps(history))
