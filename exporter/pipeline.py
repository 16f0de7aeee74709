"""
Export Pipeline - cache lookup, adapter fetch and CSV rendering.

    registry -> adapter.fetch_transactions -> TransactionCache -> CSV text
"""

import logging
from datetime import datetime
from typing import Optional

from chain_adapters.models import FetchOptions, PerpTransaction, Transaction, format_iso8601
from chain_adapters.registry import ChainAdapterRegistry
from csv_export.filenames import build_csv_filename
from csv_export.perp import render_perp_csv
from csv_export.standard import render_standard_csv
from transaction_cache.cache import TransactionCache, build_cache_key
from transaction_cache.export_history import ExportHistory, build_export_key


logger = logging.getLogger(__name__)


def _range_part(value: Optional[datetime]) -> str:
    return format_iso8601(value) if value else ""


class ExportPipeline:
    """
    Turns (chain, address, window) into an import-ready CSV.

    Usage:
        pipeline = ExportPipeline(setup_default_adapters(), TransactionCache())
        filename, text = await pipeline.export_standard_csv("kaspa", address)
    """

    def __init__(
        self,
        registry: ChainAdapterRegistry,
        cache: Optional[TransactionCache] = None,
        history: Optional[ExportHistory] = None,
    ) -> None:
        self.registry = registry
        self.cache = cache
        self.history = history

    async def load_transactions(
        self,
        chain_id: str,
        address: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        use_cache: bool = True,
    ) -> list[Transaction]:
        """
        Cached history if fresh, otherwise fetch and cache it.

        Raises:
            ChainNotSupportedError: Unknown chain
            InvalidAddressError: Before any network call
            FetchError / RateLimitError: Upstream failure
        """
        adapter = self.registry.require(chain_id)
        address = adapter.require_valid_address(address)
        key = build_cache_key(chain_id, address, from_date, to_date)

        if use_cache and self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info(f"[{chain_id}] Using {len(cached)} cached transactions")
                return cached

        transactions = await adapter.fetch_transactions(
            address, FetchOptions(from_date=from_date, to_date=to_date)
        )
        if self.cache is not None:
            self.cache.set(key, transactions)
        return transactions

    async def load_perp_transactions(
        self,
        chain_id: str,
        address: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> list[PerpTransaction]:
        """Perpetuals history (not cached)."""
        adapter = self.registry.require_perps(chain_id)
        address = adapter.require_valid_address(address)
        return await adapter.fetch_perp_transactions(
            address, FetchOptions(from_date=from_date, to_date=to_date)
        )

    async def export_standard_csv(
        self,
        chain_id: str,
        address: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        use_cache: bool = True,
    ) -> tuple[str, str]:
        """Returns (filename, csv_text) for the standard ledger."""
        transactions = await self.load_transactions(chain_id, address, from_date, to_date, use_cache)
        text = render_standard_csv(transactions)
        self._record(chain_id, address, from_date, to_date, "standard")
        return build_csv_filename(chain_id, address.strip()), text

    async def export_perp_csv(
        self,
        chain_id: str,
        address: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
    ) -> tuple[str, str]:
        """Returns (filename, csv_text) for the perpetuals ledger."""
        rows = await self.load_perp_transactions(chain_id, address, from_date, to_date)
        text = render_perp_csv(rows)
        self._record(chain_id, address, from_date, to_date, "perps")
        return build_csv_filename(chain_id, address.strip(), variant="perps"), text

    def previous_export(
        self,
        chain_id: str,
        address: str,
        from_date: Optional[datetime] = None,
        to_date: Optional[datetime] = None,
        variant: str = "standard",
    ) -> Optional[dict[str, str]]:
        """Record of an earlier export of the same range, if any."""
        if self.history is None:
            return None
        key = build_export_key(
            chain_id, address.strip(), _range_part(from_date), _range_part(to_date), variant
        )
        return self.history.get_record(key)

    def _record(
        self,
        chain_id: str,
        address: str,
        from_date: Optional[datetime],
        to_date: Optional[datetime],
        variant: str,
    ) -> None:
        if self.history is None:
            return
        key = build_export_key(
            chain_id, address.strip(), _range_part(from_date), _range_part(to_date), variant
        )
        self.history.record_export(key)
