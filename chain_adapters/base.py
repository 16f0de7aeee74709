"""
Base Chain Adapter - Abstract interface every chain integration implements.

All adapters MUST:
- Reject an invalid address before any network call, naming the chain
- Exclude failed on-chain operations
- Derive direction from net flow of the queried address
- Attribute fees only to the party that paid them
- Skip malformed records instead of failing the whole fetch
- Return results sorted ascending by date
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Iterable, Optional, Pattern

from chain_adapters.classification import sort_by_date
from chain_adapters.exceptions import InvalidAddressError, NormalizationError
from chain_adapters.http import ResilientFetcher
from chain_adapters.models import ChainInfo, FetchOptions, PerpTransaction, Transaction
from csv_export.perp import render_perp_csv
from csv_export.standard import render_standard_csv


logger = logging.getLogger(__name__)


class BaseChainAdapter(ABC):
    """
    Abstract base class for all chain adapters.

    Each adapter must:
    1. Declare chain_id, chain_name, ticker, explorer_tx_url
    2. Declare address_pattern or override validate_address()
    3. Implement _collect() - paginate, dedupe and classify
    4. Implement classify() - one raw record to a Transaction (or None)

    Adapters are immutable after construction apart from the lazily
    created fetcher.
    """

    chain_id: str = ""
    chain_name: str = ""
    ticker: str = ""
    perps_capable: bool = False
    explorer_tx_url: str = ""
    address_pattern: Optional[Pattern[str]] = None

    def __init__(self, fetcher: Optional[ResilientFetcher] = None) -> None:
        self._fetcher = fetcher
        self._owns_fetcher = fetcher is None

    @property
    def fetcher(self) -> ResilientFetcher:
        """Shared fetch layer (created on first use)."""
        if self._fetcher is None:
            self._fetcher = ResilientFetcher()
            self._owns_fetcher = True
        return self._fetcher

    # ─────────────────────────────────────────────────────────────
    # Contract
    # ─────────────────────────────────────────────────────────────

    def validate_address(self, address: str) -> bool:
        """Check an address against the chain's format."""
        if not isinstance(address, str) or self.address_pattern is None:
            return False
        return self.address_pattern.fullmatch(address.strip()) is not None

    @abstractmethod
    async def _collect(self, address: str, options: FetchOptions) -> list[Transaction]:
        """
        Fetch every page for the address and classify the records.

        Implementations should call ``emit_progress`` with each newly
        classified page.

        Raises:
            FetchError: Upstream failure after retries
            RateLimitError: 429 budget exhausted
        """
        pass

    @abstractmethod
    def classify(self, record: dict[str, Any], address: str) -> Optional[Transaction]:
        """
        Classify one raw upstream record.

        Returns:
            Transaction, or None when the record is excluded (failed
            operation, nothing moved for this address, ...)

        Raises:
            NormalizationError: Record cannot be decoded
        """
        pass

    def require_valid_address(self, address: str) -> str:
        """Return the stripped address or raise InvalidAddressError."""
        if not address or not self.validate_address(address):
            raise InvalidAddressError(
                f"Invalid {self.chain_name} address format.",
                chain=self.chain_id,
                address=address,
            )
        return address.strip()

    async def fetch_transactions(
        self,
        address: str,
        options: Optional[FetchOptions] = None,
    ) -> list[Transaction]:
        """
        Fetch the classified history of an address (main entry point).

        Args:
            address: Wallet address on this chain
            options: Date window, paging controls and progress callbacks

        Returns:
            Transactions inside the window, sorted ascending by date

        Raises:
            InvalidAddressError: Before any network call
            ValueError: Inverted date window
        """
        address = self.require_valid_address(address)
        options = options or FetchOptions()
        options.validate()

        started = time.monotonic()
        collected = await self._collect(address, options)
        result = sort_by_date(tx for tx in collected if options.in_window(tx.date))

        logger.info(
            f"[{self.chain_id}] Fetched {len(result)} transactions for {address[:12]}... "
            f"in {time.monotonic() - started:.2f}s"
        )
        return result

    def to_awaken_csv(self, transactions: list[Transaction]) -> str:
        """Render transactions in the standard import format."""
        return render_standard_csv(transactions)

    def get_explorer_url(self, tx_hash: str) -> str:
        """Block explorer link for a transaction hash."""
        return self.explorer_tx_url.format(hash=tx_hash)

    def info(self) -> ChainInfo:
        """Public chain metadata."""
        return ChainInfo(
            chain_id=self.chain_id,
            chain_name=self.chain_name,
            ticker=self.ticker,
            perps_capable=self.perps_capable,
        )

    # ─────────────────────────────────────────────────────────────
    # Helpers for implementations
    # ─────────────────────────────────────────────────────────────

    def classify_records(self, records: Iterable[dict[str, Any]], address: str) -> list:
        """Classify raw records, skipping the malformed ones."""
        classified = []
        for record in records:
            try:
                tx = self.classify(record, address)
            except (NormalizationError, KeyError, TypeError, ValueError) as e:
                logger.debug(f"[{self.chain_id}] Skipping malformed record: {e}")
                continue
            if tx is not None:
                classified.append(tx)
        return classified

    def emit_progress(self, transactions: list, options: FetchOptions) -> None:
        """Report a newly classified page (window-filtered) to the caller."""
        if options.on_progress is None:
            return
        page = [tx for tx in transactions if options.in_window(tx.date)]
        if page:
            options.on_progress(page)

    def emit_estimated_total(self, total: Optional[int], options: FetchOptions) -> None:
        """Report an upstream total count when the provider knows one."""
        if options.on_estimated_total is not None and total is not None and total >= 0:
            options.on_estimated_total(int(total))

    # ─────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────

    async def close(self) -> None:
        """Close resources."""
        if self._owns_fetcher and self._fetcher is not None:
            await self._fetcher.close()

    async def __aenter__(self) -> "BaseChainAdapter":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(chain_id={self.chain_id})>"


class BasePerpsAdapter(BaseChainAdapter):
    """
    Adapter that additionally exposes a perpetuals ledger.

    Implement _collect_perps() alongside the standard contract.
    """

    perps_capable = True

    @abstractmethod
    async def _collect_perps(self, address: str, options: FetchOptions) -> list[PerpTransaction]:
        """Fetch and classify perpetuals activity for the address."""
        pass

    async def fetch_perp_transactions(
        self,
        address: str,
        options: Optional[FetchOptions] = None,
    ) -> list[PerpTransaction]:
        """Fetch perpetuals history, window-filtered and sorted by date."""
        address = self.require_valid_address(address)
        options = options or FetchOptions()
        options.validate()

        collected = await self._collect_perps(address, options)
        result = sorted(
            (row for row in collected if options.in_window(row.date)),
            key=lambda row: row.date,
        )
        logger.info(f"[{self.chain_id}] Fetched {len(result)} perp records for {address[:12]}...")
        return result

    def to_awaken_perp_csv(self, transactions: list[PerpTransaction]) -> str:
        """Render perpetuals rows in the import format."""
        return render_perp_csv(transactions)
