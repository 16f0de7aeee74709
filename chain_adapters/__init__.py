"""
Chain Adapters Package - Pluggable per-chain transaction history.

Every adapter turns an address's upstream history into canonical
Transaction records through one shared pipeline:

- Resilient fetch layer (retry, 429 back-off, per-key throttling)
- Pagination with cross-query deduplication
- Net-flow classification with domain-specific overrides

Quick Start:
    from chain_adapters import ChainAdapterRegistry, FetchOptions, setup_default_adapters

    async def export_history():
        registry = setup_default_adapters(ChainAdapterRegistry())
        async with registry:
            adapter = registry.require("kaspa")
            transactions = await adapter.fetch_transactions(address, FetchOptions())
            return adapter.to_awaken_csv(transactions)

Adding New Adapters:
    class NewAdapter(BaseChainAdapter):
        chain_id = "newchain"
        chain_name = "New Chain"
        ticker = "NEW"
        explorer_tx_url = "https://explorer.example/tx/{hash}"
        address_pattern = re.compile(r"new1[a-z0-9]{38}")

        async def _collect(self, address, options): ...
        def classify(self, record, address): ...

    registry.register(NewAdapter())
"""

from chain_adapters.base import BaseChainAdapter, BasePerpsAdapter
from chain_adapters.exceptions import (
    ChainAdapterError,
    ChainNotSupportedError,
    ConfigurationError,
    FetchError,
    InvalidAddressError,
    NormalizationError,
    RateLimitError,
    StreamProtocolError,
)
from chain_adapters.http import RateLimiter, ResilientFetcher
from chain_adapters.models import (
    AssetEntry,
    ChainInfo,
    FetchOptions,
    PerpTag,
    PerpTransaction,
    Transaction,
    TransactionType,
)
from chain_adapters.registry import (
    ChainAdapterRegistry,
    get_default_registry,
    setup_default_adapters,
)


__version__ = "1.0.0"

__all__ = [
    # Base
    "BaseChainAdapter",
    "BasePerpsAdapter",

    # Models
    "AssetEntry",
    "ChainInfo",
    "FetchOptions",
    "PerpTag",
    "PerpTransaction",
    "Transaction",
    "TransactionType",

    # Fetch layer
    "RateLimiter",
    "ResilientFetcher",

    # Exceptions
    "ChainAdapterError",
    "ChainNotSupportedError",
    "ConfigurationError",
    "FetchError",
    "InvalidAddressError",
    "NormalizationError",
    "RateLimitError",
    "StreamProtocolError",

    # Registry
    "ChainAdapterRegistry",
    "get_default_registry",
    "setup_default_adapters",
]
